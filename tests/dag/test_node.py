"""
Test the Node class functionality
"""

# Third Party
import pytest

# Local
from kubecfg.dag import Node

################################################################################
## Node Tests ##################################################################
################################################################################


def test_node_creation():
    """Test node initialization"""
    node = Node()
    assert node.get_name() is None
    assert node.get_data() is None
    node = Node("test", "data")
    assert node.get_name() == "test"
    assert node.get_data() == "data"
    node.set_data("other")
    assert node.get_data() == "other"


def test_node_children():
    """Test node children functions"""
    node_a = Node("a")
    node_b = Node("b")
    node_c = Node("c")
    node_a.add_child(node_b)
    node_a.add_dependency(node_c)

    assert node_a.has_child(node_b)
    assert node_a.get_children() == [node_b, node_c]

    node_a.remove_child(node_b)
    assert not node_a.has_child(node_b)
    assert node_a.get_children() == [node_c]

    # Removing an unknown child is a no-op
    node_a.remove_child(Node("x"))
    assert node_a.get_children() == [node_c]


def test_node_cyclic_dependency():
    """Make sure edges that close a cycle are rejected"""
    node_a = Node("a")
    node_b = Node("b")
    node_c = Node("c")
    node_a.add_child(node_b)
    node_b.add_child(node_c)
    with pytest.raises(ValueError):
        node_c.add_child(node_a)
    with pytest.raises(ValueError):
        node_a.add_child(node_a)


def test_node_topology():
    """Test node topology function"""

    # Graph
    #  a->b->c
    node_a = Node("a")
    node_b = Node("b")
    node_c = Node("c")
    node_a.add_child(node_b)
    node_b.add_child(node_c)

    assert node_a.topology() == [node_c, node_b, node_a]
    assert node_b.topology() == [node_c, node_b]
    assert node_c.topology() == [node_c]


def test_node_topology_siblings_sorted():
    """Siblings come out in name order regardless of insertion order"""
    root = Node("root")
    for name in ["c", "a", "b"]:
        root.add_child(Node(name))
    assert [node.get_name() for node in root.topology()] == ["a", "b", "c", "root"]


def test_node_topology_deep_chain():
    """A very deep chain does not hit the recursion limit"""
    nodes = [Node(f"n{i:05d}") for i in range(5000)]
    for parent, child in zip(nodes, nodes[1:]):
        parent.children[child] = None
    topology = nodes[0].topology()
    assert topology[0] == nodes[-1]
    assert topology[-1] == nodes[0]
    assert len(topology) == len(nodes)


def test_node_dfs():
    """Test node dfs search"""

    # Graph
    #  a
    # / \
    # b  c
    # |
    # d
    node_a = Node("a")
    node_b = Node("b")
    node_c = Node("c")
    node_d = Node("d")
    node_a.add_child(node_b)
    node_a.add_child(node_c)
    node_b.add_child(node_d)

    assert node_a.dfs(node_b) and node_a.dfs(node_c) and node_a.dfs(node_d)
    assert node_b.dfs(node_d) and not node_b.dfs(node_c)
    assert (
        node_d.dfs(node_d)
        and not node_d.dfs(node_b)
        and not node_d.dfs(node_c)
        and not node_d.dfs(node_a)
    )


def test_node_equality():
    # Check equality
    node_a = Node("a")
    assert node_a != Node("b")
    assert node_a == Node("a")
    assert node_a != "arandomtype"

    # Check sorting
    assert node_a < Node("b")
    assert not Node("z") < node_a
    assert not Node("z") < "arandomtype"


def test_node_descriptors():
    assert hash(Node("a")) == hash("a")
    assert repr(Node("a")) == "Node('a')"
