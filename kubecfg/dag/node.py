"""
This module contains the Node class used to build the Graphs that the Runner
executes
"""
# Standard
from typing import Any, List, Optional


class Node:
    """Class for representing a node in the Graph. A node's children are the
    nodes that must complete before it can run.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        data: Optional[Any] = None,
    ) -> None:
        """Construct a new Node

        Args:
            name:  Optional[str]
                The name of the node. None is reserved for a Graph's root.
            data:  Optional[Any]
                Any data that should be stored with the node. When the node is
                run by a Runner and the data is callable, it is called.
        """
        self._name = name
        self._data = data
        self.children = {}

    ## Modifiers ###############################################################

    def add_child(self, node: "Node"):
        """Add an edge from self to node, meaning that node has to complete
        before self

        Raises:
            ValueError: if the edge would create a cycle
        """
        if node.dfs(self):
            raise ValueError(
                f"Unable to add cyclic dependency {self.get_name()} -> {node.get_name()}"
            )
        self.children[node] = None

    def add_dependency(self, node: "Node"):
        """Alias of add_child reading in the direction of execution"""
        self.add_child(node)

    def remove_child(self, node: "Node"):
        """Remove child node from self"""
        self.children.pop(node, None)

    def set_data(self, data: Any):
        """Mutator for node data"""
        self._data = data

    ## Accessors ###############################################################

    def get_data(self):
        """Accessor for the node data"""
        return self._data

    def get_name(self):
        """Accessor for the node name"""
        return self._name

    def has_child(self, node: "Node"):
        """Accessor for specific child"""
        return node in self.children

    def get_children(self) -> List["Node"]:
        """Accessor for all children"""
        return list(self.children)

    ## Graph Functions #########################################################

    def topology(self) -> List["Node"]:
        """Get the children of this node (and the node itself) ordered such
        that every node comes after all of its children. Siblings are visited
        in name order so that the result is deterministic.
        """
        found = set()
        topology = []

        # Explicit stack of (node, children_expanded) to keep deep chains from
        # hitting the recursion limit
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if node in found:
                continue
            if expanded:
                found.add(node)
                topology.append(node)
                continue
            stack.append((node, True))
            for child in sorted(node.get_children(), reverse=True):
                if child not in found:
                    stack.append((child, False))
        return topology

    def dfs(self, node: "Node") -> bool:
        """Determine if there is a path from self to node. Used in the acyclic
        check.
        """
        visited = set()
        stack = [self]
        while stack:
            current = stack.pop()
            if current == node:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(current.get_children())
        return False

    ## Internal ################################################################

    def __eq__(self, obj):
        """Compare and sort nodes by name"""
        if not isinstance(obj, Node):
            return False
        return self.get_name() == obj.get_name()

    def __lt__(self, obj):
        if not isinstance(obj, Node):
            return False
        return str(self.get_name()) < str(obj.get_name())

    def __repr__(self) -> str:
        # __repr__ may be called before __init__ thus _name is not present
        if hasattr(self, "_name"):
            return f"{self.__class__.__name__}('{self.get_name()}')"
        return super().__repr__()

    def __hash__(self):
        return hash(self.get_name())
