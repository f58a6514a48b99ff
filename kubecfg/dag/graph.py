"""
Graph holds information about a Directed Acyclic Graph
"""

# Standard
from typing import List

# First Party
import alog

# Local
from .node import Node

log = alog.use_channel("DAG")

## Graph Class #################################################################


class Graph:
    """Class for representing an instance of a Graph. Handles adding nodes and
    dependencies as well as graph functions like flattening
    """

    def __init__(self) -> None:
        self.__node_dict = {}

        # Every member of this graph is also a child of the root node
        self.__root_node = Node()

    ## Properties ##############################################################

    @property
    def root(self) -> Node:
        """The root node of the Graph"""
        return self.__root_node

    @property
    def node_dict(self) -> dict:
        """Dictionary of all node names and their nodes"""
        return self.__node_dict

    ## Modifiers ###############################################################

    def add_node(self, node: Node) -> Node:
        """Add node to graph

        Args:
            node:  Node
                The node to be added to the Graph

        Returns:
            node:  Node
                The node that was added, for chaining
        """
        if node.get_name() is None:
            raise ValueError("None is reserved for the root node of the Graph")

        if node.get_name() in self.node_dict:
            raise ValueError(
                f"Only one node with id {node.get_name()} can be added to a Graph"
            )

        self.node_dict[node.get_name()] = node
        self.root.add_child(node)
        return node

    def add_node_dependency(self, parent_node: Node, child_node: Node):
        """Add an edge between two nodes: the parent waits for the child

        Args:
            parent_node:  Node
                The dependent node, aka the node that must wait
            child_node:  Node
                The dependency node, aka the node that must complete first

        Raises:
            ValueError: if either node is unknown or the edge creates a cycle
        """
        parent = self.get_node(parent_node.get_name())
        if parent is None:
            raise ValueError(f"Parent node {parent_node} is not present in Graph")
        child = self.get_node(child_node.get_name())
        if child is None:
            raise ValueError(f"Child node {child_node} is not present in Graph")
        log.debug4("Adding dependency %s -> %s", parent, child)
        parent.add_child(child)

    ## Accessors ###############################################################

    def get_node(self, name: str):
        """Get the node with name"""
        return self.node_dict.get(name)

    def get_all_nodes(self) -> List[Node]:
        """Get list of all nodes"""
        return self.root.get_children()

    def has_node(self, node: Node):
        """Check if node is in graph"""
        return self.root.has_child(node)

    def empty(self):
        """Check if a graph is empty"""
        return not self.node_dict

    ## Graph Functions #########################################################

    def topology(self) -> List[Node]:
        """Get a list of nodes in execution order"""
        topology = self.root.topology()
        topology.remove(self.root)
        return topology

    ## Internal Functions ######################################################

    def __repr__(self):
        str_list = []
        for child in self.root.get_children():
            child_str_list = [str(node.get_name()) for node in child.get_children()]
            str_list.append(f"{child.get_name()}:[{','.join(child_str_list)}]")
        return f"Graph({{{','.join(str_list)}}})"

    def __contains__(self, item: Node):
        return self.has_node(item)

    def __iter__(self):
        """Iterate over all child nodes"""
        return iter(self.get_all_nodes())

    def __len__(self):
        return len(self.node_dict)
