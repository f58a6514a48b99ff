"""
CompletionState holds info about how a DAG Runner completes
"""

# Standard
from typing import Iterable, Optional

# Local
from .node import Node

## Completion state ############################################################


class CompletionState:
    """
    This class holds the definition of a CompletionState which manages all
    the information about how the nodes in a Runner terminated
    """

    def __init__(
        self,
        completed_nodes: Optional[Iterable[Node]] = None,
        failed_nodes: Optional[Iterable[Node]] = None,
        unstarted_nodes: Optional[Iterable[Node]] = None,
        cancelled: bool = False,
    ):
        """Construct with each node set

        Args:
            completed_nodes:  Optional[Iterable[Node]]
                Nodes whose function returned
            failed_nodes:  Optional[Iterable[Node]]
                Nodes whose function raised
            unstarted_nodes:  Optional[Iterable[Node]]
                Nodes that were never dispatched
            cancelled:  bool
                Whether the run stopped because it was cancelled
        """
        self.completed_nodes = set(completed_nodes or [])
        self.failed_nodes = set(failed_nodes or [])
        self.unstarted_nodes = set(unstarted_nodes or [])
        self.cancelled = cancelled
        self.all_nodes = self.completed_nodes.union(self.failed_nodes).union(
            self.unstarted_nodes
        )

        # Make sure the sets are not overlapping
        sets = [self.completed_nodes, self.failed_nodes, self.unstarted_nodes]
        for i, node_set_a in enumerate(sets):
            for node_set_b in sets[i + 1 :]:
                assert not node_set_a.intersection(node_set_b), (
                    "Programming Error: "
                    + f"CompletionState constructed with overlapping sets: {str(self)}"
                )

    def __str__(self):
        return "\n".join(
            [
                f"[NODES] {key}: {sorted(str(node.get_name()) for node in nodes)}"
                for key, nodes in [
                    ("Completed", self.completed_nodes),
                    ("Failed", self.failed_nodes),
                    ("Unstarted", self.unstarted_nodes),
                ]
            ]
            + [f"Cancelled: {self.cancelled}"]
        )

    def __eq__(self, other: "CompletionState"):
        return (
            self.completed_nodes == other.completed_nodes
            and self.failed_nodes == other.failed_nodes
            and self.unstarted_nodes == other.unstarted_nodes
            and self.cancelled == other.cancelled
        )

    def completed(self) -> bool:
        """Determine if every node ran to completion

        NOTE: An empty node set is considered completed
        """
        return not self.failed_nodes and not self.unstarted_nodes

    def failed(self) -> bool:
        """Determine if any of the nodes failed"""
        return bool(self.failed_nodes)
