"""
This module contains the Runner which executes functions along a DAG
"""

# Standard
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Set
import threading
import time

# First Party
import alog

# Local
from .completion_state import CompletionState
from .graph import Graph
from .node import Node

log = alog.use_channel("RUNNR")

## Runner ######################################################################


class Runner:
    """This is a very simple "keep running until done" Runner which uses a
    ThreadPoolExecutor to allow non-blocking calls to execute in parallel.
    A node is dispatched once all of its children completed.
    """

    def __init__(
        self,
        name: str = "",
        threads: Optional[int] = None,
        graph: Optional[Graph] = None,
        default_function: Optional[Callable[[Node], None]] = None,
        poll_time: float = 0.05,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Construct a Runner which will manage the execution of a single Graph

        Args:
            name:  str
                String name that can be used for logging to differentiate
                Graph executions
            threads:  Optional[int]
                Number of threads to use. If not given, the default behavior of
                ThreadPoolExecutor is to use the number of available cores. If
                0, nodes run inline in the calling thread.
            graph:  Optional[Graph]
                Existing graph to use, if not supplied an empty graph is created
            default_function:  Optional[Callable[[Node], None]]
                Function that will be called for nodes whose data is not
                callable
            poll_time:  float
                How often to check runner status
            cancel_event:  Optional[threading.Event]
                Once set, no further nodes are dispatched. Nodes in flight
                finish normally.
        """
        self.name = name
        # If threads are disabled, use the NonThreadPoolExecutor
        if threads == 0:
            log.debug("[%s] Running without threading", name)
            pool_type = NonThreadPoolExecutor
        else:
            log.debug("[%s] Running with %s threads", name, threads)
            pool_type = ThreadPoolExecutor
        self._pool = pool_type(max_workers=threads)
        self._graph = graph or Graph()
        self._default_node_func = default_function or (lambda _: None)
        self._poll_time = poll_time
        self._cancel_event = cancel_event

        # Node bookkeeping is written from worker threads
        self._lock = threading.Lock()
        self._started_nodes: Set[Node] = set()
        self._completed_nodes: Set[Node] = set()
        self._failed_nodes: Set[Node] = set()
        self._cancelled = False

    @property
    def graph(self) -> Graph:
        """The graph this runner executes"""
        return self._graph

    ## Public ##################################################################

    def completion_state(self) -> CompletionState:
        """Get the state of which nodes completed and which failed

        Returns:
            completion_state:  CompletionState
                The state holding the full view of the termination state of each
                node
        """
        with self._lock:
            finished = self._completed_nodes | self._failed_nodes
            return CompletionState(
                completed_nodes=self._completed_nodes,
                failed_nodes=self._failed_nodes,
                unstarted_nodes=[
                    node for node in self.graph.get_all_nodes() if node not in finished
                ],
                cancelled=self._cancelled,
            )

    def run(self) -> CompletionState:
        """Run the Runner! This will continue until the graph has run to
        completion, can make no further progress, or is cancelled.

        Returns:
            completion_state:  CompletionState
                The termination state of every node
        """
        all_nodes = self.graph.get_all_nodes()
        log.debug3("[%s] All Nodes: %s", self.name, all_nodes)

        while len(self._started_nodes) < len(all_nodes):
            if self._cancel_event is not None and self._cancel_event.is_set():
                log.debug("[%s] Cancelled. No new nodes will be started.", self.name)
                self._cancelled = True
                break

            # NOTE: The finished set must be read before looking for ready
            #   nodes. Otherwise a node could finish between the two reads and
            #   the loop would think nothing is left to do.
            with self._lock:
                finished = self._completed_nodes | self._failed_nodes
            ready_nodes = self._get_ready_nodes()

            if not ready_nodes and self._started_nodes == finished:
                log.debug2(
                    "[%s] Graph exhausted all available nodes. Terminating early.",
                    self.name,
                )
                break

            if ready_nodes:
                log.debug3("[%s] Ready nodes: %s", self.name, ready_nodes)
            for ready_node in ready_nodes:
                self._started_nodes.add(ready_node)
                self._pool.submit(self._run_node, ready_node)

            # Re-check for newly ready nodes right away when something happened
            if not ready_nodes:
                time.sleep(self._poll_time)

        # Make sure any in-flight nodes complete before terminating
        log.debug2("[%s] Waiting for in-flight nodes to complete", self.name)
        self._pool.shutdown(wait=True)
        state = self.completion_state()
        log.debug2("[%s] All nodes complete\n%s", self.name, state)
        return state

    ## Implementation Details ##################################################

    def _run_node(self, node: Node):
        node_name = node.get_name()
        log.debug3("[%s] Starting node: %s", self.name, node_name)
        try:
            node_func = node.get_data()
            if callable(node_func):
                node_func()
            else:
                self._default_node_func(node)
        except Exception as err:  # pylint: disable=broad-except
            log.warning(
                "[%s] Unexpected exception caught in Runner node %s: %s",
                self.name,
                node_name,
                err,
                exc_info=True,
            )
            with self._lock:
                self._failed_nodes.add(node)
        else:
            log.debug3("[%s] Node complete: %s", self.name, node_name)
            with self._lock:
                self._completed_nodes.add(node)

    def _get_ready_nodes(self) -> List[Node]:
        with self._lock:
            completed = set(self._completed_nodes)
        return sorted(
            node
            for node in self.graph.get_all_nodes()
            if node not in self._started_nodes
            and all(dep in completed for dep in node.get_children())
        )


## Helper Classes ##############################################################


class NonThreadPoolExecutor(Executor):
    """This "pool" implements the Executor interfaces, but runs without any
    threads. This is used when running a Runner without concurrency
    """

    def __init__(self, *_, **__):
        """Swallow constructor args so that it can match ThreadPoolExecutor"""
        super().__init__()

    @staticmethod
    def submit(fn: Callable, /, *args, **kwargs):
        """Run the function immediately and return a pre-completed Future"""
        fut = Future()
        fut.set_result(fn(*args, **kwargs))
        return fut

    @staticmethod
    def shutdown(*_, **__):
        """Nothing to do since this is not a real pool"""
