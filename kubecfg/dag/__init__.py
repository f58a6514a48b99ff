"""
Package exports
"""

# Local
from .completion_state import CompletionState
from .graph import Graph
from .node import Node
from .runner import NonThreadPoolExecutor, Runner
