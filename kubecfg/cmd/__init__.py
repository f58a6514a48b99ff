"""
This module holds all of the command classes for kubecfg's main entrypoint
"""

# Local
from .apply_cmd import CreateCmd, DeleteCmd, UpdateCmd
from .base import EXIT_FAILED, EXIT_FATAL, EXIT_OK, CmdBase
from .check_cmd import CheckCmd
from .diff_cmd import DiffCmd
from .show_cmd import ShowCmd
