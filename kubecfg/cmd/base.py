"""
Base class for all kubecfg commands and the argument groups they share
"""

# Standard
from typing import Any, List, Optional
import abc
import argparse
import signal
import sys
import threading

# First Party
import alog

# Local
from .. import config
from ..emitters import emit
from ..producer import load_file
from ..reconcile import ReconcileOptions, Reconciler
from ..report import ExecutionReport
from ..transport import (
    ClusterConfig,
    DryRunTransport,
    OpenshiftTransport,
    TransportBase,
)

log = alog.use_channel("MAIN")

# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


class CmdBase(abc.ABC):
    __doc__ = __doc__

    @abc.abstractmethod
    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        """Add this command's argument parser subcommand

        Args:
            subparsers (argparse._SubParsersAction): The subparser section for
                the central main parser

        Returns:
            subparser (argparse.ArgumentParser): The configured parser for this
                command
        """

    @abc.abstractmethod
    def cmd(self, args: argparse.Namespace) -> int:
        """Execute the command with the parsed arguments

        Args:
            args (argparse.Namespace): The parsed command line arguments

        Returns:
            exit_code (int): The process exit code
        """


## Shared Arguments ############################################################


def add_input_args(parser: argparse.ArgumentParser):
    """Add the positional list of input files"""
    parser.add_argument(
        "files",
        nargs="+",
        metavar="FILE",
        help="YAML or JSON files holding the desired objects ('-' for stdin)",
    )


def add_cluster_args(parser: argparse.ArgumentParser):
    """Add the options which say how to reach the cluster"""
    cluster_args = parser.add_argument_group("Cluster Connection")
    cluster_args.add_argument(
        "--server",
        default=None,
        help="The address of the API server. Overrides the kubeconfig.",
    )
    cluster_args.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to the kubeconfig file",
    )
    cluster_args.add_argument(
        "--context",
        default=None,
        help="The kubeconfig context to use",
    )
    cluster_args.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Read the cluster but never write to it",
    )


def add_namespace_arg(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--namespace",
        "-n",
        default=None,
        help="Namespace for namespaced objects that don't name one",
    )


def add_gc_args(parser: argparse.ArgumentParser):
    """Add the garbage collection options"""
    gc_args = parser.add_argument_group("Garbage Collection")
    gc_args.add_argument(
        "--gc-tag",
        default=None,
        help="Tag every applied object so that later runs can prune it",
    )
    gc_args.add_argument(
        "--prune",
        action="store_true",
        default=False,
        help="Delete tagged objects which are no longer desired. Needs --gc-tag.",
    )


def add_force_arg(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Overwrite fields modified outside of kubecfg",
    )


## Shared Helpers ##############################################################


def load_tree(files: List[str]) -> Any:
    """Load every input file. Several files are combined into one list."""
    trees = [load_file(path) for path in files]
    if len(trees) == 1:
        return trees[0]
    return trees


def make_transport(args: argparse.Namespace) -> TransportBase:
    """Build the transport from the cluster arguments, falling back to the
    cluster section of the library config
    """
    cluster_config = ClusterConfig.from_config(config.cluster)
    cluster_config = ClusterConfig(
        server=args.server or cluster_config.server,
        kubeconfig=args.kubeconfig or cluster_config.kubeconfig,
        context=args.context or cluster_config.context,
        verify_ssl=cluster_config.verify_ssl,
    )
    transport = OpenshiftTransport(cluster_config)
    if args.dry_run:
        log.info("Running in dry run mode. Nothing will be written to the cluster.")
        return DryRunTransport(upstream=transport)
    return transport


def make_reconciler(
    args: argparse.Namespace,
    transport: Optional[TransportBase] = None,
    **kwargs,
) -> Reconciler:
    """Build the reconciler for a command from its arguments

    Args:
        args:  argparse.Namespace
            The parsed arguments
        transport:  Optional[TransportBase]
            The transport to use instead of the one the arguments describe
        **kwargs:
            Overrides of the ReconcileOptions fields

    Returns:
        reconciler:  Reconciler
            The reconciler with options from the arguments
    """
    options = {
        "namespace": getattr(args, "namespace", None),
        "force": getattr(args, "force", False),
        "prune": getattr(args, "prune", False),
        "gc_tag": getattr(args, "gc_tag", None),
    }
    options.update(kwargs)
    return Reconciler(
        transport or make_transport(args),
        ReconcileOptions(**options),
        reconciliation_id=getattr(args, "reconciliation_id", None),
    )


def cancel_on_interrupt() -> threading.Event:
    """Create an event which is set when the process gets SIGINT or SIGTERM"""
    cancel_event = threading.Event()

    def do_stop(*_, **__):  # pragma: no cover
        log.warning("Interrupted. Cancelling the remaining operations.")
        cancel_event.set()

    # Signal handlers can only be registered from the main thread
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, do_stop)
        signal.signal(signal.SIGTERM, do_stop)
    return cancel_event


def emit_report(report: ExecutionReport, fmt) -> int:
    """Print the report and return the exit code it implies"""
    emit(report.to_list(), sys.stdout, fmt)
    log.info("Summary: %s", report.summary())
    return EXIT_FAILED if report.failed() else EXIT_OK
