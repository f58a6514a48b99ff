"""
The commands which change the cluster: create, update and delete
"""

# Standard
import argparse

# First Party
import alog

# Local
from .. import config
from ..emitters import OutputFormat
from .base import (
    CmdBase,
    add_cluster_args,
    add_force_arg,
    add_gc_args,
    add_input_args,
    add_namespace_arg,
    cancel_on_interrupt,
    emit_report,
    load_tree,
    make_reconciler,
)

log = alog.use_channel("MAIN")


def _add_format_arg(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--format",
        "-o",
        choices=OutputFormat.variants(),
        default=None,
        help="Format of the printed report (default: config output_format)",
    )


def _add_wait_args(parser: argparse.ArgumentParser):
    wait_args = parser.add_argument_group("Waiting")
    wait_args.add_argument(
        "--wait",
        action="store_true",
        default=False,
        help="Wait for the applied objects to become ready",
    )
    wait_args.add_argument(
        "--wait-timeout",
        type=float,
        default=None,
        help="Seconds to wait for readiness (default: config wait_timeout_seconds)",
    )


def _output_format(args: argparse.Namespace) -> OutputFormat:
    return OutputFormat.from_str(args.format or config.output_format)


class CreateCmd(CmdBase):
    """Create the objects which don't exist yet. Existing objects are left
    untouched.
    """

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("create", help=self.__doc__)
        add_input_args(parser)
        add_namespace_arg(parser)
        add_cluster_args(parser)
        _add_wait_args(parser)
        _add_format_arg(parser)
        parser.add_argument("--gc-tag", default=None, help="Garbage collect tag")
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        reconciler = make_reconciler(
            args,
            allow_patch=False,
            wait=args.wait,
            wait_timeout=args.wait_timeout,
        )
        report = reconciler.apply(load_tree(args.files), cancel_on_interrupt())
        return emit_report(report, _output_format(args))


class UpdateCmd(CmdBase):
    """Reconcile the cluster with the input files by patching existing
    objects, and creating missing ones with --create
    """

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("update", help=self.__doc__)
        add_input_args(parser)
        add_namespace_arg(parser)
        add_cluster_args(parser)
        add_gc_args(parser)
        add_force_arg(parser)
        _add_wait_args(parser)
        _add_format_arg(parser)
        parser.add_argument(
            "--create",
            action="store_true",
            default=False,
            help="Create objects which don't exist yet",
        )
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        reconciler = make_reconciler(
            args,
            allow_create=args.create,
            wait=args.wait,
            wait_timeout=args.wait_timeout,
        )
        report = reconciler.apply(load_tree(args.files), cancel_on_interrupt())
        return emit_report(report, _output_format(args))


class DeleteCmd(CmdBase):
    """Delete every object of the input files which exists in the cluster"""

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("delete", help=self.__doc__)
        add_input_args(parser)
        add_namespace_arg(parser)
        add_cluster_args(parser)
        _add_format_arg(parser)
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        reconciler = make_reconciler(args)
        report = reconciler.delete(load_tree(args.files), cancel_on_interrupt())
        return emit_report(report, _output_format(args))
