"""
Print the differences between the input files and the cluster, without
changing anything
"""

# Standard
import argparse

# First Party
import alog

# Local
from ..diff import DiffAction
from ..emitters import render_diff
from .base import (
    EXIT_FAILED,
    EXIT_OK,
    CmdBase,
    add_cluster_args,
    add_force_arg,
    add_gc_args,
    add_input_args,
    add_namespace_arg,
    load_tree,
    make_reconciler,
)

log = alog.use_channel("MAIN")


class DiffCmd(CmdBase):
    __doc__ = __doc__

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("diff", help=__doc__)
        add_input_args(parser)
        add_namespace_arg(parser)
        add_cluster_args(parser)
        add_gc_args(parser)
        add_force_arg(parser)
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        reconciler = make_reconciler(args)
        pairs = reconciler.diff_with_live(load_tree(args.files))
        for result, live in pairs:
            print(render_diff(result, live))

        conflicts = [
            result for result, _ in pairs if result.action == DiffAction.CONFLICT
        ]
        changes = [
            result
            for result, _ in pairs
            if result.action not in (DiffAction.NOOP, DiffAction.CONFLICT)
        ]
        log.info(
            "%d objects would change, %d have conflicts",
            len(changes),
            len(conflicts),
        )
        return EXIT_FAILED if conflicts else EXIT_OK
