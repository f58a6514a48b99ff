"""
Normalize the input files and validate the objects locally
"""

# Standard
import argparse

# First Party
import alog

# Local
from ..checks import check_manifests
from ..normalize import normalize
from ..reconcile import DEFAULT_NAMESPACE
from .base import (
    EXIT_FAILED,
    EXIT_OK,
    CmdBase,
    add_input_args,
    add_namespace_arg,
    load_tree,
)

log = alog.use_channel("MAIN")


class CheckCmd(CmdBase):
    __doc__ = __doc__

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("check", help=__doc__)
        add_input_args(parser)
        add_namespace_arg(parser)
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        manifests = normalize(
            load_tree(args.files), args.namespace or DEFAULT_NAMESPACE
        )
        issues = check_manifests(manifests)
        for issue in issues:
            log.error("%s", issue)
        if issues:
            return EXIT_FAILED
        log.info("Checked %d objects, no issues found", len(manifests))
        return EXIT_OK
