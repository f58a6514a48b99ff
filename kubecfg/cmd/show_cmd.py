"""
Normalize the input files and print the desired objects, without contacting
the cluster
"""

# Standard
import argparse
import sys

# First Party
import alog

# Local
from .. import config
from ..emitters import OutputFormat, emit
from ..normalize import normalize
from ..reconcile import DEFAULT_NAMESPACE
from .base import EXIT_OK, CmdBase, add_input_args, add_namespace_arg, load_tree

log = alog.use_channel("MAIN")


class ShowCmd(CmdBase):
    __doc__ = __doc__

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("show", help=__doc__)
        add_input_args(parser)
        add_namespace_arg(parser)
        parser.add_argument(
            "--format",
            "-o",
            choices=OutputFormat.variants(),
            default=None,
            help="Output format (default: config output_format)",
        )
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        fmt = OutputFormat.from_str(args.format or config.output_format)
        manifests = normalize(
            load_tree(args.files), args.namespace or DEFAULT_NAMESPACE
        )
        log.debug("Showing %d objects as %s", len(manifests), fmt)
        emit(manifests, sys.stdout, fmt)
        return EXIT_OK
