#!/usr/bin/env python
"""
The main module provides the executable entrypoint for kubecfg
"""

# Standard
from typing import Dict, Tuple
import argparse
import sys

# First Party
import aconfig
import alog

# Local
from . import config
from .cmd import (
    EXIT_FATAL,
    CheckCmd,
    CmdBase,
    CreateCmd,
    DeleteCmd,
    DiffCmd,
    ShowCmd,
    UpdateCmd,
)
from .config import library_config
from .config.config import validate_library_config
from .exceptions import KubecfgFatalError
from .log_format import KubecfgJsonFormatter
from .reconcile import Reconciler

## Constants ###################################################################

log = alog.use_channel("MAIN")

## Helpers #####################################################################


def add_library_config_args(parser, config_obj=None, path=None):
    """Automatically add args for all elements of the library config"""
    path = path or []
    setters = {}
    config_obj = config_obj or library_config
    for key, val in config_obj.items():
        sub_path = path + [key]

        # If this is a nested arg, recurse
        if isinstance(val, aconfig.AttributeAccessDict):
            sub_setters = add_library_config_args(parser, config_obj=val, path=sub_path)
            for dest_name, nested_path in sub_setters.items():
                setters[dest_name] = nested_path

        # Otherwise, add an argument explicitly
        else:
            arg_name = ".".join(sub_path)
            dest_name = "_".join(sub_path)
            kwargs = {
                "default": val,
                "dest": dest_name,
                "help": f"Library config override for {arg_name} (see kubecfg.config)",
            }
            if isinstance(val, list):
                kwargs["nargs"] = "*"
            elif isinstance(val, bool):
                kwargs["action"] = "store_true"
            else:
                type_name = None
                if val is not None:
                    type_name = type(val)
                kwargs["type"] = type_name

            if (
                f"--{arg_name}"
                not in parser._option_string_actions  # pylint: disable=protected-access
            ):
                parser.add_argument(f"--{arg_name}", **kwargs)
                setters[dest_name] = sub_path
    return setters


def update_library_config(args, setters):
    """Update the library config values based on the parsed arguments"""
    for dest_name, config_path in setters.items():
        config_obj = library_config
        while len(config_path) > 1:
            config_obj = config_obj[config_path[0]]
            config_path = config_path[1:]
        config_obj[config_path[0]] = getattr(args, dest_name)


def add_command(
    subparsers: argparse._SubParsersAction,
    cmd: CmdBase,
) -> Tuple[argparse.ArgumentParser, Dict[str, str]]:
    """Add the subparser and set up the default fun call"""
    parser = cmd.add_subparser(subparsers)
    parser.set_defaults(func=cmd.cmd)
    library_args = parser.add_argument_group("Library Configuration")
    library_config_setters = add_library_config_args(library_args)
    return parser, library_config_setters


def build_parser() -> Tuple[argparse.ArgumentParser, Dict[str, str]]:
    """Build the parser with every command

    Returns:
        parser:  argparse.ArgumentParser
            The main parser
        library_config_setters:  Dict[str, str]
            Mapping from argument dest to library config path
    """
    parser = argparse.ArgumentParser(description=__doc__)
    subparsers = parser.add_subparsers(help="Available commands", dest="command")
    subparsers.required = True
    library_config_setters = {}
    commands = [ShowCmd(), CheckCmd(), DiffCmd(), CreateCmd(), UpdateCmd(), DeleteCmd()]
    for cmd in commands:
        _, setters = add_command(subparsers, cmd)
        library_config_setters.update(setters)
    return parser, library_config_setters


## Main ########################################################################


def main(argv=None) -> int:
    """The main module provides the executable entrypoint for kubecfg"""
    parser, library_config_setters = build_parser()
    args = parser.parse_args(argv)

    # Provide overrides to the library configs and check the result
    update_library_config(args, library_config_setters)
    try:
        validate_library_config()
    except KubecfgFatalError as err:
        log.error("%s", err)
        return EXIT_FATAL

    # Reconfigure logging, tagging json logs with the reconciliation id
    args.reconciliation_id = Reconciler.generate_id()
    alog.configure(
        default_level=config.log_level,
        filters=config.log_filters,
        formatter=(
            KubecfgJsonFormatter(args.reconciliation_id)
            if config.log_json
            else "pretty"
        ),
        thread_id=config.log_thread_id,
    )

    # Run the command's function
    try:
        return args.func(args)
    except KubecfgFatalError as err:
        log.error("%s", err)
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
