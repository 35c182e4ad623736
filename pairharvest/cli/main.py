# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for pairharvest.

Every operation is a subcommand of `pairharvest`. Running it without one is
the same as `pairharvest download`.

The global options (--config, --log-level, --dry-run) are inherited by every
subcommand through argparse's parent parser mechanism.

Usage:
    pairharvest
    pairharvest download --config configs/pairharvest.yaml
    pairharvest demo --log-level DEBUG
    pairharvest delete --dry-run
"""

import argparse
import sys

from pairharvest.cli.commands import handle_delete, handle_demo, handle_download


def _build_global_parser(suppress_defaults: bool = False) -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False keeps its help text from colliding with the subcommand
    parsers that inherit it. The copy used by subcommands suppresses its
    defaults, so `pairharvest --config x download` keeps the value given
    before the subcommand.
    """
    unset: object = argparse.SUPPRESS if suppress_defaults else None
    off: object = argparse.SUPPRESS if suppress_defaults else False

    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=unset,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=unset,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (overrides the config file).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=off,
        dest="dry_run",
        help="Show what would happen without cloning, copying or deleting.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register every subcommand with its handler via set_defaults(func=...)."""
    commands = [
        ("download", "Download all program pairs from the metadata.", handle_download),
        ("demo", "Download the small demo set of program pairs.", handle_demo),
        ("delete", "Delete downloaded programs and the repository cache.", handle_delete),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)


def main() -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

      1. Build the argument parser with global options and all subcommands
      2. Parse the command line
      3. Call the handler for the chosen subcommand (download if none)
      4. Exit with the handler's return code
    """
    root_parser = argparse.ArgumentParser(
        prog="pairharvest",
        description="pairharvest: build a corpus of matched C and Rust program pairs.",
        parents=[_build_global_parser()],
    )
    root_parser.set_defaults(func=handle_download)
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, _build_global_parser(suppress_defaults=True))

    args = root_parser.parse_args()

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
