# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the pairharvest CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. No print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

import httpx

from pairharvest.cli.exit_codes import (
    CONFIG_ERROR,
    PARTIAL_FAILURE,
    RUNTIME_ERROR,
    SUCCESS,
)
from pairharvest.config.exceptions import ConfigError
from pairharvest.config.loader import default_config, load_config
from pairharvest.config.schema import PairHarvestConfig
from pairharvest.errors import PairHarvestError
from pairharvest.logging.logger import get_logger
from pairharvest.utils.paths import resolve_relative


def _load_and_configure(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[PairHarvestConfig], logging.Logger]:
    """
    The shared setup every command needs: load config, configure logging.

    Returns a tuple of (exit_code, config, logger). config is None exactly when
    setup failed, and the caller should then return exit_code immediately.
    """
    logger = get_logger(f"pairharvest.cli.{command_name}", log_level=args.log_level)

    if args.config is None:
        config = default_config()
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )
    else:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    # An explicit --log-level wins over the config file.
    log_level = args.log_level or config.global_config.log_level
    log_file = (
        resolve_relative(config.global_config.log_file, Path.cwd())
        if config.global_config.log_file
        else None
    )
    try:
        logger = get_logger(
            f"pairharvest.cli.{command_name}", log_level=log_level, log_file=log_file
        )
    except (ValueError, OSError) as err:
        logger.error(
            "Configuration error",
            extra={"command": command_name, "error": str(err)},
        )
        return CONFIG_ERROR, None, logger

    return SUCCESS, config, logger


def _run_download(args: argparse.Namespace, command_name: str, demo: bool) -> int:
    exit_code, config, logger = _load_and_configure(args, command_name)
    if config is None:
        return exit_code

    from pairharvest.pipeline.downloader import build_downloader, metadata_directories

    directories = metadata_directories(config, demo=demo)
    logger.info(
        "Command started",
        extra={
            "command": command_name,
            "dry_run": args.dry_run,
            "directories": [str(directory) for directory in directories],
        },
    )

    if args.dry_run:
        return _dry_run_download(config, directories, logger)

    try:
        with httpx.Client(timeout=config.github.timeout_seconds) as client:
            downloader = build_downloader(config, client)
            report = downloader.run(directories)
    except PairHarvestError as err:
        logger.error("Download aborted", extra={"command": command_name, "error": str(err)})
        return RUNTIME_ERROR
    except Exception as err:
        logger.error(
            "Runtime error",
            extra={"command": command_name, "error": str(err)},
            exc_info=True,
        )
        return RUNTIME_ERROR

    if report.has_failures:
        logger.warning(
            "Command completed with failures",
            extra={
                "command": command_name,
                "failed_files": [failure.path for failure in report.file_failures],
                "failed_pairs": report.failed_pairs,
            },
        )
        return PARTIAL_FAILURE

    logger.info("Command completed", extra={"command": command_name})
    return SUCCESS


def _dry_run_download(
    config: PairHarvestConfig,
    directories: list[Path],
    logger: logging.Logger,
) -> int:
    """Validate every metadata file and count its pairs without fetching anything."""
    from pairharvest.corpus.parser import parse
    from pairharvest.corpus.validator import MetadataValidator
    from pairharvest.pipeline.downloader import list_metadata_files

    try:
        validator = MetadataValidator.from_file(
            resolve_relative(config.paths.metadata_schema_file, Path.cwd())
        )
        metadata_files = [
            path for directory in directories for path in list_metadata_files(directory)
        ]
    except PairHarvestError as err:
        logger.error("Dry run aborted", extra={"error": str(err)})
        return RUNTIME_ERROR

    total_pairs = 0
    invalid_files = 0
    for metadata_file in metadata_files:
        try:
            corpus = parse(metadata_file, validator)
        except PairHarvestError as err:
            invalid_files += 1
            logger.error(
                "Invalid metadata file",
                extra={"path": str(metadata_file), "error": str(err)},
            )
            continue
        total_pairs += len(corpus)

    logger.info(
        "Dry run, would download program pairs",
        extra={
            "metadata_files": len(metadata_files),
            "invalid_files": invalid_files,
            "pairs": total_pairs,
        },
    )
    return PARTIAL_FAILURE if invalid_files else SUCCESS


def handle_download(args: argparse.Namespace) -> int:
    """Download every program pair in the project and individual metadata."""
    return _run_download(args, "download", demo=False)


def handle_demo(args: argparse.Namespace) -> int:
    """Download the small demo subset."""
    return _run_download(args, "demo", demo=True)


def handle_delete(args: argparse.Namespace) -> int:
    """Remove downloaded programs and the repository cache."""
    exit_code, config, logger = _load_and_configure(args, "delete")
    if config is None:
        return exit_code

    from pairharvest.cleanup.reset import reset_downloads

    cwd = Path.cwd()
    try:
        result = reset_downloads(
            resolve_relative(config.paths.programs_directory, cwd),
            resolve_relative(config.paths.repository_cache_directory, cwd),
            dry_run=args.dry_run,
        )
    except OSError as err:
        logger.error("Delete failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    logger.info(
        "Command completed",
        extra={
            "command": "delete",
            "dry_run": args.dry_run,
            "removed": result.removed,
            "skipped": result.skipped,
        },
    )
    return SUCCESS
