"""Command-line entry point for the Markdown link checker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Sequence, TextIO

import colorama
from colorama import Fore, Style

from .checker import HttpLinkChecker, LinkChecker
from .config import (
    DEFAULT_JOURNAL_PATH,
    CheckOptions,
    apply_config,
    load_config_file,
    parse_status_codes,
)
from .inputs import resolve_inputs
from .journal import BrokenLinkJournal
from .models import FatalError
from .pipeline import run_pipeline
from .report import ResultReporter

logger = logging.getLogger("mdlinkcheck.cli")


def _status_codes(value: str) -> FrozenSet[int]:
    try:
        return parse_status_codes(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mdlinkcheck",
        description=(
            "Check the hyperlinks of Markdown files or URLs and keep a journal of dead links. "
            "Reads standard input when no file or URL is given."
        ),
    )
    parser.add_argument(
        "sources",
        nargs="*",
        metavar="filenameOrUrl",
        help="Markdown files or http(s) URLs to check",
    )
    parser.add_argument(
        "-p",
        "--progress",
        action="store_true",
        help="Show a progress bar while checking links",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="JSON config file with ignore/replacement patterns, headers and retry settings",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only display dead links",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show status codes, error details and debug logging",
    )
    parser.add_argument(
        "-a",
        "--alive",
        type=_status_codes,
        default=None,
        help="Comma-separated HTTP status codes treated as alive (default: 200)",
    )
    parser.add_argument(
        "-r",
        "--retry",
        action="store_true",
        help="Retry after the duration in 'Retry-After' when receiving HTTP 429",
    )
    parser.add_argument(
        "-j",
        "--journal",
        type=Path,
        default=DEFAULT_JOURNAL_PATH,
        help="Where the dead-link journal is stored (default: ./data.json)",
    )
    return parser.parse_args(list(sys.argv[1:] if argv is None else argv))


def build_options(args: argparse.Namespace) -> CheckOptions:
    options = CheckOptions(
        show_progress_bar=args.progress,
        quiet=args.quiet,
        verbose=args.verbose,
        retry_on_429=args.retry,
    )
    if args.alive:
        options = replace(options, alive_status_codes=args.alive)
    return options


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _fatal(message: str, stream: TextIO) -> int:
    if stream.isatty():
        message = f"{Fore.RED}{message}{Style.RESET_ALL}"
    stream.write(message + "\n")
    stream.flush()
    return 1


def run(
    argv: Sequence[str] | None = None,
    checker: Optional[LinkChecker] = None,
    stdout: Optional[TextIO] = None,
    stdin=None,
) -> int:
    """Run the checker and return the process exit code."""
    args = parse_args(argv)
    _configure_logging(args)
    stdout = stdout if stdout is not None else sys.stdout

    config: Optional[Dict[str, Any]] = None
    try:
        if args.config:
            config = load_config_file(args.config)
            apply_config(CheckOptions(), config)
    except FatalError as exc:
        return _fatal(str(exc), sys.stderr)
    except (json.JSONDecodeError, ValueError, TypeError) as exc:
        logger.error("Invalid config file %s: %s", args.config, exc)
        return 1

    journal = BrokenLinkJournal.load(args.journal)
    reporter = ResultReporter(
        stdout,
        quiet=args.quiet,
        verbose=args.verbose,
        color=stdout.isatty(),
    )
    inputs = resolve_inputs(args.sources, build_options(args), stdin=stdin, config=config)

    overall_start = time.perf_counter()
    try:
        success = asyncio.run(
            run_pipeline(
                inputs,
                checker or HttpLinkChecker(),
                journal,
                args.journal,
                reporter,
                config=config,
            )
        )
    except FatalError as exc:
        return _fatal(str(exc), sys.stderr)
    finally:
        stdout.flush()
    logger.debug("Finished in %.2fs", time.perf_counter() - overall_start)
    return 0 if success else 1


def main(argv: Sequence[str] | None = None) -> None:
    colorama.just_fix_windows_console()
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
