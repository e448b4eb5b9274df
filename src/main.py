# src/main.py — v2
"""CLI entry point — scan, index, search, status and an interactive shell.

Usage:
    ossearch scan
    ossearch index [--wait]
    ossearch search <text> [--training-data]
    ossearch status
    ossearch shell
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import BaseModel, ValidationError

from ossearch.config.settings import ConfigurationError, Settings, load_settings
from ossearch.core.models import TrainingJob
from ossearch.engine.engine_factory import create_engine
from ossearch.engine.search_engine import SearchEngine
from ossearch.logging.logger import setup_logging
from ossearch.version import __version__

logger = logging.getLogger(__name__)

SHELL_HELP = """Supported commands:
\tscan - scan object storage for changes since the last training.
\tindex - index object storage changes with the classifier.
\tsearch <text> - search object storage with the given text.
\tstatus - show when the last scan and index started.
\texit - end this program."""


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ossearch",
        description=f"ossearch v{__version__} — Object storage search engine",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- scan ---
    p_scan = subparsers.add_parser(
        "scan", help="Scan object storage for changes since the last training",
    )
    p_scan.set_defaults(func=_cmd_scan)

    # --- index ---
    p_index = subparsers.add_parser(
        "index", help="Index the changes found by a scan",
    )
    p_index.add_argument(
        "--wait", action="store_true",
        help="Wait for training to finish before exiting",
    )
    p_index.set_defaults(func=_cmd_index)

    # --- search ---
    p_search = subparsers.add_parser(
        "search", help="Search object storage",
    )
    p_search.add_argument("text", help="Search text")
    p_search.add_argument(
        "--training-data", action="store_true",
        help="Include the training data of each matching object",
    )
    p_search.set_defaults(func=_cmd_search)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show when the last scan and index started",
    )
    p_status.set_defaults(func=_cmd_status)

    # --- shell ---
    p_shell = subparsers.add_parser(
        "shell", help="Interactive session sharing one engine",
    )
    p_shell.set_defaults(func=_cmd_shell)

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    engine = create_engine(settings)
    try:
        return await args.func(engine, args)
    finally:
        await engine.aclose()


async def _cmd_scan(engine: SearchEngine, args: argparse.Namespace) -> int:
    """Scan object storage and print the summary."""
    _print_json(await engine.scan())
    return 0


async def _cmd_index(engine: SearchEngine, args: argparse.Namespace) -> int:
    """Scan, then index, optionally waiting for training to finish.

    Each CLI invocation starts a fresh engine, so the scan result an
    index needs is computed in the same process.
    """
    scan_summary = await engine.scan()
    _print_json(scan_summary)
    if not scan_summary.scan_completed:
        return 0

    summary = await engine.index(on_complete=_print_training_outcome if args.wait else None)
    _print_json(summary)
    if summary.training_started and args.wait:
        logger.info("Waiting for training of job %s to finish", summary.job_id)
        await engine.wait_for_background_tasks()
    return 0


async def _cmd_search(engine: SearchEngine, args: argparse.Namespace) -> int:
    """Classify the search text and print matching object paths."""
    _print_json(await engine.classify(args.text, args.training_data))
    return 0


async def _cmd_status(engine: SearchEngine, args: argparse.Namespace) -> int:
    """Print engine status."""
    _print_json(await engine.get_status())
    return 0


async def _cmd_shell(engine: SearchEngine, args: argparse.Namespace) -> int:
    """Read commands from stdin until 'exit' or end of input."""
    print(SHELL_HELP)
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            return 0

        command, _, rest = line.strip().partition(" ")
        if command in ("exit", "quit"):
            return 0
        try:
            if command == "scan":
                _print_json(await engine.scan())
            elif command == "index":
                _print_json(await engine.index(on_complete=_print_training_outcome))
            elif command == "search" and rest.strip():
                _print_json(await engine.classify(rest.strip(), include_training_data=True))
            elif command == "status":
                _print_json(await engine.get_status())
            elif command:
                print(SHELL_HELP)
        except Exception as exc:
            # Keep the session alive; the engine has already logged the failure.
            print(f"Error: {exc}", file=sys.stderr)


def _print_training_outcome(job: TrainingJob | None, error: BaseException | None) -> None:
    if error is not None:
        print(f"Training failed: {error}", file=sys.stderr)
    elif job is not None:
        print(f"Training of job {job.job_id} finished with status {job.status}")


def _print_json(model: BaseModel) -> None:
    print(model.model_dump_json(indent=2))


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
