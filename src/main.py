# src/main.py - v2
"""CLI entry point: verify, ask, history and compare commands.

Usage:
    factlens verify --url https://example.com/story
    factlens verify --text "..." --ask "Who is quoted?"
    factlens history list
    factlens compare <id> <id> [<id>...]

Exit codes: 0 success, 1 failure, 2 unusable input, 130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import TextIO

from factlens.core.errors import (
    PipelineCancelledError,
    PipelineFailedError,
    PreconditionError,
)
from factlens.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PRECONDITION = 2
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILURE

    try:
        settings = _load_settings(args)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except PipelineCancelledError:
        return EXIT_INTERRUPTED
    except PreconditionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PRECONDITION
    except PipelineFailedError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=getattr(args, "verbose", False))
        return EXIT_FAILURE


def cli() -> None:
    """Console-script entry point."""
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="factlens",
        description=f"factlens v{__version__} - content verification pipeline",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--store", choices=("json", "sqlite", "memory"), default=None,
        help="History/record backend (default: STORE_BACKEND or json)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- verify ---
    p_verify = subparsers.add_parser("verify", help="Verify a URL, text, image or video")
    source = p_verify.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Article URL")
    source.add_argument("--text", help="Text to analyze directly")
    source.add_argument("--image", type=Path, help="Path to an image file")
    source.add_argument("--video", type=Path, help="Path to a video file")
    p_verify.add_argument(
        "--ask", action="append", default=[], metavar="QUESTION",
        help="Follow-up question about the report (repeatable)",
    )
    p_verify.add_argument("--quiet", action="store_true", help="Do not print stage progress")
    p_verify.set_defaults(func=_cmd_verify)

    # --- ask ---
    p_ask = subparsers.add_parser("ask", help="Ask a follow-up question about a past report")
    p_ask.add_argument("entry_id", help="History entry id")
    p_ask.add_argument("question", help="Question about the report")
    p_ask.set_defaults(func=_cmd_ask)

    # --- history ---
    p_history = subparsers.add_parser("history", help="List or clear past runs")
    history_sub = p_history.add_subparsers(dest="history_command", required=True)
    history_sub.add_parser("list", help="List past runs, newest first").set_defaults(
        func=_cmd_history_list
    )
    p_clear = history_sub.add_parser("clear", help="Delete all past runs")
    p_clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p_clear.set_defaults(func=_cmd_history_clear)

    # --- compare ---
    p_compare = subparsers.add_parser("compare", help="Comparative brief over past runs")
    p_compare.add_argument("entry_ids", nargs="+", metavar="ID", help="History entry ids")
    p_compare.set_defaults(func=_cmd_compare)

    return parser


def _load_settings(args: argparse.Namespace):
    from factlens.config.settings import load_settings
    from factlens.logging.logger import setup_logging

    overrides: dict[str, object] = {}
    if args.store:
        overrides["store_backend"] = args.store
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    settings = load_settings(**overrides)

    setup_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return settings


def _build_run_input(args: argparse.Namespace):
    from factlens.core.models import ImageAsset, RunInput, VideoAsset

    if args.image is not None:
        if not args.image.is_file():
            raise PreconditionError(f"Image not found: {args.image}")
        media_type = mimetypes.guess_type(args.image.name)[0] or "image/jpeg"
        image = ImageAsset(data=args.image.read_bytes(), media_type=media_type, name=args.image.name)
        return RunInput(image=image)
    if args.video is not None:
        if not args.video.is_file():
            raise PreconditionError(f"Video not found: {args.video}")
        media_type = mimetypes.guess_type(args.video.name)[0] or "video/mp4"
        return RunInput(video=VideoAsset(path=args.video, name=args.video.name, media_type=media_type))
    return RunInput(url=args.url, raw_text=args.text)


class ConsoleObserver:
    """Prints stage transitions to ``err`` and report chunks to ``out``."""

    def __init__(self, out: TextIO, err: TextIO, show_stages: bool = True) -> None:
        self._out = out
        self._err = err
        self._show_stages = show_stages

    def __call__(self, event) -> None:
        from factlens.pipeline.progress import ReportChunkEvent

        if isinstance(event, ReportChunkEvent):
            self._out.write(event.chunk)
            self._out.flush()
        elif self._show_stages:
            details = f": {event.details}" if event.details else ""
            print(f"[{event.status.value:>9}] {event.stage.value}{details}", file=self._err)


async def _stream(chunks, out: TextIO) -> None:
    async for chunk in chunks:
        out.write(chunk)
        out.flush()
    out.write("\n")


async def _cmd_verify(args: argparse.Namespace, settings) -> int:
    from factlens.api.facade import build_orchestrator

    run_input = _build_run_input(args)
    orchestrator = build_orchestrator(
        settings, observers=[ConsoleObserver(sys.stdout, sys.stderr, not args.quiet)]
    )
    outcome = await orchestrator.run(run_input)
    print()

    if outcome.prior_warning is not None:
        warning = outcome.prior_warning
        print(
            f"Warning: {warning.domain} was previously flagged as a potential source of "
            f"misinformation (trust score {warning.trust_score}).",
            file=sys.stderr,
        )

    print(f"\nRisk: {outcome.risk.label} ({outcome.risk.score}/100)")
    for factor in outcome.risk.factors:
        print(f"  - {factor}")
    if outcome.history_saved:
        print(f"History id: {outcome.entry.id}")
    else:
        print("Warning: this run could not be saved to history.", file=sys.stderr)

    for question in args.ask:
        print(f"\n> {question}")
        await _stream(outcome.follow_up.send(question), sys.stdout)
    return EXIT_OK


async def _cmd_ask(args: argparse.Namespace, settings) -> int:
    from factlens.api.facade import build_orchestrator

    orchestrator = build_orchestrator(settings)
    entry = await orchestrator.history_store.get(args.entry_id)
    if entry is None:
        raise PreconditionError(f"No history entry with id {args.entry_id!r}")
    session = orchestrator.open_follow_up(entry)
    await _stream(session.send(args.question), sys.stdout)
    return EXIT_OK


async def _cmd_history_list(args: argparse.Namespace, settings) -> int:
    from factlens.storage.store_factory import create_history_store

    entries = await create_history_store(settings).list_all()
    if not entries:
        print("No history yet.")
        return EXIT_OK
    for entry in entries:
        print(f"{entry.id}  {entry.timestamp:%Y-%m-%d %H:%M}  {entry.input_descriptor}")
    return EXIT_OK


async def _cmd_history_clear(args: argparse.Namespace, settings) -> int:
    from factlens.storage.store_factory import create_history_store

    if not args.yes:
        answer = input("Delete all history entries? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return EXIT_OK
    await create_history_store(settings).clear()
    print("History cleared.")
    return EXIT_OK


async def _cmd_compare(args: argparse.Namespace, settings) -> int:
    from factlens.api.facade import build_orchestrator

    orchestrator = build_orchestrator(settings)
    await _stream(orchestrator.compare(args.entry_ids), sys.stdout)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
