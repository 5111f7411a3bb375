"""
`streamdiff` command line.

Commands
--------
streamdiff apply FILE --target NEW              -- stream NEW's changes into FILE
streamdiff apply FILE --patch CHANGES.diff      -- replay a unified diff into FILE
streamdiff apply FILE --target NEW --accept-all -- no review, keep every change
streamdiff apply FILE --patch X --review console
streamdiff apply FILE --target NEW --dry-run    -- print the blocks, change nothing
streamdiff stats                                -- rolling session statistics
streamdiff stats --last 20
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from tqdm import tqdm

from .cli_display import StatusPrinter, setup_logger
from .config import Config
from .diff_display import (
    console_review, format_colored_diff, format_session_diff, review_session,
)
from .editing.buffer import FileBuffer
from .editing.diff_cleanup import clean_diff
from .editing.diff_parser import UnifiedDiffParser, ops_from_unified_diff
from .editing.errors import DiffParseError, StreamDiffError
from .editing.metrics import read_session_stats
from .editing.myers import diff_texts
from .editing.registry import SessionRegistry
from .editing.types import OpKind

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _project_root() -> str:
    """Return the current working directory as project root."""
    return os.getcwd()


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def _build_ops(args: argparse.Namespace, original: str, cfg: Config) -> list:
    """Turn --target / --patch into line ops over *original*."""
    if args.target:
        return diff_texts(original, _read_text(args.target))

    diff_text = _read_text(args.patch)
    if not UnifiedDiffParser().parse(diff_text).parse_successful:
        raise DiffParseError(f"No hunks found in {args.patch}")
    if cfg.CLEAN_DIFFS:
        diff_text = clean_diff(diff_text)
        if not diff_text:
            logger.info("[CLI] %s has no meaningful changes after cleanup", args.patch)
            return []
    return ops_from_unified_diff(diff_text, original, file_path=args.file)


async def _progress(ops: list, quiet: bool):
    pbar = tqdm(total=len(ops), unit="line", desc="Streaming", disable=quiet)
    try:
        for op in ops:
            yield op
            pbar.update(1)
    finally:
        pbar.close()


async def _resolve(registry: SessionRegistry, file_id: str,
                   args: argparse.Namespace, cfg: Config) -> None:
    if args.accept_all:
        await registry.resolve_all(file_id, True)
    elif args.reject_all:
        await registry.resolve_all(file_id, False)
    else:
        mode = args.review or cfg.REVIEW_MODE
        if mode == "tui":
            try:
                await review_session(registry, file_id)
            except Exception as e:
                logger.warning("[CLI] Textual reviewer failed: %s", e)
                await console_review(registry, file_id)
        else:
            await console_review(registry, file_id)

    if registry.has_session(file_id):
        print("  Unresolved blocks left, rejecting them.")
        await registry.resolve_all(file_id, False)


async def _apply(args: argparse.Namespace, cfg: Config, buffer: FileBuffer, ops: list) -> int:
    file_id = os.path.relpath(os.path.abspath(args.file), _project_root())
    registry = SessionRegistry.from_config(cfg, project_root=_project_root())
    printer = StatusPrinter(file_id, quiet=args.quiet)

    try:
        await registry.stream(
            file_id, buffer, _progress(ops, args.quiet), on_status=printer,
        )
        if args.dry_run:
            session = registry.get_session(file_id)
            if session is not None:
                print(format_colored_diff(format_session_diff(session)))
            return EXIT_OK
        await _resolve(registry, file_id, args, cfg)
    except StreamDiffError as exc:
        print(f"Failed to apply changes to {args.file}: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        await registry.teardown()

    if cfg.AUTO_SAVE and buffer.save():
        print(f"  Saved {args.file}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_apply(args: argparse.Namespace) -> int:
    """Stream a change into a file and review it block by block."""
    cfg = Config.load(args.config)
    setup_logger(cfg.LOG_DIR)

    if not os.path.isfile(args.file):
        print(f"No such file: {args.file}", file=sys.stderr)
        return EXIT_BAD_INPUT

    try:
        buffer = FileBuffer(args.file)
        ops = _build_ops(args, buffer.get_text(), cfg)
    except OSError as exc:
        print(f"Cannot read input: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except DiffParseError as exc:
        print(f"Cannot parse diff: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    if all(op.kind is OpKind.KEPT for op in ops):
        print("No changes to apply.")
        return EXIT_OK

    return asyncio.run(_apply(args, cfg, buffer, ops))


def _cmd_stats(args: argparse.Namespace) -> int:
    """Show rolling session statistics."""
    last_n = args.last_n
    stats = read_session_stats(last_n=last_n, project_root=_project_root())

    if stats["total_sessions"] == 0:
        print("No session metrics found yet.")
        print("Metrics are recorded each time `streamdiff apply` closes a session.")
        return EXIT_OK

    print(f"\n┌─────────────────────────────────────┐")
    print(f"│ Session Stats (last {last_n}){' ' * max(0, 17 - len(str(last_n)))}│")
    print(f"├─────────────────────────────────────┤")
    print(f"│ Total sessions:       {stats['total_sessions']:<14}│")
    print(f"│ Accept rate:          {stats['accept_rate']:<6.0f}%{' ' * 7}│")
    print(f"│ Correction rate:      {stats['correction_rate']:<6.0f}%{' ' * 7}│")
    print(f"│ Avg blocks:           {stats['avg_blocks']:<14.1f}│")
    print(f"│ Avg retries:          {stats['avg_retries']:<14.1f}│")
    print(f"└─────────────────────────────────────┘")
    print()
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamdiff",
        description="Stream line changes into a file and review them block by block",
    )
    subparsers = parser.add_subparsers(dest="command")

    apply_p = subparsers.add_parser("apply", help="Apply a change to FILE")
    apply_p.add_argument("file", help="File to edit")
    source = apply_p.add_mutually_exclusive_group(required=True)
    source.add_argument("--target", default=None, help="File holding the new content")
    source.add_argument("--patch", default=None, help="Unified diff to replay")
    resolution = apply_p.add_mutually_exclusive_group()
    resolution.add_argument("--accept-all", action="store_true",
                            help="Accept every change without review")
    resolution.add_argument("--reject-all", action="store_true",
                            help="Reject every change without review")
    resolution.add_argument("--review", choices=["tui", "console"], default=None,
                            help="Review mode (default: from config)")
    apply_p.add_argument("--dry-run", action="store_true",
                         help="Print the change blocks and leave the file untouched")
    apply_p.add_argument("--quiet", action="store_true",
                         help="No progress bar or status lines")
    apply_p.add_argument("--config", default=None,
                         help="Path to .streamdiff.yaml config file")
    apply_p.set_defaults(func=_cmd_apply)

    stats_p = subparsers.add_parser("stats", help="Show rolling session statistics")
    stats_p.add_argument("--last", dest="last_n", type=int, default=50,
                         help="Number of recent sessions to include (default: 50)")
    stats_p.set_defaults(func=_cmd_stats)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ``streamdiff`` console script."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_BAD_INPUT
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
