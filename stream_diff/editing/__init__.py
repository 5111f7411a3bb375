"""Streaming diff application: live edits, exact reconciliation, per-block review."""

from .types import LineOp, OpKind, ChangeBlock, iter_ops
from .errors import (
    StreamDiffError, TransientMutationError, ReconciliationError,
    StaleBlockError, SessionClosedError, DiffParseError,
)
from .myers import myers_diff, diff_texts, split_lines, blocks_from_script
from .ranges import RangeTracker, LineRange
from .buffer import TextBuffer, InMemoryBuffer, FileBuffer
from .session import (
    PatchSession, SessionState, SessionStatus, ResolutionReport, BlockFailure,
)
from .registry import SessionRegistry
from .diff_parser import UnifiedDiffParser, ParsedDiff, FilePatch, DiffHunk, ops_from_unified_diff
from .diff_cleanup import clean_diff, normalize_line_endings
from .metrics import log_session_metric, read_session_stats

__all__ = [
    "LineOp", "OpKind", "ChangeBlock", "iter_ops",
    "StreamDiffError", "TransientMutationError", "ReconciliationError",
    "StaleBlockError", "SessionClosedError", "DiffParseError",
    "myers_diff", "diff_texts", "split_lines", "blocks_from_script",
    "RangeTracker", "LineRange",
    "TextBuffer", "InMemoryBuffer", "FileBuffer",
    "PatchSession", "SessionState", "SessionStatus", "ResolutionReport", "BlockFailure",
    "SessionRegistry",
    "UnifiedDiffParser", "ParsedDiff", "FilePatch", "DiffHunk", "ops_from_unified_diff",
    "clean_diff", "normalize_line_endings",
    "log_session_metric", "read_session_stats",
]
