"""
Diff parser: turns a finished unified diff into a stream of line ops.

A static diff (e.g. one computed elsewhere and shipped as text) is replayed
through the same streaming path as live edits: the hunks are walked over
the original content and every line becomes a kept/removed/inserted op.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .errors import DiffParseError
from .types import LineOp, OpKind

logger = logging.getLogger(__name__)

# Patterns
_HUNK_HEADER = re.compile(
    r"^@@\s+-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@"
)
_OLD_FILE = re.compile(r"^---\s+(?:a/)?(\S+)")
_NEW_FILE = re.compile(r"^\+\+\+\s+(?:b/)?(\S+)")


@dataclass
class DiffHunk:
    """A single unified diff hunk."""
    old_start: int             # 1-indexed, as written in the header
    old_count: int
    new_start: int
    new_count: int
    lines: list[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return sum(1 for line in self.lines if line.startswith("-"))

    @property
    def added(self) -> int:
        return sum(1 for line in self.lines if line.startswith("+"))


@dataclass
class FilePatch:
    """All diff hunks for a single file."""
    file_path: str
    hunks: list[DiffHunk] = field(default_factory=list)


@dataclass
class ParsedDiff:
    """The complete parsed unified diff."""
    file_patches: list[FilePatch] = field(default_factory=list)
    parse_successful: bool = True
    parse_errors: list[str] = field(default_factory=list)


class UnifiedDiffParser:
    """Parse unified diffs (``git diff`` / ``diff -u`` output)."""

    def parse(self, diff_text: str) -> ParsedDiff:
        """Parse *diff_text* into file patches.

        Headerless diffs (hunks only) produce a single patch with an empty
        file path.
        """
        result = ParsedDiff()
        current: FilePatch | None = None
        hunk: DiffHunk | None = None
        old_path = ""

        for line in diff_text.split("\n"):
            if line.startswith("diff "):
                current, hunk = None, None
                continue

            old_match = _OLD_FILE.match(line)
            if old_match and hunk_is_complete(hunk):
                old_path = old_match.group(1)
                continue

            new_match = _NEW_FILE.match(line)
            if new_match and hunk_is_complete(hunk):
                path = new_match.group(1)
                if path == "/dev/null":
                    path = old_path
                current = FilePatch(file_path=path)
                result.file_patches.append(current)
                hunk = None
                continue

            header = _HUNK_HEADER.match(line)
            if header:
                if current is None:
                    current = FilePatch(file_path="")
                    result.file_patches.append(current)
                hunk = DiffHunk(
                    old_start=int(header.group(1)),
                    old_count=int(header.group(2)) if header.group(2) is not None else 1,
                    new_start=int(header.group(3)),
                    new_count=int(header.group(4)) if header.group(4) is not None else 1,
                )
                current.hunks.append(hunk)
                continue

            if hunk is not None and line[:1] in ("+", "-", " ", "\\"):
                hunk.lines.append(line)

        for patch in result.file_patches:
            if not patch.hunks:
                result.parse_errors.append(
                    f"No hunks parsed for {patch.file_path or '<unnamed>'}"
                )
        result.file_patches = [p for p in result.file_patches if p.hunks]
        result.parse_successful = len(result.file_patches) > 0
        return result


def hunk_is_complete(hunk: DiffHunk | None) -> bool:
    """True when no hunk is open or the open hunk has all its lines.

    ``---``/``+++`` lines inside an unfinished hunk are content, not headers.
    """
    if hunk is None:
        return True
    old_seen = sum(1 for line in hunk.lines if line[:1] in ("-", " "))
    new_seen = sum(1 for line in hunk.lines if line[:1] in ("+", " "))
    return old_seen >= hunk.old_count and new_seen >= hunk.new_count


def ops_from_patch(patch: FilePatch, original_content: str) -> list[LineOp]:
    """Walk *patch* over *original_content* and emit the full op sequence."""
    ops: list[LineOp] = []
    original_lines = original_content.split("\n")
    index = 0

    for hunk in patch.hunks:
        hunk_start = hunk.old_start - 1
        # A zero-length old side means "insert after line old_start"
        if hunk.old_count == 0:
            hunk_start = hunk.old_start

        while index < hunk_start and index < len(original_lines):
            ops.append(LineOp(OpKind.KEPT, original_lines[index]))
            index += 1

        for line in hunk.lines:
            marker, content = line[:1], line[1:]
            if marker == "+":
                ops.append(LineOp(OpKind.INSERTED, content))
            elif marker == "-":
                ops.append(LineOp(OpKind.REMOVED, content))
                index += 1
            elif marker == " ":
                ops.append(LineOp(OpKind.KEPT, content))
                index += 1
            # "\ No newline at end of file" and friends carry no line

    while index < len(original_lines):
        ops.append(LineOp(OpKind.KEPT, original_lines[index]))
        index += 1

    return ops


def ops_from_unified_diff(
    diff_text: str,
    original_content: str,
    file_path: str | None = None,
) -> list[LineOp]:
    """Convert a unified diff for one file into line ops.

    When the diff covers several files, *file_path* selects one (matched
    on the path suffix); otherwise the first patch is used.
    """
    parsed = UnifiedDiffParser().parse(diff_text)
    if not parsed.parse_successful:
        raise DiffParseError("Failed to parse diff: no hunks found")

    patch = parsed.file_patches[0]
    if file_path is not None and len(parsed.file_patches) > 1:
        wanted = file_path.replace("\\", "/")
        matches = [
            p for p in parsed.file_patches
            if p.file_path and (wanted.endswith(p.file_path) or p.file_path.endswith(wanted))
        ]
        if not matches:
            raise DiffParseError(f"Diff has no patch for {file_path}")
        patch = matches[0]

    logger.debug(
        "[DiffParse] %s: %d hunk(s), -%d +%d",
        patch.file_path or "<unnamed>", len(patch.hunks),
        sum(h.removed for h in patch.hunks), sum(h.added for h in patch.hunks),
    )
    return ops_from_patch(patch, original_content)
