"""
Diff cleanup: strips line-ending-only and whitespace-only noise from
unified diffs before they are replayed into a session.
"""

from __future__ import annotations

_HEADER_PREFIXES = ("diff ", "index ", "--- ", "+++ ")
_NO_NEWLINE_MARKER = "No newline at end of file"


def normalize_line_endings(content: str) -> str:
    """Normalize CRLF and lone CR to LF."""
    return content.replace("\r\n", "\n").replace("\r", "\n")


def _same_after_normalizing(a: str, b: str) -> bool:
    return normalize_line_endings(a).rstrip() == normalize_line_endings(b).rstrip()


def is_only_line_ending_diff(unified_diff: str) -> bool:
    """True when every change in the diff is a line-ending change.

    Block-style diffs (all removals of a hunk before its additions) are
    compared pairwise.
    """
    removed: list[str] = []
    added: list[str] = []
    markers: list[str] = []

    for line in unified_diff.split("\n"):
        if line.startswith(_HEADER_PREFIXES) or line.startswith("@@") or line.startswith(" "):
            continue
        if line.startswith("\\"):
            markers.append(line)
        elif line.startswith("-"):
            removed.append(line[1:])
        elif line.startswith("+"):
            added.append(line[1:])

    if not removed and not added:
        return any(_NO_NEWLINE_MARKER in m for m in markers)
    if len(removed) != len(added):
        return False
    return all(_same_after_normalizing(r, a) for r, a in zip(removed, added))


def filter_line_ending_only_changes(diff_lines: list[str]) -> list[str]:
    """Turn removal/addition groups that differ only in line endings into context.

    The original side is kept as the context text so hunk line counts stay
    valid for replay.
    """
    filtered: list[str] = []
    removed: list[str] = []
    added: list[str] = []
    in_hunk = False

    def flush_group() -> None:
        if (
            removed and added and len(removed) == len(added)
            and all(_same_after_normalizing(r[1:], a[1:]) for r, a in zip(removed, added))
        ):
            filtered.extend(" " + r[1:] for r in removed)
        else:
            filtered.extend(removed)
            filtered.extend(added)
        removed.clear()
        added.clear()

    for line in diff_lines:
        if line.startswith(_HEADER_PREFIXES) or line.startswith("@@"):
            if in_hunk:
                flush_group()
                in_hunk = False
            filtered.append(line)
            in_hunk = line.startswith("@@")
        elif line.startswith(" "):
            flush_group()
            filtered.append(line)
        elif line.startswith("\\"):
            if _NO_NEWLINE_MARKER in line:
                continue
            flush_group()
            filtered.append(line)
        elif line.startswith("-"):
            removed.append(line)
        elif line.startswith("+"):
            added.append(line)
        else:
            flush_group()
            filtered.append(line)

    flush_group()
    return filtered


def combine_identical_trimmed_lines(diff_lines: list[str]) -> list[str]:
    """Turn adjacent ``-x``/``+x`` pairs equal after trimming into context."""
    result: list[str] = []
    i = 0
    while i < len(diff_lines):
        line = diff_lines[i]
        nxt = diff_lines[i + 1] if i + 1 < len(diff_lines) else None
        if (
            nxt is not None
            and line.startswith("-") and not line.startswith("--- ")
            and nxt.startswith("+") and not nxt.startswith("+++ ")
            and line[1:].strip() == nxt[1:].strip()
        ):
            result.append(" " + line[1:])
            i += 2
        else:
            result.append(line)
            i += 1
    return result


def has_no_meaningful_diff_content(unified_diff: str) -> bool:
    """True when nothing but headers survive line-ending filtering."""
    if not unified_diff or not unified_diff.strip():
        return True

    body: list[str] = []
    in_hunk = False
    for line in filter_line_ending_only_changes(unified_diff.split("\n")):
        if line.startswith(_HEADER_PREFIXES):
            continue
        if line.startswith("@@"):
            in_hunk = True
            continue
        if in_hunk and line.strip():
            body.append(line)

    return not any(line[:1] in ("+", "-") for line in body)


def clean_diff(unified_diff: str) -> str:
    """Apply all filters.  Returns ``""`` when no real change remains."""
    if not unified_diff or not unified_diff.strip():
        return ""
    if is_only_line_ending_diff(unified_diff):
        return ""

    lines = filter_line_ending_only_changes(unified_diff.split("\n"))
    lines = combine_identical_trimmed_lines(lines)
    cleaned = "\n".join(lines)

    if has_no_meaningful_diff_content(cleaned):
        return ""
    return cleaned
