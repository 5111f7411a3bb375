"""
Myers diff: minimal line edit scripts in O((N+M)·D).

The result is the authoritative edit script used to reconcile a session
after streaming.  Every maximal run of changed lines is emitted removals
first, then insertions, which keeps the script minimal and gives every
change block the ``[removed][added]`` buffer layout.
"""

from __future__ import annotations

from typing import Optional, Sequence

from .types import ChangeBlock, LineOp, OpKind


def split_lines(text: str) -> list[str]:
    """Split text so a trailing newline becomes a trailing empty line.

    ``"a"`` gives ``["a"]`` and ``"a\\n"`` gives ``["a", ""]``, so "no
    trailing newline" and "trailing blank line" stay distinguishable.
    """
    return text.split("\n")


def myers_diff(old: Sequence[str], new: Sequence[str]) -> list[LineOp]:
    """Return a minimal edit script turning *old* into *new*."""
    # Common prefix/suffix never take part in a shortest edit
    prefix = 0
    limit = min(len(old), len(new))
    while prefix < limit and old[prefix] == new[prefix]:
        prefix += 1

    suffix = 0
    while (
        suffix < limit - prefix
        and old[len(old) - 1 - suffix] == new[len(new) - 1 - suffix]
    ):
        suffix += 1

    old_mid = old[prefix:len(old) - suffix]
    new_mid = new[prefix:len(new) - suffix]

    script = [LineOp(OpKind.KEPT, line) for line in old[:prefix]]
    script.extend(_shortest_edit(old_mid, new_mid))
    script.extend(LineOp(OpKind.KEPT, line) for line in old[len(old) - suffix:])
    return _group_changes(script)


def diff_texts(old_text: str, new_text: str) -> list[LineOp]:
    """Minimal edit script between two texts, split with :func:`split_lines`."""
    return myers_diff(split_lines(old_text), split_lines(new_text))


def blocks_from_script(script: Sequence[LineOp], start_line: int = 0) -> list[ChangeBlock]:
    """Derive change blocks from a script rendered at *start_line*.

    Each op occupies one buffer line (removed lines as placeholders).
    """
    blocks: list[ChangeBlock] = []
    num_removed = 0
    num_added = 0

    for index, op in enumerate(script):
        if op.kind is OpKind.REMOVED:
            num_removed += 1
        elif op.kind is OpKind.INSERTED:
            num_added += 1
        elif num_removed or num_added:
            blocks.append(ChangeBlock(
                start_line=start_line + index - num_removed - num_added,
                num_removed=num_removed,
                num_added=num_added,
            ))
            num_removed = num_added = 0

    if num_removed or num_added:
        blocks.append(ChangeBlock(
            start_line=start_line + len(script) - num_removed - num_added,
            num_removed=num_removed,
            num_added=num_added,
        ))
    return blocks


def first_changed_line(script: Sequence[LineOp], start_line: int = 0) -> Optional[int]:
    """Buffer line of the first removed or inserted op, if any."""
    for index, op in enumerate(script):
        if op.kind is not OpKind.KEPT:
            return start_line + index
    return None


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------

def _shortest_edit(old: Sequence[str], new: Sequence[str]) -> list[LineOp]:
    n, m = len(old), len(new)
    if n == 0:
        return [LineOp(OpKind.INSERTED, line) for line in new]
    if m == 0:
        return [LineOp(OpKind.REMOVED, line) for line in old]

    max_d = n + m
    offset = max_d
    v = [0] * (2 * max_d + 2)
    trace: list[list[int]] = []

    for d in range(max_d + 1):
        trace.append(v[:])
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[offset + k - 1] < v[offset + k + 1]):
                x = v[offset + k + 1]
            else:
                x = v[offset + k - 1] + 1
            y = x - k
            while x < n and y < m and old[x] == new[y]:
                x += 1
                y += 1
            v[offset + k] = x
            if x >= n and y >= m:
                return _backtrack(trace, old, new, offset)

    raise AssertionError("Myers search exhausted without reaching the end")


def _backtrack(
    trace: list[list[int]],
    old: Sequence[str],
    new: Sequence[str],
    offset: int,
) -> list[LineOp]:
    x, y = len(old), len(new)
    ops: list[LineOp] = []

    for d in range(len(trace) - 1, -1, -1):
        v = trace[d]
        k = x - y
        if k == -d or (k != d and v[offset + k - 1] < v[offset + k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = v[offset + prev_k]
        prev_y = prev_x - prev_k

        while x > prev_x and y > prev_y:
            ops.append(LineOp(OpKind.KEPT, old[x - 1]))
            x -= 1
            y -= 1

        if d > 0:
            if x == prev_x:
                ops.append(LineOp(OpKind.INSERTED, new[y - 1]))
            else:
                ops.append(LineOp(OpKind.REMOVED, old[x - 1]))
            x, y = prev_x, prev_y

    ops.reverse()
    return ops


def _group_changes(script: list[LineOp]) -> list[LineOp]:
    """Reorder each run of changes so removals precede insertions."""
    grouped: list[LineOp] = []
    removed: list[LineOp] = []
    inserted: list[LineOp] = []

    for op in script:
        if op.kind is OpKind.REMOVED:
            removed.append(op)
        elif op.kind is OpKind.INSERTED:
            inserted.append(op)
        else:
            grouped.extend(removed)
            grouped.extend(inserted)
            removed, inserted = [], []
            grouped.append(op)

    grouped.extend(removed)
    grouped.extend(inserted)
    return grouped
