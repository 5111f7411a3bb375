"""
Range tracker: ordered, non-overlapping runs of decorated lines.

A session keeps two trackers: one for removed lines (virtual lines shown as
blank placeholders, so the original text is kept on the range) and one for
added lines (real buffer lines, text omitted).
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass
class LineRange:
    """A run of ``count`` consecutive lines starting at ``start_line``."""
    start_line: int
    count: int
    text: Optional[list[str]] = None

    @property
    def end_line(self) -> int:
        """Exclusive end line."""
        return self.start_line + self.count


class RangeTracker:
    """Sorted, non-overlapping line ranges with bulk offset shifting."""

    def __init__(self, keep_text: bool = False) -> None:
        self._keep_text = keep_text
        self._ranges: list[LineRange] = []

    def __len__(self) -> int:
        return len(self._ranges)

    def __iter__(self) -> Iterator[LineRange]:
        return iter(list(self._ranges))

    @property
    def ranges(self) -> list[LineRange]:
        """Snapshot copy of the tracked ranges."""
        return [
            LineRange(r.start_line, r.count, list(r.text) if r.text is not None else None)
            for r in self._ranges
        ]

    @property
    def line_count(self) -> int:
        return sum(r.count for r in self._ranges)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_range(self, start: int, count: int, text: Optional[list[str]] = None) -> LineRange:
        """Track ``count`` lines at ``start``.

        A range that touches its neighbour end-to-start is merged into it.
        Raises ``ValueError`` on overlap or inconsistent arguments.
        """
        if start < 0 or count <= 0:
            raise ValueError(f"Invalid range start={start} count={count}")
        if self._keep_text:
            if text is None or len(text) != count:
                raise ValueError("Removed ranges need exactly one text line per tracked line")
            text = list(text)
        else:
            text = None

        index = self._insertion_index(start)
        prev = self._ranges[index - 1] if index > 0 else None
        nxt = self._ranges[index] if index < len(self._ranges) else None

        if prev is not None and prev.end_line > start:
            raise ValueError(
                f"Range at {start} overlaps range {prev.start_line}-{prev.end_line - 1}"
            )
        if nxt is not None and start + count > nxt.start_line:
            raise ValueError(
                f"Range at {start} overlaps range {nxt.start_line}-{nxt.end_line - 1}"
            )

        new_range = LineRange(start, count, text)
        if prev is not None and prev.end_line == start:
            prev.count += count
            if self._keep_text:
                prev.text.extend(text)
            new_range = prev
            index -= 1
        else:
            self._ranges.insert(index, new_range)

        if nxt is not None and new_range.end_line == nxt.start_line:
            new_range.count += nxt.count
            if self._keep_text:
                new_range.text.extend(nxt.text)
            self._ranges.pop(index + 1)

        return new_range

    def delete_range_at(self, start: int) -> Optional[LineRange]:
        """Remove and return the range that starts exactly at ``start``."""
        index = self._index_of(start)
        if index is None:
            return None
        return self._ranges.pop(index)

    def delete_ranges_from(self, start: int) -> list[LineRange]:
        """Remove the contiguous run of ranges beginning at ``start``."""
        run = self._run_from(start)
        if run:
            first = self._index_of(start)
            del self._ranges[first:first + len(run)]
        return run

    def shift_from(self, start: int, offset: int) -> None:
        """Add ``offset`` to every range whose start is strictly after ``start``.

        The tracker is left untouched when the shift would make a start
        negative or push a range into the one before it.
        """
        if offset == 0:
            return
        first = bisect.bisect_right([r.start_line for r in self._ranges], start)
        if first == len(self._ranges):
            return

        moved_start = self._ranges[first].start_line + offset
        if moved_start < 0:
            raise ValueError(f"Shift by {offset} after line {start} moves a range below 0")
        if first > 0 and self._ranges[first - 1].end_line > moved_start:
            raise ValueError(f"Shift by {offset} after line {start} overlaps an earlier range")

        for r in self._ranges[first:]:
            r.start_line += offset

    def clear(self) -> None:
        self._ranges.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def range_at(self, start: int) -> Optional[LineRange]:
        index = self._index_of(start)
        return self._ranges[index] if index is not None else None

    def ranges_from(self, start: int) -> list[LineRange]:
        """The contiguous run of ranges beginning at ``start`` (not removed)."""
        return self._run_from(start)

    def covers(self, line: int) -> bool:
        index = bisect.bisect_right([r.start_line for r in self._ranges], line) - 1
        return index >= 0 and self._ranges[index].end_line > line

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _insertion_index(self, start: int) -> int:
        return bisect.bisect_left([r.start_line for r in self._ranges], start)

    def _index_of(self, start: int) -> Optional[int]:
        index = self._insertion_index(start)
        if index < len(self._ranges) and self._ranges[index].start_line == start:
            return index
        return None

    def _run_from(self, start: int) -> list[LineRange]:
        index = self._index_of(start)
        if index is None:
            return []
        run = [self._ranges[index]]
        for r in self._ranges[index + 1:]:
            if r.start_line != run[-1].end_line:
                break
            run.append(r)
        return run
