"""
Text buffers: the mutable, line-addressed targets a session edits.

``InMemoryBuffer`` is the reference implementation.  ``FileBuffer`` adds
loading from disk and atomic saves.  Hosts with their own editor model
implement :class:`TextBuffer` directly.
"""

from __future__ import annotations

import logging
import os
import shutil
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .errors import TransientMutationError

logger = logging.getLogger(__name__)


class TextBuffer(ABC):
    """Line-addressed text target.  Mutations are awaited."""

    @property
    @abstractmethod
    def line_count(self) -> int:
        ...

    @abstractmethod
    def get_lines(self, start: int = 0, end: Optional[int] = None) -> list[str]:
        ...

    def get_text(self) -> str:
        return "\n".join(self.get_lines())

    @abstractmethod
    async def insert_lines(self, index: int, lines: Sequence[str]) -> None:
        """Insert *lines* above line *index* (past the end appends)."""

    @abstractmethod
    async def delete_lines(self, index: int, count: int = 1) -> None:
        """Delete up to *count* lines starting at *index*."""

    @abstractmethod
    async def replace_lines(self, start: int, end: int, lines: Sequence[str]) -> None:
        """Replace lines ``[start, end)`` with *lines*."""

    def is_live(self) -> bool:
        """Whether the buffer currently accepts mutations."""
        return True


class InMemoryBuffer(TextBuffer):
    """Buffer backed by a list of lines.

    Set ``live = False`` to simulate a target that is momentarily
    unavailable; mutations then raise :class:`TransientMutationError`.
    """

    def __init__(self, text: str = "") -> None:
        self._lines: list[str] = text.split("\n")
        self.live = True
        self.is_dirty = False

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def get_lines(self, start: int = 0, end: Optional[int] = None) -> list[str]:
        return list(self._lines[start:end])

    def is_live(self) -> bool:
        return self.live

    def set_text(self, text: str) -> None:
        self._lines = text.split("\n")
        self.is_dirty = False

    async def insert_lines(self, index: int, lines: Sequence[str]) -> None:
        self._check_live()
        index = max(0, min(index, len(self._lines)))
        self._lines[index:index] = list(lines)
        self.is_dirty = True

    async def delete_lines(self, index: int, count: int = 1) -> None:
        self._check_live()
        if count <= 0 or index >= len(self._lines):
            return
        del self._lines[max(index, 0):index + count]
        self.is_dirty = True

    async def replace_lines(self, start: int, end: int, lines: Sequence[str]) -> None:
        self._check_live()
        start = max(0, min(start, len(self._lines)))
        end = max(start, min(end, len(self._lines)))
        self._lines[start:end] = list(lines)
        self.is_dirty = True

    def _check_live(self) -> None:
        if not self.live:
            raise TransientMutationError("Buffer is not live")


class FileBuffer(InMemoryBuffer):
    """In-memory buffer loaded from, and saved back to, a file."""

    def __init__(self, file_path: str) -> None:
        with open(file_path, "r", encoding="utf-8", errors="replace", newline="") as f:
            content = f.read()
        super().__init__(content)
        self.file_path = file_path

    def save(self) -> bool:
        """Write the buffer back if it changed.  Returns True when written."""
        if not self.is_dirty:
            logger.debug("[Buffer] %s has no unsaved changes", self.file_path)
            return False
        _safe_write(self.file_path, self.get_text())
        self.is_dirty = False
        logger.info("[Buffer] Saved %s", self.file_path)
        return True


def _safe_write(file_path: str, content: str) -> None:
    """Write content to file atomically via temp file + rename."""
    abs_path = os.path.abspath(file_path)
    tmp_path = abs_path + ".streamdiff_tmp"

    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

        # On Windows, os.rename fails if destination exists
        if os.path.exists(abs_path):
            shutil.move(tmp_path, abs_path)
        else:
            os.rename(tmp_path, abs_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
