"""
Core value types shared by the engine: line operations and change blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Iterable


class OpKind(str, Enum):
    KEPT = "kept"
    REMOVED = "removed"
    INSERTED = "inserted"


# Names used by unified-diff tooling and older producers
_KIND_ALIASES = {
    "same": OpKind.KEPT,
    "old": OpKind.REMOVED,
    "new": OpKind.INSERTED,
}


def _parse_kind(value: Any) -> OpKind:
    if isinstance(value, OpKind):
        return value
    name = str(value).strip().lower()
    if name in _KIND_ALIASES:
        return _KIND_ALIASES[name]
    try:
        return OpKind(name)
    except ValueError:
        raise ValueError(f"Unknown line op kind: {value!r}") from None


@dataclass(frozen=True)
class LineOp:
    """One unit of an edit script: a kept, removed or inserted line."""
    kind: OpKind
    text: str

    @classmethod
    def kept(cls, text: str) -> "LineOp":
        return cls(OpKind.KEPT, text)

    @classmethod
    def removed(cls, text: str) -> "LineOp":
        return cls(OpKind.REMOVED, text)

    @classmethod
    def inserted(cls, text: str) -> "LineOp":
        return cls(OpKind.INSERTED, text)

    @classmethod
    def coerce(cls, item: Any) -> "LineOp":
        """Build a LineOp from a LineOp, a ``{kind, text}`` mapping or a pair.

        Mappings may also use the ``type``/``line`` keys.
        """
        if isinstance(item, LineOp):
            return item
        if isinstance(item, dict):
            kind = item.get("kind", item.get("type"))
            text = item.get("text", item.get("line"))
            if kind is None or text is None:
                raise ValueError(f"Line op mapping needs kind and text: {item!r}")
            return cls(_parse_kind(kind), str(text))
        if isinstance(item, (tuple, list)) and len(item) == 2:
            return cls(_parse_kind(item[0]), str(item[1]))
        raise ValueError(f"Cannot interpret {item!r} as a line op")


@dataclass(frozen=True)
class ChangeBlock:
    """A contiguous run of removed + added lines between unchanged lines.

    In the buffer the block occupies ``num_removed`` placeholder lines
    starting at ``start_line``, followed by ``num_added`` inserted lines.
    """
    start_line: int
    num_removed: int
    num_added: int

    def __post_init__(self) -> None:
        if self.num_removed < 0 or self.num_added < 0:
            raise ValueError("Block line counts must not be negative")
        if self.num_removed + self.num_added == 0:
            raise ValueError("A change block must remove or add at least one line")
        if self.start_line < 0:
            raise ValueError("Block start must not be negative")

    @property
    def added_start(self) -> int:
        return self.start_line + self.num_removed

    @property
    def end_line(self) -> int:
        """Exclusive end of the block's lines in the buffer."""
        return self.start_line + self.num_removed + self.num_added

    def shifted(self, offset: int) -> "ChangeBlock":
        return replace(self, start_line=self.start_line + offset)


def old_lines(ops: Iterable[LineOp]) -> list[str]:
    """Lines of the original text reconstructed from an edit script."""
    return [op.text for op in ops if op.kind is not OpKind.INSERTED]


def new_lines(ops: Iterable[LineOp]) -> list[str]:
    """Lines of the target text reconstructed from an edit script."""
    return [op.text for op in ops if op.kind is not OpKind.REMOVED]


async def iter_ops(ops: Iterable[Any]) -> AsyncIterator[LineOp]:
    """Wrap a finished list of ops as an async stream."""
    for op in ops:
        yield LineOp.coerce(op)
