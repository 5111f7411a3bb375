"""
stream_diff: incremental diff application with per-block accept/reject.

Public API for library usage::

    from stream_diff import SessionRegistry, InMemoryBuffer, diff_texts

    registry = SessionRegistry()
    buffer = InMemoryBuffer(old_text)
    await registry.stream("main.py", buffer, diff_texts(old_text, new_text))
    await registry.resolve_all("main.py", accept=True)
"""

from .editing import (
    ChangeBlock,
    FileBuffer,
    InMemoryBuffer,
    LineOp,
    OpKind,
    PatchSession,
    SessionRegistry,
    SessionStatus,
    TextBuffer,
    diff_texts,
    myers_diff,
    ops_from_unified_diff,
)

__all__ = [
    "ChangeBlock", "FileBuffer", "InMemoryBuffer", "LineOp", "OpKind",
    "PatchSession", "SessionRegistry", "SessionStatus", "TextBuffer",
    "diff_texts", "myers_diff", "ops_from_unified_diff",
]
