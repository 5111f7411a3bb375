"""Tests for the in-memory and file-backed text buffers."""

import asyncio
import os

import pytest

from stream_diff.editing.buffer import FileBuffer, InMemoryBuffer
from stream_diff.editing.errors import TransientMutationError


class TestInMemoryBuffer:
    def test_lines_and_text(self):
        buf = InMemoryBuffer("a\nb\n")
        assert buf.line_count == 3
        assert buf.get_lines() == ["a", "b", ""]
        assert buf.get_text() == "a\nb\n"

    def test_insert_clamps_past_end(self):
        buf = InMemoryBuffer("a")
        asyncio.run(buf.insert_lines(10, ["b"]))
        assert buf.get_lines() == ["a", "b"]
        assert buf.is_dirty

    def test_delete_out_of_range_is_a_no_op(self):
        buf = InMemoryBuffer("a")
        asyncio.run(buf.delete_lines(5, 2))
        assert buf.get_lines() == ["a"]
        assert not buf.is_dirty

    def test_delete_may_empty_the_buffer(self):
        buf = InMemoryBuffer("a")
        asyncio.run(buf.delete_lines(0, 1))
        assert buf.line_count == 0
        assert buf.get_text() == ""

    def test_replace_lines(self):
        buf = InMemoryBuffer("a\nb\nc")
        asyncio.run(buf.replace_lines(1, 2, ["x", "y"]))
        assert buf.get_lines() == ["a", "x", "y", "c"]

    def test_not_live_raises_transient(self):
        buf = InMemoryBuffer("a")
        buf.live = False
        assert not buf.is_live()
        with pytest.raises(TransientMutationError):
            asyncio.run(buf.insert_lines(0, ["x"]))
        assert buf.get_lines() == ["a"]


class TestFileBuffer:
    def test_loads_and_saves(self, tmp_path):
        path = tmp_path / "main.py"
        path.write_text("one\ntwo\n", encoding="utf-8")

        buf = FileBuffer(str(path))
        assert buf.get_lines() == ["one", "two", ""]

        asyncio.run(buf.replace_lines(1, 2, ["TWO"]))
        assert buf.save() is True
        assert path.read_text(encoding="utf-8") == "one\nTWO\n"
        assert not os.path.exists(str(path) + ".streamdiff_tmp")

    def test_save_without_changes_does_nothing(self, tmp_path):
        path = tmp_path / "main.py"
        path.write_text("x", encoding="utf-8")
        buf = FileBuffer(str(path))
        assert buf.save() is False

    def test_preserves_crlf(self, tmp_path):
        path = tmp_path / "win.txt"
        path.write_bytes(b"a\r\nb\r\n")
        buf = FileBuffer(str(path))
        assert buf.get_lines() == ["a\r", "b\r", ""]
        asyncio.run(buf.insert_lines(2, ["c\r"]))
        buf.save()
        assert path.read_bytes() == b"a\r\nb\r\nc\r\n"
