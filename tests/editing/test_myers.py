"""Tests for the Myers edit-script algorithm."""

import random

import pytest

from stream_diff.editing.myers import (
    blocks_from_script, diff_texts, first_changed_line, myers_diff, split_lines,
)
from stream_diff.editing.types import ChangeBlock, LineOp, OpKind, new_lines, old_lines


def _changes(script):
    return sum(1 for op in script if op.kind is not OpKind.KEPT)


def _lcs_length(a, b):
    """Longest common subsequence length by dynamic programming."""
    table = [[0] * (len(b) + 1) for _ in range(len(a) + 1)]
    for i in range(len(a) - 1, -1, -1):
        for j in range(len(b) - 1, -1, -1):
            if a[i] == b[j]:
                table[i][j] = table[i + 1][j + 1] + 1
            else:
                table[i][j] = max(table[i + 1][j], table[i][j + 1])
    return table[0][0]


class TestSplitLines:
    def test_trailing_newline_becomes_empty_line(self):
        assert split_lines("a\n") == ["a", ""]

    def test_no_trailing_newline(self):
        assert split_lines("a") == ["a"]

    def test_empty_text_is_one_empty_line(self):
        assert split_lines("") == [""]


class TestMyersDiff:
    def test_single_line_replacement(self):
        script = myers_diff(["a", "b", "c"], ["a", "x", "c"])
        assert script == [
            LineOp.kept("a"),
            LineOp.removed("b"),
            LineOp.inserted("x"),
            LineOp.kept("c"),
        ]

    def test_identical_inputs_are_all_kept(self):
        script = myers_diff(["a", "b"], ["a", "b"])
        assert all(op.kind is OpKind.KEPT for op in script)
        assert len(script) == 2

    def test_empty_old_is_all_insertions(self):
        script = myers_diff([], ["x", "y"])
        assert script == [LineOp.inserted("x"), LineOp.inserted("y")]

    def test_empty_new_is_all_removals(self):
        script = myers_diff(["x", "y"], [])
        assert script == [LineOp.removed("x"), LineOp.removed("y")]

    def test_both_empty(self):
        assert myers_diff([], []) == []

    def test_removals_precede_insertions_in_a_run(self):
        script = myers_diff(["a", "b", "c", "d"], ["a", "x", "y", "d"])
        kinds = [op.kind for op in script]
        assert kinds == [
            OpKind.KEPT, OpKind.REMOVED, OpKind.REMOVED,
            OpKind.INSERTED, OpKind.INSERTED, OpKind.KEPT,
        ]

    def test_script_is_minimal(self):
        script = myers_diff(list("abcabba"), list("cbabac"))
        assert _changes(script) == 5

    def test_random_scripts_are_minimal(self):
        rng = random.Random(99)
        for _ in range(300):
            old = [rng.choice("abc") for _ in range(rng.randint(0, 10))]
            new = [rng.choice("abc") for _ in range(rng.randint(0, 10))]
            expected = len(old) + len(new) - 2 * _lcs_length(old, new)
            assert _changes(myers_diff(old, new)) == expected

    def test_pure_insertion_in_the_middle(self):
        script = myers_diff(["a", "c"], ["a", "b", "c"])
        assert script == [LineOp.kept("a"), LineOp.inserted("b"), LineOp.kept("c")]

    def test_duplicate_lines(self):
        old = ["x", "x", "x"]
        new = ["x", "x"]
        script = myers_diff(old, new)
        assert _changes(script) == 1
        assert old_lines(script) == old
        assert new_lines(script) == new

    def test_random_scripts_reproduce_both_sides(self):
        rng = random.Random(1234)
        for _ in range(200):
            old = [rng.choice("abcd") for _ in range(rng.randint(0, 12))]
            new = [rng.choice("abcd") for _ in range(rng.randint(0, 12))]
            script = myers_diff(old, new)
            assert old_lines(script) == old
            assert new_lines(script) == new


class TestDiffTexts:
    def test_trailing_newline_kept_as_context(self):
        script = diff_texts("a\n", "b\n")
        assert script == [LineOp.removed("a"), LineOp.inserted("b"), LineOp.kept("")]

    def test_adding_trailing_newline(self):
        script = diff_texts("a", "a\n")
        assert script == [LineOp.kept("a"), LineOp.inserted("")]


class TestBlocksFromScript:
    def test_blocks_use_rendered_positions(self):
        script = myers_diff(["a", "b", "c", "d", "e"], ["a", "x", "c", "e", "f"])
        blocks = blocks_from_script(script)
        assert blocks == [
            ChangeBlock(1, 1, 1),
            ChangeBlock(4, 1, 0),
            ChangeBlock(6, 0, 1),
        ]

    def test_start_line_offsets_every_block(self):
        script = myers_diff(["a", "b"], ["a", "x"])
        assert blocks_from_script(script, start_line=10) == [ChangeBlock(11, 1, 1)]

    def test_no_changes_no_blocks(self):
        assert blocks_from_script([LineOp.kept("a")]) == []


class TestFirstChangedLine:
    def test_first_change(self):
        script = myers_diff(["a", "b", "c"], ["a", "b", "x"])
        assert first_changed_line(script, start_line=3) == 5

    def test_none_when_unchanged(self):
        assert first_changed_line([LineOp.kept("a")]) is None


class TestChangeBlock:
    def test_rejects_empty_block(self):
        with pytest.raises(ValueError):
            ChangeBlock(0, 0, 0)

    def test_rejects_negative_counts(self):
        with pytest.raises(ValueError):
            ChangeBlock(0, -1, 2)

    def test_layout_properties(self):
        block = ChangeBlock(4, 2, 3)
        assert block.added_start == 6
        assert block.end_line == 9
        assert block.shifted(-2) == ChangeBlock(2, 2, 3)
