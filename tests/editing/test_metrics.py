"""Tests for session metrics logging and stats."""

import json
import os

import pytest

from stream_diff.editing.metrics import log_session_metric, read_session_stats


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temp project root."""
    return str(tmp_path)


def _metrics_file(root):
    return os.path.join(root, ".streamdiff", "metrics", "session_metrics.jsonl")


class TestLogSessionMetric:
    def test_creates_file_and_writes_entry(self, tmp_project):
        log_session_metric(
            {"file": "src/auth.py", "blocks_accepted": 2, "corrected": False},
            project_root=tmp_project,
        )

        path = _metrics_file(tmp_project)
        assert os.path.isfile(path)

        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 1

        entry = json.loads(lines[0])
        assert entry["file"] == "src/auth.py"
        assert entry["blocks_accepted"] == 2
        assert "timestamp" in entry

    def test_appends_multiple_entries(self, tmp_project):
        log_session_metric({"file": "a.py"}, project_root=tmp_project)
        log_session_metric({"file": "b.py"}, project_root=tmp_project)
        log_session_metric({"file": "c.py"}, project_root=tmp_project)

        with open(_metrics_file(tmp_project)) as f:
            lines = f.readlines()
        assert len(lines) == 3


class TestReadSessionStats:
    def test_empty_stats(self, tmp_project):
        stats = read_session_stats(project_root=tmp_project)

        assert stats["total_sessions"] == 0
        assert stats["accept_rate"] == 0.0
        assert stats["correction_rate"] == 0.0
        assert stats["avg_blocks"] == 0.0

    def test_stats_from_entries(self, tmp_project):
        entries = [
            {"file": "a.py", "blocks_accepted": 3, "blocks_rejected": 1,
             "retries": 0, "corrected": False},
            {"file": "b.py", "blocks_accepted": 1, "blocks_rejected": 1,
             "retries": 4, "corrected": True},
            {"file": "c.py", "blocks_accepted": 0, "blocks_rejected": 2,
             "retries": 2, "corrected": False},
        ]
        for e in entries:
            log_session_metric(e, project_root=tmp_project)

        stats = read_session_stats(last_n=50, project_root=tmp_project)

        assert stats["total_sessions"] == 3
        # 4 accepted of 8 resolved
        assert stats["accept_rate"] == pytest.approx(50.0)
        # 1 corrected of 3
        assert 33 <= stats["correction_rate"] <= 34
        assert stats["avg_blocks"] == pytest.approx(8 / 3)
        assert stats["avg_retries"] == pytest.approx(2.0)

    def test_last_n_limits(self, tmp_project):
        for i in range(10):
            log_session_metric(
                {"file": f"f{i}.py", "blocks_accepted": 1, "blocks_rejected": 0},
                project_root=tmp_project,
            )

        stats = read_session_stats(last_n=5, project_root=tmp_project)
        assert stats["total_sessions"] == 5

    def test_corrupt_lines_are_skipped(self, tmp_project):
        log_session_metric({"file": "a.py", "blocks_accepted": 1}, project_root=tmp_project)
        with open(_metrics_file(tmp_project), "a") as f:
            f.write("{not json\n")

        stats = read_session_stats(project_root=tmp_project)
        assert stats["total_sessions"] == 1
