"""Tests for the streamdiff command line."""

import os
from unittest.mock import patch

import pytest

from stream_diff import cli
from stream_diff.editing.buffer import FileBuffer


OLD = "import os\n\ndef main():\n    return 1\n"
NEW = "import os\nimport sys\n\ndef main():\n    return 0\n"

PATCH = "\n".join([
    "--- a/app.py",
    "+++ b/app.py",
    "@@ -3,2 +3,2 @@",
    " def main():",
    "-    return 1",
    "+    return 0",
    "",
])


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A temp project with app.py (OLD) and new.py (NEW) as CWD."""
    for key in list(os.environ):
        if key.startswith("STREAMDIFF_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    (tmp_path / "app.py").write_text(OLD, encoding="utf-8")
    (tmp_path / "new.py").write_text(NEW, encoding="utf-8")
    (tmp_path / "change.diff").write_text(PATCH, encoding="utf-8")
    return tmp_path


def _read(path):
    return path.read_text(encoding="utf-8")


class TestApply:
    def test_accept_all_writes_target(self, project):
        code = cli.main(["apply", "app.py", "--target", "new.py", "--accept-all", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == NEW

    def test_reject_all_leaves_file_alone(self, project):
        code = cli.main(["apply", "app.py", "--target", "new.py", "--reject-all", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == OLD

    def test_patch_mode(self, project):
        code = cli.main(["apply", "app.py", "--patch", "change.diff", "--accept-all", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == "import os\n\ndef main():\n    return 0\n"

    def test_dry_run_prints_blocks(self, project, capsys):
        code = cli.main(["apply", "app.py", "--target", "new.py", "--dry-run", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == OLD
        out = capsys.readouterr().out
        assert "+import sys" in out
        assert "-    return 1" in out

    def test_auto_save_off(self, project, monkeypatch):
        monkeypatch.setenv("STREAMDIFF_AUTO_SAVE", "false")
        code = cli.main(["apply", "app.py", "--target", "new.py", "--accept-all", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == OLD

    def test_no_changes(self, project, capsys):
        code = cli.main(["apply", "app.py", "--target", "app.py", "--accept-all", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == OLD
        assert "No changes to apply." in capsys.readouterr().out

    def test_line_ending_only_patch_is_a_no_op(self, project, capsys):
        (project / "crlf.diff").write_text(
            "@@ -1 +1 @@\n-import os\r\n+import os\n", encoding="utf-8", newline="",
        )
        code = cli.main(["apply", "app.py", "--patch", "crlf.diff", "--accept-all"])
        assert code == cli.EXIT_OK
        assert "No changes to apply." in capsys.readouterr().out

    def test_console_review(self, project):
        with patch("builtins.input", side_effect=["a", "r"]):
            code = cli.main([
                "apply", "app.py", "--target", "new.py", "--review", "console", "--quiet",
            ])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == "import os\nimport sys\n\ndef main():\n    return 1\n"

    def test_quitting_review_rejects_the_rest(self, project):
        with patch("builtins.input", side_effect=["q"]):
            code = cli.main([
                "apply", "app.py", "--target", "new.py", "--review", "console", "--quiet",
            ])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == OLD

    def test_tui_failure_falls_back_to_console(self, project):
        with patch("stream_diff.cli.review_session", side_effect=RuntimeError("no tty")), \
             patch("builtins.input", side_effect=["A"]):
            code = cli.main(["apply", "app.py", "--target", "new.py", "--review", "tui", "--quiet"])
        assert code == cli.EXIT_OK
        assert _read(project / "app.py") == NEW

    def test_metrics_are_recorded(self, project):
        cli.main(["apply", "app.py", "--target", "new.py", "--accept-all", "--quiet"])
        assert (project / ".streamdiff" / "metrics" / "session_metrics.jsonl").is_file()
        assert (project / ".streamdiff" / "logs").is_dir()


class TestApplyErrors:
    def test_missing_file(self, project):
        code = cli.main(["apply", "missing.py", "--target", "new.py", "--quiet"])
        assert code == cli.EXIT_BAD_INPUT

    def test_missing_target(self, project):
        code = cli.main(["apply", "app.py", "--target", "missing.py", "--quiet"])
        assert code == cli.EXIT_BAD_INPUT

    def test_unparsable_patch(self, project):
        (project / "bad.diff").write_text("this is not a diff\n", encoding="utf-8")
        code = cli.main(["apply", "app.py", "--patch", "bad.diff", "--accept-all", "--quiet"])
        assert code == cli.EXIT_BAD_INPUT

    def test_reconcile_failure(self, project):
        with patch.object(FileBuffer, "replace_lines", side_effect=RuntimeError("boom")):
            code = cli.main(["apply", "app.py", "--target", "new.py", "--accept-all", "--quiet"])
        assert code == cli.EXIT_FAILED
        assert _read(project / "app.py") == OLD

    def test_target_and_patch_are_exclusive(self, project):
        with pytest.raises(SystemExit):
            cli.main(["apply", "app.py", "--target", "new.py", "--patch", "change.diff"])


class TestStats:
    def test_no_metrics(self, project, capsys):
        assert cli.main(["stats"]) == cli.EXIT_OK
        assert "No session metrics found yet." in capsys.readouterr().out

    def test_after_apply(self, project, capsys):
        cli.main(["apply", "app.py", "--target", "new.py", "--accept-all", "--quiet"])
        capsys.readouterr()
        assert cli.main(["stats", "--last", "10"]) == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "Session Stats (last 10)" in out
        assert "Total sessions:       1" in out


def test_no_command_prints_help(project, capsys):
    assert cli.main([]) == cli.EXIT_BAD_INPUT
    assert "usage" in capsys.readouterr().out.lower()
