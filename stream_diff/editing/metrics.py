"""
Session metrics: tracks patch-session outcomes in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".streamdiff/metrics"
_METRICS_FILE = "session_metrics.jsonl"


def _metrics_path(project_root: str | None = None) -> str:
    """Return the absolute path to the metrics file."""
    base = project_root or os.getcwd()
    return os.path.join(base, _METRICS_DIR, _METRICS_FILE)


def log_session_metric(data: dict, project_root: str | None = None) -> None:
    """Append a single session metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (file, blocks_accepted, blocks_rejected,
        retries, corrected, ...).
    project_root:
        Optional project root directory. Defaults to CWD.
    """
    path = _metrics_path(project_root)
    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Metrics] Failed to write metrics: %s", exc)


def read_session_stats(
    last_n: int = 50,
    project_root: str | None = None,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    last_n:
        Number of most-recent entries to include.
    project_root:
        Optional project root directory.

    Returns
    -------
    dict
        Statistics including total_sessions, accept_rate, correction_rate,
        avg_blocks and avg_retries.
    """
    path = _metrics_path(project_root)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Metrics] Failed to read metrics: %s", exc)

    entries = entries[-last_n:]

    if not entries:
        return {
            "total_sessions": 0,
            "accept_rate": 0.0,
            "correction_rate": 0.0,
            "avg_blocks": 0.0,
            "avg_retries": 0.0,
        }

    total = len(entries)
    accepted = sum(e.get("blocks_accepted", 0) for e in entries)
    rejected = sum(e.get("blocks_rejected", 0) for e in entries)
    resolved = accepted + rejected
    corrected = sum(1 for e in entries if e.get("corrected", False))
    retries = sum(e.get("retries", 0) for e in entries)

    return {
        "total_sessions": total,
        "accept_rate": accepted / resolved * 100 if resolved else 0.0,
        "correction_rate": corrected / total * 100,
        "avg_blocks": resolved / total,
        "avg_retries": retries / total,
    }
