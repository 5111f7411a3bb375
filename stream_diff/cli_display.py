import logging
import os
from datetime import datetime


def setup_logger(log_dir: str = ".streamdiff/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"streamdiff_{timestamp}.log")

    logger = logging.getLogger("stream_diff")
    logger.setLevel(logging.DEBUG)

    # File handler captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


class StatusPrinter:
    """Prints session status transitions to the terminal."""

    ICONS = {
        "streaming": "◉",
        "done":      "✔",
        "closed":    "■",
    }

    def __init__(self, file_label: str, quiet: bool = False):
        self.file_label = file_label
        self.quiet = quiet
        self.history: list[tuple[str, int]] = []

    def __call__(self, status, block_count: int, full_text: str) -> None:
        name = getattr(status, "value", str(status))
        self.history.append((name, block_count))
        if self.quiet:
            return
        icon = self.ICONS.get(name, "·")
        if name == "streaming":
            print(f"  {icon} {self.file_label}: streaming changes")
        elif name == "done":
            print(f"  {icon} {self.file_label}: {block_count} change block(s) pending")
        else:
            lines = len(full_text.split("\n")) if full_text else 0
            print(f"  {icon} {self.file_label}: closed ({lines} lines)")
