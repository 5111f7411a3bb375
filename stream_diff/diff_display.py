"""
Diff display: render pending change blocks and review them one at a time.

Includes a Textual-based block reviewer that lets the user accept or reject
each block (or all of them) while the session is open, plus a console loop
for terminals where the TUI is not wanted.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Static

from .editing.registry import SessionRegistry
from .editing.session import PatchSession
from .editing.types import ChangeBlock

logger = logging.getLogger(__name__)


def format_block(session: PatchSession, block: ChangeBlock) -> str:
    """Render one block as a unified-diff hunk (1-indexed line numbers)."""
    removed = session.removed_text(block)
    added = session.added_text(block)
    header = (
        f"@@ -{block.start_line + 1},{len(removed)} "
        f"+{block.start_line + 1},{len(added)} @@"
    )
    lines = [header]
    lines.extend(f"-{line}" for line in removed)
    lines.extend(f"+{line}" for line in added)
    return "\n".join(lines)


def format_session_diff(session: PatchSession) -> str:
    """Render every pending block of *session*, with file headers."""
    if not session.blocks:
        return ""
    parts = [f"--- a/{session.file_id}", f"+++ b/{session.file_id}"]
    for block in session.blocks:
        parts.append(format_block(session, block))
    return "\n".join(parts)


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a unified diff string.

    Green for additions (+), red for deletions (-), cyan for @@ hunks.
    """
    lines = diff_text.splitlines()
    colored: list[str] = []
    for line in lines:
        if line.startswith("+++") or line.startswith("---"):
            colored.append(f"\033[1m{line}\033[0m")  # bold
        elif line.startswith("@@"):
            colored.append(f"\033[36m{line}\033[0m")  # cyan
        elif line.startswith("+"):
            colored.append(f"\033[32m{line}\033[0m")  # green
        elif line.startswith("-"):
            colored.append(f"\033[31m{line}\033[0m")  # red
        else:
            colored.append(line)
    return "\n".join(colored)


def _format_rich_diff(diff_text: str) -> str:
    """Convert unified diff text to Rich markup for Textual display."""
    markup_lines: list[str] = []
    for line in diff_text.splitlines():
        # Escape Rich markup characters in the line content
        escaped = line.replace("[", "\\[")
        if line.startswith("+++") or line.startswith("---"):
            markup_lines.append(f"[bold white]{escaped}[/bold white]")
        elif line.startswith("@@"):
            markup_lines.append(f"[cyan]{escaped}[/cyan]")
        elif line.startswith("+"):
            markup_lines.append(f"[green]{escaped}[/green]")
        elif line.startswith("-"):
            markup_lines.append(f"[red]{escaped}[/red]")
        else:
            markup_lines.append(escaped)
    return "\n".join(markup_lines)


def summarize_blocks(blocks: Sequence[ChangeBlock]) -> tuple[str, str]:
    """Titles for the accept-all / reject-all actions, with +/- totals."""
    added = sum(b.num_added for b in blocks)
    removed = sum(b.num_removed for b in blocks)
    counts = f"({added}+, {removed}-)"
    return f"Accept All Changes {counts}", f"Reject All Changes {counts}"


# ══════════════════════════════════════════════════════════════════
#  Interactive block review (Textual TUI)
# ══════════════════════════════════════════════════════════════════

class BlockReviewApp(App):
    """Block-by-block reviewer for one file's open session."""

    CSS = """
    Screen {
        background: $surface;
    }
    #title-bar {
        dock: top;
        height: 3;
        background: #1a1a2e;
        color: #e94560;
        text-align: center;
        padding: 1;
        text-style: bold;
    }
    #diff-scroll {
        height: 1fr;
        margin: 1 2;
        border: round #444;
        padding: 1;
    }
    .block {
        margin: 0 0 1 0;
    }
    .block.selected {
        border-left: thick #e9c46a;
    }
    #summary {
        dock: bottom;
        height: 1;
        text-align: center;
        color: #888;
    }
    """

    BINDINGS = [
        Binding("a", "accept", "Accept block"),
        Binding("r", "reject", "Reject block"),
        Binding("A", "accept_all", "Accept all"),
        Binding("R", "reject_all", "Reject all"),
        Binding("down,j", "next_block", "Next", show=False),
        Binding("up,k", "prev_block", "Previous", show=False),
        Binding("q,escape", "quit", "Quit"),
    ]

    def __init__(self, registry: SessionRegistry, file_id: str) -> None:
        super().__init__()
        self._registry = registry
        self._file_id = file_id
        self._selected = 0

    def compose(self) -> ComposeResult:
        yield Static(f" ━━  Change Review — {self._file_id}  ━━ ", id="title-bar")
        yield VerticalScroll(id="diff-scroll")
        yield Static("", id="summary")
        yield Footer()

    def on_mount(self) -> None:
        self._refresh_blocks()

    def _refresh_blocks(self) -> None:
        session = self._registry.get_session(self._file_id)
        if session is None or not session.blocks:
            self.exit()
            return

        self._selected = min(self._selected, len(session.blocks) - 1)
        scroll = self.query_one("#diff-scroll", VerticalScroll)
        scroll.remove_children()
        widgets = []
        for index, block in enumerate(session.blocks):
            classes = "block selected" if index == self._selected else "block"
            widgets.append(Static(_format_rich_diff(format_block(session, block)), classes=classes))
        scroll.mount_all(widgets)

        accept_title, reject_title = summarize_blocks(session.blocks)
        self.query_one("#summary", Static).update(
            f"  Block {self._selected + 1}/{len(session.blocks)}  —  "
            f"[bold]A[/bold] {accept_title}  |  [bold]R[/bold] {reject_title}"
        )

    async def _resolve_selected(self, accept: bool) -> None:
        await self._registry.resolve_block(self._file_id, self._selected, accept)
        self._refresh_blocks()

    async def action_accept(self) -> None:
        await self._resolve_selected(True)

    async def action_reject(self) -> None:
        await self._resolve_selected(False)

    async def action_accept_all(self) -> None:
        await self._registry.resolve_all(self._file_id, True)
        self._refresh_blocks()

    async def action_reject_all(self) -> None:
        await self._registry.resolve_all(self._file_id, False)
        self._refresh_blocks()

    def action_next_block(self) -> None:
        self._selected += 1
        self._refresh_blocks()

    def action_prev_block(self) -> None:
        self._selected = max(self._selected - 1, 0)
        self._refresh_blocks()


async def review_session(registry: SessionRegistry, file_id: str) -> bool:
    """Run the Textual reviewer.  Returns True when every block was resolved."""
    if not registry.has_session(file_id):
        return True
    app = BlockReviewApp(registry, file_id)
    await app.run_async()
    return not registry.has_session(file_id)


# ══════════════════════════════════════════════════════════════════
#  Console review
# ══════════════════════════════════════════════════════════════════

_CONSOLE_HELP = "  [a]ccept  [r]eject  [A]ccept all  [R]eject all  [q]uit"


async def console_review(
    registry: SessionRegistry,
    file_id: str,
    input_fn: Optional[Callable[[str], str]] = None,
    output_fn: Optional[Callable[[str], None]] = None,
) -> bool:
    """Walk the pending blocks of *file_id* on the console, top to bottom.

    Returns True when every block was resolved, False when the user quit
    with blocks still pending.
    """
    ask = input_fn or input
    out = output_fn or print

    while registry.has_session(file_id):
        session = registry.get_session(file_id)
        if session is None or not session.blocks:
            break
        block = session.blocks[0]
        accept_title, reject_title = summarize_blocks(session.blocks)

        out(f"\n{'─' * 60}")
        out(f"  {file_id}: block 1 of {len(session.blocks)}")
        out(format_colored_diff(format_block(session, block)))
        out(f"  {accept_title}  |  {reject_title}")
        out(_CONSOLE_HELP)

        try:
            choice = ask("  Your choice: ").strip()
        except (EOFError, KeyboardInterrupt):
            return False

        if choice == "a":
            await registry.resolve_block(file_id, 0, True)
        elif choice == "r":
            await registry.resolve_block(file_id, 0, False)
        elif choice == "A":
            await registry.resolve_all(file_id, True)
        elif choice == "R":
            await registry.resolve_all(file_id, False)
        elif choice.lower() in ("q", "quit"):
            return False
        else:
            out("  Invalid choice. Use a, r, A, R or q.")

    logger.debug("[Review] %s fully resolved", file_id)
    return True
