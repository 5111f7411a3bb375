"""
Session registry: at most one live patch session per file.

The registry is the entry point hosts talk to: it opens (or replaces)
sessions, routes block and whole-file resolution to them, and republishes
block lists to rendering listeners whenever they change.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, Callable, Iterable, Optional, Union

from .buffer import TextBuffer
from .errors import StaleBlockError
from .metrics import log_session_metric
from .session import PatchSession, ResolutionReport, SessionStatus, StatusCallback
from .types import ChangeBlock, LineOp

logger = logging.getLogger(__name__)

BlockListener = Callable[[str, list[ChangeBlock]], None]


class SessionRegistry:
    """Maps file identity to its single live :class:`PatchSession`."""

    def __init__(
        self,
        retry_interval: float = 0.05,
        settle_delay: float = 0.0,
        metrics_root: Optional[str] = None,
    ) -> None:
        self._retry_interval = retry_interval
        self._settle_delay = settle_delay
        self._metrics_root = metrics_root
        self._sessions: dict[str, PatchSession] = {}
        self._open_locks: dict[str, asyncio.Lock] = {}
        self._unresolved: dict[str, ResolutionReport] = {}
        self._listeners: list[BlockListener] = []

    @classmethod
    def from_config(cls, config, project_root: Optional[str] = None) -> "SessionRegistry":
        """Build a registry from a :class:`~stream_diff.config.Config`."""
        return cls(
            retry_interval=config.RETRY_INTERVAL,
            settle_delay=config.SETTLE_DELAY,
            metrics_root=project_root if config.METRICS_ENABLED else None,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: BlockListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: BlockListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, file_id: str) -> None:
        blocks = self.get_blocks(file_id)
        for listener in list(self._listeners):
            listener(file_id, blocks)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def open(
        self,
        file_id: str,
        buffer: TextBuffer,
        start_line: int = 0,
        end_line: Optional[int] = None,
        *,
        on_status: Optional[StatusCallback] = None,
        tag: Optional[str] = None,
        is_live: Optional[Callable[[], bool]] = None,
    ) -> PatchSession:
        """Install a fresh session for *file_id*, rejecting any existing one."""
        lock = self._open_locks.setdefault(file_id, asyncio.Lock())
        async with lock:
            existing = self._sessions.get(file_id)
            if existing is not None:
                logger.info("[Registry] Replacing open session for %s", file_id)
                report = await existing.close(accept=False, discard=True)
                if not report.ok:
                    logger.error(
                        "[Registry] %d block(s) of the replaced session for %s "
                        "could not be rejected",
                        len(report.failures), file_id,
                    )
                    self._unresolved[file_id] = report
                else:
                    self._unresolved.pop(file_id, None)
                self._sessions.pop(file_id, None)

            holder: dict[str, PatchSession] = {}

            def _status(status: SessionStatus, block_count: int, text: str) -> None:
                if on_status is not None:
                    on_status(status, block_count, text)
                if status is SessionStatus.CLOSED:
                    self._reap(file_id, holder["session"])

            session = PatchSession(
                file_id,
                buffer,
                start_line,
                end_line,
                on_status=_status,
                tag=tag,
                is_live=is_live,
                retry_interval=self._retry_interval,
                settle_delay=self._settle_delay,
            )
            holder["session"] = session
            self._sessions[file_id] = session
            logger.debug("[Registry] Opened session for %s (tag=%s)", file_id, tag)
        return session

    async def stream(
        self,
        file_id: str,
        buffer: TextBuffer,
        ops: Union[AsyncIterable[Any], Iterable[Any]],
        start_line: int = 0,
        end_line: Optional[int] = None,
        **options: Any,
    ) -> list[LineOp]:
        """Open a session for *file_id* and stream *ops* into it."""
        session = await self.open(file_id, buffer, start_line, end_line, **options)
        try:
            received = await session.run(ops)
        except Exception:
            logger.error("[Registry] Streaming into %s failed", file_id)
            if self._sessions.get(file_id) is session:
                self._sessions.pop(file_id)
            self._publish(file_id)
            raise
        if not session.closed:
            self._publish(file_id)
        return received

    def _reap(self, file_id: str, session: PatchSession) -> None:
        if self._sessions.get(file_id) is session:
            self._sessions.pop(file_id)
        lock = self._open_locks.get(file_id)
        if file_id not in self._sessions and lock is not None and not lock.locked():
            del self._open_locks[file_id]
        if self._metrics_root is not None:
            log_session_metric(session.stats(), project_root=self._metrics_root)
        self._publish(file_id)

    async def teardown(self) -> dict[str, ResolutionReport]:
        """Reject and close every live session.

        Returns the reports of sessions that closed with unresolved blocks,
        keyed by file.
        """
        unresolved: dict[str, ResolutionReport] = {}
        for file_id, session in list(self._sessions.items()):
            try:
                report = await session.close(accept=False, discard=True)
            except Exception as exc:
                logger.error("[Registry] Error closing session for %s: %s", file_id, exc)
                continue
            if not report.ok:
                logger.error(
                    "[Registry] %d block(s) of %s could not be rejected at teardown",
                    len(report.failures), file_id,
                )
                unresolved[file_id] = report
        self._sessions.clear()
        self._open_locks.clear()
        return unresolved

    def unresolved(self, file_id: str) -> Optional[ResolutionReport]:
        """Report of the last replaced session of *file_id* that was discarded
        with unresolved blocks, if any."""
        return self._unresolved.get(file_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_block(
        self, file_id: str, index: int, accept: bool,
    ) -> Optional[ChangeBlock]:
        """Accept or reject block *index* of *file_id*.

        Returns the resolved block, or ``None`` when there is no session or
        the index is stale.
        """
        session = self._sessions.get(file_id)
        if session is None:
            logger.warning("[Registry] No session found for file: %s", file_id)
            return None

        try:
            block = await session.resolve_block(accept, index)
        except StaleBlockError:
            logger.warning("[Registry] Block at index %d not found for %s", index, file_id)
            return None

        if not session.closed:
            self._publish(file_id)
        return block

    async def resolve_all(self, file_id: str, accept: bool) -> Optional[ResolutionReport]:
        """Accept or reject every remaining block of *file_id*."""
        session = self._sessions.get(file_id)
        if session is None:
            logger.warning("[Registry] No session found for file: %s", file_id)
            return None

        report = await session.close(accept)
        if not report.ok:
            logger.warning(
                "[Registry] %d block(s) of %s could not be %s",
                len(report.failures), file_id, "accepted" if accept else "rejected",
            )
            self._publish(file_id)
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, file_id: str) -> Optional[PatchSession]:
        return self._sessions.get(file_id)

    def get_blocks(self, file_id: str) -> list[ChangeBlock]:
        session = self._sessions.get(file_id)
        return list(session.blocks) if session is not None else []

    def has_session(self, file_id: str) -> bool:
        return file_id in self._sessions

    def active_files(self) -> list[str]:
        return list(self._sessions)

    def tag_for(self, file_id: str) -> Optional[str]:
        session = self._sessions.get(file_id)
        return session.tag if session is not None else None

    def file_for_tag(self, tag: str) -> Optional[str]:
        for file_id, session in self._sessions.items():
            if session.tag == tag:
                return file_id
        return None
