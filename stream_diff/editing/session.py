"""
Patch session: applies a streamed edit script to one file's buffer.

Lifecycle::

    idle -> streaming -> flushing -> reconciled -> (block resolution)* -> closed

``cancelled`` can be raised from any state and stops further streaming.

While streaming, removed lines are deleted from the buffer right away and
buffered; when the run ends (next kept line or end of stream) they come back
as blank placeholder lines carrying the original text on a removed range.
Inserted lines go straight into the buffer and onto an added range.  Once
the source is exhausted the session rolls its approximate state back and
rebuilds everything from the exact Myers script.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, AsyncIterable, Awaitable, Callable, Iterable, Optional, Sequence, Union,
)

from .buffer import TextBuffer
from .errors import (
    ReconciliationError,
    SessionClosedError,
    StaleBlockError,
    StreamDiffError,
    TransientMutationError,
)
from .myers import blocks_from_script, first_changed_line, myers_diff
from .ranges import RangeTracker
from .types import ChangeBlock, LineOp, OpKind, new_lines, old_lines

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    RECONCILED = "reconciled"
    CLOSED = "closed"


class SessionStatus(str, Enum):
    STREAMING = "streaming"
    DONE = "done"
    CLOSED = "closed"


StatusCallback = Callable[[SessionStatus, int, str], None]


@dataclass
class BlockFailure:
    """A block that could not be resolved during a bulk resolution.

    ``original`` holds the text the block proposed to remove (or the
    pending removals of an unflushed run, when ``block`` is None), so a
    caller can still restore it after the session is discarded.
    """
    block: Optional[ChangeBlock]
    error: Exception
    original: list[str] = field(default_factory=list)


@dataclass
class ResolutionReport:
    """Outcome of resolving every remaining block of a session."""
    accept: bool
    resolved: list[ChangeBlock] = field(default_factory=list)
    failures: list[BlockFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class PatchSession:
    """Owns one file's buffer-mutation lifecycle for a pending patch."""

    def __init__(
        self,
        file_id: str,
        buffer: TextBuffer,
        start_line: int = 0,
        end_line: Optional[int] = None,
        *,
        on_status: Optional[StatusCallback] = None,
        tag: Optional[str] = None,
        is_live: Optional[Callable[[], bool]] = None,
        retry_interval: float = 0.05,
        settle_delay: float = 0.0,
    ) -> None:
        if end_line is None:
            end_line = max(buffer.line_count - 1, 0)
        self.file_id = file_id
        self.buffer = buffer
        self.start_line = min(start_line, end_line)
        self.end_line = max(start_line, end_line)
        self.tag = tag
        self.state = SessionState.IDLE

        self.cursor = self.start_line
        self.pending_removals: list[str] = []
        self.inserted_in_run = 0
        self.blocks: list[ChangeBlock] = []
        self.removed = RangeTracker(keep_text=True)
        self.added = RangeTracker()
        self.first_changed_line: Optional[int] = None

        self._on_status = on_status
        self._is_live = is_live or buffer.is_live
        self._retry_interval = retry_interval
        self._settle_delay = settle_delay
        self._queue: deque[LineOp] = deque()
        self._lock = asyncio.Lock()
        self._cancelled = False
        self._closed = False

        # Outcome counters, reported through stats()
        self.ops_applied = 0
        self.retries = 0
        self.accepted = 0
        self.rejected = 0
        self.corrected = False

    def __repr__(self) -> str:
        return (
            f"PatchSession({self.file_id!r}, state={self.state.value}, "
            f"blocks={len(self.blocks)}, tag={self.tag!r})"
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_ops(self) -> int:
        """Ops queued but not yet applied (waiting for the buffer to be live)."""
        return len(self._queue)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def run(self, ops: Union[AsyncIterable[Any], Iterable[Any]]) -> list[LineOp]:
        """Stream *ops* into the buffer, then reconcile.

        Returns every op received.  On failure the session is torn down
        (all changes rejected) and the error re-raised.
        """
        collected: list[LineOp] = []
        self.state = SessionState.STREAMING
        self._emit(SessionStatus.STREAMING)

        try:
            async for op in _iterate(ops):
                if self._cancelled:
                    logger.debug("[Session] %s cancelled while streaming", self.file_id)
                    return collected
                op = LineOp.coerce(op)
                collected.append(op)
                await self.enqueue(op)

            await self._settle()
            if self._cancelled:
                return collected

            self.state = SessionState.FLUSHING
            await self._flush_when_live()

            script = await self.reconcile(collected)
            if self._cancelled or self._closed:
                return collected

            self.first_changed_line = first_changed_line(script, self.start_line)
            logger.info(
                "[Session] %s streamed %d ops into %d block(s)",
                self.file_id, len(collected), len(self.blocks),
            )
            self._emit(SessionStatus.DONE)
            if not self.blocks:
                logger.debug("[Session] %s has no changes, closing", self.file_id)
                self._finish()
        except Exception as exc:
            logger.error("[Session] Streaming failed for %s: %s", self.file_id, exc)
            try:
                await self.close(accept=False, discard=True)
            except Exception as close_exc:
                logger.error(
                    "[Session] Teardown after failure also failed for %s: %s",
                    self.file_id, close_exc,
                )
            raise
        return collected

    async def enqueue(self, op: LineOp) -> None:
        """Queue an op and drain the queue if nobody else is."""
        self._queue.append(op)
        await self.drain()

    async def resume(self) -> None:
        """Drain ops held back while the buffer was not live."""
        await self.drain()

    async def drain(self) -> None:
        if self._lock.locked():
            return
        async with self._lock:
            while self._queue:
                if self._cancelled:
                    self._queue.clear()
                    return
                op = self._queue.popleft()
                try:
                    await self.apply(op)
                except TransientMutationError:
                    # Keep ordering: retry this op first on the next drain
                    self._queue.appendleft(op)
                    self.retries += 1
                    logger.debug(
                        "[Session] %s not live, %d op(s) held back",
                        self.file_id, len(self._queue),
                    )
                    return

    async def apply(self, op: LineOp) -> None:
        if self._cancelled:
            return

        if op.kind is OpKind.KEPT:
            await self.flush()
            self.cursor += 1
        elif op.kind is OpKind.REMOVED:
            await self._delete(self.cursor, 1)
            self.pending_removals.append(op.text)
            self.end_line -= 1
        else:
            await self._insert(self.cursor, [op.text])
            self.added.add_range(self.cursor, 1)
            self.cursor += 1
            self.inserted_in_run += 1
            self.end_line += 1

        self.ops_applied += 1

    async def flush(self) -> None:
        """Close the current run of changes into a change block."""
        if not self.pending_removals and not self.inserted_in_run:
            return

        run_start = self.cursor - self.inserted_in_run
        num_removed = len(self.pending_removals)

        if num_removed:
            await self._insert(run_start, [""] * num_removed)
            self.removed.shift_from(run_start - 1, num_removed)
            self.added.shift_from(run_start - 1, num_removed)
            self.removed.add_range(run_start, num_removed, self.pending_removals)
            self.cursor += num_removed
            self.end_line += num_removed

        self.blocks.append(ChangeBlock(run_start, num_removed, self.inserted_in_run))
        self.pending_removals = []
        self.inserted_in_run = 0

    async def _settle(self) -> None:
        """Wait until every queued op has been applied."""
        while self._queue and not self._cancelled:
            await asyncio.sleep(self._retry_interval)
            await self.drain()

    async def _wait_live(self) -> None:
        while not self._is_live() and not self._cancelled:
            await asyncio.sleep(self._retry_interval)

    async def _flush_when_live(self) -> None:
        while True:
            await self._wait_live()
            async with self._lock:
                if self._cancelled:
                    return
                try:
                    await self.flush()
                    return
                except TransientMutationError:
                    self.retries += 1
            await asyncio.sleep(self._retry_interval)

    async def _when_live(self, mutate: Callable[[], Awaitable[None]]) -> None:
        """Run *mutate* once the buffer accepts it, waiting out transient refusals.

        Ignores cancellation: used by rollback and close, which must finish.
        """
        while True:
            if self._is_live():
                try:
                    await mutate()
                    return
                except TransientMutationError:
                    self.retries += 1
            await asyncio.sleep(self._retry_interval)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, ops: Sequence[LineOp]) -> list[LineOp]:
        """Replace the approximate streamed state with the exact Myers result."""
        if self._cancelled:
            return []
        if self._settle_delay:
            await asyncio.sleep(self._settle_delay)
        await self._wait_live()

        async with self._lock:
            if self._cancelled:
                return []

            streamed_blocks = list(self.blocks)
            try:
                for block in reversed(streamed_blocks):
                    await self._when_live(lambda b=block: self._resolve(False, b))
                self.removed.clear()
                self.added.clear()
                self.blocks = []

                original = old_lines(ops)
                script = myers_diff(original, new_lines(ops))

                rendered = ["" if op.kind is OpKind.REMOVED else op.text for op in script]
                had_newline = self.range_text().endswith("\n")
                if had_newline and (not original or original[-1] != ""):
                    rendered.append("")

                self._check_live()
                await self.buffer.replace_lines(self.start_line, self.end_line + 1, rendered)
            except Exception as exc:
                raise ReconciliationError(
                    f"Reconciliation failed for {self.file_id}: {exc}"
                ) from exc

            self.blocks = blocks_from_script(script, self.start_line)
            for block in self.blocks:
                if block.num_removed:
                    texts = [
                        op.text for op in script[
                            block.start_line - self.start_line:
                            block.added_start - self.start_line
                        ]
                    ]
                    self.removed.add_range(block.start_line, block.num_removed, texts)
                if block.num_added:
                    self.added.add_range(block.added_start, block.num_added)

            self.end_line = self.start_line + len(rendered) - 1
            self.cursor = self.start_line + len(rendered)
            self.corrected = streamed_blocks != self.blocks
            self.state = SessionState.RECONCILED

        if self.corrected:
            logger.debug(
                "[Session] %s reconciliation corrected %d streamed block(s) to %d",
                self.file_id, len(streamed_blocks), len(self.blocks),
            )
        return script

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def block_at(self, index: int) -> ChangeBlock:
        if index < 0 or index >= len(self.blocks):
            raise StaleBlockError(f"No block {index} in {self.file_id}")
        return self.blocks[index]

    async def resolve_block(self, accept: bool, block: Union[ChangeBlock, int]) -> ChangeBlock:
        """Accept or reject one block and shift everything below it."""
        if self._closed:
            raise SessionClosedError(f"Session for {self.file_id} is closed")
        if isinstance(block, int):
            block = self.block_at(block)
        elif block not in self.blocks:
            raise StaleBlockError(f"Block at line {block.start_line} is not pending")

        async with self._lock:
            await self._resolve(accept, block)

        if accept:
            self.accepted += 1
        else:
            self.rejected += 1
        logger.debug(
            "[Session] %s %s block at line %d (-%d +%d)",
            self.file_id, "accepted" if accept else "rejected",
            block.start_line, block.num_removed, block.num_added,
        )

        if self.blocks:
            self._emit(SessionStatus.DONE)
        else:
            self._finish()
        return block

    async def close(self, accept: bool = False, *, discard: bool = False) -> ResolutionReport:
        """Resolve every remaining block bottom-up and close the session.

        Blocks are resolved best-effort: a buffer that is momentarily not
        live is waited out, other failures are collected in the returned
        report.  Unless *discard* is set, a session with failed blocks stays
        open holding just those blocks.  With *discard* the session closes
        anyway, but failed blocks and their ranges are kept on it and their
        original text is carried in the report.
        """
        report = ResolutionReport(accept=accept)
        if self._closed:
            return report

        self._cancelled = True
        self._queue.clear()

        async with self._lock:
            try:
                if self.pending_removals or self.inserted_in_run:
                    await self._when_live(self.flush)
            except Exception as exc:
                logger.warning("[Session] %s could not flush pending run: %s", self.file_id, exc)
                report.failures.append(BlockFailure(None, exc, list(self.pending_removals)))

            for block in sorted(self.blocks, key=lambda b: b.start_line, reverse=True):
                original = self.removed_text(block) if block.num_removed else []
                try:
                    await self._when_live(lambda b=block: self._resolve(accept, b))
                except Exception as exc:
                    logger.warning(
                        "[Session] %s failed to resolve block at line %d: %s",
                        self.file_id, block.start_line, exc,
                    )
                    report.failures.append(BlockFailure(block, exc, original))
                else:
                    report.resolved.append(block)

        if accept:
            self.accepted += len(report.resolved)
        else:
            self.rejected += len(report.resolved)

        if report.failures:
            if not discard:
                self._emit(SessionStatus.DONE)
                return report
            logger.error(
                "[Session] %s discarded with %d unresolved block(s)",
                self.file_id, len(report.failures),
            )

        self._finish()
        return report

    async def _resolve(self, accept: bool, block: ChangeBlock) -> None:
        self._check_live()

        removed_text = [
            line for r in self.removed.ranges_from(block.start_line) for line in r.text
        ] if block.num_removed else []

        steps = []
        if block.num_added and not accept:
            steps.append((self.buffer.delete_lines, (block.added_start, block.num_added)))
        if block.num_removed:
            steps.append((self.buffer.delete_lines, (block.start_line, block.num_removed)))
            if not accept and removed_text:
                steps.append((self.buffer.insert_lines, (block.start_line, removed_text)))

        for done, (mutate, args) in enumerate(steps):
            try:
                await mutate(*args)
            except TransientMutationError as exc:
                if not done:
                    raise
                # Not retryable: earlier steps of this block already landed
                raise StreamDiffError(
                    f"Block at line {block.start_line} of {self.file_id} "
                    f"was left half resolved: {exc}"
                ) from exc

        if block.num_added:
            self.added.delete_range_at(block.added_start)
        if block.num_removed:
            self.removed.delete_ranges_from(block.start_line)

        offset = -(block.num_removed if accept else block.num_added)
        self.removed.shift_from(block.start_line, offset)
        self.added.shift_from(block.start_line, offset)
        self.blocks = [
            b.shifted(offset) if b.start_line > block.start_line else b
            for b in self.blocks
            if b.start_line != block.start_line
        ]
        self.end_line += offset
        if self.cursor > block.start_line:
            self.cursor += offset

    def _finish(self) -> None:
        self._cancelled = True
        self._closed = True
        self.state = SessionState.CLOSED
        logger.info(
            "[Session] %s closed (%d accepted, %d rejected)",
            self.file_id, self.accepted, self.rejected,
        )
        self._emit(SessionStatus.CLOSED)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def range_text(self) -> str:
        return "\n".join(self.buffer.get_lines(self.start_line, self.end_line + 1))

    def removed_text(self, block: ChangeBlock) -> list[str]:
        """Original lines a block proposes to remove."""
        return [line for r in self.removed.ranges_from(block.start_line) for line in r.text]

    def added_text(self, block: ChangeBlock) -> list[str]:
        """Lines a block proposes to add, as they currently stand in the buffer."""
        return self.buffer.get_lines(block.added_start, block.end_line)

    def stats(self) -> dict:
        return {
            "file": self.file_id,
            "tag": self.tag,
            "ops_applied": self.ops_applied,
            "retries": self.retries,
            "blocks_accepted": self.accepted,
            "blocks_rejected": self.rejected,
            "corrected": self.corrected,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_live(self) -> None:
        if not self._is_live():
            raise TransientMutationError(f"Buffer for {self.file_id} is not live")

    async def _insert(self, index: int, lines: list[str]) -> None:
        self._check_live()
        await self.buffer.insert_lines(index, lines)

    async def _delete(self, index: int, count: int) -> None:
        self._check_live()
        await self.buffer.delete_lines(index, count)

    def _emit(self, status: SessionStatus) -> None:
        if self._on_status is not None:
            self._on_status(status, len(self.blocks), self.buffer.get_text())


async def _iterate(ops: Union[AsyncIterable[Any], Iterable[Any]]):
    if hasattr(ops, "__aiter__"):
        async for op in ops:
            yield op
    else:
        for op in ops:
            yield op
