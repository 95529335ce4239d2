"""Buffer aggregator — owns the open buffer and detects rollover.

Buffers move through OPEN → CLOSED → FINALIZED → SUBMITTED, with DROPPED
as the alternative terminal state. Exactly one buffer is open at a time.
When a leaf for a later index arrives, the open buffer is closed and
returned for finalization; any indexes skipped in between are closed at
the same time as empty buffers, so no window silently disappears.

Invariants enforced:
- A leaf only joins the buffer whose index equals its own.
- A closed buffer never accepts further leaves. Late leaves are dropped
  and logged as StaleLeaf, they are never merged.
- Finalization reads a frozen leaf sequence. Identical sequences produce
  identical roots.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from attestation_relay.crypto.merkle import MerkleTree
from attestation_relay.errors import StaleLeaf
from attestation_relay.models.buffer import Buffer, BufferState
from attestation_relay.models.leaf import AttestationLeaf

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RolloverOutcome:
    """Buffers closed by a rollover, oldest first."""
    closed: tuple[Buffer, ...]
    opened_index: int


class BufferAggregator:
    """Accumulates leaves into the open buffer and closes it on rollover.

    Usage:
        aggregator = BufferAggregator()
        outcome = aggregator.ingest(leaf)
        if outcome is not None:
            for buffer in outcome.closed:
                tree = aggregator.finalize(buffer)
    """

    def __init__(self) -> None:
        self._open: Optional[Buffer] = None
        self._last_closed_index: Optional[int] = None
        self._pending: dict[int, Buffer] = {}
        self._stale_count = 0
        # Guards buffer state transitions; finalization runs on a worker thread.
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, leaf: AttestationLeaf) -> Optional[RolloverOutcome]:
        """Feed one leaf. Returns the closed buffers if this leaf rolled over."""
        index = leaf.buffer_index

        if self._is_stale(index):
            self._stale_count += 1
            logger.warning("%s; dropped", StaleLeaf(index, self.open_index))
            return None

        if self._open is not None and index == self._open.index:
            self._open.append(leaf)
            return None

        closed: list[Buffer] = []
        if self._open is not None:
            closed.append(self._close(self._open, "rollover"))
            self._open = None

        if self._last_closed_index is not None:
            for skipped in range(self._last_closed_index + 1, index):
                gap = Buffer(index=skipped)
                closed.append(self._close(gap, "skipped"))

        self._open = Buffer(index=index)
        self._open.append(leaf)

        if not closed:
            logger.info("Opened buffer %d", index)
            return None

        logger.info(
            "Rollover to buffer %d; closed %s",
            index, ", ".join(str(b.index) for b in closed),
        )
        return RolloverOutcome(closed=tuple(closed), opened_index=index)

    def force_close(self, reason: str) -> Optional[Buffer]:
        """Close the open buffer before a rollover leaf arrives.

        Returns the closed buffer, or None if nothing was open.
        """
        if self._open is None:
            return None
        buffer = self._close(self._open, reason)
        self._open = None
        logger.warning("Force-closed buffer %d: %s", buffer.index, reason)
        return buffer

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize(self, buffer: Buffer) -> MerkleTree:
        """Build the buffer's Merkle tree and mark it FINALIZED."""
        with self._lock:
            if buffer.state != BufferState.CLOSED:
                raise RuntimeError(
                    f"Cannot finalize buffer {buffer.index} in state {buffer.state.value}"
                )
            tree = MerkleTree.from_leaves(buffer.leaf_hashes)
            buffer.root = tree.root
            buffer.transition(BufferState.FINALIZED)
        logger.info(
            "Finalized buffer %d: %d leaves, root %s",
            buffer.index, buffer.leaf_count, tree.root_hex,
        )
        return tree

    def mark_submitted(self, buffer: Buffer) -> None:
        with self._lock:
            buffer.transition(BufferState.SUBMITTED)
            self._pending.pop(buffer.index, None)

    def mark_dropped(self, buffer: Buffer, reason: str) -> None:
        with self._lock:
            buffer.transition(BufferState.DROPPED)
            buffer.close_reason = reason
            self._pending.pop(buffer.index, None)
        logger.info("Dropped buffer %d: %s", buffer.index, reason)

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def open_buffer(self) -> Optional[Buffer]:
        return self._open

    @property
    def open_index(self) -> Optional[int]:
        return None if self._open is None else self._open.index

    @property
    def last_closed_index(self) -> Optional[int]:
        return self._last_closed_index

    @property
    def pending_buffers(self) -> list[Buffer]:
        """Closed or finalized buffers not yet submitted or dropped."""
        with self._lock:
            return [self._pending[i] for i in sorted(self._pending)]

    @property
    def stale_count(self) -> int:
        return self._stale_count

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _is_stale(self, index: int) -> bool:
        if self._open is not None and index < self._open.index:
            return True
        return self._last_closed_index is not None and index <= self._last_closed_index

    def _close(self, buffer: Buffer, reason: str) -> Buffer:
        with self._lock:
            buffer.transition(BufferState.CLOSED)
            buffer.close_reason = reason
            self._pending[buffer.index] = buffer
        self._last_closed_index = buffer.index
        return buffer
