"""A buffer is a fixed time window of attestation leaves.

Transitions are fail-closed: any transition not listed in _TRANSITIONS
raises. A buffer only accepts leaves while OPEN, and only leaves whose
buffer index equals its own.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from attestation_relay.models.leaf import AttestationLeaf


class BufferState(str, enum.Enum):
    """Lifecycle of a single buffer index."""
    OPEN = "open"
    CLOSED = "closed"
    FINALIZED = "finalized"
    SUBMITTED = "submitted"
    DROPPED = "dropped"


_TRANSITIONS: set[tuple[BufferState, BufferState]] = {
    (BufferState.OPEN, BufferState.CLOSED),
    (BufferState.CLOSED, BufferState.FINALIZED),
    (BufferState.FINALIZED, BufferState.SUBMITTED),
    (BufferState.CLOSED, BufferState.DROPPED),
    (BufferState.FINALIZED, BufferState.DROPPED),
}


@dataclass
class Buffer:
    """Leaves observed for one buffer index, in observation order."""

    index: int
    state: BufferState = BufferState.OPEN
    root: Optional[bytes] = None
    close_reason: str = ""
    _leaves: list[AttestationLeaf] = field(default_factory=list, repr=False)

    def append(self, leaf: AttestationLeaf) -> None:
        if self.state != BufferState.OPEN:
            raise RuntimeError(
                f"Buffer {self.index} is {self.state.value}; it no longer accepts leaves"
            )
        if leaf.buffer_index != self.index:
            raise RuntimeError(
                f"Leaf for buffer {leaf.buffer_index} cannot join buffer {self.index}"
            )
        self._leaves.append(leaf)

    def transition(self, target: BufferState) -> None:
        if (self.state, target) not in _TRANSITIONS:
            raise RuntimeError(
                f"Illegal buffer transition: {self.state.value} → {target.value}"
            )
        self.state = target

    @property
    def leaves(self) -> tuple[AttestationLeaf, ...]:
        return tuple(self._leaves)

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    @property
    def leaf_hashes(self) -> list[bytes]:
        return [leaf.leaf_hash for leaf in self._leaves]

    @property
    def root_hex(self) -> Optional[str]:
        return None if self.root is None else "0x" + self.root.hex()
