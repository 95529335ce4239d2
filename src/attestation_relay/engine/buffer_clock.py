"""Buffer clock — maps block timestamps onto fixed buffer windows.

A buffer index is floor((timestamp - offset) / window). Indexes are
monotonic non-decreasing in the timestamp for any valid window/offset.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from attestation_relay.errors import InvalidConfig


def buffer_index_for(timestamp: int, window_seconds: int, offset_seconds: int) -> int:
    """Return the buffer index containing `timestamp`."""
    if window_seconds <= 0:
        raise InvalidConfig(f"Buffer window must be positive, got {window_seconds}")
    return math.floor((timestamp - offset_seconds) / window_seconds)


def is_buffer_expired(block_timestamp: int, wall_timestamp: float, window_seconds: int) -> bool:
    """True when the chain has fallen more than one window behind wall time.

    The open buffer must then be force-closed rather than waiting for a
    rollover leaf that may never come.
    """
    return wall_timestamp - block_timestamp > window_seconds


@dataclass(frozen=True)
class BufferClock:
    """Validated window/offset pair shared by the codec and the collector."""
    window_seconds: int
    offset_seconds: int = 0

    def __post_init__(self) -> None:
        if self.window_seconds <= 0:
            raise InvalidConfig(f"Buffer window must be positive, got {self.window_seconds}")
        if self.offset_seconds < 0:
            raise InvalidConfig(
                f"Buffer timestamp offset must not be negative, got {self.offset_seconds}"
            )

    def index_for(self, timestamp: int) -> int:
        return buffer_index_for(timestamp, self.window_seconds, self.offset_seconds)

    def is_expired(self, block_timestamp: int, wall_timestamp: float) -> bool:
        return is_buffer_expired(block_timestamp, wall_timestamp, self.window_seconds)

    def window_start(self, index: int) -> int:
        """First timestamp belonging to buffer `index`."""
        return index * self.window_seconds + self.offset_seconds
