"""Error taxonomy for the relay.

Only InvalidConfig is allowed to reach process exit. Every other error is
contained by the component that raised it: a bad event drops one leaf, a
failed fetch backs off, a rejected submission marks one record FAILED.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""


class InvalidConfig(RelayError):
    """Raised at startup when configuration values are unusable."""


class MalformedEvent(RelayError):
    """Raised when a log payload does not match the fixed event layout."""


class StaleLeaf(RelayError):
    """A leaf arrived for a buffer that is already closed.

    Never raised out of the aggregator; it is constructed and logged
    so the drop is observable.
    """

    def __init__(self, buffer_index: int, open_index: int | None) -> None:
        self.buffer_index = buffer_index
        self.open_index = open_index
        super().__init__(
            f"Stale leaf for buffer {buffer_index} "
            f"(open buffer: {open_index if open_index is not None else 'none'})"
        )


class TransientChainError(RelayError):
    """The node is unreachable or answered with a retryable failure."""


class NonceConflict(TransientChainError):
    """The transaction sequence number was already used or underpriced."""


class SubmissionRejected(RelayError):
    """Definitive on-chain rejection (revert, failed receipt)."""
