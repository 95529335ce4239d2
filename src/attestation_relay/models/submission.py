"""Submission models — outbound contract calls and their lifecycle records."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


class SubmissionStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    CONFIRMED = "confirmed"
    FAILED = "failed"


IN_FLIGHT = frozenset({SubmissionStatus.PENDING, SubmissionStatus.SENT})


@dataclass(frozen=True)
class CallPayload:
    """A logical unit of outbound work.

    `key` is the payload identity used for de-duplication: the buffer
    index for aggregated submissions, the request id for individual ones.
    """
    key: str
    method: str
    args: tuple[Any, ...]


@dataclass
class SubmissionRecord:
    """Mutable lifecycle record for one submission. Owned by the driver."""
    key: str
    payload_hash: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    nonce: Optional[int] = None
    tx_hash: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "key": self.key,
            "payload_hash": self.payload_hash,
            "status": self.status.value,
            "nonce": self.nonce,
            "tx_hash": self.tx_hash,
            "attempts": self.attempts,
            "error": self.error,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> SubmissionRecord:
        return SubmissionRecord(
            key=data["key"],
            payload_hash=data["payload_hash"],
            status=SubmissionStatus(data["status"]),
            nonce=data.get("nonce"),
            tx_hash=data.get("tx_hash"),
            attempts=data.get("attempts", 0),
            error=data.get("error"),
            record_id=data["record_id"],
        )
