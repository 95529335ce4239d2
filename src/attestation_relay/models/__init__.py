"""Core data models for the attestation relay."""

from attestation_relay.models.leaf import AttestationLeaf
from attestation_relay.models.buffer import Buffer, BufferState
from attestation_relay.models.submission import (
    CallPayload,
    SubmissionRecord,
    SubmissionStatus,
)

__all__ = [
    "AttestationLeaf",
    "Buffer",
    "BufferState",
    "CallPayload",
    "SubmissionRecord",
    "SubmissionStatus",
]
