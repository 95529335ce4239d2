"""Signed contract calls, retries and the request issuer."""

from attestation_relay.submission.driver import Signer, SubmissionDriver, TxParams
from attestation_relay.submission.issuer import RequestIssuer
from attestation_relay.submission.payloads import (
    buffer_payload,
    parse_bytes32,
    request_payload,
)

__all__ = [
    "Signer",
    "SubmissionDriver",
    "TxParams",
    "RequestIssuer",
    "buffer_payload",
    "parse_bytes32",
    "request_payload",
]
