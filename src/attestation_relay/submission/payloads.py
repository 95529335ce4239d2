"""Contract call payloads built by the relay."""

from __future__ import annotations

from attestation_relay.models.submission import CallPayload

REQUEST_METHOD = "requestAttestations"
SUBMIT_METHOD = "submitAttestation"


def request_payload(instructions: bytes, request_id: bytes, proof: bytes) -> CallPayload:
    """requestAttestations(bytes32 instructions, bytes32 id, bytes32 proof)."""
    return CallPayload(
        key=f"request:0x{request_id.hex()}",
        method=REQUEST_METHOD,
        args=(instructions, request_id, proof),
    )


def buffer_payload(buffer_index: int, root: bytes) -> CallPayload:
    """submitAttestation(uint256 bufferNumber, bytes32 merkleRoot)."""
    return CallPayload(
        key=f"buffer:{buffer_index}",
        method=SUBMIT_METHOD,
        args=(buffer_index, root),
    )


def parse_bytes32(value: str) -> bytes:
    """Parse a 0x-hex string into a left-padded 32-byte word."""
    raw = value.removeprefix("0x")
    if len(raw) > 64:
        raise ValueError(f"Value longer than 32 bytes: {value}")
    return bytes.fromhex(raw.rjust(64, "0"))
