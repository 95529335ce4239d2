"""Attestation leaf model.

A leaf is one decoded attestation request. It is immutable once decoded;
the leaf hash is computed by the codec at decode time and carried with
the leaf into the Merkle tree.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AttestationLeaf:
    """A single attestation request observed on-chain."""
    buffer_index: int
    instruction_selector: bytes
    request_id: bytes
    data_availability_proof: bytes
    source_block: int
    buffer_timestamp: int
    leaf_hash: bytes

    @property
    def leaf_hash_hex(self) -> str:
        return "0x" + self.leaf_hash.hex()

    @property
    def request_id_hex(self) -> str:
        return "0x" + self.request_id.hex()
