"""Leaf codec — decodes raw attestation request events into leaves.

Event payload layout (four big-endian 32-byte words):

    [0:32]    buffer timestamp
    [32:64]   instruction selector
    [64:96]   request id
    [96:128]  data-availability proof

Logs arrive either as a hex string (256 digits for the four words,
usually 0x-prefixed) or as raw bytes. Each recognised instruction
selector maps to its own leaf-hash computation. Unrecognised
selectors still produce a leaf so that buffer accounting stays correct,
but that leaf hashes to ZERO_LEAF: unknown instruction types must not
feed caller-controlled data into the tree.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Union

from web3 import Web3

from attestation_relay.crypto.merkle import ZERO_LEAF
from attestation_relay.errors import MalformedEvent
from attestation_relay.models.leaf import AttestationLeaf

if TYPE_CHECKING:
    from attestation_relay.engine.buffer_clock import BufferClock

logger = logging.getLogger(__name__)

WORD = 32
EVENT_BYTES = 4 * WORD
EVENT_HEX_CHARS = 2 + 2 * EVENT_BYTES  # "0x" + 256 hex digits

MOCK_SELECTOR = b"\xff" * WORD

LeafHasher = Callable[[int, int, bytes, bytes, bytes], bytes]


def mock_leaf_hash(
    source_block: int,
    buffer_index: int,
    selector: bytes,
    request_id: bytes,
    proof: bytes,
) -> bytes:
    """Leaf hash for the mock instruction interface.

    Matches solidity keccak256(abi.encodePacked(uint256, uint256,
    bytes32, bytes32, bytes32)).
    """
    return bytes(Web3.solidity_keccak(
        ["uint256", "uint256", "bytes32", "bytes32", "bytes32"],
        [source_block, buffer_index, selector, request_id, proof],
    ))


DEFAULT_HASHERS: dict[bytes, LeafHasher] = {
    MOCK_SELECTOR: mock_leaf_hash,
}


class LeafCodec:
    """Decodes event payloads against a closed registry of selectors."""

    def __init__(self, hashers: dict[bytes, LeafHasher] | None = None) -> None:
        self._hashers = dict(DEFAULT_HASHERS if hashers is None else hashers)

    def is_known(self, selector: bytes) -> bool:
        return selector in self._hashers

    def decode(
        self,
        raw: Union[str, bytes],
        source_block: int,
        clock: BufferClock,
    ) -> AttestationLeaf:
        """Decode one event payload into an AttestationLeaf.

        Raises MalformedEvent if the payload is short of the fixed layout,
        is not valid hex, or carries a timestamp before the clock offset.
        """
        data = _payload_bytes(raw)

        buffer_timestamp = int.from_bytes(data[0:WORD], "big")
        selector = data[WORD:2 * WORD]
        request_id = data[2 * WORD:3 * WORD]
        proof = data[3 * WORD:4 * WORD]

        if buffer_timestamp < clock.offset_seconds:
            raise MalformedEvent(
                f"Buffer timestamp {buffer_timestamp} precedes offset {clock.offset_seconds}"
            )
        buffer_index = clock.index_for(buffer_timestamp)

        hasher = self._hashers.get(selector)
        if hasher is None:
            logger.debug(
                "Unrecognised selector 0x%s in block %d; using zero leaf",
                selector.hex(), source_block,
            )
            leaf_hash = ZERO_LEAF
        else:
            leaf_hash = hasher(source_block, buffer_index, selector, request_id, proof)

        return AttestationLeaf(
            buffer_index=buffer_index,
            instruction_selector=selector,
            request_id=request_id,
            data_availability_proof=proof,
            source_block=source_block,
            buffer_timestamp=buffer_timestamp,
            leaf_hash=leaf_hash,
        )


def _payload_bytes(raw: Union[str, bytes]) -> bytes:
    if isinstance(raw, str):
        digits = raw.removeprefix("0x")
        if len(digits) < 2 * EVENT_BYTES:
            raise MalformedEvent(
                f"Event payload has {len(digits)} hex digits, expected at least {2 * EVENT_BYTES}"
            )
        try:
            data = bytes.fromhex(digits)
        except ValueError as exc:
            raise MalformedEvent(f"Event payload is not hex: {exc}") from exc
    else:
        data = bytes(raw)
    if len(data) < EVENT_BYTES:
        raise MalformedEvent(
            f"Event payload has {len(data)} bytes, expected at least {EVENT_BYTES}"
        )
    return data
