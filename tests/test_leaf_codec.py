"""Tests for event payload decoding and leaf hashing."""

import pytest
from web3 import Web3

from attestation_relay.crypto.leaf_codec import (
    EVENT_HEX_CHARS,
    LeafCodec,
    MOCK_SELECTOR,
    mock_leaf_hash,
)
from attestation_relay.crypto.merkle import ZERO_LEAF
from attestation_relay.engine.buffer_clock import BufferClock
from attestation_relay.errors import MalformedEvent

from conftest import make_event


@pytest.fixture
def codec() -> LeafCodec:
    return LeafCodec()


@pytest.fixture
def clock() -> BufferClock:
    return BufferClock(window_seconds=90, offset_seconds=0)


class TestDecode:
    def test_event_is_258_hex_chars(self) -> None:
        assert EVENT_HEX_CHARS == 258
        assert len(make_event(300)) == 258

    def test_fields(self, codec: LeafCodec, clock: BufferClock) -> None:
        leaf = codec.decode(make_event(300, request_id=7, proof=9), 42, clock)
        assert leaf.buffer_index == 3
        assert leaf.buffer_timestamp == 300
        assert leaf.instruction_selector == MOCK_SELECTOR
        assert leaf.request_id == (7).to_bytes(32, "big")
        assert leaf.data_availability_proof == (9).to_bytes(32, "big")
        assert leaf.source_block == 42

    def test_bytes_and_hex_agree(self, codec: LeafCodec, clock: BufferClock) -> None:
        payload = make_event(300)
        from_hex = codec.decode(payload, 42, clock)
        from_bytes = codec.decode(bytes.fromhex(payload[2:]), 42, clock)
        assert from_hex == from_bytes

    def test_unprefixed_hex(self, codec: LeafCodec, clock: BufferClock) -> None:
        payload = make_event(300, request_id=7)
        assert codec.decode(payload[2:], 42, clock) == codec.decode(payload, 42, clock)

    def test_trailing_data_ignored(self, codec: LeafCodec, clock: BufferClock) -> None:
        payload = make_event(300)
        assert codec.decode(payload + "00" * 32, 42, clock) == codec.decode(payload, 42, clock)


class TestLeafHash:
    def test_mock_selector_hash(self, codec: LeafCodec, clock: BufferClock) -> None:
        leaf = codec.decode(make_event(300, request_id=7, proof=9), 42, clock)
        expected = Web3.solidity_keccak(
            ["uint256", "uint256", "bytes32", "bytes32", "bytes32"],
            [42, 3, MOCK_SELECTOR, (7).to_bytes(32, "big"), (9).to_bytes(32, "big")],
        )
        assert leaf.leaf_hash == bytes(expected)

    def test_source_block_is_hashed(self, codec: LeafCodec, clock: BufferClock) -> None:
        a = codec.decode(make_event(300), 42, clock)
        b = codec.decode(make_event(300), 43, clock)
        assert a.leaf_hash != b.leaf_hash

    def test_unknown_selector_gets_zero_leaf(self, codec: LeafCodec, clock: BufferClock) -> None:
        selector = (1).to_bytes(32, "big")
        leaf = codec.decode(make_event(300, selector=selector), 42, clock)
        assert leaf.leaf_hash == ZERO_LEAF
        assert leaf.buffer_index == 3
        assert not codec.is_known(selector)

    def test_custom_registry(self, clock: BufferClock) -> None:
        selector = (5).to_bytes(32, "big")
        codec = LeafCodec({selector: mock_leaf_hash})
        assert codec.decode(make_event(300, selector=selector), 1, clock).leaf_hash != ZERO_LEAF
        assert codec.decode(make_event(300), 1, clock).leaf_hash == ZERO_LEAF


class TestMalformed:
    def test_short_hex(self, codec: LeafCodec, clock: BufferClock) -> None:
        with pytest.raises(MalformedEvent):
            codec.decode(make_event(300)[:257], 1, clock)

    def test_short_unprefixed_hex(self, codec: LeafCodec, clock: BufferClock) -> None:
        with pytest.raises(MalformedEvent):
            codec.decode(make_event(300)[2:257], 1, clock)

    def test_short_bytes(self, codec: LeafCodec, clock: BufferClock) -> None:
        with pytest.raises(MalformedEvent):
            codec.decode(b"\x00" * 127, 1, clock)

    def test_not_hex(self, codec: LeafCodec, clock: BufferClock) -> None:
        with pytest.raises(MalformedEvent):
            codec.decode("0x" + "zz" * 128, 1, clock)

    def test_timestamp_before_offset(self, codec: LeafCodec) -> None:
        clock = BufferClock(window_seconds=90, offset_seconds=1000)
        with pytest.raises(MalformedEvent):
            codec.decode(make_event(999), 1, clock)
