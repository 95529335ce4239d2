"""Aggregation engine — buffer clock, aggregator and event collector."""

from attestation_relay.engine.buffer_clock import (
    BufferClock,
    buffer_index_for,
    is_buffer_expired,
)
from attestation_relay.engine.aggregator import BufferAggregator, RolloverOutcome
from attestation_relay.engine.collector import EventCollector, PollOutcome

__all__ = [
    "BufferClock",
    "buffer_index_for",
    "is_buffer_expired",
    "BufferAggregator",
    "RolloverOutcome",
    "EventCollector",
    "PollOutcome",
]
