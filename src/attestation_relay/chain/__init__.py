"""Chain access: interfaces and the web3-backed implementation."""

from attestation_relay.chain.interfaces import (
    BlockHeader,
    CallEncoder,
    ChainReader,
    ChainWriter,
    LogEntry,
    TxOutcome,
)

__all__ = [
    "BlockHeader",
    "CallEncoder",
    "ChainReader",
    "ChainWriter",
    "LogEntry",
    "TxOutcome",
]
