"""Chain-facing interfaces consumed by the relay.

The collector and the submission driver only depend on these protocols.
Web3Chain implements all three against a JSON-RPC node; tests use an
in-memory fake.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, Union


@dataclass(frozen=True)
class BlockHeader:
    number: int
    timestamp: int


@dataclass(frozen=True)
class LogEntry:
    """A contract log. `data` is raw bytes or 0x-hex, in emission order."""
    data: Union[bytes, str]
    block_number: int
    log_index: int = 0


@dataclass(frozen=True)
class TxOutcome:
    """Result of broadcasting a signed transaction. status 1 = success."""
    status: int
    tx_hash: str


class ChainReader(Protocol):
    def get_latest_block(self) -> BlockHeader: ...

    def get_logs(self, address: str, from_block: int, to_block: int) -> Sequence[LogEntry]: ...

    def get_transaction_count(self, address: str) -> int: ...


class ChainWriter(Protocol):
    def sign_transaction(self, raw_tx: dict[str, Any], private_key: str) -> bytes: ...

    def send_signed_transaction(self, signed: bytes) -> TxOutcome: ...


class CallEncoder(Protocol):
    def encode_call(self, method: str, args: Sequence[Any]) -> bytes: ...
