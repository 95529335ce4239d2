"""Shared fixtures: an in-memory chain implementing the relay interfaces."""

from __future__ import annotations

import threading
from typing import Any, Optional, Sequence

import pytest

from attestation_relay.chain.interfaces import BlockHeader, LogEntry, TxOutcome
from attestation_relay.crypto.leaf_codec import MOCK_SELECTOR
from attestation_relay.errors import TransientChainError
from attestation_relay.submission.driver import Signer, SubmissionDriver, TxParams

CONTRACT = "0x" + "10" * 20
ACCOUNT = "0x" + "22" * 20


def make_event(
    timestamp: int,
    selector: bytes = MOCK_SELECTOR,
    request_id: int = 1,
    proof: int = 2,
) -> str:
    """Encode a 0x-hex attestation request event payload."""
    data = (
        timestamp.to_bytes(32, "big")
        + selector
        + request_id.to_bytes(32, "big")
        + proof.to_bytes(32, "big")
    )
    return "0x" + data.hex()


class FakeChain:
    """ChainReader, ChainWriter and CallEncoder backed by plain lists."""

    def __init__(self) -> None:
        self.latest = BlockHeader(number=100, timestamp=300)
        self.logs: list[LogEntry] = []
        self.nonce = 0
        self.nonce_reads = 0
        self.fail_latest = 0
        self.fail_logs = 0
        self.send_errors: list[Exception] = []
        self.receipt_status = 1
        self.log_queries: list[tuple[int, int]] = []
        self.signed: list[dict[str, Any]] = []
        self.sent: list[bytes] = []

    # ChainReader
    def get_latest_block(self) -> BlockHeader:
        if self.fail_latest:
            self.fail_latest -= 1
            raise TransientChainError("node unreachable")
        return self.latest

    def get_logs(self, address: str, from_block: int, to_block: int) -> Sequence[LogEntry]:
        self.log_queries.append((from_block, to_block))
        if self.fail_logs:
            self.fail_logs -= 1
            raise TransientChainError("log query timed out")
        return [log for log in self.logs if from_block <= log.block_number <= to_block]

    def get_transaction_count(self, address: str) -> int:
        self.nonce_reads += 1
        return self.nonce

    # ChainWriter
    def sign_transaction(self, raw_tx: dict[str, Any], private_key: str) -> bytes:
        self.signed.append(raw_tx)
        return b"signed:" + str(raw_tx["nonce"]).encode()

    def send_signed_transaction(self, signed: bytes) -> TxOutcome:
        if self.send_errors:
            raise self.send_errors.pop(0)
        self.sent.append(signed)
        self.nonce += 1
        return TxOutcome(status=self.receipt_status, tx_hash=f"0x{len(self.sent):064x}")

    # CallEncoder
    def encode_call(self, method: str, args: Sequence[Any]) -> bytes:
        return method.encode() + b"|" + repr(tuple(args)).encode()

    def add_log(self, block_number: int, data: Any) -> None:
        self.logs.append(LogEntry(data=data, block_number=block_number, log_index=len(self.logs)))


class StopAfter(threading.Event):
    """Stop event that records back-off waits and sets itself after `n` of them."""

    def __init__(self, n: int) -> None:
        super().__init__()
        self._remaining = n
        self.waits: list[Optional[float]] = []

    def wait(self, timeout: Optional[float] = None) -> bool:
        self.waits.append(timeout)
        self._remaining -= 1
        if self._remaining <= 0:
            self.set()
        return self.is_set()


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def tx_params() -> TxParams:
    return TxParams(chain_id=16, contract_address=CONTRACT, gas=8_000_000, gas_price_wei=225)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def driver(chain: FakeChain, tx_params: TxParams, sleeps: list[float]) -> SubmissionDriver:
    return SubmissionDriver(
        chain, chain, chain,
        signer=Signer(address=ACCOUNT, private_key="0x" + "ab" * 32),
        tx_params=tx_params,
        retry_delay=5.0,
        max_attempts=3,
        sleep=sleeps.append,
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("RELAY_CONFIG", "RPC_URL", "PRIVATE_KEY"):
        monkeypatch.delenv(name, raising=False)
