"""Web3 implementation of the chain interfaces.

Wraps a web3 HTTP provider and an eth_account signer. Node and RPC
failures are translated into the relay's error taxonomy so that callers
never see provider-specific exceptions:

- connection failures, timeouts, unknown RPC and provider errors → TransientChainError
- "nonce too low", "already known", "underpriced" → NonceConflict
- reverts and failed receipts → SubmissionRejected
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import requests
from eth_account import Account
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception, Web3RPCError

from attestation_relay.chain.interfaces import BlockHeader, LogEntry, TxOutcome
from attestation_relay.errors import (
    NonceConflict,
    SubmissionRejected,
    TransientChainError,
)

logger = logging.getLogger(__name__)

_NONCE_MARKERS = ("nonce too low", "already known", "underpriced", "nonce too high")
_REVERT_MARKERS = ("execution reverted", "revert")


class Web3Chain:
    """ChainReader, ChainWriter and CallEncoder over one web3 connection."""

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        abi: list[dict[str, Any]],
        receipt_timeout: float = 300,
    ) -> None:
        self._w3 = w3
        self._contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=abi
        )
        self._receipt_timeout = receipt_timeout

    @classmethod
    def connect(
        cls,
        rpc_url: str,
        contract_address: str,
        abi_path: Path,
        timeout: float = 30,
    ) -> Web3Chain:
        """Create a chain client from an RPC URL and a compiled contract artifact."""
        w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        return cls(w3, contract_address, load_abi(abi_path))

    # ------------------------------------------------------------------
    # ChainReader
    # ------------------------------------------------------------------

    def get_latest_block(self) -> BlockHeader:
        block = self._call(self._w3.eth.get_block, "latest")
        return BlockHeader(number=block["number"], timestamp=block["timestamp"])

    def get_logs(self, address: str, from_block: int, to_block: int) -> list[LogEntry]:
        logs = self._call(self._w3.eth.get_logs, {
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": Web3.to_checksum_address(address),
        })
        entries = [
            LogEntry(
                data=bytes(log["data"]),
                block_number=log["blockNumber"],
                log_index=log.get("logIndex", 0),
            )
            for log in logs
        ]
        # Emission order is (block, log index); ingestion depends on it.
        entries.sort(key=lambda e: (e.block_number, e.log_index))
        return entries

    def get_transaction_count(self, address: str) -> int:
        return self._call(
            self._w3.eth.get_transaction_count, Web3.to_checksum_address(address), "pending"
        )

    # ------------------------------------------------------------------
    # ChainWriter
    # ------------------------------------------------------------------

    def sign_transaction(self, raw_tx: dict[str, Any], private_key: str) -> bytes:
        signed = Account.sign_transaction(raw_tx, private_key)
        return bytes(signed.raw_transaction)

    def send_signed_transaction(self, signed: bytes) -> TxOutcome:
        tx_hash = self._call(self._w3.eth.send_raw_transaction, signed)
        tx_hex = "0x" + bytes(tx_hash).hex()
        logger.info("Sent tx %s; waiting for receipt", tx_hex)
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted as exc:
            raise TransientChainError(f"No receipt for {tx_hex}: {exc}") from exc
        except Web3RPCError as exc:
            raise classify_rpc_error(str(exc)) from exc
        except (requests.exceptions.RequestException, Web3Exception) as exc:
            raise TransientChainError(f"Receipt fetch failed for {tx_hex}: {exc}") from exc
        return TxOutcome(status=receipt["status"], tx_hash=tx_hex)

    # ------------------------------------------------------------------
    # CallEncoder
    # ------------------------------------------------------------------

    def encode_call(self, method: str, args: Sequence[Any]) -> bytes:
        try:
            data = self._contract.encode_abi(method, args=list(args))
        except Web3Exception as exc:
            raise ValueError(str(exc)) from exc
        return bytes.fromhex(data.removeprefix("0x"))

    @property
    def contract_address(self) -> str:
        return self._contract.address

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _call(fn: Any, *args: Any) -> Any:
        try:
            return fn(*args)
        except ContractLogicError as exc:
            raise SubmissionRejected(str(exc)) from exc
        except Web3RPCError as exc:
            raise classify_rpc_error(str(exc)) from exc
        except requests.exceptions.RequestException as exc:
            raise TransientChainError(f"Node unreachable: {exc}") from exc
        except Web3Exception as exc:
            raise TransientChainError(str(exc)) from exc


def classify_rpc_error(message: str) -> Exception:
    """Map an RPC error message onto the relay's error taxonomy."""
    lowered = message.lower()
    if any(marker in lowered for marker in _NONCE_MARKERS):
        return NonceConflict(message)
    if any(marker in lowered for marker in _REVERT_MARKERS):
        return SubmissionRejected(message)
    return TransientChainError(message)


def load_abi(abi_path: Path) -> list[dict[str, Any]]:
    """Read the ABI from a compiled contract artifact (or a bare ABI list)."""
    parsed = json.loads(Path(abi_path).read_text(encoding="utf-8"))
    if isinstance(parsed, dict):
        abi: Optional[list[dict[str, Any]]] = parsed.get("abi")
        if abi is None:
            raise ValueError(f"No 'abi' key in {abi_path}")
        return abi
    return parsed
