"""Submission driver — signs, broadcasts and retries contract calls.

Every outbound call (a single attestation request or a finalized buffer's
root) goes through submit(). The driver owns SubmissionRecords and
enforces:

- De-duplication: while a record for a payload key is PENDING or SENT,
  submitting the same key returns that record and sends nothing.
- Fresh nonces: every attempt re-reads the account's transaction count.
  A nonce is never reused across retries.
- Serialized signing: fetch nonce → sign → broadcast runs under one lock
  per account.
- Retry policy: transient failures retry after a fixed delay up to
  max_attempts. A nonce conflict is retried once; a second consecutive
  conflict escalates to SubmissionRejected. Rejections, reverted
  receipts and unexpected errors mark the record FAILED immediately, so
  a record never stays in flight after submit() returns.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from web3 import Web3

from attestation_relay.chain.interfaces import CallEncoder, ChainReader, ChainWriter, TxOutcome
from attestation_relay.errors import (
    NonceConflict,
    SubmissionRejected,
    TransientChainError,
)
from attestation_relay.models.submission import (
    CallPayload,
    SubmissionRecord,
    SubmissionStatus,
)
from attestation_relay.persistence.submission_archive import SubmissionArchive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxParams:
    """Static transaction fields shared by every submission."""
    chain_id: int
    contract_address: str
    gas: int
    gas_price_wei: int


@dataclass(frozen=True)
class Signer:
    address: str
    private_key: str = field(default="", repr=False)


class SubmissionDriver:
    """Drives one account's submissions to confirmation or failure.

    Usage:
        driver = SubmissionDriver(chain, chain, chain, signer, tx_params)
        record = driver.submit(buffer_payload(7, root))
        if record.status == SubmissionStatus.CONFIRMED:
            ...
    """

    def __init__(
        self,
        reader: ChainReader,
        writer: ChainWriter,
        encoder: CallEncoder,
        signer: Signer,
        tx_params: TxParams,
        retry_delay: float = 5.0,
        max_attempts: int = 10,
        archive: Optional[SubmissionArchive] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._encoder = encoder
        self._signer = signer
        self._tx_params = tx_params
        self._retry_delay = retry_delay
        self._max_attempts = max_attempts
        self._archive = archive
        self._sleep = sleep
        self._active: dict[str, SubmissionRecord] = {}
        self._records_lock = threading.Lock()
        self._account_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, payload: CallPayload) -> SubmissionRecord:
        """Submit a payload and drive it to CONFIRMED or FAILED.

        Returns the in-flight record unchanged if one already exists for
        the payload's key. Never raises for chain-side failures: the
        returned record carries status and error.
        """
        try:
            call_data = self._encoder.encode_call(payload.method, payload.args)
        except (TypeError, ValueError) as exc:
            record = SubmissionRecord(key=payload.key, payload_hash="")
            return self._fail(record, SubmissionRejected(f"Cannot encode {payload.method}: {exc}"))

        payload_hash = "0x" + bytes(Web3.keccak(call_data)).hex()

        with self._records_lock:
            existing = self._active.get(payload.key)
            if existing is not None and existing.in_flight:
                logger.info(
                    "Submission for %s already %s; not resubmitting",
                    payload.key, existing.status.value,
                )
                return existing
            record = SubmissionRecord(key=payload.key, payload_hash=payload_hash)
            self._active[payload.key] = record

        return self._drive(record, call_data)

    def active_record(self, key: str) -> Optional[SubmissionRecord]:
        with self._records_lock:
            return self._active.get(key)

    @property
    def address(self) -> str:
        return self._signer.address

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _drive(self, record: SubmissionRecord, call_data: bytes) -> SubmissionRecord:
        conflicts = 0
        while True:
            record.attempts += 1
            try:
                outcome = self._send_once(record, call_data)
            except NonceConflict as exc:
                conflicts += 1
                if conflicts > 1:
                    return self._fail(
                        record, SubmissionRejected(f"Repeated nonce conflict: {exc}")
                    )
                logger.warning(
                    "Nonce conflict for %s (nonce %s); retrying with a fresh nonce",
                    record.key, record.nonce,
                )
            except TransientChainError as exc:
                conflicts = 0
                if record.attempts >= self._max_attempts:
                    return self._fail(
                        record,
                        SubmissionRejected(f"Gave up after {record.attempts} attempts: {exc}"),
                    )
                logger.warning(
                    "Submission of %s failed (attempt %d/%d): %s",
                    record.key, record.attempts, self._max_attempts, exc,
                )
            except SubmissionRejected as exc:
                return self._fail(record, exc)
            except Exception as exc:
                logger.exception("Unexpected error submitting %s", record.key)
                return self._fail(record, SubmissionRejected(f"Unexpected error: {exc}"))
            else:
                if outcome.status == 1:
                    return self._confirm(record)
                return self._fail(
                    record, SubmissionRejected(f"Transaction {outcome.tx_hash} reverted")
                )

            record.status = SubmissionStatus.PENDING
            self._sleep(self._retry_delay)

    def _send_once(self, record: SubmissionRecord, call_data: bytes) -> TxOutcome:
        with self._account_lock:
            nonce = self._reader.get_transaction_count(self._signer.address)
            raw_tx = {
                "chainId": self._tx_params.chain_id,
                "nonce": nonce,
                "gasPrice": self._tx_params.gas_price_wei,
                "gas": self._tx_params.gas,
                "to": self._tx_params.contract_address,
                "from": self._signer.address,
                "value": 0,
                "data": call_data,
            }
            signed = self._writer.sign_transaction(raw_tx, self._signer.private_key)
            record.nonce = nonce
            record.status = SubmissionStatus.SENT
            outcome = self._writer.send_signed_transaction(signed)
            record.tx_hash = outcome.tx_hash
            return outcome

    def _confirm(self, record: SubmissionRecord) -> SubmissionRecord:
        record.status = SubmissionStatus.CONFIRMED
        record.error = None
        logger.info(
            "Confirmed %s in tx %s (nonce %d, %d attempt(s))",
            record.key, record.tx_hash, record.nonce, record.attempts,
        )
        self._retire(record)
        return record

    def _fail(self, record: SubmissionRecord, exc: SubmissionRejected) -> SubmissionRecord:
        record.status = SubmissionStatus.FAILED
        record.error = str(exc)
        logger.error("Submission of %s failed: %s", record.key, exc)
        self._retire(record)
        return record

    def _retire(self, record: SubmissionRecord) -> None:
        with self._records_lock:
            if self._active.get(record.key) is record:
                del self._active[record.key]
        if self._archive is not None:
            self._archive.append(record)
