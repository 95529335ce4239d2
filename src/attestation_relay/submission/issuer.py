"""Repeatedly submits one attestation request.

Used for demand-driven mock request generation. The loop has no
termination condition of its own: it runs until the stop event is set,
which is checked after every submission and before sleeping.
"""

from __future__ import annotations

import logging
import threading

from attestation_relay.models.submission import CallPayload, SubmissionRecord
from attestation_relay.submission.driver import SubmissionDriver

logger = logging.getLogger(__name__)


class RequestIssuer:

    def __init__(
        self,
        driver: SubmissionDriver,
        payload: CallPayload,
        interval: float = 5.0,
    ) -> None:
        self._driver = driver
        self._payload = payload
        self._interval = interval
        self._issued = 0

    def issue_once(self) -> SubmissionRecord:
        record = self._driver.submit(self._payload)
        self._issued += 1
        logger.info(
            "Request %s: %s (tx %s)",
            self._payload.key, record.status.value, record.tx_hash,
        )
        return record

    def run(self, stop_event: threading.Event) -> int:
        """Issue the request every `interval` seconds until stopped.

        Returns the number of submissions made.
        """
        while True:
            try:
                self.issue_once()
            except Exception:
                logger.exception("Issuing %s failed; retrying next cycle", self._payload.key)
            if stop_event.is_set():
                break
            if stop_event.wait(self._interval):
                break
        return self._issued

    @property
    def issued(self) -> int:
        return self._issued
