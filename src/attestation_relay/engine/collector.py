"""Event collector — polls the chain and feeds leaves to the aggregator.

Each poll cycle:
1. Read the latest block header.
2. No new blocks: if the chain has stalled for more than one window,
   force-close the open buffer. Back off.
3. Fetch logs for [cursor, latest]. Decode them in log order and ingest
   them one by one. A leaf whose buffer lies beyond the latest block's
   buffer is malformed and dropped. Closed buffers go to a single
   background worker that finalizes and submits them while polling
   continues.
4. If the latest block already belongs to a later window, close the
   open buffer: no later log can still belong to it.
5. Advance the cursor to latest + 1 only after the whole batch is in.

A failed fetch backs off and retries the same range. Redelivered leaves
land in closed buffers and are dropped as stale, so redelivery is
idempotent.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional

from attestation_relay.chain.interfaces import BlockHeader, ChainReader
from attestation_relay.crypto.leaf_codec import LeafCodec
from attestation_relay.engine.aggregator import BufferAggregator
from attestation_relay.engine.buffer_clock import BufferClock
from attestation_relay.errors import MalformedEvent, TransientChainError
from attestation_relay.models.buffer import Buffer
from attestation_relay.models.leaf import AttestationLeaf
from attestation_relay.models.submission import SubmissionStatus
from attestation_relay.submission.driver import SubmissionDriver
from attestation_relay.submission.payloads import buffer_payload

logger = logging.getLogger(__name__)


class PollOutcome(str, enum.Enum):
    NO_NEW_BLOCKS = "no_new_blocks"
    EMPTY_RANGE = "empty_range"
    INGESTED = "ingested"
    FETCH_FAILED = "fetch_failed"


class EventCollector:
    """Single-owner polling loop over one contract's attestation events.

    Usage:
        collector = EventCollector(chain, address, clock, driver=driver)
        stop = threading.Event()
        collector.run(stop)   # returns once stop is set and work is drained

    Without a driver, closed buffers are finalized (their roots are logged)
    and then dropped.
    """

    def __init__(
        self,
        reader: ChainReader,
        contract_address: str,
        clock: BufferClock,
        aggregator: Optional[BufferAggregator] = None,
        codec: Optional[LeafCodec] = None,
        driver: Optional[SubmissionDriver] = None,
        poll_interval: float = 10.0,
        start_block: Optional[int] = None,
        submit_empty_buffers: bool = False,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._reader = reader
        self._address = contract_address
        self._clock = clock
        self._aggregator = aggregator or BufferAggregator()
        self._codec = codec or LeafCodec()
        self._driver = driver
        self._poll_interval = poll_interval
        self._cursor: Optional[int] = start_block
        self._submit_empty = submit_empty_buffers
        self._wall_clock = wall_clock
        self._malformed_count = 0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="finalizer")
        self._futures: list[Future] = []

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def run(self, stop_event: threading.Event) -> None:
        """Poll until `stop_event` is set, then drain background work."""
        logger.info(
            "Collecting attestation requests from %s every %.1fs",
            self._address, self._poll_interval,
        )
        try:
            while not stop_event.is_set():
                try:
                    outcome = self.poll_once()
                except Exception:
                    logger.exception("Poll cycle failed; backing off")
                    outcome = PollOutcome.FETCH_FAILED
                if stop_event.is_set():
                    break
                if outcome != PollOutcome.INGESTED:
                    stop_event.wait(self._poll_interval)
        finally:
            self.shutdown()
        logger.info("Collector stopped at block %s", self.last_processed_block)

    def poll_once(self) -> PollOutcome:
        """Run one poll cycle. Never raises for chain unavailability."""
        try:
            latest = self._reader.get_latest_block()
        except TransientChainError as exc:
            logger.warning("Failed to read latest block: %s", exc)
            return PollOutcome.FETCH_FAILED

        if self._cursor is None:
            self._cursor = latest.number

        if self._cursor > latest.number:
            self._close_if_stalled(latest)
            logger.debug("Awaiting new blocks after %d", latest.number)
            return PollOutcome.NO_NEW_BLOCKS

        from_block = self._cursor
        try:
            logs = self._reader.get_logs(self._address, from_block, latest.number)
        except TransientChainError as exc:
            logger.warning("Failed to fetch logs %d-%d: %s", from_block, latest.number, exc)
            return PollOutcome.FETCH_FAILED

        if not logs:
            self._close_if_elapsed(latest)
            self._cursor = latest.number + 1
            return PollOutcome.EMPTY_RANGE

        logger.info(
            "Collecting %d attestation request(s) from blocks %d-%d",
            len(logs), from_block, latest.number,
        )
        for log in logs:
            try:
                leaf = self._codec.decode(log.data, log.block_number, self._clock)
                self._check_not_ahead(leaf, latest)
            except MalformedEvent as exc:
                self._malformed_count += 1
                logger.warning("Dropped malformed event in block %d: %s", log.block_number, exc)
                continue
            outcome = self._aggregator.ingest(leaf)
            if outcome is not None:
                for buffer in outcome.closed:
                    self._hand_off(buffer)

        self._close_if_elapsed(latest)
        self._cursor = latest.number + 1
        return PollOutcome.INGESTED

    def _check_not_ahead(self, leaf: AttestationLeaf, latest: BlockHeader) -> None:
        head_index = self._clock.index_for(latest.timestamp)
        if leaf.buffer_index > head_index:
            raise MalformedEvent(
                f"Buffer {leaf.buffer_index} is ahead of the chain head (buffer {head_index})"
            )

    # ------------------------------------------------------------------
    # Background finalization
    # ------------------------------------------------------------------

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every handed-off buffer has been processed."""
        futures, self._futures = self._futures, []
        wait(futures, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        self._futures = []

    def _hand_off(self, buffer: Buffer) -> None:
        self._futures = [f for f in self._futures if not f.done()]
        self._futures.append(self._executor.submit(self._finalize_and_submit, buffer))

    def _finalize_and_submit(self, buffer: Buffer) -> None:
        try:
            self._aggregator.finalize(buffer)
            if buffer.leaf_count == 0 and not self._submit_empty:
                self._aggregator.mark_dropped(buffer, "empty buffer")
                return
            if self._driver is None:
                self._aggregator.mark_dropped(buffer, "no submission driver")
                return
            record = self._driver.submit(buffer_payload(buffer.index, buffer.root))
            if record.status == SubmissionStatus.CONFIRMED:
                self._aggregator.mark_submitted(buffer)
            elif record.status == SubmissionStatus.FAILED:
                self._aggregator.mark_dropped(buffer, record.error or "submission failed")
        except Exception:
            logger.exception("Finalization of buffer %d failed", buffer.index)

    # ------------------------------------------------------------------
    # Buffer closing on time
    # ------------------------------------------------------------------

    def _close_if_stalled(self, latest: BlockHeader) -> None:
        if self._aggregator.open_buffer is None:
            return
        if self._clock.is_expired(latest.timestamp, self._wall_clock()):
            buffer = self._aggregator.force_close(
                f"no new blocks since {latest.number} for over {self._clock.window_seconds}s"
            )
            if buffer is not None:
                self._hand_off(buffer)

    def _close_if_elapsed(self, latest: BlockHeader) -> None:
        open_index = self._aggregator.open_index
        if open_index is None:
            return
        if self._clock.index_for(latest.timestamp) > open_index:
            buffer = self._aggregator.force_close(
                f"block {latest.number} is in buffer {self._clock.index_for(latest.timestamp)}"
            )
            if buffer is not None:
                self._hand_off(buffer)

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> Optional[int]:
        """Next block to query (inclusive)."""
        return self._cursor

    @property
    def last_processed_block(self) -> Optional[int]:
        return None if self._cursor is None else self._cursor - 1

    @property
    def aggregator(self) -> BufferAggregator:
        return self._aggregator

    @property
    def malformed_count(self) -> int:
        return self._malformed_count
