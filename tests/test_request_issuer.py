"""Tests for the repeating request issuer."""

from attestation_relay.models.submission import SubmissionStatus
from attestation_relay.submission.driver import SubmissionDriver
from attestation_relay.submission.issuer import RequestIssuer
from attestation_relay.submission.payloads import request_payload

from conftest import FakeChain, StopAfter

PAYLOAD = request_payload(b"\xff" * 32, b"\x00" * 31 + b"\x01", b"\x00" * 31 + b"\x02")


class TestRequestIssuer:
    def test_issue_once(self, chain: FakeChain, driver: SubmissionDriver) -> None:
        issuer = RequestIssuer(driver, PAYLOAD)
        record = issuer.issue_once()
        assert record.status == SubmissionStatus.CONFIRMED
        assert issuer.issued == 1
        assert chain.signed[0]["data"] == chain.encode_call("requestAttestations", PAYLOAD.args)

    def test_run_repeats_until_stopped(self, chain: FakeChain, driver: SubmissionDriver) -> None:
        issuer = RequestIssuer(driver, PAYLOAD, interval=5.0)
        stop = StopAfter(3)
        assert issuer.run(stop) == 3
        assert stop.waits == [5.0, 5.0, 5.0]
        assert [tx["nonce"] for tx in chain.signed] == [0, 1, 2]

    def test_stop_checked_after_submission(self, chain: FakeChain, driver: SubmissionDriver) -> None:
        issuer = RequestIssuer(driver, PAYLOAD)
        stop = StopAfter(1)
        stop.set()
        assert issuer.run(stop) == 1
        assert stop.waits == []
        assert len(chain.sent) == 1

    def test_failed_submission_does_not_stop_loop(
        self, chain: FakeChain, driver: SubmissionDriver
    ) -> None:
        chain.receipt_status = 0
        issuer = RequestIssuer(driver, PAYLOAD)
        assert issuer.run(StopAfter(2)) == 2
        assert len(chain.sent) == 2

    def test_loop_survives_unexpected_errors(self, chain: FakeChain, driver: SubmissionDriver) -> None:
        class FlakyDriver:
            def __init__(self) -> None:
                self.calls = 0

            def submit(self, payload):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("provider blew up")
                return driver.submit(payload)

        flaky = FlakyDriver()
        issuer = RequestIssuer(flaky, PAYLOAD)
        assert issuer.run(StopAfter(2)) == 1
        assert flaky.calls == 2
        assert len(chain.sent) == 1

    def test_loop_survives_failing_writer(self, chain: FakeChain, driver: SubmissionDriver) -> None:
        chain.send_errors = [RuntimeError("provider blew up")]
        issuer = RequestIssuer(driver, PAYLOAD)
        assert issuer.run(StopAfter(2)) == 2
        assert len(chain.sent) == 1
