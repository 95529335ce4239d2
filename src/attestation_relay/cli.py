"""Relay CLI — issue attestation requests or run the event collector.

Usage:
    relay request 0xff..ff 0x01 0x02           # resubmit every requestInterval
    relay request 0xff..ff 0x01 0x02 --once    # submit a single request
    relay collect
    relay --config path/to/config.json collect --start-block 1200
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from attestation_relay.chain.web3_chain import Web3Chain
from attestation_relay.config import AccountConfig, RelayConfig
from attestation_relay.engine.collector import EventCollector
from attestation_relay.errors import InvalidConfig
from attestation_relay.models.submission import SubmissionStatus
from attestation_relay.persistence.submission_archive import SubmissionArchive
from attestation_relay.submission.driver import SubmissionDriver
from attestation_relay.submission.issuer import RequestIssuer
from attestation_relay.submission.payloads import parse_bytes32, request_payload

logger = logging.getLogger(__name__)


def _make_chain(config: RelayConfig) -> Web3Chain:
    try:
        return Web3Chain.connect(config.rpc_url, config.contract_address, config.abi_path)
    except (OSError, ValueError) as exc:
        raise InvalidConfig(f"Cannot load contract ABI from {config.abi_path}: {exc}") from exc


def _make_driver(config: RelayConfig, chain: Web3Chain, account: AccountConfig) -> SubmissionDriver:
    archive = SubmissionArchive(config.archive_path) if config.archive_path else None
    return SubmissionDriver(
        reader=chain,
        writer=chain,
        encoder=chain,
        signer=account.signer(),
        tx_params=config.tx_params(),
        retry_delay=config.retry_delay,
        max_attempts=config.max_attempts,
        archive=archive,
    )


def _install_stop_handlers(stop_event: threading.Event) -> None:
    def _stop(signum: int, _frame: object) -> None:
        logger.info("Received signal %d; stopping after the current cycle", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def cmd_request(args: argparse.Namespace, config: RelayConfig) -> int:
    try:
        payload = request_payload(
            parse_bytes32(args.instructions),
            parse_bytes32(args.id),
            parse_bytes32(args.proof),
        )
    except ValueError as exc:
        print(f"Invalid request argument: {exc}", file=sys.stderr)
        return 2

    chain = _make_chain(config)
    driver = _make_driver(config, chain, config.requester_account)
    issuer = RequestIssuer(driver, payload, interval=config.request_interval)

    if args.once:
        record = issuer.issue_once()
        print(f"{record.key}: {record.status.value} (tx {record.tx_hash})")
        return 0 if record.status == SubmissionStatus.CONFIRMED else 1

    stop_event = threading.Event()
    _install_stop_handlers(stop_event)
    issued = issuer.run(stop_event)
    print(f"Issued {issued} request(s)")
    return 0


def cmd_collect(args: argparse.Namespace, config: RelayConfig) -> int:
    chain = _make_chain(config)
    driver = _make_driver(config, chain, config.collector_account)
    start_block = args.start_block if args.start_block is not None else config.start_block
    collector = EventCollector(
        reader=chain,
        contract_address=config.contract_address,
        clock=config.clock(),
        driver=driver,
        poll_interval=config.poll_interval,
        start_block=start_block,
        submit_empty_buffers=config.submit_empty_buffers,
    )

    stop_event = threading.Event()
    _install_stop_handlers(stop_event)
    collector.run(stop_event)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relay",
        description="State connector attestation relay",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config JSON (default: $RELAY_CONFIG or config.json)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command")

    # request
    p_req = sub.add_parser("request", help="Submit an attestation request")
    p_req.add_argument("instructions", help="Instruction selector (bytes32 hex)")
    p_req.add_argument("id", help="Request id (bytes32 hex)")
    p_req.add_argument("proof", help="Data-availability proof (bytes32 hex)")
    p_req.add_argument("--once", action="store_true", help="Submit once instead of repeating")

    # collect
    p_col = sub.add_parser("collect", help="Collect requests and submit buffer roots")
    p_col.add_argument("--start-block", type=int, help="First block to scan (default: latest)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "request": cmd_request,
        "collect": cmd_collect,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        config = RelayConfig.load(args.config)
        return handler(args, config)
    except InvalidConfig as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
