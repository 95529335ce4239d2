"""Relay configuration — loaded once at process start, immutable after.

Values come from a JSON file using the state connector client's keys
(url, chainId, stateConnectorContract, ...). A .env file is loaded first
and a few environment variables override the file so that secrets can
stay out of it:

    RELAY_CONFIG   path of the JSON file (default: config.json)
    RPC_URL        overrides "url"
    PRIVATE_KEY    overrides the first account's private key
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from web3 import Web3

from attestation_relay.engine.buffer_clock import BufferClock
from attestation_relay.errors import InvalidConfig
from attestation_relay.submission.driver import Signer, TxParams

DEFAULT_CONFIG_PATH = Path("config.json")


@dataclass(frozen=True)
class AccountConfig:
    address: str
    private_key: str = field(default="", repr=False)

    def signer(self) -> Signer:
        return Signer(address=self.address, private_key=self.private_key)


@dataclass(frozen=True)
class RelayConfig:
    """Process-wide relay settings."""
    rpc_url: str
    chain_id: int
    contract_address: str
    abi_path: Path
    buffer_window: int
    buffer_timestamp_offset: int
    gas: int
    gas_price_gwei: str
    accounts: tuple[AccountConfig, ...]
    poll_interval: float = 10.0
    request_interval: float = 5.0
    retry_delay: float = 5.0
    max_attempts: int = 10
    start_block: Optional[int] = None
    archive_path: Optional[Path] = None
    submit_empty_buffers: bool = False

    def __post_init__(self) -> None:
        if not self.rpc_url:
            raise InvalidConfig("Missing RPC url")
        if not Web3.is_address(self.contract_address):
            raise InvalidConfig(f"Invalid contract address: {self.contract_address!r}")
        if not self.accounts:
            raise InvalidConfig("At least one account is required")
        for account in self.accounts:
            if not Web3.is_address(account.address):
                raise InvalidConfig(f"Invalid account address: {account.address!r}")
        try:
            if Decimal(self.gas_price_gwei) < 0:
                raise InvalidConfig(f"Gas price must not be negative: {self.gas_price_gwei}")
        except InvalidOperation as exc:
            raise InvalidConfig(f"Invalid gas price: {self.gas_price_gwei!r}") from exc
        if self.gas <= 0:
            raise InvalidConfig(f"Gas limit must be positive, got {self.gas}")
        if self.poll_interval <= 0 or self.request_interval <= 0 or self.retry_delay < 0:
            raise InvalidConfig("Intervals must be positive")
        if self.max_attempts < 1:
            raise InvalidConfig(f"max_attempts must be at least 1, got {self.max_attempts}")
        # Validates window > 0 and offset >= 0.
        self.clock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Optional[Path] = None) -> RelayConfig:
        """Load .env, then the JSON config file, then env overrides."""
        load_dotenv()
        if path is None:
            path = Path(os.getenv("RELAY_CONFIG", str(DEFAULT_CONFIG_PATH)))
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise InvalidConfig(f"Config file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise InvalidConfig(f"Config file {path} is not valid JSON: {exc}") from exc
        return cls.from_dict(raw, base_dir=Path(path).resolve().parent, env=os.environ)

    @classmethod
    def from_dict(
        cls,
        raw: dict[str, Any],
        base_dir: Path = Path("."),
        env: Optional[Mapping[str, str]] = None,
    ) -> RelayConfig:
        env = env or {}
        try:
            accounts = [
                AccountConfig(address=a["address"], private_key=a.get("privateKey", ""))
                for a in raw["accounts"]
            ]
            if accounts and env.get("PRIVATE_KEY"):
                accounts[0] = AccountConfig(accounts[0].address, env["PRIVATE_KEY"])

            abi_path = Path(raw["stateConnectorABI"])
            if not abi_path.is_absolute():
                abi_path = base_dir / abi_path
            archive_path = raw.get("archivePath")
            if archive_path is not None:
                archive_path = Path(archive_path)
                if not archive_path.is_absolute():
                    archive_path = base_dir / archive_path

            start_block = raw.get("startBlock")
            return cls(
                rpc_url=env.get("RPC_URL") or raw["url"],
                chain_id=int(raw["chainId"]),
                contract_address=raw["stateConnectorContract"],
                abi_path=abi_path,
                buffer_window=int(raw["bufferWindow"]),
                buffer_timestamp_offset=int(raw.get("bufferTimestampOffset", 0)),
                gas=int(raw["gas"]),
                gas_price_gwei=str(raw["gasPrice"]),
                accounts=tuple(accounts),
                poll_interval=float(raw.get("pollInterval", 10.0)),
                request_interval=float(raw.get("requestInterval", 5.0)),
                retry_delay=float(raw.get("retryDelay", 5.0)),
                max_attempts=int(raw.get("maxAttempts", 10)),
                start_block=None if start_block is None else int(start_block),
                archive_path=archive_path,
                submit_empty_buffers=bool(raw.get("submitEmptyBuffers", False)),
            )
        except KeyError as exc:
            raise InvalidConfig(f"Missing config key: {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise InvalidConfig(f"Invalid config value: {exc}") from exc

    # ------------------------------------------------------------------
    # Derived settings
    # ------------------------------------------------------------------

    def clock(self) -> BufferClock:
        return BufferClock(self.buffer_window, self.buffer_timestamp_offset)

    def tx_params(self) -> TxParams:
        return TxParams(
            chain_id=self.chain_id,
            contract_address=Web3.to_checksum_address(self.contract_address),
            gas=self.gas,
            gas_price_wei=Web3.to_wei(self.gas_price_gwei, "gwei"),
        )

    @property
    def collector_account(self) -> AccountConfig:
        return self.accounts[0]

    @property
    def requester_account(self) -> AccountConfig:
        return self.accounts[1] if len(self.accounts) > 1 else self.accounts[0]
