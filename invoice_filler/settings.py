"""
Process settings, read from the environment once at startup.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from eth_account import Account

from .exceptions import ConfigurationError
from .invoices import TIMESTAMP_UNITS

BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = BASE_DIR / "config"

NETWORK_TYPES = ("mainnet", "testnet")
DEFAULT_EXPENSIVE_CHAIN = {"mainnet": "1", "testnet": "11155111"}

_TRUE = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    network: str = "mainnet"
    api_url: str = ""
    intent_api_url: str = ""
    wallet_address: str = ""
    private_key: Optional[str] = None
    asset_config_path: Path = CONFIG_DIR / "mainnet.json"
    stale_after_hours: float = 6.0
    timestamp_unit: str = "s"
    invoice_amount_decimals: int = 18
    expensive_chain: Optional[str] = None
    max_fee: int = 0
    bridge_api_url: str = ""
    http_timeout_sec: float = 10.0
    max_workers: int = 8
    dry_run: bool = False
    export_csv: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def fill_api_url(self) -> str:
        return self.intent_api_url or self.api_url

    @property
    def stale_after_sec(self) -> float:
        return self.stale_after_hours * 3600

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, network: Optional[str] = None) -> "Settings":
        env = os.environ if env is None else env
        network = (network or env.get("NETWORK_TYPE") or "mainnet").lower()
        if network not in NETWORK_TYPES:
            raise ConfigurationError(f"NETWORK_TYPE must be one of {NETWORK_TYPES}, got {network!r}")

        api_url = env.get(f"API_URL_{network.upper()}") or env.get("API_URL", "")

        private_key = env.get("PRIVATE_KEY") or None
        wallet_address = env.get("WALLET_ADDRESS", "")
        if private_key:
            try:
                wallet_address = Account.from_key(private_key).address
            except Exception as e:
                raise ConfigurationError(f"PRIVATE_KEY is not a valid key: {e}") from e

        timestamp_unit = env.get("TIMESTAMP_UNIT", "s").lower()
        if timestamp_unit not in TIMESTAMP_UNITS:
            raise ConfigurationError(f"TIMESTAMP_UNIT must be one of {sorted(TIMESTAMP_UNITS)}, got {timestamp_unit!r}")

        config_dir = Path(env.get("ASSET_CONFIG_DIR", str(CONFIG_DIR)))
        export_csv = env.get("EXPORT_CSV")

        try:
            return cls(
                network=network,
                api_url=api_url,
                intent_api_url=env.get("INTENT_API_URL", ""),
                wallet_address=wallet_address,
                private_key=private_key,
                asset_config_path=config_dir / f"{network}.json",
                stale_after_hours=float(env.get("STALE_AFTER_HOURS", 6)),
                timestamp_unit=timestamp_unit,
                invoice_amount_decimals=int(env.get("INVOICE_AMOUNT_DECIMALS", 18)),
                expensive_chain=env.get("EXPENSIVE_CHAIN") or None,
                max_fee=int(env.get("MAX_FEE", 0)),
                bridge_api_url=env.get("BRIDGE_API_URL", ""),
                http_timeout_sec=float(env.get("HTTP_TIMEOUT_SEC", 10)),
                max_workers=int(env.get("MAX_WORKERS", 8)),
                dry_run=env.get("DRY_RUN", "").lower() in _TRUE,
                export_csv=Path(export_csv) if export_csv else None,
                log_level=env.get("LOG_LEVEL", "INFO").upper(),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    def resolve_expensive_chain(self, catalog_default: Optional[str] = None) -> Optional[str]:
        return self.expensive_chain or catalog_default or DEFAULT_EXPENSIVE_CHAIN.get(self.network)

    def validate(self) -> None:
        """Checks required before a live cycle can run"""
        if not self.api_url:
            raise ConfigurationError(f"API URL for {self.network} is not set in the environment variables.")
        if not self.wallet_address:
            raise ConfigurationError("Set PRIVATE_KEY or WALLET_ADDRESS to identify the filler wallet.")
        if not self.dry_run and not self.bridge_api_url:
            raise ConfigurationError("BRIDGE_API_URL is required unless DRY_RUN is enabled.")
