"""Centralised settings for the Cipher Market backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _optional_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else None


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("MARKET_WORKSPACE", Path.home() / ".cipher_market")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("MARKET_CLI_DIR", Path.home() / ".cipher_market_cli")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the local ledger SQLite file."""
        return self.workspace_dir / "ledger.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Gateway selection
    # ------------------------------------------------------------------
    gateway_backend: str = field(
        default_factory=lambda: os.environ.get("GATEWAY_BACKEND", "local")
    )

    # ------------------------------------------------------------------
    # On-chain contract (web3 gateway)
    # ------------------------------------------------------------------
    rpc_url: str = field(
        default_factory=lambda: os.environ.get("RPC_URL", "http://localhost:8545")
    )
    contract_address: str = field(
        default_factory=lambda: os.environ.get("CONTRACT_ADDRESS", "")
    )
    signer_private_key: str = field(
        default_factory=lambda: os.environ.get("SIGNER_PRIVATE_KEY", "")
    )
    chain_id: Optional[int] = field(
        default_factory=lambda: _optional_int("CHAIN_ID")
    )
    tx_timeout: float = field(
        default_factory=lambda: float(os.environ.get("TX_TIMEOUT", "120"))
    )

    # ------------------------------------------------------------------
    # Key layout inside the generic key-value contract
    # ------------------------------------------------------------------
    index_key: str = field(
        default_factory=lambda: os.environ.get("MARKET_INDEX_KEY", "market_keys")
    )
    record_key_prefix: str = field(
        default_factory=lambda: os.environ.get("MARKET_RECORD_PREFIX", "market_")
    )

    # ------------------------------------------------------------------
    # Simulated analysis / transaction tracker
    # ------------------------------------------------------------------
    analysis_delay: float = field(
        default_factory=lambda: float(os.environ.get("ANALYSIS_DELAY", "3.0"))
    )
    tx_success_dismiss: float = field(
        default_factory=lambda: float(os.environ.get("TX_SUCCESS_DISMISS", "2.0"))
    )
    tx_error_dismiss: float = field(
        default_factory=lambda: float(os.environ.get("TX_ERROR_DISMISS", "3.0"))
    )
    history_limit: int = field(
        default_factory=lambda: int(os.environ.get("HISTORY_LIMIT", "5"))
    )

    def record_key(self, record_id: str) -> str:
        """Return the contract key a record blob is stored under."""
        return f"{self.record_key_prefix}{record_id}"

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from backend.config import settings
settings = Settings()
