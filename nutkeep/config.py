"""Wallet configuration from the environment or a ``.env`` file.

Recognised variables:

    NUTKEEP_MINT_URL   mint to bind the wallet to (default http://127.0.0.1:3338)
    NUTKEEP_HOME       wallet directory (default ~/.nutkeep)
    NUTKEEP_UNIT       currency unit of the wallet keyset (default sat)
    NUTKEEP_LOG_LEVEL  logging level used by the CLI (default WARNING)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import cast

from dotenv import load_dotenv

from .types import CurrencyUnit, SetupError

DEFAULT_MINT_URL = "http://127.0.0.1:3338"
DEFAULT_HOME = Path.home() / ".nutkeep"
SUPPORTED_UNITS = ("sat", "msat", "usd", "eur", "btc")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class WalletConfig:
    mint_url: str = DEFAULT_MINT_URL
    home: Path = DEFAULT_HOME
    unit: CurrencyUnit = "sat"
    log_level: str = "WARNING"


def validate_mint_url(url: str) -> bool:
    """Validate that a mint URL has the correct format.

    Args:
        url: Mint URL to validate

    Returns:
        True if URL appears valid, False otherwise
    """
    if not url:
        return False
    return url.startswith("http://") or url.startswith("https://")


def load_config(
    *,
    mint_url: str | None = None,
    home: Path | None = None,
    env_file: Path | None = None,
) -> WalletConfig:
    """Build the configuration.

    Priority order:
    1. Explicit arguments
    2. Environment variables
    3. ``.env`` file in the current working directory (or ``env_file``)
    4. Defaults

    Raises:
        SetupError: If a value is invalid
    """
    load_dotenv(env_file or Path.cwd() / ".env", override=False)

    url = (mint_url or os.getenv("NUTKEEP_MINT_URL") or DEFAULT_MINT_URL).strip()
    url = url.rstrip("/")
    if not validate_mint_url(url):
        raise SetupError(f"Invalid mint URL: {url!r}")

    home_value = home or os.getenv("NUTKEEP_HOME")
    wallet_home = Path(home_value).expanduser() if home_value else DEFAULT_HOME

    unit = os.getenv("NUTKEEP_UNIT", "sat").strip().lower()
    if unit not in SUPPORTED_UNITS:
        raise SetupError(f"Unsupported currency unit: {unit}")

    log_level = os.getenv("NUTKEEP_LOG_LEVEL", "WARNING").strip().upper()
    if log_level not in LOG_LEVELS:
        raise SetupError(f"Invalid log level: {log_level}")

    return WalletConfig(
        mint_url=url,
        home=wallet_home,
        unit=cast(CurrencyUnit, unit),
        log_level=log_level,
    )
