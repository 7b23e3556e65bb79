"""
Exchange Gateway - Configuration.

============================================================
PURPOSE
============================================================
Credential bundles and transport settings for adapters.

CRITICAL CONSTRAINTS:
- Adapters and the factory only consume resolved values
- Environment / .env lookup happens here, on behalf of the
  service layer
- No retries, fixed transport timeout

============================================================
ENVIRONMENT
============================================================
BINANCE_API_KEY, BINANCE_SECRET_KEY, BINANCE_TESTNET
OKX_API_KEY, OKX_SECRET_KEY, OKX_PASSPHRASE, OKX_TESTNET

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

import aiohttp
from dotenv import load_dotenv


TRUTHY = {"1", "true", "yes", "on"}


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class TimeoutConfig:
    """
    Transport timeout configuration.

    Applied to every request; the adapter contract itself carries
    no per-call timeout or cancellation token.
    """

    total_seconds: float = 30.0
    """Total time allowed for one request."""

    connect_seconds: float = 10.0
    """Connection establishment timeout."""

    def client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.total_seconds,
            connect=self.connect_seconds,
        )


# ============================================================
# CREDENTIALS
# ============================================================

@dataclass(frozen=True)
class ExchangeCredentials:
    """
    Resolved credential bundle for one exchange.

    Supplied by the credential store collaborator or by
    load_credentials().
    """

    api_key: str
    secret_key: str

    passphrase: Optional[str] = None
    """Required by OKX only."""

    testnet: bool = False
    """Binance testnet host / OKX demo-trading header."""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    def __repr__(self) -> str:
        return (
            f"ExchangeCredentials(api_key='{self.api_key[:4]}...', "
            f"passphrase={'set' if self.passphrase else 'unset'}, "
            f"testnet={self.testnet})"
        )


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUTHY


def load_credentials(
    exchange_id: str,
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> Optional[ExchangeCredentials]:
    """
    Resolve credentials from the environment.

    Args:
        exchange_id: Exchange identifier (binance, okx)
        env: Mapping to read instead of os.environ
        dotenv_path: .env file to load first (default: search cwd)

    Returns:
        ExchangeCredentials, or None when no API key is configured
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    prefix = exchange_id.upper()
    api_key = env.get(f"{prefix}_API_KEY", "")
    if not api_key:
        return None

    return ExchangeCredentials(
        api_key=api_key,
        secret_key=env.get(f"{prefix}_SECRET_KEY", ""),
        passphrase=env.get(f"{prefix}_PASSPHRASE") or None,
        testnet=_env_flag(env.get(f"{prefix}_TESTNET")),
    )
