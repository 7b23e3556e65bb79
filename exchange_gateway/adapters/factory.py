"""
Exchange Adapter Factory.

============================================================
PURPOSE
============================================================
Factory for creating exchange adapter instances.

FEATURES:
- Centralized adapter creation from resolved credentials
- Credential validation before any adapter is built
- Adapter registry for extension

============================================================
USAGE
============================================================
```python
credentials = ExchangeCredentials(api_key="...", secret_key="...")
adapter = create_exchange("binance", credentials)

# A third exchange is one adapter class plus one registration
AdapterFactory.register("bybit", lambda creds: BybitAdapter(...))
```

============================================================
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Union

from ..config import ExchangeCredentials
from .base import ExchangeAPI
from .binance import BinanceAdapter
from .errors import ExchangeConfigurationError
from .okx import OKXAdapter


logger = logging.getLogger(__name__)


# ============================================================
# EXCHANGE IDENTIFIERS
# ============================================================

class ExchangeId(Enum):
    """Supported exchange identifiers."""

    BINANCE = "binance"
    OKX = "okx"


AdapterCreator = Callable[[ExchangeCredentials], ExchangeAPI]


# ============================================================
# BUILT-IN CREATORS
# ============================================================

def _create_binance(credentials: ExchangeCredentials) -> ExchangeAPI:
    return BinanceAdapter(
        api_key=credentials.api_key,
        secret_key=credentials.secret_key,
        testnet=credentials.testnet,
        timeout_config=credentials.timeout,
    )


def _create_okx(credentials: ExchangeCredentials) -> ExchangeAPI:
    if not credentials.passphrase:
        raise ExchangeConfigurationError("OKX requires an API passphrase")

    return OKXAdapter(
        api_key=credentials.api_key,
        secret_key=credentials.secret_key,
        passphrase=credentials.passphrase,
        simulated=credentials.testnet,
        timeout_config=credentials.timeout,
    )


# ============================================================
# ADAPTER FACTORY
# ============================================================

class AdapterFactory:
    """
    Factory for creating exchange adapters.

    Adapters are stateless apart from their credentials, so callers
    create one per exchange and reuse it.
    """

    _creators: Dict[str, AdapterCreator] = {
        ExchangeId.BINANCE.value: _create_binance,
        ExchangeId.OKX.value: _create_okx,
    }

    @classmethod
    def register(cls, exchange_id: str, creator: AdapterCreator) -> None:
        """
        Register an adapter creator.

        Args:
            exchange_id: Exchange identifier
            creator: Callable building an adapter from credentials
        """
        cls._creators[exchange_id.lower()] = creator

    @classmethod
    def unregister(cls, exchange_id: str) -> None:
        """Unregister an adapter."""
        cls._creators.pop(exchange_id.lower(), None)

    @classmethod
    def create(
        cls,
        exchange_id: Union[str, ExchangeId],
        credentials: ExchangeCredentials,
    ) -> ExchangeAPI:
        """
        Create an exchange adapter.

        Args:
            exchange_id: Exchange identifier
            credentials: Resolved credential bundle

        Returns:
            ExchangeAPI instance

        Raises:
            ExchangeConfigurationError: If the exchange is not supported
                or its credentials are incomplete
        """
        if isinstance(exchange_id, ExchangeId):
            exchange_id = exchange_id.value
        key = exchange_id.lower()

        creator = cls._creators.get(key)
        if creator is None:
            raise ExchangeConfigurationError(f"Unsupported exchange: {exchange_id}")

        if not credentials.api_key or not credentials.secret_key:
            raise ExchangeConfigurationError(f"{key}: API key and secret are required")

        adapter = creator(credentials)
        logger.info(f"Created {key} adapter (testnet={credentials.testnet})")
        return adapter

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported exchanges."""
        return sorted(cls._creators)


# ============================================================
# CONVENIENCE FUNCTION
# ============================================================

def create_exchange(
    exchange_id: Union[str, ExchangeId],
    credentials: ExchangeCredentials,
) -> ExchangeAPI:
    """
    Create an exchange adapter.

    Example:
        adapter = create_exchange("okx", ExchangeCredentials(
            api_key="...", secret_key="...", passphrase="...",
        ))
    """
    return AdapterFactory.create(exchange_id, credentials)
