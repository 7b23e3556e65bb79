"""
Exchange Gateway.

============================================================
PURPOSE
============================================================
One canonical trading interface over Binance USD-M futures
and OKX perpetual swaps.

COMPONENTS:
- types: Canonical order, balance, profit and transfer records
- adapters: ExchangeAPI contract, signers and exchange adapters
- config: Credentials and transport timeouts
- service: Routing by exchange id

============================================================
"""

from .types import (
    OrderSide,
    PositionSide,
    OrderType,
    AccountType,
    OrderParams,
    OrderResponse,
    AccountBalance,
    ProfitInfo,
    TransferResponse,
    WithdrawalResponse,
)
from .config import (
    ExchangeCredentials,
    TimeoutConfig,
    load_credentials,
)
from .adapters import (
    ExchangeAPI,
    BinanceAdapter,
    OKXAdapter,
    AdapterFactory,
    ExchangeId,
    create_exchange,
    ExchangeError,
    ExchangeException,
    ResponseFormatError,
    LeverageAppliedOrderError,
    ExchangeConfigurationError,
    ErrorCategory,
)
from .service import ExchangeService


__all__ = [
    # Types
    "OrderSide",
    "PositionSide",
    "OrderType",
    "AccountType",
    "OrderParams",
    "OrderResponse",
    "AccountBalance",
    "ProfitInfo",
    "TransferResponse",
    "WithdrawalResponse",
    # Config
    "ExchangeCredentials",
    "TimeoutConfig",
    "load_credentials",
    # Adapters
    "ExchangeAPI",
    "BinanceAdapter",
    "OKXAdapter",
    "AdapterFactory",
    "ExchangeId",
    "create_exchange",
    # Errors
    "ExchangeError",
    "ExchangeException",
    "ResponseFormatError",
    "LeverageAppliedOrderError",
    "ExchangeConfigurationError",
    "ErrorCategory",
    # Service
    "ExchangeService",
]
