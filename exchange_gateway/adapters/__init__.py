"""
Exchange Gateway - Adapters Package.

============================================================
PURPOSE
============================================================
Exchange adapter implementations.

AVAILABLE ADAPTERS:
- BinanceAdapter: Binance USD-M Futures API
- OKXAdapter: OKX V5 Perpetual Swap API

UTILITIES:
- AdapterFactory / create_exchange: Adapter selection by exchange id
- BinanceSigner / OKXSigner: Request signing
- AdapterLogger: Secure logging

ERROR HANDLING:
- ExchangeError: Unified error representation
- ErrorCategory: Standardized error categories
- Error mapping functions per exchange

============================================================
"""

# Contract
from .base import (
    ExchangeAPI,
    BaseExchangeAdapter,
)

# Adapters
from .binance import BinanceAdapter
from .okx import OKXAdapter

# Factory
from .factory import (
    AdapterFactory,
    ExchangeCredentials,
    ExchangeId,
    create_exchange,
)

# Signing
from .signing import (
    BinanceSigner,
    OKXSigner,
)

# Errors
from .errors import (
    ExchangeError,
    ExchangeException,
    ResponseFormatError,
    LeverageAppliedOrderError,
    ExchangeConfigurationError,
    ErrorCategory,
    RetryEligibility,
    map_binance_error,
    map_okx_error,
    create_network_error,
    create_timeout_error,
    create_http_error,
    create_format_error,
)

# Logging
from .logging_utils import (
    AdapterLogger,
    mask_headers,
    mask_params,
    mask_url,
    mask_value,
)


__all__ = [
    # Contract
    "ExchangeAPI",
    "BaseExchangeAdapter",
    # Adapters
    "BinanceAdapter",
    "OKXAdapter",
    # Factory
    "AdapterFactory",
    "ExchangeCredentials",
    "ExchangeId",
    "create_exchange",
    # Signing
    "BinanceSigner",
    "OKXSigner",
    # Errors
    "ExchangeError",
    "ExchangeException",
    "ResponseFormatError",
    "LeverageAppliedOrderError",
    "ExchangeConfigurationError",
    "ErrorCategory",
    "RetryEligibility",
    "map_binance_error",
    "map_okx_error",
    "create_network_error",
    "create_timeout_error",
    "create_http_error",
    "create_format_error",
    # Logging
    "AdapterLogger",
    "mask_headers",
    "mask_params",
    "mask_url",
    "mask_value",
]
