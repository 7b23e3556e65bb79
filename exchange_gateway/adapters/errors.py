"""
Exchange Adapter - Error Handling and Mapping.

============================================================
PURPOSE
============================================================
Standardized error handling for exchange adapters with:
- Unified error taxonomy across exchanges
- Exchange-specific error code mapping
- Retry eligibility classification (informational only,
  adapters never retry)
- Error context preservation

============================================================
ERROR CATEGORIES
============================================================
1. NETWORK / TIMEOUT  - Transport failures
2. HTTP_ERROR         - Non-2xx status with raw body
3. Provider codes     - RATE_LIMIT, AUTHENTICATION, INVALID_ORDER,
                        INSUFFICIENT_*, EXCHANGE_ERROR
4. RESPONSE_FORMAT    - Missing or non-numeric fields
5. UNKNOWN            - Unclassified errors

============================================================
"""

import logging
from enum import Enum
from typing import Optional, Dict, Any, Tuple
from dataclasses import dataclass


logger = logging.getLogger(__name__)


# ============================================================
# ERROR TAXONOMY
# ============================================================

class ErrorCategory(Enum):
    """Standardized error categories."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    HTTP_ERROR = "HTTP_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    AUTHENTICATION = "AUTHENTICATION"
    INVALID_ORDER = "INVALID_ORDER"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_PRICE = "INVALID_PRICE"
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INSUFFICIENT_MARGIN = "INSUFFICIENT_MARGIN"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    RESPONSE_FORMAT = "RESPONSE_FORMAT"
    UNKNOWN = "UNKNOWN"


class RetryEligibility(Enum):
    """Whether the caller may safely retry."""

    RETRY = "RETRY"           # Safe to retry
    NO_RETRY = "NO_RETRY"     # Should not retry
    BACKOFF = "BACKOFF"       # Retry with exponential backoff


# ============================================================
# EXCHANGE ERROR
# ============================================================

@dataclass
class ExchangeError:
    """
    Standardized exchange error.

    Provides unified error representation across exchanges.
    """

    # Core fields
    category: ErrorCategory
    code: str               # Normalized error code
    message: str            # Human-readable message

    retry_eligible: RetryEligibility = RetryEligibility.NO_RETRY

    # Original error info
    exchange_code: Optional[str] = None     # Original exchange error code
    exchange_message: Optional[str] = None  # Original exchange message
    http_status: Optional[int] = None
    raw_body: Optional[str] = None

    # Context
    exchange_id: Optional[str] = None
    operation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
            "retry_eligible": self.retry_eligible.value,
            "exchange_code": self.exchange_code,
            "exchange_message": self.exchange_message,
            "http_status": self.http_status,
            "exchange_id": self.exchange_id,
            "operation": self.operation,
        }

    def is_retryable(self) -> bool:
        """Check if error is retryable."""
        return self.retry_eligible in (RetryEligibility.RETRY, RetryEligibility.BACKOFF)

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.code}: {self.message}"


class ExchangeException(Exception):
    """Exception wrapper for ExchangeError."""

    def __init__(self, error: ExchangeError):
        self.error = error
        super().__init__(str(error))


class ResponseFormatError(ExchangeException):
    """A response field was missing or could not be parsed."""


class LeverageAppliedOrderError(ExchangeException):
    """
    Order placement failed after leverage had already been changed.

    The leverage change is left in place; the original order error
    is available as ``order_error`` and as ``__cause__``.
    """

    def __init__(
        self,
        symbol: str,
        leverage: int,
        order_error: ExchangeException,
    ):
        self.symbol = symbol
        self.leverage = leverage
        self.order_error = order_error
        error = ExchangeError(
            category=order_error.error.category,
            code=order_error.error.code,
            message=(
                f"Leverage set to {leverage}x on {symbol} but order failed: "
                f"{order_error.error.message}"
            ),
            retry_eligible=RetryEligibility.NO_RETRY,
            exchange_code=order_error.error.exchange_code,
            exchange_message=order_error.error.exchange_message,
            http_status=order_error.error.http_status,
            exchange_id=order_error.error.exchange_id,
            operation="place_order",
        )
        super().__init__(error)


class ExchangeConfigurationError(ValueError):
    """Invalid adapter configuration (unknown exchange, missing credential)."""


# ============================================================
# BINANCE ERROR MAPPING
# ============================================================

BINANCE_ERROR_MAP: Dict[int, Tuple[ErrorCategory, RetryEligibility]] = {
    # Rate limiting
    -1003: (ErrorCategory.RATE_LIMIT, RetryEligibility.BACKOFF),
    -1015: (ErrorCategory.RATE_LIMIT, RetryEligibility.BACKOFF),

    # Authentication
    -1002: (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    -1022: (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    -2014: (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    -2015: (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),

    # Order validation
    -1021: (ErrorCategory.TIMEOUT, RetryEligibility.RETRY),
    -1100: (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),
    -1102: (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),
    -1111: (ErrorCategory.INVALID_QUANTITY, RetryEligibility.NO_RETRY),
    -1116: (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),
    -1121: (ErrorCategory.SYMBOL_NOT_FOUND, RetryEligibility.NO_RETRY),
    -4014: (ErrorCategory.INVALID_PRICE, RetryEligibility.NO_RETRY),
    -4028: (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),
    -4061: (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),

    # Insufficient funds/margin
    -2018: (ErrorCategory.INSUFFICIENT_FUNDS, RetryEligibility.NO_RETRY),
    -2019: (ErrorCategory.INSUFFICIENT_MARGIN, RetryEligibility.NO_RETRY),

    # Exchange internal
    -1000: (ErrorCategory.EXCHANGE_ERROR, RetryEligibility.RETRY),
    -1001: (ErrorCategory.EXCHANGE_ERROR, RetryEligibility.RETRY),
    -1007: (ErrorCategory.TIMEOUT, RetryEligibility.RETRY),
}


def _classify_http_status(
    http_status: Optional[int],
) -> Tuple[ErrorCategory, RetryEligibility]:
    if http_status in (418, 429):
        return ErrorCategory.RATE_LIMIT, RetryEligibility.BACKOFF
    if http_status in (401, 403):
        return ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY
    if http_status and http_status >= 500:
        return ErrorCategory.EXCHANGE_ERROR, RetryEligibility.RETRY
    return ErrorCategory.UNKNOWN, RetryEligibility.NO_RETRY


def map_binance_error(
    code: int,
    message: str,
    http_status: int = None,
    raw_body: str = None,
) -> ExchangeError:
    """
    Map Binance error to unified format.

    Args:
        code: Binance error code
        message: Binance error message
        http_status: HTTP status code
        raw_body: Raw response body

    Returns:
        Unified ExchangeError
    """
    if code in BINANCE_ERROR_MAP:
        category, retry = BINANCE_ERROR_MAP[code]
    else:
        category, retry = _classify_http_status(http_status)

    return ExchangeError(
        category=category,
        code=f"BINANCE_{code}",
        message=message,
        retry_eligible=retry,
        exchange_code=str(code),
        exchange_message=message,
        http_status=http_status,
        raw_body=raw_body,
        exchange_id="binance",
    )


# ============================================================
# OKX ERROR MAPPING
# ============================================================

OKX_ERROR_MAP: Dict[str, Tuple[ErrorCategory, RetryEligibility]] = {
    # Rate limiting
    "50011": (ErrorCategory.RATE_LIMIT, RetryEligibility.BACKOFF),
    "50013": (ErrorCategory.RATE_LIMIT, RetryEligibility.BACKOFF),

    # Authentication
    "50101": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    "50102": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    "50103": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    "50104": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    "50105": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    "50111": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),
    "50113": (ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY),

    # Order validation
    "51000": (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),
    "51001": (ErrorCategory.SYMBOL_NOT_FOUND, RetryEligibility.NO_RETRY),
    "51006": (ErrorCategory.INVALID_PRICE, RetryEligibility.NO_RETRY),
    "51008": (ErrorCategory.INSUFFICIENT_FUNDS, RetryEligibility.NO_RETRY),
    "51020": (ErrorCategory.INVALID_QUANTITY, RetryEligibility.NO_RETRY),

    # Insufficient margin
    "51119": (ErrorCategory.INSUFFICIENT_MARGIN, RetryEligibility.NO_RETRY),
    "51127": (ErrorCategory.INSUFFICIENT_MARGIN, RetryEligibility.NO_RETRY),

    # Funding
    "58350": (ErrorCategory.INSUFFICIENT_FUNDS, RetryEligibility.NO_RETRY),

    # Exchange internal
    "50000": (ErrorCategory.INVALID_ORDER, RetryEligibility.NO_RETRY),
    "50001": (ErrorCategory.EXCHANGE_ERROR, RetryEligibility.RETRY),
    "50004": (ErrorCategory.TIMEOUT, RetryEligibility.RETRY),
}


def map_okx_error(
    code: str,
    message: str,
    http_status: int = None,
    raw_body: str = None,
) -> ExchangeError:
    """
    Map OKX error to unified format.

    Args:
        code: OKX error code
        message: OKX error message
        http_status: HTTP status code
        raw_body: Raw response body

    Returns:
        Unified ExchangeError
    """
    code = str(code)
    if code in OKX_ERROR_MAP:
        category, retry = OKX_ERROR_MAP[code]
    else:
        category, retry = _classify_http_status(http_status)

    return ExchangeError(
        category=category,
        code=f"OKX_{code}",
        message=message,
        retry_eligible=retry,
        exchange_code=code,
        exchange_message=message,
        http_status=http_status,
        raw_body=raw_body,
        exchange_id="okx",
    )


# ============================================================
# TRANSPORT / FORMAT ERROR HELPERS
# ============================================================

def create_network_error(
    exchange_id: str,
    message: str,
    operation: str = None,
) -> ExchangeError:
    """Create network error."""
    return ExchangeError(
        category=ErrorCategory.NETWORK,
        code=f"{exchange_id.upper()}_NETWORK_ERROR",
        message=message,
        retry_eligible=RetryEligibility.RETRY,
        exchange_id=exchange_id,
        operation=operation,
    )


def create_timeout_error(
    exchange_id: str,
    timeout_ms: int,
    operation: str = None,
) -> ExchangeError:
    """Create timeout error."""
    return ExchangeError(
        category=ErrorCategory.TIMEOUT,
        code=f"{exchange_id.upper()}_TIMEOUT",
        message=f"Request timed out after {timeout_ms}ms",
        retry_eligible=RetryEligibility.RETRY,
        exchange_id=exchange_id,
        operation=operation,
    )


def create_http_error(
    exchange_id: str,
    http_status: int,
    raw_body: str,
    operation: str = None,
) -> ExchangeError:
    """Create error for a non-2xx response without a recognizable error code."""
    category, retry = _classify_http_status(http_status)
    if category == ErrorCategory.UNKNOWN:
        category = ErrorCategory.HTTP_ERROR

    return ExchangeError(
        category=category,
        code=f"{exchange_id.upper()}_HTTP_{http_status}",
        message=f"HTTP {http_status}: {raw_body[:500] if raw_body else ''}",
        retry_eligible=retry,
        http_status=http_status,
        raw_body=raw_body,
        exchange_id=exchange_id,
        operation=operation,
    )


def create_format_error(
    exchange_id: str,
    message: str,
    operation: str = None,
) -> ExchangeError:
    """Create error for a malformed or unparseable response."""
    return ExchangeError(
        category=ErrorCategory.RESPONSE_FORMAT,
        code=f"{exchange_id.upper()}_RESPONSE_FORMAT",
        message=message,
        retry_eligible=RetryEligibility.NO_RETRY,
        exchange_id=exchange_id,
        operation=operation,
    )
