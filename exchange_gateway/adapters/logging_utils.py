"""
Exchange Adapter - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Secure logging for exchange adapter operations with:
- Credential masking (API keys, secrets, passphrases)
- Request/response sanitization
- Structured JSON log lines

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw API keys, secrets or passphrases
2. Mask signature headers and query parameters
3. Log a hash of request bodies instead of the body
4. Truncate response previews

============================================================
"""

import logging
import re
import json
import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from dataclasses import dataclass, asdict


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "x-mbx-apikey",
    "ok-access-key",
    "ok-access-passphrase",
    "ok-access-sign",
}

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "apikey",
    "api_key",
    "secret",
    "secretkey",
    "secret_key",
    "passphrase",
    "signature",
    "sign",
}

# Withdrawal destinations are partially masked as well
PARTIAL_PARAMS = {
    "toaddr",
}

PREVIEW_LIMIT = 200


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """
    Mask sensitive headers.

    Args:
        headers: Request headers

    Returns:
        Headers with sensitive values masked
    """
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Args:
        params: Request parameters

    Returns:
        Parameters with sensitive values masked
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        lowered = key.lower()
        if lowered in SENSITIVE_PARAMS:
            masked[key] = "***"
        elif lowered in PARTIAL_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        else:
            masked[key] = value
    return masked


def mask_url(url: str) -> str:
    """
    Mask sensitive query parameters in a URL.

    Args:
        url: URL or request path

    Returns:
        URL with sensitive params masked
    """
    if not url:
        return url

    for param in SENSITIVE_PARAMS:
        pattern = re.compile(f"({param}=)([^&]+)", re.IGNORECASE)
        url = pattern.sub(lambda m: f"{m.group(1)}***", url)

    return url


# ============================================================
# LOG ENTRY STRUCTURES
# ============================================================

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _compact(entry: Any) -> Dict[str, Any]:
    return {k: v for k, v in asdict(entry).items() if v is not None}


@dataclass
class RequestLogEntry:
    """Structured log entry for requests."""

    timestamp: str
    exchange_id: str
    operation: str
    method: str
    endpoint: str
    request_id: str

    headers: Optional[Dict[str, str]] = None
    params: Optional[Dict[str, Any]] = None
    body_hash: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(_compact(self))


@dataclass
class ResponseLogEntry:
    """Structured log entry for responses."""

    timestamp: str
    exchange_id: str
    operation: str
    request_id: str

    status_code: Optional[int]
    latency_ms: float
    success: bool

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    response_preview: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(_compact(self))


@dataclass
class OrderLogEntry:
    """Structured log entry for order placements."""

    timestamp: str
    exchange_id: str
    operation: str

    symbol: str
    side: str
    order_type: str
    quantity: str

    position_side: Optional[str] = None
    price: Optional[str] = None
    leverage: Optional[int] = None

    order_id: Optional[str] = None
    status: Optional[str] = None

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(_compact(self))


# ============================================================
# ADAPTER LOGGER
# ============================================================

class AdapterLogger:
    """
    Secure logger for exchange adapter operations.

    Provides structured logging with automatic credential masking.
    """

    def __init__(self, exchange_id: str, logger_name: str = None):
        """
        Initialize adapter logger.

        Args:
            exchange_id: Exchange identifier
            logger_name: Logger name (default: exchange_gateway.adapters.<id>)
        """
        self._exchange_id = exchange_id
        self._logger = logging.getLogger(
            logger_name or f"exchange_gateway.adapters.{exchange_id}"
        )
        self._request_counter = 0

    def _generate_request_id(self) -> str:
        self._request_counter += 1
        return f"{self._exchange_id}-{self._request_counter}"

    def _hash_body(self, body: Any) -> Optional[str]:
        """Create a short hash of the request body."""
        if not body:
            return None

        if isinstance(body, (dict, list)):
            body_str = json.dumps(body, sort_keys=True)
        else:
            body_str = str(body)

        return hashlib.sha256(body_str.encode()).hexdigest()[:16]

    def log_request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        headers: Dict[str, str] = None,
        params: Dict[str, Any] = None,
        body: Any = None,
    ) -> str:
        """
        Log outgoing request.

        Returns:
            Request ID for correlation
        """
        request_id = self._generate_request_id()

        entry = RequestLogEntry(
            timestamp=_utc_now_iso(),
            exchange_id=self._exchange_id,
            operation=operation,
            method=method,
            endpoint=mask_url(endpoint),
            request_id=request_id,
            headers=mask_headers(headers) if headers else None,
            params=mask_params(params) if params else None,
            body_hash=self._hash_body(body),
        )

        self._logger.debug(f"REQUEST: {entry.to_json()}")
        return request_id

    def log_response(
        self,
        operation: str,
        request_id: str,
        status_code: Optional[int],
        latency_ms: float,
        success: bool,
        error_code: str = None,
        error_message: str = None,
        response_body: Any = None,
    ) -> None:
        """Log incoming response (preview truncated)."""
        preview = None
        if response_body:
            if isinstance(response_body, (dict, list)):
                preview = json.dumps(response_body)[:PREVIEW_LIMIT]
            else:
                preview = str(response_body)[:PREVIEW_LIMIT]

        entry = ResponseLogEntry(
            timestamp=_utc_now_iso(),
            exchange_id=self._exchange_id,
            operation=operation,
            request_id=request_id,
            status_code=status_code,
            latency_ms=round(latency_ms, 2),
            success=success,
            error_code=error_code,
            error_message=error_message[:PREVIEW_LIMIT] if error_message else None,
            response_preview=preview,
        )

        if success:
            self._logger.debug(f"RESPONSE: {entry.to_json()}")
        else:
            self._logger.warning(f"RESPONSE_ERROR: {entry.to_json()}")

    def log_order(
        self,
        operation: str,
        symbol: str,
        side: str,
        order_type: str,
        quantity: str,
        position_side: str = None,
        price: str = None,
        leverage: int = None,
        order_id: str = None,
        status: str = None,
        error_code: str = None,
        error_message: str = None,
    ) -> None:
        """Log an order placement outcome."""
        entry = OrderLogEntry(
            timestamp=_utc_now_iso(),
            exchange_id=self._exchange_id,
            operation=operation,
            symbol=symbol,
            side=side,
            order_type=order_type,
            quantity=quantity,
            position_side=position_side,
            price=price,
            leverage=leverage,
            order_id=order_id,
            status=status,
            error_code=error_code,
            error_message=error_message[:PREVIEW_LIMIT] if error_message else None,
        )

        if error_code:
            self._logger.warning(f"ORDER_ERROR: {entry.to_json()}")
        else:
            self._logger.info(f"ORDER: {entry.to_json()}")

    def info(self, message: str) -> None:
        self._logger.info(f"[{self._exchange_id}] {message}")

    def warning(self, message: str) -> None:
        self._logger.warning(f"[{self._exchange_id}] {message}")
