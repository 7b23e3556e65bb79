"""
Exchange Adapter - Request Signing.

============================================================
PURPOSE
============================================================
One signing strategy per exchange. Signers hold only the
secret material and derive a fresh signature on every call.

BINANCE:
    hex(HMAC-SHA256(secret, urlencoded query incl. timestamp))
    appended as `signature`; API key in X-MBX-APIKEY header.

OKX:
    base64(HMAC-SHA256(secret, ts + METHOD + path + body))
    sent in OK-ACCESS-SIGN alongside key, timestamp, passphrase.

============================================================
"""

import base64
import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlencode


def epoch_millis() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def okx_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ============================================================
# BINANCE
# ============================================================

class BinanceSigner:
    """HMAC-SHA256 query-string signer for Binance USD-M futures."""

    API_KEY_HEADER = "X-MBX-APIKEY"

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        clock: Callable[[], int] = epoch_millis,
    ):
        self._api_key = api_key
        self._secret_key = secret_key
        self._clock = clock

    def signature(self, query_string: str) -> str:
        """Hex-encoded HMAC-SHA256 of the query string."""
        return hmac.new(
            self._secret_key.encode(),
            query_string.encode(),
            hashlib.sha256,
        ).hexdigest()

    def sign(self, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Build the signed query string.

        Injects `timestamp`, signs the urlencoded parameters and
        appends the `signature` parameter last.

        Args:
            params: Request parameters (not mutated)

        Returns:
            Fully assembled query string
        """
        signed = dict(params or {})
        signed["timestamp"] = self._clock()
        query_string = urlencode(signed)
        return f"{query_string}&signature={self.signature(query_string)}"

    def headers(self) -> Dict[str, str]:
        """Authentication headers for signed endpoints."""
        return {self.API_KEY_HEADER: self._api_key}


# ============================================================
# OKX
# ============================================================

class OKXSigner:
    """HMAC-SHA256 header signer for the OKX V5 API."""

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        passphrase: str,
        simulated: bool = False,
        clock: Callable[[], str] = okx_timestamp,
    ):
        self._api_key = api_key
        self._secret_key = secret_key
        self._passphrase = passphrase
        self._simulated = simulated
        self._clock = clock

    def signature(
        self,
        timestamp: str,
        method: str,
        request_path: str,
        body: str = "",
    ) -> str:
        """
        Create request signature.

        Args:
            timestamp: ISO-8601 timestamp
            method: HTTP method
            request_path: Path including query string
            body: JSON request body ("" for GET)

        Returns:
            Base64 encoded signature
        """
        message = f"{timestamp}{method.upper()}{request_path}{body}"
        digest = hmac.new(
            self._secret_key.encode(),
            message.encode(),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode()

    def sign(
        self,
        method: str,
        request_path: str,
        body: str = "",
    ) -> Tuple[str, Dict[str, str]]:
        """
        Build authentication headers for one request.

        Returns:
            (timestamp, headers)
        """
        timestamp = self._clock()
        headers = {
            "Content-Type": "application/json",
            "OK-ACCESS-KEY": self._api_key,
            "OK-ACCESS-SIGN": self.signature(timestamp, method, request_path, body),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self._passphrase,
        }

        if self._simulated:
            headers["x-simulated-trading"] = "1"

        return timestamp, headers
