"""
Exchange Gateway - Exchange API Contract.

============================================================
PURPOSE
============================================================
The canonical capability interface every exchange adapter
satisfies, plus the shared REST plumbing adapters build on.

DESIGN PRINCIPLES:
- Exchange-agnostic interface
- Hard failures raise ExchangeException; transfers and
  withdrawals soft-fail into their response records
- Leverage-then-order is an explicit two-step workflow with
  a documented partial-failure outcome
- No retries, no rate limiting, no pooled sessions

============================================================
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp

from ..config import TimeoutConfig
from ..types import (
    AccountBalance,
    AccountType,
    OrderParams,
    OrderResponse,
    OrderSide,
    OrderType,
    PositionSide,
    ProfitInfo,
    TransferResponse,
    WithdrawalResponse,
)
from .errors import (
    ExchangeException,
    LeverageAppliedOrderError,
    ResponseFormatError,
    create_format_error,
    create_network_error,
    create_timeout_error,
)
from .logging_utils import AdapterLogger


logger = logging.getLogger(__name__)


# ============================================================
# EXCHANGE API CONTRACT
# ============================================================

class ExchangeAPI(ABC):
    """
    Canonical exchange interface.

    Implementations:
    - BinanceAdapter: Binance USD-M futures
    - OKXAdapter: OKX V5 perpetual swaps
    """

    @property
    @abstractmethod
    def exchange_id(self) -> str:
        """Get exchange identifier."""

    # --------------------------------------------------------
    # TRADING
    # --------------------------------------------------------

    @abstractmethod
    async def open_long_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        leverage: Optional[int] = None,
    ) -> OrderResponse:
        """
        Open (or add to) a long position.

        Args:
            symbol: Exchange instrument identifier
            quantity: Order quantity (> 0)
            price: Limit price; None places a market order
            leverage: Leverage applied before the order is placed

        Raises:
            ExchangeException: If either step fails
            LeverageAppliedOrderError: If leverage was changed but
                the order was not placed
        """

    @abstractmethod
    async def open_short_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        leverage: Optional[int] = None,
    ) -> OrderResponse:
        """Open (or add to) a short position. Mirror of open_long_position."""

    @abstractmethod
    async def close_long_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
    ) -> OrderResponse:
        """Sell to reduce a long position. Leverage is left untouched."""

    @abstractmethod
    async def close_short_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
    ) -> OrderResponse:
        """Buy to reduce a short position. Leverage is left untouched."""

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    @abstractmethod
    async def get_account_balance(self) -> List[AccountBalance]:
        """Per-asset balances; empty list when the provider reports none."""

    @abstractmethod
    async def get_total_asset_value(self) -> float:
        """Total equity in the provider's valuation currency (USD); 0 if unavailable."""

    # --------------------------------------------------------
    # PROFIT
    # --------------------------------------------------------

    @abstractmethod
    async def get_position_profit(
        self,
        symbol: str,
        position_side: Optional[PositionSide] = None,
    ) -> ProfitInfo:
        """
        Profit for one symbol.

        Args:
            symbol: Exchange instrument identifier
            position_side: Hedge-mode leg to select, or None for the first match

        Returns:
            ProfitInfo; zero-filled when no matching position exists
        """

    @abstractmethod
    async def get_all_profits(self) -> List[ProfitInfo]:
        """Profit for every position with non-zero size, in provider order."""

    # --------------------------------------------------------
    # INTERNAL TRANSFERS
    # --------------------------------------------------------

    @abstractmethod
    async def transfer_funds(
        self,
        currency: str,
        amount: float,
        from_account: AccountType,
        to_account: AccountType,
    ) -> TransferResponse:
        """
        Move funds between the provider's internal sub-ledgers.

        Never raises for provider failures; check ``success``.
        """

    @abstractmethod
    async def withdraw_to_exchange_account(
        self,
        currency: str,
        amount: float,
        to_account: str,
        memo: Optional[str] = None,
    ) -> WithdrawalResponse:
        """
        Internal same-provider transfer to another account (not on-chain).

        Never raises for provider failures; check ``success``.
        """


# ============================================================
# WIRE PARSING HELPERS
# ============================================================

def parse_float(
    payload: Mapping[str, Any],
    key: str,
    exchange_id: str,
) -> float:
    """
    Parse a numeric wire field.

    Raises:
        ResponseFormatError: If the field is missing or not numeric
    """
    value = payload.get(key)
    if value is None or value == "":
        raise ResponseFormatError(
            create_format_error(exchange_id, f"Missing numeric field '{key}'")
        )
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ResponseFormatError(
            create_format_error(exchange_id, f"Field '{key}' is not numeric: {value!r}")
        )


def format_decimal(value: float) -> str:
    """
    Render a number for the wire in plain positional notation.

    str(0.00005) is "5e-05", which both exchanges reject.
    """
    return format(Decimal(repr(value)), "f")


def parse_optional_float(
    payload: Mapping[str, Any],
    key: str,
    exchange_id: str,
) -> Optional[float]:
    """Like parse_float, but an absent or empty field yields None."""
    if payload.get(key) in (None, ""):
        return None
    return parse_float(payload, key, exchange_id)


def require_field(
    payload: Mapping[str, Any],
    key: str,
    exchange_id: str,
) -> Any:
    """
    Fetch a mandatory wire field.

    Raises:
        ResponseFormatError: If the field is missing
    """
    if not isinstance(payload, Mapping):
        raise ResponseFormatError(
            create_format_error(exchange_id, f"Expected an object, got {type(payload).__name__}")
        )
    value = payload.get(key)
    if value is None:
        raise ResponseFormatError(
            create_format_error(exchange_id, f"Missing field '{key}'")
        )
    return value


# ============================================================
# REST ADAPTER BASE
# ============================================================

class BaseExchangeAdapter(ExchangeAPI):
    """
    Shared plumbing for REST exchange adapters.

    Subclasses provide set_leverage() and _submit_order(); the
    open/close operations are expressed once here on top of them.
    Each request opens a short-lived aiohttp session unless the
    caller injects a session it owns.
    """

    def __init__(
        self,
        base_url: str,
        timeout_config: Optional[TimeoutConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout_config = timeout_config or TimeoutConfig()
        self._session = session
        self._logger = AdapterLogger(self.exchange_id)

    @property
    def base_url(self) -> str:
        return self._base_url

    # --------------------------------------------------------
    # ORDER WORKFLOW
    # --------------------------------------------------------

    @abstractmethod
    async def set_leverage(
        self,
        symbol: str,
        leverage: int,
        position_side: Optional[PositionSide] = None,
    ) -> None:
        """
        Set leverage for a symbol.

        Raises:
            ExchangeException: If the provider rejects the change
        """

    @abstractmethod
    async def _submit_order(self, params: OrderParams) -> OrderResponse:
        """Place a single order; no leverage handling."""

    async def _place_order(self, params: OrderParams) -> OrderResponse:
        """
        Apply leverage (if requested), then place the order.

        The two steps are independent round-trips. If the order step
        fails after leverage was changed, LeverageAppliedOrderError is
        raised and the leverage change is not rolled back.
        """
        if params.leverage is None:
            return await self._submit_and_log(params)

        await self.set_leverage(params.symbol, params.leverage, params.position_side)
        self._logger.info(f"Leverage set to {params.leverage}x for {params.symbol}")

        try:
            return await self._submit_and_log(params)
        except ExchangeException as e:
            raise LeverageAppliedOrderError(params.symbol, params.leverage, e) from e

    async def _submit_and_log(self, params: OrderParams) -> OrderResponse:
        log_fields = dict(
            operation="place_order",
            symbol=params.symbol,
            side=params.side.value,
            order_type=params.type.value,
            quantity=str(params.quantity),
            position_side=params.position_side.value if params.position_side else None,
            price=str(params.price) if params.price is not None else None,
            leverage=params.leverage,
        )
        try:
            response = await self._submit_order(params)
        except ExchangeException as e:
            self._logger.log_order(
                error_code=e.error.code,
                error_message=e.error.message,
                **log_fields,
            )
            raise

        self._logger.log_order(
            order_id=response.order_id,
            status=response.status,
            **log_fields,
        )
        return response

    @staticmethod
    def _build_order(
        symbol: str,
        side: OrderSide,
        position_side: PositionSide,
        quantity: float,
        price: Optional[float],
        leverage: Optional[int] = None,
    ) -> OrderParams:
        return OrderParams(
            symbol=symbol,
            side=side,
            type=OrderType.LIMIT if price is not None else OrderType.MARKET,
            quantity=quantity,
            position_side=position_side,
            price=price,
            leverage=leverage,
        )

    async def open_long_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        leverage: Optional[int] = None,
    ) -> OrderResponse:
        return await self._place_order(self._build_order(
            symbol, OrderSide.BUY, PositionSide.LONG, quantity, price, leverage,
        ))

    async def open_short_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        leverage: Optional[int] = None,
    ) -> OrderResponse:
        return await self._place_order(self._build_order(
            symbol, OrderSide.SELL, PositionSide.SHORT, quantity, price, leverage,
        ))

    async def close_long_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
    ) -> OrderResponse:
        return await self._place_order(self._build_order(
            symbol, OrderSide.SELL, PositionSide.LONG, quantity, price,
        ))

    async def close_short_position(
        self,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
    ) -> OrderResponse:
        return await self._place_order(self._build_order(
            symbol, OrderSide.BUY, PositionSide.SHORT, quantity, price,
        ))

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[str] = None,
    ) -> Tuple[int, str]:
        """
        Perform one HTTP exchange.

        Returns:
            (status code, raw response text)

        Raises:
            ExchangeException: On connection failure or timeout
        """
        if self._session is not None:
            return await self._exchange(self._session, method, url, headers, body)

        async with aiohttp.ClientSession(timeout=self._timeout_config.client_timeout()) as session:
            return await self._exchange(session, method, url, headers, body)

    async def _exchange(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[str],
    ) -> Tuple[int, str]:
        try:
            async with session.request(method, url, headers=headers, data=body) as response:
                return response.status, await response.text()
        except aiohttp.ClientError as e:
            raise ExchangeException(
                create_network_error(self.exchange_id, f"Network error: {e}", url)
            ) from e
        except asyncio.TimeoutError as e:
            raise ExchangeException(
                create_timeout_error(
                    self.exchange_id,
                    int(self._timeout_config.total_seconds * 1000),
                    url,
                )
            ) from e

    async def _timed_send(
        self,
        operation: str,
        method: str,
        path: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, str, str, float]:
        """Send with request logging. Returns (status, text, request_id, start)."""
        request_id = self._logger.log_request(
            operation=operation,
            method=method,
            endpoint=path,
            headers=headers,
            params=params,
            body=body,
        )
        start_time = time.time()
        try:
            status, text = await self._send(method, url, headers, body)
        except ExchangeException as e:
            self._logger.log_response(
                operation=operation,
                request_id=request_id,
                status_code=None,
                latency_ms=(time.time() - start_time) * 1000,
                success=False,
                error_code=e.error.code,
                error_message=e.error.message,
            )
            raise
        return status, text, request_id, start_time

    def _decode_json(self, text: str) -> Any:
        """
        Decode a JSON body.

        Raises:
            ResponseFormatError: If the body is not valid JSON
        """
        try:
            return json.loads(text)
        except (TypeError, ValueError):
            raise ResponseFormatError(
                create_format_error(
                    self.exchange_id,
                    f"Response is not valid JSON: {(text or '')[:200]!r}",
                )
            )
