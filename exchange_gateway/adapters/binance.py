"""
Exchange Gateway - Binance Futures Adapter.

============================================================
PURPOSE
============================================================
Adapter for the Binance USD-M Futures REST API.

EXCHANGE SPECIFICS:
- HMAC-SHA256 query-string signing, API key in X-MBX-APIKEY
- Upper-case vocabulary (BUY/SELL, LONG/SHORT/BOTH, MARKET/LIMIT)
- Position risk feed carries no realized profit
- Internal transfers / withdrawals are not supported

============================================================
API DOCUMENTATION
============================================================
https://binance-docs.github.io/apidocs/futures/en/

============================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

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
from .base import (
    BaseExchangeAdapter,
    format_decimal,
    parse_float,
    parse_optional_float,
    require_field,
)
from .errors import (
    ExchangeException,
    ResponseFormatError,
    create_format_error,
    create_http_error,
    map_binance_error,
)
from .signing import BinanceSigner, epoch_millis


logger = logging.getLogger(__name__)


# ============================================================
# CONSTANTS
# ============================================================

BINANCE_REST_URL = "https://fapi.binance.com"
BINANCE_TESTNET_URL = "https://testnet.binancefuture.com"

EXCHANGE_ID = "binance"

PATH_LEVERAGE = "/fapi/v1/leverage"
PATH_ORDER = "/fapi/v1/order"
PATH_ACCOUNT = "/fapi/v2/account"
PATH_POSITION_RISK = "/fapi/v2/positionRisk"

BINANCE_POS_BOTH = "BOTH"
BINANCE_TIF_GTC = "GTC"

# Universal-transfer vocabulary, for operator logs
BINANCE_ACCOUNT_TYPES = {
    AccountType.FUNDING: "SPOT",
    AccountType.TRADING: "FUTURES",
    AccountType.UNIFIED: "UNIFIED",
}


# ============================================================
# VOCABULARY MAPPING
# ============================================================

def to_binance_position_side(position_side: Optional[PositionSide]) -> str:
    """LONG / SHORT, or BOTH for netted (one-way) mode."""
    if position_side is None:
        return BINANCE_POS_BOTH
    return position_side.value.upper()


def from_binance_position_side(value: Optional[str]) -> Optional[PositionSide]:
    """Inverse of to_binance_position_side."""
    if not value or value.upper() == BINANCE_POS_BOTH:
        return None
    try:
        return PositionSide(value.lower())
    except ValueError:
        raise ResponseFormatError(
            create_format_error(EXCHANGE_ID, f"Unknown positionSide {value!r}")
        )


def _lower_enum(enum_cls, value: str, field_name: str):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise ResponseFormatError(
            create_format_error(EXCHANGE_ID, f"Unknown {field_name} {value!r}")
        )


def build_order_params(params: OrderParams) -> Dict[str, Any]:
    """
    Translate a canonical order into /fapi/v1/order parameters.

    Market orders carry neither price nor timeInForce.
    """
    order = {
        "symbol": params.symbol,
        "side": params.side.value.upper(),
        "type": params.type.value.upper(),
        "quantity": format_decimal(params.quantity),
        "positionSide": to_binance_position_side(params.position_side),
    }

    if params.type == OrderType.LIMIT:
        order["price"] = format_decimal(params.price)
        order["timeInForce"] = BINANCE_TIF_GTC

    return order


# ============================================================
# WIRE SCHEMAS
# ============================================================

@dataclass(frozen=True)
class BinanceOrderAck:
    """Response of POST /fapi/v1/order."""

    order_id: str
    symbol: str
    status: str
    side: str
    position_side: Optional[str]
    type: str
    orig_qty: float
    price: Optional[float]
    update_time: int

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "BinanceOrderAck":
        update_time = require_field(data, "updateTime", EXCHANGE_ID)
        try:
            update_time = int(update_time)
        except (TypeError, ValueError):
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, f"Invalid updateTime {update_time!r}")
            )

        return cls(
            order_id=str(require_field(data, "orderId", EXCHANGE_ID)),
            symbol=require_field(data, "symbol", EXCHANGE_ID),
            status=require_field(data, "status", EXCHANGE_ID),
            side=require_field(data, "side", EXCHANGE_ID),
            position_side=data.get("positionSide"),
            type=require_field(data, "type", EXCHANGE_ID),
            orig_qty=parse_float(data, "origQty", EXCHANGE_ID),
            price=parse_optional_float(data, "price", EXCHANGE_ID),
            update_time=update_time,
        )


@dataclass(frozen=True)
class BinanceAsset:
    """One entry of /fapi/v2/account `assets`."""

    asset: str
    available_balance: float
    initial_margin: float
    wallet_balance: float

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "BinanceAsset":
        return cls(
            asset=require_field(data, "asset", EXCHANGE_ID),
            available_balance=parse_float(data, "availableBalance", EXCHANGE_ID),
            initial_margin=parse_float(data, "initialMargin", EXCHANGE_ID),
            wallet_balance=parse_float(data, "walletBalance", EXCHANGE_ID),
        )


@dataclass(frozen=True)
class BinanceAccount:
    """Response of GET /fapi/v2/account (fields used here only)."""

    assets: List[BinanceAsset]
    total_wallet_balance: Optional[float]

    @classmethod
    def from_wire(cls, data: Any) -> "BinanceAccount":
        if not isinstance(data, dict):
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, "Account response is not an object")
            )
        return cls(
            assets=[BinanceAsset.from_wire(a) for a in data.get("assets") or []],
            total_wallet_balance=parse_optional_float(data, "totalWalletBalance", EXCHANGE_ID),
        )


@dataclass(frozen=True)
class BinancePositionRisk:
    """One entry of GET /fapi/v2/positionRisk."""

    symbol: str
    position_side: Optional[PositionSide]
    position_amt: float
    unrealized_profit: float

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "BinancePositionRisk":
        return cls(
            symbol=require_field(data, "symbol", EXCHANGE_ID),
            position_side=from_binance_position_side(data.get("positionSide")),
            position_amt=parse_float(data, "positionAmt", EXCHANGE_ID),
            unrealized_profit=parse_float(data, "unRealizedProfit", EXCHANGE_ID),
        )

    @classmethod
    def list_from_wire(cls, data: Any) -> List["BinancePositionRisk"]:
        if not data:
            return []
        if not isinstance(data, list):
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, "positionRisk response is not a list")
            )
        return [cls.from_wire(row) for row in data]

    def to_profit(self) -> ProfitInfo:
        # positionRisk has no realized profit
        return ProfitInfo.from_parts(
            symbol=self.symbol,
            unrealized_profit=self.unrealized_profit,
            realized_profit=0.0,
            position_side=self.position_side,
        )


# ============================================================
# BINANCE FUTURES ADAPTER
# ============================================================

class BinanceAdapter(BaseExchangeAdapter):
    """
    Binance USD-M Futures adapter.

    Implements the ExchangeAPI contract for the Binance Futures API.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        testnet: bool = False,
        timeout_config: Optional[TimeoutConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock=epoch_millis,
    ):
        """
        Initialize Binance adapter.

        Args:
            api_key: Binance API key
            secret_key: Binance API secret
            testnet: Use the futures testnet host
            timeout_config: Transport timeouts
            session: Caller-owned aiohttp session (optional)
            clock: Epoch-millisecond clock used for signing
        """
        self._testnet = testnet
        self._signer = BinanceSigner(api_key, secret_key, clock=clock)
        super().__init__(
            BINANCE_TESTNET_URL if testnet else BINANCE_REST_URL,
            timeout_config=timeout_config,
            session=session,
        )

    @property
    def exchange_id(self) -> str:
        return EXCHANGE_ID

    # --------------------------------------------------------
    # REQUEST HANDLING
    # --------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = True,
    ) -> Any:
        """
        Make API request.

        Signed requests get timestamp + signature appended to the
        query string and the API key header. Public requests carry
        neither.
        """
        if signed:
            query_string = self._signer.sign(params)
            headers = self._signer.headers()
        else:
            query_string = urlencode(params or {})
            headers = {}

        url = f"{self._base_url}{path}"
        if query_string:
            url = f"{url}?{query_string}"

        operation = path.rsplit("/", 1)[-1]
        status, text, request_id, start_time = await self._timed_send(
            operation, method, path, url, headers, params=params,
        )
        latency_ms = (time.time() - start_time) * 1000

        if not 200 <= status < 300:
            error = self._error_from_body(status, text, operation)
            self._logger.log_response(
                operation=operation,
                request_id=request_id,
                status_code=status,
                latency_ms=latency_ms,
                success=False,
                error_code=error.code,
                error_message=error.message,
            )
            raise ExchangeException(error)

        data = self._decode_json(text)
        self._logger.log_response(
            operation=operation,
            request_id=request_id,
            status_code=status,
            latency_ms=latency_ms,
            success=True,
            response_body=data,
        )
        return data

    def _error_from_body(self, status: int, text: str, operation: str):
        """Use the Binance {code, msg} body when present, else a plain HTTP error."""
        try:
            body = self._decode_json(text)
        except ResponseFormatError:
            body = None

        if isinstance(body, dict) and "code" in body:
            try:
                code = int(body["code"])
            except (TypeError, ValueError):
                code = None
            if code is not None:
                error = map_binance_error(code, body.get("msg", ""), status, text)
                error.message = f"HTTP {status}: {error.message}"
                error.operation = operation
                return error

        return create_http_error(EXCHANGE_ID, status, text, operation)

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def set_leverage(
        self,
        symbol: str,
        leverage: int,
        position_side: Optional[PositionSide] = None,
    ) -> None:
        """Set leverage for a symbol (Binance leverage is per symbol, not per side)."""
        await self._request(
            "POST",
            PATH_LEVERAGE,
            params={"symbol": symbol, "leverage": leverage},
        )

    async def _submit_order(self, params: OrderParams) -> OrderResponse:
        data = await self._request("POST", PATH_ORDER, params=build_order_params(params))
        return self._normalize_order(BinanceOrderAck.from_wire(data))

    @staticmethod
    def _normalize_order(ack: BinanceOrderAck) -> OrderResponse:
        return OrderResponse(
            order_id=ack.order_id,
            symbol=ack.symbol,
            status=ack.status.lower(),
            price=ack.price,
            quantity=ack.orig_qty,
            side=_lower_enum(OrderSide, ack.side, "side"),
            position_side=from_binance_position_side(ack.position_side),
            type=_lower_enum(OrderType, ack.type, "type"),
            timestamp=ack.update_time,
        )

    # --------------------------------------------------------
    # ACCOUNT OPERATIONS
    # --------------------------------------------------------

    async def _get_account(self) -> BinanceAccount:
        return BinanceAccount.from_wire(await self._request("GET", PATH_ACCOUNT))

    async def get_account_balance(self) -> List[AccountBalance]:
        account = await self._get_account()
        return [
            AccountBalance(
                asset=asset.asset,
                free=asset.available_balance,
                locked=asset.initial_margin,
                total=asset.wallet_balance,
            )
            for asset in account.assets
        ]

    async def get_total_asset_value(self) -> float:
        account = await self._get_account()
        if account.total_wallet_balance is None:
            return 0.0
        return account.total_wallet_balance

    # --------------------------------------------------------
    # PROFIT
    # --------------------------------------------------------

    async def get_position_profit(
        self,
        symbol: str,
        position_side: Optional[PositionSide] = None,
    ) -> ProfitInfo:
        rows = BinancePositionRisk.list_from_wire(
            await self._request("GET", PATH_POSITION_RISK, params={"symbol": symbol})
        )

        matches = [
            row for row in rows
            if row.symbol == symbol
            and (position_side is None or row.position_side == position_side)
        ]
        # Hedge mode reports both legs; prefer the one that is open
        position = next((row for row in matches if row.position_amt != 0), None)
        if position is None:
            position = matches[0] if matches else None

        if position is None:
            return ProfitInfo.empty(symbol, position_side)
        return position.to_profit()

    async def get_all_profits(self) -> List[ProfitInfo]:
        rows = BinancePositionRisk.list_from_wire(
            await self._request("GET", PATH_POSITION_RISK)
        )
        return [row.to_profit() for row in rows if row.position_amt != 0]

    # --------------------------------------------------------
    # INTERNAL TRANSFERS
    # --------------------------------------------------------

    async def transfer_funds(
        self,
        currency: str,
        amount: float,
        from_account: AccountType,
        to_account: AccountType,
    ) -> TransferResponse:
        self._logger.warning(
            f"Transfer of {amount} {currency} from "
            f"{BINANCE_ACCOUNT_TYPES[from_account]} to {BINANCE_ACCOUNT_TYPES[to_account]} "
            "requested, but internal transfers are not supported"
        )
        return TransferResponse.unsupported("Binance internal transfers are not supported")

    async def withdraw_to_exchange_account(
        self,
        currency: str,
        amount: float,
        to_account: str,
        memo: Optional[str] = None,
    ) -> WithdrawalResponse:
        self._logger.warning(
            f"Internal withdrawal of {amount} {currency} requested, "
            "but internal withdrawals are not supported"
        )
        return WithdrawalResponse.unsupported("Binance internal withdrawals are not supported")
