"""
OKX Exchange Adapter.

============================================================
PURPOSE
============================================================
Adapter for the OKX V5 REST API (perpetual swaps).

EXCHANGE SPECIFICS:
- HMAC-SHA256 header signing with passphrase
- Demo trading via `x-simulated-trading: 1` on the live host
- `{code, msg, data: [...]}` envelope on every response
- Native lower-case vocabulary (buy/sell, long/short/net)
- Cross margin by default
- Different symbol format (e.g., BTC-USDT-SWAP)

============================================================
API DOCUMENTATION
============================================================
https://www.okx.com/docs-v5/

============================================================
"""

import json
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
    map_okx_error,
)
from .signing import OKXSigner, epoch_millis, okx_timestamp


logger = logging.getLogger(__name__)


# ============================================================
# CONSTANTS
# ============================================================

OKX_REST_URL = "https://www.okx.com"  # demo trading uses the same host

EXCHANGE_ID = "okx"

PATH_SET_LEVERAGE = "/api/v5/account/set-leverage"
PATH_ORDER = "/api/v5/trade/order"
PATH_BALANCE = "/api/v5/account/balance"
PATH_POSITIONS = "/api/v5/account/positions"
PATH_TRANSFER = "/api/v5/asset/transfer"
PATH_WITHDRAWAL = "/api/v5/asset/withdrawal"

OKX_SUCCESS = "0"

# Position sides
OKX_POS_NET = "net"

# Trade / margin modes
OKX_TRADE_CROSS = "cross"

# Order state reported for an accepted order
OKX_STATE_LIVE = "live"

# Funding account transfers
OKX_TRANSFER_WITHIN_ACCOUNT = "0"
OKX_ACCOUNT_CODES = {
    AccountType.FUNDING: "6",
    AccountType.TRADING: "18",
    AccountType.UNIFIED: "18",  # the trading account is the unified account
}

# Withdrawal destination: internal transfer to another OKX account
OKX_DEST_INTERNAL = "3"


# ============================================================
# VOCABULARY MAPPING
# ============================================================

def to_okx_inst_id(symbol: str) -> str:
    """
    Convert to OKX instrument format.

    BTCUSDT -> BTC-USDT-SWAP; hyphenated ids pass through.
    """
    if "-" in symbol:
        return symbol

    for quote in ("USDT", "USDC", "USD"):
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return f"{symbol[:-len(quote)]}-{quote}-SWAP"

    return symbol


def to_okx_position_side(position_side: Optional[PositionSide]) -> Optional[str]:
    """long / short; None (net mode) omits posSide."""
    return position_side.value if position_side else None


def from_okx_position_side(value: Optional[str]) -> Optional[PositionSide]:
    """Inverse of to_okx_position_side; `net` maps to None."""
    if not value or value == OKX_POS_NET:
        return None
    try:
        return PositionSide(value)
    except ValueError:
        raise ResponseFormatError(
            create_format_error(EXCHANGE_ID, f"Unknown posSide {value!r}")
        )


def build_order_body(params: OrderParams) -> Dict[str, Any]:
    """
    Translate a canonical order into a /api/v5/trade/order body.

    Market orders carry no px.
    """
    body = {
        "instId": to_okx_inst_id(params.symbol),
        "tdMode": OKX_TRADE_CROSS,
        "side": params.side.value,
        "ordType": params.type.value,
        "sz": format_decimal(params.quantity),
    }

    pos_side = to_okx_position_side(params.position_side)
    if pos_side:
        body["posSide"] = pos_side

    if params.type == OrderType.LIMIT:
        body["px"] = format_decimal(params.price)

    return body


# ============================================================
# WIRE SCHEMAS
# ============================================================

def _optional_millis(data: Dict[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ResponseFormatError(
                    create_format_error(EXCHANGE_ID, f"Invalid {key} {value!r}")
                )
    return None


@dataclass(frozen=True)
class OKXOrderAck:
    """Element of POST /api/v5/trade/order `data`."""

    ord_id: str
    state: Optional[str]
    timestamp: Optional[int]

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "OKXOrderAck":
        return cls(
            ord_id=str(require_field(data, "ordId", EXCHANGE_ID)),
            state=data.get("state") or None,
            timestamp=_optional_millis(data, "cTime", "ts"),
        )


@dataclass(frozen=True)
class OKXBalanceDetail:
    """Element of /api/v5/account/balance `data[0].details`."""

    ccy: str
    avail_bal: float
    frozen_bal: float
    cash_bal: float

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "OKXBalanceDetail":
        return cls(
            ccy=require_field(data, "ccy", EXCHANGE_ID),
            avail_bal=parse_float(data, "availBal", EXCHANGE_ID),
            frozen_bal=parse_float(data, "frozenBal", EXCHANGE_ID),
            cash_bal=parse_float(data, "cashBal", EXCHANGE_ID),
        )


@dataclass(frozen=True)
class OKXBalance:
    """First element of /api/v5/account/balance `data`."""

    total_eq: Optional[float]
    details: List[OKXBalanceDetail]

    @classmethod
    def from_wire(cls, data: List[Any]) -> Optional["OKXBalance"]:
        if not data:
            return None
        first = data[0]
        if not isinstance(first, dict):
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, "Balance element is not an object")
            )
        return cls(
            total_eq=parse_optional_float(first, "totalEq", EXCHANGE_ID),
            details=[OKXBalanceDetail.from_wire(d) for d in first.get("details") or []],
        )


@dataclass(frozen=True)
class OKXPosition:
    """Element of /api/v5/account/positions `data`."""

    inst_id: str
    pos_side: Optional[PositionSide]
    pos: float
    upl: float
    realized_pnl: float

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "OKXPosition":
        return cls(
            inst_id=require_field(data, "instId", EXCHANGE_ID),
            pos_side=from_okx_position_side(data.get("posSide")),
            pos=parse_float(data, "pos", EXCHANGE_ID),
            upl=parse_float(data, "upl", EXCHANGE_ID),
            realized_pnl=parse_float(data, "realizedPnl", EXCHANGE_ID),
        )

    def to_profit(self, symbol: Optional[str] = None) -> ProfitInfo:
        """Profit record, reported under `symbol` when given, else the instId."""
        return ProfitInfo.from_parts(
            symbol=symbol or self.inst_id,
            unrealized_profit=self.upl,
            realized_profit=self.realized_pnl,
            position_side=self.pos_side,
        )


# ============================================================
# OKX ADAPTER
# ============================================================

class OKXAdapter(BaseExchangeAdapter):
    """
    OKX perpetual swap adapter.

    Implements the ExchangeAPI contract for the OKX V5 API.

    Features:
    - Cross margin mode
    - Long/short and net position modes
    - Funding <-> trading transfers and internal withdrawals
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        passphrase: str,
        simulated: bool = False,
        timeout_config: Optional[TimeoutConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock=okx_timestamp,
    ):
        """
        Initialize OKX adapter.

        Args:
            api_key: OKX API key
            secret_key: OKX API secret
            passphrase: OKX API passphrase
            simulated: Use demo trading (x-simulated-trading header)
            timeout_config: Transport timeouts
            session: Caller-owned aiohttp session (optional)
            clock: ISO-8601 timestamp source used for signing
        """
        self._simulated = simulated
        self._signer = OKXSigner(
            api_key,
            secret_key,
            passphrase,
            simulated=simulated,
            clock=clock,
        )
        super().__init__(OKX_REST_URL, timeout_config=timeout_config, session=session)

    @property
    def exchange_id(self) -> str:
        return EXCHANGE_ID

    # --------------------------------------------------------
    # REQUEST HANDLING
    # --------------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> List[Any]:
        """
        Make signed request to OKX API.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            body: Request body

        Returns:
            The envelope's `data` array
        """
        request_path = endpoint
        if params:
            request_path = f"{endpoint}?{urlencode(params)}"

        body_str = json.dumps(body) if body is not None else ""
        _, headers = self._signer.sign(method, request_path, body_str)
        url = f"{self._base_url}{request_path}"

        operation = endpoint.rsplit("/", 1)[-1]
        status, text, request_id, start_time = await self._timed_send(
            operation, method, endpoint, url, headers,
            body=body_str or None,
            params=params or body,
        )
        latency_ms = (time.time() - start_time) * 1000

        try:
            data = self._unwrap(status, text, operation)
        except ExchangeException as e:
            self._logger.log_response(
                operation=operation,
                request_id=request_id,
                status_code=status,
                latency_ms=latency_ms,
                success=False,
                error_code=e.error.code,
                error_message=e.error.message,
            )
            raise

        self._logger.log_response(
            operation=operation,
            request_id=request_id,
            status_code=status,
            latency_ms=latency_ms,
            success=True,
            response_body=data,
        )
        return data

    def _unwrap(self, status: int, text: str, operation: str) -> List[Any]:
        """Validate the `{code, msg, data}` envelope and return `data`."""
        http_ok = 200 <= status < 300

        try:
            envelope = self._decode_json(text)
        except ResponseFormatError:
            if not http_ok:
                raise ExchangeException(create_http_error(EXCHANGE_ID, status, text, operation))
            raise

        if not isinstance(envelope, dict) or "code" not in envelope:
            if not http_ok:
                raise ExchangeException(create_http_error(EXCHANGE_ID, status, text, operation))
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, "Response envelope has no result code", operation)
            )

        code = str(envelope["code"])
        data = envelope.get("data") or []

        if code != OKX_SUCCESS:
            code, msg = self._first_item_error(data) or (code, envelope.get("msg", ""))
            error = map_okx_error(code, msg, status, text)
            error.operation = operation
            raise ExchangeException(error)

        if not http_ok:
            raise ExchangeException(create_http_error(EXCHANGE_ID, status, text, operation))

        if not isinstance(data, list):
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, "Envelope data is not a list", operation)
            )

        # Item-level failures inside a "0" envelope
        item_error = self._first_item_error(data)
        if item_error:
            error = map_okx_error(item_error[0], item_error[1], status, text)
            error.operation = operation
            raise ExchangeException(error)

        return data

    @staticmethod
    def _first_item_error(data: Any):
        if not isinstance(data, list):
            return None
        for item in data:
            if isinstance(item, dict) and item.get("sCode") not in (None, "", OKX_SUCCESS):
                return str(item["sCode"]), item.get("sMsg", "")
        return None

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def set_leverage(
        self,
        symbol: str,
        leverage: int,
        position_side: Optional[PositionSide] = None,
    ) -> None:
        """
        Set cross-margin leverage.

        position_side selects the leg in long/short position mode and is
        required there. None omits posSide, which OKX accepts only for
        net-mode accounts. The open operations always pass a side.
        """
        body = {
            "instId": to_okx_inst_id(symbol),
            "lever": str(leverage),
            "mgnMode": OKX_TRADE_CROSS,
        }
        pos_side = to_okx_position_side(position_side)
        if pos_side:
            body["posSide"] = pos_side

        await self._request("POST", PATH_SET_LEVERAGE, body=body)

    async def _submit_order(self, params: OrderParams) -> OrderResponse:
        body = build_order_body(params)
        data = await self._request("POST", PATH_ORDER, body=body)
        if not data:
            raise ResponseFormatError(
                create_format_error(EXCHANGE_ID, "Empty order response", "order")
            )

        ack = OKXOrderAck.from_wire(data[0])
        return OrderResponse(
            order_id=ack.ord_id,
            symbol=body["instId"],
            status=ack.state or OKX_STATE_LIVE,
            price=params.price,
            quantity=params.quantity,
            side=params.side,
            position_side=params.position_side,
            type=params.type,
            timestamp=ack.timestamp if ack.timestamp is not None else epoch_millis(),
        )

    # --------------------------------------------------------
    # ACCOUNT OPERATIONS
    # --------------------------------------------------------

    async def _get_balance(self) -> Optional[OKXBalance]:
        return OKXBalance.from_wire(await self._request("GET", PATH_BALANCE))

    async def get_account_balance(self) -> List[AccountBalance]:
        balance = await self._get_balance()
        if balance is None:
            return []

        return [
            AccountBalance(
                asset=detail.ccy,
                free=detail.avail_bal,
                locked=detail.frozen_bal,
                total=detail.cash_bal,
            )
            for detail in balance.details
        ]

    async def get_total_asset_value(self) -> float:
        balance = await self._get_balance()
        if balance is None or balance.total_eq is None:
            return 0.0
        return balance.total_eq

    # --------------------------------------------------------
    # PROFIT
    # --------------------------------------------------------

    async def get_position_profit(
        self,
        symbol: str,
        position_side: Optional[PositionSide] = None,
    ) -> ProfitInfo:
        data = await self._request(
            "GET",
            PATH_POSITIONS,
            params={"instId": to_okx_inst_id(symbol)},
        )

        matches = [
            p for p in (OKXPosition.from_wire(item) for item in data)
            if position_side is None or p.pos_side == position_side
        ]
        position = next((p for p in matches if p.pos != 0), None)
        if position is None:
            position = matches[0] if matches else None

        if position is None:
            return ProfitInfo.empty(symbol, position_side)
        return position.to_profit(symbol)

    async def get_all_profits(self) -> List[ProfitInfo]:
        data = await self._request("GET", PATH_POSITIONS)
        positions = [OKXPosition.from_wire(item) for item in data]
        return [p.to_profit() for p in positions if p.pos != 0]

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
        body = {
            "ccy": currency.upper(),
            "amt": format_decimal(amount),
            "from": OKX_ACCOUNT_CODES[from_account],
            "to": OKX_ACCOUNT_CODES[to_account],
            "type": OKX_TRANSFER_WITHIN_ACCOUNT,
        }

        try:
            data = await self._request("POST", PATH_TRANSFER, body=body)
            if not data:
                return TransferResponse.failed("Empty response from OKX")
            return TransferResponse(
                success=True,
                transfer_id=str(require_field(data[0], "transId", EXCHANGE_ID)),
            )
        except ExchangeException as e:
            self._logger.warning(f"Transfer of {amount} {currency} failed: {e}")
            return TransferResponse.failed(str(e))

    async def withdraw_to_exchange_account(
        self,
        currency: str,
        amount: float,
        to_account: str,
        memo: Optional[str] = None,
    ) -> WithdrawalResponse:
        body = {
            "ccy": currency.upper(),
            "amt": format_decimal(amount),
            "dest": OKX_DEST_INTERNAL,
            "toAddr": to_account,
            "fee": "0",
        }
        # Internal withdrawals have no memo field; address:tag is on-chain only
        if memo:
            self._logger.info(f"Memo {memo!r} not sent with internal withdrawal to OKX")

        try:
            data = await self._request("POST", PATH_WITHDRAWAL, body=body)
            if not data:
                return WithdrawalResponse.failed("Empty response from OKX")
            item = data[0]
            fee = parse_optional_float(item, "fee", EXCHANGE_ID)
            return WithdrawalResponse(
                success=True,
                withdrawal_id=str(require_field(item, "wdId", EXCHANGE_ID)),
                fee=fee if fee is not None else 0.0,
            )
        except ExchangeException as e:
            self._logger.warning(f"Internal withdrawal of {amount} {currency} failed: {e}")
            return WithdrawalResponse.failed(str(e))
