"""
Binance Adapter Tests.

============================================================
PURPOSE
============================================================
Request construction and response normalization for the
Binance USD-M futures adapter. The transport seam (`_send`)
is replaced with recorded responses.

TEST CATEGORIES:
- Order tests: Parameters, leverage workflow, normalization
- Account tests: Balances and total equity
- Profit tests: Position risk filtering
- Transfer tests: Unsupported outcomes
- Transport tests: HTTP and network failures

============================================================
"""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import aiohttp
import pytest

from exchange_gateway.adapters.binance import (
    BINANCE_REST_URL,
    BINANCE_TESTNET_URL,
    BinanceAdapter,
    build_order_params,
    from_binance_position_side,
    to_binance_position_side,
)
from exchange_gateway.adapters.errors import (
    ErrorCategory,
    ExchangeException,
    LeverageAppliedOrderError,
    ResponseFormatError,
)
from exchange_gateway.types import (
    AccountBalance,
    AccountType,
    OrderParams,
    OrderSide,
    OrderType,
    PositionSide,
)


API_KEY = "binance-key-123456"
SECRET_KEY = "binance-secret-abcdef"
NOW_MS = 1700000000000


def reply(payload, status=200):
    return status, json.dumps(payload)


def query_of(call) -> dict:
    """Decode the query string of a recorded _send call."""
    url = call.args[1]
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def path_of(call) -> str:
    return urlsplit(call.args[1]).path


ORDER_ACK = {
    "orderId": 283194212,
    "symbol": "BTCUSDT",
    "status": "NEW",
    "side": "BUY",
    "positionSide": "LONG",
    "type": "MARKET",
    "origQty": "0.01",
    "price": "0",
    "updateTime": NOW_MS,
}


@pytest.fixture
def adapter():
    return BinanceAdapter(API_KEY, SECRET_KEY, clock=lambda: NOW_MS)


# ============================================================
# VOCABULARY
# ============================================================

class TestBinanceVocabulary:
    """Tests for Binance vocabulary mapping."""

    @pytest.mark.parametrize("side", [PositionSide.LONG, PositionSide.SHORT, None])
    def test_position_side_round_trip(self, side):
        """Test position side encoding is reversible."""
        assert from_binance_position_side(to_binance_position_side(side)) == side

    def test_unset_position_side_is_both(self):
        """Test netted mode encodes as BOTH."""
        assert to_binance_position_side(None) == "BOTH"

    def test_unknown_position_side_rejected(self):
        """Test an unknown position side is a format error."""
        with pytest.raises(ResponseFormatError):
            from_binance_position_side("SIDEWAYS")

    def test_market_order_params(self):
        """Test market orders omit price and timeInForce."""
        order = build_order_params(OrderParams(
            symbol="BTCUSDT",
            side=OrderSide.BUY,
            type=OrderType.MARKET,
            quantity=0.01,
            position_side=PositionSide.LONG,
        ))

        assert order == {
            "symbol": "BTCUSDT",
            "side": "BUY",
            "type": "MARKET",
            "quantity": "0.01",
            "positionSide": "LONG",
        }

    def test_limit_order_params(self):
        """Test limit orders carry price and GTC."""
        order = build_order_params(OrderParams(
            symbol="ETHUSDT",
            side=OrderSide.SELL,
            type=OrderType.LIMIT,
            quantity=1,
            position_side=PositionSide.SHORT,
            price=3000.5,
        ))

        assert order["price"] == "3000.5"
        assert order["timeInForce"] == "GTC"
        assert order["positionSide"] == "SHORT"


# ============================================================
# ORDER TESTS
# ============================================================

class TestBinanceOrders:
    """Tests for order placement."""

    def test_hosts(self):
        """Test live and testnet hosts."""
        assert BinanceAdapter("k", "s").base_url == BINANCE_REST_URL
        assert BinanceAdapter("k", "s", testnet=True).base_url == BINANCE_TESTNET_URL

    @pytest.mark.asyncio
    async def test_open_long_with_leverage(self, adapter):
        """Test leverage is set before a market long order."""
        send = AsyncMock(side_effect=[
            reply({"leverage": 10, "maxNotionalValue": "1000000", "symbol": "BTCUSDT"}),
            reply(ORDER_ACK),
        ])

        with patch.object(adapter, "_send", send):
            response = await adapter.open_long_position("BTCUSDT", 0.01, leverage=10)

        assert send.await_count == 2
        leverage_call, order_call = send.await_args_list

        assert leverage_call.args[0] == "POST"
        assert path_of(leverage_call) == "/fapi/v1/leverage"
        assert query_of(leverage_call)["leverage"] == "10"

        order = query_of(order_call)
        assert path_of(order_call) == "/fapi/v1/order"
        assert order["side"] == "BUY"
        assert order["positionSide"] == "LONG"
        assert order["type"] == "MARKET"
        assert order["quantity"] == "0.01"
        assert "price" not in order
        assert "timeInForce" not in order

        assert response.order_id == "283194212"
        assert response.side == OrderSide.BUY
        assert response.position_side == PositionSide.LONG
        assert response.type == OrderType.MARKET
        assert response.status == "new"
        assert response.quantity == 0.01
        assert response.timestamp == NOW_MS

    @pytest.mark.asyncio
    async def test_small_quantity_on_query_string(self, adapter):
        """Test small quantities and prices are sent without exponents."""
        send = AsyncMock(return_value=reply(dict(ORDER_ACK, type="LIMIT", price="0.0000089")))

        with patch.object(adapter, "_send", send):
            await adapter.open_long_position("1000PEPEUSDT", 0.00005, price=0.0000089)

        order = query_of(send.await_args)
        assert order["quantity"] == "0.00005"
        assert order["price"] == "0.0000089"
        assert "e-" not in urlsplit(send.await_args.args[1]).query.split("&signature=")[0]

    @pytest.mark.asyncio
    async def test_signed_request(self, adapter):
        """Test the signature is appended last and the key sent as a header."""
        send = AsyncMock(return_value=reply(ORDER_ACK))

        with patch.object(adapter, "_send", send):
            await adapter.open_long_position("BTCUSDT", 0.01)

        method, url, headers, body = send.await_args.args
        query = urlsplit(url).query
        assert query.rsplit("&", 1)[1].startswith("signature=")
        assert f"timestamp={NOW_MS}" in query
        assert headers == {"X-MBX-APIKEY": API_KEY}
        assert body is None

    @pytest.mark.asyncio
    async def test_open_short_limit(self, adapter):
        """Test a limit short without leverage is one request."""
        ack = dict(ORDER_ACK, side="SELL", positionSide="SHORT", type="LIMIT", price="3000.5")
        send = AsyncMock(return_value=reply(ack))

        with patch.object(adapter, "_send", send):
            response = await adapter.open_short_position("ETHUSDT", 1, price=3000.5)

        assert send.await_count == 1
        order = query_of(send.await_args)
        assert order["type"] == "LIMIT"
        assert order["price"] == "3000.5"
        assert order["timeInForce"] == "GTC"
        assert response.price == 3000.5
        assert response.position_side == PositionSide.SHORT

    @pytest.mark.asyncio
    async def test_close_short_never_sets_leverage(self, adapter):
        """Test closing a short buys against the short leg."""
        ack = dict(ORDER_ACK, positionSide="SHORT")
        send = AsyncMock(return_value=reply(ack))

        with patch.object(adapter, "_send", send):
            await adapter.close_short_position("BTCUSDT", 0.01)

        assert send.await_count == 1
        order = query_of(send.await_args)
        assert order["side"] == "BUY"
        assert order["positionSide"] == "SHORT"

    @pytest.mark.asyncio
    async def test_order_failure_after_leverage(self, adapter):
        """Test the partial-failure outcome keeps the order error."""
        send = AsyncMock(side_effect=[
            reply({"leverage": 20, "symbol": "BTCUSDT"}),
            reply({"code": -2019, "msg": "Margin is insufficient."}, status=400),
        ])

        with patch.object(adapter, "_send", send):
            with pytest.raises(LeverageAppliedOrderError) as exc_info:
                await adapter.open_long_position("BTCUSDT", 1, leverage=20)

        err = exc_info.value
        assert err.leverage == 20
        assert err.symbol == "BTCUSDT"
        assert err.order_error.error.category == ErrorCategory.INSUFFICIENT_MARGIN
        assert err.__cause__ is err.order_error
        assert "Margin is insufficient." in str(err)

    @pytest.mark.asyncio
    async def test_leverage_failure_places_no_order(self, adapter):
        """Test a rejected leverage change stops the workflow."""
        send = AsyncMock(return_value=reply({"code": -4028, "msg": "Leverage 200 is not valid"}, status=400))

        with patch.object(adapter, "_send", send):
            with pytest.raises(ExchangeException) as exc_info:
                await adapter.open_long_position("BTCUSDT", 1, leverage=200)

        assert not isinstance(exc_info.value, LeverageAppliedOrderError)
        assert send.await_count == 1
        assert exc_info.value.error.http_status == 400

    @pytest.mark.asyncio
    async def test_order_logged_without_credentials(self, adapter, caplog):
        """Test order logs never contain the secret or full API key."""
        send = AsyncMock(return_value=reply(ORDER_ACK))

        with caplog.at_level(logging.DEBUG, logger="exchange_gateway"):
            with patch.object(adapter, "_send", send):
                await adapter.open_long_position("BTCUSDT", 0.01)

        assert "ORDER:" in caplog.text
        assert SECRET_KEY not in caplog.text
        assert API_KEY not in caplog.text


# ============================================================
# ACCOUNT TESTS
# ============================================================

class TestBinanceAccount:
    """Tests for balances and equity."""

    ACCOUNT = {
        "totalWalletBalance": "1000.00000000",
        "assets": [
            {
                "asset": "USDT",
                "availableBalance": "900.00000000",
                "initialMargin": "100.00000000",
                "walletBalance": "1000.00000000",
            },
        ],
    }

    @pytest.mark.asyncio
    async def test_single_usdt_balance(self, adapter):
        """Test one USDT asset maps to one balance record."""
        with patch.object(adapter, "_send", AsyncMock(return_value=reply(self.ACCOUNT))):
            balances = await adapter.get_account_balance()

        assert balances == [AccountBalance(asset="USDT", free=900.0, locked=100.0, total=1000.0)]

    @pytest.mark.asyncio
    async def test_total_asset_value(self, adapter):
        """Test total equity is the wallet balance."""
        send = AsyncMock(return_value=reply(self.ACCOUNT))

        with patch.object(adapter, "_send", send):
            assert await adapter.get_total_asset_value() == 1000.0

        assert path_of(send.await_args) == "/fapi/v2/account"

    @pytest.mark.asyncio
    async def test_total_asset_value_absent(self, adapter):
        """Test a missing total reports zero."""
        with patch.object(adapter, "_send", AsyncMock(return_value=reply({"assets": []}))):
            assert await adapter.get_total_asset_value() == 0.0

    @pytest.mark.asyncio
    async def test_no_assets(self, adapter):
        """Test an account without assets yields an empty list."""
        with patch.object(adapter, "_send", AsyncMock(return_value=reply({}))):
            assert await adapter.get_account_balance() == []

    @pytest.mark.asyncio
    async def test_unparseable_balance(self, adapter):
        """Test a non-numeric balance is a hard format error."""
        account = {"assets": [dict(self.ACCOUNT["assets"][0], walletBalance="n/a")]}

        with patch.object(adapter, "_send", AsyncMock(return_value=reply(account))):
            with pytest.raises(ResponseFormatError):
                await adapter.get_account_balance()

    @pytest.mark.asyncio
    async def test_invalid_json(self, adapter):
        """Test a non-JSON success body is a format error."""
        with patch.object(adapter, "_send", AsyncMock(return_value=(200, "<html>"))):
            with pytest.raises(ResponseFormatError):
                await adapter.get_account_balance()


# ============================================================
# PROFIT TESTS
# ============================================================

def position_row(side, amount, pnl, symbol="BTCUSDT"):
    return {
        "symbol": symbol,
        "positionSide": side,
        "positionAmt": amount,
        "unRealizedProfit": pnl,
        "entryPrice": "50000.0",
    }


class TestBinanceProfit:
    """Tests for position profit."""

    HEDGED = [
        position_row("LONG", "0.010", "12.5"),
        position_row("SHORT", "0.000", "0.0"),
    ]

    @pytest.mark.asyncio
    async def test_position_profit_by_side(self, adapter):
        """Test the requested hedge leg is selected."""
        send = AsyncMock(return_value=reply(self.HEDGED))

        with patch.object(adapter, "_send", send):
            profit = await adapter.get_position_profit("BTCUSDT", PositionSide.LONG)

        assert query_of(send.await_args)["symbol"] == "BTCUSDT"
        assert profit.unrealized_profit == 12.5
        assert profit.realized_profit == 0
        assert profit.total_profit == profit.unrealized_profit + profit.realized_profit
        assert profit.position_side == PositionSide.LONG

    @pytest.mark.asyncio
    async def test_position_profit_prefers_open_leg(self, adapter):
        """Test an unspecified side picks the leg with size."""
        rows = [position_row("SHORT", "0.000", "0.0"), position_row("LONG", "0.010", "3.0")]

        with patch.object(adapter, "_send", AsyncMock(return_value=reply(rows))):
            profit = await adapter.get_position_profit("BTCUSDT")

        assert profit.position_side == PositionSide.LONG
        assert profit.unrealized_profit == 3.0

    @pytest.mark.asyncio
    async def test_no_position_is_zero_filled(self, adapter):
        """Test a symbol without position returns zeros rather than raising."""
        with patch.object(adapter, "_send", AsyncMock(return_value=reply([]))):
            profit = await adapter.get_position_profit("ETHUSDT", PositionSide.SHORT)

        assert profit.symbol == "ETHUSDT"
        assert profit.total_profit == 0
        assert profit.position_side == PositionSide.SHORT

    @pytest.mark.asyncio
    async def test_all_profits_skip_zero_size(self, adapter):
        """Test zero-size positions are filtered out."""
        rows = self.HEDGED + [position_row("BOTH", "-2", "-4.25", symbol="ETHUSDT")]

        with patch.object(adapter, "_send", AsyncMock(return_value=reply(rows))):
            profits = await adapter.get_all_profits()

        assert [(p.symbol, p.position_side) for p in profits] == [
            ("BTCUSDT", PositionSide.LONG),
            ("ETHUSDT", None),
        ]
        assert profits[1].total_profit == -4.25


# ============================================================
# TRANSFER TESTS
# ============================================================

class TestBinanceTransfers:
    """Tests for unsupported transfer operations."""

    @pytest.mark.asyncio
    async def test_transfer_not_supported(self, adapter):
        """Test transfers report not supported without a request."""
        send = AsyncMock()

        with patch.object(adapter, "_send", send):
            result = await adapter.transfer_funds("USDT", 100, AccountType.FUNDING, AccountType.TRADING)

        assert result.success is False
        assert result.not_supported is True
        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_withdrawal_not_supported(self, adapter):
        """Test internal withdrawals report not supported."""
        send = AsyncMock()

        with patch.object(adapter, "_send", send):
            result = await adapter.withdraw_to_exchange_account("USDT", 10, "friend@example.com")

        assert result.success is False
        assert result.not_supported is True
        send.assert_not_awaited()


# ============================================================
# TRANSPORT TESTS
# ============================================================

class TestBinanceTransport:
    """Tests for HTTP and network failure handling."""

    @pytest.mark.asyncio
    async def test_http_error_without_code(self, adapter):
        """Test a plain non-2xx body keeps status and raw body."""
        with patch.object(adapter, "_send", AsyncMock(return_value=(502, "Bad Gateway"))):
            with pytest.raises(ExchangeException) as exc_info:
                await adapter.get_all_profits()

        error = exc_info.value.error
        assert error.http_status == 502
        assert error.raw_body == "Bad Gateway"
        assert error.category == ErrorCategory.EXCHANGE_ERROR

    @pytest.mark.asyncio
    async def test_http_error_with_code(self, adapter):
        """Test a Binance error body is mapped."""
        body = {"code": -2015, "msg": "Invalid API-key, IP, or permissions for action."}

        with patch.object(adapter, "_send", AsyncMock(return_value=reply(body, status=401))):
            with pytest.raises(ExchangeException) as exc_info:
                await adapter.get_account_balance()

        error = exc_info.value.error
        assert error.category == ErrorCategory.AUTHENTICATION
        assert error.code == "BINANCE_-2015"
        assert error.message.startswith("HTTP 401:")

    @pytest.mark.asyncio
    async def test_public_request_is_unsigned(self, adapter):
        """Test public requests carry neither signature nor key."""
        send = AsyncMock(return_value=reply({}))

        with patch.object(adapter, "_send", send):
            await adapter._request("GET", "/fapi/v1/ping", signed=False)

        method, url, headers, body = send.await_args.args
        assert url == f"{BINANCE_REST_URL}/fapi/v1/ping"
        assert headers == {}

    @pytest.mark.asyncio
    async def test_injected_session(self):
        """Test a caller-owned session is used for the request."""
        response = MagicMock()
        response.status = 200
        response.text = AsyncMock(return_value=json.dumps({"assets": []}))
        session = MagicMock()
        session.request.return_value.__aenter__.return_value = response

        adapter = BinanceAdapter(API_KEY, SECRET_KEY, session=session)
        assert await adapter.get_account_balance() == []

        method, url = session.request.call_args.args
        assert method == "GET"
        assert url.startswith(f"{BINANCE_REST_URL}/fapi/v2/account?")

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test connection failures become network errors."""
        session = MagicMock()
        session.request.side_effect = aiohttp.ClientConnectionError("connection refused")
        adapter = BinanceAdapter(API_KEY, SECRET_KEY, session=session)

        with pytest.raises(ExchangeException) as exc_info:
            await adapter.get_account_balance()

        assert exc_info.value.error.category == ErrorCategory.NETWORK
        assert exc_info.value.error.is_retryable()

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test transport timeouts become timeout errors."""
        session = MagicMock()
        session.request.side_effect = asyncio.TimeoutError()
        adapter = BinanceAdapter(API_KEY, SECRET_KEY, session=session)

        with pytest.raises(ExchangeException) as exc_info:
            await adapter.get_total_asset_value()

        assert exc_info.value.error.category == ErrorCategory.TIMEOUT
        assert "30000ms" in exc_info.value.error.message


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
