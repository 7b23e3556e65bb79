"""
Canonical Type Tests.

============================================================
PURPOSE
============================================================
Construction-time validation and record serialization of the
exchange-agnostic types.

============================================================
"""

import dataclasses

import pytest

from exchange_gateway.types import (
    AccountBalance,
    OrderParams,
    OrderResponse,
    OrderSide,
    OrderType,
    PositionSide,
    ProfitInfo,
    TransferResponse,
    WithdrawalResponse,
)


# ============================================================
# ORDER PARAMS
# ============================================================

class TestOrderParams:
    """Tests for OrderParams invariants."""

    def test_market_order_without_price(self):
        """Test a market order is valid without a price."""
        params = OrderParams(
            symbol="BTCUSDT",
            side=OrderSide.BUY,
            type=OrderType.MARKET,
            quantity=0.01,
            position_side=PositionSide.LONG,
        )

        assert params.price is None
        assert params.is_limit is False

    def test_limit_order_requires_price(self):
        """Test a limit order without price is rejected."""
        with pytest.raises(ValueError):
            OrderParams(
                symbol="BTCUSDT",
                side=OrderSide.BUY,
                type=OrderType.LIMIT,
                quantity=0.01,
            )

    def test_market_order_rejects_price(self):
        """Test a market order carrying a price is rejected."""
        with pytest.raises(ValueError):
            OrderParams(
                symbol="BTCUSDT",
                side=OrderSide.SELL,
                type=OrderType.MARKET,
                quantity=0.01,
                price=50000.0,
            )

    @pytest.mark.parametrize("quantity", [0, -1.5])
    def test_non_positive_quantity_rejected(self, quantity):
        """Test quantity must be strictly positive."""
        with pytest.raises(ValueError):
            OrderParams(
                symbol="BTCUSDT",
                side=OrderSide.BUY,
                type=OrderType.MARKET,
                quantity=quantity,
            )

    def test_non_positive_limit_price_rejected(self):
        """Test limit price must be strictly positive."""
        with pytest.raises(ValueError):
            OrderParams(
                symbol="BTCUSDT",
                side=OrderSide.BUY,
                type=OrderType.LIMIT,
                quantity=1,
                price=0,
            )

    @pytest.mark.parametrize("leverage", [0, -3, 2.5, True])
    def test_invalid_leverage_rejected(self, leverage):
        """Test leverage must be a positive integer."""
        with pytest.raises(ValueError):
            OrderParams(
                symbol="BTCUSDT",
                side=OrderSide.BUY,
                type=OrderType.MARKET,
                quantity=1,
                leverage=leverage,
            )

    def test_params_are_immutable(self):
        """Test canonical records cannot be mutated."""
        params = OrderParams(
            symbol="ETHUSDT",
            side=OrderSide.SELL,
            type=OrderType.LIMIT,
            quantity=1,
            price=3000.0,
        )

        with pytest.raises(dataclasses.FrozenInstanceError):
            params.quantity = 2


# ============================================================
# RECORDS
# ============================================================

class TestRecords:
    """Tests for result records."""

    def test_profit_total_is_sum(self):
        """Test total profit equals unrealized + realized."""
        profit = ProfitInfo.from_parts("BTC-USDT-SWAP", 12.5, -2.5, PositionSide.SHORT)

        assert profit.total_profit == pytest.approx(10.0)
        assert profit.position_side == PositionSide.SHORT

    def test_empty_profit_is_zero_filled(self):
        """Test a missing position yields a zero-filled record."""
        profit = ProfitInfo.empty("ETHUSDT", PositionSide.LONG)

        assert profit.unrealized_profit == 0
        assert profit.realized_profit == 0
        assert profit.total_profit == 0
        assert profit.symbol == "ETHUSDT"

    def test_order_response_to_dict(self):
        """Test order response serializes with camelCase keys."""
        response = OrderResponse(
            order_id="123",
            symbol="BTCUSDT",
            status="new",
            quantity=0.01,
            side=OrderSide.BUY,
            type=OrderType.MARKET,
            timestamp=1700000000000,
            price=0.0,
            position_side=None,
        )

        data = response.to_dict()

        assert data["orderId"] == "123"
        assert data["positionSide"] is None
        assert data["side"] == "buy"
        assert data["type"] == "market"

    def test_balance_total_is_not_recomputed(self):
        """Test balance values pass through unchanged."""
        balance = AccountBalance(asset="USDT", free=900.0, locked=100.0, total=1005.0)

        assert balance.to_dict()["total"] == 1005.0

    def test_transfer_outcomes(self):
        """Test failed and unsupported transfer outcomes."""
        failed = TransferResponse.failed("insufficient balance")
        unsupported = TransferResponse.unsupported("not available")

        assert failed.success is False
        assert failed.not_supported is False
        assert unsupported.success is False
        assert unsupported.not_supported is True
        assert unsupported.to_dict()["notSupported"] is True

    def test_withdrawal_outcome(self):
        """Test successful withdrawal record."""
        response = WithdrawalResponse(success=True, withdrawal_id="w-1", fee=0.0)

        assert response.to_dict() == {
            "success": True,
            "withdrawalId": "w-1",
            "fee": 0.0,
            "error": None,
            "notSupported": False,
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
