"""
Exchange Gateway - Canonical Types.

============================================================
PURPOSE
============================================================
Exchange-agnostic value types shared by every adapter.

DESIGN PRINCIPLES:
- Immutable records (frozen dataclasses)
- Validation at construction time
- No persistence, no identity beyond field values

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


# ============================================================
# ENUMS
# ============================================================

class OrderSide(Enum):
    """Order side."""
    BUY = "buy"
    SELL = "sell"


class PositionSide(Enum):
    """
    Hedge-mode position side.

    An unset position side (netted, non-hedge mode) is represented
    by None rather than a third member.
    """
    LONG = "long"
    SHORT = "short"


class OrderType(Enum):
    """Order type."""
    MARKET = "market"
    LIMIT = "limit"


class AccountType(Enum):
    """Internal sub-ledger classification used for transfers."""
    FUNDING = "funding"
    """Funding / asset / spot account."""

    TRADING = "trading"
    """Futures / margin trading account."""

    UNIFIED = "unified"
    """Unified account (where the exchange supports one)."""


# ============================================================
# ORDER TYPES
# ============================================================

@dataclass(frozen=True)
class OrderParams:
    """
    Canonical order request.

    Raises ValueError on construction when quantity, price or
    leverage violate the order invariants.
    """

    symbol: str
    """Exchange instrument identifier."""

    side: OrderSide
    """Buy or sell."""

    type: OrderType
    """Market or limit."""

    quantity: float
    """Order quantity, strictly positive."""

    position_side: Optional[PositionSide] = None
    """Hedge-mode leg; None for netted mode."""

    price: Optional[float] = None
    """Limit price. Required for limit orders, forbidden for market orders."""

    leverage: Optional[int] = None
    """Leverage to apply before placing the order."""

    def __post_init__(self):
        if not self.symbol:
            raise ValueError("symbol is required")
        if self.quantity is None or self.quantity <= 0:
            raise ValueError(f"quantity must be > 0, got {self.quantity}")

        if self.type == OrderType.LIMIT:
            if self.price is None:
                raise ValueError("price is required for limit orders")
            if self.price <= 0:
                raise ValueError(f"price must be > 0, got {self.price}")
        elif self.price is not None:
            raise ValueError("price must not be set for market orders")

        if self.leverage is not None:
            if isinstance(self.leverage, bool) or not isinstance(self.leverage, int):
                raise ValueError(f"leverage must be an integer, got {self.leverage!r}")
            if self.leverage <= 0:
                raise ValueError(f"leverage must be > 0, got {self.leverage}")

    @property
    def is_limit(self) -> bool:
        return self.type == OrderType.LIMIT


@dataclass(frozen=True)
class OrderResponse:
    """Normalized result of an order placement."""

    order_id: str
    """Opaque provider-assigned order identifier."""

    symbol: str
    status: str
    """Provider status literal."""

    quantity: float
    side: OrderSide
    type: OrderType

    timestamp: int
    """Epoch milliseconds."""

    price: Optional[float] = None
    position_side: Optional[PositionSide] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase record consumed by storage/HTTP layers."""
        return {
            "orderId": self.order_id,
            "symbol": self.symbol,
            "status": self.status,
            "price": self.price,
            "quantity": self.quantity,
            "side": self.side.value,
            "positionSide": self.position_side.value if self.position_side else None,
            "type": self.type.value,
            "timestamp": self.timestamp,
        }


# ============================================================
# ACCOUNT TYPES
# ============================================================

@dataclass(frozen=True)
class AccountBalance:
    """
    Balance of a single asset.

    Values are passed through from the provider; total is never
    recomputed from free + locked.
    """

    asset: str
    free: float
    locked: float
    total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "free": self.free,
            "locked": self.locked,
            "total": self.total,
        }


@dataclass(frozen=True)
class ProfitInfo:
    """Profit of one position leg."""

    symbol: str
    unrealized_profit: float
    realized_profit: float
    total_profit: float

    position_side: Optional[PositionSide] = None
    """None when the provider reports a netted position."""

    @classmethod
    def from_parts(
        cls,
        symbol: str,
        unrealized_profit: float,
        realized_profit: float,
        position_side: Optional[PositionSide] = None,
    ) -> "ProfitInfo":
        """Build a record whose total is unrealized + realized."""
        return cls(
            symbol=symbol,
            unrealized_profit=unrealized_profit,
            realized_profit=realized_profit,
            total_profit=unrealized_profit + realized_profit,
            position_side=position_side,
        )

    @classmethod
    def empty(
        cls,
        symbol: str,
        position_side: Optional[PositionSide] = None,
    ) -> "ProfitInfo":
        """Zero-filled record for a symbol without a matching position."""
        return cls.from_parts(symbol, 0.0, 0.0, position_side)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "unrealizedProfit": self.unrealized_profit,
            "realizedProfit": self.realized_profit,
            "totalProfit": self.total_profit,
            "positionSide": self.position_side.value if self.position_side else None,
        }


# ============================================================
# TRANSFER OUTCOMES
# ============================================================

@dataclass(frozen=True)
class TransferResponse:
    """Outcome of an internal sub-ledger transfer."""

    success: bool
    transfer_id: Optional[str] = None
    error: Optional[str] = None

    not_supported: bool = False
    """True when the adapter does not implement transfers at all."""

    @classmethod
    def failed(cls, error: str) -> "TransferResponse":
        return cls(success=False, error=error)

    @classmethod
    def unsupported(cls, reason: str) -> "TransferResponse":
        return cls(success=False, error=reason, not_supported=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "transferId": self.transfer_id,
            "error": self.error,
            "notSupported": self.not_supported,
        }


@dataclass(frozen=True)
class WithdrawalResponse:
    """Outcome of an internal account-to-account withdrawal."""

    success: bool
    withdrawal_id: Optional[str] = None
    fee: Optional[float] = None
    error: Optional[str] = None

    not_supported: bool = False
    """True when the adapter does not implement withdrawals at all."""

    @classmethod
    def failed(cls, error: str) -> "WithdrawalResponse":
        return cls(success=False, error=error)

    @classmethod
    def unsupported(cls, reason: str) -> "WithdrawalResponse":
        return cls(success=False, error=reason, not_supported=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "withdrawalId": self.withdrawal_id,
            "fee": self.fee,
            "error": self.error,
            "notSupported": self.not_supported,
        }
