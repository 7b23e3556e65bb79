"""
Exchange Gateway - Multi-Exchange Service.

============================================================
PURPOSE
============================================================
Holds one adapter per configured exchange and routes calls
by exchange identifier.

CRITICAL CONSTRAINTS:
- Adapters are created once, through the factory
- This is the only layer that reads configuration
- Calls are delegated unchanged; errors propagate

============================================================
"""

import logging
from typing import Dict, List, Mapping, Optional

from .adapters.base import ExchangeAPI
from .adapters.errors import ExchangeConfigurationError
from .adapters.factory import AdapterFactory
from .config import load_credentials
from .types import (
    AccountBalance,
    AccountType,
    OrderResponse,
    PositionSide,
    ProfitInfo,
    TransferResponse,
    WithdrawalResponse,
)


logger = logging.getLogger(__name__)


class ExchangeService:
    """
    Routes contract operations to the adapter for an exchange id.

    Example:
        service = ExchangeService.from_env()
        await service.open_long_position("binance", "BTCUSDT", 0.01, leverage=10)
    """

    def __init__(self, adapters: Dict[str, ExchangeAPI]):
        self._adapters = {key.lower(): adapter for key, adapter in adapters.items()}

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "ExchangeService":
        """
        Build adapters for every exchange with an API key configured.

        Args:
            env: Mapping to read instead of os.environ
            dotenv_path: .env file to load first
        """
        adapters = {}
        for exchange_id in AdapterFactory.list_supported():
            credentials = load_credentials(exchange_id, env=env, dotenv_path=dotenv_path)
            if credentials is None:
                logger.info(f"No credentials configured for {exchange_id}, skipping")
                continue
            adapters[exchange_id] = AdapterFactory.create(exchange_id, credentials)

        return cls(adapters)

    def supported_exchanges(self) -> List[str]:
        return sorted(self._adapters)

    def get_exchange(self, exchange_id: str) -> ExchangeAPI:
        """
        Get the adapter for an exchange.

        Raises:
            ExchangeConfigurationError: If the exchange is not configured
        """
        adapter = self._adapters.get(exchange_id.lower())
        if adapter is None:
            raise ExchangeConfigurationError(f"Exchange {exchange_id} not supported")
        return adapter

    # ============================================================
    # TRADING
    # ============================================================

    async def open_long_position(
        self,
        exchange_id: str,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        leverage: Optional[int] = None,
    ) -> OrderResponse:
        return await self.get_exchange(exchange_id).open_long_position(
            symbol, quantity, price, leverage,
        )

    async def open_short_position(
        self,
        exchange_id: str,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        leverage: Optional[int] = None,
    ) -> OrderResponse:
        return await self.get_exchange(exchange_id).open_short_position(
            symbol, quantity, price, leverage,
        )

    async def close_long_position(
        self,
        exchange_id: str,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
    ) -> OrderResponse:
        return await self.get_exchange(exchange_id).close_long_position(symbol, quantity, price)

    async def close_short_position(
        self,
        exchange_id: str,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
    ) -> OrderResponse:
        return await self.get_exchange(exchange_id).close_short_position(symbol, quantity, price)

    # ============================================================
    # ACCOUNT
    # ============================================================

    async def get_account_balance(self, exchange_id: str) -> List[AccountBalance]:
        return await self.get_exchange(exchange_id).get_account_balance()

    async def get_total_asset_value(self, exchange_id: str) -> float:
        return await self.get_exchange(exchange_id).get_total_asset_value()

    # ============================================================
    # PROFIT
    # ============================================================

    async def get_position_profit(
        self,
        exchange_id: str,
        symbol: str,
        position_side: Optional[PositionSide] = None,
    ) -> ProfitInfo:
        return await self.get_exchange(exchange_id).get_position_profit(symbol, position_side)

    async def get_all_profits(self, exchange_id: str) -> List[ProfitInfo]:
        return await self.get_exchange(exchange_id).get_all_profits()

    # ============================================================
    # INTERNAL TRANSFERS
    # ============================================================

    async def transfer_funds(
        self,
        exchange_id: str,
        currency: str,
        amount: float,
        from_account: AccountType,
        to_account: AccountType,
    ) -> TransferResponse:
        return await self.get_exchange(exchange_id).transfer_funds(
            currency, amount, from_account, to_account,
        )

    async def withdraw_to_exchange_account(
        self,
        exchange_id: str,
        currency: str,
        amount: float,
        to_account: str,
        memo: Optional[str] = None,
    ) -> WithdrawalResponse:
        return await self.get_exchange(exchange_id).withdraw_to_exchange_account(
            currency, amount, to_account, memo,
        )
