"""
Exchange Service and Configuration Tests.

============================================================
PURPOSE
============================================================
Credential loading from the environment and routing of
contract operations by exchange id.

============================================================
"""

import os
from unittest.mock import AsyncMock, patch

import pytest

from exchange_gateway import (
    AccountType,
    BinanceAdapter,
    ExchangeConfigurationError,
    ExchangeService,
    OKXAdapter,
    PositionSide,
    load_credentials,
)


ENV = {
    "BINANCE_API_KEY": "bkey",
    "BINANCE_SECRET_KEY": "bsecret",
    "BINANCE_TESTNET": "true",
    "OKX_API_KEY": "okey",
    "OKX_SECRET_KEY": "osecret",
    "OKX_PASSPHRASE": "opass",
}


# ============================================================
# CONFIGURATION
# ============================================================

class TestLoadCredentials:
    """Tests for load_credentials."""

    def test_binance_from_mapping(self):
        """Test Binance credentials and testnet flag."""
        creds = load_credentials("binance", env=ENV)

        assert creds.api_key == "bkey"
        assert creds.secret_key == "bsecret"
        assert creds.passphrase is None
        assert creds.testnet is True

    def test_okx_from_mapping(self):
        """Test OKX credentials include the passphrase."""
        creds = load_credentials("okx", env=ENV)

        assert creds.passphrase == "opass"
        assert creds.testnet is False

    def test_unconfigured_exchange(self):
        """Test a missing API key yields no credentials."""
        assert load_credentials("okx", env={"OKX_SECRET_KEY": "x"}) is None

    def test_dotenv_file(self, tmp_path):
        """Test credentials are read from a .env file."""
        dotenv = tmp_path / ".env"
        dotenv.write_text("OKX_API_KEY=file-key\nOKX_SECRET_KEY=file-secret\nOKX_TESTNET=1\n")

        with patch.dict(os.environ, {}):
            for name in ("OKX_API_KEY", "OKX_SECRET_KEY", "OKX_PASSPHRASE", "OKX_TESTNET"):
                os.environ.pop(name, None)

            creds = load_credentials("okx", dotenv_path=str(dotenv))

        assert creds.api_key == "file-key"
        assert creds.testnet is True


# ============================================================
# SERVICE
# ============================================================

class TestExchangeService:
    """Tests for ExchangeService."""

    def test_from_env_builds_configured_exchanges(self):
        """Test one adapter per configured exchange."""
        service = ExchangeService.from_env(env=ENV)

        assert service.supported_exchanges() == ["binance", "okx"]
        assert isinstance(service.get_exchange("binance"), BinanceAdapter)
        assert isinstance(service.get_exchange("okx"), OKXAdapter)

    def test_from_env_skips_unconfigured(self):
        """Test exchanges without an API key are skipped."""
        service = ExchangeService.from_env(env={"BINANCE_API_KEY": "k", "BINANCE_SECRET_KEY": "s"})

        assert service.supported_exchanges() == ["binance"]
        with pytest.raises(ExchangeConfigurationError):
            service.get_exchange("okx")

    def test_from_env_okx_without_passphrase(self):
        """Test a configured OKX key without passphrase is a configuration error."""
        with pytest.raises(ExchangeConfigurationError):
            ExchangeService.from_env(env={"OKX_API_KEY": "k", "OKX_SECRET_KEY": "s"})

    @pytest.mark.asyncio
    async def test_open_long_delegates(self):
        """Test trading calls are routed with arguments unchanged."""
        adapter = AsyncMock()
        service = ExchangeService({"Binance": adapter})

        await service.open_long_position("binance", "BTCUSDT", 0.01, leverage=10)

        adapter.open_long_position.assert_awaited_once_with("BTCUSDT", 0.01, None, 10)

    @pytest.mark.asyncio
    async def test_profit_and_transfer_delegate(self):
        """Test profit and transfer calls are routed."""
        adapter = AsyncMock()
        service = ExchangeService({"okx": adapter})

        await service.get_position_profit("okx", "BTCUSDT", PositionSide.SHORT)
        await service.transfer_funds("okx", "USDT", 5, AccountType.FUNDING, AccountType.TRADING)
        await service.withdraw_to_exchange_account("okx", "USDT", 5, "uid-1")

        adapter.get_position_profit.assert_awaited_once_with("BTCUSDT", PositionSide.SHORT)
        adapter.transfer_funds.assert_awaited_once_with(
            "USDT", 5, AccountType.FUNDING, AccountType.TRADING,
        )
        adapter.withdraw_to_exchange_account.assert_awaited_once_with("USDT", 5, "uid-1", None)

    @pytest.mark.asyncio
    async def test_unknown_exchange(self):
        """Test routing to an unconfigured exchange raises."""
        service = ExchangeService({})

        with pytest.raises(ExchangeConfigurationError):
            await service.get_all_profits("kraken")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
