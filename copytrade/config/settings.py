# copytrade/config/settings.py
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from copytrade.capital.settings import CapitalSettings
from copytrade.execution.settings import ExecutionSettings
from copytrade.ledger.settings import LedgerSettings
from copytrade.notifications.settings import NotificationSettings
from copytrade.orchestrator.settings import OrchestratorSettings
from copytrade.risk.settings import RiskSettings
from copytrade.signals.settings import SignalSourceSettings


class SystemConfig(BaseModel):
    name: str = "Copy Trading Engine"
    version: str = "1.0.0"


class BinanceConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BINANCE_")

    api_key: str = ""
    api_secret: str = ""
    testnet: bool = True


class OkxConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OKX_")

    api_key: str = ""
    api_secret: str = ""
    passphrase: str = ""


class TelegramConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    bot_token: str = ""
    chat_id: str = ""


class Settings(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    signals: SignalSourceSettings = Field(default_factory=SignalSourceSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    capital: CapitalSettings = Field(default_factory=CapitalSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    binance: BinanceConfig = Field(default_factory=BinanceConfig)
    okx: OkxConfig = Field(default_factory=OkxConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file with env var overrides."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict | None = None) -> "Settings":
        """Build settings from plain config data with env var overrides.

        Exchange credentials are only read from the environment; matching keys
        in ``data`` are ignored. TELEGRAM_* values override ``notifications``.
        """
        data = dict(data or {})

        binance = BinanceConfig()
        okx = OkxConfig()
        telegram = TelegramConfig()

        notifications = dict(data.pop("notifications", None) or {})
        if telegram.bot_token:
            notifications["telegram_token"] = telegram.bot_token
        if telegram.chat_id:
            notifications["chat_id"] = telegram.chat_id

        data.pop("binance", None)
        data.pop("okx", None)
        return cls(
            **data,
            notifications=notifications,
            binance=binance,
            okx=okx,
        )

    def exchange_credentials(self) -> dict:
        """Credentials for the configured exchange, as CcxtFuturesClient kwargs."""
        if self.execution.exchange == "okx":
            return {
                "api_key": self.okx.api_key,
                "secret": self.okx.api_secret,
                "password": self.okx.passphrase,
                "testnet": self.execution.testnet,
            }
        return {
            "api_key": self.binance.api_key,
            "secret": self.binance.api_secret,
            "testnet": self.binance.testnet and self.execution.testnet,
        }
