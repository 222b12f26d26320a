"""Configuration loading."""

from .settings import BinanceConfig, OkxConfig, Settings, TelegramConfig

__all__ = ["BinanceConfig", "OkxConfig", "Settings", "TelegramConfig"]
