"""Configuration providers."""

from .provider import ConfigProvider, EnvConfigProvider, NodeConsoleConfig

__all__ = ["ConfigProvider", "EnvConfigProvider", "NodeConsoleConfig"]
