"""Exceptions raised by hyperliquidx."""


class HyperliquidXError(Exception):
    """Base class for all hyperliquidx errors."""


class FetchCancelled(HyperliquidXError):
    """A fetch noticed its cancellation token fired. Never surfaced as state."""


class ConfigurationError(HyperliquidXError, KeyError):
    """A push payload is missing something the caller configured us to read."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
