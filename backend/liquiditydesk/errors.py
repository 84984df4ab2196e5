from __future__ import annotations


class ProviderError(Exception):
    """A single provider could not produce a usable quote for a symbol."""

    def __init__(self, provider: str, symbol: str, reason: str) -> None:
        super().__init__(f"{provider} failed for {symbol}: {reason}")
        self.provider = provider
        self.symbol = symbol
        self.reason = reason


class AllProvidersFailed(Exception):
    def __init__(self, symbol: str, errors: list[ProviderError]) -> None:
        reasons = "; ".join(str(error) for error in errors) or "no providers configured"
        super().__init__(f"All providers failed for {symbol}: {reasons}")
        self.symbol = symbol
        self.errors = errors


class TransportError(Exception):
    """Raised by the request interface when it cannot produce a response."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
