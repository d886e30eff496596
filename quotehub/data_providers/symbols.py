"""
Symbol Normalizer

Canonical symbol validation and per-provider suffix mapping.

Canonical symbols are uppercase tickers with an optional exchange suffix
(e.g. "AAPL", "RELIANCE.NS", "BRK.B"). Some providers expect a market suffix
on bare tickers; the normalizer adds it on the way out and strips known
exchange suffixes on the way back.
"""
import re
from typing import Iterable


SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.\-^=]+$")

# Exchange suffixes stripped when mapping provider symbols back
KNOWN_MARKET_SUFFIXES = (".NS", ".BO", ".L", ".TO")


class InvalidSymbolFormat(ValueError):
    """Symbol is empty or contains disallowed characters."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Invalid symbol: {symbol!r}")


def normalize_symbol(symbol: str) -> str:
    """
    Trim and uppercase a symbol, validating its characters.

    Idempotent: normalize_symbol(normalize_symbol(s)) == normalize_symbol(s).

    Raises:
        InvalidSymbolFormat: If the symbol is empty or has disallowed characters
    """
    if not isinstance(symbol, str):
        raise InvalidSymbolFormat(str(symbol))
    cleaned = symbol.strip().upper()
    if not cleaned or not SYMBOL_PATTERN.match(cleaned):
        raise InvalidSymbolFormat(symbol)
    return cleaned


def normalize_symbols(symbols: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Normalize and de-duplicate symbols, preserving first-seen order.

    Returns:
        Tuple of (valid canonical symbols, rejected raw symbols)
    """
    valid: list[str] = []
    invalid: list[str] = []
    seen: set[str] = set()
    for raw in symbols:
        try:
            symbol = normalize_symbol(raw)
        except InvalidSymbolFormat:
            invalid.append(raw)
            continue
        if symbol not in seen:
            seen.add(symbol)
            valid.append(symbol)
    return valid, invalid


def is_bare_ticker(symbol: str) -> bool:
    """True for plain tickers without exchange suffix, index caret or pair marker."""
    return "." not in symbol and not symbol.startswith("^") and "=" not in symbol


class SymbolNormalizer:
    """Maps canonical symbols to a provider's format and back."""

    def __init__(self, market_suffix: str = ""):
        suffix = market_suffix.strip().upper()
        if suffix and not suffix.startswith("."):
            suffix = f".{suffix}"
        self.market_suffix = suffix

    def normalize(self, symbol: str) -> str:
        return normalize_symbol(symbol)

    def to_provider(self, symbol: str) -> str:
        """Canonical to provider format; the market suffix goes on bare tickers only."""
        canonical = normalize_symbol(symbol)
        if self.market_suffix and is_bare_ticker(canonical):
            return f"{canonical}{self.market_suffix}"
        return canonical

    def to_canonical(self, provider_symbol: str) -> str:
        """Provider format back to canonical, stripping known market suffixes."""
        symbol = normalize_symbol(provider_symbol)
        suffixes = set(KNOWN_MARKET_SUFFIXES)
        if self.market_suffix:
            suffixes.add(self.market_suffix)
        for suffix in suffixes:
            if symbol.endswith(suffix) and len(symbol) > len(suffix):
                return symbol[: -len(suffix)]
        return symbol
