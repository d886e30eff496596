"""
Provider Adapters Package

Contains adapters for the supported quote providers.
Each adapter implements the BaseAdapter interface for consistent data access.
"""
from quotehub.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    Quote,
    FetchResult,
    ErrorKind,
    ProviderError,
    NetworkError,
    ProviderTimeoutError,
    AuthenticationError,
    RateLimitExceededError,
    InvalidSymbolError,
    DataParsingError,
    ServiceUnavailableError,
)
from quotehub.data_providers.adapters.twelve_data import (
    TwelveDataAdapter,
    create_twelve_data_config,
)
from quotehub.data_providers.adapters.yahoo_finance import (
    YahooFinanceAdapter,
    create_yahoo_finance_config,
)

__all__ = [
    # Base
    "BaseAdapter",
    "ProviderConfig",
    "Quote",
    "FetchResult",
    # Errors
    "ErrorKind",
    "ProviderError",
    "NetworkError",
    "ProviderTimeoutError",
    "AuthenticationError",
    "RateLimitExceededError",
    "InvalidSymbolError",
    "DataParsingError",
    "ServiceUnavailableError",
    # Providers
    "TwelveDataAdapter",
    "create_twelve_data_config",
    "YahooFinanceAdapter",
    "create_yahoo_finance_config",
]
