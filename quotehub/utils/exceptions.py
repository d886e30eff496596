"""
QuoteHub - Custom Exceptions
Caller-facing exceptions with HTTP error handling.

Provider-specific failures never escape the orchestrator; they are summarized
into AllProvidersFailedError. See data_providers/adapters/base.py for the
provider-level taxonomy.
"""
from dataclasses import dataclass
from typing import Optional, Any, Dict
from fastapi import status


@dataclass(frozen=True)
class ProviderFailure:
    """Last error reported by one provider during a get-quotes call."""
    provider: str
    kind: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"provider": self.provider, "kind": self.kind, "message": self.message}


class QuoteHubException(Exception):
    """Base exception for QuoteHub."""

    def __init__(
        self,
        message: str = "An error occurred",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


# =========================
# Quote Request Exceptions
# =========================

class QuoteRequestError(QuoteHubException):
    """Errors surfaced to callers of get_quotes."""
    pass


class InvalidRequestError(QuoteRequestError):
    """The symbol list is empty or contains unusable symbols."""

    def __init__(self, message: str = "Invalid quote request", invalid_symbols: Optional[list[str]] = None):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            details={"invalid_symbols": invalid_symbols or []},
        )
        self.invalid_symbols = invalid_symbols or []


class AllProvidersFailedError(QuoteRequestError):
    """Every provider was skipped or failed for a request."""

    def __init__(self, symbols: list[str], failures: list[ProviderFailure]):
        self.symbols = symbols
        self.failures = failures
        tried = ", ".join(f.provider for f in failures) or "none"
        super().__init__(
            message=f"All quote providers failed for {', '.join(symbols)} (tried: {tried})",
            code="ALL_PROVIDERS_FAILED",
            details={
                "symbols": symbols,
                "providers": [f.to_dict() for f in failures],
            },
        )


class DeadlineExceededError(QuoteRequestError):
    """The caller's deadline passed before any provider produced quotes."""

    def __init__(self, deadline: float, failures: Optional[list[ProviderFailure]] = None):
        self.deadline = deadline
        self.failures = failures or []
        super().__init__(
            message=f"Quote request exceeded its {deadline:g}s deadline",
            code="DEADLINE_EXCEEDED",
            details={
                "deadline_seconds": deadline,
                "providers": [f.to_dict() for f in self.failures],
            },
        )


# =========================
# Diagnostics Exceptions
# =========================

class ProviderNotFoundError(QuoteHubException):
    """Provider name is not registered."""

    def __init__(self, provider: str = ""):
        message = f"Provider '{provider}' not found" if provider else "Provider not found"
        super().__init__(message=message, code="PROVIDER_NOT_FOUND")


# =========================
# HTTP Exception Helpers
# =========================

STATUS_BY_EXCEPTION: dict[type, int] = {
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
    ProviderNotFoundError: status.HTTP_404_NOT_FOUND,
    AllProvidersFailedError: status.HTTP_503_SERVICE_UNAVAILABLE,
    DeadlineExceededError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_code_for(exc: QuoteHubException) -> int:
    """Map a QuoteHub exception to an HTTP status code."""
    for exc_type, code in STATUS_BY_EXCEPTION.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
