"""Domain exceptions for the review analysis pipeline.

Adapters raise these; the LLM service manager catches provider-level errors to
move on to the next provider, and routes/jobs translate the rest into HTTP
status codes or failed session/record states.
"""

from __future__ import annotations


class NullFakeError(Exception):
    """Base class for all application errors."""


class ValidationError(NullFakeError):
    """Malformed ASIN, product URL or submission payload."""

    def __init__(self, message: str, details: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.details = list(details or [])


class ProviderUnavailable(NullFakeError):
    """An LLM provider cannot be used (not configured, unreachable)."""


class ProviderRequestFailed(ProviderUnavailable):
    """An LLM provider answered with a non-2xx status or the request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AllProvidersFailed(ProviderUnavailable):
    """Every configured provider failed or none was available."""

    def __init__(self, errors: dict[str, str] | None = None) -> None:
        self.errors = dict(errors or {})
        if self.errors:
            detail = "; ".join(f"{name}: {err}" for name, err in self.errors.items())
            message = f"All LLM providers failed ({detail})"
        else:
            message = "No LLM providers are available"
        super().__init__(message)


class InvalidResponseFormat(NullFakeError):
    """Provider reply could not be parsed into per-review scores."""


class NoReviewsAvailable(NullFakeError):
    """Analysis was requested for a product without reviews."""


class ScrapingJobFailed(NullFakeError):
    """A BrightData scraping job failed, timed out or returned nothing."""
