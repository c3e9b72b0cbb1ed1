"""
LLM service manager: provider selection, fallback and per-provider metrics.

Providers are tried in order: the configured primary first, then the fallback
order, then any remaining registered provider. Unavailable providers are
skipped. A provider failure is recorded and the next provider is tried; when
none succeeds, AllProvidersFailed carries every recorded error. Metrics live in
an explicit ProviderMetrics registry owned by the manager or passed per call.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from app.exceptions import AllProvidersFailed
from app.llm.provider import AnalysisResult, ReviewAnalysisProvider

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_ORDER = ("ollama", "deepseek", "openai")
SLOW_RESPONSE_SECONDS = 30.0
SLOW_RESPONSE_PENALTY = 0.8


@dataclass
class ProviderMetrics:
    """Running counters for one provider (in-process, not persisted)."""

    success_count: int = 0
    failure_count: int = 0
    total_duration: float = 0.0
    total_cost: float = 0.0
    last_success: datetime | None = None
    last_failure: datetime | None = None
    last_error: str | None = None

    @property
    def total_requests(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Percent of successful calls; 100 before any call was made."""
        if self.total_requests == 0:
            return 100.0
        return self.success_count / self.total_requests * 100

    @property
    def avg_response_time(self) -> float:
        if self.success_count == 0:
            return 0.0
        return self.total_duration / self.success_count

    @property
    def health_score(self) -> float:
        score = self.success_rate
        if self.avg_response_time > SLOW_RESPONSE_SECONDS:
            score *= SLOW_RESPONSE_PENALTY
        return score

    def record_success(self, duration: float, cost: float) -> None:
        self.success_count += 1
        self.total_duration += duration
        self.total_cost += cost
        self.last_success = datetime.now(UTC)

    def record_failure(self, error: str) -> None:
        self.failure_count += 1
        self.last_failure = datetime.now(UTC)
        self.last_error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "total_requests": self.total_requests,
            "success_rate": round(self.success_rate, 2),
            "avg_response_time": round(self.avg_response_time, 3),
            "health_score": round(self.health_score, 2),
            "total_cost": round(self.total_cost, 6),
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
            "last_error": self.last_error,
        }


class LLMServiceManager:
    """Runs review analysis against the best available provider with fallback."""

    def __init__(
        self,
        providers: dict[str, ReviewAnalysisProvider],
        primary: str = "openai",
        fallback_order: list[str] | tuple[str, ...] = DEFAULT_FALLBACK_ORDER,
    ) -> None:
        self.providers = dict(providers)
        self.primary = primary
        self.fallback_order = list(fallback_order)
        self.metrics: dict[str, ProviderMetrics] = {key: ProviderMetrics() for key in self.providers}

    def _ordered_keys(self) -> list[str]:
        ordered: list[str] = []
        for key in [self.primary, *self.fallback_order, *self.providers]:
            if key in self.providers and key not in ordered:
                ordered.append(key)
        return ordered

    def _is_available(self, key: str) -> bool:
        try:
            return self.providers[key].is_available()
        except Exception as exc:
            logger.warning("Availability check for %s raised: %s", key, exc)
            return False

    def get_available_providers(self) -> list[str]:
        """Provider keys in try order, unavailable ones removed."""
        return [key for key in self._ordered_keys() if self._is_available(key)]

    def analyze_reviews(
        self,
        reviews: list[dict[str, Any]],
        metrics: dict[str, ProviderMetrics] | None = None,
    ) -> tuple[AnalysisResult, dict[str, ProviderMetrics]]:
        """Analyze with the first provider that succeeds.

        ``metrics`` is the registry updated by this call; the manager's own
        registry is used when omitted. Returns the result and that registry.

        Raises:
            AllProvidersFailed: No provider was available or every one failed.
        """
        registry = self.metrics if metrics is None else metrics
        available = self.get_available_providers()
        if not available:
            logger.error("No LLM providers are available for %d reviews", len(reviews))
            raise AllProvidersFailed()

        errors: dict[str, str] = {}
        for key in available:
            provider = self.providers[key]
            provider_metrics = registry.setdefault(key, ProviderMetrics())
            start = time.monotonic()
            try:
                result = provider.analyze_reviews(reviews)
            except Exception as exc:
                provider_metrics.record_failure(str(exc))
                errors[key] = str(exc)
                logger.warning("Provider %s failed, trying next: %s", key, exc)
                continue

            duration = time.monotonic() - start
            cost = float(result.get("total_cost") or 0.0)
            provider_metrics.record_success(duration, cost)
            logger.info(
                "Provider %s analyzed %d reviews in %.2fs (cost=$%.6f)",
                key,
                len(reviews),
                duration,
                cost,
            )
            return result, registry

        logger.error("All LLM providers failed: %s", errors)
        raise AllProvidersFailed(errors)

    def get_optimal_provider(self) -> str | None:
        """Available provider with the highest health score (ties keep try order)."""
        best: str | None = None
        best_score = -1.0
        for key in self.get_available_providers():
            score = self.metrics.setdefault(key, ProviderMetrics()).health_score
            if score > best_score:
                best, best_score = key, score
        return best

    def get_cost_comparison(self, review_count: int) -> dict[str, dict[str, Any]]:
        comparison: dict[str, dict[str, Any]] = {}
        for key in self._ordered_keys():
            provider = self.providers[key]
            comparison[provider.get_provider_name()] = {
                "cost": provider.get_estimated_cost(review_count),
                "available": self._is_available(key),
                "health_score": self.metrics.setdefault(key, ProviderMetrics()).health_score,
            }
        return comparison

    def switch_provider(self, key: str) -> bool:
        """Make ``key`` the primary provider if it is registered and available."""
        if key not in self.providers:
            logger.warning("Cannot switch to unknown provider %s", key)
            return False
        if not self._is_available(key):
            logger.warning("Cannot switch to unavailable provider %s", key)
            return False
        logger.info("Switching primary LLM provider %s -> %s", self.primary, key)
        self.primary = key
        return True

    def get_provider_metrics(self) -> dict[str, dict[str, Any]]:
        return {key: self.metrics.setdefault(key, ProviderMetrics()).to_dict() for key in self.providers}
