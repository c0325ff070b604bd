"""
Centralized AI provider quota tracker.

Single source of truth for how much each hosted model API has left:
- Remaining-request counter per provider (initial 100, low-watermark 5)
- Counter refreshed from rate-limit response headers when present,
  otherwise decremented by one per call
- 429 responses mark the provider exhausted
- Health tracking (consecutive failures -> mark unhealthy)

State lives in process memory. It resets on restart and is not shared
between server instances. Thread-safe.
"""
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Dict, Optional

from loguru import logger

from utils.platform import now_ist


@dataclass
class ProviderQuota:
    """Mutable state for one provider's quota/health."""
    name: str
    initial: int = 100
    threshold: int = 5

    # Mutable state
    remaining: int = 100
    consecutive_failures: int = 0
    total_failures: int = 0
    total_requests: int = 0
    rate_limit_hits: int = 0
    is_healthy: bool = True
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    last_rate_limit: Optional[datetime] = None

    @property
    def is_low(self) -> bool:
        return self.remaining < self.threshold


class APIQuotaManager:
    """Remaining-quota and health tracking for all AI providers.

    Usage:
        quota = APIQuotaManager()
        quota.register("gemini", initial=100, threshold=5)

        if quota.is_low("gemini"):
            ...  # switch before calling
        try:
            response = provider.complete(...)
            quota.record_success("gemini", remaining=response.remaining_requests)
        except RateLimitException:
            quota.record_rate_limit("gemini")
        except Exception:
            quota.record_failure("gemini")
    """

    UNHEALTHY_THRESHOLD = 5       # Consecutive failures before marking unhealthy

    def __init__(self):
        self._providers: Dict[str, ProviderQuota] = {}
        self._lock = Lock()

    def register(self, name: str, initial: int = 100, threshold: int = 5):
        """Register a provider with a fresh counter."""
        with self._lock:
            self._providers[name] = ProviderQuota(
                name=name,
                initial=initial,
                threshold=threshold,
                remaining=initial,
            )
            logger.debug(
                f"Registered provider '{name}': quota={initial}, threshold={threshold}"
            )

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._providers

    def remaining(self, name: str) -> Optional[int]:
        with self._lock:
            pq = self._providers.get(name)
            return pq.remaining if pq else None

    def is_low(self, name: str) -> bool:
        """True when the provider is under its low-watermark."""
        with self._lock:
            pq = self._providers.get(name)
            return pq.is_low if pq else False

    def record_success(self, name: str, remaining: Optional[int] = None) -> Optional[int]:
        """Record a successful call and return the new remaining count.

        `remaining` comes from the provider's rate-limit headers. Without
        it the counter is decremented by one.
        """
        with self._lock:
            pq = self._providers.get(name)
            if not pq:
                return None
            pq.total_requests += 1
            pq.consecutive_failures = 0
            pq.is_healthy = True
            pq.last_success = now_ist().replace(tzinfo=None)
            if remaining is not None:
                pq.remaining = max(0, remaining)
            else:
                pq.remaining = max(0, pq.remaining - 1)
            new_remaining = pq.remaining
            low = pq.is_low

        if low:
            logger.warning(
                f"AI QUOTA WARNING: {name} down to {new_remaining} requests"
            )
        return new_remaining

    def record_failure(self, name: str):
        """Record a failed call. Tracks consecutive failures for health."""
        with self._lock:
            pq = self._providers.get(name)
            if not pq:
                return

            pq.total_requests += 1
            pq.consecutive_failures += 1
            pq.total_failures += 1
            pq.last_failure = now_ist().replace(tzinfo=None)

            if pq.consecutive_failures >= self.UNHEALTHY_THRESHOLD and pq.is_healthy:
                pq.is_healthy = False
                logger.warning(
                    f"Provider '{name}' marked UNHEALTHY after "
                    f"{pq.consecutive_failures} consecutive failures"
                )

    def record_rate_limit(self, name: str):
        """Record a 429. The provider is treated as exhausted."""
        with self._lock:
            pq = self._providers.get(name)
            if not pq:
                return
            pq.total_requests += 1
            pq.total_failures += 1
            pq.rate_limit_hits += 1
            pq.remaining = 0
            pq.last_rate_limit = now_ist().replace(tzinfo=None)

        logger.warning(f"Rate limit hit for '{name}'. Marked exhausted")

    def reset(self, name: Optional[str] = None):
        """Restore counters to their initial values (one provider or all)."""
        with self._lock:
            if name is None:
                targets = list(self._providers.values())
            else:
                targets = [self._providers[name]] if name in self._providers else []
            for pq in targets:
                pq.remaining = pq.initial
                pq.consecutive_failures = 0
                pq.is_healthy = True
        logger.info(f"Quota reset: {name or 'all providers'}")

    def get_usage(self) -> Dict[str, Dict]:
        """Usage stats for all providers."""
        with self._lock:
            result = {}
            for name, pq in self._providers.items():
                result[name] = {
                    "remaining": pq.remaining,
                    "initial": pq.initial,
                    "threshold": pq.threshold,
                    "low": pq.is_low,
                    "healthy": pq.is_healthy,
                    "consecutive_failures": pq.consecutive_failures,
                    "total_requests": pq.total_requests,
                    "total_failures": pq.total_failures,
                    "rate_limit_hits": pq.rate_limit_hits,
                }
            return result

    def format_health_report(self) -> str:
        """Format provider health for the CLI status command."""
        usage = self.get_usage()
        if not usage:
            return ""

        lines = [
            "-" * 60,
            "  AI PROVIDER HEALTH",
            "-" * 60,
        ]
        for name, stats in usage.items():
            status = "OK" if stats["healthy"] else "UNHEALTHY"
            if stats["remaining"] == 0:
                status = "EXHAUSTED"
            elif stats["low"]:
                status = "LOW"
            lines.append(
                f"  {name:10s}  {stats['remaining']:>4d}/{stats['initial']:<4d} "
                f"{stats['total_requests']:>5d} calls  {status}"
            )

        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_quota_manager: Optional[APIQuotaManager] = None


def get_quota_manager() -> APIQuotaManager:
    """Get the global APIQuotaManager singleton."""
    global _quota_manager
    if _quota_manager is None:
        _quota_manager = APIQuotaManager()
    return _quota_manager
