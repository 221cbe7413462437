"""
Provider health derivation.

Health is tracked as a count of consecutive failures on each ProviderConfig.
Two thresholds act on that count:

- skip_threshold: at or above it the orchestrator stops attempting the
  provider (is_eligible returns False).
- unavailable_threshold: at or above it the status label is UNAVAILABLE,
  below it any failure leaves the provider DEGRADED.

Both default to 5 and can be tuned independently through the [health]
section of autolife.toml.
"""

from .types import ProviderConfig, ProviderStatus, utc_now

DEFAULT_SKIP_THRESHOLD = 5
DEFAULT_UNAVAILABLE_THRESHOLD = 5


class HealthTracker:
    """Applies success/failure events to provider records."""

    def __init__(
        self,
        skip_threshold: int = DEFAULT_SKIP_THRESHOLD,
        unavailable_threshold: int = DEFAULT_UNAVAILABLE_THRESHOLD,
    ):
        if skip_threshold < 1 or unavailable_threshold < 1:
            raise ValueError("Health thresholds must be at least 1")
        self.skip_threshold = skip_threshold
        self.unavailable_threshold = unavailable_threshold

    def status_for(self, consecutive_failures: int) -> ProviderStatus:
        """Status label for a failure count (after at least one event)."""
        if consecutive_failures == 0:
            return ProviderStatus.HEALTHY
        if consecutive_failures < self.unavailable_threshold:
            return ProviderStatus.DEGRADED
        return ProviderStatus.UNAVAILABLE

    def is_eligible(self, config: ProviderConfig) -> bool:
        """False once the provider has failed skip_threshold times in a row."""
        return config.consecutive_failures < self.skip_threshold

    def record_success(self, config: ProviderConfig) -> ProviderConfig:
        config.last_success = utc_now()
        config.consecutive_failures = 0
        config.status = ProviderStatus.HEALTHY
        return config

    def record_failure(self, config: ProviderConfig) -> ProviderConfig:
        config.last_failure = utc_now()
        config.consecutive_failures += 1
        config.status = self.status_for(config.consecutive_failures)
        return config

    def reset(self, config: ProviderConfig) -> ProviderConfig:
        """Manual recovery: forget failures so the provider is tried again."""
        config.consecutive_failures = 0
        config.status = ProviderStatus.UNKNOWN
        return config
