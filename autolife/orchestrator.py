"""
Fallback orchestration across AI providers.

One call makes a single pass over the enabled providers in priority order:

    fetch active providers  ->  none? NoProvidersConfigured
    for each provider:
        skip if not eligible (too many consecutive failures)
        build adapter from the config snapshot, invoke with a deadline
        success -> record success, return immediately
        failure -> record failure, remember the error, try the next one
    exhausted -> AllProvidersFailed(last error)

Providers are tried strictly one at a time. There is no retry loop beyond
this pass; callers that want retries reissue the request.
"""

import asyncio
import logging

from .errors import (
    AllProvidersFailed,
    NoProvidersConfigured,
    OperationCancelled,
    ProviderError,
    ProviderTimeout,
)
from .health import HealthTracker
from .providers.base import AdapterFactory, get_factory
from .registry import ProviderRegistry
from .types import (
    Cancelled,
    ExtractText,
    Failure,
    OperationOutcome,
    OperationRequest,
    ProviderConfig,
    Success,
)

logger = logging.getLogger(__name__)

_CANCELLED = object()


class FallbackOrchestrator:
    """
    Runs operation requests against providers with priority fallback.

    Safe to share between concurrent operations: the only shared state is
    the registry, whose health updates are atomic per provider.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        tracker: HealthTracker | None = None,
        factory: AdapterFactory | None = None,
    ):
        self._registry = registry
        self._tracker = tracker or HealthTracker()
        self._factory = factory or get_factory()

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def tracker(self) -> HealthTracker:
        return self._tracker

    async def execute(self, request: OperationRequest):
        """
        Run the request and return its payload.

        Raises:
            NoProvidersConfigured: If no provider is enabled
            AllProvidersFailed: If every eligible provider failed
            OperationCancelled: If the request's cancel event was set
        """
        outcome = await self.run(request)
        if isinstance(outcome, Success):
            return outcome.payload
        if isinstance(outcome, Cancelled):
            raise OperationCancelled()
        raise outcome.error

    async def run(self, request: OperationRequest) -> OperationOutcome:
        """Run the request and return an explicit outcome (never raises on provider failure)."""
        if isinstance(request, ExtractText):
            return Success(request.resolve())

        providers = self._registry.active_by_priority()
        if not providers:
            return Failure(NoProvidersConfigured())

        loop = asyncio.get_running_loop()
        deadline = loop.time() + request.timeout if request.timeout is not None else None
        last_error: ProviderError | None = None

        for config in providers:
            if request.cancel is not None and request.cancel.is_set():
                return Cancelled()

            if not self._tracker.is_eligible(config):
                logger.debug(
                    "Skipping provider %s: %d consecutive failures",
                    config.name, config.consecutive_failures,
                )
                continue

            timeout = config.timeout_seconds if config.timeout_seconds > 0 else None
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.warning("Operation deadline passed before trying %s", config.name)
                    if last_error is None:
                        last_error = ProviderTimeout("Operation deadline exceeded")
                    break
                timeout = remaining if timeout is None else min(timeout, remaining)

            outcome = await self._attempt(config, request, timeout)

            if isinstance(outcome, Cancelled):
                logger.info("Operation cancelled while %s was running", config.name)
                return outcome
            if isinstance(outcome, Success):
                self._record(config, self._tracker.record_success)
                return outcome

            last_error = outcome.error
            self._record(config, self._tracker.record_failure)
            logger.warning(
                "Provider %s failed (%s): %s",
                config.name, type(last_error).__name__, last_error,
            )

        logger.warning("All AI providers failed; last error: %s", last_error)
        return Failure(AllProvidersFailed(last_error))

    async def check_provider(self, config: ProviderConfig) -> tuple[bool, str]:
        """
        Ask one provider's adapter whether it is usable, without a completion.

        Health counters are not touched. Returns (healthy, detail).
        """
        try:
            adapter = self._factory.create(config)
        except ProviderError as e:
            return False, str(e)
        except Exception as e:
            return False, f"Could not create adapter for {config.name}: {e}"

        timeout = config.timeout_seconds if config.timeout_seconds > 0 else None
        try:
            healthy = await asyncio.wait_for(adapter.is_healthy(), timeout)
        except TimeoutError:
            return False, f"{config.name} did not answer within {timeout:.1f}s"
        except Exception as e:
            logger.debug("Health check for %s raised", config.name, exc_info=True)
            return False, f"{config.name}: {e}"
        finally:
            await self._close(adapter)
        return healthy, "ok" if healthy else "not configured or not reachable"

    async def _attempt(
        self,
        config: ProviderConfig,
        request: OperationRequest,
        timeout: float | None,
    ) -> OperationOutcome:
        """Invoke one provider, converting every failure into a Failure outcome."""
        try:
            adapter = self._factory.create(config)
        except ProviderError as e:
            e.provider_id = e.provider_id or config.id
            return Failure(e)
        except Exception as e:
            return Failure(ProviderError(
                f"Could not create adapter for {config.name}: {e}", provider_id=config.id,
            ))

        try:
            call = asyncio.wait_for(request.invoke(adapter), timeout)
            if request.cancel is None:
                payload = await call
            else:
                payload = await self._race_cancel(call, request.cancel)
                if payload is _CANCELLED:
                    return Cancelled()
        except TimeoutError:
            return Failure(ProviderTimeout(
                f"{config.name} timed out after {timeout:.1f}s" if timeout else f"{config.name} timed out",
                provider_id=config.id,
            ))
        except ProviderError as e:
            e.provider_id = e.provider_id or config.id
            return Failure(e)
        except Exception as e:
            logger.debug("Unclassified error from %s", config.name, exc_info=True)
            return Failure(ProviderError(f"{config.name}: {e}", provider_id=config.id))
        finally:
            await self._close(adapter)

        return Success(payload, provider_id=config.id)

    @staticmethod
    async def _race_cancel(call, cancel: asyncio.Event):
        """Await call unless cancel is set first; then abort it and return _CANCELLED."""
        task = asyncio.ensure_future(call)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return _CANCELLED

    @staticmethod
    async def _close(adapter) -> None:
        aclose = getattr(adapter, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.debug("Error closing adapter: %s", e)

    def _record(self, config: ProviderConfig, event) -> None:
        """Apply a health event; a failed update never fails the operation."""
        try:
            self._registry.apply(config.id, event)
        except Exception as e:
            logger.warning("Could not record health for provider %s: %s", config.name, e)
