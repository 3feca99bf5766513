"""Orchestrator composing cache, rate limiting, retries and batching."""

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from .batch import BatchProcessor
from .cache import ResponseCache
from .config import OrchestratorConfig
from .errors import ErrorKind, ProviderError, classify_error
from .metrics import MetricsCollector
from .models import BatchRequest, BatchResponse, GenerationMetric, GenerationRequest, Priority, RateLimitInfo
from .providers import BaseProvider
from .rate_limiter import RateLimiterRegistry, SlidingWindowRateLimiter
from .retry import RetryController
from .singleflight import SingleFlight

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs generation requests against registered providers.

    For each request:
    - Waits for a rate limit slot when the provider's window is full
    - Serves repeated requests from the response cache
    - Shares one in-flight call between identical concurrent requests
    - Retries transient provider failures with backoff
    - Routes bulk submissions through the priority batch processor
    """

    def __init__(
        self,
        providers: Optional[Iterable[BaseProvider]] = None,
        config: Optional[OrchestratorConfig] = None,
        cache: Optional[ResponseCache] = None,
        limiters: Optional[RateLimiterRegistry] = None,
        retry: Optional[RetryController] = None,
        batch: Optional[BatchProcessor] = None,
        metrics: Optional[MetricsCollector] = None,
        # Callbacks
        on_rate_limit: Optional[Callable[[str, RateLimitInfo], None]] = None,
        on_retry: Optional[Callable[[int, float], None]] = None,
    ):
        self._config = config or OrchestratorConfig()
        self._providers: dict[str, BaseProvider] = {}
        for provider in providers or ():
            self.register_provider(provider)

        self._cache = cache or ResponseCache.from_config(self._config.cache)
        self._limiters = limiters or RateLimiterRegistry(self._config)
        self._retry = retry or RetryController.from_config(self._config.retry, on_retry=on_retry)
        self._batch = batch or BatchProcessor.from_config(self._config.batch)
        self._metrics = metrics or MetricsCollector(max_entries=self._config.metrics_max_entries)
        self._single_flight: Optional[SingleFlight[str]] = SingleFlight() if self._config.single_flight else None

        if not self._batch.has_processor:
            self._batch.set_processor(self._process_batch_request)

        self._on_rate_limit = on_rate_limit

    async def __aenter__(self) -> "Orchestrator":
        """Enter async context."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        """Wait for queued batch work to finish."""
        await self._batch.join()

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def limiters(self) -> RateLimiterRegistry:
        return self._limiters

    @property
    def batch(self) -> BatchProcessor:
        return self._batch

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    def register_provider(self, provider: BaseProvider) -> None:
        """Make a provider available under its name."""
        if provider.name in self._providers:
            logger.info("Replacing provider %s", provider.name)
        self._providers[provider.name] = provider

    def get_provider(self, name: str) -> BaseProvider:
        """Get a registered provider.

        Raises:
            KeyError: If no provider has that name
        """
        try:
            return self._providers[name]
        except KeyError:
            raise KeyError(f"Unknown provider: {name}") from None

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    async def generate(
        self,
        provider: str,
        prompt: str,
        options: Optional[dict[str, Any]] = None,
        use_cache: bool = True,
    ) -> str:
        """Generate text, going through rate limit, cache and retries.

        Args:
            provider: Registered provider name
            prompt: Prompt text
            options: Provider options, part of the cache fingerprint
            use_cache: Read and write the response cache

        Returns:
            Generated text

        Raises:
            KeyError: If the provider is not registered
            Exception: The provider's final error, unchanged
        """
        adapter = self.get_provider(provider)
        options = dict(options or {})
        model = options.get("model")
        limiter = self._limiters.get_limiter(adapter.name)
        started = time.time()

        if not limiter.is_allowed():
            self._metrics.record_rate_limit_hit()
            if self._on_rate_limit:
                self._on_rate_limit(adapter.name, limiter.get_info())
            await limiter.wait_for_slot()

        key = adapter.cache_key(prompt, options)
        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s request %s", adapter.name, key)
                self._record(adapter.name, started, prompt, model, success=True, cached=True)
                return cached

        def fetch() -> Any:
            return self._fetch(adapter, limiter, key, prompt, options, use_cache)

        joined = self._single_flight is not None and key in self._single_flight
        try:
            if self._single_flight is not None:
                result = await self._single_flight.run(key, fetch)
            else:
                result = await fetch()
        except Exception as error:
            self._record(adapter.name, started, prompt, model, success=False, error_kind=classify_error(error).value)
            raise

        # Only the caller that made the outbound call is charged for its tokens
        tokens_used = 0 if joined else len(result)
        self._record(adapter.name, started, prompt, model, success=True, tokens_used=tokens_used)
        return result

    async def _fetch(
        self,
        adapter: BaseProvider,
        limiter: SlidingWindowRateLimiter,
        key: str,
        prompt: str,
        options: dict[str, Any],
        use_cache: bool,
    ) -> str:
        async def attempt() -> str:
            await limiter.acquire()
            text = await adapter.generate(prompt, options)
            if not text:
                raise ProviderError(
                    f"Empty response from {adapter.name}",
                    kind=ErrorKind.EMPTY_RESPONSE,
                    provider=adapter.name,
                )
            return text

        result = await self._retry.retry(attempt, f"{adapter.name} completion")
        if use_cache:
            self._cache.set(key, result)
        return result

    async def _process_batch_request(self, request: BatchRequest) -> str:
        payload = request.payload
        if not isinstance(payload, GenerationRequest):
            raise TypeError(f"Batch payload must be a GenerationRequest, got {type(payload).__name__}")
        return await self.generate(payload.provider, payload.prompt, payload.options)

    async def generate_batch(
        self,
        requests: Sequence[Union[GenerationRequest, BatchRequest]],
        priority: int = Priority.NORMAL,
    ) -> list[BatchResponse]:
        """Submit many requests through the batch processor.

        Plain ``GenerationRequest`` items get ``priority``; pass ``BatchRequest``
        items to set ids or priorities individually. Item failures do not raise;
        inspect each returned record's status.

        Returns:
            One response record per request, in input order

        Raises:
            ValueError: If two requests share an id, or an id is already tracked
        """
        batch_requests = [
            item if isinstance(item, BatchRequest) else BatchRequest(payload=item, priority=priority)
            for item in requests
        ]
        seen: set[str] = set()
        for request in batch_requests:
            if request.id in seen or self._batch.get_status(request.id) is not None:
                raise ValueError(f"Duplicate batch request id: {request.id}")
            seen.add(request.id)

        await asyncio.gather(
            *(self._batch.submit(request) for request in batch_requests),
            return_exceptions=True,
        )
        return [self._batch.get_status(request.id) for request in batch_requests]

    def _record(
        self,
        provider: str,
        started: float,
        prompt: str,
        model: Optional[str],
        success: bool,
        cached: bool = False,
        tokens_used: int = 0,
        error_kind: Optional[str] = None,
    ) -> None:
        self._metrics.record(GenerationMetric(
            provider=provider,
            request_time=started,
            response_time=time.time(),
            success=success,
            cached=cached,
            characters=len(prompt),
            model=model,
            tokens_used=tokens_used,
            error_kind=error_kind,
        ))

    def clear_cache(self) -> None:
        """Drop all cached responses."""
        self._cache.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get orchestrator statistics."""
        return {
            "providers": self.provider_names,
            "cache": self._cache.stats(),
            "rate_limits": self._limiters.stats(),
            "retry": self._retry.stats(),
            "batch": self._batch.get_stats(),
            "single_flight": {
                "enabled": self._single_flight is not None,
                "in_flight": self._single_flight.in_flight if self._single_flight else 0,
                "shared_calls": self._single_flight.shared_calls if self._single_flight else 0,
            },
            "metrics": self._metrics.get_aggregated(),
        }
