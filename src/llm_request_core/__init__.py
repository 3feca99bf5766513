"""
llm-request-core: Cache, rate limit, retry and batch calls to text-generation APIs.

Turns a quota-constrained, pay-per-token provider call into a predictable
local operation.
"""

from .orchestrator import Orchestrator
from .cache import ResponseCache, fingerprint
from .rate_limiter import SlidingWindowRateLimiter, RateLimiterRegistry
from .retry import RetryController
from .batch import BatchProcessor
from .singleflight import SingleFlight
from .metrics import MetricsCollector
from .providers import BaseProvider, CallableProvider
from .config import (
    BatchConfig,
    CacheConfig,
    OrchestratorConfig,
    RateLimitConfig,
    RetryConfig,
)
from .errors import (
    ErrorKind,
    ProviderError,
    classify_error,
    is_retryable,
)
from .models import (
    BatchProcessorError,
    BatchRequest,
    BatchResponse,
    BatchStatus,
    CacheEntry,
    GenerationMetric,
    GenerationRequest,
    InvalidTransitionError,
    Priority,
    ProcessorAlreadySetError,
    RateLimitInfo,
)

__version__ = "0.1.0"

__all__ = [
    # Main class
    "Orchestrator",
    # Components
    "ResponseCache",
    "fingerprint",
    "SlidingWindowRateLimiter",
    "RateLimiterRegistry",
    "RetryController",
    "BatchProcessor",
    "SingleFlight",
    "MetricsCollector",
    # Providers
    "BaseProvider",
    "CallableProvider",
    # Config
    "BatchConfig",
    "CacheConfig",
    "OrchestratorConfig",
    "RateLimitConfig",
    "RetryConfig",
    # Errors
    "ErrorKind",
    "ProviderError",
    "classify_error",
    "is_retryable",
    "BatchProcessorError",
    "InvalidTransitionError",
    "ProcessorAlreadySetError",
    # Models
    "BatchRequest",
    "BatchResponse",
    "BatchStatus",
    "CacheEntry",
    "GenerationMetric",
    "GenerationRequest",
    "Priority",
    "RateLimitInfo",
]
