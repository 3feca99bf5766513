"""Data models for llm-request-core."""

import uuid
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


class Priority(IntEnum):
    """Convenience priority levels. Higher values are drained first."""

    BULK = 0      # Batch processing, lowest priority
    LOW = 1       # Background tasks
    NORMAL = 2    # Standard requests
    HIGH = 3      # User-facing requests
    CRITICAL = 4  # System-critical


class BatchStatus(str, Enum):
    """Lifecycle of a batch item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)


_TRANSITIONS = {
    BatchStatus.PENDING: (BatchStatus.PROCESSING,),
    BatchStatus.PROCESSING: (BatchStatus.COMPLETED, BatchStatus.FAILED),
    BatchStatus.COMPLETED: (),
    BatchStatus.FAILED: (),
}


@dataclass
class CacheEntry:
    """A cached response."""

    key: str
    data: Any
    created_at: float
    last_accessed: float
    ttl: float  # seconds
    size_bytes: int

    def is_expired(self, now: float) -> bool:
        """Check if the entry outlived its TTL."""
        return now - self.created_at > self.ttl


@dataclass
class RateLimitInfo:
    """Snapshot of a sliding window."""

    limit: int
    remaining: int
    reset_time: float  # clock seconds when capacity next frees
    retry_after: Optional[float] = None  # seconds, only set when exhausted

    @property
    def is_exhausted(self) -> bool:
        """Check if no request may be admitted right now."""
        return self.remaining <= 0

    @property
    def usage_ratio(self) -> float:
        """Get usage ratio (0.0 = fresh, 1.0 = exhausted)."""
        if self.limit <= 0:
            return 1.0
        return 1.0 - (self.remaining / self.limit)


@dataclass
class GenerationRequest:
    """Payload routed through the batch processor by the orchestrator."""

    provider: str
    prompt: str
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchRequest:
    """A unit of work submitted to the batch processor."""

    payload: Any
    priority: int = Priority.NORMAL
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    submitted_at: float = field(default_factory=time.time)


@dataclass
class BatchResponse:
    """Status record for a single batch request.

    Status only moves forward: pending -> processing -> completed | failed.
    """

    id: str
    status: BatchStatus = BatchStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        """Processing time in seconds, once finished."""
        if self.started_at is None or self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    def _advance(self, status: BatchStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Batch item {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status

    def mark_processing(self) -> None:
        self._advance(BatchStatus.PROCESSING)
        self.started_at = time.time()

    def mark_completed(self, result: Any) -> None:
        self._advance(BatchStatus.COMPLETED)
        self.result = result
        self.ended_at = time.time()

    def mark_failed(self, error: BaseException) -> None:
        self._advance(BatchStatus.FAILED)
        self.error = str(error) or type(error).__name__
        self.ended_at = time.time()


@dataclass
class GenerationMetric:
    """One recorded generate() call."""

    provider: str
    request_time: float
    response_time: float
    success: bool
    cached: bool = False
    characters: int = 0
    model: Optional[str] = None
    tokens_used: int = 0  # rough estimate, one per generated character
    error_kind: Optional[str] = None

    @property
    def latency(self) -> float:
        """Round-trip time in seconds."""
        return self.response_time - self.request_time


class BatchProcessorError(Exception):
    """Raised when the batch processor is misused."""
    pass


class ProcessorAlreadySetError(BatchProcessorError):
    """Raised when a processor function is injected twice."""
    pass


class InvalidTransitionError(BatchProcessorError):
    """Raised on an illegal batch status transition."""
    pass
