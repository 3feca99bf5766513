"""Priority batch processor for pending requests."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .config import BatchConfig
from .models import (
    BatchRequest,
    BatchResponse,
    BatchStatus,
    ProcessorAlreadySetError,
)

logger = logging.getLogger(__name__)

Processor = Callable[[BatchRequest], Awaitable[Any]]


@dataclass(order=True)
class QueueItem:
    """An item in the batch queue.

    Sorts by descending priority, then by arrival.
    """

    sort_priority: int
    sequence: int
    request: BatchRequest = field(compare=False)
    future: asyncio.Future = field(compare=False)


class BatchProcessor:
    """Drains submitted requests in priority order, a batch at a time.

    Items in one batch run concurrently against the injected processor; a
    failing item only fails its own record. Between batches the drain loop
    pauses for ``processing_delay`` seconds.
    """

    def __init__(
        self,
        batch_size: int = 5,
        processing_delay: float = 0.1,
        processor: Optional[Processor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._batch_size = batch_size
        self._processing_delay = processing_delay
        self._processor = processor
        self._sleep = sleep
        self._queue: list[QueueItem] = []
        self._responses: dict[str, BatchResponse] = {}
        self._sequence = 0
        self._drain_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: BatchConfig, **kwargs: Any) -> "BatchProcessor":
        """Create a processor from settings."""
        return cls(batch_size=config.batch_size, processing_delay=config.processing_delay, **kwargs)

    @property
    def is_processing(self) -> bool:
        """Check if the drain loop is running."""
        return self._drain_task is not None

    @property
    def has_processor(self) -> bool:
        return self._processor is not None

    def set_processor(self, processor: Processor) -> None:
        """Inject the function that processes one request.

        Raises:
            ProcessorAlreadySetError: If a processor was already injected
        """
        if self._processor is not None:
            raise ProcessorAlreadySetError("Batch processor function is already set")
        self._processor = processor
        self._ensure_draining()

    async def submit(self, request: BatchRequest) -> BatchResponse:
        """Queue a request and wait until it is processed.

        Returns:
            The completed response record

        Raises:
            ValueError: If a request with the same id is still tracked
            Exception: Whatever the processor raised for this request
        """
        if request.id in self._responses:
            raise ValueError(f"Batch request {request.id} is already tracked")

        self._responses[request.id] = BatchResponse(id=request.id)
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        self._sequence += 1
        self._insert_sorted(QueueItem(
            sort_priority=-request.priority,
            sequence=self._sequence,
            request=request,
            future=future,
        ))
        logger.debug("Queued batch request %s (priority=%d, queue=%d)", request.id, request.priority, len(self._queue))

        self._ensure_draining()
        return await future

    def _insert_sorted(self, item: QueueItem) -> None:
        """Insert item maintaining sorted order."""
        # Binary search for insertion point
        lo, hi = 0, len(self._queue)
        while lo < hi:
            mid = (lo + hi) // 2
            if self._queue[mid] < item:
                lo = mid + 1
            else:
                hi = mid
        self._queue.insert(lo, item)

    def _ensure_draining(self) -> None:
        if self._drain_task is None and self._queue and self._processor is not None:
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue:
                batch = self._queue[:self._batch_size]
                del self._queue[:self._batch_size]
                logger.debug("Processing batch of %d (%d remaining)", len(batch), len(self._queue))

                await asyncio.gather(*(self._run_item(item) for item in batch))

                if self._queue:
                    await self._sleep(self._processing_delay)
        finally:
            self._drain_task = None

    async def _run_item(self, item: QueueItem) -> None:
        response = self._responses[item.request.id]
        response.mark_processing()
        try:
            result = await self._processor(item.request)
        except Exception as error:
            response.mark_failed(error)
            logger.debug("Batch request %s failed: %s", item.request.id, error)
            if not item.future.done():
                item.future.set_exception(error)
        else:
            response.mark_completed(result)
            if not item.future.done():
                item.future.set_result(response)

    async def join(self) -> None:
        """Wait until the drain loop goes idle."""
        while self._drain_task is not None:
            await asyncio.shield(self._drain_task)

    def get_status(self, request_id: str) -> Optional[BatchResponse]:
        """Get the response record for a request."""
        return self._responses.get(request_id)

    def get_all_statuses(self) -> list[BatchResponse]:
        """Get every tracked response record."""
        return list(self._responses.values())

    def clear_completed(self) -> int:
        """Forget completed and failed records.

        Returns:
            Number of records removed
        """
        finished = [rid for rid, resp in self._responses.items() if resp.status.is_terminal]
        for rid in finished:
            del self._responses[rid]
        return len(finished)

    def get_queue_size(self) -> int:
        """Number of requests waiting to be drained."""
        return len(self._queue)

    def get_stats(self) -> dict[str, Any]:
        """Get processor statistics."""
        by_status = {status.value: 0 for status in BatchStatus}
        for response in self._responses.values():
            by_status[response.status.value] += 1
        return {
            "queue_size": len(self._queue),
            "batch_size": self._batch_size,
            "is_processing": self.is_processing,
            "total_submitted": self._sequence,
            "by_status": by_status,
        }
