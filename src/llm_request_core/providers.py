"""Provider adapter contract."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from .cache import fingerprint
from .errors import ProviderError


class BaseProvider(ABC):
    """Base class for text-generation provider adapters.

    Subclasses perform the actual transport and raise :class:`ProviderError`
    (or let httpx exceptions escape) on failure.
    """

    name: str = "base"

    @abstractmethod
    async def generate(self, prompt: str, options: dict[str, Any]) -> str:
        """Generate text for a prompt."""
        pass

    def cache_key(self, prompt: str, options: Optional[dict[str, Any]] = None) -> str:
        """Fingerprint a request for this provider."""
        return fingerprint(self.name, prompt, options)

    def get_retry_after(self, headers: dict[str, str]) -> Optional[float]:
        """Get retry-after time in seconds if available."""
        # Standard Retry-After header
        retry_after = headers.get("retry-after") or headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                # Could be a date string
                pass
        return None

    def error_from_response(
        self,
        status_code: int,
        headers: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
    ) -> ProviderError:
        """Build a classified error for a failed HTTP response."""
        return ProviderError.from_status(
            status_code,
            message or f"{self.name} request failed with status {status_code}",
            retry_after=self.get_retry_after(headers or {}),
            provider=self.name,
        )


class CallableProvider(BaseProvider):
    """Adapter around a plain coroutine function."""

    def __init__(self, name: str, fn: Callable[[str, dict[str, Any]], Awaitable[str]]):
        self.name = name
        self._fn = fn

    async def generate(self, prompt: str, options: dict[str, Any]) -> str:
        return await self._fn(prompt, options)
