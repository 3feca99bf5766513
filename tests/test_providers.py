"""Tests for provider adapters."""

import pytest
from unittest.mock import AsyncMock

from llm_request_core.cache import fingerprint
from llm_request_core.errors import ErrorKind
from llm_request_core.providers import BaseProvider, CallableProvider


class EchoProvider(BaseProvider):
    name = "echo"

    async def generate(self, prompt, options):
        return prompt


class TestBaseProvider:
    """Tests for shared adapter behaviour."""

    def test_cannot_instantiate_abstract(self):
        """Test generate must be implemented."""
        with pytest.raises(TypeError):
            BaseProvider()

    def test_cache_key_includes_name(self):
        """Test cache keys are scoped to the provider."""
        provider = EchoProvider()
        assert provider.cache_key("hi", {"temperature": 0}) == fingerprint("echo", "hi", {"temperature": 0})
        assert provider.cache_key("hi") != CallableProvider("other", AsyncMock()).cache_key("hi")

    def test_get_retry_after(self):
        """Test Retry-After header parsing."""
        provider = EchoProvider()
        assert provider.get_retry_after({"retry-after": "2.5"}) == 2.5
        assert provider.get_retry_after({"Retry-After": "7"}) == 7.0
        assert provider.get_retry_after({}) is None

    def test_get_retry_after_date(self):
        """Test HTTP-date values are ignored."""
        provider = EchoProvider()
        assert provider.get_retry_after({"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"}) is None

    def test_error_from_response(self):
        """Test failed responses become classified errors."""
        provider = EchoProvider()
        error = provider.error_from_response(429, {"retry-after": "3"})

        assert error.kind == ErrorKind.RATE_LIMITED
        assert error.retryable is True
        assert error.retry_after == 3.0
        assert error.provider == "echo"
        assert "429" in str(error)

    def test_error_from_response_fatal(self):
        """Test client errors are not retryable."""
        error = EchoProvider().error_from_response(400, message="bad prompt")
        assert error.kind == ErrorKind.CLIENT_ERROR
        assert error.retryable is False
        assert str(error) == "bad prompt"


class TestCallableProvider:
    """Tests for CallableProvider."""

    @pytest.mark.asyncio
    async def test_delegates(self):
        """Test the wrapped coroutine receives prompt and options."""
        fn = AsyncMock(return_value="text")
        provider = CallableProvider("mock", fn)

        assert provider.name == "mock"
        assert await provider.generate("hi", {"model": "m"}) == "text"
        fn.assert_awaited_once_with("hi", {"model": "m"})
