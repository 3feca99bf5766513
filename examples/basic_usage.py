"""
Basic usage example for llm-request-core

This example shows how to cache, rate-limit and retry calls to a
text-generation API, and how to push a batch of prompts through the
priority queue.
"""

import asyncio
import random

from llm_request_core import (
    BatchRequest,
    BaseProvider,
    GenerationRequest,
    Orchestrator,
    OrchestratorConfig,
    Priority,
    RateLimitConfig,
)


class FlakyProvider(BaseProvider):
    """Simulated API that sometimes answers 503 (replace with a real HTTP call)."""

    name = "openai"

    async def generate(self, prompt, options):
        # In real usage:
        # async with httpx.AsyncClient() as client:
        #     response = await client.post(url, json={"prompt": prompt, **options})
        #     if response.status_code != 200:
        #         raise self.error_from_response(response.status_code, dict(response.headers))
        #     return response.json()["text"]
        await asyncio.sleep(0.05)
        if random.random() < 0.3:
            raise self.error_from_response(503)
        return f"Response to: {prompt}"


async def main():
    config = OrchestratorConfig(rate_limit=RateLimitConfig(limit=10, window=1.0))

    async with Orchestrator(
        providers=[FlakyProvider()],
        config=config,
        on_rate_limit=lambda provider, info:
            print(f"Rate limit hit for {provider}, retry in {info.retry_after:.2f}s"),
        on_retry=lambda attempt, delay:
            print(f"Attempt {attempt} failed, retrying in {delay:.2f}s"),
    ) as orchestrator:
        print("Making API calls...")
        for i in range(3):
            text = await orchestrator.generate("openai", "Write a tagline", {"temperature": 0.7})
            print(f"{i+1}. {text}")

        print("\nRunning a batch...")
        responses = await orchestrator.generate_batch([
            BatchRequest(GenerationRequest("openai", f"Summarize chapter {n}"), priority=Priority.LOW)
            for n in range(1, 6)
        ] + [
            BatchRequest(GenerationRequest("openai", "Urgent: draft a reply"), priority=Priority.CRITICAL),
        ])
        for response in responses:
            print(f"  {response.status.value:<10} {response.result or response.error}")

        # Check metrics
        print("\nMetrics:")
        stats = orchestrator.get_stats()
        print(f"  Cache hit rate: {stats['metrics']['cache_hit_rate']:.0%}")
        print(f"  Total requests: {stats['metrics']['total_requests']}")
        print(f"  Retries: {stats['retry']['total_retries']}")


if __name__ == "__main__":
    asyncio.run(main())
