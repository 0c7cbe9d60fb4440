"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (OpenAI, Z.AI) providing a clean interface for
generation and embedding calls.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the application layer depends on the
IGenerationClient abstraction, not on a provider SDK.
"""

import asyncio
import hashlib
import json
import random
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from openai import AsyncOpenAI
from zai import ZaiClient

from agentdesk.config import Settings, settings as default_settings
from agentdesk.core import ConfigurationException, LLMException
from agentdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class GenerationResult:
    """Raw text produced by one generation call."""

    def __init__(
        self,
        response: str,
        model: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        latency_ms: int = 0
    ):
        self.response = response
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class IGenerationClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def generate_response(
        self,
        model: str,
        instructions: str,
        messages: Sequence[dict]
    ) -> GenerationResult:
        """Generate text for a message sequence under a fixed instruction."""

    @abstractmethod
    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        """Generate one embedding per input text."""

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        results = await self.generate_embeddings([text])
        return results[0]


def _log_generation(result: GenerationResult, message_count: int) -> None:
    logger.debug(
        "Generation completed",
        extra={
            "model": result.model,
            "message_count": message_count,
            "prompt_tokens": result.prompt_tokens,
            "completion_tokens": result.completion_tokens,
            "latency_ms": result.latency_ms
        }
    )


class OpenAIGenerationClient(IGenerationClient):
    """
    OpenAI client implementation using the Responses API.

    Provides async wrapper around OpenAI SDK operations.
    """

    def __init__(self, api_key: Optional[str] = None, config: Optional[Settings] = None):
        config = config or default_settings
        self._api_key = api_key or config.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(api_key=self._api_key, timeout=config.llm_timeout_seconds)
        self._embedding_model = config.embedding_model
        self._max_tokens = config.llm_max_tokens
        self._temperature = config.llm_temperature

    async def generate_response(
        self,
        model: str,
        instructions: str,
        messages: Sequence[dict]
    ) -> GenerationResult:
        """
        Generate a response with the OpenAI Responses API.

        Args:
            model: Model identifier
            instructions: System-level instruction for this call
            messages: List of message dicts with 'role' and 'content'

        Returns:
            GenerationResult with the output text

        Raises:
            LLMException: If the call fails or times out
        """
        start_time = time.perf_counter()
        request = {
            "model": model,
            "instructions": instructions,
            "input": list(messages),
            "max_output_tokens": self._max_tokens,
        }
        if self._temperature is not None:
            request["temperature"] = self._temperature

        try:
            response = await self._client.responses.create(**request)
        except Exception as e:
            raise LLMException(f"Generation failed: {str(e)}", {"model": model}) from e

        usage = getattr(response, "usage", None)
        result = GenerationResult(
            response=response.output_text or "",
            model=model,
            prompt_tokens=getattr(usage, "input_tokens", 0) or 0,
            completion_tokens=getattr(usage, "output_tokens", 0) or 0,
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )
        _log_generation(result, len(messages))
        return result

    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        """
        Generate embeddings using the configured OpenAI embedding model.

        Raises:
            LLMException: If embedding generation fails
        """
        if not texts:
            return []
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=list(texts)
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}") from e

        return [
            EmbeddingResult(embedding=item.embedding, model=self._embedding_model)
            for item in response.data
        ]


class ZAIGenerationClient(IGenerationClient):
    """
    Z.AI SDK client implementation for GLM models.

    The SDK is synchronous, so calls run in a worker thread and are bounded
    by the configured timeout.
    """

    def __init__(self, api_key: Optional[str] = None, config: Optional[Settings] = None):
        config = config or default_settings
        self._api_key = api_key or config.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._embedding_model = config.embedding_model
        self._max_tokens = config.llm_max_tokens
        self._temperature = config.llm_temperature
        self._timeout = config.llm_timeout_seconds

    async def generate_response(
        self,
        model: str,
        instructions: str,
        messages: Sequence[dict]
    ) -> GenerationResult:
        """Generate a chat completion, sending the instruction as a system message."""
        start_time = time.perf_counter()
        request = {
            "model": model,
            "messages": [{"role": "system", "content": instructions}, *messages],
            "max_tokens": self._max_tokens,
        }
        if self._temperature is not None:
            request["temperature"] = self._temperature

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self._client.chat.completions.create, **request),
                timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            raise LLMException(f"Generation timed out after {self._timeout}s", {"model": model}) from e
        except Exception as e:
            raise LLMException(f"Generation failed: {str(e)}", {"model": model}) from e

        content = response.choices[0].message.content or ""
        # Z.AI doesn't always return token usage, so we estimate
        result = GenerationResult(
            response=content,
            model=model,
            prompt_tokens=len(str(request["messages"])),
            completion_tokens=len(content),
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )
        _log_generation(result, len(messages))
        return result

    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        if not texts:
            return []
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self._client.embeddings.create,
                    model=self._embedding_model,
                    input=list(texts)
                ),
                timeout=self._timeout
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}") from e

        return [
            EmbeddingResult(embedding=item.embedding, model=self._embedding_model)
            for item in response.data
        ]


class MockGenerationClient(IGenerationClient):
    """
    Mock LLM client for local runs and testing.

    Returns predictable responses without calling external APIs. The kind of
    call is inferred from the instruction text.
    """

    TICKET_KEYWORDS = ("ticket", "can't log in", "cannot log in", "refund", "order", "account")

    def __init__(self, embedding_dimension: Optional[int] = None):
        self._dimension = embedding_dimension or default_settings.embedding_dimension

    async def generate_response(
        self,
        model: str,
        instructions: str,
        messages: Sequence[dict]
    ) -> GenerationResult:
        """Return a canned response based on the instruction."""
        lowered = instructions.lower()
        last_content = str(messages[-1].get("content", "")) if messages else ""

        if "orchestrator" in lowered:
            wants_support = any(k in last_content.lower() for k in self.TICKET_KEYWORDS)
            category = "customer-service" if wants_support else "knowledge"
            content = json.dumps({"category": category})
        elif "persona" in lowered:
            # Tone refinement: echo the draft back
            content = last_content
        elif "create_ticket" in lowered and "ticket" in last_content.lower():
            content = json.dumps({
                "action": "create_ticket",
                "subject": last_content[:60],
                "description": last_content,
                "status": "open"
            })
        else:
            content = "This is a mock LLM response for testing purposes."

        return GenerationResult(
            response=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )

    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        """Return deterministic pseudo-embeddings derived from a text hash."""
        results = []
        for text in texts:
            seed = int(hashlib.sha256(text.encode()).hexdigest()[:8], 16)
            rng = random.Random(seed)
            embedding = [rng.uniform(-1, 1) for _ in range(self._dimension)]
            results.append(EmbeddingResult(embedding=embedding, model="mock-embedding"))
        return results


def create_generation_client(config: Optional[Settings] = None) -> IGenerationClient:
    """Build the generation client for the configured provider."""
    config = config or default_settings
    if config.llm_provider == "mock":
        return MockGenerationClient(config.embedding_dimension)
    if config.llm_provider == "zai":
        return ZAIGenerationClient(config=config)
    return OpenAIGenerationClient(config=config)
