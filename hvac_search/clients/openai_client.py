"""OpenAI client for query embeddings and chat completions."""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import openai
from openai import AsyncOpenAI

from hvac_search.errors import (
    AuthenticationError,
    AuthorizationError,
    DimensionMismatchError,
    QueryValidationError,
    RateLimitError,
    ResourceNotFoundError,
    SearchError,
    TransientNetworkError,
    UpstreamTimeoutError,
)
from hvac_search.logging_config import log_operation_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def translate_openai_error(error: Exception, operation: str) -> SearchError:
    """Map an openai SDK exception onto the typed error hierarchy.

    Args:
        error: Exception raised by the SDK
        operation: Name of the failed operation

    Returns:
        Typed error carrying the operation name and original cause
    """
    if isinstance(error, SearchError):
        return error

    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(error, openai.APITimeoutError):
        return UpstreamTimeoutError(
            f"OpenAI request timed out during {operation}", operation=operation, cause=error
        )
    if isinstance(error, openai.APIConnectionError):
        return TransientNetworkError(
            f"Could not reach OpenAI during {operation}", operation=operation, cause=error
        )
    if isinstance(error, openai.AuthenticationError):
        return AuthenticationError(
            "OpenAI rejected the API key", operation=operation, cause=error
        )
    if isinstance(error, openai.PermissionDeniedError):
        return AuthorizationError(
            "OpenAI denied access to the requested resource", operation=operation, cause=error
        )
    if isinstance(error, openai.NotFoundError):
        return ResourceNotFoundError(
            "OpenAI model or resource not found", operation=operation, cause=error
        )
    if isinstance(error, openai.RateLimitError):
        return RateLimitError("OpenAI rate limit exceeded", operation=operation, cause=error)
    if isinstance(error, openai.InternalServerError):
        return TransientNetworkError(
            "OpenAI service unavailable", operation=operation, cause=error
        )
    if isinstance(error, openai.BadRequestError):
        return QueryValidationError(
            "OpenAI rejected the request", operation=operation, cause=error
        )
    return SearchError(f"OpenAI call failed during {operation}", operation=operation, cause=error)


class OpenAIClient:
    """Client for the OpenAI API with typed error handling.

    Provides async methods for query embeddings, tool-calling chat
    completions, and plain completions. The client never retries on its own;
    callers wrap calls in the shared retry utility, which relies on the typed
    errors raised here.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        embedding_dimension: int = 1536,
        timeout: float = 30.0,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model name for chat completions (default: gpt-4o-mini)
            embedding_model: Model name for embeddings (default: text-embedding-3-small)
            embedding_dimension: Expected embedding length (default: 1536)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,  # Retries happen in retry_async
        )
        self.model = model
        self.embedding_model = embedding_model
        self.embedding_dimension = embedding_dimension
        self.timeout = timeout

    async def _call(self, operation: str, func: Callable[[], Awaitable[T]], **context: Any) -> T:
        """Run one SDK call, translating errors and logging its duration."""
        start = time.perf_counter()
        try:
            result = await func()
        except Exception as e:
            error = translate_openai_error(e, operation)
            log_operation_metrics(
                logger,
                operation,
                (time.perf_counter() - start) * 1000,
                error=error,
                **context,
            )
            if error is e:
                raise
            raise error from e

        log_operation_metrics(logger, operation, (time.perf_counter() - start) * 1000, **context)
        return result

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text string.

        Args:
            text: Text to embed (must not be blank)

        Returns:
            Embedding vector as list of floats

        Raises:
            QueryValidationError: If text is blank
            DimensionMismatchError: If the vector length differs from the configured dimension
            SearchError: Typed translation of any API failure
        """
        if not text or not text.strip():
            raise QueryValidationError("Cannot embed an empty search string", operation="embed")

        async def _embed() -> list[float]:
            response = await self.client.embeddings.create(
                model=self.embedding_model,
                input=text,
            )
            return list(response.data[0].embedding)

        embedding = await self._call("embed", _embed, model=self.embedding_model)

        if len(embedding) != self.embedding_dimension:
            raise DimensionMismatchError(
                f"Embedding dimension mismatch: expected {self.embedding_dimension}, "
                f"got {len(embedding)}",
                operation="embed",
                details={"expected": self.embedding_dimension, "actual": len(embedding)},
            )
        return embedding

    async def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        temperature: float = 0.0,
        seed: int | None = None,
        tool_choice: str = "auto",
    ) -> Any:
        """Run a tool-calling chat completion.

        Args:
            messages: Chat transcript (system + user)
            tools: Function tool catalog
            temperature: Sampling temperature
            seed: Sampling seed for reproducible tool selection
            tool_choice: OpenAI tool_choice value

        Returns:
            The assistant message (with ``content`` and ``tool_calls``)
        """

        async def _chat() -> Any:
            kwargs: dict[str, Any] = {
                "model": self.model,
                "messages": messages,
                "tools": tools,
                "tool_choice": tool_choice,
                "temperature": temperature,
            }
            if seed is not None:
                kwargs["seed"] = seed
            response = await self.client.chat.completions.create(**kwargs)
            return response.choices[0].message

        return await self._call("tool_selection", _chat, model=self.model)

    async def generate(
        self,
        messages: list[dict[str, Any]],
        temperature: float = 0.3,
        max_tokens: int = 800,
    ) -> str:
        """Generate a plain completion from a message transcript.

        Args:
            messages: Chat transcript, possibly including tool calls and results
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response (empty string when the model returns none)
        """

        async def _generate() -> str:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return response.choices[0].message.content or ""

        return await self._call("summarization", _generate, model=self.model)

    async def close(self):
        """Close the client connection."""
        await self.client.close()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
