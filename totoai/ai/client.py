"""OpenAI-compatible chat client wrapper."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from openai import APIStatusError, AsyncOpenAI, RateLimitError

from totoai.config import settings

logger = logging.getLogger(__name__)

# Retry settings
MAX_BACKOFF = 10  # seconds
DEFAULT_RETRY_DELAY = 20  # seconds if we can't parse the wait time
NON_RETRYABLE_STATUS = {400, 401}

# Cost per million tokens
TOKEN_COSTS = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-3.5-turbo": {"input": 0.50, "output": 1.50},
}
DEFAULT_COST = TOKEN_COSTS["gpt-4o-mini"]


@dataclass
class TokenUsage:
    """Token usage from a single API call."""

    model: str = ""
    operation: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AIClient:
    """Wrapper for an OpenAI-compatible Chat Completions endpoint.

    Works against OpenAI itself or any provider exposing the same API
    (Groq, Together, Ollama) through ``base_url``.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.model = model or settings.chat_model
        self._api_key = api_key
        self._base_url = base_url
        self.timeout = timeout if timeout is not None else settings.llm_timeout
        self.max_retries = max_retries if max_retries is not None else settings.llm_max_retries
        self._client: Optional[AsyncOpenAI] = None
        self.last_usage: Optional[TokenUsage] = None

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            key = self._api_key or settings.llm_api_key
            if not key:
                raise ValueError(f"API key not configured for provider: {settings.llm_provider}")
            self._client = AsyncOpenAI(
                api_key=key,
                base_url=self._base_url or settings.llm_base_url,
                timeout=self.timeout,
                # Retries are handled here, with our own backoff
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client to free connections."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _parse_retry_after(self, error_message: str) -> float:
        """Extract retry delay from a rate limit error message."""
        match = re.search(r"try again in (\d+\.?\d*)s", str(error_message))
        if match:
            return float(match.group(1)) + 1  # 1s buffer
        return DEFAULT_RETRY_DELAY

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        json_mode: bool = False,
        operation: str = "",
    ) -> str:
        """Run a chat completion and return the message content.

        Args:
            system_prompt: System message
            user_prompt: The request
            temperature: Sampling temperature
            max_tokens: Maximum response length
            json_mode: Ask the provider for a JSON object response
            operation: Label used in the token usage log

        Returns:
            Message content (may be empty)

        Raises:
            openai.APIError: If all retries are exhausted or the error is not retryable
        """
        attempts = max(1, self.max_retries)
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                kwargs = {}
                if json_mode:
                    kwargs["response_format"] = {"type": "json_object"}
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                    **kwargs,
                )
                try:
                    content = response.choices[0].message.content or ""
                except (AttributeError, TypeError, IndexError) as e:
                    logger.error(f"Malformed API response from {self.model}: {e}")
                    raise ValueError(f"Malformed API response: {e}") from e

                self._record_usage(response, operation)
                usage = self.last_usage
                usage_str = ""
                if usage:
                    usage_str = (
                        f" | tokens: {usage.input_tokens:,}in + {usage.output_tokens:,}out"
                        f" = {usage.total_tokens:,} | ${usage.estimated_cost:.6f}"
                    )
                logger.info(f"[LLM] {operation or 'chat'}: {len(content)} chars with {self.model}{usage_str}")
                return content

            except RateLimitError as e:
                last_error = e
                delay = self._parse_retry_after(str(e))
                if attempt < attempts - 1:
                    logger.warning(
                        f"Rate limit hit (attempt {attempt + 1}/{attempts}). "
                        f"Waiting {delay:.1f}s before retry..."
                    )
                    await asyncio.sleep(delay)

            except APIStatusError as e:
                if e.status_code in NON_RETRYABLE_STATUS:
                    logger.error(f"LLM request rejected ({e.status_code}): {e}")
                    raise
                last_error = e
                await self._backoff(attempt, attempts, e)

            except ValueError:
                raise

            except Exception as e:
                last_error = e
                await self._backoff(attempt, attempts, e)

        logger.error(f"Chat completion failed after {attempts} attempts: {last_error}")
        raise last_error

    async def _backoff(self, attempt: int, attempts: int, error: Exception) -> None:
        logger.warning(f"Chat completion attempt {attempt + 1}/{attempts} failed: {error}")
        if attempt < attempts - 1:
            await asyncio.sleep(min(2 ** attempt, MAX_BACKOFF))

    def _record_usage(self, response, operation: str = "") -> None:
        """Extract and store token usage from an API response."""
        usage_data = getattr(response, "usage", None)
        if not usage_data:
            self.last_usage = None
            return

        usage = TokenUsage(model=self.model, operation=operation)
        usage.input_tokens = getattr(usage_data, "prompt_tokens", 0) or 0
        usage.output_tokens = getattr(usage_data, "completion_tokens", 0) or 0
        usage.total_tokens = usage.input_tokens + usage.output_tokens

        costs = TOKEN_COSTS.get(self.model, DEFAULT_COST)
        usage.estimated_cost = (
            (usage.input_tokens / 1_000_000) * costs["input"]
            + (usage.output_tokens / 1_000_000) * costs["output"]
        )
        self.last_usage = usage
