"""
Anthropic client wrapper and helpers for reading JSON out of model replies.

Transient failures (connection problems, rate limits) are retried with
exponential backoff. Everything else is translated into the engine's
error taxonomy so SDK details never reach the caller.
"""

import json
import re
from typing import Optional

import anthropic
import json5
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from siteplan.core.config import settings
from siteplan.core.errors import ExternalTimeoutError, GenerationError

RETRYABLE_ERRORS = (anthropic.APIConnectionError, anthropic.RateLimitError)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def parse_json_object(text: str) -> dict:
    """
    Extract a JSON object from a model reply.

    Strips markdown fences and any prose around the outermost braces,
    then tries strict JSON, the same with trailing commas removed, and
    finally json5.

    Raises:
        GenerationError: No JSON object could be read
    """
    cleaned = _FENCE_RE.sub("", text.strip())

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise GenerationError("The analysis service did not return JSON")
    cleaned = cleaned[start:end + 1]

    candidates = (
        lambda: json.loads(cleaned),
        lambda: json.loads(_TRAILING_COMMA_RE.sub(r"\1", cleaned)),
        lambda: json5.loads(cleaned),
    )
    for parse in candidates:
        try:
            result = parse()
        except ValueError:
            continue
        if isinstance(result, dict):
            return result

    raise GenerationError("The analysis service returned malformed JSON")


class ClaudeClient:
    """
    Thin async wrapper around ``anthropic.AsyncAnthropic``.

    Usage:
        client = ClaudeClient()
        text = await client.complete(system_prompt, context)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.max_retries = max_retries or settings.LLM_MAX_RETRIES
        self.logger = logger or structlog.get_logger(__name__)
        self._api_key = api_key or settings.ANTHROPIC_API_KEY
        self._client = client

    def _sdk(self) -> anthropic.AsyncAnthropic:
        # Created on first use so the app can start without an API key
        if self._client is None:
            # SDK-level retries are disabled; tenacity handles them
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key,
                timeout=settings.ANTHROPIC_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    async def _create(self, system: str, prompt: str) -> anthropic.types.Message:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self.logger.info(
                        "llm_retry", attempt=attempt.retry_state.attempt_number, model=self.model
                    )
                return await self._sdk().messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                )
        raise GenerationError()  # pragma: no cover

    async def complete(self, system: str, prompt: str) -> str:
        """
        Send one prompt and return the concatenated text of the reply.

        Raises:
            ExternalTimeoutError: The API call timed out
            GenerationError: API error or empty reply
        """
        try:
            response = await self._create(system, prompt)
        except anthropic.APITimeoutError as exc:
            self.logger.warning("llm_timeout", model=self.model)
            raise ExternalTimeoutError(stage="generation") from exc
        except anthropic.AnthropicError as exc:
            self.logger.error("llm_request_failed", model=self.model, error=type(exc).__name__)
            raise GenerationError() from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise GenerationError("The analysis service returned an empty response")

        self.logger.debug(
            "llm_completed",
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return text
