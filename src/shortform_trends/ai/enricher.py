"""
Structured generation with caching, retries and usage logging.

AIEnricher never raises for provider or validation failures. Every call
returns a GenerationResult; callers must check ``result.object`` before use.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from shortform_trends.ai.pricing import calculate_cost
from shortform_trends.ai.providers import (
    AnthropicConfig,
    BaseProvider,
    OpenAIConfig,
    ProviderResponse,
)
from shortform_trends.cache import DEFAULT_TEMPERATURE, ResponseCache, fingerprint
from shortform_trends.errors import (
    PermanentError,
    TransientError,
    TrendPipelineError,
    ValidationFailureError,
)
from shortform_trends.models import TokenUsage, UsageRecord


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

UsageSink = Callable[[UsageRecord], Awaitable[None]]

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


@dataclass
class GenerationConfig:
    provider: Union[OpenAIConfig, AnthropicConfig]
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = 2000
    max_retries: int = 3
    use_cache: bool = True
    cache_ttl: Optional[int] = None


@dataclass
class GenerationResult(Generic[T]):
    object: Optional[T] = None
    usage: Optional[TokenUsage] = None
    error: Optional[TrendPipelineError] = None
    cached: bool = False
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.object is not None


def schema_instruction(schema: type[BaseModel]) -> dict:
    """System message asking the model for JSON matching ``schema``"""
    return {
        "role": "system",
        "content": (
            "Respond with a single JSON object that validates against this JSON schema. "
            "Do not wrap it in prose.\n"
            + json.dumps(schema.model_json_schema(), ensure_ascii=False)
        ),
    }


def parse_structured_output(text: str, schema: type[T]) -> T:
    """
    Parse model output into ``schema``.

    Markdown code fences are stripped first. Undecodable JSON and schema
    mismatches both raise ValidationFailureError.
    """
    raw = (text or "").strip()
    match = _FENCE_PATTERN.search(raw)
    if match:
        raw = match.group(1).strip()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationFailureError(f"Response is not valid JSON: {e}") from e

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ValidationFailureError(
            f"Response does not match {schema.__name__}: {e.error_count()} validation error(s)"
        ) from e


class AIEnricher:
    """
    Calls a provider for schema-validated output.

    Cache lookup happens before any provider call. Transient provider
    errors are retried with a delay of attempt x retry_delay; validation
    failures end the call after one attempt.
    """

    def __init__(
        self,
        providers: dict[str, BaseProvider],
        cache: Optional[ResponseCache] = None,
        retry_delay: float = 1.0,
        usage_sink: Optional[UsageSink] = None,
    ):
        self.providers = providers
        self.cache = cache
        self.retry_delay = retry_delay
        self.usage_sink = usage_sink

    def _log_retry(self, retry_state: RetryCallState):
        logger.warning(
            "Provider call failed (attempt %d), retrying in %.1fs: %s",
            retry_state.attempt_number,
            retry_state.next_action.sleep if retry_state.next_action else 0,
            retry_state.outcome.exception() if retry_state.outcome else None,
        )

    async def generate(
        self,
        messages: list[dict],
        schema: type[T],
        config: GenerationConfig,
    ) -> GenerationResult[T]:
        """
        Generate an object of type ``schema`` from chat messages.

        Args:
            messages: Chat messages ({"role", "content"})
            schema: pydantic model the response must validate against
            config: Provider, sampling and retry settings

        Returns:
            GenerationResult with either ``object`` or ``error`` set
        """
        provider_name = config.provider.provider
        model = config.provider.model
        started = time.monotonic()
        key = fingerprint(messages, provider_name, model, config.temperature)

        if config.use_cache and self.cache is not None:
            hit = await self._from_cache(key, schema)
            if hit is not None:
                logger.debug("Cache hit for %s", key)
                await self._record(provider_name, model, started, None, 0, None, cached=True)
                return GenerationResult(object=hit, cached=True)

        provider = self.providers.get(provider_name)
        if provider is None:
            error = PermanentError(f"No provider registered for '{provider_name}'", source=provider_name)
            await self._record(provider_name, model, started, None, 0, error)
            return GenerationResult(error=error)

        request = list(messages) + [schema_instruction(schema)]
        attempts = 0
        response: Optional[ProviderResponse] = None

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(1, config.max_retries)),
                wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
                retry=retry_if_exception_type(TransientError),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    response = await provider.complete(
                        request,
                        config.provider.model_id,
                        config.temperature,
                        config.max_tokens,
                    )

            obj = parse_structured_output(response.text, schema)
        except TrendPipelineError as e:
            usage = response.usage if response else None
            await self._record(provider_name, model, started, usage, attempts, e)
            return GenerationResult(usage=usage, error=e, attempts=attempts)
        except Exception as e:
            error = PermanentError(f"Unexpected {provider_name} failure: {e}", source=provider_name)
            await self._record(provider_name, model, started, None, attempts, error)
            return GenerationResult(error=error, attempts=attempts)

        if config.use_cache and self.cache is not None:
            await self.cache.set(key, obj, config.cache_ttl)

        await self._record(provider_name, model, started, response.usage, attempts, None)
        return GenerationResult(object=obj, usage=response.usage, attempts=attempts)

    async def _from_cache(self, key: str, schema: type[T]) -> Optional[T]:
        cached = await self.cache.get(key)
        if cached is None:
            return None
        try:
            return schema.model_validate(cached)
        except ValidationError:
            logger.warning("Ignoring cached entry %s that no longer matches %s", key, schema.__name__)
            return None

    async def _record(
        self,
        provider: str,
        model: str,
        started: float,
        usage: Optional[TokenUsage],
        attempts: int,
        error: Optional[TrendPipelineError],
        cached: bool = False,
    ):
        usage = usage or TokenUsage()
        cost = calculate_cost(usage, model) if usage.total_tokens else None
        record = UsageRecord(
            provider=provider,
            model=model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            duration_ms=int((time.monotonic() - started) * 1000),
            success=error is None,
            cached=cached,
            attempts=attempts,
            error=str(error) if error else None,
            estimated_cost_usd=cost.total_cost if cost else None,
        )

        extra = record.model_dump(mode="json", exclude={"created_at"})
        if error is None:
            logger.info("AI generation completed", extra=extra)
        else:
            logger.error("AI generation failed: %s", error, extra=extra)

        if self.usage_sink is not None:
            try:
                await self.usage_sink(record)
            except Exception as e:
                logger.warning("Usage sink failed: %s", e)
