"""
AI provider selection and the provider SDK boundary.

All provider SDK calls live here. Every SDK exception is classified into the
pipeline error taxonomy at the point it is caught, so the enricher decides
about retries from the error type alone.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Annotated, Literal, Optional, Union

import anthropic
import openai
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from shortform_trends.errors import (
    MissingCredentialError,
    PermanentError,
    QuotaExceededError,
    TransientError,
    TrendPipelineError,
)
from shortform_trends.models import TokenUsage


# Model aliases accepted from callers, mapped to provider model ids
OPENAI_MODELS = {
    "gpt-4-turbo": "gpt-4-turbo-preview",
    "gpt-4": "gpt-4",
    "gpt-4-mini": "gpt-4o-mini",
    "gpt-3.5-turbo": "gpt-3.5-turbo",
}

ANTHROPIC_MODELS = {
    "claude-opus": "claude-opus-4-5-20251101",
    "claude-sonnet": "claude-sonnet-4-5-20250929",
    "claude-haiku": "claude-3-5-haiku-20241022",
}

OpenAIModel = Literal["gpt-4-turbo", "gpt-4", "gpt-4-mini", "gpt-3.5-turbo"]
AnthropicModel = Literal["claude-opus", "claude-sonnet", "claude-haiku"]


class OpenAIConfig(BaseModel):
    provider: Literal["openai"] = "openai"
    model: OpenAIModel = "gpt-4-mini"

    @property
    def model_id(self) -> str:
        return OPENAI_MODELS[self.model]


class AnthropicConfig(BaseModel):
    provider: Literal["anthropic"] = "anthropic"
    model: AnthropicModel = "claude-sonnet"

    @property
    def model_id(self) -> str:
        return ANTHROPIC_MODELS[self.model]


ProviderConfig = Annotated[Union[OpenAIConfig, AnthropicConfig], Field(discriminator="provider")]

_provider_config_adapter = TypeAdapter(ProviderConfig)


def parse_provider_config(provider: str, model: Optional[str] = None) -> Union[OpenAIConfig, AnthropicConfig]:
    """
    Resolve a provider/model pair.

    Unknown providers or models raise ValueError instead of falling back to
    a default model.
    """
    data = {"provider": provider}
    if model:
        data["model"] = model
    try:
        return _provider_config_adapter.validate_python(data)
    except ValidationError as e:
        raise ValueError(f"Unsupported provider/model: {provider}/{model}") from e


@dataclass
class ProviderResponse:
    text: str
    usage: TokenUsage
    finish_reason: Optional[str] = None


_QUOTA_CODES = ("insufficient_quota", "billing_error")


def classify_provider_error(error: BaseException, provider: str) -> TrendPipelineError:
    """Map an SDK / transport exception onto the error taxonomy"""
    if isinstance(error, TrendPipelineError):
        return error

    message = f"{provider} error: {error}"

    if isinstance(error, (openai.APIConnectionError, anthropic.APIConnectionError, asyncio.TimeoutError)):
        # Timeout errors subclass the connection errors in both SDKs
        return TransientError(message, source=provider)

    if isinstance(error, (openai.APIStatusError, anthropic.APIStatusError)):
        status = error.status_code
        body = error.body if isinstance(error.body, dict) else {}
        if isinstance(body.get("error"), dict):
            body = body["error"]
        code = getattr(error, "code", None) or body.get("code") or body.get("type")

        if code in _QUOTA_CODES or "credit balance" in str(error).lower():
            return QuotaExceededError(message, source=provider, status_code=status)
        if status in (408, 409, 429) or status >= 500:
            return TransientError(message, source=provider, status_code=status)
        return PermanentError(message, source=provider, status_code=status)

    return PermanentError(message, source=provider)


class BaseProvider(ABC):
    """One structured-generation backend"""

    name: str
    api_key_env: str

    def __init__(self, api_key: Optional[str] = None, timeout: float = 60.0):
        self.api_key = api_key
        self.timeout = timeout

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredentialError(self.api_key_env, source=self.name)
        return self.api_key

    async def complete(
        self,
        messages: list[dict],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ProviderResponse:
        """Call the provider; failures leave here classified"""
        self._require_api_key()
        try:
            return await self._complete(messages, model, temperature, max_tokens)
        except TrendPipelineError:
            raise
        except Exception as e:
            raise classify_provider_error(e, self.name) from e

    @abstractmethod
    async def _complete(
        self,
        messages: list[dict],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ProviderResponse:
        pass

    async def close(self):
        pass


class OpenAIProvider(BaseProvider):
    name = "openai"
    api_key_env = "OPENAI_API_KEY"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 60.0):
        super().__init__(api_key, timeout)
        self._client: Optional[openai.AsyncOpenAI] = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            # Retries are owned by the enricher
            self._client = openai.AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def _complete(self, messages, model, temperature, max_tokens) -> ProviderResponse:
        response = await self._get_client().chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )

        choice = response.choices[0]
        usage = response.usage
        return ProviderResponse(
            text=choice.message.content or "",
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            finish_reason=choice.finish_reason,
        )

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None


class AnthropicProvider(BaseProvider):
    name = "anthropic"
    api_key_env = "ANTHROPIC_API_KEY"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 60.0):
        super().__init__(api_key, timeout)
        self._client: Optional[anthropic.AsyncAnthropic] = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def _complete(self, messages, model, temperature, max_tokens) -> ProviderResponse:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        chat = [m for m in messages if m["role"] != "system"]

        kwargs = dict(model=model, messages=chat, temperature=temperature, max_tokens=max_tokens)
        if system:
            kwargs["system"] = system

        response = await self._get_client().messages.create(**kwargs)

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        prompt_tokens = response.usage.input_tokens
        completion_tokens = response.usage.output_tokens
        return ProviderResponse(
            text=text,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason=response.stop_reason,
        )

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
