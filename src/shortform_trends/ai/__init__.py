"""AI enrichment: providers, structured generation and agents"""

from shortform_trends.ai.agents import (
    ContentGenerator,
    ContentRequest,
    CreatorMatcher,
    CreatorRequest,
    TrendAnalyzer,
    TrendRequest,
)
from shortform_trends.ai.enricher import AIEnricher, GenerationConfig, GenerationResult
from shortform_trends.ai.prompts import PromptLibrary
from shortform_trends.ai.providers import (
    AnthropicConfig,
    AnthropicProvider,
    BaseProvider,
    OpenAIConfig,
    OpenAIProvider,
    parse_provider_config,
)

__all__ = [
    "AIEnricher",
    "AnthropicConfig",
    "AnthropicProvider",
    "BaseProvider",
    "ContentGenerator",
    "ContentRequest",
    "CreatorMatcher",
    "CreatorRequest",
    "GenerationConfig",
    "GenerationResult",
    "OpenAIConfig",
    "OpenAIProvider",
    "PromptLibrary",
    "TrendAnalyzer",
    "TrendRequest",
    "parse_provider_config",
]
