"""
Token pricing and cost estimation
"""

from typing import Optional
from pydantic import BaseModel

from shortform_trends.models import TokenUsage


# USD per 1M tokens, keyed by model alias
MODEL_PRICING = {
    "gpt-4-turbo": {"input": 10.0, "output": 30.0},
    "gpt-4": {"input": 30.0, "output": 60.0},
    "gpt-4-mini": {"input": 0.15, "output": 0.6},
    "gpt-3.5-turbo": {"input": 0.5, "output": 1.5},
    "claude-opus": {"input": 15.0, "output": 75.0},
    "claude-sonnet": {"input": 3.0, "output": 15.0},
    "claude-haiku": {"input": 0.25, "output": 1.25},
}


class CostCalculation(BaseModel):
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str = "USD"


def calculate_cost(usage: TokenUsage, model: str) -> Optional[CostCalculation]:
    """Cost of one call, or None for unpriced models"""
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        return None

    input_cost = usage.prompt_tokens / 1_000_000 * pricing["input"]
    output_cost = usage.completion_tokens / 1_000_000 * pricing["output"]

    return CostCalculation(
        input_cost=round(input_cost, 6),
        output_cost=round(output_cost, 6),
        total_cost=round(input_cost + output_cost, 6),
    )


def estimate_monthly_cost(
    daily_calls: int,
    avg_input_tokens: int,
    avg_output_tokens: int,
    model: str,
) -> Optional[dict]:
    per_call = calculate_cost(
        TokenUsage(
            prompt_tokens=avg_input_tokens,
            completion_tokens=avg_output_tokens,
            total_tokens=avg_input_tokens + avg_output_tokens,
        ),
        model,
    )
    if per_call is None:
        return None

    daily = per_call.total_cost * daily_calls
    return {
        "daily_cost": daily,
        "monthly_cost": daily * 30,
        "formatted_daily": format_cost(daily),
        "formatted_monthly": format_cost(daily * 30),
    }


def format_cost(cost: float) -> str:
    if cost < 0.01:
        return f"${cost * 1000:.3f}m"
    return f"${cost:.4f}"


def cheapest_model(provider: Optional[str] = None) -> str:
    prefix = {"openai": "gpt", "anthropic": "claude"}.get(provider or "", "")
    candidates = [m for m in MODEL_PRICING if m.startswith(prefix)]
    return min(candidates, key=lambda m: MODEL_PRICING[m]["input"] + MODEL_PRICING[m]["output"])
