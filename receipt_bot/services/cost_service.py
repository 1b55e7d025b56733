"""Cost estimate for transcription calls.

Token prices are configured in USD per million tokens and converted to
PLN with a fixed rate, so the summary shown after an analysis tells the
user roughly what reading the receipt cost.
"""

from __future__ import annotations

from receipt_bot.core.config import Settings, settings
from receipt_bot.models.schemas import CostBreakdown, TokenUsage


def estimate_cost(usage: TokenUsage, config: Settings = settings) -> CostBreakdown:
    """Estimate the PLN cost of one call from its token usage.

    :param usage: Token counts reported by the model
    :param config: Settings providing the per-million prices and the USD→PLN rate
    :returns: Input, output and total cost (unrounded)
    """
    rate = config.USD_TO_PLN_RATE
    input_cost = usage.input_tokens / 1_000_000 * config.INPUT_COST_PER_MILLION * rate
    output_cost = usage.output_tokens / 1_000_000 * config.OUTPUT_COST_PER_MILLION * rate
    return CostBreakdown(input_cost=input_cost, output_cost=output_cost, total_cost=input_cost + output_cost)
