"""Quadratic voting cost engine."""

from pulse.voting.quadratic import (
    QuadraticCostEngine,
    average_cost_per_vote,
    quote_cost,
    quote_incremental_costs,
    sum_of_squares,
)

__all__ = [
    "QuadraticCostEngine",
    "average_cost_per_vote",
    "quote_cost",
    "quote_incremental_costs",
    "sum_of_squares",
]
