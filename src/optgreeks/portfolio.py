"""Portfolio aggregation: signed, quantity-scaled sum of per-leg metrics."""

from __future__ import annotations

from typing import Iterable

import numpy as np

from .barrier import barrier_metrics
from .black_scholes import vanilla_metrics
from .config import DEFAULT_CONFIG, EngineConfig
from .core import Leg, MarketState, MetricVector, N_METRICS

__all__ = ["unit_leg_metrics", "leg_metrics", "portfolio_metrics", "evaluate_point"]


def unit_leg_metrics(leg: Leg, market: MarketState, spot,
                     *, config: EngineConfig = DEFAULT_CONFIG) -> np.ndarray:
    """Metrics of one unit long contract with the leg's terms (barrier applied)."""
    vanilla = vanilla_metrics(spot, leg.strike, market, leg.option_type, config=config)
    if not leg.has_barrier:
        return vanilla
    return barrier_metrics(
        spot, leg.strike, leg.barrier_type, leg.barrier_level, market,
        leg.option_type, vanilla=vanilla, config=config,
    )


def leg_metrics(leg: Leg, market: MarketState, spot,
                *, config: EngineConfig = DEFAULT_CONFIG) -> np.ndarray:
    """Unit metrics scaled by quantity and negated for short positions."""
    return leg.multiplier * unit_leg_metrics(leg, market, spot, config=config)


def portfolio_metrics(
    legs: Iterable[Leg],
    market: MarketState,
    spot,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Portfolio metric array at ``spot`` (scalar or array).

    Linear in each leg's signed quantity. Legs are summed in one reduction
    over a stacked array, so the result does not depend on how the caller
    orders them beyond floating-point rounding. No legs gives zeros.

    Returns
    -------
    np.ndarray
        Shape ``np.shape(spot) + (14,)``.
    """
    shape = np.shape(spot) + (N_METRICS,)
    per_leg = [leg_metrics(leg, market, spot, config=config) for leg in legs]
    if not per_leg:
        return np.zeros(shape)
    return np.sum(np.stack(per_leg), axis=0)


def evaluate_point(legs: Iterable[Leg], market: MarketState, spot: float,
                   *, config: EngineConfig = DEFAULT_CONFIG) -> MetricVector:
    """One evaluation point: ``(spot, market) -> MetricVector``."""
    return MetricVector(portfolio_metrics(legs, market, float(spot), config=config))
