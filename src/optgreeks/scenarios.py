# scenarios.py
# Grid evaluation of the portfolio aggregator:
#   - curve:   1-D sweep over spot, all 14 metrics per point
#   - surface: 2-D sweep over (secondary market variable, spot), one metric
#
# Rows of a surface are independent, so they can be spread over a process
# pool; results are joined back in row order.

from __future__ import annotations
import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import numpy as np

from .config import DEFAULT_CONFIG, EngineConfig, secondary_range
from .core import (
    Leg, MarketState, MetricVector, SecondaryVariable,
    METRIC_NAMES, metric_index,
)
from .portfolio import portfolio_metrics

__all__ = ["CurveSeries", "Surface", "spot_axis", "evaluate_curve", "evaluate_surface"]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CurveSeries:
    """Ordered ``(spot, metrics)`` samples over an increasing spot range."""
    spots: np.ndarray      # (steps,)
    metrics: np.ndarray    # (steps, 14)

    def __len__(self) -> int:
        return len(self.spots)

    def column(self, metric) -> np.ndarray:
        return self.metrics[:, metric_index(metric)]

    def points(self) -> Iterator[tuple[float, MetricVector]]:
        for s, row in zip(self.spots, self.metrics):
            yield float(s), MetricVector(row)

    def as_records(self) -> list[dict[str, float]]:
        return [{"spot": s, **mv.as_dict()} for s, mv in self.points()]


@dataclass(frozen=True)
class Surface:
    """Row-major ``(n_sec, n_spot)`` matrix of one metric plus both axes."""
    spots: np.ndarray       # (n_spot,)
    secondary: np.ndarray   # (n_sec,)
    values: np.ndarray      # (n_sec, n_spot)
    metric: str
    variable: SecondaryVariable

    @property
    def shape(self) -> tuple[int, int]:
        return self.values.shape


# ---------------------------------------------------------------------------
# Axes
# ---------------------------------------------------------------------------
def spot_axis(min_value: float, max_value: float, steps: int) -> np.ndarray:
    """``steps`` evenly spaced samples from ``min_value`` to ``max_value``.

    ``steps < 2`` is clamped to 2 so the step size is always defined.
    """
    n = int(steps)
    if n < 2:
        logger.debug("spot_axis: steps=%d clamped to 2", n)
        n = 2
    return np.linspace(float(min_value), float(max_value), n)


# ---------------------------------------------------------------------------
# Curve
# ---------------------------------------------------------------------------
def evaluate_curve(
    legs: Iterable[Leg],
    market: MarketState,
    min_price: float,
    max_price: float,
    steps: Optional[int] = None,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CurveSeries:
    """Sweep the aggregator over ``steps`` spots in ``[min_price, max_price]``."""
    if steps is None:
        steps = config.default_steps
    spots = spot_axis(min_price, max_price, steps)
    metrics = portfolio_metrics(tuple(legs), market, spots, config=config)
    return CurveSeries(spots=spots, metrics=metrics)


# ---------------------------------------------------------------------------
# Surface
# ---------------------------------------------------------------------------
def _surface_rows(
    legs: tuple[Leg, ...],
    markets: list[MarketState],
    spots: np.ndarray,
    col: int,
    config: EngineConfig,
) -> np.ndarray:
    """Evaluate one block of surface rows (top-level so it pickles)."""
    rows = np.empty((len(markets), len(spots)))
    for i, m in enumerate(markets):
        rows[i] = portfolio_metrics(legs, m, spots, config=config)[:, col]
    return rows


def _plan_chunks(n_rows: int, n_workers: int) -> list[slice]:
    size = -(-n_rows // n_workers)
    return [slice(i, min(i + size, n_rows)) for i in range(0, n_rows, size)]


def evaluate_surface(
    legs: Iterable[Leg],
    base_market: MarketState,
    min_price: float,
    max_price: float,
    n_spot: Optional[int] = None,
    variable=SecondaryVariable.VOLATILITY,
    sec_min: Optional[float] = None,
    sec_max: Optional[float] = None,
    n_sec: Optional[int] = None,
    metric="price",
    *,
    n_workers: Optional[int] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Surface:
    """Evaluate one metric over a (secondary variable x spot) grid.

    Parameters
    ----------
    legs : iterable of Leg
    base_market : MarketState
        Every row uses this state with only ``variable`` overridden.
    min_price, max_price : float
        Spot range (both endpoints included).
    n_spot, n_sec : int, optional
        Axis sizes; default ``config.default_surface_steps``. Clamped to >= 2.
    variable : SecondaryVariable or str
        Market field swept along rows.
    sec_min, sec_max : float, optional
        Secondary range; when omitted, the default range for ``variable``
        (see :func:`optgreeks.config.secondary_range`).
    metric : str or int
        Metric name or boundary index.
    n_workers : int, optional
        ``> 1`` spreads row blocks over a process pool. Default
        ``config.n_workers``.

    Returns
    -------
    Surface
        ``values[j, i]`` is the metric at ``secondary[j]``, ``spots[i]``.
    """
    variable = SecondaryVariable.parse(variable)
    col = metric_index(metric)
    n_spot = config.default_surface_steps if n_spot is None else n_spot
    n_sec = config.default_surface_steps if n_sec is None else n_sec
    if sec_min is None or sec_max is None:
        lo, hi = secondary_range(variable, base_market)
        sec_min = lo if sec_min is None else sec_min
        sec_max = hi if sec_max is None else sec_max

    spots = spot_axis(min_price, max_price, n_spot)
    secondary = spot_axis(sec_min, sec_max, n_sec)
    markets = [base_market.replace_field(variable, v) for v in secondary]
    legs = tuple(legs)
    workers = config.n_workers if n_workers is None else int(n_workers)

    t0 = time.perf_counter()
    if workers <= 1 or len(markets) < 2:
        values = _surface_rows(legs, markets, spots, col, config)
    else:
        chunks = _plan_chunks(len(markets), workers)
        with ProcessPoolExecutor(max_workers=min(workers, len(chunks))) as ex:
            futs = [ex.submit(_surface_rows, legs, markets[c], spots, col, config)
                    for c in chunks]
            values = np.vstack([f.result() for f in futs])
    logger.debug(
        "surface %s x spot (%d x %d, metric=%s, workers=%d) in %.3fs",
        variable.name.lower(), len(secondary), len(spots), METRIC_NAMES[col],
        workers, time.perf_counter() - t0,
    )
    return Surface(
        spots=spots,
        secondary=secondary,
        values=values,
        metric=METRIC_NAMES[col],
        variable=variable,
    )
