"""Flat-buffer boundary.

Callers that cannot pass Python objects (a UI bridge, a foreign runtime, a
shared-memory transport) talk to the engine through two float64 buffers:

* a caller-owned **leg buffer** of ``leg_count`` records, ``LEG_RECORD_SIZE``
  values each, laid out as :class:`LegField`;
* an engine-owned **result buffer** allocated in a :class:`ResultArena` and
  identified by an integer handle, which the caller reads and then
  releases exactly once.

Layout version 1::

    leg record : [optionType, position, strike, T, sigma, r, q,
                  quantity, barrierTypeCode, barrierLevel]
    point      : 14 metrics, order of ``core.METRIC_NAMES``
    surface    : n_sec x n_spot metric values, row-major

Nothing raised inside the engine crosses this boundary: contract violations
fall back to safe defaults and are logged, unexpected failures yield a
NaN-filled result.
"""

from __future__ import annotations

import logging
import threading
from enum import IntEnum
from typing import Iterable, Sequence

import numpy as np

from .config import DEFAULT_CONFIG, EngineConfig
from .core import (
    BarrierType, Leg, MarketState, OptionType, Position, SecondaryVariable,
    N_METRICS,
)
from .portfolio import portfolio_metrics
from .scenarios import evaluate_surface

__all__ = [
    "LAYOUT_VERSION", "LEG_RECORD_SIZE", "RESULT_SIZE", "LegField",
    "pack_legs", "unpack_legs",
    "ResultArena", "DEFAULT_ARENA",
    "calc_greeks_at_spot", "calc_surface",
]

logger = logging.getLogger(__name__)

LAYOUT_VERSION = 1
RESULT_SIZE = N_METRICS


class LegField(IntEnum):
    OPTION_TYPE = 0
    POSITION = 1
    STRIKE = 2
    T = 3
    SIGMA = 4
    R = 5
    Q = 6
    QUANTITY = 7
    BARRIER_TYPE = 8
    BARRIER_LEVEL = 9


LEG_RECORD_SIZE = len(LegField)


# ---------------------------------------------------------------------------
# Leg buffer encoding
# ---------------------------------------------------------------------------
def pack_legs(legs: Iterable[Leg], market: MarketState) -> np.ndarray:
    """Encode legs plus the shared market into a flat float64 buffer."""
    legs = list(legs)
    buf = np.zeros(len(legs) * LEG_RECORD_SIZE, dtype=np.float64)
    for i, leg in enumerate(legs):
        rec = buf[i * LEG_RECORD_SIZE:(i + 1) * LEG_RECORD_SIZE]
        rec[LegField.OPTION_TYPE] = int(leg.option_type)
        rec[LegField.POSITION] = int(leg.position)
        rec[LegField.STRIKE] = leg.strike
        rec[LegField.T] = market.T
        rec[LegField.SIGMA] = market.sigma
        rec[LegField.R] = market.r
        rec[LegField.Q] = market.q
        rec[LegField.QUANTITY] = leg.quantity
        rec[LegField.BARRIER_TYPE] = int(leg.barrier_type)
        rec[LegField.BARRIER_LEVEL] = leg.barrier_level
    return buf


def _decode_code(value, enum_cls, default, what: str):
    try:
        v = float(value)
    except (TypeError, ValueError):
        v = float("nan")
    if np.isfinite(v) and v.is_integer():
        try:
            return enum_cls(int(v))
        except ValueError:
            pass
    logger.warning("invalid %s code %r, using %s", what, value, default.name)
    return default


def unpack_legs(buffer, leg_count: int) -> tuple[list[Leg], MarketState]:
    """Decode a leg buffer without ever reading past its end.

    Market fields are taken from the first record (every record carries the
    same market by contract). Returns the default market when there are no
    legs.
    """
    buf = np.asarray(buffer, dtype=np.float64).reshape(-1)
    available = buf.size // LEG_RECORD_SIZE
    try:
        n = int(leg_count)
    except (TypeError, ValueError, OverflowError):
        logger.warning("invalid leg_count %r, treating as 0", leg_count)
        n = 0
    if n < 0:
        logger.warning("negative leg_count %d, treating as 0", n)
        n = 0
    if n > available:
        logger.warning("leg_count %d exceeds buffer (%d records); truncating", n, available)
        n = available

    legs: list[Leg] = []
    for i in range(n):
        rec = buf[i * LEG_RECORD_SIZE:(i + 1) * LEG_RECORD_SIZE]
        qty = rec[LegField.QUANTITY]
        if not np.isfinite(qty):
            logger.warning("leg %d: non-finite quantity, using 0", i)
            qty = 0.0
        legs.append(Leg(
            option_type=_decode_code(rec[LegField.OPTION_TYPE], OptionType, OptionType.CALL,
                                     f"leg {i} optionType"),
            position=_decode_code(rec[LegField.POSITION], Position, Position.LONG,
                                  f"leg {i} position"),
            strike=rec[LegField.STRIKE],
            quantity=abs(qty),
            barrier_type=_decode_code(rec[LegField.BARRIER_TYPE], BarrierType, BarrierType.NONE,
                                      f"leg {i} barrierType"),
            barrier_level=rec[LegField.BARRIER_LEVEL],
        ))

    if n == 0:
        return legs, MarketState()
    first = buf[:LEG_RECORD_SIZE]
    market = MarketState(
        T=float(first[LegField.T]),
        sigma=float(first[LegField.SIGMA]),
        r=float(first[LegField.R]),
        q=float(first[LegField.Q]),
    )
    return legs, market


# ---------------------------------------------------------------------------
# Engine-owned result buffers
# ---------------------------------------------------------------------------
class ResultArena:
    """Registry of engine-allocated result buffers.

    Each :meth:`allocate` must be matched by exactly one :meth:`release`.
    """

    def __init__(self) -> None:
        self._buffers: dict[int, np.ndarray] = {}
        self._next = 1
        self._lock = threading.Lock()

    def allocate(self, values) -> int:
        arr = np.array(values, dtype=np.float64).reshape(-1)
        arr.setflags(write=False)
        with self._lock:
            handle = self._next
            self._next += 1
            self._buffers[handle] = arr
        return handle

    def read(self, handle: int) -> np.ndarray:
        """Read-only view of a live buffer; ``KeyError`` if not live."""
        with self._lock:
            return self._buffers[handle]

    def release(self, handle: int) -> bool:
        """Free a buffer. Returns ``False`` for unknown or already-released handles."""
        with self._lock:
            arr = self._buffers.pop(handle, None)
        if arr is None:
            logger.warning("release of unknown or already released handle %r", handle)
            return False
        return True

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._buffers)

    def __contains__(self, handle) -> bool:
        with self._lock:
            return handle in self._buffers


DEFAULT_ARENA = ResultArena()


# ---------------------------------------------------------------------------
# Boundary calls
# ---------------------------------------------------------------------------
def calc_greeks_at_spot(
    spot: float,
    leg_count: int,
    leg_buffer: Sequence[float],
    *,
    arena: ResultArena = DEFAULT_ARENA,
    config: EngineConfig = DEFAULT_CONFIG,
) -> int:
    """Point evaluation; returns a handle to ``RESULT_SIZE`` float64 values."""
    try:
        legs, market = unpack_legs(leg_buffer, leg_count)
        values = portfolio_metrics(legs, market, float(spot), config=config)
    except Exception:
        logger.exception("calc_greeks_at_spot failed; returning NaN result")
        values = np.full(RESULT_SIZE, np.nan)
    return arena.allocate(values)


def _grid_size(value, name: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning("invalid %s %r, using 2", name, value)
        return 2
    return max(n, 2)


def calc_surface(
    spot_min: float,
    spot_max: float,
    n_spot: int,
    sec_min: float,
    sec_max: float,
    n_sec: int,
    secondary_index: int,
    metric_index: int,
    leg_count: int,
    leg_buffer: Sequence[float],
    *,
    arena: ResultArena = DEFAULT_ARENA,
    config: EngineConfig = DEFAULT_CONFIG,
    n_workers: int | None = None,
) -> int:
    """Surface evaluation; returns a handle to ``n_sec * n_spot`` row-major values.

    Out-of-range ``secondary_index`` falls back to volatility and
    out-of-range ``metric_index`` to price.
    """
    n_spot = _grid_size(n_spot, "n_spot")
    n_sec = _grid_size(n_sec, "n_sec")
    variable = _decode_code(secondary_index, SecondaryVariable, SecondaryVariable.VOLATILITY,
                            "secondaryVariable")
    try:
        col = int(metric_index)
        if not 0 <= col < N_METRICS:
            raise ValueError(col)
    except (TypeError, ValueError, OverflowError):
        logger.warning("invalid metric index %r, using price", metric_index)
        col = 0
    try:
        legs, market = unpack_legs(leg_buffer, leg_count)
        surface = evaluate_surface(
            legs, market, spot_min, spot_max, n_spot,
            variable, sec_min, sec_max, n_sec, col,
            n_workers=n_workers, config=config,
        )
        values = surface.values
    except Exception:
        logger.exception("calc_surface failed; returning NaN result")
        values = np.full(n_sec * n_spot, np.nan)
    return arena.allocate(values)
