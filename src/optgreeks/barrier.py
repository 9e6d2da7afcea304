# barrier.py
# Single flat, continuously-monitored barrier on a European call or put.
#
# Knock-out prices use the Reiner & Rubinstein (1991) / Merton (1973)
# reflection closed form with zero rebate. Knock-in legs are obtained by
# in/out parity against the vanilla metrics, metric by metric, so
# ``in + out == vanilla`` holds exactly for every slot.
#
# Knock-out Greeks are NOT closed form: they come from central finite
# differences on the knock-out price (see ``risk.numerical_greeks``).

from __future__ import annotations
import logging

import numpy as np
from scipy.stats import norm

from .black_scholes import vanilla_metrics, vanilla_price
from .config import DEFAULT_CONFIG, EngineConfig
from .core import (
    BarrierType, MarketState, OptionType, METRIC_INDEX,
    PRICE, PAYOFF, TIME_VALUE,
)
from .risk import numerical_greeks, FD_GREEKS

__all__ = ["is_breached", "knock_out_price", "barrier_metrics"]

logger = logging.getLogger(__name__)

_logN = norm.logcdf
_N = norm.cdf


# ---------------------------------------------------------------------------
# Knock state
# ---------------------------------------------------------------------------
def is_breached(spot, barrier_type, level: float) -> np.ndarray:
    """Boolean mask: spot already at or beyond the barrier.

    Up barriers are breached at ``S >= H``, down barriers at ``S <= H``.
    """
    bt = BarrierType.parse(barrier_type)
    S = np.asarray(spot, dtype=float)
    if bt is BarrierType.NONE:
        return np.zeros(S.shape, dtype=bool)
    if bt.is_up:
        return S >= level
    return S <= level


# ---------------------------------------------------------------------------
# Reiner-Rubinstein knock-out price
# ---------------------------------------------------------------------------
def _reflection_knock_out(S, K, H, market: MarketState, phi: float, up: bool):
    """Knock-out value for spots on the live side of the barrier."""
    T, sigma, r, q = market.T, market.sigma, market.r, market.q
    b = r - q
    sqrt_T = np.sqrt(T)
    sig_rt = sigma * sqrt_T
    eta = -1.0 if up else 1.0
    disc_q = np.exp(-q * T)
    disc_r = np.exp(-r * T)

    mu = (b - 0.5 * sigma * sigma) / (sigma * sigma)
    log_HS = np.log(H / S)

    x1 = np.log(S / K) / sig_rt + (1.0 + mu) * sig_rt
    x2 = -log_HS / sig_rt + (1.0 + mu) * sig_rt
    y1 = np.log(H * H / (S * K)) / sig_rt + (1.0 + mu) * sig_rt
    y2 = log_HS / sig_rt + (1.0 + mu) * sig_rt

    A = phi * (S * disc_q * _N(phi * x1) - K * disc_r * _N(phi * (x1 - sig_rt)))
    B = phi * (S * disc_q * _N(phi * x2) - K * disc_r * _N(phi * (x2 - sig_rt)))

    # (H/S)^p * N(.) evaluated in log space; the power alone overflows at low vol
    def reflected(y):
        return phi * (S * disc_q * np.exp(2.0 * (mu + 1.0) * log_HS + _logN(eta * y))
                      - K * disc_r * np.exp(2.0 * mu * log_HS + _logN(eta * (y - sig_rt))))

    C = reflected(y1)
    D = reflected(y2)

    strike_above = K > H
    zero = np.zeros_like(A)
    if phi > 0:
        if up:
            value = np.where(strike_above, zero, A - B + C - D)
        else:
            value = np.where(strike_above, A - C, B - D)
    else:
        if up:
            value = np.where(strike_above, B - D, A - C)
        else:
            value = np.where(strike_above, A - B + C - D, zero)
    return value


def knock_out_price(
    spot,
    strike: float,
    level: float,
    market: MarketState,
    kind=OptionType.CALL,
    *,
    up: bool,
    config: EngineConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Price of a unit long knock-out call/put (zero rebate).

    Spots at or past the barrier price at 0. A non-positive down barrier
    can never be reached, so the option is the vanilla. Expired or
    zero-vol markets resolve to the degenerate vanilla value on the live
    side of the barrier.
    """
    phi = OptionType.parse(kind).phi
    S = np.asarray(spot, dtype=float)
    K = max(float(strike), config.min_strike)
    H = float(level)
    breached = (S >= H) if up else (S <= H)

    with np.errstate(all="ignore"):
        if market.is_degenerate(config.min_vol_sqrt_t) or (not up and H <= 0.0):
            value = vanilla_price(S, K, market, kind, config=config)
        else:
            value = _reflection_knock_out(S, K, H, market, phi, up)
            value = np.where(np.isfinite(value), value, 0.0)
        value = np.where(breached, 0.0, value)

    valid = np.isfinite(S) & (S > 0.0)
    return np.where(valid, value, np.nan)


# ---------------------------------------------------------------------------
# Barrier metric vector
# ---------------------------------------------------------------------------
def barrier_metrics(
    spot,
    strike: float,
    barrier_type,
    level: float,
    market: MarketState,
    kind=OptionType.CALL,
    *,
    vanilla: np.ndarray | None = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Adjust unit vanilla metrics into single-barrier metrics.

    Parameters
    ----------
    spot : float or array-like
    strike, level : float
        Strike and barrier level.
    barrier_type : BarrierType or str
        ``NONE`` returns the vanilla metrics unchanged.
    market : MarketState
    kind : OptionType or str
    vanilla : ndarray, optional
        Output of :func:`vanilla_metrics` for the same inputs, to avoid
        recomputing it.

    Returns
    -------
    np.ndarray
        Shape ``np.shape(spot) + (14,)``. Knocked-out spots are all zero,
        knocked-in spots equal the vanilla. Greeks of live legs are finite
        difference approximations (price, payoff and time value are exact).
    """
    bt = BarrierType.parse(barrier_type)
    S = np.asarray(spot, dtype=float)
    if vanilla is None:
        vanilla = vanilla_metrics(S, strike, market, kind, config=config)
    if bt is BarrierType.NONE:
        return vanilla

    up = bt.is_up
    breached = is_breached(S, bt, level)

    if market.is_degenerate(config.min_vol_sqrt_t) or (not up and level <= 0.0):
        knock_out = vanilla.copy()
    else:
        def price_func(s, m):
            return knock_out_price(s, strike, level, m, kind, up=up, config=config)

        with np.errstate(all="ignore"):
            g = numerical_greeks(price_func, S, market, bumps=config.bumps)
        knock_out = np.zeros_like(vanilla)
        knock_out[..., PRICE] = g["price"]
        for name in FD_GREEKS:
            col = g[name]
            knock_out[..., METRIC_INDEX[name]] = np.where(np.isfinite(col), col, 0.0)
        disc_r = np.exp(-market.r * market.T)
        knock_out[..., PAYOFF] = vanilla[..., PAYOFF]
        knock_out[..., TIME_VALUE] = g["price"] - disc_r * vanilla[..., PAYOFF]

    knock_out[breached] = 0.0

    if bt.is_knock_in:
        result = vanilla - knock_out
    else:
        result = knock_out

    valid = np.isfinite(S) & (S > 0.0)
    result[~valid] = np.nan
    if np.any(~valid):
        logger.debug("barrier_metrics: %d invalid spot(s) reported as NaN", int(np.sum(~valid)))
    return result
