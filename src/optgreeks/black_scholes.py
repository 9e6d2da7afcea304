# black_scholes.py
# Closed-form Black-Scholes-Merton price, payoff and Greeks (up to third order)
# for one unit long European call or put. Spot may be a scalar or an array;
# the result carries the 14 metrics on its last axis.

from __future__ import annotations
import numpy as np
from scipy.stats import norm

from .config import DEFAULT_CONFIG, EngineConfig
from .core import (
    MarketState, OptionType, METRIC_NAMES, N_METRICS,
    PRICE, DELTA, GAMMA, THETA, VEGA, RHO, PAYOFF, TIME_VALUE,
    SPEED, ZOMMA, COLOR, ULTIMA, VANNA, VOLGA,
)

__all__ = ["d1_d2", "vanilla_metrics", "vanilla_price", "vanilla_greeks"]

_N = norm.cdf
_n = norm.pdf

# Greek columns that must never leave the kernel as +/-inf for a valid spot
_GREEK_COLUMNS = [DELTA, GAMMA, THETA, VEGA, RHO, SPEED, ZOMMA, COLOR, ULTIMA, VANNA, VOLGA]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------
def d1_d2(spot, strike: float, market: MarketState):
    """Return ``(d1, d2)`` arrays; assumes a non-degenerate market."""
    S = np.asarray(spot, dtype=float)
    sig_sqrt_T = market.sigma * np.sqrt(market.T)
    with np.errstate(divide="ignore", invalid="ignore"):
        d1 = (np.log(S / strike)
              + (market.r - market.q + 0.5 * market.sigma ** 2) * market.T) / sig_sqrt_T
    return d1, d1 - sig_sqrt_T


def _degenerate(out, S, K, market: MarketState, phi: float, payoff) -> None:
    """Expired or zero-vol leg: discounted forward intrinsic, delta, payoff.

    Every other Greek stays 0 so curves stay finite at the T -> 0 boundary.
    """
    tau = max(market.T, 0.0)
    disc_r = np.exp(-market.r * tau)
    disc_q = np.exp(-market.q * tau)
    fwd_intrinsic = phi * (S * disc_q - K * disc_r)
    price = np.maximum(fwd_intrinsic, 0.0)
    out[..., PRICE] = price
    out[..., DELTA] = np.where(fwd_intrinsic > 0.0, phi * disc_q, 0.0)
    out[..., PAYOFF] = payoff
    out[..., TIME_VALUE] = price - disc_r * payoff


def _diffusive(out, S, K, market: MarketState, phi: float, payoff) -> None:
    T, sigma, r, q = market.T, market.sigma, market.r, market.q
    sqrt_T = np.sqrt(T)
    vst = sigma * sqrt_T
    d1, d2 = d1_d2(S, K, market)
    disc_r = np.exp(-r * T)
    disc_q = np.exp(-q * T)
    n_d1 = _n(d1)
    N_pd1 = _N(phi * d1)
    N_pd2 = _N(phi * d2)

    # Kind-independent
    gamma = disc_q * n_d1 / (S * vst)
    vega = S * disc_q * n_d1 * sqrt_T
    d1d2 = d1 * d2

    price = phi * (S * disc_q * N_pd1 - K * disc_r * N_pd2)
    out[..., PRICE] = price
    out[..., DELTA] = phi * disc_q * N_pd1
    out[..., GAMMA] = gamma
    out[..., THETA] = (-S * disc_q * n_d1 * sigma / (2.0 * sqrt_T)
                       - phi * r * K * disc_r * N_pd2
                       + phi * q * S * disc_q * N_pd1)
    out[..., VEGA] = vega
    out[..., RHO] = phi * K * T * disc_r * N_pd2
    out[..., PAYOFF] = payoff
    out[..., TIME_VALUE] = price - disc_r * payoff

    # Higher order
    out[..., SPEED] = -gamma / S * (d1 / vst + 1.0)
    out[..., ZOMMA] = gamma * (d1d2 - 1.0) / sigma
    out[..., COLOR] = (-disc_q * n_d1 / (2.0 * S * T * vst)
                       * (2.0 * q * T + 1.0
                          + (2.0 * (r - q) * T - d2 * vst) * d1 / vst))
    out[..., ULTIMA] = -vega * (d1d2 * (1.0 - d1d2) + d1 * d1 + d2 * d2) / (sigma * sigma)
    out[..., VANNA] = -disc_q * n_d1 * d2 / sigma
    out[..., VOLGA] = vega * d1d2 / sigma


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def vanilla_metrics(
    spot,
    strike: float,
    market: MarketState,
    kind=OptionType.CALL,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Unit long call/put metrics, unscaled by quantity or position.

    Parameters
    ----------
    spot : float or array-like
        Underlying price(s). Entries that are not finite and positive yield
        a NaN row instead of raising.
    strike : float
        Strike; non-positive values are clamped to ``config.min_strike``.
    market : MarketState
    kind : OptionType or str

    Returns
    -------
    np.ndarray
        Shape ``np.shape(spot) + (14,)`` in boundary order. Theta is
        ``-dV/dT`` per year, color is ``dGamma/dT``, vega is per unit vol.
    """
    phi = OptionType.parse(kind).phi
    S = np.asarray(spot, dtype=float)
    K = max(float(strike), config.min_strike)
    out = np.zeros(S.shape + (N_METRICS,))

    with np.errstate(all="ignore"):
        payoff = np.maximum(phi * (S - K), 0.0)
        if market.is_degenerate(config.min_vol_sqrt_t):
            _degenerate(out, S, K, market, phi, payoff)
        else:
            _diffusive(out, S, K, market, phi, payoff)
            greeks = out[..., _GREEK_COLUMNS]
            out[..., _GREEK_COLUMNS] = np.where(np.isfinite(greeks), greeks, 0.0)

    valid = np.isfinite(S) & (S > 0.0)
    out[~valid] = np.nan
    return out


def vanilla_price(spot, strike: float, market: MarketState, kind=OptionType.CALL,
                  *, config: EngineConfig = DEFAULT_CONFIG):
    return vanilla_metrics(spot, strike, market, kind, config=config)[..., PRICE]


def vanilla_greeks(spot, strike: float, market: MarketState, kind=OptionType.CALL,
                   *, config: EngineConfig = DEFAULT_CONFIG) -> dict[str, np.ndarray]:
    """Same as :func:`vanilla_metrics` but keyed by metric name."""
    m = vanilla_metrics(spot, strike, market, kind, config=config)
    return {name: m[..., i] for i, name in enumerate(METRIC_NAMES)}
