"""Bump-and-reprice risk engine.

Provides Greeks up to third order via central finite differences on any
vectorised price function ``price_func(spot, market) -> ndarray``. This is
how barrier legs get their sensitivities: the knock-out closed form is
exact, its derivatives here are numerical approximations whose accuracy is
governed by :class:`~optgreeks.config.BumpConfig`.
"""

from __future__ import annotations

import numpy as np
from typing import Callable
from dataclasses import replace

from .config import BumpConfig
from .core import MarketState

__all__ = ["numerical_greeks", "FD_GREEKS"]

FD_GREEKS = (
    "delta", "gamma", "theta", "vega", "rho",
    "speed", "zomma", "color", "ultima", "vanna", "volga",
)


def numerical_greeks(
    price_func: Callable[[np.ndarray, MarketState], np.ndarray],
    spot,
    market: MarketState,
    *,
    bumps: BumpConfig = BumpConfig(),
) -> dict[str, np.ndarray]:
    """Compute price and Greeks via central finite differences.

    Parameters
    ----------
    price_func : callable
        ``price_func(spot, market) -> ndarray`` broadcasting over ``spot``.
    spot : float or array-like
    market : MarketState
        Expected non-degenerate (``T > 0``, ``sigma > 0``).
    bumps : BumpConfig

    Returns
    -------
    dict[str, np.ndarray]
        ``"price"`` plus every key of :data:`FD_GREEKS`. Theta is
        ``-dV/dT`` and color is ``dGamma/dT``, matching the analytic pricer.

    Notes
    -----
    Speed and ultima use the 5-point third-derivative stencil
    ``(f(+2h) - 2f(+h) + 2f(-h) - f(-2h)) / (2h^3)`` with
    ``h = third_order_scale * h1``.
    """
    S = np.asarray(spot, dtype=float)
    sigma, r, T = market.sigma, market.r, market.T

    def p(s=S, **overrides):
        m = replace(market, **overrides) if overrides else market
        return np.asarray(price_func(s, m), dtype=float)

    P0 = p()

    # --- Spot: delta, gamma, speed ---
    hS = np.maximum(bumps.spot_rel * np.abs(S), bumps.spot_floor)
    P_up, P_dn = p(S + hS), p(S - hS)
    delta = (P_up - P_dn) / (2.0 * hS)
    gamma = (P_up - 2.0 * P0 + P_dn) / (hS * hS)

    h3 = bumps.third_order_scale * hS
    speed = (p(S + 2.0 * h3) - 2.0 * p(S + h3)
             + 2.0 * p(S - h3) - p(S - 2.0 * h3)) / (2.0 * h3 ** 3)

    # --- Vol: vega, volga, ultima (lowest stencil point kept >= sigma/2) ---
    hv = max(bumps.vol_rel * abs(sigma), bumps.vol_floor)
    if sigma > 0.0:
        hv = min(hv, 0.25 * sigma / bumps.third_order_scale)
    P_vup, P_vdn = p(sigma=sigma + hv), p(sigma=sigma - hv)
    vega = (P_vup - P_vdn) / (2.0 * hv)
    volga = (P_vup - 2.0 * P0 + P_vdn) / (hv * hv)

    hv3 = bumps.third_order_scale * hv
    ultima = (p(sigma=sigma + 2.0 * hv3) - 2.0 * p(sigma=sigma + hv3)
              + 2.0 * p(sigma=sigma - hv3) - p(sigma=sigma - 2.0 * hv3)) / (2.0 * hv3 ** 3)

    # --- Cross spot/vol: vanna, zomma ---
    P_up_vup, P_dn_vup = p(S + hS, sigma=sigma + hv), p(S - hS, sigma=sigma + hv)
    P_up_vdn, P_dn_vdn = p(S + hS, sigma=sigma - hv), p(S - hS, sigma=sigma - hv)
    vanna = ((P_up_vup - P_dn_vup) - (P_up_vdn - P_dn_vdn)) / (4.0 * hS * hv)
    gamma_vup = (P_up_vup - 2.0 * P_vup + P_dn_vup) / (hS * hS)
    gamma_vdn = (P_up_vdn - 2.0 * P_vdn + P_dn_vdn) / (hS * hS)
    zomma = (gamma_vup - gamma_vdn) / (2.0 * hv)

    # --- Rate: rho ---
    hr = bumps.rate_abs
    rho = (p(r=r + hr) - p(r=r - hr)) / (2.0 * hr)

    # --- Time: theta, color (bump kept inside (0, 2T)) ---
    if T > 0.0:
        hT = min(bumps.time_abs, 0.5 * T)
        P_Tup, P_Tdn = p(T=T + hT), p(T=T - hT)
        theta = -(P_Tup - P_Tdn) / (2.0 * hT)
        gamma_Tup = (p(S + hS, T=T + hT) - 2.0 * P_Tup + p(S - hS, T=T + hT)) / (hS * hS)
        gamma_Tdn = (p(S + hS, T=T - hT) - 2.0 * P_Tdn + p(S - hS, T=T - hT)) / (hS * hS)
        color = (gamma_Tup - gamma_Tdn) / (2.0 * hT)
    else:
        theta = np.zeros_like(P0)
        color = np.zeros_like(P0)

    return {
        "price": P0,
        "delta": delta,
        "gamma": gamma,
        "theta": theta,
        "vega": vega,
        "rho": rho,
        "speed": speed,
        "zomma": zomma,
        "color": color,
        "ultima": ultima,
        "vanna": vanna,
        "volga": volga,
    }
