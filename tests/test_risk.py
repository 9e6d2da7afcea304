"""Tests for the bump-and-reprice risk engine."""

import numpy as np
import pytest
from optgreeks import MarketState, BumpConfig, CALL, PUT, vanilla_greeks, numerical_greeks
from optgreeks.risk import FD_GREEKS

MKT = MarketState(T=1.0, sigma=0.2, r=0.05, q=0.0)


def _bs_pricer(kind):
    """Analytic price as a black box for the risk engine."""
    def price(S, m):
        return vanilla_greeks(S, 100.0, m, kind)["price"]
    return price


class TestNumericalGreeks:
    def test_vs_analytical_bs(self):
        ng = numerical_greeks(_bs_pricer(CALL), 100.0, MKT)
        ag = vanilla_greeks(100.0, 100.0, MKT, CALL)
        assert abs(ng["delta"] - ag["delta"]) < 1e-5
        assert abs(ng["gamma"] - ag["gamma"]) < 1e-6
        assert abs(ng["vega"] - ag["vega"]) < 1e-4
        assert abs(ng["rho"] - ag["rho"]) < 1e-4
        assert abs(ng["theta"] - ag["theta"]) < 1e-3

    def test_all_keys(self):
        ng = numerical_greeks(_bs_pricer(CALL), 100.0, MKT)
        assert set(ng) == {"price", *FD_GREEKS}
        assert len(FD_GREEKS) == 11

    def test_put_delta_negative(self):
        ng = numerical_greeks(_bs_pricer(PUT), 100.0, MKT)
        assert ng["delta"] < 0

    def test_vectorised_over_spot(self):
        spots = np.array([80.0, 100.0, 120.0])
        ng = numerical_greeks(_bs_pricer(CALL), spots, MKT)
        for name in ("price",) + FD_GREEKS:
            assert ng[name].shape == (3,)
        for i, s in enumerate(spots):
            assert ng["gamma"][i] == pytest.approx(
                float(numerical_greeks(_bs_pricer(CALL), s, MKT)["gamma"]))

    def test_expired_time_greeks_are_zero(self):
        ng = numerical_greeks(lambda S, m: np.maximum(S - 100.0, 0.0), 110.0,
                              MarketState(T=0.0, sigma=0.2))
        assert ng["theta"] == 0.0
        assert ng["color"] == 0.0

    def test_time_bump_stays_inside_maturity(self):
        seen = []

        def price(S, m):
            seen.append(m.T)
            return np.asarray(S, dtype=float) * m.T

        numerical_greeks(price, 100.0, MarketState(T=0.001, sigma=0.2))
        assert min(seen) > 0.0

    def test_vol_bump_stays_positive(self):
        seen = []

        def price(S, m):
            seen.append(m.sigma)
            return np.asarray(S, dtype=float) * m.sigma ** 2

        ng = numerical_greeks(price, 100.0, MarketState(T=1.0, sigma=3e-5))
        assert min(seen) >= 1.5e-5 * (1 - 1e-12)
        assert float(ng["volga"]) == pytest.approx(200.0, rel=1e-6)

    def test_custom_bumps(self):
        coarse = numerical_greeks(_bs_pricer(CALL), 100.0, MKT,
                                  bumps=BumpConfig(spot_rel=0.1))
        fine = numerical_greeks(_bs_pricer(CALL), 100.0, MKT)
        exact = vanilla_greeks(100.0, 100.0, MKT, CALL)["gamma"]
        assert abs(fine["gamma"] - exact) < abs(coarse["gamma"] - exact)
