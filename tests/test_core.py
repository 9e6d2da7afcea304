import math

import numpy as np
import pytest

from optgreeks import (
    BarrierType, OptionType, Position, SecondaryVariable,
    Leg, MarketState, MetricVector, METRIC_NAMES, metric_index,
    BumpConfig, EngineConfig, secondary_range, CALL, PUT, LONG, SHORT,
)


class TestEnums:
    @pytest.mark.parametrize("raw,expected", [
        ("call", CALL), ("C", CALL), (" Put ", PUT), (1, PUT), (PUT, PUT),
    ])
    def test_option_type(self, raw, expected):
        assert OptionType.parse(raw) is expected

    def test_phi_and_sign(self):
        assert CALL.phi == 1.0 and PUT.phi == -1.0
        assert LONG.sign == 1.0 and SHORT.sign == -1.0
        assert Position.parse("sell") is SHORT

    @pytest.mark.parametrize("raw,expected", [
        ("up_in", BarrierType.UP_IN), ("Up-And-Out", BarrierType.UP_OUT),
        ("downin", BarrierType.DOWN_IN), ("down out", BarrierType.DOWN_OUT),
        (None, BarrierType.NONE), ("", BarrierType.NONE), (4, BarrierType.DOWN_OUT),
    ])
    def test_barrier_type(self, raw, expected):
        assert BarrierType.parse(raw) is expected

    def test_barrier_properties(self):
        assert BarrierType.UP_IN.is_up and BarrierType.UP_IN.is_knock_in
        assert not BarrierType.DOWN_OUT.is_up and not BarrierType.DOWN_OUT.is_knock_in
        assert BarrierType.DOWN_IN.knock_out is BarrierType.DOWN_OUT
        assert BarrierType.NONE.knock_out is BarrierType.NONE

    def test_secondary_variable(self):
        assert SecondaryVariable.parse("timeToMaturity") is SecondaryVariable.TIME_TO_MATURITY
        assert SecondaryVariable.parse("sigma").field == "sigma"
        assert SecondaryVariable.parse(3).field == "q"

    @pytest.mark.parametrize("cls,raw", [
        (OptionType, "straddle"), (Position, "flat"), (BarrierType, "sideways"),
        (SecondaryVariable, "spot"), (OptionType, 7),
    ])
    def test_rejects_unknown(self, cls, raw):
        with pytest.raises(ValueError):
            cls.parse(raw)


class TestMetricLayout:
    def test_order(self):
        assert METRIC_NAMES == (
            "price", "delta", "gamma", "theta", "vega", "rho", "payoff", "timeValue",
            "speed", "zomma", "color", "ultima", "vanna", "volga",
        )

    def test_metric_index(self):
        assert metric_index("price") == 0
        assert metric_index("time_value") == 7
        assert metric_index("VOLGA") == 13
        assert metric_index(np.int64(4)) == 4
        with pytest.raises(ValueError):
            metric_index(14)
        with pytest.raises(ValueError):
            metric_index("charm")

    def test_metric_vector(self):
        mv = MetricVector(np.arange(14.0))
        assert mv.gamma == 2.0
        assert mv["ultima"] == 11.0
        assert mv.as_dict()["timeValue"] == 7.0
        assert list(mv) == list(range(14))
        with pytest.raises(AttributeError):
            mv.charm
        with pytest.raises(ValueError):
            mv.values[0] = 1.0
        with pytest.raises(ValueError):
            MetricVector([1.0, 2.0])
        assert list(MetricVector.zeros()) == [0.0] * 14


class TestValueTypes:
    def test_leg_coercion(self):
        leg = Leg("put", "short", "95", 2, "down_out", "80")
        assert leg.option_type is PUT
        assert leg.position is SHORT
        assert leg.strike == 95.0
        assert leg.barrier_type is BarrierType.DOWN_OUT
        assert leg.barrier_level == 80.0
        assert leg.multiplier == -2.0
        assert leg.has_barrier

    def test_leg_defaults(self):
        leg = Leg()
        assert leg.option_type is CALL and leg.position is LONG
        assert leg.multiplier == 1.0
        assert not leg.has_barrier

    def test_leg_rejects_bad_type(self):
        with pytest.raises(ValueError):
            Leg("swap", "long", 100.0)

    def test_leg_rejects_negative_quantity(self):
        with pytest.raises(ValueError):
            Leg("call", "short", 100.0, -2.0)
        assert Leg("call", "short", 100.0, 0.0).multiplier == 0.0

    def test_market_replace_field(self):
        m = MarketState()
        assert m.replace_field("volatility", 0.5) == MarketState(sigma=0.5)
        assert m.replace_field(SecondaryVariable.TIME_TO_MATURITY, 2.0).T == 2.0
        assert m.sigma == 0.20

    @pytest.mark.parametrize("m,expected", [
        (MarketState(T=1.0, sigma=0.2), False),
        (MarketState(T=0.0, sigma=0.2), True),
        (MarketState(T=1.0, sigma=0.0), True),
        (MarketState(T=-1.0, sigma=0.2), True),
        (MarketState(T=math.nan, sigma=0.2), True),
    ])
    def test_is_degenerate(self, m, expected):
        assert m.is_degenerate() is expected


class TestConfig:
    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.default_steps == 100
        assert cfg.default_surface_steps == 40
        assert cfg.bumps.time_abs == pytest.approx(1 / 365)

    @pytest.mark.parametrize("kwargs", [
        dict(spot_rel=0.0), dict(vol_floor=-1e-5), dict(rate_abs=0.0), dict(third_order_scale=0.5),
    ])
    def test_bump_validation(self, kwargs):
        with pytest.raises(ValueError):
            BumpConfig(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        dict(min_strike=0.0), dict(n_workers=0), dict(default_steps=1), dict(min_vol_sqrt_t=-1.0),
    ])
    def test_engine_validation(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)

    def test_secondary_ranges(self):
        assert secondary_range("volatility") == (0.05, 1.0)
        assert secondary_range("r") == (0.0, 0.2)
        assert secondary_range("q") == (0.0, 0.1)
        assert secondary_range("T", MarketState(T=1.5)) == (0.05, 1.5)
        assert secondary_range("T", MarketState(T=0.1)) == (0.05, 2.0)
