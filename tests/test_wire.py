import logging

import numpy as np
import pytest

from optgreeks import (
    BarrierType, Leg, MarketState, SecondaryVariable, CALL, PUT, LONG, SHORT,
    LEG_RECORD_SIZE, RESULT_SIZE, LegField, ResultArena,
    pack_legs, unpack_legs, calc_greeks_at_spot, calc_surface,
    portfolio_metrics, evaluate_surface,
)

MKT = MarketState(T=0.75, sigma=0.3, r=0.04, q=0.01)
LEGS = [
    Leg(CALL, LONG, 100.0, 2.0),
    Leg(PUT, SHORT, 95.0, 1.0, BarrierType.DOWN_OUT, 80.0),
]


@pytest.fixture
def arena():
    return ResultArena()


class TestLayout:
    def test_sizes(self):
        assert LEG_RECORD_SIZE == 10
        assert RESULT_SIZE == 14
        assert [f.name for f in LegField] == [
            "OPTION_TYPE", "POSITION", "STRIKE", "T", "SIGMA", "R", "Q",
            "QUANTITY", "BARRIER_TYPE", "BARRIER_LEVEL",
        ]

    def test_codes(self):
        assert [int(b) for b in BarrierType] == [0, 1, 2, 3, 4]
        assert int(SecondaryVariable.TIME_TO_MATURITY) == 0
        assert int(SecondaryVariable.DIVIDEND_YIELD) == 3

    def test_pack(self):
        buf = pack_legs(LEGS, MKT)
        assert buf.dtype == np.float64
        assert buf.shape == (20,)
        np.testing.assert_array_equal(
            buf[10:], [1, 1, 95.0, 0.75, 0.3, 0.04, 0.01, 1.0, 4, 80.0])


class TestUnpack:
    def test_round_trip(self):
        legs, market = unpack_legs(pack_legs(LEGS, MKT), 2)
        assert legs == LEGS
        assert market == MKT

    def test_empty(self):
        legs, market = unpack_legs(np.empty(0), 0)
        assert legs == []
        assert market == MarketState()

    def test_count_larger_than_buffer_is_truncated(self, caplog):
        with caplog.at_level(logging.WARNING, logger="optgreeks.wire"):
            legs, _ = unpack_legs(pack_legs(LEGS, MKT)[:15], 5)
        assert len(legs) == 1
        assert "truncating" in caplog.text

    @pytest.mark.parametrize("count", [-1, "x", None, float("nan")])
    def test_bad_count_is_zero(self, count):
        legs, _ = unpack_legs(pack_legs(LEGS, MKT), count)
        assert legs == []

    def test_unknown_codes_fall_back(self):
        buf = pack_legs(LEGS[:1], MKT)
        buf[LegField.OPTION_TYPE] = 5
        buf[LegField.POSITION] = 0.5
        buf[LegField.BARRIER_TYPE] = 7
        (leg,), _ = unpack_legs(buf, 1)
        assert leg.option_type is CALL
        assert leg.position is LONG
        assert leg.barrier_type is BarrierType.NONE

    def test_quantity_sanitised(self):
        buf = pack_legs(LEGS, MKT)
        buf[LegField.QUANTITY] = -3.0
        buf[LEG_RECORD_SIZE + LegField.QUANTITY] = np.inf
        legs, _ = unpack_legs(buf, 2)
        assert legs[0].quantity == 3.0
        assert legs[1].quantity == 0.0

    def test_market_from_first_record(self):
        buf = pack_legs(LEGS, MKT)
        buf[LEG_RECORD_SIZE + LegField.SIGMA] = 0.9
        _, market = unpack_legs(buf, 2)
        assert market.sigma == 0.3


class TestArena:
    def test_allocate_read_release(self, arena):
        h = arena.allocate([1.0, 2.0])
        assert h in arena
        assert arena.live_count == 1
        np.testing.assert_array_equal(arena.read(h), [1.0, 2.0])
        assert arena.release(h) is True
        assert h not in arena
        assert arena.live_count == 0

    def test_double_release(self, arena, caplog):
        h = arena.allocate([0.0])
        arena.release(h)
        with caplog.at_level(logging.WARNING, logger="optgreeks.wire"):
            assert arena.release(h) is False
        assert "already released" in caplog.text
        with pytest.raises(KeyError):
            arena.read(h)

    def test_handles_are_distinct(self, arena):
        hs = {arena.allocate([i]) for i in range(5)}
        assert len(hs) == 5

    def test_buffers_are_read_only(self, arena):
        h = arena.allocate([1.0])
        with pytest.raises(ValueError):
            arena.read(h)[0] = 2.0


class TestBoundaryCalls:
    def test_point(self, arena):
        h = calc_greeks_at_spot(100.0, 2, pack_legs(LEGS, MKT), arena=arena)
        out = arena.read(h)
        assert out.shape == (RESULT_SIZE,)
        np.testing.assert_allclose(out, portfolio_metrics(LEGS, MKT, 100.0))
        arena.release(h)
        assert arena.live_count == 0

    def test_point_no_legs(self, arena):
        h = calc_greeks_at_spot(100.0, 0, [], arena=arena)
        np.testing.assert_array_equal(arena.read(h), np.zeros(RESULT_SIZE))

    def test_point_failure_is_nan(self, arena, caplog):
        with caplog.at_level(logging.ERROR, logger="optgreeks.wire"):
            h = calc_greeks_at_spot("abc", 2, pack_legs(LEGS, MKT), arena=arena)
        assert np.all(np.isnan(arena.read(h)))
        assert "calc_greeks_at_spot failed" in caplog.text

    def test_surface(self, arena):
        buf = pack_legs(LEGS, MKT)
        h = calc_surface(80.0, 120.0, 5, 0.1, 0.5, 3, 1, 2, 2, buf, arena=arena)
        out = arena.read(h)
        ref = evaluate_surface(LEGS, MKT, 80.0, 120.0, 5, "volatility", 0.1, 0.5, 3, "gamma")
        assert out.shape == (15,)
        np.testing.assert_allclose(out, ref.values.ravel())
        np.testing.assert_allclose(out.reshape(3, 5)[1], ref.values[1])

    def test_surface_index_fallbacks(self, arena):
        buf = pack_legs(LEGS, MKT)
        h_bad = calc_surface(80.0, 120.0, 4, 0.1, 0.5, 3, 9, 20, 2, buf, arena=arena)
        h_ref = calc_surface(80.0, 120.0, 4, 0.1, 0.5, 3, 1, 0, 2, buf, arena=arena)
        np.testing.assert_array_equal(arena.read(h_bad), arena.read(h_ref))

    def test_surface_grid_clamped(self, arena):
        h = calc_surface(80.0, 120.0, 1, 0.1, 0.5, 0, 1, 0, 2, pack_legs(LEGS, MKT), arena=arena)
        assert arena.read(h).shape == (4,)

    def test_surface_no_legs(self, arena):
        h = calc_surface(80.0, 120.0, 3, 0.1, 0.5, 2, 1, 0, 0, [], arena=arena)
        np.testing.assert_array_equal(arena.read(h), np.zeros(6))
