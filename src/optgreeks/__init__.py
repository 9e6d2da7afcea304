# optgreeks: option portfolio pricing and Greeks
# Public API

# Data model
from .core import (
    OptionType, Position, BarrierType, SecondaryVariable,
    Leg, MarketState, MetricVector,
    METRIC_NAMES, METRIC_INDEX, metric_index,
    CALL, PUT, LONG, SHORT,
)

# Configuration
from .config import (
    BumpConfig, EngineConfig, DEFAULT_CONFIG, DEFAULT_MARKET, secondary_range,
)

# Analytic pricers
from .black_scholes import vanilla_metrics, vanilla_price, vanilla_greeks, d1_d2
from .barrier import barrier_metrics, knock_out_price, is_breached

# Bump-and-reprice Greeks
from .risk import numerical_greeks

# Portfolio and grids
from .portfolio import portfolio_metrics, leg_metrics, unit_leg_metrics, evaluate_point
from .scenarios import CurveSeries, Surface, spot_axis, evaluate_curve, evaluate_surface

# Flat-buffer boundary
from .wire import (
    LAYOUT_VERSION, LEG_RECORD_SIZE, RESULT_SIZE, LegField,
    pack_legs, unpack_legs, ResultArena, DEFAULT_ARENA,
    calc_greeks_at_spot, calc_surface,
)

__all__ = [
    # Data model
    "OptionType", "Position", "BarrierType", "SecondaryVariable",
    "Leg", "MarketState", "MetricVector",
    "METRIC_NAMES", "METRIC_INDEX", "metric_index",
    "CALL", "PUT", "LONG", "SHORT",
    # Configuration
    "BumpConfig", "EngineConfig", "DEFAULT_CONFIG", "DEFAULT_MARKET", "secondary_range",
    # Pricers
    "vanilla_metrics", "vanilla_price", "vanilla_greeks", "d1_d2",
    "barrier_metrics", "knock_out_price", "is_breached",
    "numerical_greeks",
    # Portfolio and grids
    "portfolio_metrics", "leg_metrics", "unit_leg_metrics", "evaluate_point",
    "CurveSeries", "Surface", "spot_axis", "evaluate_curve", "evaluate_surface",
    # Boundary
    "LAYOUT_VERSION", "LEG_RECORD_SIZE", "RESULT_SIZE", "LegField",
    "pack_legs", "unpack_legs", "ResultArena", "DEFAULT_ARENA",
    "calc_greeks_at_spot", "calc_surface",
]

__version__ = "0.1.0"
