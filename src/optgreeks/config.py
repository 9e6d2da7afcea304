"""Engine configuration: finite-difference bumps, numerical guards, grid defaults."""

from __future__ import annotations

from dataclasses import dataclass, field

from .core import MarketState, SecondaryVariable

__all__ = [
    "BumpConfig",
    "EngineConfig",
    "DEFAULT_CONFIG",
    "DEFAULT_MARKET",
    "DEFAULT_SPOT_RANGE",
    "DEFAULT_SECONDARY_RANGES",
    "secondary_range",
]


@dataclass(frozen=True)
class BumpConfig:
    """Bump sizes for the bump-and-reprice barrier Greeks.

    Spot and vol bumps are relative to the current value with an absolute
    floor; rate and time bumps are absolute. Third-order stencils use the
    first-order bump times ``third_order_scale``.
    """

    spot_rel: float = 1e-3
    spot_floor: float = 1e-4
    vol_rel: float = 1e-3
    vol_floor: float = 1e-5
    rate_abs: float = 1e-4
    time_abs: float = 1.0 / 365.0
    third_order_scale: float = 2.0

    def __post_init__(self) -> None:
        for name in ("spot_rel", "spot_floor", "vol_rel", "vol_floor", "rate_abs", "time_abs"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.third_order_scale < 1.0:
            raise ValueError("third_order_scale must be >= 1")


@dataclass(frozen=True)
class EngineConfig:
    """Numerical guards and grid defaults shared by all evaluators."""

    bumps: BumpConfig = field(default_factory=BumpConfig)
    min_vol_sqrt_t: float = 1e-12
    min_strike: float = 1e-12
    default_steps: int = 100
    default_surface_steps: int = 40
    n_workers: int = 1

    def __post_init__(self) -> None:
        if self.min_vol_sqrt_t < 0:
            raise ValueError("min_vol_sqrt_t must be >= 0")
        if self.min_strike <= 0:
            raise ValueError("min_strike must be > 0")
        if self.default_steps < 2 or self.default_surface_steps < 2:
            raise ValueError("grid defaults must be >= 2")
        if self.n_workers < 1:
            raise ValueError("n_workers must be >= 1")


DEFAULT_CONFIG = EngineConfig()
DEFAULT_MARKET = MarketState(T=1.0, sigma=0.20, r=0.05, q=0.0)
DEFAULT_SPOT_RANGE = (50.0, 150.0)

# (min, max) per secondary axis; ``None`` max means "derive from the base market"
DEFAULT_SECONDARY_RANGES: dict[SecondaryVariable, tuple[float, float | None]] = {
    SecondaryVariable.TIME_TO_MATURITY: (0.05, None),
    SecondaryVariable.VOLATILITY: (0.05, 1.0),
    SecondaryVariable.RISK_FREE_RATE: (0.0, 0.20),
    SecondaryVariable.DIVIDEND_YIELD: (0.0, 0.10),
}


def secondary_range(variable, base: MarketState = DEFAULT_MARKET) -> tuple[float, float]:
    """Default axis range for ``variable``.

    The maturity axis runs up to the base maturity when that is longer than
    0.1y, else up to 2y.
    """
    variable = SecondaryVariable.parse(variable)
    lo, hi = DEFAULT_SECONDARY_RANGES[variable]
    if hi is None:
        hi = base.T if base.T > 0.1 else 2.0
    return float(lo), float(hi)
