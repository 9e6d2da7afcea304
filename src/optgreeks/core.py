from __future__ import annotations
from dataclasses import dataclass, replace
from enum import IntEnum

import numpy as np


# ---------------------------------------------------------------------------
# Enumerations (integer values are the boundary codes)
# ---------------------------------------------------------------------------
class OptionType(IntEnum):
    CALL = 0
    PUT = 1

    @property
    def phi(self) -> float:
        """+1 for calls, -1 for puts."""
        return 1.0 if self is OptionType.CALL else -1.0

    @classmethod
    def parse(cls, value) -> "OptionType":
        if isinstance(value, cls):
            return value
        if isinstance(value, (int, np.integer)):
            return cls(int(value))
        s = str(value).strip().lower()
        if s in {"call", "c"}:
            return cls.CALL
        if s in {"put", "p"}:
            return cls.PUT
        raise ValueError(f"option type must be 'call' or 'put', got {value!r}")


class Position(IntEnum):
    LONG = 0
    SHORT = 1

    @property
    def sign(self) -> float:
        return 1.0 if self is Position.LONG else -1.0

    @classmethod
    def parse(cls, value) -> "Position":
        if isinstance(value, cls):
            return value
        if isinstance(value, (int, np.integer)):
            return cls(int(value))
        s = str(value).strip().lower()
        if s in {"long", "l", "buy", "+1"}:
            return cls.LONG
        if s in {"short", "s", "sell", "-1"}:
            return cls.SHORT
        raise ValueError(f"position must be 'long' or 'short', got {value!r}")


class BarrierType(IntEnum):
    NONE = 0
    UP_IN = 1
    UP_OUT = 2
    DOWN_IN = 3
    DOWN_OUT = 4

    @property
    def is_up(self) -> bool:
        return self in (BarrierType.UP_IN, BarrierType.UP_OUT)

    @property
    def is_knock_in(self) -> bool:
        return self in (BarrierType.UP_IN, BarrierType.DOWN_IN)

    @property
    def knock_out(self) -> "BarrierType":
        """Knock-out type monitoring the same side of spot."""
        if self is BarrierType.NONE:
            return self
        return BarrierType.UP_OUT if self.is_up else BarrierType.DOWN_OUT

    @classmethod
    def parse(cls, value) -> "BarrierType":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NONE
        if isinstance(value, (int, np.integer)):
            return cls(int(value))
        s = str(value).strip().lower().replace("-", "").replace("_", "").replace(" ", "")
        aliases = {
            "none": cls.NONE, "": cls.NONE, "vanilla": cls.NONE,
            "upin": cls.UP_IN, "upandin": cls.UP_IN,
            "upout": cls.UP_OUT, "upandout": cls.UP_OUT,
            "downin": cls.DOWN_IN, "downandin": cls.DOWN_IN,
            "downout": cls.DOWN_OUT, "downandout": cls.DOWN_OUT,
        }
        if s not in aliases:
            raise ValueError(f"unknown barrier type {value!r}")
        return aliases[s]


class SecondaryVariable(IntEnum):
    """Market field swept along the second axis of a surface."""
    TIME_TO_MATURITY = 0
    VOLATILITY = 1
    RISK_FREE_RATE = 2
    DIVIDEND_YIELD = 3

    @property
    def field(self) -> str:
        return _SECONDARY_FIELDS[self]

    @classmethod
    def parse(cls, value) -> "SecondaryVariable":
        if isinstance(value, cls):
            return value
        if isinstance(value, (int, np.integer)):
            return cls(int(value))
        s = str(value).strip().lower().replace("_", "").replace("-", "")
        aliases = {
            "t": cls.TIME_TO_MATURITY, "time": cls.TIME_TO_MATURITY,
            "timetomaturity": cls.TIME_TO_MATURITY,
            "sigma": cls.VOLATILITY, "vol": cls.VOLATILITY, "volatility": cls.VOLATILITY,
            "r": cls.RISK_FREE_RATE, "rate": cls.RISK_FREE_RATE,
            "riskfreerate": cls.RISK_FREE_RATE,
            "q": cls.DIVIDEND_YIELD, "dividend": cls.DIVIDEND_YIELD,
            "dividendyield": cls.DIVIDEND_YIELD,
        }
        if s not in aliases:
            raise ValueError(f"unknown secondary variable {value!r}")
        return aliases[s]


_SECONDARY_FIELDS = {
    SecondaryVariable.TIME_TO_MATURITY: "T",
    SecondaryVariable.VOLATILITY: "sigma",
    SecondaryVariable.RISK_FREE_RATE: "r",
    SecondaryVariable.DIVIDEND_YIELD: "q",
}


# ---------------------------------------------------------------------------
# Metric layout
# ---------------------------------------------------------------------------
METRIC_NAMES: tuple[str, ...] = (
    "price", "delta", "gamma", "theta", "vega", "rho",
    "payoff", "timeValue",
    "speed", "zomma", "color", "ultima", "vanna", "volga",
)
N_METRICS = len(METRIC_NAMES)
METRIC_INDEX: dict[str, int] = {name: i for i, name in enumerate(METRIC_NAMES)}

PRICE, DELTA, GAMMA, THETA, VEGA, RHO, PAYOFF, TIME_VALUE, \
    SPEED, ZOMMA, COLOR, ULTIMA, VANNA, VOLGA = range(N_METRICS)


def metric_index(metric) -> int:
    """Resolve a metric name (case-insensitive, ``time_value`` accepted) or index."""
    if isinstance(metric, (int, np.integer)):
        if not 0 <= int(metric) < N_METRICS:
            raise ValueError(f"metric index must be in [0, {N_METRICS - 1}], got {metric}")
        return int(metric)
    key = str(metric).strip().replace("_", "").lower()
    for name, i in METRIC_INDEX.items():
        if name.lower() == key:
            return i
    raise ValueError(f"unknown metric {metric!r}; expected one of {METRIC_NAMES}")


class MetricVector:
    """Read-only view of one evaluation point's 14 metrics."""

    __slots__ = ("_values",)

    def __init__(self, values):
        arr = np.array(values, dtype=float).reshape(-1)
        if arr.size != N_METRICS:
            raise ValueError(f"expected {N_METRICS} metrics, got {arr.size}")
        arr.setflags(write=False)
        self._values = arr

    @classmethod
    def zeros(cls) -> "MetricVector":
        return cls(np.zeros(N_METRICS))

    @property
    def values(self) -> np.ndarray:
        return self._values

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return float(self._values[METRIC_INDEX[name]])
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, key) -> float:
        return float(self._values[metric_index(key)])

    def __len__(self) -> int:
        return N_METRICS

    def __iter__(self):
        return iter(self._values.tolist())

    def as_dict(self) -> dict[str, float]:
        return dict(zip(METRIC_NAMES, self._values.tolist()))

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v:.6g}" for k, v in self.as_dict().items())
        return f"MetricVector({body})"


# ---------------------------------------------------------------------------
# Market and leg value types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class MarketState:
    """Market environment shared by every leg of one evaluation.

    Parameters
    ----------
    T : float
        Time to maturity in years.
    sigma : float
        Volatility (absolute, 0.20 = 20%).
    r : float
        Continuously-compounded risk-free rate.
    q : float
        Continuous dividend yield.
    """
    T: float = 1.0
    sigma: float = 0.20
    r: float = 0.05
    q: float = 0.0

    def replace_field(self, variable, value: float) -> "MarketState":
        """Copy with the field selected by ``variable`` overridden."""
        field = SecondaryVariable.parse(variable).field
        return replace(self, **{field: float(value)})

    def is_degenerate(self, min_vol_sqrt_t: float = 0.0) -> bool:
        """True when expired or volatility-free, i.e. no diffusion is left."""
        if not (self.T > 0.0 and self.sigma > 0.0):
            return True
        return bool(self.sigma * np.sqrt(self.T) < min_vol_sqrt_t)


@dataclass(frozen=True)
class Leg:
    """One option position of a portfolio.

    ``quantity`` is a magnitude; the sign comes from ``position``.
    ``barrier_level`` is only read when ``barrier_type`` is not ``NONE``.
    """
    option_type: OptionType = OptionType.CALL
    position: Position = Position.LONG
    strike: float = 100.0
    quantity: float = 1.0
    barrier_type: BarrierType = BarrierType.NONE
    barrier_level: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "option_type", OptionType.parse(self.option_type))
        object.__setattr__(self, "position", Position.parse(self.position))
        object.__setattr__(self, "barrier_type", BarrierType.parse(self.barrier_type))
        object.__setattr__(self, "strike", float(self.strike))
        object.__setattr__(self, "quantity", float(self.quantity))
        object.__setattr__(self, "barrier_level", float(self.barrier_level))
        if self.quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {self.quantity}")

    @property
    def multiplier(self) -> float:
        """Signed quantity applied to unit metrics."""
        return self.position.sign * self.quantity

    @property
    def has_barrier(self) -> bool:
        return self.barrier_type is not BarrierType.NONE


CALL = OptionType.CALL
PUT = OptionType.PUT
LONG = Position.LONG
SHORT = Position.SHORT
