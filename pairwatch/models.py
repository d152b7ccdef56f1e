from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any
import math

from .errors import NumericError


class Leg(str, Enum):
    A = "A"
    B = "B"

    @property
    def other(self) -> "Leg":
        return Leg.B if self is Leg.A else Leg.A


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class SymbolPrice:
    leg: Leg
    price: float
    observed_at: datetime = field(default_factory=lambda: utcnow())


def ratio_of(price_a: float, price_b: float) -> float:
    """Return price_a / price_b, raising NumericError when undefined."""
    if not (math.isfinite(price_a) and math.isfinite(price_b)):
        raise NumericError(f"non-finite price: A={price_a} B={price_b}")
    if price_b == 0:
        raise NumericError(f"zero price for leg B (A={price_a})")
    return price_a / price_b


@dataclass(frozen=True)
class MatchedPricePair:
    observed_at: datetime
    price_a: float
    price_b: float

    @property
    def ratio(self) -> float:
        return ratio_of(self.price_a, self.price_b)

    def to_dict(self) -> Dict[str, Any]:
        try:
            ratio: Optional[float] = self.ratio
        except NumericError:
            ratio = None
        return {
            "datetime": format_ts(self.observed_at),
            "price_a": self.price_a,
            "price_b": self.price_b,
            "ratio": ratio,
        }


@dataclass(frozen=True)
class ThresholdBand:
    # no min <= max check: operators may set an inverted band
    min: float
    max: float

    def contains(self, ratio: float) -> bool:
        """Inclusive on both edges; violation is strictly outside."""
        return not (ratio < self.min or ratio > self.max)


@dataclass(frozen=True)
class OperatorCommand:
    chat_id: str
    text: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S")
