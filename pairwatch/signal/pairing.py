from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models import Leg, MatchedPricePair, SymbolPrice, utcnow


@dataclass
class PriceBufferState:
    a: Optional[SymbolPrice] = None
    b: Optional[SymbolPrice] = None

    def get(self, leg: Leg) -> Optional[SymbolPrice]:
        return self.a if leg is Leg.A else self.b

    def put(self, value: SymbolPrice) -> None:
        if value.leg is Leg.A:
            self.a = value
        else:
            self.b = value

    def clear(self) -> None:
        self.a = None
        self.b = None


class PriceSynchronizer:
    """Latest-wins, pair-on-completion matching of two price streams.

    Keeps only the most recent unmatched price per leg. Once both legs hold a
    price, a MatchedPricePair is returned and both buffers are cleared.
    Intermediate prices for a leg that updates faster than the other are
    overwritten without ever being paired.

    Only the frame-processing task calls observe(), so the buffers are not locked.
    """

    def __init__(self) -> None:
        self.state = PriceBufferState()

    def observe(self, leg: Leg, price: float, at: Optional[datetime] = None) -> Optional[MatchedPricePair]:
        current = self.state.get(leg)
        if current is not None and current.price == price:
            return None  # duplicate of the buffered value
        stored = SymbolPrice(leg=leg, price=price, observed_at=at or utcnow())
        self.state.put(stored)

        other = self.state.get(leg.other)
        if other is None:
            return None
        a, b = (stored, other) if leg is Leg.A else (other, stored)
        pair = MatchedPricePair(observed_at=max(a.observed_at, b.observed_at), price_a=a.price, price_b=b.price)
        self.state.clear()
        return pair
