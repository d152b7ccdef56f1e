from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

from ..models import MatchedPricePair, format_ts
from ..errors import NumericError

logger = logging.getLogger(__name__)


class PriceLog:
    """Append-only in-memory log of matched pairs, in arrival order.

    No eviction: the monitor is long-running, not a store.
    """

    def __init__(self) -> None:
        self._rows: List[MatchedPricePair] = []
        self._lock = threading.Lock()

    def append(self, pair: MatchedPricePair) -> None:
        with self._lock:
            self._rows.append(pair)
        try:
            ratio = f"{pair.ratio}"
        except NumericError:
            ratio = "undefined"
        logger.info("[%s] A=%s B=%s ratio=%s", format_ts(pair.observed_at), pair.price_a, pair.price_b, ratio)

    def latest(self, limit: int = 100) -> List[MatchedPricePair]:
        """Return up to `limit` most recent pairs, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            return self._rows[-limit:]

    def rows(self, limit: int = 100) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self.latest(limit)]

    def __len__(self) -> int:
        return len(self._rows)
