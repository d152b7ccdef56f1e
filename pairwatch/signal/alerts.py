from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
from typing import Optional, Set

from ..connectors.base import NotificationSink
from ..errors import NotificationDeliveryError, NumericError
from ..models import MatchedPricePair, ThresholdBand
from ..storage.memory import PriceLog

logger = logging.getLogger(__name__)


class ThresholdState:
    """Holder of the shared threshold band.

    Writers replace the whole band in one step, so a reader sees either the
    old (min, max) or the new one, never a mix.
    """

    def __init__(self, band: ThresholdBand) -> None:
        self._band = band
        self._lock = threading.Lock()

    @property
    def band(self) -> ThresholdBand:
        with self._lock:
            return self._band

    def replace(self, **changes: float) -> ThresholdBand:
        with self._lock:
            self._band = dataclasses.replace(self._band, **changes)
            return self._band

    def set_min(self, value: float) -> ThresholdBand:
        return self.replace(min=value)

    def set_max(self, value: float) -> ThresholdBand:
        return self.replace(max=value)


def alert_text(ratio: float) -> str:
    return f"ratio out of bounds: {ratio}"


class AlertEngine:
    """Evaluates matched pairs against the current band and notifies on violation.

    Notifications run as background tasks; a failed delivery is logged and
    never retried.
    """

    def __init__(self, thresholds: ThresholdState, sink: NotificationSink, price_log: Optional[PriceLog] = None) -> None:
        self.thresholds = thresholds
        self.sink = sink
        self.price_log = price_log if price_log is not None else PriceLog()
        self.alerts_sent = 0
        self.delivery_failures = 0
        self.numeric_skips = 0
        self._pending: Set[asyncio.Task] = set()

    @staticmethod
    def evaluate(pair: MatchedPricePair, thresholds: ThresholdBand) -> Optional[str]:
        """Return the alert text if the pair's ratio is outside the band.

        Raises NumericError when the ratio is undefined.
        """
        ratio = pair.ratio
        if thresholds.contains(ratio):
            return None
        return alert_text(ratio)

    def on_pair(self, pair: MatchedPricePair) -> Optional[str]:
        self.price_log.append(pair)
        try:
            text = self.evaluate(pair, self.thresholds.band)
        except NumericError as e:
            self.numeric_skips += 1
            logger.warning("Skipping pair A=%s B=%s: %s", pair.price_a, pair.price_b, e)
            return None
        if text is None:
            return None
        logger.warning(text)
        self._dispatch(text)
        return text

    def _dispatch(self, text: str) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, text: str) -> None:
        try:
            await self.sink.send(text)
            self.alerts_sent += 1
        except NotificationDeliveryError as e:
            self.delivery_failures += 1
            logger.error("Alert delivery failed: %s", e)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight notifications (used on shutdown and in tests)."""
        if not self._pending:
            return
        _, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)
