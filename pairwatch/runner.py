from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .config import load_config, setup_logging, channel_ids
from .control import ThresholdControlSurface
from .connectors.base import OperatorChannel
from .connectors.mexc import MexcStreamConnector
from .connectors.telegram import TelegramConnector
from .credentials import get_telegram_params
from .models import Leg, ThresholdBand
from .rate_limiter import RateLimiter
from .signal.alerts import AlertEngine, ThresholdState
from .signal.pairing import PriceSynchronizer
from .storage.memory import PriceLog

logger = logging.getLogger(__name__)


class PairMonitor:
    """Wires stream -> synchronizer -> alert engine, plus the control surface."""

    def __init__(
        self,
        stream: MexcStreamConnector,
        synchronizer: PriceSynchronizer,
        engine: AlertEngine,
        control: ThresholdControlSurface,
    ) -> None:
        self.stream = stream
        self.synchronizer = synchronizer
        self.engine = engine
        self.control = control

    @property
    def thresholds(self) -> ThresholdState:
        return self.engine.thresholds

    def on_price(self, leg: Leg, price: float) -> None:
        pair = self.synchronizer.observe(leg, price)
        if pair is not None:
            self.engine.on_pair(pair)

    async def close(self, flush_timeout: float = 5.0) -> None:
        await self.stream.close()
        await self.engine.flush(timeout=flush_timeout)


def build_monitor(cfg: Dict[str, Any], channel: OperatorChannel) -> PairMonitor:
    channel_a, channel_b = channel_ids(cfg)
    stream = MexcStreamConnector(
        url=cfg["stream_url"],
        channel_a=channel_a,
        channel_b=channel_b,
        reconnect_delay=float(cfg.get("reconnect_delay_s", 5.0)),
        heartbeat=cfg.get("heartbeat_s"),
    )
    thresholds = ThresholdState(ThresholdBand(min=cfg["min_limit"], max=cfg["max_limit"]))
    engine = AlertEngine(thresholds, sink=channel, price_log=PriceLog())
    control = ThresholdControlSurface(thresholds, channel)
    return PairMonitor(stream, PriceSynchronizer(), engine, control)


def build_channel(cfg: Dict[str, Any], limiter: Optional[RateLimiter] = None) -> TelegramConnector:
    token, chat_id = get_telegram_params(cfg)
    return TelegramConnector(
        token=token,
        chat_id=chat_id,
        host=cfg["telegram_host"],
        poll_timeout=int(cfg.get("poll_timeout_s", 30)),
        limiter=limiter,
    )


async def main() -> None:
    cfg = load_config()
    setup_logging(cfg["log_level"], cfg["log_format"])
    limiter = RateLimiter(cfg.get("ratelimits"))
    channel = build_channel(cfg, limiter)
    monitor = build_monitor(cfg, channel)
    logger.info(
        "Monitoring %s / %s, band %s..%s",
        cfg["symbol_a"], cfg["symbol_b"], cfg["min_limit"], cfg["max_limit"],
    )

    tasks: List[asyncio.Task] = [
        asyncio.create_task(monitor.stream.run(monitor.on_price), name="stream"),
        asyncio.create_task(monitor.control.run(), name="control"),
    ]
    if cfg.get("panel_port"):
        from .panel.server import serve_panel

        tasks.append(asyncio.create_task(serve_panel(monitor, cfg["panel_host"], cfg["panel_port"]), name="panel"))

    try:
        await asyncio.gather(*tasks)
    finally:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await monitor.close()
        await channel.close()
        logger.info("Shut down")


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
