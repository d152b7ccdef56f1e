from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp

from .base import Connector
from ..errors import DecodeError, TransportError
from ..models import ConnectionState, Leg

logger = logging.getLogger(__name__)

PriceHandler = Callable[[Leg, float], Any]


class MexcStreamConnector(Connector):
    """Live MEXC deals stream for two channels.

    State machine: CONNECTING -> OPEN on handshake, OPEN -> CLOSED on transport
    error or remote close, CLOSED -> CONNECTING after `reconnect_delay`
    seconds, forever, until stop() is called. Frames are handled one at a
    time in arrival order.
    """

    def __init__(
        self,
        url: str,
        channel_a: str,
        channel_b: str,
        reconnect_delay: float = 5.0,
        heartbeat: Optional[float] = 20.0,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(name="mexc", config=config)
        self.url = url
        self.channels: Dict[str, Leg] = {channel_a: Leg.A, channel_b: Leg.B}
        self.reconnect_delay = reconnect_delay
        self.heartbeat = heartbeat
        self.attempts = 0
        self.frames = 0
        self.decode_errors = 0
        self.last_error: Optional[str] = None
        self._state = ConnectionState.CLOSED
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._stop = asyncio.Event()
        self._running = False
        self._attempt: Optional[asyncio.Future] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("%s: %s -> %s", self.name, self._state.value, state.value)
            self._state = state

    def subscription(self) -> Dict[str, Any]:
        return {"method": "SUBSCRIPTION", "params": list(self.channels)}

    def decode(self, raw: Any) -> Optional[Tuple[Leg, float]]:
        """Return (leg, price) from the first deal of a frame, or None.

        Frames for other channels (subscription acks, pongs) and empty or
        malformed deal lists yield None. Raises DecodeError when the frame is
        not a JSON object.
        """
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"invalid JSON frame: {e}") from e
        if not isinstance(msg, dict):
            raise DecodeError(f"expected JSON object, got {type(msg).__name__}")

        channel = msg.get("c")
        leg = self.channels.get(channel) if isinstance(channel, str) else None
        if leg is None:
            return None
        data = msg.get("d")
        deals = data.get("deals") if isinstance(data, dict) else None
        if not isinstance(deals, list) or not deals:
            return None
        try:
            return leg, float(deals[0]["p"])
        except (KeyError, TypeError, ValueError):
            return None

    def handle_frame(self, raw: Any, on_price: PriceHandler) -> None:
        self.frames += 1
        try:
            update = self.decode(raw)
        except DecodeError as e:
            self.decode_errors += 1
            logger.warning("Error processing message: %s", e)
            return
        if update is not None:
            on_price(*update)

    async def run(self, on_price: PriceHandler) -> None:
        """Connect, subscribe and feed (leg, price) updates to `on_price` until stop()."""
        if self._running:
            raise RuntimeError("stream is already running")
        self._running = True
        self._stop.clear()
        try:
            while not self._stop.is_set():
                self._attempt = asyncio.ensure_future(self._connect_once(on_price))
                try:
                    await self._attempt
                except asyncio.CancelledError:
                    # stop() cancels an in-flight attempt; anything else is ours to propagate
                    if not self._stop.is_set():
                        raise
                except TransportError as e:
                    self.last_error = str(e)
                    logger.error("Stream error: %s", e)
                finally:
                    self._attempt = None
                    self._set_state(ConnectionState.CLOSED)
                if self._stop.is_set():
                    break
                logger.info("Connection closed. Reconnecting in %.1f seconds...", self.reconnect_delay)
                await self._wait_stop(self.reconnect_delay)
        finally:
            self._running = False
            self._set_state(ConnectionState.CLOSED)

    async def _connect_once(self, on_price: PriceHandler) -> None:
        self._set_state(ConnectionState.CONNECTING)
        self.attempts += 1
        logger.info("Connecting to %s (attempt %d)", self.url, self.attempts)
        s = await self.session()
        try:
            async with s.ws_connect(self.url, heartbeat=self.heartbeat) as ws:
                if self._stop.is_set():
                    return
                self._ws = ws
                self._set_state(ConnectionState.OPEN)
                logger.info("Connection open")
                await ws.send_json(self.subscription())
                logger.info("Subscribed to %s", ", ".join(self.channels))
                async for msg in ws:
                    if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                        self.handle_frame(msg.data, on_price)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        raise TransportError(f"websocket error: {ws.exception()}")
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        finally:
            self._ws = None

    async def _wait_stop(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    async def stop(self, close_timeout: float = 1.0) -> None:
        """Stop reconnecting and drop the live connection, if any."""
        self._stop.set()
        ws = self._ws
        if ws is not None and not ws.closed:
            try:
                await asyncio.wait_for(ws.close(), timeout=close_timeout)
            except asyncio.TimeoutError:
                logger.debug("Close handshake timed out")
        attempt = self._attempt
        if attempt is not None and not attempt.done():
            attempt.cancel()

    async def close(self) -> None:
        await self.stop()
        await super().close()
