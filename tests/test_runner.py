import asyncio
import json

from aiohttp import web
from aiohttp.test_utils import TestServer

from pairwatch.models import Leg, ThresholdBand
from pairwatch.runner import build_monitor

CH_A = "spot@public.deals.v3.api@ORAIUSDT"
CH_B = "spot@public.deals.v3.api@OCHUSDT"


def make_cfg(url="ws://127.0.0.1:1/ws", lo=0.5, hi=1.5):
    return {
        "stream_url": url,
        "symbol_a": "ORAIUSDT",
        "symbol_b": "OCHUSDT",
        "channel_template": "spot@public.deals.v3.api@{symbol}",
        "reconnect_delay_s": 0.05,
        "heartbeat_s": None,
        "min_limit": lo,
        "max_limit": hi,
    }


def frame(channel, price):
    return json.dumps({"c": channel, "d": {"deals": [{"p": str(price), "v": "1", "S": 2}]}})


def test_build_monitor_wires_shared_thresholds(channel):
    monitor = build_monitor(make_cfg(), channel)
    assert monitor.thresholds is monitor.control.thresholds
    assert monitor.thresholds.band == ThresholdBand(0.5, 1.5)
    assert monitor.engine.sink is channel
    assert monitor.stream.subscription()["params"] == [CH_A, CH_B]


def test_pair_out_of_band_alerts_and_clears_buffers(channel):
    monitor = build_monitor(make_cfg(), channel)

    async def scenario():
        monitor.on_price(Leg.A, 10.0)
        monitor.on_price(Leg.B, 5.0)
        await monitor.engine.flush(timeout=1)

    asyncio.run(scenario())
    assert channel.sent == [("ratio out of bounds: 2.0", None)]
    assert monitor.synchronizer.state.a is None and monitor.synchronizer.state.b is None
    assert monitor.engine.price_log.rows()[0]["ratio"] == 2.0


def test_unmatched_update_keeps_latest_price(channel):
    monitor = build_monitor(make_cfg(), channel)
    monitor.on_price(Leg.A, 10.0)
    monitor.on_price(Leg.A, 12.0)
    assert monitor.synchronizer.state.a.price == 12.0
    assert len(monitor.engine.price_log) == 0


def test_feed_to_alert_end_to_end(make_channel, wait):
    ops = make_channel(["/setmaxlimit 1.8"])

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        await ws.receive_json()
        for f in [frame(CH_A, 10.0), "garbage", frame(CH_B, 5.0), frame(CH_A, 3.0), frame(CH_B, 2.0)]:
            await ws.send_str(f)
        async for _ in ws:
            pass
        return ws

    async def scenario():
        app = web.Application()
        app.router.add_get("/ws", handler)
        server = TestServer(app)
        await server.start_server()
        try:
            monitor = build_monitor(make_cfg(str(server.make_url("/ws"))), ops)
            await monitor.control.run()
            task = asyncio.create_task(monitor.stream.run(monitor.on_price))
            await wait(lambda: len(monitor.engine.price_log) == 2)
            await monitor.close()
            await asyncio.wait_for(task, 2)
            return monitor
        finally:
            await server.close()

    monitor = asyncio.run(scenario())
    assert [r["ratio"] for r in monitor.engine.price_log.rows()] == [2.0, 1.5]
    assert ops.sent == [("New maximum limit set: 1.8", "42"), ("ratio out of bounds: 2.0", None)]
    assert monitor.stream.decode_errors == 1
