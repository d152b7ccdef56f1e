import math

import pytest
from fastapi.testclient import TestClient

from pairwatch.models import Leg, ThresholdBand
from pairwatch.panel.server import create_app
from pairwatch.runner import build_monitor

CFG = {
    "stream_url": "ws://127.0.0.1:1/ws",
    "symbol_a": "ORAIUSDT",
    "symbol_b": "OCHUSDT",
    "channel_template": "spot@public.deals.v3.api@{symbol}",
    "reconnect_delay_s": 5.0,
    "heartbeat_s": None,
    "min_limit": 0.5,
    "max_limit": math.inf,
}


@pytest.fixture
def monitor(channel):
    return build_monitor(dict(CFG), channel)


@pytest.fixture
def client(monitor):
    return TestClient(create_app(monitor))


def test_health_reports_stream_and_engine(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["connection"] == "closed"
    assert body["attempts"] == 0
    assert body["pairs_logged"] == 0


def test_open_ended_band_is_reported_as_null(client):
    assert client.get("/api/thresholds").json() == {"min": 0.5, "max": None}


def test_post_thresholds_replaces_both_edges(client, monitor):
    resp = client.post("/api/thresholds", json={"min": "0.8", "max": 1.5})
    assert resp.status_code == 200
    assert resp.json() == {"min": 0.8, "max": 1.5}
    assert monitor.thresholds.band == ThresholdBand(0.8, 1.5)


@pytest.mark.parametrize("payload", [{"max": "abc"}, {"min": -1}, {}])
def test_post_thresholds_rejects_bad_input(client, monitor, payload):
    resp = client.post("/api/thresholds", json=payload)
    assert resp.status_code == 400
    assert monitor.thresholds.band == ThresholdBand(0.5, math.inf)


def test_prices_oldest_first(client, monitor):
    for a, b in [(1.0, 1.0), (2.0, 1.0), (3.0, 1.0)]:
        monitor.on_price(Leg.A, a)
        monitor.on_price(Leg.B, b)
    rows = client.get("/api/prices", params={"limit": 2}).json()
    assert [r["price_a"] for r in rows] == [2.0, 3.0]
    assert rows[-1]["ratio"] == 3.0
    assert client.get("/health").json()["pairs_logged"] == 3
