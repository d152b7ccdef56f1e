from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..control import parse_limit
from ..errors import ValidationError
from ..models import ThresholdBand

if TYPE_CHECKING:
    from ..runner import PairMonitor


def _num(x: float) -> Optional[float]:
    # JSON has no Infinity; an open-ended band edge is reported as null
    return x if math.isfinite(x) else None


def _band(band: ThresholdBand) -> Dict[str, Any]:
    return {"min": _num(band.min), "max": _num(band.max)}


def create_app(monitor: "PairMonitor") -> FastAPI:
    app = FastAPI(title="Pairwatch Panel API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.monitor = monitor

    @app.get("/health")
    async def health():
        stream = monitor.stream
        engine = monitor.engine
        return {
            "status": "ok",
            "connection": stream.state.value,
            "attempts": stream.attempts,
            "frames": stream.frames,
            "decode_errors": stream.decode_errors,
            "last_error": stream.last_error,
            "pairs_logged": len(engine.price_log),
            "alerts_sent": engine.alerts_sent,
            "delivery_failures": engine.delivery_failures,
            "numeric_skips": engine.numeric_skips,
            "alerts_pending": engine.pending,
        }

    @app.get("/api/thresholds")
    async def get_thresholds():
        return _band(monitor.thresholds.band)

    @app.post("/api/thresholds")
    async def set_thresholds(payload: dict):
        changes: Dict[str, float] = {}
        try:
            for key in ("min", "max"):
                if payload.get(key) is not None:
                    changes[key] = parse_limit(payload[key])
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not changes:
            raise HTTPException(status_code=400, detail="min and/or max is required")
        return _band(monitor.thresholds.replace(**changes))

    @app.get("/api/prices")
    async def api_prices(limit: int = 100):
        # oldest -> newest
        return monitor.engine.price_log.rows(limit=min(max(limit, 1), 5000))

    return app


async def serve_panel(monitor: "PairMonitor", host: str = "127.0.0.1", port: int = 8000) -> None:
    import uvicorn

    server = uvicorn.Server(uvicorn.Config(create_app(monitor), host=host, port=port, log_level="warning"))
    await server.serve()
