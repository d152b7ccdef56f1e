from __future__ import annotations

import json
import logging
import math
import os
import sys
from typing import Any, Dict

from dotenv import load_dotenv


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Build the runtime config from environment variables and the limits file.

    `path` points at an optional `.env` file; when omitted, python-dotenv
    searches from the working directory. Initial thresholds come from
    MIN_LIMIT / MAX_LIMIT, else from `minLimit` / `maxLimit` in LIMITS_FILE.
    """
    load_dotenv(path)
    limits = _read_limits(os.getenv("LIMITS_FILE", "config.json"))
    cfg: Dict[str, Any] = {
        "stream_url": os.getenv("STREAM_URL_MEXC", "wss://wbs.mexc.com/ws"),
        "symbol_a": os.getenv("SYMBOL_A", "ORAIUSDT"),
        "symbol_b": os.getenv("SYMBOL_B", "OCHUSDT"),
        # NOTE: MEXC channel ids embed the exchange symbol verbatim
        "channel_template": os.getenv("CHANNEL_TEMPLATE", "spot@public.deals.v3.api@{symbol}"),
        "reconnect_delay_s": _to_float(os.getenv("RECONNECT_DELAY_S"), 5.0),
        "heartbeat_s": _to_float(os.getenv("WS_HEARTBEAT_S"), 20.0),
        "min_limit": _limit(os.getenv("MIN_LIMIT", limits.get("minLimit")), 0.0, "min_limit"),
        "max_limit": _limit(os.getenv("MAX_LIMIT", limits.get("maxLimit")), math.inf, "max_limit"),
        "telegram_host": os.getenv("TELEGRAM_HOST", "https://api.telegram.org"),
        "poll_timeout_s": int(_to_float(os.getenv("TELEGRAM_POLL_TIMEOUT_S"), 30)),
        # Bot API: ~30 msg/s overall, ~1 msg/s into a single chat
        "ratelimits": {
            "telegram": {
                "global": {"capacity": 30, "refill": 30.0},
                "chat": {"capacity": 3, "refill": 1.0},
            }
        },
        "panel_host": os.getenv("PANEL_HOST", "127.0.0.1"),
        "panel_port": _to_int(os.getenv("PANEL_PORT")),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "log_format": os.getenv("LOG_FORMAT", "detailed"),
        # secrets stay in environment/.env
        "auth": {
            "telegram": {
                "token": os.getenv("TELEGRAM_BOT_TOKEN"),
                "chat_id": os.getenv("TELEGRAM_CHAT_ID"),
            },
        },
    }
    return cfg


def channel_ids(cfg: Dict[str, Any]) -> tuple[str, str]:
    tpl = cfg["channel_template"]
    return tpl.format(symbol=cfg["symbol_a"]), tpl.format(symbol=cfg["symbol_b"])


def setup_logging(level: str = "INFO", fmt: str = "detailed") -> None:
    """Configure root logging to stdout."""
    if fmt == "json":
        format_string = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
    elif fmt == "detailed":
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    else:  # simple
        format_string = "%(levelname)s: %(message)s"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(format_string))
    logging.basicConfig(level=getattr(logging, level, logging.INFO), handlers=[handler], force=True)

    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _read_limits(path: str) -> Dict[str, Any]:
    if not path or not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    return data if isinstance(data, dict) else {}


def _limit(val: Any, default: float, name: str) -> float:
    if val is None or val == "":
        return default
    try:
        out = float(val)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a non-negative number, got {val!r}")
    if math.isnan(out) or out < 0:
        raise ValueError(f"{name} must be a non-negative number, got {val!r}")
    return out


def _to_float(val: str | None, default: float) -> float:
    try:
        return float(val) if val is not None and val != "" else default
    except ValueError:
        return default


def _to_int(val: str | None) -> int | None:
    try:
        return int(val) if val is not None and val != "" else None
    except ValueError:
        return None
