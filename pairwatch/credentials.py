from __future__ import annotations

from typing import Any, Dict, Optional, Tuple
from .config import load_config


class MissingCredentials(Exception):
    pass


def get_telegram_params(cfg: Optional[Dict[str, Any]] = None) -> Tuple[str, str]:
    """Return (bot_token, chat_id) for the operator channel.

    Raises MissingCredentials if either value is missing.
    """
    cfg = cfg or load_config()
    auth = cfg.get("auth", {}).get("telegram", {})
    token = auth.get("token")
    chat_id = auth.get("chat_id")
    if not token or not chat_id:
        raise MissingCredentials("Missing Telegram credentials: set TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID in environment/.env")
    return str(token), str(chat_id)
