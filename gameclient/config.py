"""
Client configuration.

Every setting is read from the environment once at import. The API base and
the feed base are independently overridable; left empty, both are derived
from the origin the client is served from.
"""

import os
from typing import Optional
from urllib.parse import urlencode, urlsplit

from contracts.constants import (
    API_PREFIX,
    WS_PATH,
    DIFFICULTY_EASY,
    WS_RECONNECT_BASE_DELAY_MS,
    WS_RECONNECT_MAX_ATTEMPTS,
)

ORIGIN = os.getenv("FLIGHTGUESS_ORIGIN", "http://localhost:8080")
API_URL = os.getenv("FLIGHTGUESS_API_URL", "")
WS_URL = os.getenv("FLIGHTGUESS_WS_URL", "")

API_TIMEOUT_SECONDS = float(os.getenv("FLIGHTGUESS_API_TIMEOUT_SECONDS", "10"))
DEFAULT_DIFFICULTY = os.getenv("FLIGHTGUESS_DIFFICULTY", DIFFICULTY_EASY)

WS_BASE_DELAY_MS = int(os.getenv("FLIGHTGUESS_WS_BASE_DELAY_MS", str(WS_RECONNECT_BASE_DELAY_MS)))
WS_MAX_ATTEMPTS = int(os.getenv("FLIGHTGUESS_WS_MAX_ATTEMPTS", str(WS_RECONNECT_MAX_ATTEMPTS)))


def get_api_url(path: str, api_url: Optional[str] = None, origin: Optional[str] = None) -> str:
    """Full URL of an authority endpoint such as ``/game/start``."""
    base = API_URL if api_url is None else api_url
    if not base:
        base = (ORIGIN if origin is None else origin).rstrip("/") + API_PREFIX
    return f"{base.rstrip('/')}{path}"


def get_ws_url(
    session_id: Optional[str] = None,
    ws_url: Optional[str] = None,
    origin: Optional[str] = None,
) -> str:
    """
    Feed URL, optionally scoped to a session.

    Without an override the URL follows the origin, using ``wss`` when the
    origin itself is served over ``https``.
    """
    base = WS_URL if ws_url is None else ws_url
    if not base:
        parts = urlsplit(ORIGIN if origin is None else origin)
        scheme = "wss" if parts.scheme == "https" else "ws"
        base = f"{scheme}://{parts.netloc}{WS_PATH}"

    if session_id:
        return f"{base}?{urlencode({'sessionId': session_id})}"
    return base
