"""
Real-time feed client.

Keeps one WebSocket connection to the authority's push feed, fans every
envelope out to subscribers, and reconnects with exponential backoff after
unexpected drops.

Lifecycle:
    idle -> connecting -> open
    open/connecting --unexpected close--> closed_retrying --timer--> connecting
    closed_retrying --attempts exhausted--> exhausted
    any --disconnect()--> closed_clean

Message format (both directions):
    {"type": "flight:update", "payload": {"flights": [...]}}
"""

import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import Any, Callable, Optional, Union

import websocket

from contracts.constants import WS_MESSAGE_TYPE_FLIGHT_UPDATE, WS_MESSAGE_TYPE_REGISTER
from contracts.validation import FeedEnvelope, Flight, validate_feed_envelope, validate_flight_update
from gameclient import config
from gameclient.errors import ProtocolError, TransportError
from gameclient.metrics import (
    FEED_MESSAGES_RECEIVED,
    FEED_MESSAGES_REJECTED,
    FEED_RECONNECTS,
    FEED_CONNECTED,
)

logger = logging.getLogger(__name__)


class FeedState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED_CLEAN = "closed_clean"
    CLOSED_RETRYING = "closed_retrying"
    EXHAUSTED = "exhausted"


@dataclass
class ReconnectPolicy:
    """Exponential backoff: base, 2x base, 4x base, ... up to ``max_attempts`` tries."""

    base_delay_ms: int = config.WS_BASE_DELAY_MS
    max_attempts: int = config.WS_MAX_ATTEMPTS

    def delay_ms(self, attempt: int) -> int:
        """Delay before the 1-indexed ``attempt``."""
        return self.base_delay_ms * 2 ** (attempt - 1)


def _websocket_app(url, on_open, on_message, on_error, on_close):
    return websocket.WebSocketApp(
        url,
        on_open=on_open,
        on_message=on_message,
        on_error=on_error,
        on_close=on_close,
    )


def _timer(delay_seconds: float, callback: Callable[[], None]):
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    return timer


Handler = Callable[[FeedEnvelope], None]
StateListener = Callable[[FeedState, Optional[TransportError]], None]


def decode_envelope(raw: Union[str, bytes]) -> FeedEnvelope:
    """
    Decode one feed frame.

    Raises:
        ProtocolError: the frame is not JSON or not a ``{type, payload}`` envelope
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from e

    is_valid, envelope, error = validate_feed_envelope(data)
    if not is_valid:
        raise ProtocolError(f"invalid envelope: {error}")
    return envelope


class FeedClient:
    """
    Handle on the push feed connection.

    One instance owns at most one socket at a time. Callbacks arriving from a
    socket that has since been replaced or closed are ignored, so messages are
    delivered in order within one connection and never across two.
    """

    def __init__(
        self,
        ws_url: Optional[str] = None,
        policy: Optional[ReconnectPolicy] = None,
        transport_factory: Callable[..., Any] = _websocket_app,
        timer_factory: Callable[[float, Callable[[], None]], Any] = _timer,
    ):
        """
        Args:
            ws_url: Feed base override; defaults to the configured base.
            policy: Reconnection policy.
            transport_factory: Builds a ``WebSocketApp``-like object from a URL
                and the four callbacks.
            timer_factory: Builds a startable, cancellable timer.
        """
        self.ws_url = ws_url
        self.policy = policy or ReconnectPolicy()
        self._transport_factory = transport_factory
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._state = FeedState.IDLE
        self._app = None
        self._timer = None
        self._attempts = 0
        self._session_id: Optional[str] = None
        self._url_session_id: Optional[str] = None
        self._last_error: Optional[TransportError] = None

        self._tokens = count()
        self._handlers: dict[int, Handler] = {}
        self._state_listeners: dict[int, StateListener] = {}

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == FeedState.OPEN

    @property
    def attempts(self) -> int:
        """Consecutive reconnect attempts since the last successful open."""
        return self._attempts

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, session_id: Optional[str] = None):
        """
        Open the feed, or register ``session_id`` on the already-open feed.

        Never opens a second socket while one is open or being opened.
        """
        with self._lock:
            if self._state == FeedState.OPEN:
                if session_id:
                    self._session_id = session_id
                    self._register(session_id)
                return

            if session_id:
                self._session_id = session_id

            if self._state == FeedState.CONNECTING:
                return

            if self._state == FeedState.CLOSED_RETRYING:
                self._cancel_timer()
            else:
                self._attempts = 0

            self._open()

    def disconnect(self):
        """Close deliberately; no reconnect follows."""
        with self._lock:
            self._cancel_timer()
            self._attempts = 0
            self._session_id = None
            self._last_error = None
            app, self._app = self._app, None
            FEED_CONNECTED.set(0)
            self._set_state(FeedState.CLOSED_CLEAN)

        if app is not None:
            try:
                app.close()
            except Exception as e:
                logger.warning(f"Error while closing feed connection: {e}")
        logger.info("Feed disconnected")

    def _open(self):
        url = config.get_ws_url(self._session_id, ws_url=self.ws_url)
        self._url_session_id = self._session_id
        self._set_state(FeedState.CONNECTING)

        try:
            app = self._transport_factory(
                url,
                on_open=self._handle_open,
                on_message=self._handle_message,
                on_error=self._handle_error,
                on_close=self._handle_close,
            )
        except Exception as e:
            logger.error(f"Failed to create feed connection: {e}")
            self._last_error = TransportError(str(e))
            self._schedule_reconnect()
            return

        self._app = app
        logger.info(f"Connecting to feed at {url}")
        thread = threading.Thread(target=app.run_forever, daemon=True, name="feed-client")
        thread.start()

    def _schedule_reconnect(self):
        if self._attempts >= self.policy.max_attempts:
            logger.error("Max reconnection attempts reached")
            self._set_state(FeedState.EXHAUSTED)
            return

        self._attempts += 1
        delay_ms = self.policy.delay_ms(self._attempts)
        logger.info(f"Attempting to reconnect in {delay_ms}ms (attempt {self._attempts})")

        self._set_state(FeedState.CLOSED_RETRYING)
        FEED_RECONNECTS.inc()
        self._timer = self._timer_factory(delay_ms / 1000.0, self._reconnect)
        self._timer.start()

    def _reconnect(self):
        with self._lock:
            self._timer = None
            if self._state != FeedState.CLOSED_RETRYING:
                return
            self._open()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_state(self, state: FeedState):
        if state == self._state:
            return
        self._state = state
        error = self._last_error if state in (FeedState.CLOSED_RETRYING, FeedState.EXHAUSTED) else None
        for listener in list(self._state_listeners.values()):
            try:
                listener(state, error)
            except Exception as e:
                logger.error(f"Feed state listener failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _handle_open(self, ws):
        with self._lock:
            if ws is not self._app:
                return
            self._attempts = 0
            self._last_error = None
            FEED_CONNECTED.set(1)
            self._set_state(FeedState.OPEN)
            logger.info("Feed connected")

            # A session picked up while the socket was opening is not in the URL
            if self._session_id and self._session_id != self._url_session_id:
                self._register(self._session_id)

    def _handle_message(self, ws, message):
        with self._lock:
            if ws is not self._app:
                return
            handlers = list(self._handlers.values())

        try:
            envelope = decode_envelope(message)
        except ProtocolError as e:
            FEED_MESSAGES_REJECTED.labels(reason="malformed").inc()
            logger.warning(f"Dropped feed message: {e}")
            return

        FEED_MESSAGES_RECEIVED.labels(type=envelope.type).inc()
        for handler in handlers:
            try:
                handler(envelope)
            except Exception as e:
                logger.error(f"Feed subscriber failed on {envelope.type}: {e}", exc_info=True)

    def _handle_error(self, ws, error):
        with self._lock:
            if ws is not self._app:
                return
            self._last_error = TransportError(str(error))
        logger.warning(f"Feed error: {error}")

    def _handle_close(self, ws, close_status_code=None, close_msg=None):
        with self._lock:
            if ws is not self._app:
                return
            self._app = None
            FEED_CONNECTED.set(0)
            logger.info(f"Feed closed unexpectedly (code={close_status_code}, reason={close_msg})")
            self._schedule_reconnect()

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def _register(self, session_id: str):
        self.send({"type": WS_MESSAGE_TYPE_REGISTER, "payload": {"sessionId": session_id}})

    def send(self, message: Union[dict, FeedEnvelope]):
        """Send an envelope if the feed is open; otherwise do nothing."""
        with self._lock:
            app = self._app if self._state == FeedState.OPEN else None
        if app is None:
            logger.debug("Feed not open, message not sent")
            return

        if isinstance(message, FeedEnvelope):
            message = message.model_dump()
        try:
            app.send(json.dumps(message))
        except Exception as e:
            logger.warning(f"Failed to send feed message: {e}")

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Deliver every envelope to ``handler``; returns the unsubscribe function."""
        with self._lock:
            token = next(self._tokens)
            self._handlers[token] = handler

        def unsubscribe():
            with self._lock:
                self._handlers.pop(token, None)

        return unsubscribe

    def on_flight_update(self, callback: Callable[[list[Flight]], None]) -> Callable[[], None]:
        """Subscribe to ``flight:update`` pushes only, receiving parsed flights."""
        def handler(envelope: FeedEnvelope):
            if envelope.type != WS_MESSAGE_TYPE_FLIGHT_UPDATE:
                return
            is_valid, payload, error = validate_flight_update(envelope.payload)
            if not is_valid:
                FEED_MESSAGES_REJECTED.labels(reason="invalid_flight_update").inc()
                logger.warning(f"Dropped invalid flight update: {error}")
                return
            callback(list(payload.flights))

        return self.subscribe(handler)

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        """Be told of lifecycle changes, with the transport error behind a drop."""
        with self._lock:
            token = next(self._tokens)
            self._state_listeners[token] = listener

        def unsubscribe():
            with self._lock:
                self._state_listeners.pop(token, None)

        return unsubscribe
