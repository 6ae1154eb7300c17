"""
Shared fixtures: example payloads, fake sockets, fake timers, a fake HTTP
session and a scriptable fake authority.
"""

import json
import sys
from itertools import count
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from contracts.validation import (
    Airport,
    EndGameResponse,
    Flight,
    GuessResponse,
    Round,
    ScoreResult,
    StartGameResponse,
)
from gameclient.feed import FeedClient, ReconnectPolicy
from gameclient.orchestrator import RoundOrchestrator
from gameclient.store import SessionStore

EXAMPLES_DIR = Path(__file__).parent.parent / "contracts" / "examples"

AIRPORTS = {
    "LHR": dict(iata="LHR", icao="EGLL", name="London Heathrow", city="London", country="UK",
                latitude=51.47, longitude=-0.4543),
    "JFK": dict(iata="JFK", icao="KJFK", name="John F. Kennedy International", city="New York",
                country="USA", latitude=40.6413, longitude=-73.7781),
    "EWR": dict(iata="EWR", icao="KEWR", name="Newark Liberty International", city="Newark",
                country="USA", latitude=40.6895, longitude=-74.1745),
    "CDG": dict(iata="CDG", icao="LFPG", name="Charles de Gaulle", city="Paris", country="France",
                latitude=49.0097, longitude=2.5479),
}


# ============================================================================
# Payload builders
# ============================================================================

@pytest.fixture
def load_example() -> Callable[[str], dict]:
    """Load an example JSON file from contracts/examples."""
    def _load(filename: str) -> dict:
        with open(EXAMPLES_DIR / filename) as f:
            return json.load(f)
    return _load


def _flight(flight_id: str = "fl-ba117", departure: str = "LHR", **overrides) -> Flight:
    data = dict(
        id=flight_id,
        icao24="400a1b",
        callsign="BAW117",
        latitude=51.47,
        longitude=-0.4543,
        altitude=35000,
        speed=480,
        direction=285,
        vertical_speed=0,
        departure=Airport(**AIRPORTS[departure]),
        flight_number="BA117",
    )
    data.update(overrides)
    return Flight(**data)


def _score(
    total_points: int = 1000,
    match_type: str = "exact",
    correct: str = "JFK",
    guessed: Optional[str] = None,
    distance_km: Optional[float] = None,
) -> ScoreResult:
    guessed = guessed or correct
    if distance_km is None:
        distance_km = 0.0 if match_type == "exact" else 21.0
    return ScoreResult(
        match_type=match_type,
        base_points=total_points,
        difficulty_multiplier=1.0,
        speed_multiplier=1.0,
        total_points=total_points,
        distance_km=distance_km,
        correct_airport=Airport(**AIRPORTS[correct]),
        guessed_airport=Airport(**AIRPORTS[guessed]),
    )


@pytest.fixture
def make_flight() -> Callable[..., Flight]:
    return _flight


@pytest.fixture
def make_score() -> Callable[..., ScoreResult]:
    return _score


# ============================================================================
# Session store
# ============================================================================

@pytest.fixture
def clock():
    """Deterministic clock: 1000.0, 1001.0, 1002.0, ..."""
    ticks = count(1000)
    return lambda: float(next(ticks))


@pytest.fixture
def store(clock) -> SessionStore:
    return SessionStore(clock=clock)


@pytest.fixture
def playing_store(store, make_flight) -> SessionStore:
    """A store with user Ava in round 1 of a 10-round game."""
    store.set_username("Ava")
    store.start_game("session-1", make_flight(), 10)
    return store


# ============================================================================
# Fake feed transport and timers
# ============================================================================

class FakeSocket:
    """Stands in for websocket.WebSocketApp; tests drive its callbacks."""

    def __init__(self, url, on_open, on_message, on_error, on_close):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent: List[dict] = []
        self.closed = False

    def run_forever(self):
        return None

    def send(self, data: str):
        self.sent.append(json.loads(data))

    def close(self):
        self.closed = True

    # Test controls

    def open(self):
        self.on_open(self)

    def receive(self, message: Any):
        if not isinstance(message, (str, bytes)):
            message = json.dumps(message)
        self.on_message(self, message)

    def drop(self, code: int = 1006, reason: str = "abnormal closure"):
        self.on_close(self, code, reason)

    def fail(self, error: Exception):
        self.on_error(self, error)
        self.on_close(self, None, None)


class FakeTransport:
    def __init__(self):
        self.sockets: List[FakeSocket] = []

    def __call__(self, url, **callbacks) -> FakeSocket:
        socket = FakeSocket(url, **callbacks)
        self.sockets.append(socket)
        return socket

    @property
    def latest(self) -> FakeSocket:
        return self.sockets[-1]


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    @property
    def delay_ms(self) -> int:
        return round(self.delay * 1000)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback()


class FakeTimers:
    def __init__(self):
        self.created: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.created.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.created if t.started and not t.cancelled and not t.fired]

    @property
    def delays_ms(self) -> List[int]:
        return [t.delay_ms for t in self.created]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def feed(transport, timers) -> FeedClient:
    return FeedClient(
        ws_url="ws://game.test/ws",
        policy=ReconnectPolicy(base_delay_ms=1000, max_attempts=5),
        transport_factory=transport,
        timer_factory=timers,
    )


# ============================================================================
# Fake HTTP session
# ============================================================================

def make_response(status_code: int, body: Any = None, text: Optional[str] = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response.encoding = "utf-8"
    response.url = "http://game.test"
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = (text or "").encode("utf-8")
    return response


class FakeHTTPSession:
    """Replays queued responses and records every request."""

    def __init__(self):
        self.headers = CaseInsensitiveDict()
        self.calls: List[dict] = []
        self._queue: List[Any] = []

    def queue(self, status_code: int, body: Any = None, text: Optional[str] = None):
        self._queue.append(make_response(status_code, body, text))

    def queue_exception(self, error: Exception):
        self._queue.append(error)

    def request(self, method, url, json=None, params=None, timeout=None):
        self.calls.append(dict(method=method, url=url, json=json, params=params, timeout=timeout))
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def http() -> FakeHTTPSession:
    return FakeHTTPSession()


# ============================================================================
# Fake authority
# ============================================================================

class FakeAuthority:
    """
    In-process stand-in for RemoteSessionClient.

    Responses are scripted per call; ``during_*`` hooks run while a call is
    "in flight" so tests can interleave user actions with a pending request.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.total_rounds = 10
        self.guess_scores: List[ScoreResult] = []
        self.next_flights: List[Optional[Flight]] = []
        self.game_over_after: Optional[int] = None
        self.end_rounds: List[Round] = []
        self.errors: dict = {}
        self.during_start: Optional[Callable[[], None]] = None
        self.during_submit: Optional[Callable[[], None]] = None
        self.during_end: Optional[Callable[[], None]] = None
        self._sessions = count(1)
        self._guesses = 0
        self._total = 0

    def _maybe_fail(self, operation: str):
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def start_game(self, username: str, difficulty: str = "easy") -> StartGameResponse:
        self.calls.append(("start_game", username, difficulty))
        if self.during_start:
            self.during_start()
        self._maybe_fail("start_game")
        self._guesses = 0
        self._total = 0
        return StartGameResponse(
            session_id=f"session-{next(self._sessions)}",
            difficulty=difficulty,
            total_rounds=self.total_rounds,
            current_round=1,
            flight=_flight(),
        )

    def submit_guess(self, session_id: str, airport_iata: str, confidence=None) -> GuessResponse:
        self.calls.append(("submit_guess", session_id, airport_iata))
        if self.during_submit:
            self.during_submit()
        self._maybe_fail("submit_guess")
        score = self.guess_scores.pop(0) if self.guess_scores else _score()
        self._guesses += 1
        self._total += score.total_points
        is_game_over = self._guesses >= (self.game_over_after or self.total_rounds)
        next_flight = None
        if not is_game_over:
            if self.next_flights:
                next_flight = self.next_flights.pop(0)
            else:
                next_flight = _flight(flight_id=f"fl-{self._guesses + 1}")
        return GuessResponse(
            score=score,
            round_number=self._guesses,
            is_game_over=is_game_over,
            next_flight=next_flight,
            total_score=self._total,
        )

    def end_game(self, session_id: str) -> EndGameResponse:
        self.calls.append(("end_game", session_id))
        if self.during_end:
            self.during_end()
        self._maybe_fail("end_game")
        return EndGameResponse(
            session_id=session_id,
            total_score=self._total,
            rounds=self.end_rounds,
            rank=3,
            difficulty="easy",
        )

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


@pytest.fixture
def authority() -> FakeAuthority:
    return FakeAuthority()


@pytest.fixture
def orchestrator(store, authority, feed) -> RoundOrchestrator:
    return RoundOrchestrator(store, authority, feed)

