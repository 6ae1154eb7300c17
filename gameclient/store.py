"""
Session store: the single source of truth for game progress.

State is an immutable ``SessionState`` value. Every change is described by a
tagged event and applied by ``reduce`` (pure, total) through
``SessionStore.dispatch``, the only place the current state is replaced.

    idle --GameStarted--> playing --GuessSucceeded(game over)--> finished
    playing: {AirportSelected}* -> GuessSucceeded -> RoundAdvanced -> ...
    any --GameReset--> idle
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from contracts.constants import (
    GAME_STATUS_IDLE,
    GAME_STATUS_PLAYING,
    GAME_STATUS_FINISHED,
    DEFAULT_TOTAL_ROUNDS,
)
from contracts.validation import Flight, Round, ScoreResult
from gameclient.metrics import STORE_TRANSITIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    """Read model exposed to the presentation layer."""
    status: str = GAME_STATUS_IDLE
    session_id: Optional[str] = None
    username: str = ""
    current_round: int = 0
    total_rounds: int = DEFAULT_TOTAL_ROUNDS
    current_flight: Optional[Flight] = None
    round_started_at: Optional[float] = None  # unix seconds
    total_score: int = 0
    rounds: tuple[Round, ...] = ()
    last_score: Optional[ScoreResult] = None
    selected_airport: Optional[str] = None
    show_result: bool = False

    @property
    def is_playing(self) -> bool:
        return self.status == GAME_STATUS_PLAYING

    @property
    def round_open(self) -> bool:
        """A guess can currently be staged and submitted."""
        return self.is_playing and not self.show_result

    def elapsed_seconds(self, now: float) -> float:
        if self.round_started_at is None:
            return 0.0
        return max(0.0, now - self.round_started_at)


INITIAL_STATE = SessionState()


# ============================================================================
# Events
# ============================================================================

@dataclass(frozen=True)
class UsernameSet:
    username: str


@dataclass(frozen=True)
class GameStarted:
    session_id: str
    flight: Flight
    total_rounds: int
    started_at: float


@dataclass(frozen=True)
class AirportSelected:
    iata: Optional[str]


@dataclass(frozen=True)
class GuessSucceeded:
    """
    Authority result for one guess.

    ``session_id`` and ``round_number`` identify the round the guess was
    issued against; the result is only applied while that round is still
    the open one.
    """
    session_id: str
    round_number: int
    score: ScoreResult
    next_flight: Optional[Flight]
    is_game_over: bool
    airport_iata: Optional[str] = None


@dataclass(frozen=True)
class RoundAdvanced:
    started_at: float


@dataclass(frozen=True)
class GameEnded:
    rounds: tuple[Round, ...]


@dataclass(frozen=True)
class GameReset:
    pass


@dataclass(frozen=True)
class FlightPositionsMerged:
    flights: tuple[Flight, ...]


Event = Union[
    UsernameSet,
    GameStarted,
    AirportSelected,
    GuessSucceeded,
    RoundAdvanced,
    GameEnded,
    GameReset,
    FlightPositionsMerged,
]


class TransitionRejected(Exception):
    """The event is not legal in the current state."""


# ============================================================================
# Transitions
# ============================================================================

def _on_username_set(state: SessionState, event: UsernameSet) -> SessionState:
    if state.status != GAME_STATUS_IDLE:
        raise TransitionRejected(f"username is fixed while {state.status}")
    return replace(state, username=event.username)


def _on_game_started(state: SessionState, event: GameStarted) -> SessionState:
    if state.status != GAME_STATUS_IDLE:
        raise TransitionRejected(f"cannot start a game while {state.status}")
    if event.total_rounds < 1:
        raise TransitionRejected(f"invalid round count {event.total_rounds}")
    return replace(
        INITIAL_STATE,
        status=GAME_STATUS_PLAYING,
        session_id=event.session_id,
        username=state.username,
        current_round=1,
        total_rounds=event.total_rounds,
        current_flight=event.flight,
        round_started_at=event.started_at,
    )


def _on_airport_selected(state: SessionState, event: AirportSelected) -> SessionState:
    iata = event.iata.strip().upper() if event.iata else None
    if iata is None:
        return replace(state, selected_airport=None)
    if not state.round_open:
        raise TransitionRejected("no open round to stage a guess for")
    return replace(state, selected_airport=iata)


def _on_guess_succeeded(state: SessionState, event: GuessSucceeded) -> SessionState:
    if not state.is_playing:
        raise TransitionRejected(f"stale guess result while {state.status}")
    if event.session_id != state.session_id:
        raise TransitionRejected(f"guess result for another session {event.session_id}")
    if event.round_number != state.current_round:
        raise TransitionRejected(
            f"guess result for round {event.round_number}, current round is {state.current_round}"
        )
    if state.show_result:
        raise TransitionRejected(f"round {state.current_round} already scored")

    score = event.score
    flight = state.current_flight
    started_at = None
    if state.round_started_at is not None:
        started_at = datetime.fromtimestamp(state.round_started_at, tz=timezone.utc)
    provisional = Round(
        round_number=state.current_round,
        flight_id=flight.id if flight else "",
        departure=flight.departure.iata if flight and flight.departure else "",
        actual_arrival=score.correct_airport.iata,
        player_guess=event.airport_iata or score.guessed_airport.iata or None,
        points_earned=score.total_points,
        started_at=started_at,
    )

    return replace(
        state,
        total_score=state.total_score + score.total_points,
        last_score=score,
        show_result=True,
        rounds=state.rounds + (provisional,),
        current_flight=flight if event.is_game_over else event.next_flight,
        status=GAME_STATUS_FINISHED if event.is_game_over else state.status,
    )


def _on_round_advanced(state: SessionState, event: RoundAdvanced) -> SessionState:
    if not state.is_playing:
        raise TransitionRejected(f"cannot advance while {state.status}")
    if not state.show_result:
        raise TransitionRejected(f"round {state.current_round} has not been scored")
    return replace(
        state,
        current_round=state.current_round + 1,
        round_started_at=event.started_at,
        selected_airport=None,
        last_score=None,
        show_result=False,
    )


def _on_game_ended(state: SessionState, event: GameEnded) -> SessionState:
    if state.status == GAME_STATUS_IDLE:
        raise TransitionRejected("no game to end")
    return replace(
        state,
        status=GAME_STATUS_FINISHED,
        rounds=tuple(event.rounds),
        show_result=False,
    )


def _on_game_reset(state: SessionState, event: GameReset) -> SessionState:
    return INITIAL_STATE


def _on_flight_positions_merged(state: SessionState, event: FlightPositionsMerged) -> SessionState:
    current = state.current_flight
    if not state.is_playing or current is None:
        raise TransitionRejected("no flight on display")
    for pushed in event.flights:
        if current.same_aircraft(pushed):
            return replace(state, current_flight=current.with_kinematics_of(pushed))
    raise TransitionRejected(f"no update for flight {current.id}")


_HANDLERS: dict[type, Callable[[SessionState, Event], SessionState]] = {
    UsernameSet: _on_username_set,
    GameStarted: _on_game_started,
    AirportSelected: _on_airport_selected,
    GuessSucceeded: _on_guess_succeeded,
    RoundAdvanced: _on_round_advanced,
    GameEnded: _on_game_ended,
    GameReset: _on_game_reset,
    FlightPositionsMerged: _on_flight_positions_merged,
}


def apply_event(state: SessionState, event: Event) -> SessionState:
    """
    Next state for ``event``.

    Raises:
        TransitionRejected: the event is illegal in ``state``
        TypeError: ``event`` is not a store event
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown store event: {event!r}")
    return handler(state, event)


def reduce(state: SessionState, event: Event) -> SessionState:
    """Total transition function: illegal events leave ``state`` unchanged."""
    try:
        return apply_event(state, event)
    except TransitionRejected:
        return state


# ============================================================================
# Store
# ============================================================================

Listener = Callable[[SessionState, Event], None]


class SessionStore:
    """
    Holds the current ``SessionState``.

    Each dispatch computes the next state from a snapshot and swaps it in
    under a re-entrant lock, so concurrent callers never observe a partial
    update. Listeners run inside the lock, in dispatch order.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._state = INITIAL_STATE
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._clock = clock

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, event: Event) -> bool:
        """
        Apply ``event``.

        Returns:
            True if the state changed, False if the event was rejected
        """
        name = type(event).__name__
        with self._lock:
            try:
                new_state = apply_event(self._state, event)
            except TransitionRejected as e:
                STORE_TRANSITIONS.labels(event=name, outcome="rejected").inc()
                logger.debug(f"Rejected {name}: {e}")
                return False

            self._state = new_state
            STORE_TRANSITIONS.labels(event=name, outcome="applied").inc()

            for listener in list(self._listeners):
                try:
                    listener(new_state, event)
                except Exception as e:
                    logger.error(f"Store listener failed on {name}: {e}", exc_info=True)
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # Named transitions

    def set_username(self, username: str) -> bool:
        return self.dispatch(UsernameSet(username))

    def start_game(self, session_id: str, flight: Flight, total_rounds: int) -> bool:
        return self.dispatch(GameStarted(session_id, flight, total_rounds, self._clock()))

    def select_airport(self, iata: Optional[str]) -> bool:
        return self.dispatch(AirportSelected(iata))

    def submit_guess(
        self,
        score: ScoreResult,
        next_flight: Optional[Flight],
        is_game_over: bool,
    ) -> bool:
        """Apply a guess result to the round that is open right now."""
        with self._lock:
            state = self._state
            return self.dispatch(GuessSucceeded(
                session_id=state.session_id,
                round_number=state.current_round,
                score=score,
                next_flight=next_flight,
                is_game_over=is_game_over,
                airport_iata=state.selected_airport,
            ))

    def next_round(self) -> bool:
        return self.dispatch(RoundAdvanced(self._clock()))

    def end_game(self, rounds: Iterable[Round]) -> bool:
        return self.dispatch(GameEnded(tuple(rounds)))

    def reset_game(self) -> bool:
        return self.dispatch(GameReset())

    def merge_flight_positions(self, flights: Iterable[Flight]) -> bool:
        return self.dispatch(FlightPositionsMerged(tuple(flights)))
