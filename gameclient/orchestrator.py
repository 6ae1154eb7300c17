"""
Round orchestrator.

The only component that both talks to the authority and changes the session
store. Each action issues at most one remote call and, on success, at most
one store event. Results that come back after the store has moved on are
dropped by the store's own state checks.
"""

import logging
import threading
from typing import Callable, Optional

from contracts.constants import GAME_STATUS_IDLE
from contracts.validation import EndGameResponse, Flight, GuessResponse, StartGameResponse
from gameclient import config
from gameclient.api import RemoteSessionClient
from gameclient.errors import AuthorityError, ValidationError
from gameclient.feed import FeedClient
from gameclient.store import GameEnded, GuessSucceeded, SessionState, SessionStore

logger = logging.getLogger(__name__)

ACTION_START = "start"
ACTION_SUBMIT = "submit"
ACTION_END = "end"


class RoundOrchestrator:
    """
    Action set offered to the presentation layer.

    Besides the store, its only state is one in-flight flag and one last
    error per remote action.
    """

    def __init__(
        self,
        store: SessionStore,
        api: RemoteSessionClient,
        feed: Optional[FeedClient] = None,
    ):
        self.store = store
        self.api = api
        self.feed = feed

        self._lock = threading.Lock()
        self._in_flight = {ACTION_START: False, ACTION_SUBMIT: False, ACTION_END: False}
        self._errors: dict[str, Optional[Exception]] = {
            ACTION_START: None,
            ACTION_SUBMIT: None,
            ACTION_END: None,
        }
        self._feed_unsubscribe: Optional[Callable[[], None]] = None

    # Read model

    @property
    def state(self) -> SessionState:
        return self.store.state

    @property
    def is_starting(self) -> bool:
        return self._in_flight[ACTION_START]

    @property
    def is_submitting(self) -> bool:
        return self._in_flight[ACTION_SUBMIT]

    @property
    def is_ending(self) -> bool:
        return self._in_flight[ACTION_END]

    @property
    def start_error(self) -> Optional[Exception]:
        return self._errors[ACTION_START]

    @property
    def submit_error(self) -> Optional[Exception]:
        return self._errors[ACTION_SUBMIT]

    @property
    def end_error(self) -> Optional[Exception]:
        return self._errors[ACTION_END]

    def _claim(self, action: str) -> bool:
        """Mark ``action`` in flight; False if it already was."""
        with self._lock:
            if self._in_flight[action]:
                logger.debug(f"Ignoring duplicate {action} request")
                return False
            self._in_flight[action] = True
            self._errors[action] = None
            return True

    def _release(self, action: str):
        with self._lock:
            self._in_flight[action] = False

    def _refuse(self, action: str, message: str) -> None:
        logger.warning(f"Refused {action}: {message}")
        self._errors[action] = ValidationError(message)
        return None

    # Local actions

    def set_username(self, username: str) -> bool:
        return self.store.set_username(username)

    def select_airport(self, iata: Optional[str]) -> bool:
        return self.store.select_airport(iata)

    def next_round(self) -> bool:
        return self.store.next_round()

    def reset_game(self) -> bool:
        return self.store.reset_game()

    # Remote actions

    def start_game(self, difficulty: str = config.DEFAULT_DIFFICULTY) -> Optional[StartGameResponse]:
        """
        Open a session for the current username.

        Returns the authority's response when the game was started, None when
        the action was refused, deduplicated, failed or superseded.
        """
        state = self.store.state
        if not state.username.strip():
            return self._refuse(ACTION_START, "A username is required")
        if state.status != GAME_STATUS_IDLE:
            return self._refuse(ACTION_START, f"Cannot start a game while {state.status}")
        if not self._claim(ACTION_START):
            return None

        try:
            response = self.api.start_game(state.username.strip(), difficulty)
            applied = self.store.start_game(response.session_id, response.flight, response.total_rounds)
        except (AuthorityError, ValidationError) as e:
            logger.error(f"Failed to start game: {e}")
            self._errors[ACTION_START] = e
            return None
        finally:
            self._release(ACTION_START)

        if not applied:
            logger.warning(f"Discarded start of session {response.session_id}: store is no longer idle")
            return None

        if self.feed is not None:
            self.feed.connect(response.session_id)
        return response

    def submit_guess(
        self,
        airport_iata: Optional[str] = None,
        confidence: Optional[int] = None,
    ) -> Optional[GuessResponse]:
        """
        Submit the staged airport (or ``airport_iata``) for the open round.

        The store changes only if the authority accepts the guess and the
        round it was issued for is still open when the answer arrives.
        """
        state = self.store.state
        iata = (airport_iata or state.selected_airport or "").strip().upper()
        if not state.session_id or not state.is_playing:
            return self._refuse(ACTION_SUBMIT, "No game in progress")
        if not iata:
            return self._refuse(ACTION_SUBMIT, "No airport selected")
        if state.show_result:
            return self._refuse(ACTION_SUBMIT, f"Round {state.current_round} already scored")
        if not self._claim(ACTION_SUBMIT):
            return None

        session_id = state.session_id
        round_number = state.current_round
        try:
            response = self.api.submit_guess(session_id, iata, confidence)
            applied = self.store.dispatch(GuessSucceeded(
                session_id=session_id,
                round_number=round_number,
                score=response.score,
                next_flight=response.next_flight,
                is_game_over=response.is_game_over,
                airport_iata=iata,
            ))
        except (AuthorityError, ValidationError) as e:
            logger.error(f"Failed to submit guess for round {round_number}: {e}")
            self._errors[ACTION_SUBMIT] = e
            return None
        finally:
            self._release(ACTION_SUBMIT)

        if not applied:
            logger.warning(f"Discarded stale guess result for session {session_id} round {round_number}")
            return None

        local_total = self.store.state.total_score
        if local_total != response.total_score:
            logger.warning(
                f"Score drift for session {session_id}: local {local_total}, "
                f"authority {response.total_score}"
            )
        return response

    def end_game(self) -> Optional[EndGameResponse]:
        """
        End the session and return to idle.

        The local session is reset whether or not the authority call succeeds.
        """
        state = self.store.state
        if not state.session_id:
            return self._refuse(ACTION_END, "No game to end")
        if not self._claim(ACTION_END):
            return None

        session_id = state.session_id
        response = None
        try:
            response = self.api.end_game(session_id)
        except (AuthorityError, ValidationError) as e:
            logger.error(f"Failed to end session {session_id}: {e}")
            self._errors[ACTION_END] = e
        finally:
            self._release(ACTION_END)

        if response is not None and self.store.state.session_id == session_id:
            self.store.dispatch(GameEnded(tuple(response.rounds)))
        self.store.reset_game()
        return response

    # Feed

    def attach_feed(self):
        """Merge pushed positions of the displayed flight into the store."""
        if self.feed is None or self._feed_unsubscribe is not None:
            return
        self._feed_unsubscribe = self.feed.on_flight_update(self._merge_flights)

    def detach_feed(self):
        if self._feed_unsubscribe is not None:
            self._feed_unsubscribe()
            self._feed_unsubscribe = None

    def _merge_flights(self, flights: list[Flight]):
        if self.store.state.current_flight is None:
            return
        self.store.merge_flight_positions(flights)
