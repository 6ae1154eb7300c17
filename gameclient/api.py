"""
Remote session client for the game authority.

One request per call, no retries: the caller decides how to recover. Every
non-success outcome is raised as ``AuthorityError`` carrying an HTTP-like
status (0 when the authority could not be reached) and a readable message.
"""

import time
import logging
from typing import Any, Callable, Optional

import requests

from contracts.constants import (
    ENDPOINT_GAME_START,
    ENDPOINT_GAME_GUESS,
    ENDPOINT_GAME_END,
    ENDPOINT_LEADERBOARD,
    ENDPOINT_FLIGHTS,
    MAX_LEADERBOARD_LIMIT,
)
from contracts.validation import (
    StartGameRequest,
    GuessRequest,
    EndGameRequest,
    StartGameResponse,
    GuessResponse,
    EndGameResponse,
    LeaderboardResponse,
    FlightsResponse,
    validate_start_game_response,
    validate_guess_response,
    validate_end_game_response,
    validate_leaderboard_response,
    validate_flights_response,
)
from gameclient import config
from gameclient.errors import AuthorityError, ValidationError
from gameclient.metrics import API_REQUESTS, API_LATENCY

logger = logging.getLogger(__name__)


class RemoteSessionClient:
    """Client for the authority's game endpoints."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = config.API_TIMEOUT_SECONDS,
    ):
        """
        Args:
            api_url: API base override, e.g. ``https://play.example.com/api``.
                Defaults to the configured base.
            session: HTTP session to reuse; a new one is created if omitted.
            timeout: Per-request timeout in seconds.
        """
        self.api_url = api_url
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return config.get_api_url(path, api_url=self.api_url)

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        validator: Callable[[Any], tuple],
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ):
        """Perform one exchange and return the validated response model."""
        url = self._url(path)
        start = time.monotonic()
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            API_REQUESTS.labels(operation=operation, status="unavailable").inc()
            logger.error(f"{operation} request to {url} failed: {e}")
            raise AuthorityError(0, f"Authority unavailable: {e}") from e
        finally:
            API_LATENCY.labels(operation=operation).observe(time.monotonic() - start)

        API_REQUESTS.labels(operation=operation, status=str(response.status_code)).inc()

        if not response.ok:
            message = _error_message(response)
            logger.warning(f"{operation} rejected: HTTP {response.status_code} - {message}")
            raise AuthorityError(response.status_code, message)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{operation} returned a non-JSON body: {e}")
            raise AuthorityError(response.status_code, f"Invalid response: {e}") from e

        is_valid, model, error = validator(data)
        if not is_valid:
            logger.error(f"{operation} returned an invalid payload: {error}")
            raise AuthorityError(response.status_code, f"Invalid response: {error}")
        return model

    def start_game(self, username: str, difficulty: str = config.DEFAULT_DIFFICULTY) -> StartGameResponse:
        """
        Open a new session.

        Raises:
            ValidationError: blank username or unknown difficulty
            AuthorityError: the authority refused or is unavailable
        """
        try:
            request = StartGameRequest(username=username, difficulty=difficulty)
        except Exception as e:
            raise ValidationError(f"Invalid start request: {e}") from e
        response = self._request(
            "start_game", "POST", ENDPOINT_GAME_START,
            validate_start_game_response, body=request.to_wire(),
        )
        logger.info(f"Started session {response.session_id} ({response.total_rounds} rounds)")
        return response

    def submit_guess(
        self,
        session_id: str,
        airport_iata: str,
        confidence: Optional[int] = None,
    ) -> GuessResponse:
        """
        Submit a destination guess for the open round.

        The authority validates the airport code; locally it only has to be
        non-empty.
        """
        if not session_id or not airport_iata or not airport_iata.strip():
            raise ValidationError("A session and an airport are required to guess")
        request = GuessRequest(
            session_id=session_id,
            airport_iata=airport_iata.strip().upper(),
            confidence=confidence,
        )
        response = self._request(
            "submit_guess", "POST", ENDPOINT_GAME_GUESS,
            validate_guess_response, body=request.to_wire(),
        )
        logger.debug(
            f"Round {response.round_number}: {response.score.match_type.value} "
            f"for {response.score.total_points} points"
        )
        return response

    def end_game(self, session_id: str) -> EndGameResponse:
        """Close the session; the authority deduplicates repeated calls."""
        if not session_id:
            raise ValidationError("A session is required to end a game")
        request = EndGameRequest(session_id=session_id)
        response = self._request(
            "end_game", "POST", ENDPOINT_GAME_END,
            validate_end_game_response, body=request.to_wire(),
        )
        logger.info(f"Ended session {session_id} with {response.total_score} points, rank {response.rank}")
        return response

    def get_leaderboard(
        self,
        difficulty: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> LeaderboardResponse:
        """Read the leaderboard, optionally filtered by difficulty."""
        return self._request(
            "get_leaderboard", "GET", ENDPOINT_LEADERBOARD,
            validate_leaderboard_response, params=_query(difficulty, limit),
        )

    def get_flights(
        self,
        difficulty: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> FlightsResponse:
        """List flights currently available for play."""
        return self._request(
            "get_flights", "GET", ENDPOINT_FLIGHTS,
            validate_flights_response, params=_query(difficulty, limit),
        )


def _query(difficulty: Optional[str], limit: Optional[int]) -> dict:
    params = {}
    if difficulty:
        params["difficulty"] = difficulty
    if limit:
        params["limit"] = str(min(limit, MAX_LEADERBOARD_LIMIT))
    return params


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return "Request failed"
