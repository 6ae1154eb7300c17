"""
FlightGuess Contracts Package

Provides shared constants and validation for authority and feed contracts.
"""

from contracts.constants import *
from contracts.validation import (
    Difficulty,
    DIFFICULTIES,
    MatchType,
    Airport,
    Aircraft,
    Airline,
    Flight,
    KINEMATIC_FIELDS,
    ScoreResult,
    Round,
    LeaderboardEntry,
    StartGameRequest,
    StartGameResponse,
    GuessRequest,
    GuessResponse,
    EndGameRequest,
    EndGameResponse,
    FlightsResponse,
    LeaderboardResponse,
    FeedEnvelope,
    FlightUpdatePayload,
    RoundStartPayload,
    GuessResultPayload,
    GameEndPayload,
    RegisterPayload,
    validate_feed_envelope,
    validate_flight_update,
    validate_start_game_response,
    validate_guess_response,
    validate_end_game_response,
    validate_leaderboard_response,
    validate_flights_response,
)

__all__ = [
    # Constants
    "API_PREFIX",
    "WS_PATH",
    "WS_MESSAGE_TYPE_FLIGHT_UPDATE",
    "WS_MESSAGE_TYPE_ROUND_START",
    "WS_MESSAGE_TYPE_GUESS_RESULT",
    "WS_MESSAGE_TYPE_GAME_END",
    "WS_MESSAGE_TYPE_REGISTER",
    "GAME_STATUS_IDLE",
    "GAME_STATUS_PLAYING",
    "GAME_STATUS_FINISHED",
    "MATCH_TIERS",
    "DEFAULT_TOTAL_ROUNDS",
    # Models
    "Difficulty",
    "DIFFICULTIES",
    "MatchType",
    "Airport",
    "Aircraft",
    "Airline",
    "Flight",
    "KINEMATIC_FIELDS",
    "ScoreResult",
    "Round",
    "LeaderboardEntry",
    "StartGameRequest",
    "StartGameResponse",
    "GuessRequest",
    "GuessResponse",
    "EndGameRequest",
    "EndGameResponse",
    "FlightsResponse",
    "LeaderboardResponse",
    "FeedEnvelope",
    "FlightUpdatePayload",
    "RoundStartPayload",
    "GuessResultPayload",
    "GameEndPayload",
    "RegisterPayload",
    # Validators
    "validate_feed_envelope",
    "validate_flight_update",
    "validate_start_game_response",
    "validate_guess_response",
    "validate_end_game_response",
    "validate_leaderboard_response",
    "validate_flights_response",
]
