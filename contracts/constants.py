"""
Shared constants for the FlightGuess client.

This module provides a single source of truth for:
- Authority endpoint paths
- Feed message types
- Game enumerations (status, difficulty, match tiers)
- Gameplay defaults

All modules should import from this module to ensure consistency.
"""

# Authority endpoints (relative to the API base)
API_PREFIX = "/api"
ENDPOINT_GAME_START = "/game/start"
ENDPOINT_GAME_GUESS = "/game/guess"
ENDPOINT_GAME_END = "/game/end"
ENDPOINT_LEADERBOARD = "/leaderboard"
ENDPOINT_FLIGHTS = "/flights"

# Feed path (relative to the feed base)
WS_PATH = "/ws"

# Feed Message Types (server -> client)
WS_MESSAGE_TYPE_FLIGHT_UPDATE = "flight:update"
WS_MESSAGE_TYPE_ROUND_START = "round:start"
WS_MESSAGE_TYPE_GUESS_RESULT = "guess:result"
WS_MESSAGE_TYPE_GAME_END = "game:end"

# Feed Message Types (client -> server)
WS_MESSAGE_TYPE_REGISTER = "register"

# Game Status
GAME_STATUS_IDLE = "idle"
GAME_STATUS_PLAYING = "playing"
GAME_STATUS_FINISHED = "finished"

# Difficulty Levels
DIFFICULTY_EASY = "easy"
DIFFICULTY_MEDIUM = "medium"
DIFFICULTY_HARD = "hard"

# Match Tiers, best first
MATCH_TYPE_EXACT = "exact"
MATCH_TYPE_FAMILY = "family"
MATCH_TYPE_COUNTRY = "country"
MATCH_TYPE_DISTANCE = "distance"
MATCH_TYPE_WRONG = "wrong"

MATCH_TIERS = (
    MATCH_TYPE_EXACT,
    MATCH_TYPE_FAMILY,
    MATCH_TYPE_COUNTRY,
    MATCH_TYPE_DISTANCE,
    MATCH_TYPE_WRONG,
)

# Gameplay defaults
DEFAULT_TOTAL_ROUNDS = 10
MAX_LEADERBOARD_LIMIT = 100

# Feed reconnection defaults
WS_RECONNECT_BASE_DELAY_MS = 1000
WS_RECONNECT_MAX_ATTEMPTS = 5
