"""
Validation library for FlightGuess wire contracts.

Provides Pydantic models for every payload exchanged with the authority,
both over HTTP and over the push feed. The authority speaks camelCase JSON;
models accept it through aliases and expose snake_case attributes.
"""

from typing import Any, Optional, Literal
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from contracts.constants import (
    MATCH_TIERS,
    MATCH_TYPE_EXACT,
    MATCH_TYPE_FAMILY,
    MATCH_TYPE_COUNTRY,
    MATCH_TYPE_DISTANCE,
    MATCH_TYPE_WRONG,
    DIFFICULTY_EASY,
    DIFFICULTY_MEDIUM,
    DIFFICULTY_HARD,
)


Difficulty = Literal["easy", "medium", "hard"]
DIFFICULTIES = (DIFFICULTY_EASY, DIFFICULTY_MEDIUM, DIFFICULTY_HARD)


class MatchType(str, Enum):
    """Ordered quality of a guess. Earlier members dominate later ones."""
    EXACT = MATCH_TYPE_EXACT
    FAMILY = MATCH_TYPE_FAMILY
    COUNTRY = MATCH_TYPE_COUNTRY
    DISTANCE = MATCH_TYPE_DISTANCE
    WRONG = MATCH_TYPE_WRONG

    @property
    def rank(self) -> int:
        """Position on the quality scale, 0 being best."""
        return MATCH_TIERS.index(self.value)

    def dominates(self, other: "MatchType") -> bool:
        return self.rank < MatchType(other).rank


class WireModel(BaseModel):
    """Base for camelCase wire payloads."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Dump using the authority's field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ============================================================================
# Reference Entities
# ============================================================================

class Airport(WireModel):
    """Airport as described by the authority's directory."""
    iata: str
    icao: str = ""
    name: str = ""
    city: str = ""
    country: str = ""
    latitude: float = Field(0.0, ge=-90, le=90)
    longitude: float = Field(0.0, ge=-180, le=180)

    @field_validator("iata")
    @classmethod
    def normalize_iata(cls, v: str) -> str:
        """Normalize IATA code to uppercase."""
        return v.strip().upper()


class Aircraft(WireModel):
    """Aircraft type and registration."""
    iata: str = ""
    icao: str = ""
    model: str = ""
    registration: str = ""


class Airline(WireModel):
    """Operating airline."""
    iata: str = ""
    icao: str = ""
    name: str = ""


# ============================================================================
# Flight
# ============================================================================

KINEMATIC_FIELDS = (
    "latitude",
    "longitude",
    "altitude",
    "speed",
    "direction",
    "vertical_speed",
)


class Flight(WireModel):
    """
    Flight currently being guessed.

    There is deliberately no arrival field: the destination is the secret of
    an open round, so an ``arrival`` key sent by the authority is dropped on
    parse and never reaches client state.
    """
    id: str
    icao24: str = ""
    callsign: str = ""
    latitude: float = Field(0.0, ge=-90, le=90)
    longitude: float = Field(0.0, ge=-180, le=180)
    altitude: float = 0.0  # feet
    speed: float = 0.0  # knots
    direction: float = 0.0  # degrees
    vertical_speed: float = 0.0  # feet per minute
    status: str = ""
    departure: Optional[Airport] = None
    aircraft: Optional[Aircraft] = None
    airline: Optional[Airline] = None
    flight_number: str = ""
    hint: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("icao24")
    @classmethod
    def validate_icao24(cls, v: str) -> str:
        """Normalize icao24 to lowercase."""
        return v.lower()

    @field_validator("updated_at", mode="before")
    @classmethod
    def parse_updated_at(cls, v):
        """Parse ISO 8601 datetime string."""
        if isinstance(v, str):
            if not v:
                return None
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v

    def same_aircraft(self, other: "Flight") -> bool:
        """True when both describe the same tracked flight."""
        if self.id and other.id:
            return self.id == other.id
        return bool(self.icao24) and self.icao24 == other.icao24

    def with_kinematics_of(self, other: "Flight") -> "Flight":
        """Copy of this flight with the live position fields of ``other``."""
        return self.model_copy(
            update={name: getattr(other, name) for name in KINEMATIC_FIELDS}
        )


# ============================================================================
# Scoring and History
# ============================================================================

class ScoreResult(WireModel):
    """Outcome of one guess, computed by the authority."""
    match_type: MatchType
    base_points: int = Field(ge=0)
    difficulty_multiplier: float = Field(gt=0)
    speed_multiplier: float = Field(ge=1)
    total_points: int = Field(ge=0)
    distance_km: float = Field(ge=0)
    correct_airport: Airport
    guessed_airport: Airport

    @model_validator(mode="after")
    def check_exact_distance(self):
        if self.match_type == MatchType.EXACT and self.distance_km != 0:
            raise ValueError("An exact match must have zero distance")
        return self


class Round(WireModel):
    """One guessing unit as recorded by the authority."""
    round_number: int = Field(ge=1)
    flight_id: str = ""
    departure: str = ""
    actual_arrival: str = ""
    player_guess: Optional[str] = None
    points_earned: int = Field(0, ge=0)
    guess_time: float = Field(0.0, ge=0, description="Seconds from round start to guess")
    confidence: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("started_at", "completed_at", mode="before")
    @classmethod
    def parse_timestamps(cls, v):
        """Parse ISO 8601 datetime string."""
        if isinstance(v, str):
            if not v:
                return None
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v


class LeaderboardEntry(WireModel):
    """A ranked player on the leaderboard."""
    id: str = ""
    rank: int = Field(ge=1)
    username: str
    difficulty: Difficulty
    total_score: int = Field(ge=0)
    games_played: int = Field(0, ge=0)
    updated_at: Optional[datetime] = None

    @field_validator("updated_at", mode="before")
    @classmethod
    def parse_updated_at(cls, v):
        """Parse ISO 8601 datetime string."""
        if isinstance(v, str):
            if not v:
                return None
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v


# ============================================================================
# HTTP Requests and Responses
# ============================================================================

class StartGameRequest(WireModel):
    username: str = Field(min_length=1)
    difficulty: Difficulty = DIFFICULTY_EASY

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class StartGameResponse(WireModel):
    session_id: str = Field(min_length=1)
    difficulty: Difficulty = DIFFICULTY_EASY
    total_rounds: int = Field(ge=1)
    current_round: int = Field(1, ge=1)
    flight: Flight


class GuessRequest(WireModel):
    session_id: str = Field(min_length=1)
    airport_iata: str = Field(min_length=1)
    confidence: Optional[int] = None


class GuessResponse(WireModel):
    score: ScoreResult
    round_number: int = Field(ge=1)
    is_game_over: bool
    next_flight: Optional[Flight] = None
    total_score: int = Field(ge=0)


class EndGameRequest(WireModel):
    session_id: str = Field(min_length=1)


class EndGameResponse(WireModel):
    session_id: str
    total_score: int = Field(ge=0)
    rounds: list[Round] = Field(default_factory=list)
    rank: int = Field(0, ge=0)
    difficulty: Difficulty = DIFFICULTY_EASY


class FlightsResponse(WireModel):
    flights: list[Flight] = Field(default_factory=list)
    count: int = Field(0, ge=0)


class LeaderboardResponse(WireModel):
    leaderboard: list[LeaderboardEntry] = Field(default_factory=list)
    count: int = Field(0, ge=0)
    difficulty: Optional[Difficulty] = None


# ============================================================================
# Feed Messages
# ============================================================================

class FeedEnvelope(BaseModel):
    """Wire unit of the push feed."""
    type: str = Field(min_length=1)
    payload: Any = None


class FlightUpdatePayload(WireModel):
    """Payload of ``flight:update``."""
    flights: list[Flight]


class RoundStartPayload(WireModel):
    """Payload of ``round:start``."""
    session_id: str
    round_number: int = Field(ge=1)
    flight: Flight


class GuessResultPayload(WireModel):
    """Payload of ``guess:result``."""
    session_id: str
    round_number: int = Field(ge=1)
    score: ScoreResult
    total_score: int = Field(ge=0)


class GameEndPayload(WireModel):
    """Payload of ``game:end``."""
    session_id: str
    total_score: int = Field(ge=0)
    rank: int = Field(0, ge=0)


class RegisterPayload(WireModel):
    """Payload of the client's ``register`` message."""
    session_id: str = Field(min_length=1)


# ============================================================================
# Validation Functions
# ============================================================================

def _validate(model: type[BaseModel], data: Any) -> tuple[bool, Optional[BaseModel], Optional[str]]:
    try:
        return True, model.model_validate(data), None
    except Exception as e:
        return False, None, str(e)


def validate_feed_envelope(data: Any) -> tuple[bool, Optional[FeedEnvelope], Optional[str]]:
    """
    Validate a decoded feed envelope.

    Returns:
        (is_valid, envelope_or_none, error_message_or_none)
    """
    return _validate(FeedEnvelope, data)


def validate_flight_update(data: Any) -> tuple[bool, Optional[FlightUpdatePayload], Optional[str]]:
    """
    Validate a ``flight:update`` payload.

    Returns:
        (is_valid, payload_or_none, error_message_or_none)
    """
    return _validate(FlightUpdatePayload, data)


def validate_start_game_response(data: Any) -> tuple[bool, Optional[StartGameResponse], Optional[str]]:
    """
    Validate the authority's start-game response.

    Returns:
        (is_valid, response_or_none, error_message_or_none)
    """
    return _validate(StartGameResponse, data)


def validate_guess_response(data: Any) -> tuple[bool, Optional[GuessResponse], Optional[str]]:
    """
    Validate the authority's guess response.

    Returns:
        (is_valid, response_or_none, error_message_or_none)
    """
    return _validate(GuessResponse, data)


def validate_end_game_response(data: Any) -> tuple[bool, Optional[EndGameResponse], Optional[str]]:
    """
    Validate the authority's end-game response.

    Returns:
        (is_valid, response_or_none, error_message_or_none)
    """
    return _validate(EndGameResponse, data)


def validate_leaderboard_response(data: Any) -> tuple[bool, Optional[LeaderboardResponse], Optional[str]]:
    """
    Validate the authority's leaderboard response.

    Returns:
        (is_valid, response_or_none, error_message_or_none)
    """
    return _validate(LeaderboardResponse, data)


def validate_flights_response(data: Any) -> tuple[bool, Optional[FlightsResponse], Optional[str]]:
    """
    Validate the authority's flight listing.

    Returns:
        (is_valid, response_or_none, error_message_or_none)
    """
    return _validate(FlightsResponse, data)
