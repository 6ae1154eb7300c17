"""
FlightGuess game client.

Session state, authority client, push feed client and the round
orchestrator that ties them together.
"""

from gameclient.api import RemoteSessionClient
from gameclient.errors import (
    GameClientError,
    ValidationError,
    AuthorityError,
    TransportError,
    ProtocolError,
)
from gameclient.feed import FeedClient, FeedState, ReconnectPolicy
from gameclient.orchestrator import RoundOrchestrator
from gameclient.store import INITIAL_STATE, SessionState, SessionStore

__all__ = [
    "RemoteSessionClient",
    "FeedClient",
    "FeedState",
    "ReconnectPolicy",
    "RoundOrchestrator",
    "SessionStore",
    "SessionState",
    "INITIAL_STATE",
    "GameClientError",
    "ValidationError",
    "AuthorityError",
    "TransportError",
    "ProtocolError",
]
