"""
Error taxonomy for the game client.
"""


class GameClientError(Exception):
    """Base class for every error raised by the game client."""


class ValidationError(GameClientError):
    """An action was refused locally; nothing was sent to the authority."""


class AuthorityError(GameClientError):
    """The authority answered with a non-success response or could not be reached."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message}"
        return self.message


class TransportError(GameClientError):
    """The feed connection failed. Reported, never fatal."""


class ProtocolError(GameClientError):
    """A feed message could not be decoded into an envelope."""
