"""Custom exceptions for the loginguard backend."""


class LoginGuardError(Exception):
    """Base class for loginguard domain errors."""


class InvalidIdentifierError(LoginGuardError, ValueError):
    """Raised when an attempt key identifier is empty or malformed."""

    def __init__(self, kind: str, reason: str = "identifier is empty"):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Invalid {kind} identifier: {reason}")
