"""Custom exception types for consistent error handling."""


class StoreUnavailableError(Exception):
    """Raised when Firestore queries fail or are unavailable."""


class InvalidInputError(Exception):
    """Raised when request input validation fails."""


class UserNotFoundError(Exception):
    """Raised when the requesting user has no profile."""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class MatchBlockedError(Exception):
    """Raised when a request targets a pair where either side has blocked."""


class GraphExecutionError(Exception):
    """Raised when a graph fails to compile or execute."""
