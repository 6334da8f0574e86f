"""Error kinds raised by the leaderboard core.

Every public core operation raises one of these; the HTTP and WebSocket
boundaries turn them into responses without crashing the process.
"""


class LeaderboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LeaderboardError):
    """Submission is missing a field or carries an invalid value."""

    status_code = 400

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Invalid or missing field: {field}")
        self.field = field


class NoActiveSessionError(LeaderboardError):
    status_code = 409

    def __init__(self, message: str = "No active slot available"):
        super().__init__(message)


class ConflictError(LeaderboardError):
    status_code = 409


class NotFoundError(LeaderboardError):
    status_code = 404


class StateError(LeaderboardError):
    status_code = 409


class StorageError(LeaderboardError):
    status_code = 500
