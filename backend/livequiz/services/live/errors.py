class LiveQuizError(Exception):
    """Base class for request-scoped failures of the live engine."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class ValidationError(LiveQuizError):
    """Malformed input. Nothing was mutated."""
    status_code = 400


class AuthenticationError(LiveQuizError):
    """Missing or unknown participant token."""
    status_code = 401


class NotFoundError(LiveQuizError):
    status_code = 404


class StateConflictError(LiveQuizError):
    """Action not valid for the current lifecycle state."""
    status_code = 409
