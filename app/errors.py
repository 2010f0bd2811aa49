"""
Domain errors raised by the betting services.

Each error carries the HTTP status the API answers with, so routes can let
them propagate to the handler registered in create_app().
"""


class BettingError(Exception):
    """Base class for every failure the betting core reports to callers"""

    status_code = 400

    def __init__(self, message=None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls):
        return "Request could not be processed"

    def to_dict(self):
        return {"error": self.message, "code": type(self).__name__}


class ValidationError(BettingError):
    """Malformed input, rejected before touching storage"""

    status_code = 400

    def __init__(self, message=None, errors=None):
        self.errors = errors or {}
        super().__init__(message)

    @classmethod
    def default_message(cls):
        return "Invalid input"

    def to_dict(self):
        data = super().to_dict()
        if self.errors:
            data["fields"] = self.errors
        return data


class SessionClosed(BettingError):
    status_code = 403

    @classmethod
    def default_message(cls):
        return "Betting is closed for this session"


class NotFound(BettingError):
    status_code = 404

    @classmethod
    def default_message(cls):
        return "Not found"


class AlreadyExists(BettingError):
    status_code = 409

    @classmethod
    def default_message(cls):
        return "An unsettled game already exists for this session"


class AlreadySettled(BettingError):
    status_code = 409

    @classmethod
    def default_message(cls):
        return "This game has already been settled"
