class FormsError(Exception):
    """Base class for domain errors raised by the form stores and builder."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FormsError):
    status_code = 422


class NotFound(FormsError):
    status_code = 404


class Conflict(FormsError):
    status_code = 409
