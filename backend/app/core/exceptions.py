class PriceOverrideError(Exception):
    """Base error for the override engine; carries the HTTP status it maps to."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PriceOverrideError):
    status_code = 400


class ConflictError(PriceOverrideError):
    status_code = 409

    def __init__(self, message: str, conflicting_id: int | None = None):
        super().__init__(message)
        self.conflicting_id = conflicting_id


class NotFoundError(PriceOverrideError):
    status_code = 404
