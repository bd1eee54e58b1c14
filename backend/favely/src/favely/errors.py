"""
Application Errors

Every error raised on purpose by the storage and service layers derives from
`FavelyError`, which carries the HTTP status code the API answers with.
"""

from typing import Optional


class FavelyError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message


class ValidationError(FavelyError):
    status_code = 400


class InvalidCursorError(ValidationError):
    def __init__(self, cursor: str):
        super().__init__(f"Invalid cursor: {cursor!r}")
        self.cursor = cursor


class UnauthorizedError(FavelyError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(FavelyError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(FavelyError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ConflictError(FavelyError):
    status_code = 409


class RateLimitError(FavelyError):
    status_code = 429

    def __init__(self, retry_after: int, limit: int, current: int):
        super().__init__("Too many requests")
        self.retry_after = retry_after
        self.limit = limit
        self.current = current


class IdentityProviderError(FavelyError):
    status_code = 502

    def __init__(self, message: str = "Identity provider unavailable", cause: Optional[Exception] = None):
        super().__init__(message)
        self.__cause__ = cause
