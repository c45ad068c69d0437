"""
Error kinds raised by the core.

Each kind carries the HTTP status and the public message the API layer
answers with, so routes only have to let them propagate.
"""


class AppError(Exception):
    status_code = 500
    detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class DuplicateKey(AppError):
    status_code = 409
    detail = "User with such username or email already exists"


class InvalidCredentials(AppError):
    # Same message for unknown user and wrong password.
    status_code = 401
    detail = "Invalid username or password"


class InvalidOtp(AppError):
    status_code = 401
    detail = "Invalid OTP"


class DeliveryError(AppError):
    status_code = 502
    detail = "Error sending email"


class NotFound(AppError):
    status_code = 404
    detail = "Not found"


class StorageError(AppError):
    status_code = 503
    detail = "Storage backend unavailable"


class ConcurrentUpdate(AppError):
    status_code = 409
    detail = "Board was modified concurrently, try again"


class TooManyAttempts(AppError):
    status_code = 429
    detail = "Too many login attempts"
