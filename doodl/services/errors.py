"""Service-layer exceptions surfaced to HTTP callers."""


class DoodlError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DoodlError):
    """Raised when input is missing or has the wrong shape."""

    status_code = 400


class ConflictError(DoodlError):
    """Raised when a write would violate a per-user uniqueness rule."""

    status_code = 409


class AuthError(DoodlError):
    """Raised when a mutation runs without an authenticated owner."""

    status_code = 401
