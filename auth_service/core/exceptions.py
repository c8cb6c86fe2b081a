"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class InvalidAssertionException(UnauthorizedException):
    """External identity assertion is unverifiable or missing a required claim."""

    def __init__(self, message: str = "Invalid identity assertion"):
        """Initialize with 401 status code."""
        super().__init__(message)


class TokenInvalidException(UnauthorizedException):
    """Session token failed signature, expiry or subject checks."""

    def __init__(self, message: str = "Invalid or expired token"):
        """Initialize with 401 status code."""
        super().__init__(message)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class StorageException(AppException):
    """Backing store unavailable; the whole request may be retried."""

    def __init__(self, message: str = "Storage temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class DeliveryException(AppException):
    """Message broker unreachable or rejected a message."""

    def __init__(self, message: str = "Message delivery failed"):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502)
