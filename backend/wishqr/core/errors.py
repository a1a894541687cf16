"""Error taxonomy shared by the services and the HTTP layer.

Every error renders as ``{"error": message}`` with ``status_code``.
"""

from fastapi import status


class WishlistError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(WishlistError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(WishlistError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(WishlistError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidInput(WishlistError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InvalidAmount(InvalidInput):
    default_message = "Invalid amount"


class AlreadyExists(InvalidInput):
    default_message = "Already exists"


class WishlistInactive(InvalidInput):
    default_message = "Wishlist is no longer active"


class RateLimited(WishlistError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Rate limit exceeded"

    def __init__(self, message: str | None = None, retry_after: int = 1) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class Internal(WishlistError):
    pass
