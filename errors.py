"""
Failure classes raised by the donation components.

The HTTP layer maps each class to a status code; everything below it
only raises.
"""


class DonationServiceError(Exception):
    """Base class. `message` is safe to show to the caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DonationServiceError):
    pass


class NotFoundError(DonationServiceError):
    pass


class AuthorizationError(DonationServiceError):
    pass


class StorageError(DonationServiceError):
    pass


class AuthError(DonationServiceError):
    pass


class InternalError(DonationServiceError):
    pass
