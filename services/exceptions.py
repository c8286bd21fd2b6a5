"""Domain errors raised by the review, user and cafe services.

Each error carries the HTTP status and the client-safe message the API
layer returns for it.
"""


class ReviewError(Exception):
    """Base class for service errors"""
    status_code = 500
    public_message = 'Internal Server Error'

    def __init__(self, message=None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def to_response(self):
        return {"success": False, "error": self.client_message}

    @property
    def client_message(self):
        return self.message


class InvalidRequest(ReviewError):
    status_code = 400
    public_message = 'Missing required fields'


class UserNotFound(ReviewError):
    status_code = 404
    public_message = 'User not found. Please login first.'


class VenueNotFound(ReviewError):
    status_code = 404
    public_message = 'Cafe not found'


class StorageFailure(ReviewError):
    """Lookup or transaction failure; details are logged, never returned"""
    status_code = 500

    @property
    def client_message(self):
        return self.public_message


__all__ = ['ReviewError', 'InvalidRequest', 'UserNotFound', 'VenueNotFound', 'StorageFailure']
