"""Error taxonomy shared by the marketplace services.

Every service package derives its own errors from these classes, so the API
layer can translate any service failure into an HTTP response by reading
``status_code`` without knowing which service raised it.
"""


class MarketplaceError(Exception):
    """Base class for all expected service failures."""
    status_code = 500

    def __init__(self, message: str = None):
        # Fall back to the first docstring line of the concrete class
        default = (self.__class__.__doc__ or 'Request failed').strip().splitlines()[0]
        self.message = message or default
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    """Malformed or missing input."""
    status_code = 400


class AuthenticationError(MarketplaceError):
    """Missing, invalid or expired credentials."""
    status_code = 401


class AuthorizationError(MarketplaceError):
    """Authenticated but not permitted."""
    status_code = 403


class NotFoundError(MarketplaceError):
    """Resource not found."""
    status_code = 404


class ConflictError(MarketplaceError):
    """Duplicate resource or state violation."""
    # Duplicates and state violations are answered with 400 by the HTTP API.
    status_code = 400


class InternalError(MarketplaceError):
    """Internal server error."""
    # Inherits 500 so concrete errors that also derive a 4xx class keep it
    pass


__all__ = [
    'MarketplaceError',
    'ValidationError',
    'AuthenticationError',
    'AuthorizationError',
    'NotFoundError',
    'ConflictError',
    'InternalError'
]
