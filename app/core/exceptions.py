from fastapi import HTTPException, status


class ProviderError(Exception):
    """Base class for errors surfaced by an auth, database or payment provider."""


class DatabaseError(ProviderError):
    """Raised when the database provider rejects an operation."""


class AuthError(ProviderError):
    """Raised when the auth provider rejects an operation."""


class PaymentError(ProviderError):
    """Raised when the payment provider rejects an operation."""


class ConfigurationError(ProviderError):
    """Raised when a provider cannot be built from the current settings."""


class NotFoundError(HTTPException):
    """Exception raised when a record is not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} with ID '{resource_id}' not found"
        )


class AuthenticationError(HTTPException):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationError(HTTPException):
    """Exception raised for authorization failures."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message
        )


class FeatureNotAvailableError(HTTPException):
    """Exception raised when no active subscription grants a feature."""

    def __init__(self, feature_flag: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Your subscription does not include '{feature_flag}'"
        )


class QuotaExceededError(HTTPException):
    """Exception raised when the monthly quota for a feature is used up."""

    def __init__(self, feature: str):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Monthly quota exceeded for '{feature}'"
        )
