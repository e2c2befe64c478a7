from fastapi import HTTPException, status


class InvalidCredentialsError(HTTPException):
    """Raised when the email is unknown or the password does not match."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message
        )


class InvalidMfaError(HTTPException):
    """Raised when a one-time code does not verify against the stored secret."""

    def __init__(self, message: str = "Invalid MFA code"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message
        )


class InvalidLinkError(HTTPException):
    """Raised when an activation or reset token is unknown or already used."""

    def __init__(self, message: str = "Invalid or already used link"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=message
        )


class ExpiredLinkError(HTTPException):
    """Raised when an activation or reset token is past its expiration."""

    def __init__(self, message: str = "This link has expired"):
        super().__init__(
            status_code=status.HTTP_410_GONE,
            detail=message
        )


class AuthenticationError(HTTPException):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AccountNotFoundError(HTTPException):
    """Raised when a valid session points at an account that no longer exists."""

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )


class WeakPasswordError(HTTPException):
    """Raised when a new password does not meet the length policy."""

    def __init__(self, min_length: int):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {min_length} characters long"
        )


class UpstreamError(HTTPException):
    """Raised when the store or a third-party API fails."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )
