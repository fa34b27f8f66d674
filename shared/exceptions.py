from fastapi import HTTPException, status


class FactoryError(Exception):
    """Base for domain errors raised by service tools.

    The app-level exception handler renders these as
    ``{"success": false, "message": ..., "error": <class name>}``.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(FactoryError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(FactoryError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(FactoryError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(FactoryError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(FactoryError):
    status_code = status.HTTP_409_CONFLICT


class InvalidCredentials(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or PIN",
        )


class TokenExpired(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )


class InactiveAccount(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is inactive",
        )


class AlreadyClockedIn(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already clocked in today",
        )


class NoActiveSession(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active clock-in session found for today",
        )
