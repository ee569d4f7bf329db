"""
Error taxonomy shared by every engine
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kind of failure, mapped onto an HTTP-equivalent status code"""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL = "INTERNAL"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


class SocialServiceError(Exception):
    """Base class for errors raised (rather than returned) by the core"""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class UnauthenticatedError(SocialServiceError):
    kind = ErrorKind.UNAUTHENTICATED


class PermissionDeniedError(SocialServiceError):
    kind = ErrorKind.PERMISSION_DENIED


class InvalidArgumentError(SocialServiceError):
    kind = ErrorKind.INVALID_ARGUMENT


class ConflictError(SocialServiceError):
    kind = ErrorKind.CONFLICT


class NotFoundError(SocialServiceError):
    kind = ErrorKind.NOT_FOUND


class ServiceUnavailableError(SocialServiceError):
    """A collaborator (auth service) could not be reached"""

    kind = ErrorKind.INTERNAL

    @property
    def status_code(self) -> int:
        return 503
