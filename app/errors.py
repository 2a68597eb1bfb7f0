from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Closed set of domain failures.

    Each member carries ``(code, error_class, http_status)``. ``INVALID_INPUT``
    and ``INTERNAL_ERROR`` are reserved: no store path raises them today.
    """

    NOT_AUTHENTICATED = ("NOT_AUTHENTICATED", "security_sensitive", 401)
    UNAUTHORIZED = ("UNAUTHORIZED", "security_sensitive", 403)
    NOT_FOUND = ("NOT_FOUND", "validation", 404)
    ALREADY_EXISTS = ("ALREADY_EXISTS", "business_rule", 409)
    INVALID_INPUT = ("INVALID_INPUT", "validation", 400)
    INTERNAL_ERROR = ("INTERNAL_ERROR", "internal", 500)

    def __init__(self, code: str, error_class: str, http_status: int) -> None:
        self.code = code
        self.error_class = error_class
        self.http_status = http_status


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status
        self.kind = kind

    @classmethod
    def of(cls, kind: ErrorKind, message: str) -> "ApiError":
        return cls(
            code=kind.code,
            message=message,
            error_class=kind.error_class,
            retryable=False,
            http_status=kind.http_status,
            kind=kind,
        )


def not_authenticated(message: str = "anonymous caller is not allowed") -> ApiError:
    return ApiError.of(ErrorKind.NOT_AUTHENTICATED, message)


def unauthorized(message: str = "caller lacks ownership or a matching grant") -> ApiError:
    return ApiError.of(ErrorKind.UNAUTHORIZED, message)


def not_found(message: str) -> ApiError:
    return ApiError.of(ErrorKind.NOT_FOUND, message)


def already_exists(message: str) -> ApiError:
    return ApiError.of(ErrorKind.ALREADY_EXISTS, message)
