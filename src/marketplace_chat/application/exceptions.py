from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class AuthenticationError(AppError):
    """Credential missing or rejected; ``close_code`` is used on live channels."""

    close_code: int = 4003


class MissingCredentialError(AuthenticationError):
    close_code = 4001

    def __init__(self, detail: str = "no credential") -> None:
        super().__init__(detail)


class InvalidCredentialError(AuthenticationError):
    close_code = 4003

    def __init__(self, detail: str = "invalid credential") -> None:
        super().__init__(detail)


class AuthorizationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class PersistenceError(AppError):
    pass
