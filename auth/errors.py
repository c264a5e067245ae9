from __future__ import annotations


class AuthFlowError(RuntimeError):
    """Base class for every typed failure of the sign-in flow."""


class ParseError(AuthFlowError):
    def __init__(self, field: str | None, message: str | None = None) -> None:
        if message is None:
            message = (
                f"Callback URL is missing required parameter: {field}."
                if field
                else "Callback URL is malformed."
            )
        super().__init__(message)
        self.field = field


class AuthorizationDeniedError(AuthFlowError):
    def __init__(self, error: str, description: str | None = None) -> None:
        message = f"Authorization was denied by the provider: {error}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)
        self.error = error
        self.description = description


class CsrfValidationError(AuthFlowError):
    # One message for "no pending session" and "wrong value" alike.
    def __init__(self) -> None:
        super().__init__("OAuth state validation failed.")


class ExchangeError(AuthFlowError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CodeRejectedError(ExchangeError):
    """The exchange endpoint answered, but refused the authorization code."""


class ExchangeUnavailableError(ExchangeError):
    """The exchange endpoint could not be reached."""


class StorageError(AuthFlowError):
    def __init__(self, message: str = "Cannot persist session.") -> None:
        super().__init__(message)
