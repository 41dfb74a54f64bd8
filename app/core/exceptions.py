"""
Domain exceptions for the sign-up flow.

These exceptions represent failed authorization attempts and are caught
by the centralized exception handler in main.py. ``user_message`` is safe
to show; ``detail`` is for operators and only goes to the logs.
"""

from app.core.domain import ErrorKind


class OAuthFlowError(Exception):
    """Base class for a failed sign-up attempt."""

    kind: ErrorKind
    user_message: str = "Sign-up failed. Please try again."

    def __init__(self, detail: str = "", user_message: str | None = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        if user_message is not None:
            self.user_message = user_message


class AuthorizationDeniedError(OAuthFlowError):
    """
    Raised when the provider redirects back with an ``error`` parameter.

    Recoverable: the user can start a new sign-up.
    """

    kind = ErrorKind.AUTHORIZATION_DENIED
    user_message = "Authorization was not granted. You can try signing up again."

    def __init__(
        self,
        error: str,
        error_description: str | None = None,
        user_message: str | None = None,
    ):
        detail = f"{error}: {error_description}" if error_description else error
        super().__init__(detail, user_message)
        self.error = error
        self.error_description = error_description


class StateMismatchError(OAuthFlowError):
    """
    Raised when the callback ``state`` does not match a live attempt.

    Possible CSRF or replay. Fatal: the code is never exchanged.
    """

    kind = ErrorKind.STATE_MISMATCH
    user_message = "This sign-up link is invalid or has expired. Please start again."


class TokenExchangeNetworkError(OAuthFlowError):
    """
    Raised when the token endpoint cannot be reached.

    Transient; the token client retries a bounded number of times before
    raising this.
    """

    kind = ErrorKind.NETWORK_ERROR
    user_message = "We could not reach Blackbaud. Please try again in a moment."


class InvalidGrantError(OAuthFlowError):
    """
    Raised when the provider rejects the authorization code.

    Terminal; the user must restart the flow.
    """

    kind = ErrorKind.INVALID_GRANT
    user_message = "Blackbaud rejected the sign-up request. Please start again."


class FlowTransitionError(RuntimeError):
    """Raised when a finished callback handler is driven again."""

    pass
