"""
Core services for the OAuth 2.0 authorization-code sign-up flow.

AuthorizationRedirector starts an attempt; CallbackHandler finishes it.
Both are independent of HTTP: the router in app/oauth adapts them.
"""

import hmac
import logging
from typing import Any, Mapping

from app.core.domain import (
    AuthorizationRequest,
    AuthorizationResult,
    FlowState,
    PendingAuthorization,
    TokenResponse,
)
from app.core.exceptions import (
    AuthorizationDeniedError,
    FlowTransitionError,
    OAuthFlowError,
    StateMismatchError,
    TokenExchangeNetworkError,
)
from app.core.pkce import code_challenge_for, generate_code_verifier, generate_state
from app.core.ports import (
    PendingAuthorizationStore,
    SessionEstablisher,
    TokenEndpointClient,
)


logger = logging.getLogger(__name__)


class AuthorizationRedirector:
    """
    Builds the outbound authorization request for a new sign-up attempt.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        store: PendingAuthorizationStore,
        use_pkce: bool = True,
    ):
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.store = store
        self.use_pkce = use_pkce

    def begin(self) -> AuthorizationRequest:
        """
        Start a sign-up attempt.

        Generates a fresh state (and PKCE pair when enabled) and records the
        attempt in the pending store so the callback can find it.

        Returns:
            The authorization request to redirect the user with
        """
        state = generate_state()
        code_verifier = generate_code_verifier() if self.use_pkce else None

        self.store.add(
            PendingAuthorization(
                state=state,
                redirect_uri=self.redirect_uri,
                code_verifier=code_verifier,
            )
        )

        request = AuthorizationRequest(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            state=state,
            code_challenge=code_challenge_for(code_verifier) if code_verifier else None,
            code_challenge_method="S256" if code_verifier else None,
        )
        logger.info(
            "Started sign-up attempt",
            extra={"extra_fields": {"pkce": self.use_pkce}},
        )
        return request


class CallbackHandler:
    """
    Handles one authorization callback.

    State machine: AWAITING_CALLBACK -> VALIDATING -> EXCHANGING ->
    SUCCEEDED | FAILED. Terminal states are final; a new sign-up needs a
    new attempt and a new handler.
    """

    def __init__(
        self,
        store: PendingAuthorizationStore,
        token_client: TokenEndpointClient,
        session_establisher: SessionEstablisher | None = None,
    ):
        self.store = store
        self.token_client = token_client
        self.session_establisher = session_establisher
        self.state = FlowState.AWAITING_CALLBACK
        self.error: OAuthFlowError | None = None
        self.token: TokenResponse | None = None
        self.session_id: str | None = None

    async def handle(
        self, params: Mapping[str, Any], expected_state: str | None
    ) -> TokenResponse:
        """
        Validate the callback, exchange the code and establish a session.

        Args:
            params: Callback query parameters
            expected_state: State bound to the browser when the attempt began

        Returns:
            The token response

        Raises:
            OAuthFlowError: Any failure; the handler ends in FAILED
            FlowTransitionError: If the handler already finished
        """
        if self.state.is_terminal:
            raise FlowTransitionError(f"Callback already handled (state={self.state.value})")
        if self.state is not FlowState.AWAITING_CALLBACK:
            raise FlowTransitionError("Callback is already being handled")

        result = AuthorizationResult.from_query(params)
        try:
            self.state = FlowState.VALIDATING
            pending = self._validate(result, expected_state)

            self.state = FlowState.EXCHANGING
            token = await self.token_client.exchange_code(
                code=result.code or "",
                redirect_uri=pending.redirect_uri,
                code_verifier=pending.code_verifier,
            )

            if self.session_establisher is not None:
                self.session_id = await self.session_establisher.establish(token)
        except OAuthFlowError as e:
            self._fail(e)
            raise
        except Exception as e:
            logger.exception("Unexpected error while handling callback")
            error = TokenExchangeNetworkError(f"Unexpected error: {e!r}")
            self._fail(error)
            raise error from e

        self.token = token
        self.state = FlowState.SUCCEEDED
        logger.info("Sign-up completed")
        return token

    def _validate(
        self, result: AuthorizationResult, expected_state: str | None
    ) -> PendingAuthorization:
        if result.is_error:
            self._discard(result.state, expected_state)
            raise AuthorizationDeniedError(result.error or "", result.error_description)

        if not result.state or not expected_state:
            self._discard(result.state, expected_state)
            raise StateMismatchError("Callback or session is missing the state value")

        if not hmac.compare_digest(result.state.encode(), expected_state.encode()):
            # Invalidate the attempt this browser actually started
            self.store.discard(expected_state)
            raise StateMismatchError("Callback state does not match session state")

        pending = self.store.consume(result.state)
        if pending is None:
            raise StateMismatchError("No live pending authorization for state")

        if not result.code:
            raise AuthorizationDeniedError(
                "invalid_request", "Callback is missing the authorization code"
            )
        return pending

    def _discard(self, *states: str | None) -> None:
        for state in states:
            if state:
                self.store.discard(state)

    def _fail(self, error: OAuthFlowError) -> None:
        self.state = FlowState.FAILED
        self.error = error
        self.token = None
        self.session_id = None

        fields = {"error_kind": error.kind.value}
        if isinstance(error, StateMismatchError):
            logger.warning(
                f"Possible CSRF or replayed callback: {error.detail}",
                extra={"extra_fields": {**fields, "security": True}},
            )
        else:
            logger.error(
                f"Sign-up failed: {error.detail}",
                extra={"extra_fields": fields},
            )
