"""
Sign-up OAuth2 endpoints.

Provides the two halves of the Blackbaud authorization-code flow:
- GET /sign-up - Start a sign-up attempt and redirect to Blackbaud
- GET /redirect-auth - Handle the callback, exchange the code

Failures raise OAuthFlowError and are rendered by the handler in main.py.
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse

from app.oauth.dependencies import Callback, Config, Redirector


logger = logging.getLogger(__name__)

router = APIRouter(tags=["sign-up"])

# Keys in the signed session cookie
SESSION_STATE_KEY = "oauth_state"
SESSION_ID_KEY = "session_id"


@router.get("/sign-up")
async def sign_up(
    request: Request,
    config: Config,
    redirector: Redirector,
):
    """
    Start OAuth2 authorization flow.

    Creates a pending attempt, binds its state to the browser via the
    signed session cookie, and redirects to Blackbaud's authorization page.

    Returns:
        302 redirect to the provider
    """
    authorization = redirector.begin()
    request.session[SESSION_STATE_KEY] = authorization.state

    return RedirectResponse(
        url=authorization.to_url(config.authorize_url),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/redirect-auth")
async def redirect_auth(
    request: Request,
    handler: Callback,
):
    """
    Handle OAuth2 callback from Blackbaud.

    The state bound to the session is removed before validation, so each
    attempt can be completed at most once.

    Returns:
        Confirmation on success

    Raises:
        OAuthFlowError: On denied, mismatched, rejected or unreachable flows
    """
    expected_state = request.session.pop(SESSION_STATE_KEY, None)

    token = await handler.handle(dict(request.query_params), expected_state)

    if handler.session_id:
        request.session[SESSION_ID_KEY] = handler.session_id

    return {
        "status": "success",
        "message": "You are signed up for RHS email notifications.",
        "token_type": token.token_type,
        "expires_in": token.expires_in,
    }
