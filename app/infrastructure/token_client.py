"""
Blackbaud token endpoint client.

Exchanges authorization codes for tokens over httpx. Transient failures
(transport errors, timeouts, 5xx) are retried a bounded number of times
with exponential backoff. Rejected grants (4xx) and other request errors
are never retried.
"""

import asyncio
import logging

import httpx
from pydantic import ValidationError

from app.core.domain import TokenResponse
from app.core.exceptions import InvalidGrantError, TokenExchangeNetworkError
from app.oauth.config import OAuthConfig


logger = logging.getLogger(__name__)


class _TransientTokenError(Exception):
    """Internal marker for a retryable failure."""

    pass


class HttpxTokenEndpointClient:
    """Token endpoint client backed by httpx.AsyncClient."""

    def __init__(
        self,
        config: OAuthConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._transport = transport

    def _build_form(
        self, code: str, redirect_uri: str, code_verifier: str | None
    ) -> dict[str, str]:
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self._config.client_id or "",
        }
        if self._config.is_confidential_client:
            form["client_secret"] = self._config.client_secret
        if code_verifier:
            form["code_verifier"] = code_verifier
        return form

    async def exchange_code(
        self, code: str, redirect_uri: str, code_verifier: str | None = None
    ) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Makes one request, plus at most ``token_max_retries`` retries for
        transient failures.

        Args:
            code: Authorization code from the callback
            redirect_uri: Redirect URI used in the authorization request
            code_verifier: PKCE verifier, if PKCE was used

        Returns:
            Parsed token response

        Raises:
            InvalidGrantError: Provider rejected the code (4xx)
            TokenExchangeNetworkError: Provider unreachable after retries
        """
        form = self._build_form(code, redirect_uri, code_verifier)
        attempts = self._config.token_max_retries + 1
        last_error: Exception | None = None

        async with httpx.AsyncClient(
            timeout=self._config.token_timeout_seconds,
            transport=self._transport,
        ) as client:
            for attempt in range(1, attempts + 1):
                try:
                    return await self._attempt(client, form)
                except _TransientTokenError as e:
                    last_error = e
                    logger.warning(
                        f"Token exchange attempt {attempt}/{attempts} failed: {e}",
                        extra={"extra_fields": {"attempt": attempt}},
                    )
                    if attempt < attempts:
                        await asyncio.sleep(self._backoff(attempt))

        raise TokenExchangeNetworkError(
            f"Token endpoint unreachable after {attempts} attempts: {last_error}"
        )

    def _backoff(self, attempt: int) -> float:
        return self._config.token_retry_backoff_seconds * (2 ** (attempt - 1))

    async def _attempt(
        self, client: httpx.AsyncClient, form: dict[str, str]
    ) -> TokenResponse:
        # httpx timeouts apply per phase; this bounds the whole attempt
        timeout = self._config.token_timeout_seconds
        try:
            return await asyncio.wait_for(self._post(client, form), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise _TransientTokenError(f"Attempt exceeded {timeout}s") from e

    async def _post(self, client: httpx.AsyncClient, form: dict[str, str]) -> TokenResponse:
        try:
            response = await client.post(
                self._config.token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.TransportError as e:
            raise _TransientTokenError(f"Network error: {e!r}") from e
        except httpx.RequestError as e:
            logger.error(f"Token request failed: {e!r}")
            raise TokenExchangeNetworkError(f"Token request failed: {e!r}") from e

        if response.status_code >= 500:
            logger.error(f"Token endpoint server error: {response.text}")
            raise _TransientTokenError(f"HTTP {response.status_code}")

        if response.status_code >= 400:
            error = _provider_error(response)
            logger.error(
                f"Token exchange rejected: {response.text}",
                extra={"extra_fields": {"status_code": response.status_code}},
            )
            raise InvalidGrantError(f"HTTP {response.status_code}: {error}")

        try:
            token = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid token response: {e}")
            raise TokenExchangeNetworkError(f"Invalid token response: {e}") from e

        logger.info(
            "Token exchange succeeded",
            extra={"extra_fields": {"expires_in": token.expires_in}},
        )
        return token


def _provider_error(response: httpx.Response) -> str:
    """Pull the OAuth ``error`` code out of a rejection body, if any."""
    try:
        body = response.json()
    except ValueError:
        return "unknown_error"
    if isinstance(body, dict):
        return str(body.get("error", "unknown_error"))
    return "unknown_error"
