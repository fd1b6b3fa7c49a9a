"""
Authorization code exchange.

The middleware only depends on the ``TokenExchanger`` protocol. The default
implementation posts the code to the provider's token endpoint with httpx.
"""

import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from webflow.auth.utils import parse_domain
from webflow.exceptions import ExchangeError
from webflow.models import TokenGrant

logger = logging.getLogger(__name__)


class TokenExchanger(Protocol):
    async def exchange(
        self,
        site: str,
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: str,
    ) -> TokenGrant:  # pragma: no cover - protocol
        ...


class HttpxTokenExchanger:
    """
    Exchange authorization codes over HTTP.

    Args:
        token_path: Token endpoint path on the provider host
        timeout: Request timeout in seconds
        client: Optional shared ``httpx.AsyncClient``; a short-lived client
            is opened per exchange otherwise
    """

    def __init__(
        self,
        token_path: str = "/services/oauth2/token",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token_path = token_path
        self.timeout = timeout
        self._client = client

    def token_url(self, site: str) -> str:
        host = parse_domain(site)
        if host is None:
            raise ExchangeError(f"Invalid provider domain: {site!r}")
        return f"https://{host}{self.token_path}"

    async def exchange(
        self,
        site: str,
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: str,
    ) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Raises:
            ExchangeError: On transport errors, non-2xx responses, or an
                unusable token response
        """
        token_url = self.token_url(site)
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
        }

        try:
            if self._client is not None:
                response = await self._post(self._client, token_url, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, token_url, payload)
        except httpx.HTTPError as e:
            raise ExchangeError(f"Unable to reach token endpoint: {e}") from e

        if not response.is_success:
            raise ExchangeError(f"Token exchange failed: {_error_message(response)}")

        try:
            grant = TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ExchangeError(f"Invalid token response: {e}") from e

        logger.debug(f"Exchanged authorization code at {token_url}")
        return grant

    async def _post(self, client: httpx.AsyncClient, url: str, payload: dict) -> httpx.Response:
        return await client.post(
            url,
            data=payload,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )


def _error_message(response: httpx.Response) -> str:
    error_data = {}
    if response.headers.get("content-type", "").startswith("application/json"):
        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
    if not isinstance(error_data, dict):
        error_data = {}
    return error_data.get("error_description") or error_data.get("error") or f"HTTP {response.status_code}"
