"""Authenticated JSON requests against an identity server.

This is a thin layer over httpx.AsyncClient: it builds the URL, attaches the
identity server access token and turns failures into TransportError
subclasses. Timeouts, TLS and pooling are left to httpx; nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

import httpx

from .config import IdentityServerConfig, normalize_base_url
from .errors import IdentityServerConnectionError, IdentityServerHTTPError, TransportError

logger = logging.getLogger(__name__)

PREFIX_IDENTITY_V2 = "/_matrix/identity/v2"


class IdentityServerTransport:
    """Sends JSON requests to one identity server.

    Example:
        async with IdentityServerTransport(config) as transport:
            details = await transport.request("GET", "/hash_details", access_token=token)
    """

    def __init__(
        self,
        config: IdentityServerConfig,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Create a transport.

        Args:
            config: Identity server connection settings
            client: Existing AsyncClient to use (not closed by aclose())
            transport: httpx transport for a newly created client (e.g. ASGITransport)
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout,
            headers={"user-agent": config.user_agent},
            transport=transport,
        )

    def set_base_url(self, url: str) -> None:
        """Point later requests at another identity server."""
        self.config = replace(self.config, base_url=normalize_base_url(url))
        self.base_url = self.config.base_url
        logger.info(f"Identity server set to {self.base_url}")

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
        prefix: str = PREFIX_IDENTITY_V2,
        access_token: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Path below the API prefix (e.g., "/lookup")
            params: Query string parameters
            body: JSON request body
            prefix: API prefix, defaults to the v2 identity API
            access_token: Identity server access token, sent as a bearer token

        Returns:
            Decoded JSON response, or None for an empty body

        Raises:
            IdentityServerHTTPError: On a non-2xx response
            IdentityServerConnectionError: If the server cannot be reached
            TransportError: If a successful response is not valid JSON
        """
        url = f"{self.base_url}{prefix}{path}"
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        logger.debug(f"Identity server request: {method} {prefix}{path}")
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=body,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise IdentityServerConnectionError(
                f"Identity server request failed: {method} {path}: {e}"
            ) from e

        if response.is_error:
            logger.debug(f"Identity server returned {response.status_code} for {method} {path}")
            raise IdentityServerHTTPError(response.status_code, _error_body(response))

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Identity server returned invalid JSON for {method} {path}") from e

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
