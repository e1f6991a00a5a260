"""Identity server client: hashed 3PID lookups.

Lookup flow (one call, two requests):
    GET /hash_details  -> pepper + supported algorithms
    blind addresses locally (see hashing.py)
    POST /lookup       -> {sent value: mxid} for the addresses that are known

The response is mapped back to the caller's plaintext addresses through the
reverse index built before the request. A server that answers with values
it was never sent is treated as broken and the whole lookup fails.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from .config import IdentityServerConfig, load_config
from .errors import CapabilityError, ProtocolConsistencyError, ProtocolError
from .hashing import AddressQuery, blind
from .models import (
    HashDetails,
    HashDetailsResponse,
    LookupRequest,
    LookupResponse,
    LookupResult,
    ThreePidMapping,
)
from .transport import IdentityServerTransport

logger = logging.getLogger(__name__)


class IdentityServerClient:
    """Client for the v2 identity server lookup API.

    Access tokens are passed to every call; the client keeps no credentials.
    Calls share nothing but the HTTP connection pool, so concurrent lookups
    are independent.

    Example:
        async with IdentityServerClient("https://vector.im") as client:
            results = await client.identity_hashed_lookup(
                [("alice@example.org", "email")], access_token
            )
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        *,
        transport: IdentityServerTransport | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Create a client.

        Args:
            base_url: Identity server URL (falls back to IDENTITY_SERVER_URL)
            timeout: Request timeout in seconds (falls back to IDENTITY_SERVER_TIMEOUT)
            transport: Pre-built IdentityServerTransport to send requests through;
                its own config is used, so base_url and timeout must not be given
            http_transport: httpx transport for the default IdentityServerTransport

        Raises:
            ValueError: If no identity server URL is configured, or if transport
                is combined with base_url, timeout or http_transport
        """
        if transport is not None:
            if base_url is not None or timeout is not None or http_transport is not None:
                raise ValueError(
                    "base_url, timeout and http_transport cannot be combined with transport"
                )
            self.http = transport
        else:
            self.http = IdentityServerTransport(
                load_config(base_url, timeout), transport=http_transport
            )

    @property
    def config(self) -> IdentityServerConfig:
        return self.http.config

    def get_identity_server_url(self, strip_proto: bool = False) -> str:
        """Return the identity server base URL, optionally without the scheme."""
        url = self.config.base_url
        if strip_proto:
            for scheme in ("https://", "http://"):
                if url.startswith(scheme):
                    return url[len(scheme) :]
        return url

    def set_identity_server_url(self, url: str) -> None:
        """Send all later requests to another identity server.

        Raises:
            ValueError: If the URL is empty
        """
        self.http.set_base_url(url)

    async def register_with_identity_server(self, openid_token: dict) -> dict:
        """Exchange a homeserver OpenID token for an identity server access token.

        Args:
            openid_token: Body of the homeserver's /openid/request_token response
                (access_token, token_type, matrix_server_name, expires_in)

        Returns:
            {"token": ...} holding the identity server access token used by
            every other call
        """
        return await self.http.request("POST", "/account/register", body=openid_token)

    async def request_email_token(
        self,
        email: str,
        client_secret: str,
        send_attempt: int,
        access_token: str,
        next_link: str | None = None,
    ) -> dict:
        """Ask the identity server to email a validation token.

        The identity server does not send another email for a repeated
        send_attempt; increase it to request a new one.

        Returns:
            {"sid": ...} identifying the validation session
        """
        params = {
            "client_secret": client_secret,
            "email": email,
            "send_attempt": send_attempt,
        }
        if next_link:
            params["next_link"] = next_link
        return await self.http.request(
            "POST", "/validate/email/requestToken", body=params, access_token=access_token
        )

    async def request_msisdn_token(
        self,
        phone_country: str,
        phone_number: str,
        client_secret: str,
        send_attempt: int,
        access_token: str,
        next_link: str | None = None,
    ) -> dict:
        """Ask the identity server to text a validation token to a phone number.

        Args:
            phone_country: ISO 3166-1 alpha-2 country the number is parsed in
            phone_number: Phone number in national or international format
            client_secret: Client-generated secret for this validation session
            send_attempt: Attempt counter; repeated values send no new SMS
            access_token: Identity server access token
            next_link: Optional URL to redirect to after validation

        Returns:
            {"sid": ...} identifying the validation session
        """
        params = {
            "client_secret": client_secret,
            "country": phone_country,
            "phone_number": phone_number,
            "send_attempt": send_attempt,
        }
        if next_link:
            params["next_link"] = next_link
        return await self.http.request(
            "POST", "/validate/msisdn/requestToken", body=params, access_token=access_token
        )

    async def submit_msisdn_token(
        self,
        sid: str,
        client_secret: str,
        msisdn_token: str,
        access_token: str,
    ) -> dict:
        """Submit the code the user received by SMS."""
        params = {
            "sid": sid,
            "client_secret": client_secret,
            "token": msisdn_token,
        }
        return await self.http.request(
            "POST", "/validate/msisdn/submitToken", body=params, access_token=access_token
        )

    async def get_identity_account(self, access_token: str) -> dict:
        """Get account info for the access token.

        Useful as a neutral check that the token is valid and the server's
        terms have been accepted before calling other APIs.
        """
        return await self.http.request("GET", "/account", access_token=access_token)

    async def get_identity_hash_details(self, access_token: str) -> Any:
        """Fetch the raw /hash_details response without validating it."""
        return await self.http.request("GET", "/hash_details", access_token=access_token)

    async def get_hash_details(self, access_token: str) -> HashDetails:
        """Fetch and validate the server's hashing capability.

        Not cached: the pepper may be rotated at any time.

        Raises:
            CapabilityError: If the pepper or algorithm list is missing
        """
        raw = await self.get_identity_hash_details(access_token)
        try:
            details = HashDetailsResponse.model_validate(raw)
        except ValidationError as e:
            raise CapabilityError("unsupported identity server: bad response") from e
        return HashDetails.from_response(details)

    async def identity_hashed_lookup(
        self,
        address_pairs: Sequence[AddressQuery],
        access_token: str,
    ) -> list[LookupResult]:
        """Look up (address, medium) pairs, e.g. [("alice@example.org", "email")].

        Args:
            address_pairs: Addresses to resolve, each with its 3PID medium
            access_token: Identity server access token

        Returns:
            One LookupResult per address that has an mxid, with the address
            in the caller's casing. Unknown addresses are omitted and the
            order is not related to the input order.

        Raises:
            ProtocolError: If the server's capability or response is unusable
            TransportError: If either request fails
        """
        hash_details = await self.get_hash_details(access_token)
        blinded = blind(address_pairs, hash_details)
        logger.debug(
            f"Looking up {len(blinded.addresses)} addresses using {blinded.algorithm.value}"
        )

        request = LookupRequest(
            addresses=blinded.addresses,
            algorithm=blinded.algorithm.value,
            pepper=blinded.pepper,
        )
        raw = await self.http.request(
            "POST", "/lookup", body=request.model_dump(), access_token=access_token
        )
        if not raw:
            return []

        try:
            response = LookupResponse.model_validate(raw)
        except ValidationError as e:
            raise ProtocolError("identity server returned an invalid lookup response") from e
        if not response.mappings:
            return []

        results: list[LookupResult] = []
        for value, mxid in response.mappings.items():
            address = blinded.original_address(value)
            if address is None:
                logger.warning("Identity server returned a mapping for an address it was not sent")
                raise ProtocolConsistencyError("identity server returned more results than expected")
            results.append(LookupResult(address=address, mxid=mxid))

        logger.debug(f"Lookup matched {len(results)} of {len(blinded.addresses)} addresses")
        return results

    async def lookup_threepid(self, medium: str, address: str, access_token: str) -> dict:
        """Look up the mxid for a single 3PID.

        Returns:
            {"address", "medium", "mxid"} if a user was found, else {}
        """
        results = await self.identity_hashed_lookup([(address, medium)], access_token)
        for result in results:
            if result.address == address:
                return ThreePidMapping(address=address, medium=medium, mxid=result.mxid).model_dump()
        return {}

    async def bulk_lookup_threepids(
        self,
        query: Sequence[tuple[str, str]],
        access_token: str,
    ) -> dict:
        """Look up many 3PIDs given as (medium, address) pairs.

        Results are matched back to the query by address alone. If the same
        address is queried under two media, every result for it is reported
        with the medium of the first matching query.

        Returns:
            {"threepids": [[medium, address, mxid], ...]} for the found users

        Raises:
            ProtocolConsistencyError: If a result matches none of the queried addresses
        """
        results = await self.identity_hashed_lookup(
            [(address, medium) for medium, address in query], access_token
        )

        threepids: list[list[str]] = []
        for result in results:
            original = next((pair for pair in query if pair[1] == result.address), None)
            if original is None:
                logger.warning("Identity server result does not match any queried address")
                raise ProtocolConsistencyError("identity server returned unexpected results")
            threepids.append([original[0], result.address, result.mxid])

        return {"threepids": threepids}

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
