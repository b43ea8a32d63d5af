"""HTTP client for the Signal K server.

Handles login and authenticated requests. The session token obtained by
``login`` is sent as a bearer token on every later request, including the
websocket stream and the resources API.

Example:
    ```python
    client = SignalKClient(get_signalk_settings())
    await client.login("push-notifier:secret")
    paths = await client.fetch_paths("https://localhost:3443/plugins/alarms/keys")
    await client.close()
    ```
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from push_notifier.core.exceptions import AuthenticationError, PathFetchError
from push_notifier.core.settings.signalk import SignalKSettings

logger = logging.getLogger(__name__)


def split_credentials(credentials: str) -> tuple[str, str]:
    """Split ``username:password`` at the first colon."""
    username, _, password = credentials.partition(":")
    return username, password


class SignalKClient:
    """Async client for Signal K REST endpoints.

    Attributes:
        settings: Host connection settings.
    """

    def __init__(self, settings: SignalKSettings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the client.

        Args:
            settings: Host connection settings.
            client: Pre-built HTTP client (tests pass one with a mock transport).
        """
        self.settings = settings
        self._token: str | None = None
        self.client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.timeout),
            verify=settings.verify_tls,
        )

    @property
    def token(self) -> str | None:
        """Session token from the last successful login."""
        return self._token

    @property
    def auth_headers(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        await self.client.aclose()

    async def __aenter__(self) -> SignalKClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def login(self, credentials: str) -> str:
        """Log in and keep the session token.

        Args:
            credentials: ``username:password``.

        Returns:
            The session token.

        Raises:
            AuthenticationError: The server could not be reached, refused
                the login or returned no token.
        """
        username, password = split_credentials(credentials)
        try:
            response = await self.client.post(
                self.settings.login_path,
                json={"username": username, "password": password},
            )
        except httpx.HTTPError as exc:
            msg = f"cannot contact host authentication service ({exc})"
            raise AuthenticationError(msg) from exc

        if response.status_code != 200:
            msg = f"host authentication service denied login attempt by user '{username}'"
            raise AuthenticationError(msg)

        try:
            token = response.json()["token"]
        except (ValueError, KeyError, TypeError) as exc:
            msg = "authentication server response could not be parsed"
            raise AuthenticationError(msg) from exc

        self._token = token
        logger.info("Authenticated with server as user '%s'", username)
        return token

    async def fetch_paths(self, url: str) -> list[str]:
        """Fetch a JSON array of paths from a Signal K API URL.

        Raises:
            AuthenticationError: Not logged in, or the token was rejected.
            PathFetchError: Transport error, other non-200 response or a
                body that is not a list of strings.
        """
        if self._token is None:
            msg = f"cannot fetch '{url}' without a session token"
            raise AuthenticationError(msg)

        try:
            response = await self.client.get(url, headers=self.auth_headers)
        except httpx.HTTPError as exc:
            raise PathFetchError(f"request failed ({exc})") from exc

        if response.status_code in (401, 403):
            msg = f"'{url}' rejected the session token ({response.status_code})"
            raise AuthenticationError(msg)
        if response.status_code != 200:
            raise PathFetchError(f"server answered {response.status_code}")

        try:
            body: Any = response.json()
        except ValueError as exc:
            raise PathFetchError("response is not JSON") from exc
        if not isinstance(body, list) or not all(isinstance(p, str) for p in body):
            raise PathFetchError("response is not a list of paths")

        logger.debug("Fetched %d paths from '%s'", len(body), url)
        return body
