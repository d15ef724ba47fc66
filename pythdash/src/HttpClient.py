"""Shared HTTP client management for the Hermes, Fortuna and chat services.

A single httpx.AsyncClient is shared by every client class to avoid
connection overhead. Transport failures and non-2xx responses are converted
into UpstreamUnavailable so callers only deal with the dashboard taxonomy.
"""

import logging
from typing import ClassVar

import httpx

from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class BaseHttpClient:
    """Base class for clients talking to remote HTTP services.

    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar timeout: Request timeout in seconds.
    :ivar client: Explicit client override; the shared client is used when None.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional client to use instead of the shared one.
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.client = client

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            BaseHttpClient._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return BaseHttpClient._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseHttpClient._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseHttpClient._shared_client = None

    def _client(self) -> httpx.AsyncClient:
        return self.client or self.get_shared_client()

    async def _get(
        self,
        url: str,
        *,
        params: dict | list | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises UpstreamUnavailable: On non-2xx response or network/timeout errors.
        """
        try:
            response = await self._client().get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamUnavailable(response.text[:200], response.status_code)
        return response

    async def _post(
        self,
        url: str,
        *,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP POST request.

        :param url: Request URL.
        :param json: Optional JSON body.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises UpstreamUnavailable: On non-2xx response or network/timeout errors.
        """
        try:
            response = await self._client().post(
                url,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP POST %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamUnavailable(
                response.reason_phrase or response.text[:200], response.status_code
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        """Decode a JSON object body.

        :raises UpstreamUnavailable: If the body is not a JSON object.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Unexpected response: {str(data)[:200]}")
        return data
