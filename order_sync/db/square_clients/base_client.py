"""
Base Square REST client with common functionality.

This module provides the foundation for all Square clients, including
session management, authentication headers and raw request execution.
Throttling, retries and error translation live in the shared
``RequestThrottler``.
"""

import logging
import time
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

from order_sync.core.config import Settings, get_settings
from order_sync.core.logging_config import log_api_call
from order_sync.utils.error_handler import TransportException
from order_sync.utils.retry_handler import RemoteResponse, RequestThrottler, get_square_throttler

logger = logging.getLogger(__name__)


class BaseSquareClient:
    """
    Base client for Square REST API operations.

    Provides connection management and request execution that all
    specialized clients inherit.
    """

    def __init__(self, settings: Optional[Settings] = None, throttler: Optional[RequestThrottler] = None):
        """Initialize the base Square client."""
        self.settings = settings or get_settings()
        self.base_url = self.settings.square_base_url
        self.api_version = self.settings.SQUARE_API_VERSION
        self.throttler = throttler or get_square_throttler()

        self.session: Optional[aiohttp.ClientSession] = None

        logger.info(f"Initialized Square client for {self.base_url}")

    async def initialize(self):
        """
        Initialize the HTTP session.

        Raises:
            TransportException: If the session cannot be created
        """
        if self.session:
            return

        try:
            timeout = ClientTimeout(total=self.settings.SQUARE_REQUEST_TIMEOUT, connect=10)
            connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers={
                    **self.settings.get_square_headers(),
                    "User-Agent": f"Square-Order-Sync/{self.api_version}",
                },
            )
            logger.info("✅ Square client initialized successfully")

        except (aiohttp.ClientError, OSError) as e:
            logger.error(f"❌ Failed to initialize Square client: {e}")
            raise TransportException(f"Client initialization failed: {e}", endpoint=self.base_url, cause=e) from e

    async def close(self):
        """Close the HTTP session and clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("Square client closed")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> RemoteResponse:
        """
        Execute one HTTP request against Square.

        Non-2xx responses are returned, not raised; the throttler decides
        what they mean.

        Args:
            method: HTTP method
            path: API path, e.g. ``/v2/orders/search``
            json: JSON body
            params: Query string parameters

        Returns:
            RemoteResponse: Status, decoded body and headers
        """
        if not self.session:
            raise TransportException(
                "Client not initialized. Call initialize() first.", endpoint=path, is_retryable=False
            )

        url = f"{self.base_url}{path}"
        started = time.monotonic()

        async with self.session.request(method, url, json=json, params=params) as response:
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = None

            log_api_call(method, url, response.status, time.monotonic() - started)

            return RemoteResponse(
                status=response.status,
                body=body if isinstance(body, dict) else {},
                headers=dict(response.headers),
            )

    def _share_with(self, client: "BaseSquareClient") -> None:
        """Make ``client`` use this client's configuration, session and throttler."""
        client.settings = self.settings
        client.base_url = self.base_url
        client.api_version = self.api_version
        client.throttler = self.throttler
        client.session = self.session

    def __str__(self):
        """String representation of the client."""
        return f"{type(self).__name__}(base_url={self.base_url}, api_version={self.api_version})"

    def __repr__(self):
        """Detailed string representation of the client."""
        return (
            f"{type(self).__name__}("
            f"base_url='{self.base_url}', "
            f"api_version='{self.api_version}', "
            f"initialized={self.session is not None})"
        )
