"""
Remote semantic search client
One POST to the interpretation endpoint per call, no retries
"""

import asyncio
import logging
from typing import Iterable, Optional

import aiohttp
from pydantic import ValidationError

from ..config import SearchConfig
from .exceptions import RemoteSearchUnavailable
from .models import RemoteResponse

logger = logging.getLogger(__name__)


class RemoteSearchClient:
    """Async client for the remote query interpretation endpoint"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None
    ):
        self.url = base_url or SearchConfig.REMOTE_SEARCH_URL
        self.session = session
        self.timeout = timeout if timeout is not None else SearchConfig.remote_timeout()
        self._owns_session = session is None

    async def __aenter__(self):
        """Async context manager entry"""
        await self.start_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close_session()

    async def start_session(self):
        """Initialize HTTP session"""
        if self.session is not None:
            return

        # No total timeout unless configured; stale responses are dropped by the coordinator
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        self.session = aiohttp.ClientSession(
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout
        )
        self._owns_session = True
        logger.info(f"Started remote search session for {self.url}")

    async def close_session(self):
        """Close HTTP session"""
        if self.session and self._owns_session:
            await self.session.close()
            logger.info("Closed remote search session")
        self.session = None

    async def search(
        self,
        query: str,
        known_organizations: Iterable[str] = (),
        known_sources: Iterable[str] = ()
    ) -> RemoteResponse:
        """
        Ask the remote endpoint to interpret a query

        Args:
            query: Raw query text
            known_organizations: Organization names the endpoint may resolve to
            known_sources: Source names the endpoint may resolve to

        Returns:
            Validated RemoteResponse

        Raises:
            RemoteSearchUnavailable: on any transport, status or payload failure
        """
        if self.session is None:
            await self.start_session()

        payload = {
            "query": query,
            "knownOrganizations": sorted(known_organizations),
            "knownSources": sorted(known_sources),
        }

        try:
            async with self.session.post(self.url, json=payload) as response:
                if response.status < 200 or response.status >= 300:
                    detail = await self._error_detail(response)
                    logger.warning(f"Remote search HTTP {response.status} for '{query}': {detail}")
                    raise RemoteSearchUnavailable(detail, status=response.status)

                body = await response.json(content_type=None)

        except asyncio.TimeoutError:
            logger.warning(f"Remote search timed out for '{query}'")
            raise RemoteSearchUnavailable("Remote search timed out")
        except aiohttp.ClientError as e:
            logger.warning(f"Remote search request error for '{query}': {e}")
            raise RemoteSearchUnavailable(f"Request error: {e}")
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            logger.warning(f"Remote search returned malformed JSON for '{query}': {e}")
            raise RemoteSearchUnavailable("Malformed response body")

        try:
            return RemoteResponse.model_validate(body)
        except ValidationError as e:
            logger.warning(f"Remote search payload failed validation for '{query}': {e}")
            raise RemoteSearchUnavailable("Malformed response payload")

    async def _error_detail(self, response) -> str:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            return f"HTTP {response.status}"
        if isinstance(body, dict):
            return str(body.get("error") or body.get("detail") or f"HTTP {response.status}")
        return f"HTTP {response.status}"
