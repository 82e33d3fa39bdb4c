"""
Tests for the remote semantic search client
"""
import asyncio
import json

import aiohttp
import pytest
from aiohttp import test_utils, web

from smartsearch.search.exceptions import RemoteSearchUnavailable
from smartsearch.search.remote import RemoteSearchClient


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse"""

    def __init__(self, status=200, body=None, error=None):
        self.status = status
        self.body = body
        self.error = error

    async def json(self, content_type="application/json"):
        if self.error:
            raise self.error
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Records POSTs and replays a canned response or error"""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, json=None):
        self.calls.append((url, json))
        if self.error:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


VALID_BODY = {
    "intents": [{"type": "company", "label": "Company: Blackstone"}],
    "filters": {"company": "Blackstone", "warmth": None},
    "explanation": "People at Blackstone",
    "matchedPersonIds": None,
    "orgSectorMap": {"3": {"sector": "Finance", "subSector": None}},
}


class TestRemoteSearchClient:
    """Test RemoteSearchClient request and failure handling"""

    def make_client(self, session):
        return RemoteSearchClient(base_url="http://search.test/api/search/smart", session=session)

    @pytest.mark.asyncio
    async def test_successful_search(self):
        """A 2xx JSON body is validated into a RemoteResponse"""
        session = FakeSession(FakeResponse(200, VALID_BODY))
        client = self.make_client(session)

        response = await client.search("people at blackstone", {"Blackstone", "Acme"}, {"LinkedIn"})

        assert response.intents[0].label == "Company: Blackstone"
        assert response.filters.company == "Blackstone"
        assert response.org_sector_map[3].sector == "Finance"

        url, payload = session.calls[0]
        assert url == "http://search.test/api/search/smart"
        assert payload == {
            "query": "people at blackstone",
            "knownOrganizations": ["Acme", "Blackstone"],
            "knownSources": ["LinkedIn"],
        }

    @pytest.mark.asyncio
    async def test_non_2xx_status(self):
        """Non-2xx responses raise with the status and server detail"""
        session = FakeSession(FakeResponse(503, {"detail": "OpenAI API key not configured"}))
        client = self.make_client(session)

        with pytest.raises(RemoteSearchUnavailable) as exc_info:
            await client.search("anything")

        assert exc_info.value.status == 503
        assert "OpenAI API key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        """Undecodable bodies are reported as unavailable"""
        error = json.JSONDecodeError("Expecting value", "<html>", 0)
        session = FakeSession(FakeResponse(200, error=error))
        client = self.make_client(session)

        with pytest.raises(RemoteSearchUnavailable):
            await client.search("anything")

    @pytest.mark.asyncio
    async def test_missing_intents(self):
        """A body without intents fails validation"""
        session = FakeSession(FakeResponse(200, {"filters": {}}))
        client = self.make_client(session)

        with pytest.raises(RemoteSearchUnavailable):
            await client.search("anything")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Connection errors are reported as unavailable"""
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        client = self.make_client(session)

        with pytest.raises(RemoteSearchUnavailable) as exc_info:
            await client.search("anything")

        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Timeouts are reported as unavailable"""
        session = FakeSession(error=asyncio.TimeoutError())
        client = self.make_client(session)

        with pytest.raises(RemoteSearchUnavailable):
            await client.search("anything")

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        """Sessions passed in by the caller stay open"""
        session = FakeSession(FakeResponse(200, VALID_BODY))

        async with self.make_client(session) as client:
            await client.search("anything")

        assert session.closed is False


UNDECODABLE_BODY = b'{"intents": [\xff\xfe]}'


class TestRemoteSearchClientOverHTTP:
    """Test against a local aiohttp server returning raw bytes"""

    async def serve(self, status, body):
        async def handler(request):
            return web.Response(status=status, body=body, content_type="application/json")

        app = web.Application()
        app.router.add_post("/api/search/smart", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        return server

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 502])
    async def test_non_utf8_body(self, status):
        """Bodies that are not valid UTF-8 are reported as unavailable"""
        server = await self.serve(status, UNDECODABLE_BODY)
        try:
            async with RemoteSearchClient(base_url=str(server.make_url("/api/search/smart"))) as client:
                with pytest.raises(RemoteSearchUnavailable) as exc_info:
                    await client.search("hot")
        finally:
            await server.close()

        assert exc_info.value.status == (status if status != 200 else None)
