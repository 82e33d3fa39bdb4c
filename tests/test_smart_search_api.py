"""
Tests for the smart search API endpoint
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock, patch

from main import app
from smartsearch.routes.search import get_interpreter
from smartsearch.search.exceptions import InterpretationError

client = TestClient(app)


INTERPRETATION = {
    "filters": {"company": "Blackstone", "title": None, "warmth": [2, 3]},
    "explanation": "Engaged contacts at Blackstone",
    "intents": [
        {"type": "company", "label": "Company: Blackstone"},
        {"type": "warmth", "label": "Warmth: Hot, Champion"},
    ],
    "matchedPersonIds": None,
    "orgSectorMap": {10: {"sector": "Private Equity", "subSector": None}},
}


class TestSmartSearchAPI:
    """Test POST /api/search/smart"""

    def setup_method(self):
        """Setup test fixtures"""
        self.interpreter = Mock()
        self.interpreter.interpret = AsyncMock(return_value=INTERPRETATION)
        app.dependency_overrides[get_interpreter] = lambda: self.interpreter

    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_smart_search(self):
        response = client.post("/api/search/smart", json={
            "query": "engaged people at Blackstone",
            "knownOrganizations": ["Blackstone"],
            "knownSources": ["LinkedIn"]
        })

        assert response.status_code == 200
        data = response.json()
        assert data["intents"][0]["label"] == "Company: Blackstone"
        assert data["filters"]["company"] == "Blackstone"
        assert data["filters"]["warmth"] == [2, 3]
        assert data["orgSectorMap"]["10"]["sector"] == "Private Equity"

        self.interpreter.interpret.assert_awaited_once_with(
            "engaged people at Blackstone", ["Blackstone"], ["LinkedIn"]
        )

    def test_legacy_known_orgs_field(self):
        """'knownOrgs' is accepted as an alias"""
        client.post("/api/search/smart", json={"query": "acme", "knownOrgs": ["Acme"]})

        self.interpreter.interpret.assert_awaited_once_with("acme", ["Acme"], [])

    @pytest.mark.parametrize("status_code,message", [
        (400, "Query is required"),
        (503, "OpenAI API key not configured"),
        (502, "No response from LLM"),
    ])
    def test_interpretation_errors(self, status_code, message):
        self.interpreter.interpret.side_effect = InterpretationError(message, status_code=status_code)

        response = client.post("/api/search/smart", json={"query": "x"})

        assert response.status_code == status_code
        assert response.json()["detail"] == message

    def test_unexpected_error(self):
        self.interpreter.interpret.side_effect = RuntimeError("boom")

        response = client.post("/api/search/smart", json={"query": "x"})

        assert response.status_code == 500
        assert response.json()["detail"] == "boom"


class TestServiceEndpoints:
    """Test root and health endpoints"""

    def test_root(self):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    @patch("main.get_redis_client")
    def test_health_without_redis(self, mock_redis):
        mock_redis.return_value = None

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["cache"]["status"] == "disabled"
        assert data["features"]["caching"] is False
