"""
Tests for the LLM query interpretation service
"""
import json

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from smartsearch.cache.manager import CacheManager
from smartsearch.search.exceptions import InterpretationError
from smartsearch.services.interpreter import (
    SearchInterpreter, build_system_prompt, extract_person_ids, match_deals
)


DEALS = [
    {"id": 1, "name": "SpaceX Secondary", "sector": "Aerospace", "status": "live", "kind": "secondary"},
    {"id": 2, "name": "Stripe Series I", "sector": "Fintech", "status": "closing", "kind": "primary"},
    {"id": 3, "name": "Acme Growth", "sector": "Aerospace", "status": "dead", "kind": "primary"},
]

ORGANIZATIONS = [
    {"id": 10, "name": "Blackstone", "kind": "fund", "sector": "Private Equity"},
    {"id": 11, "name": "Mayo Clinic", "kind": "company", "sector": "Healthcare"},
]


def completion(content):
    """Shape of an OpenAI chat completion with one choice"""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_openai(content):
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=completion(content))
    return client


class TestPromptAndDeals:
    """Test prompt construction and deal resolution helpers"""

    def test_prompt_lists_business_vocabulary(self):
        prompt = build_system_prompt(["Blackstone"], [], DEALS, ORGANIZATIONS)

        assert "Blackstone" in prompt
        assert "SpaceX Secondary" in prompt
        assert "Healthcare" in prompt
        assert "Warm Intro" in prompt  # default sources when none are known
        assert "dealStatus" in prompt

    def test_match_deals(self):
        assert [d["id"] for d in match_deals(DEALS, {"dealSector": "aero"})] == [1, 3]
        assert [d["id"] for d in match_deals(DEALS, {"dealSector": "aero", "dealStatus": ["Live"]})] == [1]
        assert [d["id"] for d in match_deals(DEALS, {"dealName": "stripe"})] == [2]

    def test_extract_person_ids(self):
        detail = {
            "interests": [{"contact": {"id": 1}, "decisionMaker": {"id": 2}}, {"contact": None}],
            "blocks": [{"contact": {"id": 3}, "brokerContact": {"id": 4}}],
            "targets": [
                {"targetType": "Person", "targetId": 5},
                {"targetType": "Organization", "targetId": 6},
            ],
        }

        assert extract_person_ids(detail) == {1, 2, 3, 4, 5}


class TestSearchInterpreter:
    """Test SearchInterpreter.interpret"""

    def setup_method(self):
        """Setup test fixtures"""
        self.cache = CacheManager(None)

    def make_interpreter(self, content):
        interpreter = SearchInterpreter(client=make_openai(content), cache=self.cache, api_base="http://crm.test")
        interpreter.fetch_context = AsyncMock(return_value=(DEALS, ORGANIZATIONS))
        return interpreter

    @pytest.mark.asyncio
    async def test_empty_query(self):
        interpreter = self.make_interpreter("{}")

        with pytest.raises(InterpretationError) as exc_info:
            await interpreter.interpret("  ", [], [])

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        interpreter = SearchInterpreter(cache=self.cache)

        with patch("smartsearch.services.interpreter.SearchConfig.OPENAI_API_KEY", "sk-..."):
            with pytest.raises(InterpretationError) as exc_info:
                await interpreter.interpret("people at blackstone", [], [])

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_successful_interpretation(self):
        content = json.dumps({
            "filters": {"company": "Blackstone", "title": "director"},
            "explanation": "Directors at Blackstone",
            "intents": [{"type": "company", "label": "Company: Blackstone"}],
        })
        interpreter = self.make_interpreter(content)

        payload = await interpreter.interpret("directors at Blackstone", ["Blackstone"], [])

        assert payload["filters"]["company"] == "Blackstone"
        assert payload["matchedPersonIds"] is None
        assert payload["orgSectorMap"][11] == {"sector": "Healthcare", "subSector": None}

        kwargs = interpreter.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0
        assert kwargs["messages"][1] == {"role": "user", "content": "directors at Blackstone"}

    @pytest.mark.asyncio
    async def test_deal_filters_resolve_people(self):
        content = json.dumps({
            "filters": {"dealName": "SpaceX"},
            "explanation": "People connected to SpaceX",
            "intents": [{"type": "dealName", "label": "Deal: SpaceX"}],
        })
        interpreter = self.make_interpreter(content)
        interpreter.resolve_deal_people = AsyncMock(return_value=[4, 7])

        payload = await interpreter.interpret("contacts related to SpaceX", [], [])

        assert payload["matchedPersonIds"] == [4, 7]
        interpreter.resolve_deal_people.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_llm_content(self):
        interpreter = self.make_interpreter(None)

        with pytest.raises(InterpretationError) as exc_info:
            await interpreter.interpret("anything", [], [])

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_non_json_llm_content(self):
        interpreter = self.make_interpreter("not json")

        with pytest.raises(InterpretationError) as exc_info:
            await interpreter.interpret("anything", [], [])

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_non_object_filters(self):
        """Filters that are not a JSON object are an unusable interpretation"""
        content = json.dumps({"filters": ["Blackstone"], "intents": []})
        interpreter = self.make_interpreter(content)

        with pytest.raises(InterpretationError) as exc_info:
            await interpreter.interpret("people at blackstone", [], [])

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_cached_interpretation_skips_llm(self):
        cached = {"intents": [], "filters": None}
        cache = Mock()
        cache.interpretation_key.return_value = "key"
        cache.get_cached_interpretation.return_value = cached
        interpreter = SearchInterpreter(client=make_openai("{}"), cache=cache)

        assert await interpreter.interpret("anything", [], []) == cached
        interpreter.client.chat.completions.create.assert_not_called()
