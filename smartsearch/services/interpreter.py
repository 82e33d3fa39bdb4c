"""
LLM query interpretation service
Backs the remote semantic search endpoint: turns a query into filters and
intent chips, resolving deal filters to the people connected to those deals
"""
import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import aiohttp
from openai import AsyncOpenAI
from pydantic import ValidationError

from ..cache.manager import CacheManager
from ..config import SearchConfig
from ..search.exceptions import InterpretationError
from ..search.models import RemoteResponse
from ..search.sources import DEFAULT_SOURCES

logger = logging.getLogger(__name__)

DEFAULT_ORG_KINDS = ["fund", "company", "bank", "broker", "service_provider", "other"]
DEFAULT_DEAL_STATUSES = ["live", "sourcing", "closing", "closed", "dead"]

PROMPT_EXAMPLES = [
    (
        "directors at Blackstone",
        {"company": "Blackstone", "title": "director"},
        "People with Director in their title at Blackstone",
        [{"type": "role", "label": "Role: Director"}, {"type": "company", "label": "Company: Blackstone"}],
    ),
    (
        "warm contacts from LinkedIn added recently",
        {"source": "LinkedIn", "warmth": [1], "addedWithinDays": 30},
        "Warm contacts sourced from LinkedIn that were added in the last 30 days",
        [
            {"type": "warmth", "label": "Warmth: Warm"},
            {"type": "source", "label": "Source: LinkedIn"},
            {"type": "time", "label": "Added recently"},
        ],
    ),
    (
        "people at funds",
        {"orgKind": ["fund"]},
        "People who work at fund-type organizations",
        [{"type": "orgKind", "label": "Org Type: Fund"}],
    ),
    (
        "contacts related to SpaceX",
        {"dealName": "SpaceX"},
        "All people connected to the SpaceX deal as investors, sellers, or outreach targets",
        [{"type": "dealName", "label": "Deal: SpaceX"}],
    ),
    (
        "directors at companies in healthcare",
        {"title": "director", "orgKind": ["company"], "orgSector": "healthcare"},
        "Directors at company-type organizations in the healthcare sector",
        [
            {"type": "role", "label": "Role: Director"},
            {"type": "orgKind", "label": "Org Type: Company"},
            {"type": "orgSector", "label": "Org Sector: Healthcare"},
        ],
    ),
    (
        "investors in live deals",
        {"dealStatus": ["live"]},
        "People who are investors in currently live deals",
        [{"type": "dealStatus", "label": "Deal Status: Live"}],
    ),
    (
        "VPs in New York",
        {"title": "VP", "location": "New York"},
        "Vice Presidents located in New York",
        [{"type": "role", "label": "Role: VP"}, {"type": "location", "label": "Location: New York"}],
    ),
    (
        "john smith",
        {"name": "john smith"},
        "Searching for a person named John Smith",
        [{"type": "name", "label": "Name: john smith"}],
    ),
]

FILTER_FIELDS = [
    "name", "company", "title", "source", "warmth", "location", "addedWithinDays", "email",
    "tags", "orgKind", "orgSector", "dealName", "dealSector", "dealStatus",
]


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    """Distinct non-empty values, first occurrence order"""
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _listing(values: List[str], fallback: str, limit: Optional[int] = None) -> str:
    if not values:
        return fallback
    return ", ".join(values[:limit] if limit else values)


def build_system_prompt(
    known_organizations: List[str],
    known_sources: List[str],
    deals: List[Dict[str, Any]],
    organizations: List[Dict[str, Any]]
) -> str:
    """System prompt describing the contact schema, business vocabulary and output contract"""
    deal_names = _unique(deal.get("name") for deal in deals)
    deal_sectors = _unique(deal.get("sector") for deal in deals)
    deal_statuses = _unique(deal.get("status") for deal in deals)
    org_kinds = _unique(org.get("kind") for org in organizations)
    org_sectors = _unique(org.get("sector") for org in organizations)

    examples = []
    for query, filters, explanation, intents in PROMPT_EXAMPLES:
        full_filters = {field: filters.get(field) for field in FILTER_FIELDS}
        output = {"filters": full_filters, "explanation": explanation, "intents": intents}
        examples.append(f'Query: "{query}"\n{json.dumps(output)}')

    sections = [
        "You are a search query parser for a CRM focused on deal-making, investments and "
        "relationship management. Interpret natural language queries about people/contacts "
        "and return structured JSON filters.",
        "## Person Schema\n"
        "- firstName, lastName: person's name\n"
        "- title: job title (e.g. \"Managing Director\", \"VP of Sales\", \"Analyst\")\n"
        "- org: organization name; orgKind: fund, company, bank, broker, service_provider\n"
        "- email; warmth: 0=Cold, 1=Warm, 2=Hot, 3=Champion; source: how the contact was acquired\n"
        "- tags; city, state, country; createdAt; lastContactedAt",
        "## Business Context\n"
        "People can be connected to deals as investors (interests), sellers (blocks) or outreach targets. "
        "Organizations have a kind and may have a sector. Deals have a name, sector, status and kind.",
        "## Known Organizations\n" + _listing(
            known_organizations, "(none provided)", SearchConfig.MAX_PROMPT_ORGANIZATIONS
        ),
        "## Known Sources\n" + _listing(known_sources, ", ".join(source.name for source in DEFAULT_SOURCES)),
        "## Known Organization Types\n" + _listing(org_kinds, ", ".join(DEFAULT_ORG_KINDS)),
        "## Known Organization Sectors\n" + _listing(org_sectors, "(none provided)", SearchConfig.MAX_PROMPT_ITEMS),
        "## Known Deal Names\n" + _listing(deal_names, "(none provided)", SearchConfig.MAX_PROMPT_ITEMS),
        "## Known Deal Sectors\n" + _listing(deal_sectors, "(none provided)"),
        "## Known Deal Statuses\n" + _listing(deal_statuses, ", ".join(DEFAULT_DEAL_STATUSES)),
        "## Output Format\n"
        "Return a JSON object with fields \"filters\" (keys: " + ", ".join(FILTER_FIELDS) + "; "
        "null when irrelevant), \"explanation\" (one sentence) and \"intents\" "
        "(list of {\"type\", \"label\"}, one per active filter).",
        "## Rules\n"
        "- Warmth: Cold=0, Warm=1, Hot=2, Champion=3. \"engaged\" means [2,3]. \"not cold\" means [1,2,3].\n"
        "- Source: match to the closest known source name. \"LI\" or \"linkedin\" -> \"LinkedIn\".\n"
        "- Time: \"this week\" = 7 days, \"this month\" = 30, \"recently\"/\"new\" = 14-30, \"last quarter\" = 90.\n"
        "- Title: extract role keywords such as director, VP, analyst, partner, CEO.\n"
        "- Company: match to known organizations, otherwise use the name as written.\n"
        "- orgKind: lowercase organization types, \"people at funds\" -> [\"fund\"].\n"
        "- orgSector: industry of the organization, \"companies in healthcare\" -> \"healthcare\".\n"
        "- dealName / dealSector / dealStatus: people connected to matching deals.\n"
        "- Intent type is one of: company, source, role, warmth, time, location, name, tag, email, "
        "orgKind, orgSector, dealName, dealSector, dealStatus.",
        "## Examples\n" + "\n\n".join(examples),
        "Now parse the following user query and return the JSON:",
    ]
    return "\n\n".join(sections)


def extract_person_ids(detail: Dict[str, Any]) -> Set[int]:
    """People connected to one deal through interests, blocks and person targets"""
    person_ids: Set[int] = set()

    for interest in detail.get("interests") or []:
        for role in ("contact", "decisionMaker"):
            person = interest.get(role) or {}
            if person.get("id"):
                person_ids.add(person["id"])

    for block in detail.get("blocks") or []:
        for role in ("contact", "brokerContact"):
            person = block.get(role) or {}
            if person.get("id"):
                person_ids.add(person["id"])

    for target in detail.get("targets") or []:
        if target.get("targetType") == "Person" and target.get("targetId"):
            person_ids.add(target["targetId"])

    return person_ids


def match_deals(deals: List[Dict[str, Any]], filters: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Deals matching every deal filter that is set"""
    matching = deals

    if filters.get("dealName"):
        name = filters["dealName"].lower()
        matching = [deal for deal in matching if deal.get("name") and name in deal["name"].lower()]
    if filters.get("dealSector"):
        sector = filters["dealSector"].lower()
        matching = [deal for deal in matching if deal.get("sector") and sector in deal["sector"].lower()]
    if isinstance(filters.get("dealStatus"), list):
        statuses = {str(status).lower() for status in filters["dealStatus"]}
        matching = [deal for deal in matching if deal.get("status") and deal["status"].lower() in statuses]

    return matching


class SearchInterpreter:
    """Interprets queries with OpenAI using CRM business context"""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        cache: Optional[CacheManager] = None,
        api_base: Optional[str] = None
    ):
        self._client = client
        self.cache = cache or CacheManager()
        self.api_base = (api_base if api_base is not None else SearchConfig.CRM_API_BASE_URL).rstrip("/")
        self.model = SearchConfig.OPENAI_MODEL

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not SearchConfig.has_openai_key():
                raise InterpretationError("OpenAI API key not configured", status_code=503)
            self._client = AsyncOpenAI(api_key=SearchConfig.OPENAI_API_KEY)
        return self._client

    async def interpret(
        self,
        query: str,
        known_organizations: List[str],
        known_sources: List[str]
    ) -> Dict[str, Any]:
        """
        Interpret a query into the remote search response payload

        Returns:
            Dict with filters, explanation, intents, matchedPersonIds and orgSectorMap

        Raises:
            InterpretationError: 400 for an empty query, 503 without an API key,
                502 when the model output is unusable
        """
        if not query or not query.strip():
            raise InterpretationError("Query is required", status_code=400)

        client = self.client

        cache_key = self.cache.interpretation_key(query, known_organizations, known_sources)
        cached = self.cache.get_cached_interpretation(cache_key)
        if cached is not None:
            logger.info(f"Interpretation cache hit for '{query}'")
            return cached

        timeout = aiohttp.ClientTimeout(total=SearchConfig.CONTEXT_REQUEST_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            deals, organizations = await self.fetch_context(session)

            system_prompt = build_system_prompt(known_organizations, known_sources, deals, organizations)
            completion = await client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                temperature=0,
                max_tokens=SearchConfig.LLM_MAX_TOKENS,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": query},
                ],
            )

            content = completion.choices[0].message.content if completion.choices else None
            if not content:
                raise InterpretationError("No response from LLM", status_code=502)

            try:
                parsed = json.loads(content)
            except json.JSONDecodeError:
                logger.warning(f"LLM returned non-JSON content for '{query}'")
                raise InterpretationError("LLM returned invalid JSON", status_code=502)
            if not isinstance(parsed, dict):
                raise InterpretationError("LLM returned invalid JSON", status_code=502)

            filters = parsed.get("filters") or {}
            if not isinstance(filters, dict):
                logger.warning(f"LLM returned non-object filters for '{query}'")
                raise InterpretationError("LLM returned an unusable interpretation", status_code=502)
            matched_person_ids = None
            if filters.get("dealName") or filters.get("dealSector") or filters.get("dealStatus"):
                matched_person_ids = await self.resolve_deal_people(session, deals, filters)

        org_sector_map = {
            org["id"]: {"sector": org.get("sector"), "subSector": None}
            for org in organizations if org.get("id") is not None
        }

        payload = {
            "filters": parsed.get("filters"),
            "explanation": parsed.get("explanation"),
            "intents": parsed.get("intents"),
            "matchedPersonIds": matched_person_ids,
            "orgSectorMap": org_sector_map,
        }

        try:
            RemoteResponse.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"LLM output failed validation for '{query}': {e}")
            raise InterpretationError("LLM returned an unusable interpretation", status_code=502)

        self.cache.cache_interpretation(cache_key, payload)
        logger.info(f"Interpreted '{query}' into {len(payload['intents'])} intents")
        return payload

    async def fetch_context(self, session: aiohttp.ClientSession) -> Tuple[List[Dict], List[Dict]]:
        """Deals and organizations from the CRM API; unavailable context degrades to empty lists"""
        cached_deals = self.cache.get_cached_context("deals")
        cached_orgs = self.cache.get_cached_context("organizations")
        if isinstance(cached_deals, list) and isinstance(cached_orgs, list):
            return cached_deals, cached_orgs

        deals, organizations = await asyncio.gather(
            self._fetch_json(session, "/api/deals"),
            self._fetch_json(session, "/api/organizations"),
        )
        deals = deals if isinstance(deals, list) else []
        organizations = organizations if isinstance(organizations, list) else []

        if deals or organizations:
            self.cache.cache_context("deals", deals)
            self.cache.cache_context("organizations", organizations)
        return deals, organizations

    async def resolve_deal_people(
        self,
        session: aiohttp.ClientSession,
        deals: List[Dict[str, Any]],
        filters: Dict[str, Any]
    ) -> Optional[List[int]]:
        """Person ids connected to the top matching deals, or None when no deal matches"""
        top_deals = match_deals(deals, filters)[:SearchConfig.MAX_CONTEXT_DEALS]
        if not top_deals:
            logger.info("No deals matched the deal filters")
            return None

        details = await asyncio.gather(
            *(self._fetch_json(session, f"/api/deals/{deal['id']}") for deal in top_deals)
        )

        person_ids: Set[int] = set()
        for detail in details:
            if isinstance(detail, dict):
                person_ids.update(extract_person_ids(detail))

        logger.info(f"Resolved {len(top_deals)} deals to {len(person_ids)} people")
        return sorted(person_ids)

    async def _fetch_json(self, session: aiohttp.ClientSession, path: str) -> Any:
        url = f"{self.api_base}{path}"
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    logger.warning(f"Context request {url} returned HTTP {response.status}")
                    return None
                return await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning(f"Context request {url} timed out")
            return None
        except (aiohttp.ClientError, json.JSONDecodeError) as e:
            logger.warning(f"Context request {url} failed: {e}")
            return None
