"""
Intent parser for natural language contact queries
Turns a raw query into a StructuredQuery without any I/O
"""

import re
import logging
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .models import IntentType, SearchIntent, StructuredQuery
from .sources import DEFAULT_SOURCE_NAMES

logger = logging.getLogger(__name__)

# Longer phrases come first so "recently" is not read as "recent" + "ly"
TIME_KEYWORDS: List[Tuple[str, int]] = [
    ("last quarter", 90),
    ("this quarter", 90),
    ("this month", 30),
    ("last month", 30),
    ("past month", 30),
    ("this week", 7),
    ("last week", 7),
    ("past week", 7),
    ("last year", 365),
    ("this year", 365),
    ("recently", 30),
    ("recent", 30),
    ("new", 14),
]

WARMTH_KEYWORDS: List[Tuple[str, List[int]]] = [
    ("not cold", [1, 2, 3]),
    ("engaged", [2, 3]),
    ("champions", [3]),
    ("champion", [3]),
    ("cold", [0]),
    ("warm", [1]),
    ("hot", [2]),
]

# "warm intro" and "cold call" are sources, not warmth levels
WARMTH_SOURCE_GUARDS: Dict[str, str] = {
    "warm": r"{name}(?!\s+intros?)",
    "cold": r"{name}(?!\s+(?:outreach|calls?))",
}

# phrase -> canonical role matched against titles
ROLE_KEYWORDS: Dict[str, str] = {
    "managing director": "md",
    "portfolio manager": "pm",
    "investor relations": "ir",
    "vice president": "vp",
    "co-founder": "founder",
    "head of": "head",
    "ceo": "ceo", "cfo": "cfo", "coo": "coo", "cto": "cto", "cio": "cio", "cmo": "cmo",
    "partner": "partner", "partners": "partner",
    "director": "director", "directors": "director",
    "md": "md",
    "vp": "vp", "vps": "vp",
    "analyst": "analyst", "analysts": "analyst",
    "associate": "associate", "associates": "associate",
    "principal": "principal", "principals": "principal",
    "head": "head",
    "manager": "manager", "managers": "manager",
    "founder": "founder", "founders": "founder",
    "president": "president",
    "pm": "pm",
    "ir": "ir",
}

ORG_KIND_KEYWORDS: Dict[str, str] = {
    "service providers": "service_provider",
    "service provider": "service_provider",
    "funds": "fund",
    "fund": "fund",
    "banks": "bank",
    "bank": "bank",
    "brokers": "broker",
    "broker": "broker",
    "companies": "company",
}

OWNER_PATTERNS = [
    r"sourced\s+by\s+{name}",
    r"{name}'s\s+(?:contacts|people|list)",
    r"assigned\s+to\s+{name}",
    r"owned\s+by\s+{name}",
]

SOURCE_CONTEXT_PATTERNS = [
    r"(?:from|via|through|sourced\s+from|source:?)\s*{name}s?",
    r"{name}s?\s+(?:contacts|people|source)",
]

# "new york" is a place, not a time window
NEW_PLACE_GUARD = r"{name}(?!\s+(?:york|jersey|hampshire|mexico|zealand|delhi|orleans))"

COMPANY_CONTEXT = r"(?:people\s+at|contacts\s+at|team\s+at|who\s+works?\s+at|at|from)\s+"

FILLER_WORDS = {
    "show", "find", "search", "list", "get", "all", "the", "for", "me", "who", "are",
    "is", "with", "and", "or", "contacts", "people", "outreach", "at", "from", "in",
    "of", "by", "to", "a", "an", "my", "our",
}

SMART_SEARCH_EXAMPLES = [
    "people at Blackstone",
    "warm contacts from referrals",
    "new this week",
    "directors at Goldman",
    "hot champions from LinkedIn",
    "analysts from conferences",
    "VP contacts at Apollo",
    "people at funds",
    "contacts related to SpaceX",
    "directors at companies in healthcare",
    "investors in live deals",
]


@lru_cache(maxsize=2048)
def _phrase_pattern(phrase: str, template: str = "{name}") -> re.Pattern:
    """Case-insensitive pattern matching a phrase on word edges"""
    escaped = r"\s+".join(re.escape(part) for part in phrase.split())
    body = template.format(name=escaped)
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


def _title(value: str) -> str:
    return value.replace("_", " ").title()


class IntentParser:
    """Extracts typed intents from a raw query in a fixed precedence order"""

    def __init__(self, owner_directory: Optional[Dict[str, int]] = None):
        self.owner_directory = {k.lower(): v for k, v in (owner_directory or {}).items()}

    def parse(
        self,
        raw: str,
        known_organizations: Iterable[str] = (),
        known_sources: Optional[Iterable[str]] = None,
    ) -> StructuredQuery:
        """
        Parse a query into free text plus structured intents

        Args:
            raw: Raw query string as typed
            known_organizations: Organization names present in the record store
            known_sources: Source names; defaults to the built-in registry

        Returns:
            StructuredQuery whose intents are in recognition order
        """
        if not raw or not raw.strip():
            return StructuredQuery(raw=raw or "", free_text="", intents=[])

        organizations = self._ordered(known_organizations)
        sources = self._ordered(DEFAULT_SOURCE_NAMES if known_sources is None else known_sources)

        intents: List[SearchIntent] = []
        remaining = raw.strip()

        remaining = self._extract_owner(remaining, intents)
        remaining = self._extract_time(remaining, intents, organizations)
        remaining = self._extract_warmth(remaining, intents)
        remaining = self._extract_source(remaining, intents, sources)
        remaining = self._extract_company(remaining, intents, organizations)
        remaining = self._extract_org_kind(remaining, intents)
        remaining = self._extract_tags(remaining, intents)
        remaining = self._extract_name(remaining, intents)
        remaining = self._extract_role(remaining, intents)

        free_text = self._clean_remainder(remaining)

        logger.debug(f"Parsed '{raw}' into {len(intents)} intents, free text '{free_text}'")
        return StructuredQuery(raw=raw, free_text=free_text, intents=intents)

    # Recognizers

    def _extract_owner(self, remaining: str, intents: List[SearchIntent]) -> str:
        for name in sorted(self.owner_directory):
            for template in OWNER_PATTERNS:
                match = _phrase_pattern(name, template).search(remaining)
                if match:
                    self._add(intents, IntentType.OWNER, str(self.owner_directory[name]), f"Owned by {name.title()}")
                    remaining = self._claim(remaining, match)
                    break
        return remaining

    def _extract_time(self, remaining: str, intents: List[SearchIntent], organizations: List[str]) -> str:
        for phrase, days in TIME_KEYWORDS:
            template = NEW_PLACE_GUARD if phrase == "new" else "{name}"
            for match in _phrase_pattern(phrase, template).finditer(remaining):
                # "New Mountain Capital" is an organization, not a time window
                if self._starts_organization(remaining, match.start(), organizations):
                    continue
                self._add(intents, IntentType.TIME, str(days), f"Added {phrase}")
                return self._claim(remaining, match)
        return remaining

    def _extract_warmth(self, remaining: str, intents: List[SearchIntent]) -> str:
        keywords: List[str] = []
        found: set = set()
        for keyword, levels in WARMTH_KEYWORDS:
            template = WARMTH_SOURCE_GUARDS.get(keyword, "{name}")
            match = _phrase_pattern(keyword, template).search(remaining)
            if match:
                keywords.append(keyword)
                found.update(levels)
                remaining = self._claim(remaining, match)

        if keywords:
            value = ",".join(str(level) for level in sorted(found))
            self._add(intents, IntentType.WARMTH, value, f"Warmth: {', '.join(keywords)}")
        return remaining

    def _extract_source(self, remaining: str, intents: List[SearchIntent], sources: List[str]) -> str:
        for source in sources:
            for template in SOURCE_CONTEXT_PATTERNS:
                match = _phrase_pattern(source, template).search(remaining)
                if match:
                    self._add(intents, IntentType.SOURCE, source, f"Source: {source}")
                    return self._claim(remaining, match)

        for source in sources:
            # Short names such as "RFP" or "Other" are too ambiguous on their own
            if len(source) <= 3 or source.lower() == "other":
                continue
            match = _phrase_pattern(source, "{name}s?").search(remaining)
            if match:
                self._add(intents, IntentType.SOURCE, source, f"Source: {source}")
                return self._claim(remaining, match)
        return remaining

    def _extract_company(self, remaining: str, intents: List[SearchIntent], organizations: List[str]) -> str:
        for org in organizations:
            if len(org) < 2:
                continue
            match = (
                _phrase_pattern(org, COMPANY_CONTEXT + "{name}").search(remaining)
                or _phrase_pattern(org).search(remaining)
            )
            if match:
                self._add(intents, IntentType.COMPANY, org, f"Company: {org}")
                return self._claim(remaining, match)

        # Fuzzy containment: a query word that is a whole word of a known name
        by_length = sorted(organizations, key=lambda name: (len(name), name.lower(), name))
        for word_match in re.finditer(r"[\w&'-]+", remaining):
            word = word_match.group(0).lower()
            if len(word) < 3 or word in FILLER_WORDS or word in ROLE_KEYWORDS or word in ORG_KIND_KEYWORDS:
                continue
            for org in by_length:
                if word in re.findall(r"[\w&'-]+", org.lower()):
                    self._add(intents, IntentType.COMPANY, org, f"Company: {org}")
                    return self._claim(remaining, word_match)
        return remaining

    def _extract_org_kind(self, remaining: str, intents: List[SearchIntent]) -> str:
        for phrase, kind in ORG_KIND_KEYWORDS.items():
            match = _phrase_pattern(phrase).search(remaining)
            if match:
                self._add(intents, IntentType.ORG_KIND, kind, f"Org Type: {_title(kind)}")
                return self._claim(remaining, match)
        return remaining

    def _extract_tags(self, remaining: str, intents: List[SearchIntent]) -> str:
        pattern = re.compile(r"(?:(?<!\w)#|\btagged\s+|\btag:\s*)([\w][\w-]*)", re.IGNORECASE)
        match = pattern.search(remaining)
        while match:
            tag = match.group(1).lower()
            self._add(intents, IntentType.TAG, tag, f"Tag: {tag}")
            remaining = self._claim(remaining, match)
            match = pattern.search(remaining)
        return remaining

    def _extract_name(self, remaining: str, intents: List[SearchIntent]) -> str:
        pattern = re.compile(r"\b(?:named|name:)\s*([^\W\d_][\w'-]*)(?:\s+([^\W\d_][\w'-]*))?", re.IGNORECASE)
        match = pattern.search(remaining)
        if not match:
            return remaining

        first, second = match.group(1), match.group(2)
        if second and second.lower() not in FILLER_WORDS:
            name, end = f"{first} {second}", match.end(2)
        else:
            name, end = first, match.end(1)

        self._add(intents, IntentType.NAME, name.lower(), f'Name contains: "{name}"')
        return self._claim_span(remaining, match.start(), end)

    def _extract_role(self, remaining: str, intents: List[SearchIntent]) -> str:
        for phrase in sorted(ROLE_KEYWORDS, key=lambda p: (-len(p), p)):
            match = _phrase_pattern(phrase).search(remaining)
            if match:
                self._add(intents, IntentType.ROLE, ROLE_KEYWORDS[phrase], f"Role: {phrase}")
                return self._claim(remaining, match)
        return remaining

    # Helpers

    @staticmethod
    def _add(intents: List[SearchIntent], intent_type: IntentType, value: str, label: str):
        if any(i.type == intent_type and i.value == value for i in intents):
            return
        intents.append(SearchIntent(type=intent_type, value=value, label=label))

    @staticmethod
    def _starts_organization(text: str, start: int, organizations: List[str]) -> bool:
        tail = text[start:].lower()
        return any(tail.startswith(name.lower()) for name in organizations)

    def _claim(self, remaining: str, match: re.Match) -> str:
        return self._claim_span(remaining, match.start(), match.end())

    def _claim_span(self, remaining: str, start: int, end: int) -> str:
        return re.sub(r"\s+", " ", f"{remaining[:start]} {remaining[end:]}").strip()

    def _clean_remainder(self, remaining: str) -> str:
        text = re.sub(r"[,;!?\"()\[\]]+", " ", remaining)
        words = [word for word in text.split() if word.lower() not in FILLER_WORDS]
        text = " ".join(words).strip(" .:-'")
        return text if len(text) > 1 else ""

    @staticmethod
    def _ordered(names: Iterable[str]) -> List[str]:
        """Longest names first, ties broken alphabetically for stable output"""
        unique = {name.strip() for name in names if name and name.strip()}
        return sorted(unique, key=lambda name: (-len(name), name.lower(), name))


_default_parser = IntentParser()


def parse_query(
    raw: str,
    known_organizations: FrozenSet[str] = frozenset(),
    known_sources: Optional[FrozenSet[str]] = None,
) -> StructuredQuery:
    """Parse a raw query with the default parser"""
    return _default_parser.parse(raw, known_organizations, known_sources)
