"""
Applies a remote interpretation to the local record snapshot.

Remote intents are authoritative: a record is kept only when it satisfies
every active criterion. Criteria come from the structured ``filters`` block
when the endpoint sends one, otherwise they are read back from the intent
labels ("Company: Blackstone" -> company == "Blackstone").
"""

import re
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .engine import Match, match_name, to_utc
from .models import (
    IntentType, SearchIntent, StructuredQuery, SearchableRecord, SearchResult,
    RemoteFilters, RemoteResponse, WARMTH_LABELS
)
from .parser import ORG_KIND_KEYWORDS, TIME_KEYWORDS, WARMTH_KEYWORDS

logger = logging.getLogger(__name__)

FILTER_SCORES: Dict[str, float] = {
    "company": 100,
    "name": 80,
    "title": 60,
    "source": 50,
    "warmth": 40,
    "time": 30,
    "location": 30,
    "email": 50,
    "tags": 40,
    "orgKind": 70,
    "orgSector": 70,
    "deal": 90,
}

# remote intent type -> RemoteFilters field
LABEL_FIELDS: Dict[str, str] = {
    "company": "company",
    "name": "name",
    "role": "title",
    "title": "title",
    "source": "source",
    "warmth": "warmth",
    "time": "added_within_days",
    "tag": "tags",
    "tags": "tags",
    "location": "location",
    "email": "email",
    "orgKind": "org_kind",
    "orgSector": "org_sector",
    "dealName": "deal_name",
    "dealSector": "deal_sector",
    "dealStatus": "deal_status",
}

Criterion = Callable[[SearchableRecord], Optional[Match]]


def label_value(label: str) -> str:
    """'Company: Blackstone' -> 'Blackstone'; labels without a prefix are returned whole"""
    _, sep, value = label.partition(":")
    return (value if sep else label).strip()


def _warmth_levels(text: str) -> List[int]:
    lower = text.lower()
    levels = {int(digit) for digit in re.findall(r"\b[0-3]\b", lower)}
    for keyword, keyword_levels in WARMTH_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}\b", lower):
            levels.update(keyword_levels)
            # "not cold" also contains "cold"
            lower = lower.replace(keyword, " ")
    for level, name in enumerate(WARMTH_LABELS):
        if re.search(rf"\b{name.lower()}s?\b", lower):
            levels.add(level)
    return sorted(levels)


def _days(text: str) -> Optional[int]:
    digits = re.search(r"\d+", text)
    if digits:
        return int(digits.group())
    lower = text.lower()
    for phrase, days in TIME_KEYWORDS:
        if phrase in lower:
            return days
    return None


def filters_from_labels(response: RemoteResponse) -> RemoteFilters:
    """Rebuild structured filters from label-only intents; unknown types are ignored"""
    values: Dict[str, object] = {}

    for intent in response.intents:
        field = LABEL_FIELDS.get(intent.type)
        if field is None:
            logger.debug(f"Ignoring remote intent of unknown type '{intent.type}'")
            continue

        text = label_value(intent.label)
        if not text:
            continue

        if field == "warmth":
            levels = _warmth_levels(text)
            if levels:
                values["warmth"] = sorted(set(values.get("warmth", [])) | set(levels))
        elif field == "added_within_days":
            days = _days(text)
            if days:
                values[field] = days
        elif field in ("tags", "org_kind", "deal_status"):
            if field == "org_kind":
                text = ORG_KIND_KEYWORDS.get(text.lower(), text)
            values.setdefault(field, []).append(text)
        else:
            values.setdefault(field, text)

    return RemoteFilters(**values)


class RemoteFilterApplier:
    """Builds the active criteria of one remote response and applies them with AND semantics"""

    def __init__(self, response: RemoteResponse, now: Optional[datetime] = None):
        self.response = response
        self.now = to_utc(now) if now else datetime.now(timezone.utc)

        filters = response.filters
        if filters is None or filters.is_empty():
            filters = filters_from_labels(response)
        self.filters = filters

        self.criteria: List[Criterion] = self._build_criteria(filters)

    @property
    def has_criteria(self) -> bool:
        return bool(self.criteria)

    def _build_criteria(self, filters: RemoteFilters) -> List[Criterion]:
        criteria: List[Criterion] = []

        if filters.company:
            criteria.append(self._company)
        if filters.name:
            criteria.append(self._name)
        if filters.title:
            criteria.append(self._title)
        if filters.source:
            criteria.append(self._source)
        if filters.warmth:
            criteria.append(self._warmth)
        if filters.added_within_days:
            criteria.append(self._time)
        if filters.location:
            criteria.append(self._location)
        if filters.email:
            criteria.append(self._email)
        if filters.tags:
            criteria.append(self._tags)
        if filters.org_kind:
            criteria.append(self._org_kind)
        if filters.org_sector and self.response.org_sector_map:
            criteria.append(self._org_sector)
        if self.response.matched_person_ids is not None and (
            filters.deal_name or filters.deal_sector or filters.deal_status
        ):
            self._deal_person_ids = frozenset(self.response.matched_person_ids)
            criteria.append(self._deal)

        return criteria

    def apply(self, records: Sequence[SearchableRecord]) -> List[SearchResult]:
        """
        Score the records that satisfy every criterion

        Returns:
            Results sorted by score, ties in snapshot order. Empty when the
            response carries no usable criteria.
        """
        if not self.criteria:
            return []

        matched_intents = remote_intents(self.response)
        results = []

        for record in records:
            outcome = self._score(record)
            if outcome is None:
                continue
            score, explanations = outcome
            results.append(SearchResult(
                record_id=record.id,
                score=score,
                explanations=explanations,
                matched_intents=matched_intents
            ))

        results.sort(key=lambda result: result.score, reverse=True)
        logger.debug(
            f"Remote filters kept {len(results)}/{len(records)} records "
            f"with {len(self.criteria)} criteria"
        )
        return results

    def _score(self, record: SearchableRecord) -> Optional[Tuple[float, List[str]]]:
        score = 0.0
        explanations: List[str] = []
        for criterion in self.criteria:
            outcome = criterion(record)
            if outcome is None:
                return None
            score += outcome[0]
            explanations.extend(outcome[1])
        return score, explanations

    def _company(self, record: SearchableRecord) -> Optional[Match]:
        if not record.org:
            return None
        company = self.filters.company
        org_lower = record.org.lower()
        company_lower = company.lower()
        if org_lower == company_lower:
            return FILTER_SCORES["company"], [f"Works at {record.org}"]
        if company_lower in org_lower or org_lower in company_lower:
            return FILTER_SCORES["company"], [f'Organization matches "{company}"']
        return None

    def _name(self, record: SearchableRecord) -> Optional[Match]:
        score, reasons = match_name(self.filters.name, record)
        if not score:
            return None
        return FILTER_SCORES["name"], reasons

    def _title(self, record: SearchableRecord) -> Optional[Match]:
        title = self.filters.title
        if record.title and title.lower() in record.title.lower():
            return FILTER_SCORES["title"], [f'Title "{record.title}" matches "{title}"']
        return None

    def _source(self, record: SearchableRecord) -> Optional[Match]:
        if not record.source:
            return None
        source = self.filters.source
        record_lower = record.source.lower()
        if record_lower == source.lower():
            return FILTER_SCORES["source"], [f"Source: {record.source}"]
        if source.lower() in record_lower:
            return FILTER_SCORES["source"], [f'Source matches "{source}"']
        return None

    def _warmth(self, record: SearchableRecord) -> Optional[Match]:
        if record.warmth in self.filters.warmth:
            return FILTER_SCORES["warmth"], [f"Warmth: {WARMTH_LABELS[record.warmth]}"]
        return None

    def _time(self, record: SearchableRecord) -> Optional[Match]:
        days = self.filters.added_within_days
        if to_utc(record.created_at) >= self.now - timedelta(days=days):
            return FILTER_SCORES["time"], [f"Added within last {days} days"]
        return None

    def _location(self, record: SearchableRecord) -> Optional[Match]:
        location = self.filters.location
        if location.lower() in record.location.lower():
            return FILTER_SCORES["location"], [f'Location matches "{location}"']
        return None

    def _email(self, record: SearchableRecord) -> Optional[Match]:
        email = self.filters.email
        if record.email and email.lower() in record.email.lower():
            return FILTER_SCORES["email"], [f'Email matches "{email}"']
        return None

    def _tags(self, record: SearchableRecord) -> Optional[Match]:
        matched = [
            tag for tag in self.filters.tags
            if any(tag.lower() in own.lower() for own in record.tags)
        ]
        if matched:
            return FILTER_SCORES["tags"], [f"Tags: {', '.join(matched)}"]
        return None

    def _org_kind(self, record: SearchableRecord) -> Optional[Match]:
        if not record.org_kind:
            return None
        kind_lower = record.org_kind.lower()
        if any(kind.lower() == kind_lower for kind in self.filters.org_kind):
            return FILTER_SCORES["orgKind"], [f"Organization type: {record.org_kind}"]
        return None

    def _org_sector(self, record: SearchableRecord) -> Optional[Match]:
        if record.org_id is None:
            return None
        entry = self.response.org_sector_map.get(record.org_id)
        if entry is None:
            return None

        sector_lower = self.filters.org_sector.lower()
        if any(value and sector_lower in value.lower() for value in (entry.sector, entry.sub_sector)):
            return FILTER_SCORES["orgSector"], [f"Org sector: {entry.sector or entry.sub_sector}"]
        return None

    def _deal(self, record: SearchableRecord) -> Optional[Match]:
        if record.id not in self._deal_person_ids:
            return None
        if self.filters.deal_name:
            label = f'Connected to deal "{self.filters.deal_name}"'
        elif self.filters.deal_sector:
            label = f"Connected to {self.filters.deal_sector} deal"
        else:
            label = "Connected to matching deal"
        return FILTER_SCORES["deal"], [label]


def remote_intents(response: RemoteResponse) -> List[SearchIntent]:
    """Remote intents as label-only SearchIntents, unknown types dropped"""
    known = {intent_type.value for intent_type in IntentType}
    intents = []
    seen = set()

    for intent in response.intents:
        if intent.type not in known or (intent.type, intent.label) in seen:
            continue
        seen.add((intent.type, intent.label))
        intents.append(SearchIntent(type=IntentType(intent.type), label=intent.label))

    return intents


def remote_query(raw: str, response: RemoteResponse) -> StructuredQuery:
    """The query reported alongside remote results"""
    return StructuredQuery(raw=raw, intents=remote_intents(response))


def has_criteria(response: RemoteResponse) -> bool:
    return RemoteFilterApplier(response).has_criteria


def apply_remote_filters(
    response: RemoteResponse,
    records: Sequence[SearchableRecord],
    now: Optional[datetime] = None
) -> List[SearchResult]:
    """Apply a remote interpretation to a snapshot (AND semantics, fixed weights)"""
    return RemoteFilterApplier(response, now).apply(records)

