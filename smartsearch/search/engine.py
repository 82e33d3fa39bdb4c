"""
Deterministic matcher for smart search
Scores every record of a snapshot against a StructuredQuery, in memory and without I/O
"""

import re
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from datetime import datetime, timedelta, timezone

from .models import (
    IntentType, SearchIntent, StructuredQuery, SearchableRecord, SearchResult, WARMTH_LABELS
)
from .sources import SourceCategory, resolve_source

logger = logging.getLogger(__name__)

Match = Tuple[float, List[str]]

NO_MATCH: Match = (0.0, [])

# Titles are matched on word edges so "cto" does not hit "Director"
ROLE_ALIASES: Dict[str, List[str]] = {
    "md": ["managing director", "md"],
    "pm": ["portfolio manager", "pm"],
    "ir": ["investor relations", "ir"],
    "vp": ["vice president", "vp", "svp", "evp"],
    "founder": ["founder", "co-founder", "cofounder"],
}


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_time_ago(value: datetime, now: datetime) -> str:
    days = (now - to_utc(value)).days
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return f"{days // 30} months ago"


def parse_levels(value: str) -> List[int]:
    """Parse a comma-separated warmth level list, ignoring junk"""
    return [int(part) for part in value.split(",") if part.strip().isdigit()]


def _contains_word(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text, re.IGNORECASE) is not None


def match_name(text: str, record: SearchableRecord) -> Match:
    """Score a name fragment: exact > prefix > substring"""
    lower = text.lower()
    full_name = record.full_name.lower()

    if not lower or not full_name:
        return NO_MATCH
    if full_name == lower:
        return 100.0, [f'Name matches "{text}"']
    if (
        full_name.startswith(lower)
        or record.first_name.lower().startswith(lower)
        or record.last_name.lower().startswith(lower)
    ):
        return 80.0, [f'Name starts with "{text}"']
    if lower in full_name:
        return 60.0, [f'Name contains "{text}"']
    return NO_MATCH


def match_text(text: str, record: SearchableRecord) -> Match:
    """Best single-field substring match for a piece of free text"""
    score, reasons = match_name(text, record)
    if score:
        return score, reasons

    lower = text.lower()
    if record.email and lower in record.email.lower():
        return 50.0, [f'Email contains "{text}"']
    if record.title and lower in record.title.lower():
        return 40.0, [f'Title contains "{text}"']
    if record.org and lower in record.org.lower():
        return 40.0, [f"Organization contains '{text}'"]
    for tag in record.tags:
        if lower in tag.lower():
            return 40.0, [f"Tagged: {tag}"]
    if lower in record.location.lower():
        return 30.0, [f'Location matches "{text}"']
    return NO_MATCH


class RankingAlgorithm:
    """Soft ranking: unmatched intents contribute zero but never exclude a record"""

    def __init__(self, now: Optional[datetime] = None):
        self.now = to_utc(now) if now else datetime.now(timezone.utc)
        self._scorers: Dict[IntentType, Callable[[SearchIntent, SearchableRecord], Match]] = {
            IntentType.COMPANY: self._calculate_company_score,
            IntentType.SOURCE: self._calculate_source_score,
            IntentType.OWNER: self._calculate_owner_score,
            IntentType.ROLE: self._calculate_role_score,
            IntentType.WARMTH: self._calculate_warmth_score,
            IntentType.TIME: self._calculate_time_score,
            IntentType.TAG: self._calculate_tag_score,
            IntentType.NAME: self._calculate_name_score,
            IntentType.ORG_KIND: self._calculate_org_kind_score,
            IntentType.LOCATION: self._calculate_location_score,
            IntentType.EMAIL: self._calculate_email_score,
        }

    def calculate_relevance_score(
        self,
        record: SearchableRecord,
        query: StructuredQuery
    ) -> Tuple[float, List[str], List[SearchIntent]]:
        """
        Calculate the relevance of one record

        Args:
            record: Record from the snapshot
            query: Parsed query

        Returns:
            Tuple of (score, explanations, matched intents)
        """
        score = 0.0
        explanations: List[str] = []
        matched: List[SearchIntent] = []

        for intent in query.intents:
            intent_score, reasons = self.score_intent(intent, record)
            if intent_score > 0:
                score += intent_score
                explanations.extend(reasons)
                matched.append(intent)

        if query.free_text:
            text_score, reasons = self._calculate_free_text_score(query.free_text, record)
            score += text_score
            explanations.extend(reasons)

        return score, explanations, matched

    def score_intent(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        # Label-only intents and intents without local data score nothing
        scorer = self._scorers.get(intent.type)
        if scorer is None or not intent.value:
            return NO_MATCH
        return scorer(intent, record)

    def _calculate_company_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if not record.org:
            return NO_MATCH

        org_lower = record.org.lower()
        value_lower = intent.value.lower()

        if org_lower == value_lower:
            return 100.0, [f"Organization matches '{record.org}'"]
        if value_lower in org_lower or org_lower in value_lower:
            return 80.0, [f"Organization similar to '{intent.value}'"]
        return NO_MATCH

    def _calculate_source_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        resolved = resolve_source(record.source)
        if not resolved:
            return NO_MATCH

        if resolved.name.lower() == intent.value.lower():
            return 50.0, [f"Source: {resolved.name}"]

        target = resolve_source(intent.value)
        if target and target.category != SourceCategory.OTHER and target.category == resolved.category:
            return 30.0, [f"Source category: {resolved.category.value}"]
        return NO_MATCH

    def _calculate_owner_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if record.owner_id is not None and str(record.owner_id) == intent.value:
            return 50.0, [intent.label]
        return NO_MATCH

    def _calculate_role_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if not record.title:
            return NO_MATCH

        aliases = ROLE_ALIASES.get(intent.value.lower(), [intent.value])
        if any(_contains_word(record.title, alias) for alias in aliases):
            return 60.0, [f'Title "{record.title}" matches role "{intent.value}"']
        return NO_MATCH

    def _calculate_warmth_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        # Closed enumeration: a mismatch scores zero but keeps the record
        if record.warmth in parse_levels(intent.value):
            return 40.0, [f"Warmth: {WARMTH_LABELS[record.warmth]}"]
        return NO_MATCH

    def _calculate_time_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if not intent.value.isdigit():
            return NO_MATCH

        cutoff = self.now - timedelta(days=int(intent.value))
        if to_utc(record.created_at) >= cutoff:
            return 30.0, [f"Added {format_time_ago(record.created_at, self.now)}"]
        return NO_MATCH

    def _calculate_tag_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        value_lower = intent.value.lower()
        for tag in record.tags:
            if value_lower in tag.lower():
                return 40.0, [f"Tagged: {tag}"]
        return NO_MATCH

    def _calculate_name_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        return match_name(intent.value, record)

    def _calculate_org_kind_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if record.org_kind and record.org_kind.lower() == intent.value.lower():
            return 70.0, [f"Organization type: {record.org_kind}"]
        return NO_MATCH

    def _calculate_location_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if intent.value.lower() in record.location.lower():
            return 30.0, [f'Location matches "{intent.value}"']
        return NO_MATCH

    def _calculate_email_score(self, intent: SearchIntent, record: SearchableRecord) -> Match:
        if record.email and intent.value.lower() in record.email.lower():
            return 50.0, [f'Email contains "{intent.value}"']
        return NO_MATCH

    def _calculate_free_text_score(self, text: str, record: SearchableRecord) -> Match:
        """Whole phrase first; otherwise each word counts for half its tier"""
        score, reasons = match_text(text, record)
        if score:
            return score, reasons

        words = [word for word in text.split() if len(word) >= 2]
        if len(words) < 2:
            return NO_MATCH

        score = 0.0
        reasons = []
        for word in words:
            word_score, word_reasons = match_text(word, record)
            if word_score:
                score += word_score * 0.5
                reasons.extend(word_reasons)
        return score, reasons


def execute_search(
    query: StructuredQuery,
    records: Sequence[SearchableRecord],
    now: Optional[datetime] = None
) -> List[SearchResult]:
    """
    Score and rank every record against a parsed query

    One result is produced per record; records that match nothing score 0
    and keep an empty explanation list. Ties keep snapshot order.
    """
    ranking = RankingAlgorithm(now)
    results = []

    for record in records:
        score, explanations, matched = ranking.calculate_relevance_score(record, query)
        results.append(SearchResult(
            record_id=record.id,
            score=score,
            explanations=explanations,
            matched_intents=matched
        ))

    results.sort(key=lambda result: result.score, reverse=True)

    logger.debug(
        f"Deterministic search for '{query.raw}': "
        f"{sum(1 for r in results if r.score > 0)}/{len(results)} records matched"
    )
    return results
