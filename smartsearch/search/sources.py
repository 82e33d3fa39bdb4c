"""
Contact source registry
"""

from pydantic import BaseModel
from typing import List, Optional
from enum import Enum


class SourceCategory(str, Enum):
    """How a contact was acquired, grouped"""
    RELATIONSHIP = "relationship"
    EVENT = "event"
    DIGITAL = "digital"
    OUTBOUND = "outbound"
    INBOUND = "inbound"
    OTHER = "other"


class Source(BaseModel):
    name: str
    category: SourceCategory
    description: Optional[str] = None

    model_config = {"frozen": True}


DEFAULT_SOURCES: List[Source] = [
    Source(name="Referral", category=SourceCategory.RELATIONSHIP, description="Introduced by existing contact"),
    Source(name="Warm Intro", category=SourceCategory.RELATIONSHIP, description="Warm introduction via mutual connection"),
    Source(name="Existing Relationship", category=SourceCategory.RELATIONSHIP, description="Pre-existing professional relationship"),
    Source(name="Co-Investor", category=SourceCategory.RELATIONSHIP, description="Met through co-investment"),
    Source(name="Conference", category=SourceCategory.EVENT, description="Met at a conference or summit"),
    Source(name="Dinner / Event", category=SourceCategory.EVENT, description="Met at a dinner or private event"),
    Source(name="Roadshow", category=SourceCategory.EVENT, description="Met during a roadshow"),
    Source(name="LinkedIn", category=SourceCategory.DIGITAL, description="Connected via LinkedIn"),
    Source(name="Email Campaign", category=SourceCategory.DIGITAL, description="Responded to email campaign"),
    Source(name="Website", category=SourceCategory.DIGITAL, description="Inbound from website"),
    Source(name="Cold Outreach", category=SourceCategory.OUTBOUND, description="Proactive cold outreach"),
    Source(name="Cold Call", category=SourceCategory.OUTBOUND, description="Proactive cold call"),
    Source(name="Research", category=SourceCategory.OUTBOUND, description="Identified through research"),
    Source(name="Inbound", category=SourceCategory.INBOUND, description="Reached out to us directly"),
    Source(name="RFP", category=SourceCategory.INBOUND, description="Responded to or sent RFP"),
    Source(name="Other", category=SourceCategory.OTHER),
]

DEFAULT_SOURCE_NAMES = frozenset(source.name for source in DEFAULT_SOURCES)


def resolve_source(source_name: Optional[str]) -> Optional[Source]:
    """
    Resolve a source string to its registry entry (case-insensitive).

    Legacy enum spellings such as "cold_outreach" resolve too; anything
    unknown is reported under the "other" category.
    """
    if not source_name:
        return None

    lower = source_name.lower().strip()
    normalized = lower.replace("_", " ")

    for source in DEFAULT_SOURCES:
        if source.name.lower() in (lower, normalized):
            return source

    return Source(name=source_name, category=SourceCategory.OTHER)
