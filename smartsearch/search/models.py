"""
Search-related data models for the hybrid contact search
"""

from pydantic import BaseModel, Field, model_validator
from typing import List, Dict, Optional, Literal
from datetime import datetime
from enum import Enum

SearchSource = Literal["deterministic", "llm"]

WARMTH_LABELS = ["Cold", "Warm", "Hot", "Champion"]


class IntentType(str, Enum):
    """Kinds of structured intent a query can carry"""
    COMPANY = "company"
    SOURCE = "source"
    OWNER = "owner"
    ROLE = "role"
    WARMTH = "warmth"
    TIME = "time"
    TAG = "tag"
    NAME = "name"
    ORG_KIND = "orgKind"
    ORG_SECTOR = "orgSector"
    DEAL_NAME = "dealName"
    DEAL_SECTOR = "dealSector"
    DEAL_STATUS = "dealStatus"
    LOCATION = "location"
    EMAIL = "email"


class SearchIntent(BaseModel):
    """A single recognized intent, shown to the user as a chip"""
    type: IntentType
    value: str = ""
    label: str

    model_config = {"frozen": True}


class StructuredQuery(BaseModel):
    """Parsed form of a raw query"""
    raw: str
    free_text: str = ""
    intents: List[SearchIntent] = []

    @model_validator(mode="after")
    def check_unique_intents(self):
        seen = set()
        for intent in self.intents:
            # Label-only intents carry no value to compare
            if not intent.value:
                continue
            key = (intent.type, intent.value)
            if key in seen:
                raise ValueError(f"Duplicate intent {intent.type.value}={intent.value!r}")
            seen.add(key)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.intents and not self.free_text


class SearchableRecord(BaseModel):
    """Projection of a contact with the fields used for matching"""
    id: int
    first_name: str = ""
    last_name: str = ""
    title: Optional[str] = None
    org: Optional[str] = None
    org_id: Optional[int] = None
    org_kind: Optional[str] = None
    email: Optional[str] = None
    warmth: int = Field(default=0, ge=0, le=3)
    source: Optional[str] = None
    tags: List[str] = []
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    owner_id: Optional[int] = None
    created_at: datetime
    last_contacted_at: Optional[datetime] = None

    model_config = {"frozen": True, "from_attributes": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def location(self) -> str:
        return " ".join(part for part in (self.city, self.state, self.country) if part)


class SearchResult(BaseModel):
    """Search result with ranking information"""
    record_id: int
    score: float = Field(default=0.0, ge=0)
    explanations: List[str] = []
    matched_intents: List[SearchIntent] = []


class RemoteIntent(BaseModel):
    """Label-oriented intent returned by the remote interpreter"""
    type: str
    label: str


class RemoteFilters(BaseModel):
    """Structured filters returned by the remote interpreter"""
    name: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    source: Optional[str] = None
    warmth: Optional[List[int]] = None
    location: Optional[str] = None
    added_within_days: Optional[int] = Field(default=None, alias="addedWithinDays")
    email: Optional[str] = None
    tags: Optional[List[str]] = None
    org_kind: Optional[List[str]] = Field(default=None, alias="orgKind")
    org_sector: Optional[str] = Field(default=None, alias="orgSector")
    deal_name: Optional[str] = Field(default=None, alias="dealName")
    deal_sector: Optional[str] = Field(default=None, alias="dealSector")
    deal_status: Optional[List[str]] = Field(default=None, alias="dealStatus")

    model_config = {"populate_by_name": True}

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class OrgSectorEntry(BaseModel):
    sector: Optional[str] = None
    sub_sector: Optional[str] = Field(default=None, alias="subSector")

    model_config = {"populate_by_name": True}


class RemoteResponse(BaseModel):
    """Response contract of the remote semantic search endpoint"""
    intents: List[RemoteIntent]
    filters: Optional[RemoteFilters] = None
    explanation: Optional[str] = None
    matched_person_ids: Optional[List[int]] = Field(default=None, alias="matchedPersonIds")
    org_sector_map: Optional[Dict[int, OrgSectorEntry]] = Field(default=None, alias="orgSectorMap")

    model_config = {"populate_by_name": True}
