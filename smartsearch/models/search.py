from pydantic import AliasChoices, BaseModel, Field
from typing import List


class SmartSearchRequest(BaseModel):
    query: str = ""
    known_organizations: List[str] = Field(
        default=[],
        validation_alias=AliasChoices("knownOrganizations", "knownOrgs", "known_organizations")
    )
    known_sources: List[str] = Field(
        default=[],
        validation_alias=AliasChoices("knownSources", "known_sources")
    )
