"""Catalog records and response shapes."""

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import List
from typing import Literal
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

MAX_DESCRIPTION_LENGTH = 400
MAX_TAGS = 3

EnrichmentSource = Literal["open-graph", "fallback"]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WireModel(BaseModel):
    """Snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, record: Dict[str, Any]):
        return cls.model_validate(record)


class ToolPayload(WireModel):
    """Validated user input for a tool listing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    url: str
    category: str
    description: str
    tags: Optional[List[str]] = None
    thumbnail_url: Optional[str] = None
    demo_video_url: Optional[str] = None
    votes: Optional[int] = None


class Submission(WireModel):
    """An unreviewed listing awaiting an admin decision."""

    id: str
    name: str
    url: str
    category: str
    description: str
    tags: List[str] = Field(default_factory=list)
    votes: int = Field(0, ge=0)
    thumbnail_url: Optional[str] = None
    demo_video_url: Optional[str] = None
    submitted_at: str = Field(default_factory=now_iso)


class Tool(WireModel):
    """A published catalog entry."""

    id: str
    name: str
    url: str
    category: str
    description: str
    tags: List[str] = Field(default_factory=list)
    votes: int = Field(0, ge=0)
    thumbnail_url: Optional[str] = None
    demo_video_url: Optional[str] = None
    created_at: str = Field(default_factory=now_iso)


class Enrichment(WireModel):
    """Best-effort metadata used to pre-fill the submission form."""

    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    demo_video_url: Optional[str] = None
    source: EnrichmentSource = "fallback"


class SearchResult(WireModel):
    tools: List[Tool]
    categories: List[str]
    inferred_category: Optional[str] = None


class Recommendation(WireModel):
    intro: str
    inferred_category: Optional[str] = None
    recommendations: List[Tool]
