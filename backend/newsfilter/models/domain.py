"""
Domain models for newsfilter.
These are the core business entities, independent of database/API representation.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# =============================================================================
# Enums
# =============================================================================

class SourceKind(str, Enum):
    """Kinds of external origin, one adapter per kind."""
    FEED = "feed"
    BOARD = "board"
    PAGE = "page"


class FetchStatus(str, Enum):
    """Outcome of one per-source fetch attempt."""
    SUCCESS = "success"
    ERROR = "error"


# =============================================================================
# Source configuration (tagged by kind)
# =============================================================================

class FeedConfig(BaseModel):
    """RSS, Atom or RDF syndication feed."""
    kind: Literal["feed"] = "feed"
    feed_url: str = Field(..., min_length=1)


class BoardConfig(BaseModel):
    """Ranked story list on the discussion board API."""
    kind: Literal["board"] = "board"
    list_type: Literal["top", "new", "best"] = "top"
    max_items: int = Field(default=30, ge=1)


class PageConfig(BaseModel):
    """Plain web page whose article links are picked out by the model."""
    kind: Literal["page"] = "page"
    page_url: str = Field(..., min_length=1)


SourceConfig = Annotated[
    Union[FeedConfig, BoardConfig, PageConfig],
    Field(discriminator="kind"),
]

source_config_adapter: TypeAdapter[SourceConfig] = TypeAdapter(SourceConfig)


def parse_source_config(kind: str, config: Optional[dict]) -> SourceConfig:
    """Build the typed config for a stored source row."""
    return source_config_adapter.validate_python({**(config or {}), "kind": kind})


# =============================================================================
# Core entities
# =============================================================================

class Source(BaseModel):
    """A configured external origin."""
    id: int
    name: str
    kind: SourceKind
    config: SourceConfig
    enabled: bool = True
    config_key: Optional[str] = None
    last_fetched_at: Optional[datetime] = None


class Article(BaseModel):
    """A persisted, deduplicated article."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    source_id: int
    external_id: str
    title: str
    url: str
    summary: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    raw_content: Optional[str] = None
    relevance_score: Optional[float] = None
    relevance_reason: Optional[str] = None
    is_relevant: Optional[bool] = None
    filtered_at: Optional[datetime] = None
    created_at: datetime


class Criterion(BaseModel):
    """A relevance rubric used by the classifier."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    is_active: bool = True


class FetchLogEntry(BaseModel):
    """Audit record of a single source fetch attempt."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    source_id: int
    status: FetchStatus
    articles_found: int
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: datetime


# =============================================================================
# Results
# =============================================================================

class FilterResult(BaseModel):
    """Normalized model verdict for one article."""
    id: int
    score: float = Field(..., ge=0.0, le=1.0)
    relevant: bool
    reason: str


class FilterSummary(BaseModel):
    """Outcome of one classification pass."""
    filtered: int = 0
    batches: int = 0
    errors: list[str] = Field(default_factory=list)


class SourceFetchResult(BaseModel):
    """Outcome of fetching one source."""
    source_id: int
    source_name: Optional[str] = None
    articles_found: int = 0
    new_articles: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FetchRunSummary(BaseModel):
    """Outcome of one fetch-all run."""
    total: int = 0
    failed: int = 0
    new_articles: int = 0
    purged: int = 0
    results: list[SourceFetchResult] = Field(default_factory=list)
    filter: Optional[FilterSummary] = None
