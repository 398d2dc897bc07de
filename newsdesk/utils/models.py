"""
Base models and data structures
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp in the pipeline"""
    return datetime.now(timezone.utc)


class SourceKind(str, Enum):
    FEED = "feed"
    API = "api"
    EXTERNAL = "external"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class InteractionKind(str, Enum):
    VIEW = "view"
    LIKE = "like"
    SHARE = "share"
    BOOKMARK = "bookmark"
    COMMENT = "comment"
    READ_MORE = "read_more"


class Location(BaseModel):
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.city or self.region or self.country)

    def label(self) -> str:
        return ", ".join(part for part in (self.city, self.region, self.country) if part)


class Source(BaseModel):
    """A configured origin of articles"""
    id: str
    name: str
    kind: SourceKind
    url: str
    api_key: Optional[str] = None
    provider: str = "generic"  # newsapi | generic
    is_active: bool = True
    fetch_interval_minutes: int = 60
    last_fetched_at: Optional[datetime] = None
    category: Optional[str] = None
    location: Optional[Location] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_error: Optional[str] = None
    needs_attention: bool = False

    @field_validator("fetch_interval_minutes")
    @classmethod
    def validate_interval(cls, v):
        if v < 1:
            raise ValueError("fetch_interval_minutes must be at least 1")
        return v


class RawArticle(BaseModel):
    """Common output of every fetcher before normalization"""
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    source_name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class Article(BaseModel):
    """Normalized article as persisted in the store"""
    id: str
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    url: str
    image_url: Optional[str] = None
    author: Optional[str] = None
    source_id: str
    source_name: str
    published_at: datetime
    category: str = "general"
    location: Optional[Location] = None
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    engagement_score: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)


class Summary(BaseModel):
    """Summary of one article; the latest one wins"""
    article_id: str
    summary: str
    key_points: List[str] = Field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reading_time: int = 1
    tags: List[str] = Field(default_factory=list)
    provider: str
    ai_generated: bool = True
    processing_time_ms: int = 0
    word_count: int = 0
    language: str = "en"
    max_length: int = 150
    entities: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class SummarizationOptions(BaseModel):
    max_length: int = 150
    include_key_points: bool = True
    include_sentiment: bool = True
    include_tags: bool = True
    language: str = "en"
    force: bool = False


class InteractionEvent(BaseModel):
    user_id: str
    article_id: str
    kind: InteractionKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class FeedArticle(BaseModel):
    """Article paired with its summary, as served to consumers"""
    article: Article
    summary: Optional[Summary] = None


class AggregationResult(BaseModel):
    """Outcome of one scheduler tick"""
    fetched: int = 0
    processed: int = 0
    stored: int = 0
    duplicates: int = 0
    rejected: int = 0
    errors: int = 0
    sources_processed: int = 0
    sources_skipped: int = 0
    sources_failed: Dict[str, str] = Field(default_factory=dict)
    summaries_generated: int = 0
    elapsed_ms: int = 0
    skipped_overlap: bool = False
    started_at: datetime = Field(default_factory=utcnow)


class UserEngagement(BaseModel):
    has_viewed: bool = False
    has_liked: bool = False
    has_shared: bool = False
    has_bookmarked: bool = False
    has_commented: bool = False


class EngagementAnalytics(BaseModel):
    article_id: str
    totals: Dict[str, int] = Field(default_factory=dict)
    unique_viewers: int = 0
    average_read_duration: float = 0.0
    average_scroll_depth: float = 0.0
    engagement_score: float = 0.0
    top_interaction_kind: Optional[str] = None
    user: Optional[UserEngagement] = None


class TrendingArticle(BaseModel):
    article_id: str
    title: Optional[str] = None
    category: Optional[str] = None
    score: float


class CategoryTrend(BaseModel):
    category: str
    score: float


class HourTrend(BaseModel):
    hour: int
    interactions: int


class NewsTrends(BaseModel):
    window: str
    top_articles: List[TrendingArticle] = Field(default_factory=list)
    top_categories: List[CategoryTrend] = Field(default_factory=list)
    peak_hours: List[HourTrend] = Field(default_factory=list)
