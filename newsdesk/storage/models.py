"""SQLAlchemy ORM models for the article store."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns timezone-aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def _utcnow():
    return datetime.now(timezone.utc)


class SourceRecord(Base):
    """Configured article source."""

    __tablename__ = "sources"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    url = Column(Text, nullable=False)
    api_key = Column(String, nullable=True)
    provider = Column(String, nullable=False, default="generic")
    is_active = Column(Boolean, nullable=False, default=True)
    fetch_interval_minutes = Column(Integer, nullable=False, default=60)
    last_fetched_at = Column(UTCDateTime, nullable=True)
    category = Column(String, nullable=True)
    location = Column(JSON, nullable=True)
    options = Column(JSON, nullable=False, default=dict)
    last_error = Column(Text, nullable=True)
    needs_attention = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("kind IN ('feed', 'api', 'external')", name="check_source_kind"),
        CheckConstraint("fetch_interval_minutes >= 1", name="check_source_interval"),
        Index("idx_sources_active", "is_active"),
    )

    def __repr__(self):
        return f"<SourceRecord(id='{self.id}', kind='{self.kind}', name='{self.name}')>"


class ArticleRecord(Base):
    """Normalized article; the canonical URL is unique."""

    __tablename__ = "articles"

    id = Column(String(64), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    url = Column(Text, nullable=False, unique=True)
    image_url = Column(Text, nullable=True)
    author = Column(String, nullable=True)
    source_id = Column(String, nullable=False)
    source_name = Column(String, nullable=False)
    published_at = Column(UTCDateTime, nullable=False)
    category = Column(String, nullable=False, default="general")
    location_city = Column(String, nullable=True)
    location_region = Column(String, nullable=True)
    location_country = Column(String, nullable=True)
    relevance_score = Column(Float, nullable=False, default=0.5)
    engagement_score = Column(Float, nullable=False, default=0.0)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "relevance_score >= 0 AND relevance_score <= 1",
            name="check_article_relevance",
        ),
        Index("idx_articles_published_at", "published_at"),
        Index("idx_articles_category", "category"),
        Index("idx_articles_engagement", "engagement_score"),
        Index("idx_articles_source_id", "source_id"),
    )

    def __repr__(self):
        return f"<ArticleRecord(id='{self.id}', url='{self.url}')>"


class SummaryRecord(Base):
    """Latest summary of an article."""

    __tablename__ = "article_summaries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(
        String(64), ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    summary = Column(Text, nullable=False)
    key_points = Column(JSON, nullable=False, default=list)
    sentiment = Column(String, nullable=False, default="neutral")
    confidence = Column(Float, nullable=False, default=0.0)
    reading_time = Column(Integer, nullable=False, default=1)
    tags = Column(JSON, nullable=False, default=list)
    provider = Column(String, nullable=False)
    ai_generated = Column(Boolean, nullable=False, default=True)
    processing_time_ms = Column(Integer, nullable=False, default=0)
    word_count = Column(Integer, nullable=False, default=0)
    language = Column(String, nullable=False, default="en")
    max_length = Column(Integer, nullable=False, default=150)
    entities = Column(JSON, nullable=False, default=list)
    topics = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "sentiment IN ('positive', 'negative', 'neutral')",
            name="check_summary_sentiment",
        ),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="check_summary_confidence"),
    )

    def __repr__(self):
        return f"<SummaryRecord(article_id='{self.article_id}', provider='{self.provider}')>"


class InteractionRecord(Base):
    """One user interaction with an article.

    like/bookmark rows are unique per (article_id, user_id, kind); the
    engagement tracker upserts them on that key.
    """

    __tablename__ = "article_interactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(
        String(64), ForeignKey("articles.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('view', 'like', 'share', 'bookmark', 'comment', 'read_more')",
            name="check_interaction_kind",
        ),
        Index("idx_interactions_article_kind", "article_id", "kind"),
        Index("idx_interactions_user_id", "user_id"),
        Index("idx_interactions_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<InteractionRecord(article_id='{self.article_id}', user_id='{self.user_id}', kind='{self.kind}')>"


# Store tables by name
TABLES = {
    SourceRecord.__tablename__: SourceRecord,
    ArticleRecord.__tablename__: ArticleRecord,
    SummaryRecord.__tablename__: SummaryRecord,
    InteractionRecord.__tablename__: InteractionRecord,
}

__all__ = [
    "Base",
    "UTCDateTime",
    "SourceRecord",
    "ArticleRecord",
    "SummaryRecord",
    "InteractionRecord",
    "TABLES",
]
