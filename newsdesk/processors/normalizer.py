"""
Turns fetcher output into store-ready articles and rejects duplicates
"""
import hashlib
from datetime import timezone
from typing import Optional

from newsdesk.processors.content_processor import classify_category, clean_text, extract_location
from newsdesk.storage.store import Store
from newsdesk.utils.config import ProcessingConfig
from newsdesk.utils.constants import CategoryConstants, ProcessingConstants
from newsdesk.utils.errors import ArticleValidationError, DuplicateArticle
from newsdesk.utils.logger import logger
from newsdesk.utils.models import Article, RawArticle, Source, utcnow
from newsdesk.utils.security import URLValidator


def article_id_for(canonical_url: str) -> str:
    """Stable id so re-fetches of the same URL map to the same article"""
    digest = hashlib.sha256(canonical_url.encode("utf-8")).hexdigest()
    return digest[:ProcessingConstants.ARTICLE_ID_LENGTH]


class ArticleNormalizer:
    """Validates, cleans, classifies and scores raw articles.

    The store lookup by canonical URL is the only dedup check; the unique
    constraint on ``articles.url`` catches races between concurrent sources.
    """

    def __init__(self, store: Store, config: Optional[ProcessingConfig] = None):
        self.store = store
        self.config = config or ProcessingConfig()

    def normalize(self, raw: RawArticle, source: Source) -> Article:
        title = clean_text(raw.title)
        if not title:
            raise ArticleValidationError("missing title")

        url = URLValidator.sanitize_url(raw.url)
        if not url:
            raise ArticleValidationError(f"invalid url: {raw.url!r}")

        if self.store.get("articles", url=url) is not None:
            raise DuplicateArticle(url)

        description = clean_text(raw.description) or None
        content = clean_text(raw.content) or None

        image_url = None
        if raw.image_url:
            image_url = URLValidator.sanitize_url(raw.image_url)
            if not image_url:
                logger.debug(f"Dropping invalid image URL {raw.image_url!r} for {url}")

        text = " ".join(part for part in (title, description, content) if part)

        category = classify_category(text)
        if category == CategoryConstants.DEFAULT_CATEGORY and source.category:
            category = source.category.lower()

        location = extract_location(text) or source.location

        published_at = raw.published_at or utcnow()
        if published_at.tzinfo is None:
            published_at = published_at.replace(tzinfo=timezone.utc)

        author = clean_text(raw.author) or None

        return Article(
            id=article_id_for(url),
            title=title,
            description=description,
            content=content,
            url=url,
            image_url=image_url,
            author=author,
            source_id=source.id,
            source_name=raw.source_name or source.name,
            published_at=published_at,
            category=category,
            location=location,
            relevance_score=self.relevance_score(title, description, image_url, author),
        )

    def relevance_score(
        self,
        title: str,
        description: Optional[str],
        image_url: Optional[str],
        author: Optional[str],
    ) -> float:
        cfg = self.config
        title_short, title_long = ProcessingConstants.RELEVANCE_TITLE_THRESHOLDS
        desc_short, desc_long = ProcessingConstants.RELEVANCE_DESCRIPTION_THRESHOLDS
        description = description or ""

        score = cfg.relevance_base
        if len(title) > title_short:
            score += cfg.relevance_title_bonus
        if len(title) > title_long:
            score += cfg.relevance_title_bonus
        if len(description) > desc_short:
            score += cfg.relevance_description_bonus
        if len(description) > desc_long:
            score += cfg.relevance_description_bonus
        if image_url:
            score += cfg.relevance_image_bonus
        if author:
            score += cfg.relevance_author_bonus

        return round(min(score, 1.0), 4)
