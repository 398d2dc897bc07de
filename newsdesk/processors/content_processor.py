"""
Text cleaning and keyword analysis over fixed vocabularies.

Everything here is a pure function of its input so that classification,
sentiment and location are reproducible and cheap to test.
"""
import math
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from newsdesk.utils.constants import (
    CategoryConstants,
    ContentConstants,
    LocationConstants,
    ProcessingConstants,
    SummaryConstants,
)
from newsdesk.utils.models import Location, Sentiment


def clean_text(content: Optional[str]) -> str:
    """Strip markup and normalize whitespace while preserving Unicode characters"""
    if not content:
        return ""

    if '<' in content and '>' in content:
        content = BeautifulSoup(content, 'html.parser').get_text(separator=' ')
        # Leftover tags from entity-escaped markup
        content = ContentConstants.HTML_TAG_PATTERN.sub('', content)

    content = ContentConstants.UNICODE_CLEANING_PATTERN.sub('', content)
    content = ContentConstants.EXCESSIVE_WHITESPACE_PATTERN.sub(' ', content)

    # Normalize spaces before punctuation
    content = re.sub(r'\s+([.,!?;:])', r'\1', content)

    return content.strip()


def word_count(text: Optional[str]) -> int:
    return len(text.split()) if text else 0


def reading_time(text: Optional[str]) -> int:
    """Minutes at 200 words per minute, never below one"""
    return max(1, math.ceil(word_count(text) / ProcessingConstants.WORDS_PER_MINUTE))


def classify_category(text: str) -> str:
    """First taxonomy entry with a keyword anywhere in ``text``, else general"""
    lowered = (text or "").lower()
    for category, keywords in CategoryConstants.TAXONOMY:
        if any(keyword in lowered for keyword in keywords):
            return category
    return CategoryConstants.DEFAULT_CATEGORY


def extract_location(text: str) -> Optional[Location]:
    """Gazetteer lookup; the first matching entry wins"""
    lowered = (text or "").lower()
    for keyword, (city, region, country) in LocationConstants.GAZETTEER:
        if re.search(r'\b' + re.escape(keyword) + r'\b', lowered):
            return Location(city=city, region=region, country=country)
    return None


def _count_occurrences(text: str, words: List[str]) -> int:
    return sum(text.count(word) for word in words)


def analyze_sentiment(text: str) -> Sentiment:
    """Majority of positive vs negative vocabulary hits; ties are neutral"""
    lowered = (text or "").lower()
    positive = _count_occurrences(lowered, SummaryConstants.POSITIVE_WORDS)
    negative = _count_occurrences(lowered, SummaryConstants.NEGATIVE_WORDS)

    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def extract_tags(text: str, limit: int = ContentConstants.MAX_TAGS) -> List[str]:
    """Topical vocabulary first, then location vocabulary"""
    lowered = (text or "").lower()
    tags = [tag for tag in SummaryConstants.TOPICAL_TAGS if tag in lowered]
    tags.extend(tag for tag in SummaryConstants.LOCATION_TAGS if tag in lowered)
    return tags[:limit]


def extract_entities(text: str, limit: int = ContentConstants.MAX_ENTITIES) -> List[str]:
    """Capitalised words, first occurrence order"""
    entities = []
    for match in ContentConstants.ENTITY_PATTERN.findall(text or ""):
        if len(match) <= 2 or match in ContentConstants.ENTITY_STOPWORDS or match in entities:
            continue
        entities.append(match)
        if len(entities) >= limit:
            break
    return entities


def extract_topics(text: str) -> List[str]:
    lowered = (text or "").lower()
    return [
        topic for topic, keywords in CategoryConstants.TOPIC_KEYWORDS.items()
        if any(re.search(r'\b' + re.escape(keyword) + r'\b', lowered) for keyword in keywords)
    ]
