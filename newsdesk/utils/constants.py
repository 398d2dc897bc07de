"""
Constants and vocabularies for Newsdesk
"""
import re

# Processing Constants
class ProcessingConstants:
    # Batch sizes and limits
    MAX_ARTICLES_PER_FEED = 50
    WORDS_PER_MINUTE = 200
    DEFAULT_FETCH_CONCURRENCY = 4
    DEFAULT_SUMMARY_CONCURRENCY = 3
    # Undelivered batches a live subscriber may hold before it is dropped
    SUBSCRIBER_QUEUE_SIZE = 100

    # Article identity
    ARTICLE_ID_LENGTH = 32

    # Relevance scoring (base + additive bonuses, capped at 1.0)
    RELEVANCE_BASE = 0.5
    RELEVANCE_TITLE_BONUS = 0.1
    RELEVANCE_DESCRIPTION_BONUS = 0.1
    RELEVANCE_IMAGE_BONUS = 0.1
    RELEVANCE_AUTHOR_BONUS = 0.05
    RELEVANCE_TITLE_THRESHOLDS = (20, 50)
    RELEVANCE_DESCRIPTION_THRESHOLDS = (100, 200)

# Rate Limiting Constants
class RateLimitConstants:
    NEWS_API_REQUESTS_PER_HOUR = 100
    PROVIDER_REQUESTS_PER_HOUR = 500
    INTERACTIONS_PER_MINUTE = 120
    WINDOW_SECONDS_HOUR = 3600
    # Used when an upstream 429 carries no Retry-After
    PROVIDER_COOLDOWN_SECONDS = 60

# HTTP Request Constants
class HTTPConstants:
    DEFAULT_TIMEOUT = 30
    MAX_RETRIES = 3
    RETRY_BACKOFF_FACTOR = 1.0
    MAX_REDIRECTS = 5
    DEFAULT_PAGE_SIZE = 50
    DEFAULT_MAX_PAGES = 3

    # User agent for requests
    USER_AGENT = "Newsdesk/1.0 (+https://github.com/newsdesk/newsdesk)"

# Validation Constants
class ValidationConstants:
    # URL validation patterns
    URL_PATTERN = re.compile(
        r'^https?://'  # http:// or https://
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'  # domain...
        r'localhost|'  # localhost...
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # ...or ip
        r'(?::\d+)?'  # optional port
        r'(?:/?|[/?]\S+)$', re.IGNORECASE)

# Security Constants
class SecurityConstants:
    # Query parameters stripped during URL canonicalisation
    STRIPPED_QUERY_PARAMS = [
        'redirect', 'return', 'callback',
        'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
        'fbclid', 'gclid'
    ]

    # Allowed content types
    ALLOWED_MIME_TYPES = [
        'text/html', 'text/plain', 'text/xml', 'application/xml',
        'application/rss+xml', 'application/atom+xml', 'application/json'
    ]

# Content Processing Constants
class ContentConstants:
    # Regex patterns for content cleaning
    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
    EXCESSIVE_WHITESPACE_PATTERN = re.compile(r'\s+')
    UNICODE_CLEANING_PATTERN = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', re.UNICODE)

    # Sentence handling for the rule-based summarizer
    SENTENCE_SPLIT_PATTERN = re.compile(r'[.!?]+')
    MIN_SENTENCE_LENGTH = 20
    MAX_SUMMARY_SENTENCES = 3
    MAX_KEY_POINTS = 5
    MAX_ANNOUNCEMENT_POINTS = 3
    KEY_POINT_MAX_CHARS = 100
    MAX_TAGS = 8
    MAX_ENTITIES = 10

    ANNOUNCEMENT_VERBS = ['announced', 'launched', 'opened', 'completed', 'started', 'revealed']

    STOPWORDS = {
        'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by'
    }

    ENTITY_PATTERN = re.compile(r'\b[A-Z][a-z]+\b')
    ENTITY_STOPWORDS = {'The', 'This', 'That', 'These', 'Those', 'A', 'An', 'And', 'Or', 'But'}

# Category Constants
class CategoryConstants:
    # Ordered taxonomy: first match wins, anything else is 'general'
    TAXONOMY = [
        ('technology', ['tech', 'technology', 'ai', 'software']),
        ('business', ['business', 'economy', 'finance', 'market']),
        ('health', ['health', 'medical', 'covid', 'vaccine']),
        ('sports', ['sport', 'football', 'basketball', 'soccer']),
        ('entertainment', ['entertainment', 'movie', 'music', 'celebrity']),
        ('politics', ['politics', 'election', 'government', 'president']),
        ('science', ['science', 'research', 'study', 'discovery']),
    ]
    DEFAULT_CATEGORY = 'general'

    TOPIC_KEYWORDS = {
        'Technology': ['tech', 'software', 'ai', 'artificial intelligence', 'digital', 'computer', 'internet'],
        'Business': ['business', 'company', 'corporate', 'finance', 'market', 'economy', 'investment'],
        'Health': ['health', 'medical', 'doctor', 'hospital', 'medicine', 'treatment', 'disease'],
        'Sports': ['sport', 'football', 'basketball', 'soccer', 'cricket', 'tennis', 'olympics'],
        'Politics': ['politics', 'government', 'election', 'president', 'minister', 'parliament', 'policy'],
        'Entertainment': ['entertainment', 'movie', 'music', 'celebrity', 'film', 'actor', 'singer'],
        'Science': ['science', 'research', 'study', 'discovery', 'experiment', 'scientist', 'laboratory'],
        'Environment': ['environment', 'climate', 'pollution', 'green', 'sustainable', 'renewable', 'carbon'],
    }

# Location Constants
class LocationConstants:
    # Gazetteer: keyword -> (city, region, country); checked in order
    GAZETTEER = [
        ('new york', ('New York', 'New York', 'United States')),
        ('los angeles', ('Los Angeles', 'California', 'United States')),
        ('san francisco', ('San Francisco', 'California', 'United States')),
        ('chicago', ('Chicago', 'Illinois', 'United States')),
        ('london', ('London', 'England', 'United Kingdom')),
        ('paris', ('Paris', 'Ile-de-France', 'France')),
        ('tokyo', ('Tokyo', 'Kanto', 'Japan')),
        ('berlin', ('Berlin', 'Berlin', 'Germany')),
        ('moscow', ('Moscow', 'Moscow', 'Russia')),
        ('beijing', ('Beijing', 'Beijing', 'China')),
        ('sydney', ('Sydney', 'New South Wales', 'Australia')),
        ('delhi', ('Delhi', 'Delhi', 'India')),
        ('mumbai', ('Mumbai', 'Maharashtra', 'India')),
        ('bangalore', ('Bangalore', 'Karnataka', 'India')),
        ('chennai', ('Chennai', 'Tamil Nadu', 'India')),
        ('kolkata', ('Kolkata', 'West Bengal', 'India')),
        ('california', (None, 'California', 'United States')),
        ('texas', (None, 'Texas', 'United States')),
        ('florida', (None, 'Florida', 'United States')),
        ('washington', ('Washington', 'District of Columbia', 'United States')),
        ('united kingdom', (None, None, 'United Kingdom')),
        ('united states', (None, None, 'United States')),
        ('germany', (None, None, 'Germany')),
        ('france', (None, None, 'France')),
        ('japan', (None, None, 'Japan')),
        ('china', (None, None, 'China')),
        ('india', (None, None, 'India')),
        ('australia', (None, None, 'Australia')),
    ]

# Summarization Constants
class SummaryConstants:
    DEFAULT_MAX_LENGTH = 150
    DEFAULT_LANGUAGE = 'en'
    FRESHNESS_HOURS = 24
    RULE_BASED_PROVIDER = 'rule-based'

    # Confidence conventions
    STRUCTURED_DEFAULT_CONFIDENCE = 0.8
    FREE_TEXT_CONFIDENCE = 0.7
    RULE_BASED_CONFIDENCE = 0.75
    TITLE_ONLY_CONFIDENCE = 0.5

    POSITIVE_WORDS = [
        'success', 'achievement', 'growth', 'improvement', 'launch', 'opening', 'celebration',
        'breakthrough', 'innovation', 'progress', 'development', 'expansion', 'partnership',
        'collaboration', 'award', 'recognition', 'milestone', 'victory', 'triumph'
    ]

    NEGATIVE_WORDS = [
        'crisis', 'problem', 'issue', 'concern', 'challenge', 'difficulty', 'failure',
        'decline', 'reduction', 'cut', 'loss', 'damage', 'accident', 'incident',
        'controversy', 'scandal', 'conflict', 'dispute', 'protest', 'strike'
    ]

    TOPICAL_TAGS = [
        'community', 'development', 'infrastructure', 'business', 'technology',
        'environment', 'health', 'education', 'culture', 'arts', 'sports',
        'government', 'politics', 'economy', 'transportation', 'housing',
        'safety', 'security', 'innovation', 'startup', 'local'
    ]

    LOCATION_TAGS = ['delhi', 'mumbai', 'bangalore', 'chennai', 'kolkata']

# Engagement Constants
class EngagementConstants:
    WEIGHTS = {
        'view': 1,
        'like': 3,
        'share': 5,
        'bookmark': 2,
        'comment': 4,
        'read_more': 2,
    }

    TOGGLE_KINDS = {'like', 'bookmark'}

    TREND_WINDOWS = {
        '1h': 1,
        '6h': 6,
        '24h': 24,
        '7d': 24 * 7,
    }

    TOP_ARTICLES = 10
    TOP_CATEGORIES = 5
    PEAK_HOURS = 5

# Export commonly used constants
__all__ = [
    'ProcessingConstants',
    'RateLimitConstants',
    'HTTPConstants',
    'ValidationConstants',
    'SecurityConstants',
    'ContentConstants',
    'CategoryConstants',
    'LocationConstants',
    'SummaryConstants',
    'EngagementConstants',
]
