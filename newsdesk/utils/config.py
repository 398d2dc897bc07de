"""
Configuration management for Newsdesk using environment variables
"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

from newsdesk.utils.constants import (
    EngagementConstants, HTTPConstants, ProcessingConstants, RateLimitConstants, SummaryConstants
)
from newsdesk.utils.models import Source


# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ProviderConfig(BaseModel):
    """Connection settings for one AI provider"""
    name: str
    api_key: Optional[str] = None
    model: str
    base_url: str
    timeout: float = 30.0
    max_tokens: int = 1000
    temperature: float = 0.3
    requests_per_hour: int = RateLimitConstants.PROVIDER_REQUESTS_PER_HOUR


def _default_providers() -> Dict[str, ProviderConfig]:
    timeout = float(os.getenv("LLM_TIMEOUT", "30"))
    return {
        "openai": ProviderConfig(
            name="openai",
            api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
            base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            timeout=timeout,
        ),
        "anthropic": ProviderConfig(
            name="anthropic",
            api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("ANTHROPIC_MODEL", "claude-3-sonnet-20240229"),
            base_url=os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1"),
            timeout=timeout,
        ),
        "gemini": ProviderConfig(
            name="gemini",
            api_key=os.getenv("GEMINI_API_KEY"),
            model=os.getenv("GEMINI_MODEL", "gemini-pro"),
            base_url=os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            timeout=timeout,
        ),
        "huggingface": ProviderConfig(
            name="huggingface",
            api_key=os.getenv("HUGGINGFACE_API_KEY"),
            model=os.getenv("HUGGINGFACE_MODEL", "facebook/bart-large-cnn"),
            base_url=os.getenv("HUGGINGFACE_BASE_URL", "https://api-inference.huggingface.co/models"),
            timeout=timeout,
            # Summarization models take the output length in tokens
            max_tokens=150,
        ),
        "local": ProviderConfig(
            name="local",
            api_key=os.getenv("LLM_API_KEY", "not-needed"),
            model=os.getenv("LLM_MODEL", "llama-3.1-8b-instruct"),
            base_url=os.getenv("LLM_API_URL", "http://localhost:8000/v1"),
            timeout=float(os.getenv("LOCAL_LLM_TIMEOUT", "120")),
        ),
    }


class LLMConfig(BaseModel):
    provider_order: List[str] = Field(
        default_factory=lambda: [p.strip() for p in os.getenv("LLM_PROVIDERS", "openai,anthropic,gemini,huggingface").split(",") if p.strip()]
    )
    providers: Dict[str, ProviderConfig] = Field(default_factory=_default_providers)


class ProcessingConfig(BaseModel):
    max_summary_length: int = Field(default_factory=lambda: int(os.getenv("MAX_SUMMARY_LENGTH", str(SummaryConstants.DEFAULT_MAX_LENGTH))))
    summary_language: str = Field(default_factory=lambda: os.getenv("SUMMARY_LANGUAGE", SummaryConstants.DEFAULT_LANGUAGE))
    summarize_on_ingest: bool = Field(default_factory=lambda: _env_bool("SUMMARIZE_ON_INGEST", "true"))
    lazy_summaries: bool = Field(default_factory=lambda: _env_bool("LAZY_SUMMARIES", "true"))
    summary_concurrency: int = Field(default_factory=lambda: int(os.getenv("SUMMARY_CONCURRENCY", str(ProcessingConstants.DEFAULT_SUMMARY_CONCURRENCY))))
    summary_freshness_hours: int = Field(default_factory=lambda: int(os.getenv("SUMMARY_FRESHNESS_HOURS", str(SummaryConstants.FRESHNESS_HOURS))))

    relevance_base: float = ProcessingConstants.RELEVANCE_BASE
    relevance_title_bonus: float = ProcessingConstants.RELEVANCE_TITLE_BONUS
    relevance_description_bonus: float = ProcessingConstants.RELEVANCE_DESCRIPTION_BONUS
    relevance_image_bonus: float = ProcessingConstants.RELEVANCE_IMAGE_BONUS
    relevance_author_bonus: float = ProcessingConstants.RELEVANCE_AUTHOR_BONUS

    @field_validator("summary_concurrency")
    @classmethod
    def validate_concurrency(cls, v):
        if v < 1:
            raise ValueError("summary_concurrency must be at least 1")
        return v


class SchedulerConfig(BaseModel):
    enabled: bool = Field(default_factory=lambda: _env_bool("SCHEDULER_ENABLED", "true"))
    interval_minutes: int = Field(default_factory=lambda: int(os.getenv("SCHEDULER_INTERVAL_MINUTES", "15")))
    run_budget_seconds: int = Field(default_factory=lambda: int(os.getenv("RUN_BUDGET_SECONDS", "600")))


class FetchConfig(BaseModel):
    timeout: float = Field(default_factory=lambda: float(os.getenv("HTTP_TIMEOUT", str(HTTPConstants.DEFAULT_TIMEOUT))))
    source_timeout: float = Field(default_factory=lambda: float(os.getenv("SOURCE_TIMEOUT", "60")))
    concurrency: int = Field(default_factory=lambda: int(os.getenv("FETCH_CONCURRENCY", str(ProcessingConstants.DEFAULT_FETCH_CONCURRENCY))))
    api_requests_per_hour: int = Field(default_factory=lambda: int(os.getenv("NEWS_API_REQUESTS_PER_HOUR", str(RateLimitConstants.NEWS_API_REQUESTS_PER_HOUR))))
    max_pages: int = Field(default_factory=lambda: int(os.getenv("API_MAX_PAGES", str(HTTPConstants.DEFAULT_MAX_PAGES))))
    page_size: int = Field(default_factory=lambda: int(os.getenv("API_PAGE_SIZE", str(HTTPConstants.DEFAULT_PAGE_SIZE))))
    max_articles_per_feed: int = ProcessingConstants.MAX_ARTICLES_PER_FEED

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v):
        if v < 1:
            raise ValueError("concurrency must be at least 1")
        return v


class EngagementConfig(BaseModel):
    weights: Dict[str, float] = Field(default_factory=lambda: dict(EngagementConstants.WEIGHTS))


class DatabaseConfig(BaseModel):
    url: str = Field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///./data/newsdesk.db"))


class LoggingConfig(BaseModel):
    level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    file: str = Field(default_factory=lambda: os.getenv("LOG_FILE", "logs/newsdesk.log"))


class WebConfig(BaseModel):
    host: str = Field(default_factory=lambda: os.getenv("WEB_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("WEB_PORT", "8000")))
    interactions_per_minute: int = Field(default_factory=lambda: int(os.getenv("INTERACTIONS_PER_MINUTE", str(RateLimitConstants.INTERACTIONS_PER_MINUTE))))


class Config(BaseModel):
    sources: List[Source] = Field(default_factory=list)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    engagement: EngagementConfig = Field(default_factory=EngagementConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    def __init__(self, config_path: Optional[str] = None, **data):
        # Environment variables are picked up by the Field default factories
        super().__init__(**data)

        if config_path and Path(config_path).exists():
            self._apply_overrides(self._load_config(config_path))

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _apply_overrides(self, config_data: Dict[str, Any]):
        """Overlay the YAML sections on top of the environment defaults"""
        if 'sources' in config_data:
            self.sources = [Source(**entry) for entry in config_data['sources'] or []]

        if 'providers' in config_data:
            for name, overrides in (config_data['providers'] or {}).items():
                current = self.llm.providers.get(name)
                if current:
                    self.llm.providers[name] = current.model_copy(update=overrides)
                else:
                    self.llm.providers[name] = ProviderConfig(name=name, **overrides)

        if 'provider_order' in config_data:
            self.llm.provider_order = list(config_data['provider_order'])

        if 'engagement' in config_data and 'weights' in (config_data['engagement'] or {}):
            weights = dict(self.engagement.weights)
            weights.update(config_data['engagement']['weights'])
            self.engagement = EngagementConfig(weights=weights)

        for section in ('processing', 'scheduler', 'fetch', 'database', 'logging', 'web'):
            if config_data.get(section):
                current = getattr(self, section)
                setattr(self, section, current.model_copy(update=config_data[section]))
