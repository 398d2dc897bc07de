"""
Prompt construction for article summarization.

The system prompt holds every static instruction and the JSON schema, so
providers with prompt caching reuse it across articles; the user prompt
carries only the article itself.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from newsdesk.utils.models import Article, SummarizationOptions


# Longest article body sent to a provider
MAX_PROMPT_CONTENT_CHARS = 20000


class LLMPrompts:
    """Centralized LLM prompts for newsdesk."""

    @staticmethod
    def get_article_summary_system_prompt() -> str:
        """
        Get the static system prompt for article summarization.

        Returns:
            str: Instructions and response schema, identical for every article
        """
        return """You are an expert news summarizer. Provide accurate, concise summaries with key points, sentiment analysis, and relevant tags.

ALWAYS respond with this exact JSON format:
{
    "summary": "A concise summary of the article",
    "keyPoints": ["Key point 1", "Key point 2", "Key point 3"],
    "sentiment": "positive|negative|neutral",
    "confidence": 0.95,
    "tags": ["tag1", "tag2", "tag3"],
    "readingTime": 3
}

Requirements:
- Summary should be clear and informative
- Key points should be the most important takeaways
- Sentiment should reflect the overall tone
- Confidence should be between 0 and 1
- Tags should be relevant lowercase keywords
- Reading time should be in minutes

Return ONLY the JSON object. No markdown, no explanations before or after it."""

    @staticmethod
    def get_article_summary_user_prompt(article: "Article", options: "SummarizationOptions") -> str:
        """
        Get the dynamic user prompt for one article.

        Args:
            article: Article to summarize
            options: Length and language requested by the caller

        Returns:
            str: Article data plus the per-call limits
        """
        body = article.content or article.description or ""
        return f"""Please analyze and summarize the following news article.
Write the summary in language "{options.language}" with at most {options.max_length} characters.

Title: {article.title}
Source: {article.source_name}
Category: {article.category}
Published: {article.published_at.isoformat()}

Content:
{body[:MAX_PROMPT_CONTENT_CHARS]}"""
