"""
Deterministic extractive summarizer used when every AI provider fails
"""
import time
from typing import List, Tuple

from newsdesk.processors.content_processor import (
    analyze_sentiment,
    extract_entities,
    extract_tags,
    extract_topics,
    reading_time,
    word_count,
)
from newsdesk.utils.constants import ContentConstants, SummaryConstants
from newsdesk.utils.models import Article, Sentiment, SummarizationOptions, Summary


def truncate(text: str, max_length: int) -> str:
    """Cut to ``max_length`` characters, marking the cut with an ellipsis"""
    if len(text) <= max_length:
        return text
    return text[:max(0, max_length - 3)] + "..."


def extract_sentences(text: str) -> List[str]:
    """Split on sentence punctuation and drop fragments of 20 chars or fewer"""
    sentences = (s.strip() for s in ContentConstants.SENTENCE_SPLIT_PATTERN.split(text or ""))
    return [s for s in sentences if len(s) > ContentConstants.MIN_SENTENCE_LENGTH]


def score_sentences(sentences: List[str], title: str) -> List[Tuple[str, int]]:
    title_words = [w for w in title.lower().split() if w]
    scored = []

    for position, sentence in enumerate(sentences):
        lowered = sentence.lower()
        score = 2 * sum(1 for word in title_words if word in lowered)
        score += max(0, 5 - position)
        if 50 < len(sentence) < 200:
            score += 1
        score += 3 * sum(1 for verb in ContentConstants.ANNOUNCEMENT_VERBS if verb in lowered)
        scored.append((sentence, score))

    return scored


def select_sentences(scored: List[Tuple[str, int]], max_length: int) -> List[str]:
    """Greedy by descending score (stable for ties) while the running length fits"""
    selected: List[str] = []
    current_length = 0

    for sentence, _ in sorted(scored, key=lambda item: item[1], reverse=True):
        if current_length + len(sentence) <= max_length:
            selected.append(sentence)
            current_length += len(sentence)
        if len(selected) >= ContentConstants.MAX_SUMMARY_SENTENCES:
            break

    return selected


def extract_key_points(title: str, body: str) -> List[str]:
    key_points = []

    important_words = [w for w in title.lower().split() if w not in ContentConstants.STOPWORDS]
    if important_words:
        key_points.append(f"Focus on: {', '.join(important_words[:3])}")

    announcements = [
        s for s in extract_sentences(body)
        if any(verb in s for verb in ContentConstants.ANNOUNCEMENT_VERBS)
    ][:ContentConstants.MAX_ANNOUNCEMENT_POINTS]

    for sentence in announcements:
        if len(sentence) > ContentConstants.KEY_POINT_MAX_CHARS:
            sentence = sentence[:ContentConstants.KEY_POINT_MAX_CHARS] + "..."
        key_points.append(sentence)

    return key_points[:ContentConstants.MAX_KEY_POINTS]


class RuleBasedSummarizer:
    """Extractive summaries from fixed vocabularies; never calls out"""

    provider = SummaryConstants.RULE_BASED_PROVIDER

    def summarize(self, article: Article, options: SummarizationOptions) -> Summary:
        started = time.perf_counter()
        max_length = options.max_length
        body = article.content or article.description or ""
        full_text = f"{article.title} {body}"

        text, title_only = self._summary_text(article, body, max_length)

        return Summary(
            article_id=article.id,
            summary=text,
            key_points=extract_key_points(article.title, body) if options.include_key_points else [],
            sentiment=analyze_sentiment(full_text) if options.include_sentiment else Sentiment.NEUTRAL,
            confidence=(
                SummaryConstants.TITLE_ONLY_CONFIDENCE if title_only
                else SummaryConstants.RULE_BASED_CONFIDENCE
            ),
            reading_time=reading_time(body),
            tags=extract_tags(full_text) if options.include_tags else [],
            provider=self.provider,
            ai_generated=False,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            word_count=word_count(body),
            language=options.language,
            max_length=max_length,
            entities=extract_entities(full_text),
            topics=extract_topics(full_text),
        )

    @staticmethod
    def _summary_text(article: Article, body: str, max_length: int) -> Tuple[str, bool]:
        """Return the summary text and whether only the title was available"""
        if article.description and len(article.description) <= max_length:
            return article.description, False

        scored = score_sentences(extract_sentences(body), article.title)
        if scored:
            selected = select_sentences(scored, max_length)
            if not selected:
                # Every sentence is longer than the budget; cut the best one
                selected = [max(scored, key=lambda item: item[1])[0]]
            return truncate(" ".join(selected), max_length), False

        if article.description:
            return truncate(article.description, max_length), False

        return truncate(article.title, max_length), True
