"""
Engagement tracking: interactions, weighted scores, analytics and trends
"""
from collections import Counter, defaultdict
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from newsdesk.utils.constants import EngagementConstants
from newsdesk.utils.errors import ArticleNotFoundError
from newsdesk.storage.store import Store
from newsdesk.utils.logger import logger
from newsdesk.utils.models import (
    CategoryTrend,
    EngagementAnalytics,
    HourTrend,
    InteractionEvent,
    InteractionKind,
    NewsTrends,
    TrendingArticle,
    UserEngagement,
    utcnow,
)

INTERACTIONS_TABLE = "article_interactions"
ARTICLES_TABLE = "articles"

# UserEngagement flag per interaction kind
_USER_FLAGS = {
    InteractionKind.VIEW: "has_viewed",
    InteractionKind.LIKE: "has_liked",
    InteractionKind.SHARE: "has_shared",
    InteractionKind.BOOKMARK: "has_bookmarked",
    InteractionKind.COMMENT: "has_commented",
}


def _average(values: List[Any]) -> float:
    numbers = [float(v) for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
    return round(sum(numbers) / len(numbers), 2) if numbers else 0.0


class EngagementTracker:
    """Records interactions and keeps each article's engagement score current.

    like and bookmark are toggles: at most one active row per user and
    article, removed rather than negated. Every other kind appends.
    """

    def __init__(
        self,
        store: Store,
        weights: Optional[Dict[str, float]] = None,
        time_func: Callable = utcnow,
    ):
        self.store = store
        self.weights = dict(EngagementConstants.WEIGHTS)
        self.weights.update(weights or {})
        self._now = time_func
        self._analytics_cache: Dict[str, EngagementAnalytics] = {}

    def record(
        self,
        user_id: str,
        article_id: str,
        kind: Union[str, InteractionKind],
        payload: Optional[Dict[str, Any]] = None,
        active: bool = True,
    ) -> EngagementAnalytics:
        """Record (or for toggles, remove) an interaction and rescore the article"""
        kind = InteractionKind(kind)
        if self.store.get(ARTICLES_TABLE, id=article_id) is None:
            raise ArticleNotFoundError(f"Article not found: {article_id}")

        event = InteractionEvent(
            user_id=user_id, article_id=article_id, kind=kind,
            payload=payload or {}, created_at=self._now(),
        )
        record = event.model_dump()
        record["kind"] = kind.value

        if kind.value in EngagementConstants.TOGGLE_KINDS:
            key = {"article_id": article_id, "user_id": user_id, "kind": kind.value}
            if active:
                self.store.upsert(INTERACTIONS_TABLE, record, key=tuple(key.keys()))
            else:
                self.store.delete(INTERACTIONS_TABLE, key)
        elif active:
            self.store.insert(INTERACTIONS_TABLE, record)
        else:
            logger.debug(f"Ignoring removal of non-toggle interaction {kind.value} on {article_id}")

        self._analytics_cache.pop(article_id, None)
        score = self._rescore(article_id)
        logger.debug(f"{kind.value} by {user_id} on {article_id}, engagement score {score}")
        return self.score(article_id, user_id)

    def remove(self, user_id: str, article_id: str, kind: Union[str, InteractionKind]) -> EngagementAnalytics:
        return self.record(user_id, article_id, kind, active=False)

    def weighted_score(self, counts: Dict[str, int]) -> float:
        return float(sum(self.weights.get(kind, 0) * count for kind, count in counts.items()))

    def score(self, article_id: str, user_id: Optional[str] = None) -> EngagementAnalytics:
        analytics = self._analytics_cache.get(article_id)
        if analytics is None:
            analytics = self._compute_analytics(article_id)
            self._analytics_cache[article_id] = analytics

        if user_id is None:
            return analytics
        return analytics.model_copy(update={"user": self._user_flags(article_id, user_id)})

    def trends(self, window: Union[str, timedelta] = "24h") -> NewsTrends:
        if isinstance(window, timedelta):
            delta, label = window, f"{int(window.total_seconds())}s"
        else:
            if window not in EngagementConstants.TREND_WINDOWS:
                raise ValueError(f"Unknown trend window: {window}")
            delta, label = timedelta(hours=EngagementConstants.TREND_WINDOWS[window]), window

        rows = self.store.query(INTERACTIONS_TABLE, since=("created_at", self._now() - delta))

        article_scores: Dict[str, float] = defaultdict(float)
        hours: Counter = Counter()
        for row in rows:
            article_scores[row["article_id"]] += self.weights.get(row["kind"], 0)
            hours[row["created_at"].hour] += 1

        articles = {
            a["id"]: a for a in self.store.query(ARTICLES_TABLE, where={"id": list(article_scores)})
        } if article_scores else {}

        category_scores: Dict[str, float] = defaultdict(float)
        for article_id, score in article_scores.items():
            category = articles.get(article_id, {}).get("category")
            if category:
                category_scores[category] += score

        top_articles = sorted(article_scores.items(), key=lambda item: (-item[1], item[0]))
        top_categories = sorted(category_scores.items(), key=lambda item: (-item[1], item[0]))
        peak_hours = sorted(hours.items(), key=lambda item: (-item[1], item[0]))

        return NewsTrends(
            window=label,
            top_articles=[
                TrendingArticle(
                    article_id=article_id,
                    title=articles.get(article_id, {}).get("title"),
                    category=articles.get(article_id, {}).get("category"),
                    score=score,
                )
                for article_id, score in top_articles[:EngagementConstants.TOP_ARTICLES]
            ],
            top_categories=[
                CategoryTrend(category=category, score=score)
                for category, score in top_categories[:EngagementConstants.TOP_CATEGORIES]
            ],
            peak_hours=[
                HourTrend(hour=hour, interactions=count)
                for hour, count in peak_hours[:EngagementConstants.PEAK_HOURS]
            ],
        )

    def user_history(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        rows = self.store.query(
            INTERACTIONS_TABLE, where={"user_id": user_id}, order_by="created_at", limit=limit
        )
        return [
            InteractionEvent(
                user_id=row["user_id"],
                article_id=row["article_id"],
                kind=row["kind"],
                payload=row["payload"] or {},
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def _counts(self, rows: List[Dict[str, Any]]) -> Dict[str, int]:
        counts = {kind.value: 0 for kind in InteractionKind}
        for row in rows:
            counts[row["kind"]] = counts.get(row["kind"], 0) + 1
        return counts

    def _rescore(self, article_id: str) -> float:
        rows = self.store.query(INTERACTIONS_TABLE, where={"article_id": article_id})
        score = self.weighted_score(self._counts(rows))
        self.store.update(ARTICLES_TABLE, {"id": article_id}, {"engagement_score": score})
        return score

    def _compute_analytics(self, article_id: str) -> EngagementAnalytics:
        rows = self.store.query(INTERACTIONS_TABLE, where={"article_id": article_id})
        counts = self._counts(rows)
        payloads = [row["payload"] or {} for row in rows]

        top_kind = None
        if rows:
            # Ties resolve in InteractionKind declaration order
            top_kind = max(InteractionKind, key=lambda k: counts[k.value]).value

        return EngagementAnalytics(
            article_id=article_id,
            totals=counts,
            unique_viewers=len({row["user_id"] for row in rows if row["kind"] == InteractionKind.VIEW.value}),
            average_read_duration=_average([p.get("read_duration") for p in payloads]),
            average_scroll_depth=_average([p.get("scroll_depth") for p in payloads]),
            engagement_score=self.weighted_score(counts),
            top_interaction_kind=top_kind,
        )

    def _user_flags(self, article_id: str, user_id: str) -> UserEngagement:
        rows = self.store.query(INTERACTIONS_TABLE, where={"article_id": article_id, "user_id": user_id})
        kinds = {row["kind"] for row in rows}
        return UserEngagement(**{
            flag: kind.value in kinds for kind, flag in _USER_FLAGS.items()
        })
