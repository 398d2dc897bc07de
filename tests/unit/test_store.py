"""
Tests for the SQLAlchemy store and its change feed
"""
from datetime import datetime, timedelta, timezone

import pytest

from newsdesk.storage.store import (
    DELETE,
    INSERT,
    UPDATE,
    article_to_record,
    record_to_article,
)
from newsdesk.utils.errors import DuplicateKeyError, StoreError
from newsdesk.utils.models import Location


class TestStoreCrud:
    def test_insert_and_get(self, store, make_article):
        article = make_article(location=Location(city="Paris", country="France"))
        store.insert("articles", article_to_record(article))

        record = store.get("articles", id=article.id)
        restored = record_to_article(record)

        assert restored.title == article.title
        assert restored.location.city == "Paris"
        assert restored.published_at.tzinfo is not None

    def test_duplicate_url_raises(self, store, make_article):
        store.insert("articles", article_to_record(make_article()))

        with pytest.raises(DuplicateKeyError):
            store.insert("articles", article_to_record(make_article(id="other-id")))

    def test_missing_parent_is_not_a_duplicate(self, store):
        with pytest.raises(StoreError) as exc_info:
            store.insert("article_summaries", {
                "article_id": "missing-article",
                "summary": "Orphaned summary",
                "provider": "rule-based",
            })

        assert not isinstance(exc_info.value, DuplicateKeyError)
        assert "FOREIGN KEY" in str(exc_info.value)

    def test_check_constraint_is_not_a_duplicate(self, store, stored_article):
        with pytest.raises(StoreError) as exc_info:
            store.upsert("article_interactions", {
                "article_id": stored_article.id,
                "user_id": "reader-1",
                "kind": "teleport",
            }, key=("article_id", "user_id", "kind"))

        assert not isinstance(exc_info.value, DuplicateKeyError)

    def test_unknown_table(self, store):
        with pytest.raises(StoreError):
            store.query("nope")

    def test_upsert_updates_existing(self, store, stored_article):
        record = article_to_record(stored_article)
        record["title"] = "Updated title"

        store.upsert("articles", record, key=("id",))

        assert store.get("articles", id=stored_article.id)["title"] == "Updated title"
        assert len(store.query("articles")) == 1

    def test_update_returns_count(self, store, stored_article):
        changed = store.update("articles", {"id": stored_article.id}, {"engagement_score": 4.0})

        assert changed == 1
        assert store.get("articles", id=stored_article.id)["engagement_score"] == 4.0

    def test_query_search_is_case_insensitive(self, store, make_article):
        store.insert("articles", article_to_record(make_article(url="https://a.example.com/1", title="Harbour festival")))
        store.insert("articles", article_to_record(make_article(url="https://a.example.com/2", title="Budget vote")))

        rows = store.query("articles", search=("HARBOUR", ("title", "description")))

        assert [row["title"] for row in rows] == ["Harbour festival"]

    def test_query_where_in_and_order(self, store, make_article):
        base = datetime(2025, 1, 6, tzinfo=timezone.utc)
        ids = []
        for i in range(3):
            article = make_article(url=f"https://a.example.com/{i}", published_at=base + timedelta(hours=i))
            store.insert("articles", article_to_record(article))
            ids.append(article.id)

        rows = store.query("articles", where={"id": ids[:2]}, order_by="published_at")

        assert [row["id"] for row in rows] == [ids[1], ids[0]]

    def test_query_since(self, store, make_article):
        base = datetime(2025, 1, 6, tzinfo=timezone.utc)
        store.insert("articles", article_to_record(make_article(url="https://a.example.com/old", published_at=base)))
        store.insert("articles", article_to_record(
            make_article(url="https://a.example.com/new", published_at=base + timedelta(days=2))
        ))

        rows = store.query("articles", since=("published_at", base + timedelta(days=1)))

        assert [row["url"] for row in rows] == ["https://a.example.com/new"]

    def test_delete(self, store, stored_article):
        assert store.delete("articles", {"id": stored_article.id}) == 1
        assert store.get("articles", id=stored_article.id) is None
        assert store.delete("articles", {"id": stored_article.id}) == 0


class TestChangeFeed:
    def test_listeners_see_every_write(self, store, make_article):
        events = []
        store.on_change("articles", lambda operation, record: events.append((operation, record["id"])))
        article = make_article()

        store.insert("articles", article_to_record(article))
        store.update("articles", {"id": article.id}, {"engagement_score": 1.0})
        store.delete("articles", {"id": article.id})

        assert events == [(INSERT, article.id), (UPDATE, article.id), (DELETE, article.id)]

    def test_listeners_are_per_table(self, store, stored_article):
        events = []
        store.on_change("article_summaries", lambda operation, record: events.append(operation))

        store.update("articles", {"id": stored_article.id}, {"engagement_score": 1.0})

        assert events == []

    def test_failing_listener_does_not_undo_write(self, store, make_article):
        def broken(operation, record):
            raise RuntimeError("listener down")

        store.on_change("articles", broken)
        article = make_article()

        store.insert("articles", article_to_record(article))

        assert store.get("articles", id=article.id) is not None

    def test_failed_write_is_not_announced(self, store, stored_article, make_article):
        events = []
        store.on_change("articles", lambda operation, record: events.append(operation))

        with pytest.raises(DuplicateKeyError):
            store.insert("articles", article_to_record(make_article(id="other-id")))

        assert events == []
