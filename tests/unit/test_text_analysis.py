"""
Tests for text cleaning and keyword analysis
"""
from newsdesk.processors.content_processor import (
    analyze_sentiment,
    classify_category,
    clean_text,
    extract_entities,
    extract_location,
    extract_tags,
    extract_topics,
    reading_time,
    word_count,
)
from newsdesk.utils.models import Sentiment


class TestCleanText:
    def test_strips_markup(self):
        assert clean_text("<p>Hello <b>world</b> !</p>") == "Hello world!"

    def test_empty_input(self):
        assert clean_text(None) == ""
        assert clean_text("") == ""

    def test_collapses_whitespace_and_control_chars(self):
        assert clean_text("Line one\n\n\tline\x07 two") == "Line one line two"

    def test_preserves_unicode(self):
        assert clean_text("Café opens in München") == "Café opens in München"


class TestReadingTime:
    def test_minimum_is_one_minute(self):
        assert reading_time("") == 1
        assert reading_time("short text") == 1

    def test_rounds_up(self):
        text = " ".join(["word"] * 401)
        assert word_count(text) == 401
        assert reading_time(text) == 3


class TestClassifyCategory:
    def test_first_matching_category(self):
        assert classify_category("New software update for phones") == "technology"

    def test_taxonomy_order_wins(self):
        # Matches both technology and science; technology comes first
        assert classify_category("AI research breakthrough") == "technology"

    def test_keyword_inside_a_word(self):
        assert classify_category("Biotech firm expands lab") == "technology"

    def test_substring_match_is_case_insensitive(self):
        # "said" contains "ai"
        assert classify_category("The mayor SAID the market fell") == "technology"

    def test_prefix_match(self):
        assert classify_category("Sports day at the school") == "sports"

    def test_general_when_nothing_matches(self):
        assert classify_category("Local bakery wins award") == "general"


class TestExtractLocation:
    def test_city_lookup(self):
        location = extract_location("Floods hit Mumbai suburbs")

        assert location.city == "Mumbai"
        assert location.region == "Maharashtra"
        assert location.country == "India"

    def test_multi_word_city(self):
        location = extract_location("Subway delays across New York")
        assert location.city == "New York"

    def test_country_only(self):
        location = extract_location("Elections in Germany next week")

        assert location.city is None
        assert location.country == "Germany"

    def test_no_match(self):
        assert extract_location("Nothing to see here") is None


class TestAnalyzeSentiment:
    def test_positive(self):
        assert analyze_sentiment("Record growth and a major breakthrough") == Sentiment.POSITIVE

    def test_negative(self):
        assert analyze_sentiment("Crisis deepens as losses mount") == Sentiment.NEGATIVE

    def test_tie_is_neutral(self):
        assert analyze_sentiment("Success amid crisis") == Sentiment.NEUTRAL

    def test_no_vocabulary_is_neutral(self):
        assert analyze_sentiment("The weather was mild") == Sentiment.NEUTRAL


class TestTagsEntitiesTopics:
    def test_tags_topical_before_location(self):
        tags = extract_tags("Technology startup expands in Bangalore")
        assert tags == ["technology", "startup", "bangalore"]

    def test_tags_capped(self):
        text = "community development infrastructure business technology environment health education culture"
        assert len(extract_tags(text)) == 8

    def test_entities_skip_stopwords_and_duplicates(self):
        entities = extract_entities("The Mayor of Paris met Tesla executives in Paris")
        assert entities == ["Mayor", "Paris", "Tesla"]

    def test_topics(self):
        assert extract_topics("Climate research funding") == ["Science", "Environment"]
