"""Tests for content shaping."""

from quizgen.config.generation_config import ShapingConfig
from quizgen.data.models import ContentType, GenerationRequest
from quizgen.generation.content_shaper import (
    TOPIC_EXPANSION_SUFFIX,
    normalize_content,
    sample_head_middle_tail,
    shape_content,
    shape_request,
)

MARKER = "[... content omitted ...]"


class TestNormalizeContent:
    """Tests for whitespace normalization."""

    def test_collapses_blank_lines_and_spaces(self):
        """Test that runs of blank lines and spaces are collapsed."""
        text = "First  line\r\n\r\n\r\n\r\nSecond\t\tline   \nThird"

        assert normalize_content(text) == "First line\n\nSecond line\nThird"

    def test_strips_surrounding_whitespace(self):
        """Test that leading and trailing whitespace is removed."""
        assert normalize_content("  \n topic \n ") == "topic"


class TestTopicExpansion:
    """Tests for short-topic expansion."""

    def test_short_topic_is_expanded(self):
        """Test that a three-letter topic grows past 100 characters."""
        shaped = shape_content("DNA", ContentType.TOPIC, 12000)

        assert shaped.startswith("DNA: This topic encompasses")
        assert len(shaped) > 100

    def test_long_topic_is_not_expanded(self):
        """Test that topics at the threshold are left alone."""
        topic = "t" * 100

        assert shape_content(topic, ContentType.TOPIC, 12000) == topic

    def test_documents_are_never_expanded(self):
        """Test that only topic content is expanded."""
        assert shape_content("DNA", ContentType.DOCUMENT, 12000) == "DNA"
        assert shape_content("DNA", None, 12000) == "DNA"

    def test_threshold_is_configurable(self):
        """Test that the expansion threshold comes from configuration."""
        config = ShapingConfig(topic_expansion_threshold=2)

        assert shape_content("DNA", ContentType.TOPIC, 12000, config) == "DNA"


class TestSampling:
    """Tests for head/middle/tail sampling of long content."""

    def test_fits_budget_and_keeps_both_ends(self):
        """Test that sampling keeps the start and the end of the document."""
        content = "HEAD" + "m" * 49992 + "TAIL"

        sampled = sample_head_middle_tail(content, 20000, MARKER)

        assert len(sampled) <= 20000
        assert sampled.startswith("HEAD")
        assert sampled.endswith("TAIL")
        assert sampled.count(MARKER) == 2

    def test_short_content_is_unchanged(self):
        """Test that content within the budget is returned as-is."""
        assert sample_head_middle_tail("short text", 1000, MARKER) == "short text"

    def test_long_document_scenario(self):
        """Test that a 50,000-character document is shaped under the budget."""
        shaped = shape_content("word " * 10000, ContentType.DOCUMENT, 20000)

        assert MARKER in shaped
        assert len(shaped) <= 20000


class TestShapeRequest:
    """Tests for request-level shaping."""

    def test_unchanged_request_is_returned_as_is(self):
        """Test that nothing is copied when shaping is a no-op."""
        request = GenerationRequest(content="Plain content here", number_of_questions=5)

        assert shape_request(request, 12000) is request

    def test_original_request_is_not_modified(self):
        """Test that shaping returns a copy."""
        request = GenerationRequest(
            content="DNA", content_type="topic", number_of_questions=5
        )

        shaped = shape_request(request, 12000)

        assert request.content == "DNA"
        assert shaped.content.endswith(TOPIC_EXPANSION_SUFFIX)
        assert shaped.number_of_questions == 5

    def test_shaping_is_idempotent(self):
        """Test that shaping an already shaped request changes nothing."""
        requests = [
            GenerationRequest(content="DNA", content_type="topic", number_of_questions=5),
            GenerationRequest(
                content="Line one\r\n\r\n\r\nLine  two " + "z" * 40000,
                content_type="document",
                number_of_questions=5,
            ),
            GenerationRequest(
                content="alpha beta " * 3000, content_type="video", number_of_questions=5
            ),
        ]
        for request in requests:
            once = shape_request(request, 12000)
            twice = shape_request(once, 12000)
            assert twice.content == once.content
