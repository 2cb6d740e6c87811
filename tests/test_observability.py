"""Tests for the observability facade."""

from unittest.mock import MagicMock, call, patch

import pytest

from quizgen.config.generation_config import GenerationConfig, ProviderSettings
from quizgen.generation.generator import QuestionGenerator
from quizgen.observability import ObservabilityFacade, SpanContext


@pytest.fixture
def facade():
    """A fresh, uninitialized facade."""
    return ObservabilityFacade()


@pytest.fixture
def active_facade(facade):
    """Facade with mocked OTEL meter and tracer."""
    facade._initialized = True
    facade._meter = MagicMock()
    facade._tracer = MagicMock()
    return facade


class TestUninitializedFacade:
    """Tests for no-op behaviour before init()."""

    def test_record_metric_is_noop(self, facade):
        """Test that metrics are dropped silently."""
        facade.record_metric("quizgen.generation.requests", 1)

    def test_capture_error_returns_none(self, facade):
        """Test that errors are not sent anywhere."""
        assert facade.capture_error(ValueError("x")) is None

    def test_start_span_yields_noop_span(self, facade):
        """Test that spans can be used without tracing."""
        with facade.start_span("quizgen.generate") as span:
            span.set_attribute("k", "v")
            span.set_status("error", "bad")
            span.record_exception(ValueError("x"))

        assert isinstance(span, SpanContext)


class TestInit:
    """Tests for init()."""

    def test_init_without_backends(self, facade):
        """Test that init with nothing configured still succeeds."""
        with patch("quizgen.observability.atexit.register"):
            assert facade.init(service_name="quizgen-test") is True

        assert facade.is_initialized
        assert facade._tracer is None

    def test_init_is_idempotent(self, facade):
        """Test that a second init does not reinitialize."""
        with patch("quizgen.observability.atexit.register") as register:
            facade.init()
            facade.init()

        assert register.call_count == 1

    def test_sentry_init(self, facade):
        """Test that a DSN enables Sentry."""
        with patch("sentry_sdk.init") as sentry_init, patch(
            "quizgen.observability.atexit.register"
        ):
            facade.init(sentry_dsn="https://key@example.invalid/1", environment="staging")

        sentry_init.assert_called_once()
        assert sentry_init.call_args.kwargs["environment"] == "staging"
        assert facade._sentry_enabled is True

    def test_otlp_without_endpoint_disables_otel(self, facade):
        """Test that OTLP export needs an endpoint."""
        with patch("quizgen.observability.atexit.register"):
            facade.init(otel_exporter="otlp", otel_endpoint=None)

        assert facade.is_initialized
        assert facade._tracer is None

    def test_shutdown_resets_state(self, active_facade):
        """Test that shutdown returns the facade to its no-op state."""
        active_facade.shutdown()

        assert not active_facade.is_initialized
        assert active_facade._meter is None


class TestMetrics:
    """Tests for record_metric."""

    def test_counter_is_created_once(self, active_facade):
        """Test that counters are cached by name."""
        active_facade.record_metric("quizgen.provider.attempts", 1, labels={"provider": "gemini"})
        active_facade.record_metric("quizgen.provider.attempts", 1, labels={"provider": "gemini"})

        active_facade._meter.create_counter.assert_called_once()
        counter = active_facade._meter.create_counter.return_value
        assert counter.add.call_args_list == [
            call(1, attributes={"provider": "gemini"}),
            call(1, attributes={"provider": "gemini"}),
        ]

    def test_histogram(self, active_facade):
        """Test that histograms record values with the given unit."""
        active_facade.record_metric(
            "quizgen.generation.duration", 250, metric_type="histogram", unit="ms"
        )

        active_facade._meter.create_histogram.assert_called_once_with(
            name="quizgen.generation.duration",
            unit="ms",
            description="Histogram for quizgen.generation.duration",
        )
        active_facade._meter.create_histogram.return_value.record.assert_called_once_with(
            250, attributes={}
        )

    def test_unknown_metric_type_is_ignored(self, active_facade):
        """Test that only counters and histograms create instruments."""
        active_facade.record_metric("quizgen.provider.inflight", 1, metric_type="updown_counter")

        active_facade._meter.create_counter.assert_not_called()
        active_facade._meter.create_histogram.assert_not_called()
        active_facade._meter.create_up_down_counter.assert_not_called()

    def test_metric_errors_are_swallowed(self, active_facade):
        """Test that a failing meter does not break callers."""
        active_facade._meter.create_counter.side_effect = RuntimeError("exporter down")

        active_facade.record_metric("quizgen.generation.requests", 1)


class TestCaptureError:
    """Tests for capture_error."""

    def test_sends_to_sentry_with_tags(self, active_facade):
        """Test that tags and context are attached to the Sentry scope."""
        active_facade._sentry_enabled = True
        error = RuntimeError("boom")

        with patch("sentry_sdk.new_scope") as new_scope, patch(
            "sentry_sdk.capture_exception", return_value="event-1"
        ) as capture:
            event_id = active_facade.capture_error(
                error, context={"provider": "deepseek"}, tags={"provider": "deepseek"}
            )

        assert event_id == "event-1"
        capture.assert_called_once_with(error)
        scope = new_scope.return_value.__enter__.return_value
        scope.set_tag.assert_any_call("provider", "deepseek")
        scope.set_context.assert_called_once_with("additional", {"provider": "deepseek"})


class TestGeneratorInstrumentation:
    """Tests for metrics and spans emitted by the generator."""

    @pytest.mark.asyncio
    async def test_generate_records_metrics_and_spans(
        self, make_provider, questions_json, sample_request
    ):
        """Test the request, attempt and duration metrics of one generation."""
        provider = make_provider("provider1", [questions_json(5)])
        config = GenerationConfig(
            providers={"provider1": ProviderSettings(context_budget=20000, timeout_seconds=5)},
            text_chain=["provider1"],
            vision_chain=["provider1"],
        )
        generator = QuestionGenerator({"provider1": provider}, config)

        with patch("quizgen.generation.generator.observability") as obs:
            await generator.generate(sample_request)

        span_names = [c.args[0] for c in obs.start_span.call_args_list]
        assert span_names == ["quizgen.generate", "quizgen.provider_attempt"]
        metric_calls = {c.args[0]: c.kwargs for c in obs.record_metric.call_args_list}
        assert metric_calls["quizgen.generation.requests"]["labels"] == {"outcome": "success"}
        assert metric_calls["quizgen.provider.attempts"]["labels"] == {
            "provider": "provider1",
            "outcome": "success",
        }
        assert metric_calls["quizgen.generation.duration"]["metric_type"] == "histogram"
        assert "quizgen.generation.quality" in metric_calls
