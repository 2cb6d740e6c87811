"""Observability facade for error tracking, metrics and tracing.

Routes errors to Sentry and metrics/traces to OpenTelemetry. Every method
is a no-op until ``init()`` has been called, so library code can record
metrics and open spans unconditionally.

Usage:
    from quizgen.observability import observability

    observability.init(service_name="quizgen", environment="production")

    with observability.start_span("quizgen.generate") as span:
        span.set_attribute("requested_count", 10)

    observability.record_metric(
        "quizgen.generation.requests", 1, labels={"outcome": "success"}
    )
"""

from __future__ import annotations

import atexit
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Literal

logger = logging.getLogger(__name__)

MetricType = Literal["counter", "histogram"]
ErrorLevel = Literal["debug", "info", "warning", "error", "fatal"]


class SpanContext:
    """Wrapper around the active OTEL span.

    Safe to use when tracing is disabled: every method silently does nothing
    if there is no underlying span.
    """

    def __init__(self, name: str, otel_span: Any = None):
        self.name = name
        self._otel_span = otel_span

    def set_attribute(self, key: str, value: Any) -> None:
        """Set an attribute on the span."""
        if self._otel_span is not None:
            self._otel_span.set_attribute(key, value)

    def set_status(self, status: Literal["ok", "error"], description: str = "") -> None:
        """Set the span status."""
        if self._otel_span is None:
            return
        from opentelemetry.trace import Status, StatusCode

        code = StatusCode.OK if status == "ok" else StatusCode.ERROR
        self._otel_span.set_status(Status(code, description or None))

    def record_exception(self, exception: BaseException) -> None:
        """Record an exception on the span."""
        if self._otel_span is not None:
            self._otel_span.record_exception(exception)


class ObservabilityFacade:
    """Unified facade for observability operations."""

    def __init__(self) -> None:
        self._initialized = False
        self._sentry_enabled = False
        self._service_name = "quizgen"
        self._environment = "development"
        self._meter: Any = None
        self._tracer: Any = None
        self._meter_provider: Any = None
        self._tracer_provider: Any = None
        self._counters: dict[str, Any] = {}
        self._histograms: dict[str, Any] = {}
        self._atexit_registered = False

    @property
    def is_initialized(self) -> bool:
        """Check if observability has been initialized."""
        return self._initialized

    def init(
        self,
        service_name: str = "quizgen",
        environment: str = "development",
        sentry_dsn: str | None = None,
        otel_exporter: str = "none",
        otel_endpoint: str | None = None,
        traces_sample_rate: float = 0.1,
    ) -> bool:
        """Initialize observability backends.

        Idempotent: subsequent calls log a warning and return True without
        reinitializing. Never raises; backend failures are logged and the
        remaining backends still come up.

        Args:
            service_name: Service name reported in metrics and traces
            environment: Deployment environment (production, development...)
            sentry_dsn: Sentry DSN. Sentry stays disabled when unset.
            otel_exporter: "console", "otlp" or "none"
            otel_endpoint: Base URL of the OTLP HTTP collector
            traces_sample_rate: Sentry trace sampling rate

        Returns:
            True once initialized.
        """
        if self._initialized:
            logger.warning(
                "Observability already initialized. Skipping reinitialization."
            )
            return True

        self._service_name = service_name
        self._environment = environment

        if sentry_dsn:
            self._sentry_enabled = self._init_sentry(sentry_dsn, traces_sample_rate)

        otel_enabled = False
        if otel_exporter != "none":
            otel_enabled = self._init_otel(otel_exporter, otel_endpoint)

        self._initialized = True

        if not self._atexit_registered:
            atexit.register(self.shutdown)
            self._atexit_registered = True

        backends = []
        if self._sentry_enabled:
            backends.append("Sentry")
        if otel_enabled:
            backends.append("OpenTelemetry")
        if backends:
            logger.info(
                "Observability initialized: %s (service=%s, environment=%s)",
                ", ".join(backends),
                service_name,
                environment,
            )
        else:
            logger.debug("Observability initialized with no active backends")
        return True

    def _init_sentry(self, dsn: str, traces_sample_rate: float) -> bool:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.logging import LoggingIntegration

            integrations: list[Any] = [LoggingIntegration(level=None, event_level=None)]
            try:
                from sentry_sdk.integrations.fastapi import FastApiIntegration

                integrations.append(FastApiIntegration(transaction_style="endpoint"))
            except Exception as e:
                logger.debug(f"FastAPI integration unavailable: {e}")

            sentry_sdk.init(
                dsn=dsn,
                environment=self._environment,
                traces_sample_rate=traces_sample_rate,
                integrations=integrations,
                send_default_pii=False,
            )
            logger.info(f"Sentry initialized for environment '{self._environment}'")
            return True
        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
            return False

    def _init_otel(self, exporter_name: str, endpoint: str | None) -> bool:
        try:
            from opentelemetry import metrics, trace
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import (
                ConsoleMetricExporter,
                PeriodicExportingMetricReader,
            )
            from opentelemetry.sdk.resources import SERVICE_NAME, Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import (
                BatchSpanProcessor,
                ConsoleSpanExporter,
            )

            resource = Resource(attributes={SERVICE_NAME: self._service_name})
            tracer_provider = TracerProvider(resource=resource)

            if exporter_name == "otlp":
                if not endpoint:
                    logger.warning(
                        "OTLP exporter configured but no endpoint set. "
                        "OpenTelemetry disabled."
                    )
                    return False
                from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
                    OTLPMetricExporter,
                )
                from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                    OTLPSpanExporter,
                )

                base = endpoint.rstrip("/")
                span_exporter: Any = OTLPSpanExporter(endpoint=f"{base}/v1/traces")
                metric_exporter: Any = OTLPMetricExporter(endpoint=f"{base}/v1/metrics")
            else:
                span_exporter = ConsoleSpanExporter()
                metric_exporter = ConsoleMetricExporter()

            tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
            trace.set_tracer_provider(tracer_provider)
            self._tracer_provider = tracer_provider
            self._tracer = trace.get_tracer(self._service_name)

            meter_provider = MeterProvider(
                resource=resource,
                metric_readers=[PeriodicExportingMetricReader(metric_exporter)],
            )
            metrics.set_meter_provider(meter_provider)
            self._meter_provider = meter_provider
            self._meter = metrics.get_meter(self._service_name)

            logger.info(
                f"OpenTelemetry initialized with {exporter_name} exporter "
                f"(service={self._service_name})"
            )
            return True
        except Exception as e:
            logger.error(f"Failed to initialize OpenTelemetry: {e}", exc_info=True)
            return False

    def capture_error(
        self,
        exception: BaseException,
        *,
        context: dict[str, Any] | None = None,
        level: ErrorLevel = "error",
        tags: dict[str, str] | None = None,
    ) -> str | None:
        """Capture an error and send it to Sentry.

        Returns:
            The Sentry event id, or None when Sentry is not active.
        """
        if not self._initialized or not self._sentry_enabled:
            return None

        try:
            import sentry_sdk

            with sentry_sdk.new_scope() as scope:
                scope.level = level
                scope.set_tag("service", self._service_name)
                for key, value in (tags or {}).items():
                    scope.set_tag(key, value)
                if context:
                    scope.set_context("additional", context)
                return sentry_sdk.capture_exception(exception)
        except Exception as e:
            logger.error(f"Failed to capture error in Sentry: {e}")
            return None

    def record_metric(
        self,
        name: str,
        value: float | int,
        *,
        labels: dict[str, str] | None = None,
        metric_type: MetricType = "counter",
        unit: str | None = None,
    ) -> None:
        """Record a metric value to OpenTelemetry.

        Args:
            name: Metric name using dot notation (e.g. "quizgen.provider.attempts")
            value: Increment for counters, observed value for histograms
            labels: Low-cardinality labels (provider, outcome)
            metric_type: "counter" or "histogram"
            unit: Unit of measurement; defaults to "1" for counters, "ms" for histograms
        """
        if not self._initialized or self._meter is None:
            return

        attributes = labels or {}
        try:
            if metric_type == "counter":
                if name not in self._counters:
                    self._counters[name] = self._meter.create_counter(
                        name=name, unit=unit or "1", description=f"Counter for {name}"
                    )
                self._counters[name].add(value, attributes=attributes)
            elif metric_type == "histogram":
                if name not in self._histograms:
                    self._histograms[name] = self._meter.create_histogram(
                        name=name, unit=unit or "ms", description=f"Histogram for {name}"
                    )
                self._histograms[name].record(value, attributes=attributes)
            else:
                logger.warning(f"Unknown metric type '{metric_type}' for {name}")
        except Exception as e:
            logger.warning(f"Failed to record metric {name}: {e}")

    @contextmanager
    def start_span(
        self,
        name: str,
        *,
        kind: Literal["internal", "server", "client"] = "internal",
        attributes: dict[str, Any] | None = None,
    ) -> Iterator[SpanContext]:
        """Start a tracing span.

        Spans nest automatically. When tracing is not active a no-op
        SpanContext is yielded.
        """
        if not self._initialized or self._tracer is None:
            yield SpanContext(name)
            return

        from opentelemetry.trace import SpanKind

        kind_map = {
            "internal": SpanKind.INTERNAL,
            "server": SpanKind.SERVER,
            "client": SpanKind.CLIENT,
        }
        with self._tracer.start_as_current_span(
            name,
            kind=kind_map.get(kind, SpanKind.INTERNAL),
            attributes=attributes,
        ) as span:
            yield SpanContext(name, otel_span=span)

    def shutdown(self) -> None:
        """Flush pending data and shut the backends down."""
        if not self._initialized:
            return

        for provider in (self._tracer_provider, self._meter_provider):
            if provider is None:
                continue
            try:
                provider.shutdown()
            except Exception as e:
                logger.warning(f"Error shutting down OpenTelemetry provider: {e}")

        if self._sentry_enabled:
            try:
                import sentry_sdk

                sentry_sdk.flush(timeout=2.0)
            except Exception as e:
                logger.warning(f"Error flushing Sentry: {e}")

        self._initialized = False
        self._sentry_enabled = False
        self._meter = None
        self._tracer = None
        self._meter_provider = None
        self._tracer_provider = None
        self._counters.clear()
        self._histograms.clear()


# Process-wide facade instance
observability = ObservabilityFacade()
