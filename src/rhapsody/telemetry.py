"""OpenTelemetry tracing for chat turns, compression passes, scene ends and model calls.

The module-level tracer is a no-op until :func:`configure_tracing` installs
one with a ``stdout`` or ``otlp`` exporter. Callers receive the live span and
record their results on it (turn status, chunk counts, summary sizes).
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Generator, Mapping
from dataclasses import dataclass

from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor, SpanExporter
from opentelemetry.trace import NoOpTracer, Span, Tracer

logger = logging.getLogger(__name__)

AttributeValue = str | int | float | bool

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class TelemetryConfig:
    """Configuration for the tracing subsystem."""

    service_name: str = "rhapsody"
    enabled: bool = True
    exporter: str = "none"  # "stdout" | "otlp" | "none"
    otlp_endpoint: str = "http://localhost:4317"


def _stdout_exporter(config: TelemetryConfig) -> SpanExporter | None:
    return ConsoleSpanExporter()


def _otlp_exporter(config: TelemetryConfig) -> SpanExporter | None:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    except ImportError:  # pragma: no cover
        logger.warning("OTLP exporter not installed (extra 'otlp'); tracing stays disabled")
        return None
    return OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=True)


_EXPORTERS: dict[str, Callable[[TelemetryConfig], SpanExporter | None]] = {
    "stdout": _stdout_exporter,
    "otlp": _otlp_exporter,
}

# ---------------------------------------------------------------------------
# RhapsodyTracer
# ---------------------------------------------------------------------------


class RhapsodyTracer:
    """Owns the span pipeline of one running assistant.

    An explicit *exporter* takes precedence over ``config.exporter``.
    """

    def __init__(
        self, config: TelemetryConfig | None = None, exporter: SpanExporter | None = None
    ) -> None:
        self.config = config or TelemetryConfig()
        self._exporter = exporter
        self._provider: TracerProvider | None = None
        self._tracer: Tracer = NoOpTracer()

    @property
    def active(self) -> bool:
        """True when spans are actually exported."""
        return self._provider is not None

    def init(self) -> None:
        cfg = self.config
        if not cfg.enabled:
            return
        exporter = self._exporter
        if exporter is None:
            factory = _EXPORTERS.get(cfg.exporter)
            if factory is None:
                if cfg.exporter != "none":
                    logger.warning("Unknown trace exporter %r; tracing disabled", cfg.exporter)
                return
            exporter = factory(cfg)
            if exporter is None:
                return

        provider = TracerProvider(resource=Resource.create({"service.name": cfg.service_name}))
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        self._provider = provider
        self._tracer = provider.get_tracer(cfg.service_name)
        logger.info("Tracing enabled (%s)", type(exporter).__name__)

    @contextlib.contextmanager
    def span(
        self, name: str, attributes: Mapping[str, AttributeValue] | None = None
    ) -> Generator[Span, None, None]:
        with self._tracer.start_as_current_span(name, attributes=dict(attributes or {})) as s:
            yield s

    def shutdown(self) -> None:
        """Flush pending spans. Safe to call more than once."""
        if self._provider is not None:
            self._provider.shutdown()
            self._provider = None
            self._tracer = NoOpTracer()


# ---------------------------------------------------------------------------
# Module tracer
# ---------------------------------------------------------------------------

_DEFAULT_TRACER = RhapsodyTracer()


def configure_tracing(
    config: TelemetryConfig, exporter: SpanExporter | None = None
) -> RhapsodyTracer:
    """Replace the module tracer with one built from *config* and initialise it."""
    global _DEFAULT_TRACER  # noqa: PLW0603
    _DEFAULT_TRACER.shutdown()
    _DEFAULT_TRACER = RhapsodyTracer(config, exporter)
    _DEFAULT_TRACER.init()
    return _DEFAULT_TRACER


# ---------------------------------------------------------------------------
# Domain spans
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def trace_chat_turn(scene_id: str) -> Generator[Span, None, None]:
    """One user turn; the caller records ``turn.status``, ``turn.chunks`` and ``turn.compressed``."""
    with _DEFAULT_TRACER.span("chat/turn", {"scene.id": scene_id}) as s:
        yield s


@contextlib.contextmanager
def trace_compression(message_count: int) -> Generator[Span, None, None]:
    """A history compression pass over *message_count* messages."""
    with _DEFAULT_TRACER.span("context/compress", {"compression.messages": message_count}) as s:
        yield s


@contextlib.contextmanager
def trace_scene_end(scene_id: str) -> Generator[Span, None, None]:
    """Summarising and archiving a scene; the caller records ``scene.end_status``."""
    with _DEFAULT_TRACER.span("scene/end", {"scene.id": scene_id}) as s:
        yield s


@contextlib.contextmanager
def trace_llm_call(kind: str, temperature: float, max_tokens: int) -> Generator[Span, None, None]:
    """A non-streaming language-model request."""
    attributes = {"llm.kind": kind, "llm.temperature": temperature, "llm.max_tokens": max_tokens}
    with _DEFAULT_TRACER.span("llm/call", attributes) as s:
        yield s
