"""AGENTREG tracing tests (OpenTelemetry)."""
import pytest

pytest.importorskip("opentelemetry.sdk")

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from agentreg.errors import NotOwnerError
from agentreg.observability import configure_observability, get_tracer, registry_span
from agentreg.registry import Registry


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def traced_registry(exporter, fake_env):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return Registry(environment=fake_env, tracer=provider.get_tracer("agentreg-test"))


def test_configure_with_console_exporter(monkeypatch):
    monkeypatch.setenv("AGENTREG_OTEL_ENABLED", "true")
    monkeypatch.setenv("AGENTREG_OTEL_EXPORTER", "console")
    assert configure_observability() is True
    assert get_tracer() is not None


def test_no_global_tracer_when_disabled(monkeypatch):
    monkeypatch.delenv("AGENTREG_OTEL_ENABLED", raising=False)
    assert get_tracer() is None
    with registry_span("execute", 1) as span:
        assert span is None


def test_operations_run_in_spans(traced_registry, exporter):
    agent_id = traced_registry.register("ref", "alice")
    traced_registry.update_state(agent_id, b"s", "alice")
    traced_registry.execute(agent_id, b"go")

    spans = exporter.get_finished_spans()
    assert [s.name for s in spans] == ["registry.register", "registry.update_state", "registry.execute"]
    for span in spans:
        assert span.attributes["agentreg.agent_id"] == agent_id
    assert spans[1].attributes["agentreg.operation"] == "update_state"


def test_rejection_recorded_on_span(traced_registry, exporter):
    agent_id = traced_registry.register("ref", "alice")
    with pytest.raises(NotOwnerError):
        traced_registry.set_active(agent_id, False, "bob")

    span = exporter.get_finished_spans()[-1]
    assert span.name == "registry.set_active"
    assert span.attributes["agentreg.error_code"] == "NOT_OWNER"
    assert span.status.status_code == StatusCode.ERROR
