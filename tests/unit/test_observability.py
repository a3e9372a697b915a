import pytest
import structlog
from structlog.testing import capture_logs

from nexra.core import observability
from nexra.core.observability import (
    clear_correlation_id,
    set_correlation_id,
    trace_call,
)


class _Adapter:
    @trace_call(layer="adapter", log_level="INFO")
    async def fetch(self, match_id: str, *, access_token: str | None = None) -> str:
        return match_id

    @trace_call(layer="adapter")
    async def explode(self) -> None:
        raise RuntimeError("boom")


@pytest.fixture(autouse=True)
def fresh_logger(monkeypatch: pytest.MonkeyPatch) -> None:
    # The module logger caches its processors on first use.
    monkeypatch.setattr(observability, "logger", structlog.get_logger("trace-test"))


@pytest.mark.asyncio
async def test_trace_call_logs_success_with_redacted_kwargs() -> None:
    with capture_logs() as cap:
        result = await _Adapter().fetch("KR_1", access_token="super-secret-token")

    assert result == "KR_1"
    event = next(e for e in cap if e["event"] == "call_succeeded")
    assert event["layer"] == "adapter"
    assert event["args"] == ["'KR_1'"]
    assert "super-secret-token" not in str(event["kwargs"])
    assert event["duration_ms"] >= 0


@pytest.mark.asyncio
async def test_trace_call_logs_and_reraises_failures() -> None:
    with capture_logs() as cap, pytest.raises(RuntimeError):
        await _Adapter().explode()

    event = next(e for e in cap if e["event"] == "call_failed")
    assert event["error_type"] == "RuntimeError"
    assert event["error_message"] == "boom"


def test_trace_call_rejects_sync_functions() -> None:
    with pytest.raises(TypeError):

        @trace_call(layer="adapter")
        def not_async() -> None:
            pass


def test_correlation_id_bind_and_clear() -> None:
    cid = set_correlation_id()
    assert len(cid) == 32
    assert set_correlation_id("fixed") == "fixed"
    clear_correlation_id()
