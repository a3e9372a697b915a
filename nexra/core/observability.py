"""Observability for the dashboard core.

Structured logging via structlog bridged onto stdlib logging, correlation
ids bound through contextvars, and the `trace_call` decorator used on
gateway calls.
"""

import functools
import inspect
import logging
import re
import sys
import time
import uuid
from collections.abc import Callable
from typing import Any, TypeVar, cast

import structlog
from pydantic import BaseModel
from structlog.contextvars import bind_contextvars, unbind_contextvars

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        *_SHARED_PROCESSORS,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Sensitive data redaction pattern
_SENSITIVE_KEY_RE = re.compile(r"(token|key|secret|password|authorization|auth)", re.IGNORECASE)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib and structlog records through one structlog formatter.

    Console rendering on a TTY, JSON lines otherwise.
    """
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if sys.stderr.isatty()
        else structlog.processors.JSONRenderer()
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id for every log line emitted in this context."""
    cid = correlation_id or uuid.uuid4().hex
    bind_contextvars(correlation_id=cid)
    return cid


def clear_correlation_id() -> None:
    unbind_contextvars("correlation_id")


def _mask_scalar(value: Any) -> Any:
    if value is None:
        return None
    s = str(value)
    if len(s) <= 8:
        return "***"
    return f"{s[:4]}…{s[-3:]}"


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: (_mask_scalar(v) if _SENSITIVE_KEY_RE.search(str(k)) else _redact(v))
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_redact(i) for i in obj]
    return obj


def _summarize(value: Any, max_length: int = 200) -> Any:
    """Short loggable form of an argument."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", exclude_unset=True)
    if isinstance(value, dict | list):
        return _redact(value)
    text = repr(value)
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def trace_call(*, layer: str, log_level: str = "DEBUG") -> Callable[[F], F]:
    """Log entry, duration and failure type of an async call.

    Keyword arguments are redacted by name; positional arguments are
    summarized. `self` is never logged.
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"trace_call expects a coroutine function, got {func!r}")
        name = f"{func.__module__}.{func.__qualname__}"
        level = logging.getLevelName(log_level.upper())

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            execution_id = uuid.uuid4().hex[:12]
            bind_contextvars(execution_id=execution_id)
            call_args = [_summarize(a) for a in args[1:]] if args else []
            call_kwargs = {
                k: (_mask_scalar(v) if _SENSITIVE_KEY_RE.search(k) else _summarize(v))
                for k, v in kwargs.items()
            }
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    "call_failed",
                    function=name,
                    layer=layer,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                    args=call_args,
                    kwargs=call_kwargs,
                )
                raise
            else:
                logger.log(
                    level,
                    "call_succeeded",
                    function=name,
                    layer=layer,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                    args=call_args,
                    kwargs=call_kwargs,
                )
                return result
            finally:
                unbind_contextvars("execution_id")

        return cast(F, wrapper)

    return decorator


def trace_adapter(func: F) -> F:
    """Decorator for adapter layer calls."""
    return trace_call(layer="adapter")(func)
