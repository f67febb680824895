from functools import wraps
from typing import Any, Awaitable, Callable

from opentelemetry import trace
from opentelemetry.util.types import Attributes


def start_as_current_span_async(
    tracer: trace.Tracer,
    name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    attributes: Attributes = None,
    record_exception: bool = True,
    set_status_on_exception: bool = True,
):
    """A decorator like tracer.start_as_current_span, but works for async functions.
    Without a configured tracer provider the spans are no-ops.
    """

    def decorator(function: Callable[..., Awaitable[Any]]):
        @wraps(function)
        async def wrapper(*args, **kwargs):
            with tracer.start_as_current_span(
                name=name,
                kind=kind,
                attributes=attributes,
                record_exception=record_exception,
                set_status_on_exception=set_status_on_exception,
            ):
                return await function(*args, **kwargs)

        return wrapper

    return decorator
