"""OpenTelemetry tracing decorators."""

import functools
import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span, Tracer

F = TypeVar("F", bound=Callable[..., Any])

# Keyword arguments copied onto the span when present
_SPAN_ARGUMENTS = ("restaurant_id", "source", "force")


def _annotate_arguments(span: Span, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
    for name in _SPAN_ARGUMENTS:
        value = kwargs.get(name)
        if value is not None:
            span.set_attribute(f"sync.{name}", str(getattr(value, "value", value)))

    # Methods receive restaurant_id as the first positional argument after self
    if "restaurant_id" not in kwargs and len(args) > 1 and isinstance(args[1], str):
        span.set_attribute("sync.restaurant_id", args[1])


@contextmanager
def _sync_span(
    tracer: Tracer,
    name: str,
    func: Callable[..., Any],
    custom_name: bool,
    service_name: str,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> Iterator[Span]:
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("service.name", service_name)
        if custom_name:
            span.set_attribute("function.name", func.__name__)
        _annotate_arguments(span, args, kwargs)

        try:
            yield span
        except Exception as e:
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)
            raise

        span.set_attribute("success", True)


def traced(span_name: str | None = None, service_name: str = "menu-sync-svc") -> Callable[[F], F]:
    """Wrap a function in an OpenTelemetry span.

    The span records success or the raised exception, and the sync
    arguments (restaurant_id, source, force) as ``sync.*`` attributes.
    Coroutine functions get an async wrapper.

    Args:
        span_name: Name for the span (defaults to the function name)
        service_name: Tracer name and ``service.name`` span attribute

    Returns:
        Decorated function with tracing

    Example:
        @traced("sync_restaurant_menu")
        async def sync_restaurant(self, restaurant_id: str) -> SyncResult:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)
        span_for = functools.partial(
            _sync_span, tracer, name, func, span_name is not None, service_name
        )

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with span_for(args, kwargs):
                    return await func(*args, **kwargs)

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with span_for(args, kwargs):
                return func(*args, **kwargs)

        return sync_wrapper  # type: ignore

    return decorator
