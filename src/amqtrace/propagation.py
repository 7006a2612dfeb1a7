"""Trace context propagation via message headers."""

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from opentelemetry import context as context_api
from opentelemetry import propagate
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import Getter, TextMapPropagator

logger = logging.getLogger("amqtrace.propagation")


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes | bytearray):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return None
    # AMQP tables also carry ints, booleans and nested tables
    return None


class HeadersGetter(Getter[Mapping[str, Any]]):
    """Reads propagation fields from an AMQP header table.

    Lookups ignore case because brokers and client libraries do not agree
    on header casing. Values that are not text (or not valid UTF-8) are
    skipped.
    """

    def get(self, carrier: Mapping[str, Any], key: str) -> list[str] | None:
        wanted = key.lower()
        for name, value in carrier.items():
            if not isinstance(name, str) or name.lower() != wanted:
                continue
            text = _as_text(value)
            if text is not None:
                return [text]
        return None

    def keys(self, carrier: Mapping[str, Any]) -> list[str]:
        return [name for name in carrier if isinstance(name, str)]


headers_getter = HeadersGetter()


def extract_context(
    headers: Mapping[str, Any] | None,
    propagator: TextMapPropagator | None = None,
) -> Context:
    """Extract trace context from message headers.

    The result depends only on the headers: extraction starts from an empty
    context, so missing or malformed trace data gives a root context rather
    than the caller's current one. Never raises.
    """
    textmap = propagator or propagate.get_global_textmap()
    try:
        return textmap.extract(headers or {}, context=Context(), getter=headers_getter)
    except Exception:
        logger.debug("Ignoring unreadable trace headers", exc_info=True)
        return Context()


def inject_context(
    headers: Mapping[str, Any] | None = None,
    propagator: TextMapPropagator | None = None,
) -> dict[str, Any]:
    """Inject the current trace context into a copy of ``headers``."""
    carrier: dict[str, Any] = dict(headers or {})
    textmap = propagator or propagate.get_global_textmap()
    textmap.inject(carrier)
    return carrier


@contextmanager
def activate(ctx: Context) -> Iterator[Context]:
    """Make ``ctx`` the current context for the duration of the block.

    The previous context is restored on exit, including when the block
    raises. Context is task-local, so concurrent handlers never see each
    other's activation.
    """
    token = context_api.attach(ctx)
    try:
        yield ctx
    finally:
        context_api.detach(token)
