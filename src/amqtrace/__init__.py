"""amqtrace: traced consumption of RabbitMQ messages.

Extracts the trace context a producer put in the message headers and runs
decoding and processing inside a CONSUMER span linked to it.
"""

from amqtrace.consumer import (
    DeliveryHandler,
    Outcome,
    TracingConsumer,
    attempt,
    attempt_async,
    traced_handler,
)
from amqtrace.decoding import Decoder, JsonDecoder, PydanticDecoder
from amqtrace.delivery import Delivery
from amqtrace.exceptions import AmqtraceError, DecodeError, ProcessTimeoutError
from amqtrace.listener import QueueListener
from amqtrace.naming import span_name
from amqtrace.propagation import (
    HeadersGetter,
    activate,
    extract_context,
    inject_context,
)

__all__ = [
    # delivery
    "Delivery",
    # tracing
    "DeliveryHandler",
    "Outcome",
    "TracingConsumer",
    "attempt",
    "attempt_async",
    "traced_handler",
    "span_name",
    # propagation
    "HeadersGetter",
    "activate",
    "extract_context",
    "inject_context",
    # decoding
    "Decoder",
    "JsonDecoder",
    "PydanticDecoder",
    # listener
    "QueueListener",
    # errors
    "AmqtraceError",
    "DecodeError",
    "ProcessTimeoutError",
]
