"""Traced consumption of queue deliveries."""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import anyio
from opentelemetry import propagate, trace
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, TracerProvider

from amqtrace.attributes import (
    ATTR_ERROR_TYPE,
    MESSAGING_SYSTEM_RABBITMQ,
    consumer_attributes,
)
from amqtrace.delivery import Delivery
from amqtrace.exceptions import DecodeError, ProcessTimeoutError
from amqtrace.naming import span_name
from amqtrace.propagation import activate, extract_context

T = TypeVar("T")

DecodeFunc = Callable[[bytes], Any]
ProcessFunc = Callable[[Any], Awaitable[None] | None]
DeliveryHandler = Callable[[Delivery], Awaitable[None]]

TRACER_NAME = "amqtrace.consumer"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one fallible step: a value or the error it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(step: Callable[[Any], T], arg: Any) -> Outcome[T]:
    """Run a synchronous step, capturing any error in the outcome."""
    try:
        return Outcome(value=step(arg))
    except Exception as e:
        return Outcome(error=e)


async def attempt_async(
    step: ProcessFunc,
    arg: Any,
    timeout: float | None = None,
) -> Outcome[None]:
    """Run a sync or async step, capturing any error in the outcome.

    With a timeout, an async step that runs too long is cancelled and
    reported as ProcessTimeoutError. Synchronous steps cannot be interrupted.
    """
    try:
        with anyio.move_on_after(timeout) as scope:
            result = step(arg)
            if inspect.isawaitable(result):
                await result
    except Exception as e:
        return Outcome(error=e)
    if scope.cancelled_caught and timeout is not None:
        return Outcome(error=ProcessTimeoutError(timeout))
    return Outcome()


def _decoding(decode: DecodeFunc) -> DecodeFunc:
    def step(body: bytes) -> Any:
        try:
            return decode(body)
        except DecodeError:
            raise
        except Exception as e:
            msg = f"Unable to decode message body: {e}"
            raise DecodeError(msg) from e

    return step


class TracingConsumer:
    """Handles deliveries inside a CONSUMER span linked to the producer.

    For each delivery the trace context carried in the headers is made
    current, a receive span is started as its child, the body is decoded
    and handed to the processor. Decode and processing failures are
    recorded on the span and logged; they never reach the caller.

    Example:
        consumer = TracingConsumer(tracer_provider=provider)
        await consumer.handle(delivery, PydanticDecoder(Flight), service.process)

        # Or bound, for a listener:
        listener = QueueListener(subscriber, consumer(decoder, service.process))
    """

    def __init__(
        self,
        tracer_provider: TracerProvider | None = None,
        propagator: TextMapPropagator | None = None,
        messaging_system: str = MESSAGING_SYSTEM_RABBITMQ,
        process_timeout: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the consumer.

        Args:
            tracer_provider: OpenTelemetry TracerProvider. Uses global if not set.
            propagator: Propagator reading trace headers. Uses global if not set.
            messaging_system: Value for messaging.system attribute.
            process_timeout: Seconds an async processor may run before it is
                cancelled and the delivery counted as failed. None disables it.
            logger: Logger for delivery records.
        """
        provider = tracer_provider or trace.get_tracer_provider()
        self._tracer = provider.get_tracer(TRACER_NAME)
        self._propagator = propagator or propagate.get_global_textmap()
        self._system = messaging_system
        self._process_timeout = process_timeout
        self._log = logger or logging.getLogger("amqtrace.consumer")

    async def handle(
        self,
        delivery: Delivery,
        decode: DecodeFunc,
        process: ProcessFunc,
    ) -> None:
        """Decode and process one delivery under a receive span."""
        self._log.debug("Message received: %r", delivery.body)

        parent_ctx = extract_context(delivery.headers, self._propagator)

        with activate(parent_ctx):
            span = self._start_span(delivery)
            try:
                with trace.use_span(
                    span,
                    end_on_exit=False,
                    record_exception=False,
                    set_status_on_exception=False,
                ):
                    await self._run(span, delivery, decode, process)
            finally:
                # Only place the span is ended
                self._end_span(span)

    async def _run(
        self,
        span: Span,
        delivery: Delivery,
        decode: DecodeFunc,
        process: ProcessFunc,
    ) -> None:
        outcome: Outcome[Any] = attempt(_decoding(decode), delivery.body)
        if outcome.ok:
            outcome = await attempt_async(process, outcome.value, self._process_timeout)

        if outcome.error is None:
            self._log.debug("Message processed successfully")
        else:
            self._record_failure(span, delivery, outcome.error)

    def _start_span(self, delivery: Delivery) -> Span:
        """Start the receive span as a child of the current context.

        A span that cannot be started is replaced by a non-recording one,
        so processing always runs with a usable span.
        """
        try:
            return self._tracer.start_span(
                span_name(delivery.queue),
                kind=SpanKind.CONSUMER,
                attributes=consumer_attributes(delivery, self._system),
            )
        except Exception:
            self._log.warning("Failed to start span", exc_info=True)
            return trace.INVALID_SPAN

    def _end_span(self, span: Span) -> None:
        try:
            span.end()
        except Exception:
            self._log.warning("Failed to end span", exc_info=True)

    def _record_failure(
        self,
        span: Span,
        delivery: Delivery,
        error: Exception,
    ) -> None:
        self._log.error(
            "Unable to process message %s from queue %s",
            delivery.message_id,
            delivery.queue,
            exc_info=error,
        )
        try:
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, str(error)))
            span.set_attribute(ATTR_ERROR_TYPE, type(error).__name__)
        except Exception:
            self._log.warning("Failed to annotate span", exc_info=True)

    def __call__(self, decode: DecodeFunc, process: ProcessFunc) -> DeliveryHandler:
        """Bind a decoder and processor into a delivery handler."""

        async def handler(delivery: Delivery) -> None:
            await self.handle(delivery, decode, process)

        return handler


def traced_handler(
    decode: DecodeFunc,
    process: ProcessFunc,
    tracer_provider: TracerProvider | None = None,
    propagator: TextMapPropagator | None = None,
    messaging_system: str = MESSAGING_SYSTEM_RABBITMQ,
    process_timeout: float | None = None,
) -> DeliveryHandler:
    """Delivery handler that traces decode and processing.

    Example:
        handler = traced_handler(PydanticDecoder(Flight), service.process)
        await handler(delivery)
    """
    consumer = TracingConsumer(
        tracer_provider=tracer_provider,
        propagator=propagator,
        messaging_system=messaging_system,
        process_timeout=process_timeout,
    )
    return consumer(decode, process)
