"""QueueListener - feeds subscribed deliveries to a handler."""

import logging
from collections.abc import AsyncIterator
from typing import Protocol

import anyio

from amqtrace.consumer import DeliveryHandler
from amqtrace.delivery import Delivery


class DeliverySource(Protocol):
    def subscribe(self, queue: str | None = None) -> AsyncIterator[Delivery]: ...


class QueueListener:
    """Runs a handler for every delivery of a queue.

    Deliveries are acked once the handler returns. A handler that raises
    gets its delivery nacked; the error is logged and consumption goes on.
    Handlers built by TracingConsumer never raise, so with them every
    delivery is acked.
    """

    def __init__(
        self,
        subscriber: DeliverySource,
        handler: DeliveryHandler,
        queue: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._subscriber = subscriber
        self._handler = handler
        self._queue = queue
        self._log = logger or logging.getLogger("amqtrace.listener")
        self._running = False
        self._cancel_scope: anyio.CancelScope | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Consume deliveries until closed or the subscription ends."""
        if self._running:
            msg = "QueueListener is already running"
            raise RuntimeError(msg)

        self._running = True
        try:
            with anyio.CancelScope() as scope:
                self._cancel_scope = scope
                async for delivery in self._subscriber.subscribe(self._queue):
                    await self._dispatch(delivery)
        finally:
            self._running = False
            self._cancel_scope = None

    async def _dispatch(self, delivery: Delivery) -> None:
        try:
            await self._handler(delivery)
        except Exception:
            self._log.exception(
                "Handler failed for message %s from queue %s",
                delivery.message_id,
                delivery.queue,
            )
            await delivery.nack()
            return
        await delivery.ack()

    async def close(self) -> None:
        """Stop the listener."""
        if self._cancel_scope:
            self._cancel_scope.cancel()
