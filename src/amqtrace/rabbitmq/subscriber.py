"""RabbitMQ subscriber implementation."""

import logging
from collections.abc import AsyncIterator

import aio_pika
from aio_pika.abc import (
    AbstractChannel,
    AbstractConnection,
    AbstractQueue,
    AbstractRobustConnection,
)

from amqtrace.delivery import Delivery
from amqtrace.rabbitmq.config import RabbitConfig
from amqtrace.rabbitmq.marshaling import from_incoming

logger = logging.getLogger("amqtrace.rabbitmq")


class RabbitSubscriber:
    """Subscriber that consumes deliveries from a RabbitMQ queue."""

    def __init__(
        self,
        config: RabbitConfig | None = None,
        connection: AbstractConnection | None = None,
    ) -> None:
        """Initialize the RabbitMQ subscriber.

        Args:
            config: Subscriber configuration. Uses defaults if not provided.
            connection: Existing connection to consume over. It is left
                open on close; without one, a robust connection is opened
                on first subscribe and closed with the subscriber.
        """
        self._config = config or RabbitConfig()
        self._connection = connection
        self._owns_connection = connection is None
        self._closed = False

    def subscribe(self, queue: str | None = None) -> AsyncIterator[Delivery]:
        """Subscribe to a queue, defaulting to the configured one.

        Each call opens its own channel.
        """
        if self._closed:
            msg = "Subscriber is closed"
            raise RuntimeError(msg)

        name = queue if queue is not None else self._config.queue_name
        return self._subscribe_iter(name)

    async def _connect(self) -> AbstractConnection | AbstractRobustConnection:
        if self._connection is None:
            self._connection = await aio_pika.connect_robust(self._config.url)
        return self._connection

    async def _open_queue(self, channel: AbstractChannel, name: str) -> AbstractQueue:
        if self._config.declare_queue:
            return await channel.declare_queue(
                name=name or None,
                durable=self._config.durable,
                auto_delete=self._config.auto_delete,
            )
        return await channel.get_queue(name, ensure=True)

    async def _subscribe_iter(self, name: str) -> AsyncIterator[Delivery]:
        """Consume deliveries from the queue."""
        connection = await self._connect()
        channel = await connection.channel()
        try:
            await channel.set_qos(prefetch_count=self._config.prefetch_count)
            queue = await self._open_queue(channel, name)
            logger.info(
                "Consuming from queue %s (prefetch %d)",
                queue.name,
                self._config.prefetch_count,
            )

            async with queue.iterator() as queue_iter:
                async for message in queue_iter:
                    if self._closed:
                        break
                    yield from_incoming(
                        message,
                        queue.name,
                        requeue_on_nack=self._config.requeue_on_nack,
                    )
        finally:
            await channel.close()

    async def close(self) -> None:
        """Close the subscriber.

        Active iterators stop before handing out their next delivery.
        """
        self._closed = True
        if self._owns_connection and self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "RabbitSubscriber":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()
