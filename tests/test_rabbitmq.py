"""Tests for the aio-pika transport adapter."""

from typing import Any

import pytest

from amqtrace.rabbitmq import RabbitConfig, RabbitSubscriber, from_incoming

pytestmark = pytest.mark.anyio

PREFETCH = 5


class FakeIncomingMessage:
    """Stands in for aio_pika.IncomingMessage."""

    def __init__(
        self,
        body: bytes,
        headers: dict[str, Any] | None = None,
        exchange: str | None = "flights",
        routing_key: str | None = "flight.received",
        message_id: str | None = "m-1",
        body_size: int = 0,
    ) -> None:
        self.body = body
        self.headers = headers
        self.exchange = exchange
        self.routing_key = routing_key
        self.message_id = message_id
        self.body_size = body_size
        self.acked = False
        self.nacked_with: bool | None = None

    async def ack(self) -> None:
        self.acked = True

    async def nack(self, requeue: bool = True) -> None:
        self.nacked_with = requeue


class FakeQueueIterator:
    def __init__(self, messages: list[FakeIncomingMessage]) -> None:
        self._messages = list(messages)

    async def __aenter__(self) -> "FakeQueueIterator":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    def __aiter__(self) -> "FakeQueueIterator":
        return self

    async def __anext__(self) -> FakeIncomingMessage:
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)


class FakeQueue:
    def __init__(self, name: str, messages: list[FakeIncomingMessage]) -> None:
        self.name = name
        self._messages = messages

    def iterator(self) -> FakeQueueIterator:
        return FakeQueueIterator(self._messages)


class FakeChannel:
    def __init__(self, messages: list[FakeIncomingMessage]) -> None:
        self._messages = messages
        self.prefetch_count: int | None = None
        self.declared: list[dict[str, Any]] = []
        self.fetched: list[str] = []
        self.closed = False

    async def set_qos(self, prefetch_count: int) -> None:
        self.prefetch_count = prefetch_count

    async def declare_queue(
        self, name: str | None = None, durable: bool = False, auto_delete: bool = False
    ) -> FakeQueue:
        self.declared.append(
            {"name": name, "durable": durable, "auto_delete": auto_delete}
        )
        return FakeQueue(name or "amq.gen-abc123", self._messages)

    async def get_queue(self, name: str, ensure: bool = True) -> FakeQueue:
        self.fetched.append(name)
        return FakeQueue(name, self._messages)

    async def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, messages: list[FakeIncomingMessage]) -> None:
        self.channels: list[FakeChannel] = []
        self._messages = messages
        self.closed = False

    async def channel(self) -> FakeChannel:
        channel = FakeChannel(self._messages)
        self.channels.append(channel)
        return channel

    async def close(self) -> None:
        self.closed = True


class TestFromIncoming:
    def test_maps_metadata(self) -> None:
        message = FakeIncomingMessage(
            b"payload", headers={"traceparent": "tp"}, body_size=7
        )

        delivery = from_incoming(message, "flight.received")  # type: ignore[arg-type]

        assert delivery.body == b"payload"
        assert delivery.headers == {"traceparent": "tp"}
        assert delivery.queue == "flight.received"
        assert delivery.exchange == "flights"
        assert delivery.routing_key == "flight.received"
        assert delivery.content_length == 7
        assert delivery.message_id == "m-1"

    def test_body_length_when_size_missing(self) -> None:
        message = FakeIncomingMessage(b"12345", body_size=0)
        delivery = from_incoming(message, "q")  # type: ignore[arg-type]
        assert delivery.content_length == 5

    def test_missing_fields_default(self) -> None:
        message = FakeIncomingMessage(
            b"x", headers=None, exchange=None, routing_key=None, message_id=None
        )

        delivery = from_incoming(message, "q")  # type: ignore[arg-type]

        assert delivery.headers == {}
        assert delivery.exchange == ""
        assert delivery.routing_key == ""
        assert delivery.message_id is None

    async def test_ack_settles_message(self) -> None:
        message = FakeIncomingMessage(b"x")
        delivery = from_incoming(message, "q")  # type: ignore[arg-type]

        await delivery.ack()

        assert message.acked

    async def test_nack_passes_requeue(self) -> None:
        message = FakeIncomingMessage(b"x")
        delivery = from_incoming(message, "q", requeue_on_nack=True)  # type: ignore[arg-type]

        await delivery.nack()

        assert message.nacked_with is True


class TestRabbitSubscriber:
    async def test_consumes_declared_queue(self) -> None:
        messages = [FakeIncomingMessage(b"1"), FakeIncomingMessage(b"2")]
        connection = FakeConnection(messages)
        config = RabbitConfig(queue_name="flight.received", prefetch_count=PREFETCH)
        subscriber = RabbitSubscriber(config, connection=connection)  # type: ignore[arg-type]

        received = [d async for d in subscriber.subscribe()]

        assert [d.body for d in received] == [b"1", b"2"]
        assert all(d.queue == "flight.received" for d in received)
        channel = connection.channels[0]
        assert channel.prefetch_count == PREFETCH
        assert channel.declared == [
            {"name": "flight.received", "durable": True, "auto_delete": False}
        ]
        assert channel.closed

    async def test_generated_queue_name(self) -> None:
        connection = FakeConnection([FakeIncomingMessage(b"1")])
        subscriber = RabbitSubscriber(RabbitConfig(), connection=connection)  # type: ignore[arg-type]

        received = [d async for d in subscriber.subscribe()]

        assert connection.channels[0].declared[0]["name"] is None
        assert received[0].queue == "amq.gen-abc123"

    async def test_existing_queue_not_declared(self) -> None:
        connection = FakeConnection([])
        config = RabbitConfig(queue_name="flights", declare_queue=False)
        subscriber = RabbitSubscriber(config, connection=connection)  # type: ignore[arg-type]

        _ = [d async for d in subscriber.subscribe()]

        assert connection.channels[0].declared == []
        assert connection.channels[0].fetched == ["flights"]

    async def test_explicit_queue_overrides_config(self) -> None:
        connection = FakeConnection([FakeIncomingMessage(b"1")])
        config = RabbitConfig(queue_name="default")
        subscriber = RabbitSubscriber(config, connection=connection)  # type: ignore[arg-type]

        received = [d async for d in subscriber.subscribe("other")]

        assert received[0].queue == "other"

    async def test_subscribe_after_close_raises(self) -> None:
        subscriber = RabbitSubscriber(connection=FakeConnection([]))  # type: ignore[arg-type]
        await subscriber.close()

        with pytest.raises(RuntimeError, match="Subscriber is closed"):
            subscriber.subscribe()

    async def test_borrowed_connection_left_open(self) -> None:
        connection = FakeConnection([])
        async with RabbitSubscriber(connection=connection):  # type: ignore[arg-type]
            pass

        assert not connection.closed
