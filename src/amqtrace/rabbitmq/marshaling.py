"""Conversion of aio-pika deliveries into Delivery objects."""

from typing import TYPE_CHECKING, Any

from amqtrace.delivery import Delivery

if TYPE_CHECKING:
    from aio_pika.abc import AbstractIncomingMessage


def from_incoming(
    message: "AbstractIncomingMessage",
    queue: str,
    *,
    requeue_on_nack: bool = False,
) -> Delivery:
    """Convert an aio-pika incoming message to a Delivery.

    Settling the Delivery settles the underlying AMQP message. The body
    length stands in for the payload size when the broker reported none.
    """
    body = message.body
    body_size = getattr(message, "body_size", None)
    content_length = body_size if body_size else len(body)

    async def ack_func() -> None:
        await message.ack()

    async def nack_func() -> None:
        await message.nack(requeue=requeue_on_nack)

    headers: dict[str, Any] = dict(message.headers or {})

    return Delivery(
        body=body,
        headers=headers,
        queue=queue,
        exchange=message.exchange or "",
        routing_key=message.routing_key or "",
        content_length=content_length,
        message_id=message.message_id,
        _ack_func=ack_func,
        _nack_func=nack_func,
    )
