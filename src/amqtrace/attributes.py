"""Span attribute keys and builders for consumer spans."""

from typing import Any

from amqtrace.delivery import Delivery

ATTR_MESSAGING_SYSTEM = "messaging.system"
ATTR_MESSAGING_DESTINATION_KIND = "messaging.destination_kind"
ATTR_MESSAGING_DESTINATION = "messaging.destination"
ATTR_MESSAGING_RABBITMQ_ROUTING_KEY = "messaging.rabbitmq.routing_key"
ATTR_MESSAGING_PAYLOAD_SIZE = "messaging.message_payload_size_bytes"
ATTR_MESSAGING_OPERATION = "messaging.operation"
ATTR_MESSAGING_MESSAGE_ID = "messaging.message_id"
ATTR_ERROR_TYPE = "error.type"

MESSAGING_SYSTEM_RABBITMQ = "rabbitmq"
DESTINATION_KIND_QUEUE = "queue"
OPERATION_RECEIVE = "receive"


def consumer_attributes(
    delivery: Delivery,
    messaging_system: str = MESSAGING_SYSTEM_RABBITMQ,
) -> dict[str, Any]:
    """Build the attributes of a receive span.

    Payload size is left out when the transport did not report it, rather
    than recorded as zero.
    """
    attributes: dict[str, Any] = {
        ATTR_MESSAGING_SYSTEM: messaging_system,
        ATTR_MESSAGING_DESTINATION_KIND: DESTINATION_KIND_QUEUE,
        ATTR_MESSAGING_DESTINATION: delivery.exchange,
        ATTR_MESSAGING_RABBITMQ_ROUTING_KEY: delivery.routing_key,
        ATTR_MESSAGING_OPERATION: OPERATION_RECEIVE,
    }
    if delivery.content_length is not None:
        attributes[ATTR_MESSAGING_PAYLOAD_SIZE] = delivery.content_length
    if delivery.message_id is not None:
        attributes[ATTR_MESSAGING_MESSAGE_ID] = delivery.message_id
    return attributes
