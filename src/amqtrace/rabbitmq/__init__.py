"""RabbitMQ transport for amqtrace, built on aio-pika."""

from amqtrace.rabbitmq.config import RabbitConfig
from amqtrace.rabbitmq.marshaling import from_incoming
from amqtrace.rabbitmq.subscriber import RabbitSubscriber

__all__ = ["RabbitConfig", "RabbitSubscriber", "from_incoming"]
