"""Exceptions raised by amqtrace."""


class AmqtraceError(Exception):
    """Base class for amqtrace errors."""


class DecodeError(AmqtraceError):
    """Message body could not be decoded into an entity.

    The decoder's original exception is kept as ``__cause__``.
    """


class ProcessTimeoutError(AmqtraceError, TimeoutError):
    """Processor did not finish within the configured timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Processing exceeded {timeout}s")
        self.timeout = timeout
