"""Delivery - one message as received from a queue."""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

SettleFunc = Callable[[], Awaitable[None]]


@dataclass(frozen=True, eq=False)
class Delivery:
    """A message delivered from a queue.

    Holds the body plus the broker metadata needed for tracing. Settlement
    (ack/nack) belongs to the transport; the callbacks are optional so a
    Delivery can be built by hand in tests.
    """

    body: bytes
    headers: Mapping[str, Any] = field(default_factory=dict)
    queue: str = ""
    exchange: str = ""
    routing_key: str = ""
    content_length: int | None = None
    message_id: str | None = None
    _ack_func: SettleFunc | None = field(default=None, repr=False)
    _nack_func: SettleFunc | None = field(default=None, repr=False)
    _state: dict[str, bool] = field(
        default_factory=lambda: {"acked": False, "nacked": False},
        repr=False,
    )

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            object.__setattr__(self, "body", self.body.encode("utf-8"))

    @property
    def acked(self) -> bool:
        return self._state["acked"]

    @property
    def nacked(self) -> bool:
        return self._state["nacked"]

    async def ack(self) -> None:
        """Acknowledge the delivery."""
        if self.acked:
            msg = "Delivery already acked"
            raise ValueError(msg)
        if self.nacked:
            msg = "Delivery has been nacked"
            raise ValueError(msg)
        self._state["acked"] = True
        if self._ack_func is not None:
            await self._ack_func()

    async def nack(self) -> None:
        """Reject the delivery."""
        if self.nacked:
            msg = "Delivery already nacked"
            raise ValueError(msg)
        if self.acked:
            msg = "Delivery has been acked"
            raise ValueError(msg)
        self._state["nacked"] = True
        if self._nack_func is not None:
            await self._nack_func()
