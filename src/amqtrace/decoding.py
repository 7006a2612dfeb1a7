"""Decoders turning message bodies into entities."""

import json
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


class Decoder(Protocol):
    """Converts a message body into an entity."""

    def decode(self, body: bytes) -> Any: ...


class PydanticDecoder(Generic[M]):
    """Decodes JSON bodies into a pydantic model.

    Example:
        decoder = PydanticDecoder(Flight)
        flight = decoder.decode(b'{"number": "LH400"}')
    """

    def __init__(self, model: type[M]) -> None:
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            msg = f"Expected BaseModel subclass, got {model!r}"
            raise TypeError(msg)
        self._model = model

    @property
    def model(self) -> type[M]:
        return self._model

    def decode(self, body: bytes) -> M:
        return self._model.model_validate_json(body)

    def __call__(self, body: bytes) -> M:
        return self.decode(body)


class JsonDecoder:
    """Decodes JSON bodies into plain Python objects."""

    def decode(self, body: bytes) -> Any:
        return json.loads(body)

    def __call__(self, body: bytes) -> Any:
        return self.decode(body)
