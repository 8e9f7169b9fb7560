"""Protobuf codec — proto3 JSON dicts to wire bytes via registered message classes."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from google.protobuf import descriptor_pool, empty_pb2, json_format, message_factory
from google.protobuf.message import DecodeError, Message

from ..errors import ProtocolError
from .methods import get_method

logger = logging.getLogger(__name__)

# Status takes google.protobuf.Empty; keep it registered even if no node module is.
_EMPTY = empty_pb2.Empty


class ProtobufCodec:
    """Encode and decode node messages using classes from a descriptor pool.

    The node's generated ``*_pb2`` modules register their types in the
    default pool on import; the codec looks request and response classes up
    by full name from the method table.
    """

    def __init__(
        self,
        pool: descriptor_pool.DescriptorPool | None = None,
        classes: Mapping[str, type[Message]] | None = None,
    ) -> None:
        self._pool = pool or descriptor_pool.Default()
        self._classes: dict[str, type[Message]] = dict(classes or {})

    @classmethod
    def from_classes(cls, classes: Mapping[str, type[Message]]) -> ProtobufCodec:
        """Build a codec from explicit ``{full type name: message class}`` pairs."""
        return cls(classes=classes)

    def message_class(self, type_name: str) -> type[Message]:
        cached = self._classes.get(type_name)
        if cached is not None:
            return cached
        try:
            descriptor = self._pool.FindMessageTypeByName(type_name)
        except KeyError:
            raise KeyError(
                f"Protobuf message type '{type_name}' is not registered; "
                "import the node's generated modules first"
            ) from None
        message_cls = message_factory.GetMessageClass(descriptor)
        self._classes[type_name] = message_cls
        return message_cls

    def encode(self, method: str, request: Mapping[str, Any]) -> bytes:
        rpc = get_method(method)
        message = self.message_class(rpc.request_type)()
        try:
            json_format.ParseDict(dict(request), message)
        except json_format.ParseError as e:
            raise ValueError(f"{method} request does not match {rpc.request_type}: {e}") from e
        return message.SerializeToString()

    def decode(self, method: str, payload: bytes) -> dict[str, Any]:
        rpc = get_method(method)
        message = self.message_class(rpc.response_type)()
        try:
            message.ParseFromString(payload)
        except DecodeError as e:
            logger.error("Undecodable %s response (%d bytes)", method, len(payload))
            raise ProtocolError(method, f"cannot decode {rpc.response_type}: {e}") from e
        return json_format.MessageToDict(message, preserving_proto_field_name=True)
