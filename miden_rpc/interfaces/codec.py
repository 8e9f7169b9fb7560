"""Codec protocol — message encoding for a transport."""
from typing import Any, Mapping, Protocol


class Codec(Protocol):
    """Abstract interface for turning request dicts into wire bytes and back."""

    def encode(self, method: str, request: Mapping[str, Any]) -> bytes: ...

    def decode(self, method: str, payload: bytes) -> dict[str, Any]: ...
