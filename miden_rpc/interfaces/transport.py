"""Transport protocol — request/response channel to the node."""
from typing import Any, Mapping, Protocol


class Transport(Protocol):
    """Abstract interface for issuing one RPC and awaiting its response.

    Implementations raise ``TransportError`` for channel failures and
    ``NodeError`` for non-OK statuses reported by the node.
    """

    async def call(self, method: str, request: Mapping[str, Any]) -> dict[str, Any]: ...

    async def close(self) -> None: ...
