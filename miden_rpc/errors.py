"""Error taxonomy — transport, node-reported and protocol-invariant failures."""
from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    """Where a failure originated."""

    TRANSPORT = "transport"
    NODE = "node"
    PROTOCOL = "protocol"


class StatusCode(enum.IntEnum):
    """gRPC status codes as reported in ``grpc-status``."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @classmethod
    def parse(cls, raw: str | int) -> StatusCode:
        """Parse a status value, mapping unknown numbers to UNKNOWN."""
        try:
            return cls(int(raw))
        except ValueError:
            return cls.UNKNOWN


class RpcError(Exception):
    """Base class for every failure surfaced by the client.

    Carries the RPC ``method`` that failed, an inspectable ``code`` and the
    original ``message`` so callers can decide whether to retry.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.message = message
        self.code = code
        super().__init__(self._describe())

    def _describe(self) -> str:
        code = f" [{self.code}]" if self.code is not None else ""
        return f"{self.method} {self.kind.value} error{code}: {self.message}"


class TransportError(RpcError):
    """Connection, timeout, HTTP or framing failure. ``code`` is the HTTP status when known."""

    kind = ErrorKind.TRANSPORT


class NodeError(RpcError):
    """Structured failure returned by the node."""

    kind = ErrorKind.NODE

    def __init__(self, method: str, code: StatusCode, message: str) -> None:
        super().__init__(method, message, code)
        self.code: StatusCode = code

    def _describe(self) -> str:
        return f"{self.method} node error [{self.code.name}]: {self.message}"


class ProtocolError(RpcError):
    """A successful response violated a client-side invariant."""

    kind = ErrorKind.PROTOCOL


class CursorRegressionError(ProtocolError):
    """The node reported a block below the height the request started from."""

    def __init__(self, method: str, from_block: int, block_num: int) -> None:
        self.from_block = from_block
        self.block_num = block_num
        super().__init__(
            method,
            f"chain regressed: requested from block {from_block}, "
            f"node answered with block {block_num}",
        )
