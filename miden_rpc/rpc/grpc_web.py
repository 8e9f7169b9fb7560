"""gRPC-Web transport over aiohttp."""
from __future__ import annotations

import asyncio
import logging
import ssl
import struct
from typing import Any, Iterator, Mapping
from urllib.parse import unquote

import aiohttp
import certifi

from ..config import NodeConfig
from ..errors import NodeError, StatusCode, TransportError
from ..interfaces.codec import Codec
from .methods import get_method

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/grpc-web+proto"

_HEADERS = {
    "content-type": CONTENT_TYPE,
    "accept": CONTENT_TYPE,
    "x-grpc-web": "1",
}

_FRAME_HEADER = struct.Struct(">BI")
_COMPRESSED_FLAG = 0x01
_TRAILER_FLAG = 0x80


def encode_frame(payload: bytes, flag: int = 0) -> bytes:
    """Length-prefix a message: flag byte, 4-byte big-endian length, payload."""
    return _FRAME_HEADER.pack(flag, len(payload)) + payload


def decode_frames(body: bytes) -> Iterator[tuple[int, bytes]]:
    """Yield ``(flag, data)`` for every frame in a response body."""
    offset = 0
    while offset < len(body):
        if len(body) - offset < _FRAME_HEADER.size:
            raise ValueError("truncated frame header")
        flag, length = _FRAME_HEADER.unpack_from(body, offset)
        offset += _FRAME_HEADER.size
        if len(body) - offset < length:
            raise ValueError(f"frame declares {length} bytes, {len(body) - offset} available")
        yield flag, body[offset : offset + length]
        offset += length


def parse_trailers(block: bytes) -> dict[str, str]:
    """Parse an HTTP/1-style trailer block (``key: value`` lines)."""
    trailers: dict[str, str] = {}
    for line in block.decode("utf-8", errors="replace").split("\r\n"):
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        trailers[key.strip().lower()] = value.strip()
    return trailers


class GrpcWebTransport:
    """Unary gRPC-Web calls against a single node endpoint.

    One ``aiohttp.ClientSession`` is opened lazily and reused until
    :meth:`close`. Failures are never retried here.
    """

    def __init__(self, config: NodeConfig, codec: Codec) -> None:
        self.endpoint = config.endpoint.rstrip("/")
        self.timeout = config.timeout
        self.verify_tls = config.verify_tls
        self._codec = codec
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> GrpcWebTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            ssl_context: ssl.SSLContext | bool = False
            if self.verify_tls:
                ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def call(self, method: str, request: Mapping[str, Any]) -> dict[str, Any]:
        rpc = get_method(method)
        body = encode_frame(self._codec.encode(method, request))
        url = f"{self.endpoint}{rpc.path}"

        session = await self._ensure_session()
        logger.debug("RPC %s -> %s (%d bytes)", method, url, len(body))
        try:
            async with session.post(url, data=body, headers=_HEADERS) as response:
                if response.status != 200:
                    text = await response.text()
                    logger.warning("RPC %s failed with HTTP %s", method, response.status)
                    raise TransportError(
                        method, f"HTTP {response.status}: {text[:200]}", code=response.status
                    )
                headers = {k.lower(): v for k, v in response.headers.items()}
                payload = await response.read()
        except aiohttp.ClientError as e:
            logger.warning("RPC %s to %s failed: %s", method, self.endpoint, e)
            raise TransportError(method, str(e) or type(e).__name__) from e
        except asyncio.TimeoutError as e:
            logger.warning("RPC %s timed out after %ss", method, self.timeout)
            raise TransportError(method, f"timed out after {self.timeout}s") from e

        message = self._unwrap(method, headers, payload)
        return self._codec.decode(method, message)

    @staticmethod
    def _unwrap(method: str, headers: dict[str, str], payload: bytes) -> bytes:
        """Extract the message frame and enforce the grpc-status."""
        # Trailers-only responses put the status in the headers.
        trailers = {k: v for k, v in headers.items() if k.startswith("grpc-")}
        message: bytes | None = None
        try:
            for flag, data in decode_frames(payload):
                if flag & _TRAILER_FLAG:
                    trailers.update(parse_trailers(data))
                elif flag & _COMPRESSED_FLAG:
                    raise TransportError(method, "compressed gRPC-Web frames are not supported")
                elif message is None:
                    message = data
                else:
                    raise TransportError(method, "more than one message frame in a unary response")
        except ValueError as e:
            raise TransportError(method, f"malformed gRPC-Web body: {e}") from e

        status = trailers.get("grpc-status")
        if status is None:
            raise TransportError(method, "response carried no grpc-status")

        code = StatusCode.parse(status)
        if code is not StatusCode.OK:
            detail = unquote(trailers.get("grpc-message", ""))
            logger.warning("RPC %s rejected by node: %s %s", method, code.name, detail)
            raise NodeError(method, code, detail)

        return message or b""

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
