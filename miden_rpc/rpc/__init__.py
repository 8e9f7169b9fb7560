"""Wire layer: method table, request builders, response parsers, transport."""
from .codec import ProtobufCodec
from .grpc_web import GrpcWebTransport
from .methods import METHODS, RpcMethod, get_method

__all__ = ["GrpcWebTransport", "METHODS", "ProtobufCodec", "RpcMethod", "get_method"]
