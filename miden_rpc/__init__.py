"""Async client for the Miden node RPC interface."""
from .config import ClientConfig, NodeConfig, SyncConfig, load_config
from .errors import (
    CursorRegressionError,
    ErrorKind,
    NodeError,
    ProtocolError,
    RpcError,
    StatusCode,
    TransportError,
)
from .models import AccountId, Digest, SyncDelta, SyncFilter
from .services import ChainFollower, MidenRpcClient
from .sync import ChainCursor, SyncReconciler

__version__ = "0.1.0"

__all__ = [
    "AccountId",
    "ChainCursor",
    "ChainFollower",
    "ClientConfig",
    "CursorRegressionError",
    "Digest",
    "ErrorKind",
    "MidenRpcClient",
    "NodeConfig",
    "NodeError",
    "ProtocolError",
    "RpcError",
    "StatusCode",
    "SyncConfig",
    "SyncDelta",
    "SyncFilter",
    "SyncReconciler",
    "TransportError",
    "load_config",
]
