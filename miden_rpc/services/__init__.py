"""Service modules"""
from .client import MidenRpcClient
from .follower import ChainFollower

__all__ = ["MidenRpcClient", "ChainFollower"]
