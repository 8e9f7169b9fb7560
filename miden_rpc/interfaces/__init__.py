"""Protocol interfaces for the Miden RPC client."""
from .codec import Codec
from .transport import Transport

__all__ = ["Codec", "Transport"]
