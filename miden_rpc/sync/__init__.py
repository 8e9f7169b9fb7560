"""State synchronization: cursor and single-hop reconciler."""
from .cursor import ChainCursor
from .reconciler import SyncReconciler, page_bounds, validate_delta

__all__ = ["ChainCursor", "SyncReconciler", "page_bounds", "validate_delta"]
