"""Chain cursor — the last block height a caller has fully ingested."""
from __future__ import annotations

import logging

from ..errors import CursorRegressionError

logger = logging.getLogger(__name__)


class ChainCursor:
    """Monotonically non-decreasing block height.

    Only :meth:`advance` moves it, and only forwards; an equal height is a
    no-op and a lower one raises ``CursorRegressionError``.
    """

    def __init__(self, block_num: int = 0) -> None:
        if block_num < 0:
            raise ValueError(f"Cursor height cannot be negative, got {block_num}")
        self._block_num = block_num

    @property
    def block_num(self) -> int:
        return self._block_num

    def advance(self, block_num: int, method: str = "SyncState") -> bool:
        """Move to ``block_num``; returns whether the height changed."""
        if block_num < self._block_num:
            raise CursorRegressionError(method, self._block_num, block_num)
        if block_num == self._block_num:
            return False
        logger.debug("Cursor advanced %d -> %d", self._block_num, block_num)
        self._block_num = block_num
        return True

    def __repr__(self) -> str:
        return f"ChainCursor(block_num={self._block_num})"
