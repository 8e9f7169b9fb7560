"""Chain follower — caller-side loop that drives repeated state syncs."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..config import SyncConfig
from ..errors import CursorRegressionError, RpcError, TransportError
from ..models import SyncDelta
from ..sync.cursor import ChainCursor
from .client import MidenRpcClient

logger = logging.getLogger(__name__)

DeltaHandler = Callable[[SyncDelta], Awaitable[None]]


class ChainFollower:
    """Follows the chain with ``sync_state``, holding the cursor between calls.

    In :meth:`run` the cursor only moves after the handler has returned for
    a delta, so a handler failure leaves the delta to be fetched again.
    """

    def __init__(self, client: MidenRpcClient, config: SyncConfig | None = None) -> None:
        self._client = client
        self._config = config or SyncConfig()
        self.cursor = ChainCursor(self._config.start_block)
        self.restarts = 0
        self._running = False

    @property
    def block_num(self) -> int:
        return self.cursor.block_num

    async def fetch(self) -> SyncDelta:
        """Sync once from the cursor without moving it."""
        sync_filter = self._config.filter
        return await self._client.sync_state(
            self.cursor.block_num, sync_filter.account_ids, sync_filter.note_tags
        )

    async def step(self) -> SyncDelta:
        """Sync once from the cursor and advance it to the returned block."""
        delta = await self.fetch()
        self.cursor.advance(delta.block_num)
        return delta

    def stop(self) -> None:
        self._running = False

    def _restart(self, error: CursorRegressionError) -> None:
        logger.warning(
            "Chain regressed (%s); restarting sync from block %d",
            error.message,
            self._config.start_block,
        )
        self.cursor = ChainCursor(self._config.start_block)
        self.restarts += 1

    async def run(self, handler: DeltaHandler, max_steps: int | None = None) -> int:
        """Sync until stopped or ``max_steps`` deltas were handled; returns the count."""
        self._running = True
        steps = 0
        logger.info("Following chain from block %d", self.cursor.block_num)

        try:
            while self._running and (max_steps is None or steps < max_steps):
                try:
                    delta = await self.fetch()
                except TransportError as e:
                    logger.warning(
                        "Sync from block %d failed, retrying in %ss: %s",
                        self.cursor.block_num,
                        self._config.retry_backoff_seconds,
                        e,
                    )
                    await asyncio.sleep(self._config.retry_backoff_seconds)
                    continue
                except CursorRegressionError as e:
                    if self._config.on_regression != "restart":
                        logger.error("Stopping chain follower: %s", e)
                        raise
                    self._restart(e)
                    continue
                except RpcError as e:
                    logger.error("Stopping chain follower: %s", e)
                    raise

                await handler(delta)
                self.cursor.advance(delta.block_num)
                steps += 1

                if not delta.has_more:
                    await asyncio.sleep(self._config.poll_interval_seconds)
        finally:
            self._running = False

        logger.info("Chain follower stopped at block %d", self.cursor.block_num)
        return steps
