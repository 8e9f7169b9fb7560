"""Sync reconciler — one sync request per call, validated into a ``SyncDelta``.

The reconciler holds no cursor. Each call sends exactly one request built
from its arguments and either returns a complete delta or raises; callers
continue from ``delta.next_block`` themselves. Because nothing is mutated
until a whole response has been validated, a cancelled or failed call
leaves the caller's state untouched and can be retried with the same height.
"""
from __future__ import annotations

import logging
from operator import attrgetter
from typing import Any, Iterable, Mapping, TypeVar

from ..errors import CursorRegressionError, ProtocolError
from ..interfaces.transport import Transport
from ..models import AccountId, SyncDelta
from ..rpc import builders
from ..rpc.parser import (
    parse_account_summary,
    parse_block_header,
    parse_note_sync_record,
    parse_nullifier_update,
    parse_storage_map_update,
    parse_transaction_record,
    parse_transaction_summary,
    parse_vault_update,
    parsing,
    require,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ITEM_FIELDS = (
    "notes",
    "nullifiers",
    "accounts",
    "vault_updates",
    "storage_map_updates",
    "transactions",
    "transaction_records",
)


def _by_block(items: Iterable[T]) -> tuple[T, ...]:
    """Order records by block number, keeping node order within a block."""
    return tuple(sorted(items, key=attrgetter("block_num")))


def page_bounds(response: Mapping[str, Any]) -> tuple[int, int]:
    """Return ``(block_num, chain_tip)`` for a paginated sync response.

    Newer nodes nest the bounds in ``pagination_info``; older ones put
    ``chain_tip`` and ``block_num``/``block_number`` at the top level.
    """
    info = response.get("pagination_info")
    if info is None:
        info = response
    block_num = info.get("block_num", info.get("block_number", 0))
    return int(block_num), int(info.get("chain_tip", 0))


def validate_delta(method: str, delta: SyncDelta, to_block: int | None = None) -> SyncDelta:
    """Enforce height invariants on a reconciled delta.

    Raises:
        CursorRegressionError: the new block is below the requested height.
        ProtocolError: the new block exceeds the chain tip or the requested
            upper bound, or an item lies outside ``[from_block, block_num]``.
    """
    if delta.block_num < delta.from_block:
        logger.error(
            "%s regressed: requested from %d, got %d", method, delta.from_block, delta.block_num
        )
        raise CursorRegressionError(method, delta.from_block, delta.block_num)

    if delta.block_num > delta.chain_tip:
        raise ProtocolError(
            method, f"block {delta.block_num} is beyond the reported chain tip {delta.chain_tip}"
        )

    if to_block is not None and delta.block_num > to_block:
        raise ProtocolError(
            method, f"block {delta.block_num} is beyond the requested upper bound {to_block}"
        )

    for name in _ITEM_FIELDS:
        for item in getattr(delta, name):
            if not delta.from_block <= item.block_num <= delta.block_num:
                logger.error("%s returned %s outside the synced range", method, name)
                raise ProtocolError(
                    method,
                    f"{name} entry at block {item.block_num} is outside "
                    f"[{delta.from_block}, {delta.block_num}]",
                )
    return delta


class SyncReconciler:
    """Issues single-hop sync requests and reconciles their responses."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def _call(self, method: str, request: dict[str, Any]) -> dict[str, Any]:
        # Transport and node errors propagate untouched.
        return await self._transport.call(method, request)

    @staticmethod
    def _log(method: str, delta: SyncDelta) -> None:
        logger.debug(
            "%s %d -> %d (tip %d): %s",
            method,
            delta.from_block,
            delta.block_num,
            delta.chain_tip,
            ", ".join(f"{len(getattr(delta, f))} {f}" for f in _ITEM_FIELDS if getattr(delta, f))
            or "no changes",
        )

    # ------------------------------------------------------------------
    # Full state sync
    # ------------------------------------------------------------------

    async def sync_state(
        self,
        from_block: int,
        account_ids: Iterable[AccountId] | None = None,
        note_tags: Iterable[int] | None = None,
    ) -> SyncDelta:
        """Sync accounts, transactions and notes from ``from_block``.

        The node answers with the next block holding a match (or the chain
        tip); that block's number is the delta's ``block_num``.
        """
        method = "SyncState"
        request = builders.build_sync_state_request(from_block, account_ids, note_tags)
        response = await self._call(method, request)

        with parsing(method):
            header = parse_block_header(require(response, "block_header"))
            block_num = header.block_num
            delta = SyncDelta(
                from_block=from_block,
                block_num=block_num,
                chain_tip=int(response.get("chain_tip", 0)),
                block_header=header,
                mmr_delta=response.get("mmr_delta"),
                notes=tuple(
                    parse_note_sync_record(n, block_num) for n in response.get("notes", [])
                ),
                accounts=_by_block(parse_account_summary(a) for a in response.get("accounts", [])),
                transactions=_by_block(
                    parse_transaction_summary(t) for t in response.get("transactions", [])
                ),
            )

        validate_delta(method, delta)
        self._log(method, delta)
        return delta

    # ------------------------------------------------------------------
    # Single-category variants
    # ------------------------------------------------------------------

    async def sync_notes(
        self, from_block: int, note_tags: Iterable[int] | None = None
    ) -> SyncDelta:
        method = "SyncNotes"
        request = builders.build_sync_notes_request(from_block, note_tags)
        response = await self._call(method, request)

        with parsing(method):
            header = parse_block_header(require(response, "block_header"))
            delta = SyncDelta(
                from_block=from_block,
                block_num=header.block_num,
                chain_tip=int(response.get("chain_tip", 0)),
                block_header=header,
                mmr_path=response.get("mmr_path"),
                notes=tuple(
                    parse_note_sync_record(n, header.block_num)
                    for n in response.get("notes", [])
                ),
            )

        validate_delta(method, delta)
        self._log(method, delta)
        return delta

    async def sync_nullifiers(
        self,
        from_block: int,
        prefixes: Iterable[int],
        prefix_len: int = 16,
        to_block: int | None = None,
    ) -> SyncDelta:
        method = "SyncNullifiers"
        request = builders.build_sync_nullifiers_request(from_block, prefixes, prefix_len, to_block)
        response = await self._call(method, request)

        with parsing(method):
            block_num, chain_tip = page_bounds(response)
            delta = SyncDelta(
                from_block=from_block,
                block_num=block_num,
                chain_tip=chain_tip,
                inclusive=True,
                nullifiers=_by_block(
                    parse_nullifier_update(n) for n in response.get("nullifiers", [])
                ),
            )

        validate_delta(method, delta, to_block)
        self._log(method, delta)
        return delta

    async def sync_account_vault(
        self, account_id: AccountId, from_block: int, to_block: int | None = None
    ) -> SyncDelta:
        method = "SyncAccountVault"
        request = builders.build_sync_account_vault_request(account_id, from_block, to_block)
        response = await self._call(method, request)

        with parsing(method):
            block_num, chain_tip = page_bounds(response)
            delta = SyncDelta(
                from_block=from_block,
                block_num=block_num,
                chain_tip=chain_tip,
                inclusive=True,
                vault_updates=_by_block(parse_vault_update(u) for u in response.get("updates", [])),
            )

        validate_delta(method, delta, to_block)
        self._log(method, delta)
        return delta

    async def sync_storage_maps(
        self, account_id: AccountId, from_block: int, to_block: int | None = None
    ) -> SyncDelta:
        method = "SyncStorageMaps"
        request = builders.build_sync_storage_maps_request(account_id, from_block, to_block)
        response = await self._call(method, request)

        with parsing(method):
            block_num, chain_tip = page_bounds(response)
            delta = SyncDelta(
                from_block=from_block,
                block_num=block_num,
                chain_tip=chain_tip,
                inclusive=True,
                storage_map_updates=_by_block(
                    parse_storage_map_update(u) for u in response.get("updates", [])
                ),
            )

        validate_delta(method, delta, to_block)
        self._log(method, delta)
        return delta

    async def sync_transactions(
        self,
        from_block: int,
        account_ids: Iterable[AccountId] | None = None,
        to_block: int | None = None,
    ) -> SyncDelta:
        method = "SyncTransactions"
        request = builders.build_sync_transactions_request(from_block, account_ids, to_block)
        response = await self._call(method, request)

        with parsing(method):
            block_num, chain_tip = page_bounds(response)
            records = response.get("transaction_records", response.get("transactions", []))
            delta = SyncDelta(
                from_block=from_block,
                block_num=block_num,
                chain_tip=chain_tip,
                inclusive=True,
                transaction_records=_by_block(parse_transaction_record(r) for r in records),
            )

        validate_delta(method, delta, to_block)
        self._log(method, delta)
        return delta
