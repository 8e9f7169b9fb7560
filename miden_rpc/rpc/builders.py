"""Pure request builders — domain values to proto3 JSON request dicts, no I/O.

Bytes fields are base64 encoded as the canonical JSON mapping requires.
Optional filters passed as ``None`` are left out of the request entirely,
which the node reads as "no filter"; an explicit empty collection is kept.
"""
from __future__ import annotations

import base64
from typing import Any, Iterable, Mapping, TypeVar

from ..models import AccountId, Digest

_U32_MAX = 2**32 - 1

T = TypeVar("T")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _check_u32(name: str, value: int) -> int:
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"{name} must fit in an unsigned 32-bit integer, got {value}")
    return value


def _unique(items: Iterable[T]) -> list[T]:
    """Drop repeated items, keeping first-seen order."""
    seen: set[T] = set()
    out: list[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _range(block_from: int, block_to: int | None) -> dict[str, Any]:
    request: dict[str, Any] = {"block_from": _check_u32("block_from", block_from)}
    if block_to is not None:
        if block_to < block_from:
            raise ValueError(f"block_to ({block_to}) is below block_from ({block_from})")
        request["block_to"] = _check_u32("block_to", block_to)
    return request


# ---------------------------------------------------------------------------
# Primitive conversions
# ---------------------------------------------------------------------------


def digest_to_proto(digest: Digest) -> dict[str, Any]:
    return {"d0": digest.d0, "d1": digest.d1, "d2": digest.d2, "d3": digest.d3}


def note_id_to_proto(note_id: Digest) -> dict[str, Any]:
    return {"id": digest_to_proto(note_id)}


def account_id_to_proto(account_id: AccountId) -> dict[str, Any]:
    return {"id": _b64(account_id.raw)}


def _account_ids(account_ids: Iterable[AccountId]) -> list[dict[str, Any]]:
    return [account_id_to_proto(a) for a in _unique(account_ids)]


def _note_tags(note_tags: Iterable[int]) -> list[int]:
    return [_check_u32("note tag", t) for t in _unique(note_tags)]


# ---------------------------------------------------------------------------
# Sync requests
# ---------------------------------------------------------------------------


def build_sync_state_request(
    block_num: int,
    account_ids: Iterable[AccountId] | None = None,
    note_tags: Iterable[int] | None = None,
) -> dict[str, Any]:
    request: dict[str, Any] = {"block_num": _check_u32("block_num", block_num)}
    if account_ids is not None:
        request["account_ids"] = _account_ids(account_ids)
    if note_tags is not None:
        request["note_tags"] = _note_tags(note_tags)
    return request


def build_sync_notes_request(
    block_num: int, note_tags: Iterable[int] | None = None
) -> dict[str, Any]:
    request: dict[str, Any] = {"block_num": _check_u32("block_num", block_num)}
    if note_tags is not None:
        request["note_tags"] = _note_tags(note_tags)
    return request


def build_sync_nullifiers_request(
    block_from: int,
    prefixes: Iterable[int],
    prefix_len: int = 16,
    block_to: int | None = None,
) -> dict[str, Any]:
    request = _range(block_from, block_to)
    request["prefix_len"] = _check_u32("prefix_len", prefix_len)
    request["nullifiers"] = [_check_u32("nullifier prefix", p) for p in _unique(prefixes)]
    return request


def build_sync_account_vault_request(
    account_id: AccountId, block_from: int, block_to: int | None = None
) -> dict[str, Any]:
    request = _range(block_from, block_to)
    request["account_id"] = account_id_to_proto(account_id)
    return request


def build_sync_storage_maps_request(
    account_id: AccountId, block_from: int, block_to: int | None = None
) -> dict[str, Any]:
    request = _range(block_from, block_to)
    request["account_id"] = account_id_to_proto(account_id)
    return request


def build_sync_transactions_request(
    block_from: int,
    account_ids: Iterable[AccountId] | None = None,
    block_to: int | None = None,
) -> dict[str, Any]:
    request = _range(block_from, block_to)
    if account_ids is not None:
        request["account_ids"] = _account_ids(account_ids)
    return request


# ---------------------------------------------------------------------------
# Single-shot requests
# ---------------------------------------------------------------------------


def build_block_header_request(
    block_num: int | None = None, include_mmr_proof: bool = False
) -> dict[str, Any]:
    """``block_num=None`` asks for the latest header."""
    request: dict[str, Any] = {"include_mmr_proof": include_mmr_proof}
    if block_num is not None:
        request["block_num"] = _check_u32("block_num", block_num)
    return request


def build_block_number_request(block_num: int) -> dict[str, Any]:
    return {"block_num": _check_u32("block_num", block_num)}


def build_nullifier_list(nullifiers: Iterable[Digest]) -> dict[str, Any]:
    return {"nullifiers": [digest_to_proto(n) for n in _unique(nullifiers)]}


def build_check_nullifiers_by_prefix_request(
    prefix_len: int, prefixes: Iterable[int], block_num: int
) -> dict[str, Any]:
    return {
        "prefix_len": _check_u32("prefix_len", prefix_len),
        "nullifiers": [_check_u32("nullifier prefix", p) for p in _unique(prefixes)],
        "block_num": _check_u32("block_num", block_num),
    }


def build_note_id_list(note_ids: Iterable[Digest]) -> dict[str, Any]:
    return {"ids": [note_id_to_proto(n) for n in _unique(note_ids)]}


def build_note_root_request(root: Digest) -> dict[str, Any]:
    return {"root": digest_to_proto(root)}


def build_proven_transaction(proven_tx: bytes) -> dict[str, Any]:
    return {"transaction": _b64(proven_tx)}


def build_proven_batch(encoded_batch: bytes) -> dict[str, Any]:
    return {"encoded": _b64(encoded_batch)}


def build_account_proofs_request(
    account_requests: Iterable[AccountId | Mapping[str, Any]],
    include_headers: bool = False,
    code_commitments: Iterable[Digest] = (),
) -> dict[str, Any]:
    """Account requests may be bare ids or full ``AccountRequest`` dicts
    (with storage map keys), which are forwarded untouched."""
    requests: list[dict[str, Any]] = []
    for item in account_requests:
        if isinstance(item, AccountId):
            requests.append({"account_id": account_id_to_proto(item)})
        else:
            requests.append(dict(item))
    return {
        "account_requests": requests,
        "include_headers": include_headers,
        "code_commitments": [digest_to_proto(c) for c in code_commitments],
    }
