"""Pure parsing functions for node responses — no I/O.

Responses arrive in the proto3 JSON mapping: 64-bit integers may be decimal
strings, bytes are base64, and zero-valued scalars are omitted, so every
scalar read falls back to the proto default.
"""
from __future__ import annotations

import base64
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Sequence

from ..errors import ProtocolError
from ..models import (
    AccountId,
    AccountSummary,
    AccountVaultUpdate,
    BlockHeader,
    BlockHeaderWithProof,
    CommittedNote,
    Digest,
    NodeStatus,
    NoteSyncRecord,
    NullifierProof,
    NullifierUpdate,
    StorageMapUpdate,
    TransactionRecord,
    TransactionSummary,
)


class MissingFieldError(ValueError):
    """A required field is absent from a response message."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing required field '{field}'")


@contextmanager
def parsing(method: str) -> Iterator[None]:
    """Turn malformed-response errors raised while parsing into ``ProtocolError``."""
    try:
        yield
    except (ValueError, TypeError) as e:
        raise ProtocolError(method, f"malformed response: {e}") from e


def require(raw: Mapping[str, Any], key: str) -> Any:
    value = raw.get(key)
    if value is None:
        raise MissingFieldError(key)
    return value


def _int(raw: Mapping[str, Any], key: str, default: int = 0) -> int:
    return int(raw.get(key, default))


def _bytes(value: str | None) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value, validate=True)


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def parse_digest(raw: Mapping[str, Any]) -> Digest:
    return Digest(
        d0=_int(raw, "d0"), d1=_int(raw, "d1"), d2=_int(raw, "d2"), d3=_int(raw, "d3")
    )


def parse_optional_digest(raw: Mapping[str, Any] | None) -> Digest | None:
    return parse_digest(raw) if raw is not None else None


def parse_note_id(raw: Mapping[str, Any]) -> Digest:
    """Note ids are wrapped (``{"id": digest}``) in some messages and bare in others."""
    inner = raw.get("id")
    return parse_digest(inner if isinstance(inner, Mapping) else raw)


def parse_account_id(raw: Mapping[str, Any]) -> AccountId:
    return AccountId(_bytes(raw.get("id")))


def parse_optional_account_id(raw: Mapping[str, Any] | None) -> AccountId | None:
    return parse_account_id(raw) if raw is not None else None


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def parse_block_header(raw: Mapping[str, Any]) -> BlockHeader:
    return BlockHeader(
        block_num=_int(raw, "block_num"),
        version=_int(raw, "version"),
        timestamp=_int(raw, "timestamp"),
        prev_block_commitment=parse_optional_digest(raw.get("prev_block_commitment")),
        chain_commitment=parse_optional_digest(raw.get("chain_commitment")),
        account_root=parse_optional_digest(raw.get("account_root")),
        nullifier_root=parse_optional_digest(raw.get("nullifier_root")),
        note_root=parse_optional_digest(raw.get("note_root")),
        tx_commitment=parse_optional_digest(raw.get("tx_commitment")),
        raw=dict(raw),
    )


def parse_block_header_response(raw: Mapping[str, Any]) -> BlockHeaderWithProof:
    header = parse_block_header(require(raw, "block_header"))
    chain_length = raw.get("chain_length")
    return BlockHeaderWithProof(
        header=header,
        mmr_path=dict(raw["mmr_path"]) if raw.get("mmr_path") else None,
        chain_length=int(chain_length) if chain_length is not None else None,
    )


def parse_maybe_block(raw: Mapping[str, Any]) -> bytes | None:
    block = raw.get("block")
    return _bytes(block) if block is not None else None


# ---------------------------------------------------------------------------
# Sync records
# ---------------------------------------------------------------------------


def parse_note_sync_record(raw: Mapping[str, Any], block_num: int) -> NoteSyncRecord:
    """SyncState/SyncNotes records carry no height; they belong to the response block."""
    return NoteSyncRecord(
        note_id=parse_note_id(require(raw, "note_id")),
        block_num=block_num,
        note_index=_int(raw, "note_index_in_block", _int(raw, "note_index")),
        metadata=dict(raw.get("metadata", {})),
        inclusion_path=dict(raw.get("inclusion_path", raw.get("merkle_path", {}))),
    )


def parse_nullifier_update(raw: Mapping[str, Any]) -> NullifierUpdate:
    return NullifierUpdate(
        nullifier=parse_digest(require(raw, "nullifier")),
        block_num=_int(raw, "block_num"),
    )


def parse_account_summary(raw: Mapping[str, Any]) -> AccountSummary:
    return AccountSummary(
        account_id=parse_account_id(require(raw, "account_id")),
        account_commitment=parse_optional_digest(raw.get("account_commitment")),
        block_num=_int(raw, "block_num"),
    )


def parse_transaction_summary(raw: Mapping[str, Any]) -> TransactionSummary:
    return TransactionSummary(
        transaction_id=parse_note_id(require(raw, "transaction_id")),
        account_id=parse_optional_account_id(raw.get("account_id")),
        block_num=_int(raw, "block_num"),
    )


def parse_vault_update(raw: Mapping[str, Any]) -> AccountVaultUpdate:
    asset = raw.get("asset")
    return AccountVaultUpdate(
        block_num=_int(raw, "block_num"),
        vault_key=parse_optional_digest(raw.get("vault_key")),
        asset=dict(asset) if asset is not None else None,
    )


def parse_storage_map_update(raw: Mapping[str, Any]) -> StorageMapUpdate:
    return StorageMapUpdate(
        block_num=_int(raw, "block_num"),
        slot_index=_int(raw, "slot_index"),
        key=parse_digest(require(raw, "key")),
        value=parse_digest(require(raw, "value")),
    )


def parse_transaction_record(raw: Mapping[str, Any]) -> TransactionRecord:
    return TransactionRecord(
        block_num=_int(raw, "block_num"),
        header=dict(raw.get("transaction_header", {})),
    )


# ---------------------------------------------------------------------------
# Single-shot responses
# ---------------------------------------------------------------------------


def parse_status(raw: Mapping[str, Any]) -> NodeStatus:
    store = raw.get("store") or {}
    chain_tip = store.get("chain_tip")
    return NodeStatus(
        version=str(raw.get("version", "")),
        chain_tip=int(chain_tip) if chain_tip is not None else None,
        raw=dict(raw),
    )


def parse_nullifier_proofs(
    raw: Mapping[str, Any], nullifiers: Sequence[Digest]
) -> tuple[NullifierProof, ...]:
    """Proofs come back in request order, one per nullifier in the (de-duplicated) request."""
    proofs = raw.get("proofs", [])
    if len(proofs) != len(nullifiers):
        raise ValueError(
            f"expected {len(nullifiers)} nullifier proofs, got {len(proofs)}"
        )
    return tuple(
        NullifierProof(nullifier=n, proof=dict(p)) for n, p in zip(nullifiers, proofs)
    )


def parse_committed_note(raw: Mapping[str, Any]) -> CommittedNote:
    note = raw.get("note") or {}
    inclusion = raw.get("inclusion_proof") or {}
    note_id = inclusion.get("note_id") or note.get("note_id")
    if note_id is None:
        raise MissingFieldError("note_id")
    details = note.get("details")
    return CommittedNote(
        note_id=parse_note_id(note_id),
        block_num=_int(inclusion, "block_num"),
        note_index=_int(inclusion, "note_index_in_block"),
        metadata=dict(note.get("metadata", {})),
        inclusion_path=dict(inclusion.get("inclusion_path", {})),
        details=_bytes(details) if details is not None else None,
    )


def parse_committed_notes(raw: Mapping[str, Any]) -> tuple[CommittedNote, ...]:
    return tuple(parse_committed_note(n) for n in raw.get("notes", []))


def parse_nullifier_updates(raw: Mapping[str, Any]) -> tuple[NullifierUpdate, ...]:
    return tuple(parse_nullifier_update(n) for n in raw.get("nullifiers", []))


def extract_account_commitment(raw: Mapping[str, Any]) -> str:
    """Hex commitment from an ``AccountDetails`` response."""
    summary = require(raw, "summary")
    return parse_digest(require(summary, "account_commitment")).to_hex()


def parse_submit_response(raw: Mapping[str, Any]) -> int:
    return _int(raw, "block_height")


def parse_maybe_note_script(raw: Mapping[str, Any]) -> dict[str, Any] | None:
    script = raw.get("script")
    return dict(script) if script is not None else None
