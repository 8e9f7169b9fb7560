"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_FELT_BYTES = 8
_DIGEST_HEX_LEN = 4 * _FELT_BYTES * 2


def _strip_hex(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


@dataclass(frozen=True)
class Digest:
    """A word of four field elements (note ids, nullifiers, commitments, roots)."""

    d0: int
    d1: int
    d2: int
    d3: int

    @classmethod
    def from_hex(cls, value: str) -> Digest:
        """Parse ``0x`` + 64 hex chars, each element little-endian."""
        raw = _strip_hex(value)
        if len(raw) != _DIGEST_HEX_LEN:
            raise ValueError(f"Digest hex must be {_DIGEST_HEX_LEN} chars, got {len(raw)}")
        data = bytes.fromhex(raw)
        felts = [
            int.from_bytes(data[i : i + _FELT_BYTES], "little")
            for i in range(0, len(data), _FELT_BYTES)
        ]
        return cls(*felts)

    def to_bytes(self) -> bytes:
        return b"".join(
            felt.to_bytes(_FELT_BYTES, "little")
            for felt in (self.d0, self.d1, self.d2, self.d3)
        )

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    def __str__(self) -> str:
        return self.to_hex()


# Note ids and nullifiers are digests on the wire.
NoteId = Digest
Nullifier = Digest


@dataclass(frozen=True)
class AccountId:
    """Opaque account identifier bytes."""

    raw: bytes

    @classmethod
    def from_hex(cls, value: str) -> AccountId:
        return cls(bytes.fromhex(_strip_hex(value)))

    def to_hex(self) -> str:
        return "0x" + self.raw.hex()

    def __str__(self) -> str:
        return self.to_hex()


@dataclass(frozen=True)
class BlockHeader:
    """Block header fields the client reads; everything else stays in ``raw``."""

    block_num: int
    version: int = 0
    timestamp: int = 0
    prev_block_commitment: Digest | None = None
    chain_commitment: Digest | None = None
    account_root: Digest | None = None
    nullifier_root: Digest | None = None
    note_root: Digest | None = None
    tx_commitment: Digest | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class BlockHeaderWithProof:
    """Header plus optional MMR inclusion path, passed through uninterpreted."""

    header: BlockHeader
    mmr_path: dict[str, Any] | None = None
    chain_length: int | None = None

    @property
    def has_proof(self) -> bool:
        return bool(self.mmr_path)


@dataclass(frozen=True)
class NodeStatus:
    version: str
    chain_tip: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class NullifierProof:
    """Sparse Merkle tree opening for a nullifier, passed through uninterpreted."""

    nullifier: Digest
    proof: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommittedNote:
    note_id: Digest
    block_num: int
    note_index: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    inclusion_path: dict[str, Any] = field(default_factory=dict)
    details: bytes | None = None


# ---------------------------------------------------------------------------
# Sync records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoteSyncRecord:
    note_id: Digest
    block_num: int
    note_index: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    inclusion_path: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NullifierUpdate:
    nullifier: Digest
    block_num: int


@dataclass(frozen=True)
class AccountSummary:
    account_id: AccountId
    account_commitment: Digest | None
    block_num: int


@dataclass(frozen=True)
class TransactionSummary:
    transaction_id: Digest
    account_id: AccountId | None
    block_num: int


@dataclass(frozen=True)
class AccountVaultUpdate:
    block_num: int
    vault_key: Digest | None = None
    asset: dict[str, Any] | None = None

    @property
    def is_removal(self) -> bool:
        """An update without an asset removes the entry at ``vault_key``."""
        return self.asset is None


@dataclass(frozen=True)
class StorageMapUpdate:
    block_num: int
    slot_index: int
    key: Digest
    value: Digest


@dataclass(frozen=True)
class TransactionRecord:
    block_num: int
    header: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sync filter and delta
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncFilter:
    """Accounts and note tags a sync call asks about.

    ``None`` means no filter for that category; an empty tuple is an explicit
    empty filter and is sent as such.
    """

    account_ids: tuple[AccountId, ...] | None = None
    note_tags: tuple[int, ...] | None = None


@dataclass(frozen=True)
class SyncDelta:
    """Reconciled result of a single sync call."""

    from_block: int
    block_num: int
    chain_tip: int
    block_header: BlockHeader | None = None
    mmr_delta: dict[str, Any] | None = None
    mmr_path: dict[str, Any] | None = None
    notes: tuple[NoteSyncRecord, ...] = ()
    nullifiers: tuple[NullifierUpdate, ...] = ()
    accounts: tuple[AccountSummary, ...] = ()
    vault_updates: tuple[AccountVaultUpdate, ...] = ()
    storage_map_updates: tuple[StorageMapUpdate, ...] = ()
    transactions: tuple[TransactionSummary, ...] = ()
    transaction_records: tuple[TransactionRecord, ...] = ()
    # Range variants include ``block_num`` in the page; SyncState/SyncNotes do not.
    inclusive: bool = False

    @property
    def next_block(self) -> int:
        """Height to pass as ``from_block`` on the next call.

        A range page already covers ``block_num``, so the next page starts
        one block later.
        """
        if self.inclusive and self.has_more:
            return self.block_num + 1
        return self.block_num

    @property
    def has_more(self) -> bool:
        return self.block_num < self.chain_tip

    @property
    def is_empty(self) -> bool:
        return not (
            self.notes
            or self.nullifiers
            or self.accounts
            or self.vault_updates
            or self.storage_map_updates
            or self.transactions
            or self.transaction_records
        )

    @property
    def reached_head(self) -> bool:
        """No progress and nothing returned: the caller should back off."""
        return self.block_num == self.from_block and self.is_empty
