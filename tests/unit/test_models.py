"""Unit tests for data models."""
from __future__ import annotations

import pytest

from miden_rpc.models import (
    AccountId,
    AccountSummary,
    AccountVaultUpdate,
    BlockHeader,
    BlockHeaderWithProof,
    Digest,
    NoteSyncRecord,
    SyncDelta,
)

HEX_1234 = (
    "0x"
    "0100000000000000"
    "0200000000000000"
    "0300000000000000"
    "0400000000000000"
)


class TestDigest:
    def test_to_hex_is_little_endian_per_element(self) -> None:
        assert Digest(1, 2, 3, 4).to_hex() == HEX_1234

    def test_from_hex(self) -> None:
        assert Digest.from_hex(HEX_1234) == Digest(1, 2, 3, 4)

    def test_from_hex_without_prefix(self) -> None:
        assert Digest.from_hex(HEX_1234[2:]) == Digest(1, 2, 3, 4)

    def test_large_elements(self) -> None:
        d = Digest(2**64 - 1, 0, 2**63, 12345678901234567)
        assert Digest.from_hex(d.to_hex()) == d

    def test_wrong_length_rejected(self) -> None:
        with pytest.raises(ValueError, match="64 chars"):
            Digest.from_hex("0xabcd")

    def test_frozen(self) -> None:
        d = Digest(1, 2, 3, 4)
        with pytest.raises(AttributeError):
            d.d0 = 9  # type: ignore[misc]

    def test_hashable(self) -> None:
        assert len({Digest(1, 2, 3, 4), Digest(1, 2, 3, 4)}) == 1


class TestAccountId:
    def test_hex(self) -> None:
        a = AccountId.from_hex("0x8a65fc5a39e4cd106d648e3eb4ab5f")
        assert a.raw == bytes.fromhex("8a65fc5a39e4cd106d648e3eb4ab5f")
        assert str(a) == "0x8a65fc5a39e4cd106d648e3eb4ab5f"

    def test_equality(self) -> None:
        assert AccountId(b"\x01\x02") == AccountId.from_hex("0102")


class TestBlockHeader:
    def test_raw_ignored_in_equality(self) -> None:
        h1 = BlockHeader(block_num=3, raw={"a": 1})
        h2 = BlockHeader(block_num=3, raw={"b": 2})
        assert h1 == h2

    def test_proof_presence(self) -> None:
        header = BlockHeader(block_num=1)
        assert not BlockHeaderWithProof(header=header).has_proof
        assert BlockHeaderWithProof(header=header, mmr_path={"siblings": [1]}).has_proof


class TestSyncDelta:
    def test_defaults_are_empty(self) -> None:
        delta = SyncDelta(from_block=5, block_num=5, chain_tip=5)
        assert delta.is_empty
        assert delta.reached_head
        assert not delta.has_more
        assert delta.next_block == 5

    def test_range_page_continues_after_its_last_block(self) -> None:
        delta = SyncDelta(from_block=0, block_num=4, chain_tip=10, inclusive=True)
        assert delta.next_block == 5

    def test_last_range_page_stays_at_tip(self) -> None:
        delta = SyncDelta(from_block=5, block_num=10, chain_tip=10, inclusive=True)
        assert delta.next_block == 10

    def test_state_sync_continues_from_block(self) -> None:
        assert SyncDelta(from_block=0, block_num=4, chain_tip=10).next_block == 4

    def test_has_more_below_tip(self) -> None:
        delta = SyncDelta(from_block=0, block_num=3, chain_tip=10)
        assert delta.has_more
        assert not delta.reached_head

    def test_no_progress_with_items_is_not_head(self) -> None:
        note = NoteSyncRecord(note_id=Digest(1, 2, 3, 4), block_num=5)
        delta = SyncDelta(from_block=5, block_num=5, chain_tip=5, notes=(note,))
        assert not delta.is_empty
        assert not delta.reached_head

    def test_accounts_count_as_items(self) -> None:
        summary = AccountSummary(account_id=AccountId(b"\x01"), account_commitment=None, block_num=2)
        delta = SyncDelta(from_block=0, block_num=2, chain_tip=2, accounts=(summary,))
        assert not delta.is_empty

    def test_frozen(self) -> None:
        delta = SyncDelta(from_block=0, block_num=1, chain_tip=1)
        with pytest.raises(AttributeError):
            delta.block_num = 2  # type: ignore[misc]


class TestAccountVaultUpdate:
    def test_removal_has_no_asset(self) -> None:
        assert AccountVaultUpdate(block_num=1).is_removal
        assert not AccountVaultUpdate(block_num=1, asset={"fungible": {}}).is_removal
