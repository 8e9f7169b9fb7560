"""Shared test fixtures, sample data and an in-memory fake node."""
from __future__ import annotations

import base64
import copy
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import pytest

from miden_rpc.config import ClientConfig, NodeConfig, SyncConfig
from miden_rpc.errors import NodeError, StatusCode
from miden_rpc.models import AccountId, Digest, SyncFilter
from miden_rpc.rpc.builders import account_id_to_proto, digest_to_proto


# ---------------------------------------------------------------------------
# Sample values
# ---------------------------------------------------------------------------

ACCOUNT_A = AccountId(bytes.fromhex("8a65fc5a39e4cd106d648e3eb4ab5f"))
ACCOUNT_B = AccountId(bytes.fromhex("1f2e3d4c5b6a79880706050403020a"))

TAG_A = 3221225472
TAG_B = 1048576


def digest(n: int) -> Digest:
    """Deterministic distinct digest for test data."""
    return Digest(n, n + 1, n + 2, n + 3)


# ---------------------------------------------------------------------------
# Fake node
# ---------------------------------------------------------------------------


@dataclass
class FakeNote:
    block_num: int
    tag: int
    note_id: Digest
    index: int = 0


@dataclass
class FakeAccountUpdate:
    block_num: int
    account_id: AccountId
    commitment: Digest


@dataclass
class FakeNullifier:
    block_num: int
    prefix: int
    nullifier: Digest


def _header(block_num: int) -> dict[str, Any]:
    header: dict[str, Any] = {
        "version": 1,
        "chain_commitment": digest(1000 + block_num),
        "note_root": digest(2000 + block_num),
        "timestamp": 1_700_000_000 + block_num,
    }
    header = {k: (digest_to_proto(v) if isinstance(v, Digest) else v) for k, v in header.items()}
    # proto3 JSON omits zero scalars
    if block_num:
        header["block_num"] = block_num
    return header


class FakeNodeTransport:
    """Node over a chain of ``head + 1`` blocks with scripted contents.

    Sync semantics follow the node: ``SyncState`` answers with the first
    block after the request height holding a match (or the tip); an absent
    filter matches everything while an explicit empty one matches nothing.
    Paginated variants return at most ``page_size`` blocks per call.
    """

    def __init__(self, head: int = 10, page_size: int = 4) -> None:
        self.head = head
        self.page_size = page_size
        self.notes: list[FakeNote] = []
        self.accounts: list[FakeAccountUpdate] = []
        self.nullifiers: list[FakeNullifier] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: list[Exception] = []
        self.overrides: dict[str, dict[str, Any]] = {}
        self.closed = False

    async def call(self, method: str, request: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append((method, copy.deepcopy(dict(request))))
        if self.failures:
            raise self.failures.pop(0)
        if method in self.overrides:
            return copy.deepcopy(self.overrides[method])
        handler = getattr(self, f"_{method}", None)
        if handler is None:
            raise NodeError(method, StatusCode.UNIMPLEMENTED, f"{method} not implemented")
        return handler(request)

    async def close(self) -> None:
        self.closed = True

    # -- filters -----------------------------------------------------------

    @staticmethod
    def _account_match(request: Mapping[str, Any], account_id: AccountId) -> bool:
        if "account_ids" not in request:
            return True
        return account_id_to_proto(account_id) in request["account_ids"]

    @staticmethod
    def _tag_match(request: Mapping[str, Any], tag: int) -> bool:
        if "note_tags" not in request:
            return True
        return tag in request["note_tags"]

    def _page_end(self, request: Mapping[str, Any]) -> int:
        upper = min(request.get("block_to", self.head), self.head)
        return min(upper, request["block_from"] + self.page_size)

    # -- sync handlers -----------------------------------------------------

    def _SyncState(self, request: Mapping[str, Any]) -> dict[str, Any]:
        start = request.get("block_num", 0)
        candidates = [
            n.block_num for n in self.notes
            if n.block_num > start and self._tag_match(request, n.tag)
        ] + [
            a.block_num for a in self.accounts
            if a.block_num > start and self._account_match(request, a.account_id)
        ]
        # At or past the tip the node answers with the requested block.
        block_num = max(min(candidates) if candidates else self.head, start)

        accounts = [
            {
                "account_id": account_id_to_proto(a.account_id),
                "account_commitment": digest_to_proto(a.commitment),
                "block_num": a.block_num,
            }
            for a in self.accounts
            if start < a.block_num <= block_num and self._account_match(request, a.account_id)
        ]
        notes = [
            {
                "note_index_in_block": n.index,
                "note_id": digest_to_proto(n.note_id),
                "metadata": {"tag": n.tag},
                "inclusion_path": {"siblings": []},
            }
            for n in self.notes
            if n.block_num == block_num and self._tag_match(request, n.tag)
        ]
        response: dict[str, Any] = {
            "chain_tip": self.head,
            "block_header": _header(block_num),
            "mmr_delta": {"forest": str(block_num), "data": []},
        }
        if accounts:
            response["accounts"] = accounts
        if notes:
            response["notes"] = notes
        return response

    def _SyncNotes(self, request: Mapping[str, Any]) -> dict[str, Any]:
        response = self._SyncState(dict(request, account_ids=[]))
        response.pop("accounts", None)
        response.pop("mmr_delta", None)
        response["mmr_path"] = {"siblings": [digest_to_proto(digest(7))]}
        return response

    def _SyncNullifiers(self, request: Mapping[str, Any]) -> dict[str, Any]:
        end = self._page_end(request)
        prefixes = set(request.get("nullifiers", []))
        return {
            "pagination_info": {"chain_tip": self.head, "block_num": end},
            "nullifiers": [
                {"nullifier": digest_to_proto(n.nullifier), "block_num": n.block_num}
                for n in self.nullifiers
                if request["block_from"] <= n.block_num <= end and n.prefix in prefixes
            ],
        }

    def _SyncAccountVault(self, request: Mapping[str, Any]) -> dict[str, Any]:
        # Older node layout: bounds at the top level.
        end = self._page_end(request)
        updates = [
            {
                "block_num": a.block_num,
                "vault_key": digest_to_proto(a.commitment),
                "asset": {"fungible": {"amount": str(a.block_num * 100)}},
            }
            for a in self.accounts
            if request["block_from"] <= a.block_num <= end
            and account_id_to_proto(a.account_id) == request["account_id"]
        ]
        return {"chain_tip": self.head, "block_number": end, "updates": updates}

    def _SyncStorageMaps(self, request: Mapping[str, Any]) -> dict[str, Any]:
        end = self._page_end(request)
        updates = [
            {
                "block_num": a.block_num,
                "slot_index": 1,
                "key": digest_to_proto(digest(a.block_num)),
                "value": digest_to_proto(a.commitment),
            }
            for a in self.accounts
            if request["block_from"] <= a.block_num <= end
            and account_id_to_proto(a.account_id) == request["account_id"]
        ]
        return {"pagination_info": {"chain_tip": self.head, "block_num": end}, "updates": updates}

    def _SyncTransactions(self, request: Mapping[str, Any]) -> dict[str, Any]:
        end = self._page_end(request)
        records = [
            {
                "block_num": a.block_num,
                "transaction_header": {"account_id": account_id_to_proto(a.account_id)},
            }
            for a in self.accounts
            if request["block_from"] <= a.block_num <= end
            and self._account_match(request, a.account_id)
        ]
        return {
            "pagination_info": {"chain_tip": self.head, "block_num": end},
            "transaction_records": records,
        }

    # -- single-shot handlers ----------------------------------------------

    def _Status(self, request: Mapping[str, Any]) -> dict[str, Any]:
        return {"version": "0.11.2", "store": {"status": "connected", "chain_tip": self.head}}

    def _GetBlockHeaderByNumber(self, request: Mapping[str, Any]) -> dict[str, Any]:
        block_num = request.get("block_num", self.head)
        if block_num > self.head:
            raise NodeError(
                "GetBlockHeaderByNumber", StatusCode.NOT_FOUND, f"block {block_num} not found"
            )
        response: dict[str, Any] = {"block_header": _header(block_num)}
        if request.get("include_mmr_proof"):
            response["mmr_path"] = {"siblings": [digest_to_proto(digest(block_num))]}
            response["chain_length"] = self.head + 1
        return response

    def _GetBlockByNumber(self, request: Mapping[str, Any]) -> dict[str, Any]:
        block_num = request.get("block_num", 0)
        if block_num > self.head:
            return {}
        return {"block": base64.b64encode(f"block-{block_num}".encode()).decode()}

    def _SubmitProvenTransaction(self, request: Mapping[str, Any]) -> dict[str, Any]:
        raw = base64.b64decode(request.get("transaction", ""))
        if not raw.startswith(b"MTX"):
            raise NodeError(
                "SubmitProvenTransaction",
                StatusCode.INVALID_ARGUMENT,
                "Invalid transaction: failed to deserialize",
            )
        return {"block_height": self.head}

    def _CheckNullifiers(self, request: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "proofs": [
                {"leaf": {"empty": i}, "path": {"siblings": [n]}}
                for i, n in enumerate(request.get("nullifiers", []))
            ]
        }

    def _GetNotesById(self, request: Mapping[str, Any]) -> dict[str, Any]:
        wanted = [i["id"] for i in request.get("ids", [])]
        notes = []
        for n in self.notes:
            proto_id = digest_to_proto(n.note_id)
            if proto_id in wanted:
                notes.append(
                    {
                        "note": {"metadata": {"tag": n.tag}},
                        "inclusion_proof": {
                            "note_id": {"id": proto_id},
                            "block_num": n.block_num,
                            "note_index_in_block": n.index,
                            "inclusion_path": {"siblings": []},
                        },
                    }
                )
        return {"notes": notes}

    def _GetAccountDetails(self, request: Mapping[str, Any]) -> dict[str, Any]:
        for a in reversed(self.accounts):
            if account_id_to_proto(a.account_id) == dict(request):
                commitment = digest_to_proto(a.commitment)
                return {
                    "summary": {
                        "account_id": dict(request),
                        # fixed64 values arrive as strings in proto3 JSON
                        "account_commitment": {k: str(v) for k, v in commitment.items()},
                        "block_num": a.block_num,
                    }
                }
        raise NodeError("GetAccountDetails", StatusCode.NOT_FOUND, "account not found")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def node_config() -> NodeConfig:
    return NodeConfig(endpoint="https://rpc.example.com", timeout=5.0, verify_tls=True)


@pytest.fixture()
def sync_config() -> SyncConfig:
    return SyncConfig(
        start_block=0,
        poll_interval_seconds=0,
        retry_backoff_seconds=0,
        on_regression="raise",
        filter=SyncFilter(),
    )


@pytest.fixture()
def client_config(node_config: NodeConfig, sync_config: SyncConfig) -> ClientConfig:
    return ClientConfig(node=node_config, sync=sync_config)


@pytest.fixture()
def fake_node() -> FakeNodeTransport:
    """Chain with head 10: account A updated at 3 and 7, B at 5, notes at 4 and 7."""
    node = FakeNodeTransport(head=10)
    node.accounts = [
        FakeAccountUpdate(3, ACCOUNT_A, digest(30)),
        FakeAccountUpdate(5, ACCOUNT_B, digest(50)),
        FakeAccountUpdate(7, ACCOUNT_A, digest(70)),
    ]
    node.notes = [
        FakeNote(4, TAG_A, digest(400), index=0),
        FakeNote(7, TAG_B, digest(700), index=2),
        FakeNote(7, TAG_A, digest(710), index=1),
    ]
    node.nullifiers = [
        FakeNullifier(2, 0x1234, digest(20)),
        FakeNullifier(6, 0x1234, digest(60)),
        FakeNullifier(9, 0xBEEF, digest(90)),
    ]
    return node


@pytest.fixture()
def empty_node() -> FakeNodeTransport:
    return FakeNodeTransport(head=10)


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    node:
      endpoint: "https://rpc.example.com/"
      timeout: 10
      verify_tls: true
    sync:
      start_block: 42
      poll_interval_seconds: 2
      retry_backoff_seconds: 7
      on_regression: restart
      account_ids: ["0x8a65fc5a39e4cd106d648e3eb4ab5f"]
      note_tags: [3221225472, 1048576]
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "miden-rpc.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
