"""Miden RPC client — verbatim RPC access plus one-call convenience wrappers."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from ..config import ClientConfig, NodeConfig
from ..interfaces.codec import Codec
from ..interfaces.transport import Transport
from ..models import (
    AccountId,
    BlockHeaderWithProof,
    CommittedNote,
    Digest,
    NodeStatus,
    NullifierProof,
    NullifierUpdate,
    SyncDelta,
)
from ..rpc import builders, parser
from ..rpc.codec import ProtobufCodec
from ..rpc.grpc_web import GrpcWebTransport
from ..rpc.methods import get_method
from ..sync.reconciler import SyncReconciler

logger = logging.getLogger(__name__)


class MidenRpcClient:
    """Client for a Miden node.

    Every node RPC is reachable through :meth:`call`; the other methods build
    the request from domain values, issue it, and unwrap the response. They
    never retry, cache, or substitute defaults for a failed call.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self.reconciler = SyncReconciler(transport)

    @classmethod
    def connect(
        cls, config: ClientConfig | NodeConfig | None = None, codec: Codec | None = None
    ) -> MidenRpcClient:
        """Build a client over gRPC-Web; the HTTP session opens on first call."""
        if config is None:
            config = NodeConfig()
        node = config.node if isinstance(config, ClientConfig) else config
        logger.info("Using Miden node at %s", node.endpoint)
        return cls(GrpcWebTransport(node, codec or ProtobufCodec()))

    async def __aenter__(self) -> MidenRpcClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def transport(self) -> Transport:
        return self._transport

    async def close(self) -> None:
        await self._transport.close()

    async def call(self, method: str, request: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Invoke any node RPC by name with a proto3 JSON request dict."""
        rpc = get_method(method)
        return await self._transport.call(rpc.name, request or {})

    # ------------------------------------------------------------------
    # Node and blocks
    # ------------------------------------------------------------------

    async def get_status(self) -> NodeStatus:
        response = await self.call("Status")
        with parser.parsing("Status"):
            return parser.parse_status(response)

    async def get_block_header(
        self, block_num: int | None = None, include_mmr_proof: bool = False
    ) -> BlockHeaderWithProof:
        """Header at ``block_num`` (latest when ``None``), with the MMR path on request."""
        method = "GetBlockHeaderByNumber"
        response = await self.call(
            method, builders.build_block_header_request(block_num, include_mmr_proof)
        )
        with parser.parsing(method):
            return parser.parse_block_header_response(response)

    async def get_block_by_number(self, block_num: int) -> bytes | None:
        """Raw encoded block, or ``None`` if the node has no such block."""
        method = "GetBlockByNumber"
        response = await self.call(method, builders.build_block_number_request(block_num))
        with parser.parsing(method):
            return parser.parse_maybe_block(response)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_transaction(self, proven_tx: bytes) -> int:
        """Submit a serialized proven transaction; returns the node's block height."""
        method = "SubmitProvenTransaction"
        response = await self.call(method, builders.build_proven_transaction(proven_tx))
        with parser.parsing(method):
            height = parser.parse_submit_response(response)
        logger.info("Transaction accepted at block height %d", height)
        return height

    async def submit_proven_batch(self, encoded_batch: bytes) -> int:
        method = "SubmitProvenBatch"
        response = await self.call(method, builders.build_proven_batch(encoded_batch))
        with parser.parsing(method):
            return parser.parse_submit_response(response)

    # ------------------------------------------------------------------
    # Nullifiers and notes
    # ------------------------------------------------------------------

    async def check_nullifiers(self, nullifiers: Sequence[Digest]) -> tuple[NullifierProof, ...]:
        """Proofs for a set of nullifiers.

        Repeated nullifiers are sent once, so the result holds one proof per
        distinct nullifier in first-seen order.
        """
        method = "CheckNullifiers"
        request = builders.build_nullifier_list(nullifiers)
        response = await self.call(method, request)
        requested = [parser.parse_digest(n) for n in request["nullifiers"]]
        with parser.parsing(method):
            return parser.parse_nullifier_proofs(response, requested)

    async def check_nullifiers_by_prefix(
        self, prefix_len: int, prefixes: Iterable[int], block_num: int
    ) -> tuple[NullifierUpdate, ...]:
        """Nullifiers matching 16-bit prefixes created at or after ``block_num``."""
        method = "CheckNullifiersByPrefix"
        response = await self.call(
            method,
            builders.build_check_nullifiers_by_prefix_request(prefix_len, prefixes, block_num),
        )
        with parser.parsing(method):
            return parser.parse_nullifier_updates(response)

    async def get_notes_by_id(self, note_ids: Sequence[Digest]) -> tuple[CommittedNote, ...]:
        method = "GetNotesById"
        response = await self.call(method, builders.build_note_id_list(note_ids))
        with parser.parsing(method):
            return parser.parse_committed_notes(response)

    async def get_note_script_by_root(self, root: Digest) -> dict[str, Any] | None:
        method = "GetNoteScriptByRoot"
        response = await self.call(method, builders.build_note_root_request(root))
        with parser.parsing(method):
            return parser.parse_maybe_note_script(response)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account_details(self, account_id: AccountId) -> dict[str, Any]:
        return await self.call("GetAccountDetails", builders.account_id_to_proto(account_id))

    async def get_account_commitment(self, account_id: AccountId) -> str:
        """Current account commitment as ``0x``-prefixed hex."""
        details = await self.get_account_details(account_id)
        with parser.parsing("GetAccountDetails"):
            return parser.extract_account_commitment(details)

    async def get_account_proofs(
        self,
        account_requests: Iterable[AccountId | Mapping[str, Any]],
        include_headers: bool = False,
        code_commitments: Iterable[Digest] = (),
    ) -> dict[str, Any]:
        """State proofs for several accounts, returned uninterpreted."""
        return await self.call(
            "GetAccountProofs",
            builders.build_account_proofs_request(
                account_requests, include_headers, code_commitments
            ),
        )

    # ------------------------------------------------------------------
    # Sync (delegates to the reconciler)
    # ------------------------------------------------------------------

    async def sync_state(
        self,
        block_num: int,
        account_ids: Iterable[AccountId] | None = None,
        note_tags: Iterable[int] | None = None,
    ) -> SyncDelta:
        return await self.reconciler.sync_state(block_num, account_ids, note_tags)

    async def sync_notes(self, block_num: int, note_tags: Iterable[int] | None = None) -> SyncDelta:
        return await self.reconciler.sync_notes(block_num, note_tags)

    async def sync_nullifiers(
        self,
        block_from: int,
        prefixes: Iterable[int],
        prefix_len: int = 16,
        block_to: int | None = None,
    ) -> SyncDelta:
        return await self.reconciler.sync_nullifiers(block_from, prefixes, prefix_len, block_to)

    async def sync_account_vault(
        self, account_id: AccountId, block_from: int, block_to: int | None = None
    ) -> SyncDelta:
        return await self.reconciler.sync_account_vault(account_id, block_from, block_to)

    async def sync_storage_maps(
        self, account_id: AccountId, block_from: int, block_to: int | None = None
    ) -> SyncDelta:
        return await self.reconciler.sync_storage_maps(account_id, block_from, block_to)

    async def sync_transactions(
        self,
        block_from: int,
        account_ids: Iterable[AccountId] | None = None,
        block_to: int | None = None,
    ) -> SyncDelta:
        return await self.reconciler.sync_transactions(block_from, account_ids, block_to)
