"""Node RPC surface — every ``rpc.Api`` method and its protobuf message types."""
from __future__ import annotations

from dataclasses import dataclass

SERVICE = "rpc.Api"


@dataclass(frozen=True)
class RpcMethod:
    name: str
    request_type: str
    response_type: str

    @property
    def path(self) -> str:
        return f"/{SERVICE}/{self.name}"


_METHODS = (
    RpcMethod("Status", "google.protobuf.Empty", "rpc.RpcStatus"),
    RpcMethod("CheckNullifiers", "rpc_store.NullifierList", "rpc_store.CheckNullifiersResponse"),
    RpcMethod(
        "CheckNullifiersByPrefix",
        "rpc_store.CheckNullifiersByPrefixRequest",
        "rpc_store.CheckNullifiersByPrefixResponse",
    ),
    RpcMethod("GetAccountDetails", "account.AccountId", "account.AccountDetails"),
    RpcMethod("GetAccountProofs", "rpc_store.AccountProofsRequest", "rpc_store.AccountProofs"),
    RpcMethod("GetBlockByNumber", "blockchain.BlockNumber", "blockchain.MaybeBlock"),
    RpcMethod(
        "GetBlockHeaderByNumber",
        "shared.BlockHeaderByNumberRequest",
        "shared.BlockHeaderByNumberResponse",
    ),
    RpcMethod("GetNotesById", "note.NoteIdList", "note.CommittedNoteList"),
    RpcMethod("GetNoteScriptByRoot", "note.NoteRoot", "shared.MaybeNoteScript"),
    RpcMethod(
        "SubmitProvenTransaction",
        "transaction.ProvenTransaction",
        "block_producer.SubmitProvenTransactionResponse",
    ),
    RpcMethod(
        "SubmitProvenBatch",
        "transaction.ProvenTransactionBatch",
        "block_producer.SubmitProvenBatchResponse",
    ),
    RpcMethod(
        "SyncNullifiers", "rpc_store.SyncNullifiersRequest", "rpc_store.SyncNullifiersResponse"
    ),
    RpcMethod(
        "SyncAccountVault",
        "rpc_store.SyncAccountVaultRequest",
        "rpc_store.SyncAccountVaultResponse",
    ),
    RpcMethod("SyncNotes", "rpc_store.SyncNotesRequest", "rpc_store.SyncNotesResponse"),
    RpcMethod("SyncState", "rpc_store.SyncStateRequest", "rpc_store.SyncStateResponse"),
    RpcMethod(
        "SyncStorageMaps", "rpc_store.SyncStorageMapsRequest", "rpc_store.SyncStorageMapsResponse"
    ),
    RpcMethod(
        "SyncTransactions",
        "rpc_store.SyncTransactionsRequest",
        "rpc_store.SyncTransactionsResponse",
    ),
)

METHODS: dict[str, RpcMethod] = {m.name: m for m in _METHODS}


def get_method(name: str) -> RpcMethod:
    """Look up a method by name, raising ``ValueError`` for unknown names."""
    try:
        return METHODS[name]
    except KeyError:
        raise ValueError(f"Unknown RPC method '{name}'") from None
