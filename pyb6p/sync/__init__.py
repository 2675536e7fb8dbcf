"""Sync engine for pyb6p - path classification, ledger, transfers and builds."""

from .build import (
    BuildReconciler,
    BuildReport,
    CompileResult,
    Compiler,
    TypeScriptCompiler,
)
from .comparator import PushReason, SyncDecisionEngine
from .engine import SyncEngine
from .ignore import DEFAULT_PATTERNS, ExclusionList, ExclusionMatcher
from .integrity import (
    UNKNOWN,
    EtagKind,
    classify_etag,
    hash_file,
    hashes_match,
    local_hash,
    remote_hash,
)
from .location import ScriptLocation, Zone, get_shaved_name, parse_location
from .nodes import ScriptFile, ScriptFolder, ScriptNode, create_node
from .operations import NOT_APPLICABLE_STATUS, TransferOrchestrator, TransferResult
from .root import ScriptRoot
from .state import LedgerStore, MetadataLedger, PushPullRecord

__all__ = [
    "SyncEngine",
    "SyncDecisionEngine",
    "PushReason",
    "TransferOrchestrator",
    "TransferResult",
    "NOT_APPLICABLE_STATUS",
    "ScriptRoot",
    "ScriptNode",
    "ScriptFile",
    "ScriptFolder",
    "create_node",
    "ScriptLocation",
    "Zone",
    "parse_location",
    "get_shaved_name",
    "ExclusionList",
    "ExclusionMatcher",
    "DEFAULT_PATTERNS",
    "EtagKind",
    "UNKNOWN",
    "classify_etag",
    "hash_file",
    "hashes_match",
    "local_hash",
    "remote_hash",
    "LedgerStore",
    "MetadataLedger",
    "PushPullRecord",
    "BuildReconciler",
    "BuildReport",
    "Compiler",
    "CompileResult",
    "TypeScriptCompiler",
]
