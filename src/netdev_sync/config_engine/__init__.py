"""Reconciliation engine - declarative network resource management.

The engine converges declared resources on one device:
- Discovers current state, synthesizing port-channel member settings
- Writes immediate attributes and batches deferred ones per category
- Recreates resources whose attributes cannot change in place
- Reports per-resource results; one failing resource never aborts a pass

Usage:
    from netdev_sync.config_engine import ReconcileEngine

    engine = ReconcileEngine(client)
    results = await engine.apply({
        "device": "leaf1",
        "resources": {
            "port_channel": {
                "Port-Channel5": {
                    "mode": "active",
                    "interfaces": ["Ethernet1-2"],
                }
            }
        }
    }, dry_run=True)
"""

from .engine import ReconcileEngine, summarize_results
from .schema import (
    AttributeMode,
    Declaration,
    FlushCategory,
    Lifecycle,
    PendingChangeSet,
    ResourceKey,
    ResourceResult,
    ResultError,
    Snapshot,
)
from .errors import (
    ArgumentError,
    DeviceWriteError,
    DiscoveryError,
    EmptyAggregationError,
    PartialFlushError,
    ReconcileError,
    RecreateFailureError,
    UnsupportedAttributeError,
)
from .parser import Manifest, ManifestParser, ParseError, compute_checksum, load_manifest
from .aggregation import synthesize
from .discovery import Discovery, InstanceDiscovery
from .matcher import Match, match
from .membership import MembershipDiffer, diff_members
from .reconciler import PropertyReconciler
from .flush import FlushExecutor

__all__ = [
    # Main engine
    "ReconcileEngine",
    "summarize_results",
    # Schema classes
    "AttributeMode",
    "Declaration",
    "FlushCategory",
    "Lifecycle",
    "PendingChangeSet",
    "ResourceKey",
    "ResourceResult",
    "ResultError",
    "Snapshot",
    # Errors
    "ArgumentError",
    "DeviceWriteError",
    "DiscoveryError",
    "EmptyAggregationError",
    "PartialFlushError",
    "ReconcileError",
    "RecreateFailureError",
    "UnsupportedAttributeError",
    # Parser
    "Manifest",
    "ManifestParser",
    "ParseError",
    "compute_checksum",
    "load_manifest",
    # Components (for advanced use)
    "synthesize",
    "Discovery",
    "InstanceDiscovery",
    "Match",
    "match",
    "MembershipDiffer",
    "diff_members",
    "PropertyReconciler",
    "FlushExecutor",
]
