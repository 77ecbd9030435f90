"""Errors raised by the reconciliation engine.

Only ArgumentError and EmptyAggregationError escape the component that
raises them; the engine converts every per-instance error into a
ResultError so a pass always completes.
"""
from typing import Iterable, Optional


class ReconcileError(Exception):
    """Base class for reconciliation errors."""

    @property
    def category(self) -> str:
        return type(self).__name__


class DiscoveryError(ReconcileError):
    """One instance failed to enumerate; it is omitted from discovery."""

    def __init__(self, kind: str, key: Optional[str], reason: str):
        super().__init__(f"Discovery of {kind} {key or '?'} failed: {reason}")
        self.kind = kind
        self.key = key


class UnsupportedAttributeError(ReconcileError):
    """Declared attribute has no device equivalent; ignored."""

    def __init__(self, kind: str, name: str, message: Optional[str] = None):
        super().__init__(message or f"Parameter[{name}] not supported on {kind}")
        self.kind = kind
        self.name = name


class EmptyAggregationError(ReconcileError):
    """Aggregate attribute requested over zero member values."""


class RecreateFailureError(ReconcileError):
    """Create failed after destroy succeeded; the resource is now absent."""


class ArgumentError(ReconcileError):
    """Declared value violates a hard device invariant."""


class DeviceWriteError(ReconcileError):
    """A device mutation was rejected; the attribute stays unconverged."""


class PartialFlushError(ReconcileError):
    """One or more flush categories failed.

    Attributes:
        failed: Category value mapped to the failure message
        snapshot: Snapshot with the successful categories merged
    """

    def __init__(self, failed: dict, snapshot=None):
        names = ", ".join(sorted(_names(failed)))
        super().__init__(f"Flush failed for categories: {names}")
        self.failed = failed
        self.snapshot = snapshot


def _names(categories: Iterable) -> list[str]:
    return [getattr(c, "value", str(c)) for c in categories]
