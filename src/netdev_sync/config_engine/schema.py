"""Schema definitions for the reconciliation engine.

Defines snapshots, declarations, pending change sets and result records.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, NewType, Optional

ResourceKey = NewType("ResourceKey", str)


class Lifecycle(str, Enum):
    """Whether a resource instance exists."""
    PRESENT = "present"
    ABSENT = "absent"


class FlushCategory(str, Enum):
    """Independently flushable groups of deferred attributes."""
    KEY = "key"                 # key material and key format
    TIMEOUT = "timeout"
    RETRANSMIT = "retransmit"
    LINK = "link"               # speed and duplex


class AttributeMode(str, Enum):
    """How the reconciler converges one attribute."""
    IMMEDIATE = "immediate"      # written as soon as a difference is seen
    DEFERRED = "deferred"        # accumulated and committed by flush
    REPLACEMENT = "replacement"  # requires destroy + create
    MEMBERSHIP = "membership"    # set of member resources
    FIXED = "fixed"              # validated only, never written
    UNSUPPORTED = "unsupported"  # no device equivalent


@dataclass(frozen=True)
class Snapshot:
    """Engine view of one resource instance as currently configured.

    Snapshots are never mutated; writes produce a new Snapshot via replace().
    An absent Snapshot carries no attributes.
    """
    kind: str
    key: ResourceKey
    lifecycle: Lifecycle = Lifecycle.PRESENT
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.lifecycle == Lifecycle.ABSENT and self.attributes:
            raise ValueError(f"Absent snapshot {self.kind} {self.key} cannot carry attributes")
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @classmethod
    def absent(cls, kind: str, key: str) -> "Snapshot":
        return cls(kind=kind, key=ResourceKey(key), lifecycle=Lifecycle.ABSENT)

    @classmethod
    def present(cls, kind: str, key: str, attributes: Optional[Mapping[str, Any]] = None) -> "Snapshot":
        return cls(kind=kind, key=ResourceKey(key), attributes=dict(attributes or {}))

    @property
    def exists(self) -> bool:
        return self.lifecycle == Lifecycle.PRESENT

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def replace(self, **values: Any) -> "Snapshot":
        """Return a present Snapshot with ``values`` overlaid."""
        merged = dict(self.attributes)
        merged.update(values)
        return Snapshot(self.kind, self.key, Lifecycle.PRESENT, merged)

    def to_dict(self) -> dict:
        return {k: sorted(v) if isinstance(v, frozenset) else v for k, v in self.attributes.items()}


@dataclass(frozen=True)
class Declaration:
    """Desired state of one resource instance."""
    kind: str
    key: ResourceKey
    ensure: Lifecycle = Lifecycle.PRESENT
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))


@dataclass
class PendingChangeSet:
    """Deferred attribute changes for one resource within one pass.

    ``flags`` holds the categories that must be committed by flush. Values
    without a flagged category are merged into the snapshot on flush but
    never sent.
    """
    key: ResourceKey
    values: dict[str, Any] = field(default_factory=dict)
    flags: set[FlushCategory] = field(default_factory=set)

    def record(self, name: str, value: Any, category: FlushCategory) -> None:
        self.values[name] = value
        self.flags.add(category)

    def __bool__(self) -> bool:
        return bool(self.values) or bool(self.flags)


@dataclass
class ResultError:
    """One error reported for a resource."""
    category: str
    message: str

    @classmethod
    def from_exception(cls, exc: Exception) -> "ResultError":
        return cls(category=getattr(exc, "category", type(exc).__name__), message=str(exc))

    def to_dict(self) -> dict:
        return {"category": self.category, "message": self.message}


@dataclass
class ResourceResult:
    """Outcome of reconciling one resource.

    ``ensure`` is the lifecycle the device is known to be in after the pass,
    or None when it could not be determined.
    """
    kind: str
    key: ResourceKey
    ensure: Optional[Lifecycle] = None
    changed: bool = False
    errors: list[ResultError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    snapshot: Optional[Snapshot] = None

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, exc: Exception) -> None:
        self.errors.append(ResultError.from_exception(exc))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "key": self.key,
            "ensure": self.ensure.value if self.ensure else None,
            "changed": self.changed,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
        }
