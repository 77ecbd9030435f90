"""Audit logging for reconciliation changes.

Every reconciled resource that changed or failed gets one JSON line:
- Timestamped, per device and resource
- Before/after snapshot attributes
- Declared parameters with sensitive values masked
- Errors reported by the engine
"""
import json
import logging
import os
from datetime import datetime, timezone
from dataclasses import dataclass, asdict, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Optional

audit_logger = logging.getLogger("netdev_sync.audit")

DEFAULT_AUDIT_DIR = "~/.netdev-sync"
MASK = "********"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.netdev-sync/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON document per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False
    return audit_file


def mask_sensitive(values: Optional[dict], sensitive: Iterable[str]) -> Optional[dict]:
    """Return a copy of ``values`` with sensitive attributes masked."""
    if values is None:
        return None
    hidden = set(sensitive)
    return {
        k: (MASK if k in hidden and v is not None else _jsonable(v))
        for k, v in values.items()
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


@dataclass
class ChangeRecord:
    """Record of one reconciled resource."""
    timestamp: str
    device_id: str
    kind: str
    key: str
    operation: str  # reconcile, dry_run
    user: str
    success: bool
    changed: bool
    parameters: dict
    before_state: Optional[dict] = None
    after_state: Optional[dict] = None
    errors: list[dict] = field(default_factory=list)

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Track and log reconciliation changes for one device."""

    def __init__(self, device_id: str, user: str = "system"):
        self.device_id = device_id
        self.user = user

    def log_change(
        self,
        kind: str,
        key: str,
        parameters: dict,
        success: bool,
        changed: bool,
        errors: Optional[list[dict]] = None,
        dry_run: bool = False,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None,
        sensitive: Iterable[str] = (),
    ) -> ChangeRecord:
        """Log a reconciled resource.

        Args:
            kind: Resource kind
            key: Resource identity
            parameters: Declared attributes
            success: Whether the resource converged without errors
            changed: Whether any device mutation was accepted
            errors: Error records reported for the resource
            dry_run: Whether mutations were only planned
            before_state: Snapshot attributes before the pass
            after_state: Snapshot attributes after the pass
            sensitive: Attribute names to mask

        Returns:
            The ChangeRecord that was logged
        """
        sensitive = tuple(sensitive)
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device_id=self.device_id,
            kind=kind,
            key=key,
            operation="dry_run" if dry_run else "reconcile",
            user=self.user,
            success=success,
            changed=changed,
            parameters=mask_sensitive(parameters, sensitive) or {},
            before_state=mask_sensitive(before_state, sensitive),
            after_state=mask_sensitive(after_state, sensitive),
            errors=list(errors or []),
        )
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    device_id: Optional[str] = None,
    kind: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.netdev-sync/audit.log
        device_id: Filter by device ID
        kind: Filter by resource kind
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if device_id and record.device_id != device_id:
                continue
            if kind and record.kind != kind:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
