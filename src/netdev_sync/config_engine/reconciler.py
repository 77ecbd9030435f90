"""Property reconciler: converge one resource instance.

Compares a Declaration with the current Snapshot and:
- creates or destroys the instance when ``ensure`` disagrees,
- writes immediate attributes right away,
- records deferred attributes into a PendingChangeSet for the flush step,
- recreates the instance for attributes the device cannot change in place,
- hands member sets to the MembershipDiffer.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

from ..devices.base import DeviceClient, DeviceFault
from .errors import (
    ArgumentError,
    DeviceWriteError,
    RecreateFailureError,
    UnsupportedAttributeError,
)
from .membership import MembershipDiffer
from .schema import (
    AttributeMode,
    Declaration,
    Lifecycle,
    PendingChangeSet,
    ResourceResult,
    Snapshot,
)

if TYPE_CHECKING:
    from ..resources.base import ResourceKind

logger = logging.getLogger(__name__)

# Attribute classes in processing order; the rest follow in declaration order
_FIRST = (AttributeMode.REPLACEMENT, AttributeMode.MEMBERSHIP)


@dataclass
class Reconciliation:
    """State of one resource after the reconciler ran (before flush)."""
    snapshot: Snapshot
    pending: PendingChangeSet
    result: ResourceResult


class PropertyReconciler:
    """Converge declarations of one resource kind against the device."""

    def __init__(
        self,
        kind: "ResourceKind",
        client: DeviceClient,
        members: Optional[Mapping[str, Snapshot]] = None,
    ):
        """
        Args:
            kind: Resource kind of the declarations
            client: Device API client
            members: Member Snapshots discovered in this pass (composite kinds)
        """
        self.kind = kind
        self.client = client
        self.members = members
        self.membership = MembershipDiffer(client, kind.members_attribute or "")

    async def reconcile(self, declaration: Declaration, snapshot: Snapshot) -> Reconciliation:
        """Reconcile one resource instance.

        Raises:
            ArgumentError: If the declaration violates a device invariant;
                raised before any device call
        """
        self.kind.validate(declaration)

        rec = Reconciliation(
            snapshot=snapshot,
            pending=PendingChangeSet(key=declaration.key),
            result=ResourceResult(kind=self.kind.name, key=declaration.key),
        )

        if declaration.ensure == Lifecycle.ABSENT:
            if snapshot.exists:
                await self._destroy(rec)
        elif not snapshot.exists:
            await self._create(rec, declaration)
        else:
            await self._converge(rec, declaration)

        rec.result.ensure = rec.snapshot.lifecycle
        return rec

    # --- ensure ---

    async def _create(self, rec: Reconciliation, declaration: Declaration) -> None:
        attributes = self.kind.create_attributes(declaration)
        for name in declaration.attributes:
            if name not in attributes:
                self._unsupported(rec, self.kind.not_supported(name))

        logger.info(f"Creating {self.kind.name} {declaration.key}: {self.kind.mask(attributes)}")
        try:
            await self.kind.create(self.client, declaration.key, attributes)
        except DeviceFault as e:
            rec.result.add_error(DeviceWriteError(f"Create of {self.kind.name} {declaration.key} failed: {e}"))
            return
        rec.snapshot = Snapshot.present(self.kind.name, declaration.key, attributes)
        rec.result.changed = True

    async def _destroy(self, rec: Reconciliation) -> None:
        key = rec.snapshot.key
        logger.info(f"Destroying {self.kind.name} {key}")
        try:
            await self.kind.destroy(self.client, key)
        except DeviceFault as e:
            rec.result.add_error(DeviceWriteError(f"Destroy of {self.kind.name} {key} failed: {e}"))
            return
        rec.snapshot = Snapshot.absent(self.kind.name, key)
        rec.result.changed = True

    # --- attributes ---

    async def _converge(self, rec: Reconciliation, declaration: Declaration) -> None:
        names = list(declaration.attributes)
        ordered = [n for mode in _FIRST for n in names if self.kind.mode_of(n) == mode]
        ordered += [n for n in names if n not in ordered]

        for name in ordered:
            if not rec.snapshot.exists:
                # A failed recreate left nothing to configure
                break
            value = declaration.attributes[name]
            mode = self.kind.mode_of(name)

            if mode == AttributeMode.UNSUPPORTED:
                self._unsupported(rec, self.kind.not_supported(name))
                continue
            if mode == AttributeMode.FIXED:
                continue
            if not self.kind.applicable(rec.snapshot, name):
                logger.debug(f"{self.kind.name} {rec.snapshot.key}: skipping {name}, not applicable")
                continue
            if self.kind.unrepresented(rec.snapshot, name):
                rec.snapshot = rec.snapshot.replace(**{name: value})
                continue
            if self.kind.same(name, value, rec.snapshot.get(name)):
                continue

            if mode == AttributeMode.REPLACEMENT:
                await self._recreate(rec, name, value)
            elif mode == AttributeMode.MEMBERSHIP:
                await self._members(rec, value)
            elif mode == AttributeMode.IMMEDIATE:
                await self._write(rec, name, value)
            else:
                rec.pending.record(name, value, self.kind.deferred[name])
                logger.debug(f"{self.kind.name} {rec.snapshot.key}: deferred {name}")

    async def _write(self, rec: Reconciliation, name: str, value: Any) -> None:
        key = rec.snapshot.key
        logger.info(f"Setting {self.kind.name} {key} {name}={self.kind.mask({name: value})[name]}")
        try:
            await self.kind.write(self.client, rec.snapshot, name, value)
        except UnsupportedAttributeError as e:
            self._unsupported(rec, e)
            return
        except DeviceFault as e:
            rec.result.add_error(DeviceWriteError(f"Setting {name} on {self.kind.name} {key} failed: {e}"))
            return
        rec.snapshot = rec.snapshot.replace(**{name: value})
        rec.result.changed = True

    async def _members(self, rec: Reconciliation, desired: Any) -> None:
        change = await self.membership.apply(rec.snapshot, desired or ())
        for error in change.errors:
            rec.result.add_error(error)
        if change.changed:
            rec.snapshot = self.kind.after_membership_change(change.snapshot, self.members)
            rec.result.changed = True

    async def _recreate(self, rec: Reconciliation, name: str, value: Any) -> None:
        """Destroy and create the instance to change ``name``.

        If create fails after destroy succeeded, the instance is reported
        absent; it never keeps claiming the old present state.
        """
        key = rec.snapshot.key
        attributes = self.kind.recreate_attributes(rec.snapshot, name, value)
        logger.info(f"Recreating {self.kind.name} {key} to change {name} to {value}")

        try:
            await self.kind.destroy(self.client, key)
        except DeviceFault as e:
            rec.result.add_error(DeviceWriteError(f"Destroy of {self.kind.name} {key} for {name} change failed: {e}"))
            return
        rec.result.changed = True

        try:
            await self.kind.create(self.client, key, attributes)
        except (DeviceFault, ArgumentError) as e:
            logger.error(f"Recreate of {self.kind.name} {key} failed after destroy: {e}")
            rec.snapshot = Snapshot.absent(self.kind.name, key)
            rec.pending = PendingChangeSet(key=key)
            rec.result.add_error(RecreateFailureError(f"Recreate of {self.kind.name} {key} failed: {e}"))
            return

        rec.snapshot = rec.snapshot.replace(**{name: value})

    def _unsupported(self, rec: Reconciliation, error: UnsupportedAttributeError) -> None:
        logger.info(f"{error}; ignoring declared value")
        rec.result.warnings.append(str(error))
