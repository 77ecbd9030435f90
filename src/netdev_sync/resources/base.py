"""Base resource kind abstraction.

A ResourceKind tells the engine how one class of device configuration
object behaves: how device records become Snapshots, how each attribute is
converged, and which client calls a write maps to. Kinds are injected into
the engine; the engine itself knows nothing kind-specific.
"""
import logging
from typing import Any, Mapping, Optional

from ..config_engine.errors import ArgumentError, UnsupportedAttributeError
from ..config_engine.schema import (
    AttributeMode,
    Declaration,
    FlushCategory,
    Lifecycle,
    Snapshot,
)
from ..devices.base import DeviceClient

logger = logging.getLogger(__name__)

VALID_ENSURE = {Lifecycle.PRESENT, Lifecycle.ABSENT}


class ResourceKind:
    """Behaviour shared by all resource kinds.

    Subclasses declare their attribute classes as class attributes and
    override the hooks whose default does not fit.
    """

    #: Kind name used by the device client and manifests
    name: str = ""
    #: Whether instances aggregate member resources
    composite: bool = False
    #: Attribute holding the member set of a composite instance
    members_attribute: Optional[str] = None
    #: Attributes synthesized from members during discovery
    aggregate_attributes: tuple[str, ...] = ()

    immediate: frozenset[str] = frozenset()
    deferred: Mapping[str, FlushCategory] = {}
    replacement: frozenset[str] = frozenset()
    fixed: frozenset[str] = frozenset()
    unsupported: frozenset[str] = frozenset()
    #: Attributes masked in logs and audit records
    sensitive: frozenset[str] = frozenset()

    creatable: bool = True
    destroyable: bool = True

    # --- Classification ---

    def mode_of(self, attribute: str) -> AttributeMode:
        """Return how ``attribute`` is converged."""
        if attribute == self.members_attribute:
            return AttributeMode.MEMBERSHIP
        if attribute in self.replacement:
            return AttributeMode.REPLACEMENT
        if attribute in self.immediate:
            return AttributeMode.IMMEDIATE
        if attribute in self.deferred:
            return AttributeMode.DEFERRED
        if attribute in self.fixed:
            return AttributeMode.FIXED
        return AttributeMode.UNSUPPORTED

    def category_attributes(self, category: FlushCategory) -> list[str]:
        """Attributes committed together by one flush call."""
        return [name for name, cat in self.deferred.items() if cat == category]

    def applicable(self, snapshot: Snapshot, attribute: str) -> bool:
        """Whether ``attribute`` can be converged on this instance right now."""
        return True

    def unrepresented(self, snapshot: Snapshot, attribute: str) -> bool:
        """Whether ``attribute`` has no device representation on this instance right now.

        The declared value is then carried in the Snapshot without a device
        call, and takes effect through later operations of the pass.
        """
        return False

    def same(self, attribute: str, declared: Any, current: Any) -> bool:
        """Compare a declared value with the snapshot value."""
        return declared == current

    # --- Discovery ---

    def snapshot(self, record: dict[str, Any]) -> Snapshot:
        """Build a Snapshot from a device record."""
        attributes = {k: v for k, v in record.items() if k != "name"}
        return Snapshot.present(self.name, record["name"], attributes)

    async def member_values(self, client: DeviceClient, member: Snapshot) -> dict[str, Any]:
        """Values one member contributes to the aggregate attributes."""
        return {name: member.get(name) for name in self.aggregate_attributes}

    # --- Validation ---

    def validate(self, declaration: Declaration) -> None:
        """Reject declarations that violate hard device invariants.

        Raises:
            ArgumentError: Before any device call is made
        """
        if declaration.ensure not in VALID_ENSURE:
            raise ArgumentError(f"Invalid ensure for {self.name} {declaration.key}: {declaration.ensure}")
        if declaration.ensure == Lifecycle.ABSENT and not self.destroyable:
            raise ArgumentError(f"{self.name} {declaration.key} cannot be removed")

    # --- Writes ---

    def create_attributes(self, declaration: Declaration) -> dict[str, Any]:
        """Attributes sent with create; unsupported ones are dropped."""
        return {
            name: value for name, value in declaration.attributes.items()
            if self.mode_of(name) != AttributeMode.UNSUPPORTED
        }

    async def create(self, client: DeviceClient, key: str, attributes: dict[str, Any]) -> None:
        if not self.creatable:
            raise ArgumentError(f"{self.name} {key} cannot be created")
        await client.create(self.name, key, attributes)

    async def destroy(self, client: DeviceClient, key: str) -> None:
        await client.destroy(self.name, key)

    async def write(self, client: DeviceClient, snapshot: Snapshot, attribute: str, value: Any) -> None:
        """Apply one immediate attribute."""
        await client.set_attribute(self.name, snapshot.key, attribute, value)

    async def flush(
        self,
        client: DeviceClient,
        snapshot: Snapshot,
        category: FlushCategory,
        values: dict[str, Any],
    ) -> None:
        """Commit one flush category in a single client call."""
        await client.set_attributes(self.name, snapshot.key, values)

    def after_membership_change(
        self,
        snapshot: Snapshot,
        members: Optional[Mapping[str, Snapshot]] = None,
    ) -> Snapshot:
        """Snapshot to use once membership changed within the pass.

        Args:
            snapshot: Snapshot carrying the member set the device accepted
            members: Member Snapshots observed by discovery in this pass
        """
        return snapshot

    def recreate_attributes(self, snapshot: Snapshot, attribute: str, value: Any) -> dict[str, Any]:
        """Attributes used to recreate an instance when ``attribute`` changes."""
        attributes = {
            name: current for name, current in snapshot.attributes.items()
            if name not in self.aggregate_attributes
        }
        attributes[attribute] = value
        return attributes

    def not_supported(self, attribute: str) -> UnsupportedAttributeError:
        return UnsupportedAttributeError(self.name, attribute)

    def mask(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Copy of ``values`` safe to log."""
        return {k: ("********" if k in self.sensitive and v is not None else v) for k, v in values.items()}
