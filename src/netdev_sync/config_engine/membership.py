"""Membership differ for composite resources.

Membership is a set: changes are computed as set differences, and every
member is moved with its own device call so a failure or cancellation
leaves a small, auditable change behind.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..devices.base import DeviceClient, DeviceFault
from .errors import DeviceWriteError
from .schema import ResourceKey, Snapshot

logger = logging.getLogger(__name__)

MemberSet = frozenset


def diff_members(
    desired: Iterable[ResourceKey],
    current: Iterable[ResourceKey],
) -> tuple[frozenset, frozenset]:
    """Compute membership changes.

    Returns:
        Tuple of (to_remove, to_add)
    """
    desired_set = frozenset(desired)
    current_set = frozenset(current)
    return current_set - desired_set, desired_set - current_set


@dataclass
class MembershipChange:
    """Outcome of converging one aggregate's membership."""
    snapshot: Snapshot
    removed: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    errors: list[DeviceWriteError] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.added)


class MembershipDiffer:
    """Converge the member set of an aggregate resource."""

    def __init__(self, client: DeviceClient, attribute: str = "interfaces"):
        self.client = client
        self.attribute = attribute

    async def apply(self, aggregate: Snapshot, desired: Iterable[str]) -> MembershipChange:
        """Unassign extra members, then assign missing ones.

        New members join with the aggregate's mode from ``aggregate``, which
        must already reflect any mode change made in this pass.

        Args:
            aggregate: Current snapshot of the aggregate
            desired: Desired member keys

        Returns:
            MembershipChange whose snapshot reflects exactly the accepted calls
        """
        current = set(aggregate.get(self.attribute) or ())
        to_remove, to_add = diff_members(desired, current)
        result = MembershipChange(snapshot=aggregate)

        # Removals first so two aggregates never claim the same member
        for member in sorted(to_remove):
            try:
                await self.client.unassign_member(member)
            except DeviceFault as e:
                result.errors.append(
                    DeviceWriteError(f"Removing {member} from {aggregate.key} failed: {e}")
                )
                continue
            logger.info(f"Removed {member} from {aggregate.key}")
            current.discard(member)
            result.removed.append(member)

        mode = aggregate.get("mode")
        for member in sorted(to_add):
            try:
                await self.client.assign_member(aggregate.key, member, mode)
            except DeviceFault as e:
                result.errors.append(
                    DeviceWriteError(f"Adding {member} to {aggregate.key} failed: {e}")
                )
                continue
            logger.info(f"Added {member} to {aggregate.key} (mode {mode})")
            current.add(member)
            result.added.append(member)

        if result.changed:
            result.snapshot = aggregate.replace(**{self.attribute: frozenset(current)})
        return result
