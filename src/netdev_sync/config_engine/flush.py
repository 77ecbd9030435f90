"""Flush executor: commits deferred changes once per pass.

Each flagged category is committed with one device call. Categories fail
independently; a failed category keeps its old values in the returned
Snapshot so the difference is detected again on the next pass.
"""
import logging
from typing import TYPE_CHECKING, Any

from ..devices.base import DeviceClient, DeviceFault
from .errors import PartialFlushError
from .schema import FlushCategory, PendingChangeSet, Snapshot

if TYPE_CHECKING:
    from ..resources.base import ResourceKind

logger = logging.getLogger(__name__)


class FlushExecutor:
    """Apply PendingChangeSets for one resource kind."""

    def __init__(self, kind: "ResourceKind", client: DeviceClient):
        self.kind = kind
        self.client = client

    async def flush(self, pending: PendingChangeSet, snapshot: Snapshot) -> Snapshot:
        """Commit every flagged category of ``pending``.

        Args:
            pending: Changes accumulated during this pass
            snapshot: Snapshot the changes were computed against

        Returns:
            New Snapshot with all pending values overlaid

        Raises:
            PartialFlushError: If any category failed; ``snapshot`` on the
                error holds the values that were committed
        """
        failed: dict[FlushCategory, str] = {}

        # Enum order keeps the call sequence stable
        for category in (c for c in FlushCategory if c in pending.flags):
            values = self._category_values(category, pending, snapshot)
            logger.info(
                f"Flushing {self.kind.name} {snapshot.key} [{category.value}]: {self.kind.mask(values)}"
            )
            try:
                await self.kind.flush(self.client, snapshot, category, values)
            except DeviceFault as e:
                logger.error(f"Flush of {self.kind.name} {snapshot.key} [{category.value}] failed: {e}")
                failed[category] = str(e)

        committed = {
            name: value for name, value in pending.values.items()
            if self.kind.deferred.get(name) not in failed
        }
        result = snapshot.replace(**committed)

        if failed:
            raise PartialFlushError(failed, snapshot=result)
        return result

    def _category_values(
        self,
        category: FlushCategory,
        pending: PendingChangeSet,
        snapshot: Snapshot,
    ) -> dict[str, Any]:
        """All attributes of a category, pending values over current ones."""
        values = {}
        for name in self.kind.category_attributes(category):
            if name in pending.values:
                values[name] = pending.values[name]
            elif snapshot.get(name) is not None:
                values[name] = snapshot.get(name)
        return values
