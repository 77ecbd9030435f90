"""Instance discovery: device records to Snapshots.

For composite kinds the physical interfaces are fetched once per
enumeration, before any instance is aggregated, so every member is observed
at the same point in time.
"""
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional, Sequence

from ..devices.base import DeviceClient, DeviceFault
from ..utils.logging_config import timed_section
from .aggregation import synthesize
from .errors import DiscoveryError, ReconcileError
from .schema import Snapshot

if TYPE_CHECKING:
    from ..resources.base import ResourceKind

logger = logging.getLogger(__name__)

MEMBER_KIND = "interface"


class Discovery:
    """Lazy, restartable sequence of Snapshots for one resource kind.

    Every ``async for`` re-reads the device. Instances that fail to
    enumerate are skipped and recorded in ``errors``.
    """

    def __init__(
        self,
        kind: "ResourceKind",
        client: DeviceClient,
        member_kind: Optional["ResourceKind"] = None,
    ):
        self.kind = kind
        self.client = client
        self.member_kind = member_kind
        self.errors: list[DiscoveryError] = []
        #: Member Snapshots read by the last enumeration (composite kinds)
        self.members: dict[str, Snapshot] = {}

    @property
    def partial(self) -> bool:
        """Whether the last enumeration skipped any instance."""
        return bool(self.errors)

    def __aiter__(self) -> AsyncIterator[Snapshot]:
        return self._enumerate()

    async def collect(self) -> list[Snapshot]:
        """Enumerate all instances into a list."""
        return [snapshot async for snapshot in self]

    async def _enumerate(self) -> AsyncIterator[Snapshot]:
        self.errors = []
        self.members = {}
        async with timed_section("discover", device_id=self.client.device_id, kind=self.kind.name):
            records = await self.client.list_all(self.kind.name)

            members: dict[str, Snapshot] = {}
            if self.kind.composite:
                members = await self._member_snapshots()
            self.members = members

        for record in records:
            key = record.get("name")
            try:
                snapshot = self.kind.snapshot(record)
                if self.kind.composite:
                    order = record.get(self.kind.members_attribute) or ()
                    snapshot = await self._aggregate(snapshot, order, members)
            except (DeviceFault, ReconcileError, KeyError, ValueError) as e:
                error = DiscoveryError(self.kind.name, key, str(e))
                logger.warning(str(error))
                self.errors.append(error)
                continue
            yield snapshot

    async def _member_snapshots(self) -> dict[str, Snapshot]:
        if self.member_kind is None:
            raise ValueError(f"Composite kind {self.kind.name} needs a member kind")
        records = await self.client.list_all(self.member_kind.name)
        return {record["name"]: self.member_kind.snapshot(record) for record in records}

    async def _aggregate(
        self,
        snapshot: Snapshot,
        order: Sequence[str],
        members: dict[str, Snapshot],
    ) -> Snapshot:
        """Merge least-common member values into a composite Snapshot.

        Members are visited in device-reported order, which decides ties.
        """
        member_keys = list(dict.fromkeys(order))
        if not member_keys:
            # Nothing to aggregate over; leave member settings unknown
            return snapshot

        per_member: list[dict[str, Any]] = []
        for key in member_keys:
            member = members.get(key)
            if member is None:
                raise DiscoveryError(self.kind.name, snapshot.key, f"member {key} not found")
            per_member.append(await self.kind.member_values(self.client, member))

        synthesized = {
            name: synthesize([values[name] for values in per_member])
            for name in self.kind.aggregate_attributes
        }
        logger.debug(f"{self.kind.name} {snapshot.key}: synthesized {synthesized} from {member_keys}")
        return snapshot.replace(**synthesized)


class InstanceDiscovery:
    """Build Discovery sequences for resource kinds of one device."""

    def __init__(self, client: DeviceClient, kinds: dict[str, "ResourceKind"]):
        self.client = client
        self.kinds = kinds

    def discover(self, kind_name: str) -> Discovery:
        """Return the lazy Snapshot sequence for ``kind_name``."""
        kind = self.kinds[kind_name]
        member_kind = self.kinds.get(MEMBER_KIND) if kind.composite else None
        return Discovery(kind, self.client, member_kind)
