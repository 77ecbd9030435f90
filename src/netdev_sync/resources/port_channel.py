"""Port-channel (LAG) resources.

A port-channel aggregates physical interfaces. Duplex, speed and flow
control are really member settings: discovery reports the least common
member value, and writes are applied to every member.

The negotiation mode cannot be changed in place; the channel group has to
be destroyed and created again.
"""
import logging
import re
from typing import Any, Mapping, Optional

from ..config_engine.aggregation import synthesize
from ..config_engine.errors import ArgumentError
from ..config_engine.schema import Declaration, FlushCategory, Snapshot
from ..devices.base import DeviceClient
from .base import ResourceKind
from .interface import ETHERNET_PATTERN, validate_link

logger = logging.getLogger(__name__)

PORT_CHANNEL_PATTERN = re.compile(r"^Port-Channel(\d+)$")

VALID_MODES = {"active", "passive", "disabled"}
MAX_MINIMUM_LINKS = 16

FLOWCONTROL_ATTRIBUTES = ("flowcontrol_send", "flowcontrol_receive")


def channel_id(key: str) -> int:
    """Numeric channel group of a port-channel name (Port-Channel5 -> 5)."""
    match = PORT_CHANNEL_PATTERN.match(key)
    if not match:
        raise ArgumentError(f"Invalid port-channel name: {key}")
    return int(match.group(1))


class PortChannelKind(ResourceKind):
    name = "port_channel"
    composite = True
    members_attribute = "interfaces"
    aggregate_attributes = ("duplex", "speed", "flowcontrol_send", "flowcontrol_receive")

    immediate = frozenset({"description", "minimum_links", *FLOWCONTROL_ATTRIBUTES})
    deferred = {"speed": FlushCategory.LINK, "duplex": FlushCategory.LINK}
    replacement = frozenset({"mode"})

    def snapshot(self, record: dict[str, Any]) -> Snapshot:
        name = record["name"]
        return Snapshot.present(self.name, name, {
            "id": channel_id(name),
            "mode": record.get("mode", "disabled"),
            "minimum_links": record.get("minimum_links", 0),
            "description": record.get("description", ""),
            "interfaces": frozenset(record.get("interfaces") or ()),
        })

    async def member_values(self, client: DeviceClient, member: Snapshot) -> dict[str, Any]:
        flowcontrol = await client.get_flowcontrol(member.key)
        return {
            "duplex": member.get("duplex"),
            "speed": member.get("speed"),
            "flowcontrol_send": flowcontrol["send"],
            "flowcontrol_receive": flowcontrol["receive"],
        }

    def applicable(self, snapshot: Snapshot, attribute: str) -> bool:
        # Member settings need members to live on
        if attribute in self.aggregate_attributes:
            return bool(snapshot.get("interfaces"))
        return True

    def unrepresented(self, snapshot: Snapshot, attribute: str) -> bool:
        # The device keeps the negotiation mode on each member; an empty
        # channel has none, and members joining later get the declared mode
        return attribute == "mode" and not snapshot.get("interfaces")

    def same(self, attribute: str, declared: Any, current: Any) -> bool:
        if attribute == "interfaces":
            return frozenset(declared or ()) == frozenset(current or ())
        return declared == current

    def validate(self, declaration: Declaration) -> None:
        super().validate(declaration)
        channel_id(declaration.key)
        attrs = declaration.attributes

        mode = attrs.get("mode")
        if mode is not None and mode not in VALID_MODES:
            raise ArgumentError(
                f"Invalid mode '{mode}' for {declaration.key}. Valid: {', '.join(sorted(VALID_MODES))}"
            )

        minimum_links = attrs.get("minimum_links")
        if minimum_links is not None and (
            not isinstance(minimum_links, int) or not 0 <= minimum_links <= MAX_MINIMUM_LINKS
        ):
            raise ArgumentError(
                f"minimum_links for {declaration.key} must be between 0 and {MAX_MINIMUM_LINKS}"
            )

        for member in attrs.get("interfaces") or ():
            if not ETHERNET_PATTERN.match(member):
                raise ArgumentError(f"Invalid member interface '{member}' in {declaration.key}")

        validate_link(self.name, declaration)

    def create_attributes(self, declaration: Declaration) -> dict[str, Any]:
        attributes = super().create_attributes(declaration)
        # The device creates channel groups without negotiation by default
        attributes.setdefault("mode", "disabled")
        if "interfaces" in attributes:
            attributes["interfaces"] = sorted(attributes["interfaces"])
        return attributes

    async def write(self, client: DeviceClient, snapshot: Snapshot, attribute: str, value: Any) -> None:
        if attribute in FLOWCONTROL_ATTRIBUTES:
            for member in sorted(snapshot.get("interfaces") or ()):
                await client.set_attribute("interface", member, attribute, value)
            return
        await client.set_attribute(self.name, snapshot.key, attribute, value)

    async def flush(
        self,
        client: DeviceClient,
        snapshot: Snapshot,
        category: FlushCategory,
        values: dict[str, Any],
    ) -> None:
        members = sorted(snapshot.get("interfaces") or ())
        await client.set_attributes(self.name, snapshot.key, values, members=members)

    def after_membership_change(
        self,
        snapshot: Snapshot,
        members: Optional[Mapping[str, Snapshot]] = None,
    ) -> Snapshot:
        # Re-synthesize over the new member set from the interfaces seen in
        # this pass; unknown members leave the member settings unknown
        keys = sorted(snapshot.get("interfaces") or ())
        observed = [members[key] for key in keys if members and key in members]
        if not keys or len(observed) != len(keys):
            return snapshot.replace(**{name: None for name in self.aggregate_attributes})
        return snapshot.replace(**{
            name: synthesize([member.get(name) for member in observed])
            for name in self.aggregate_attributes
        })

    def recreate_attributes(self, snapshot: Snapshot, attribute: str, value: Any) -> dict[str, Any]:
        attributes = super().recreate_attributes(snapshot, attribute, value)
        attributes.pop("id", None)
        attributes["interfaces"] = sorted(attributes.get("interfaces") or ())
        return attributes
