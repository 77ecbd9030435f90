"""Switchport (VLAN trunk) configuration of Ethernet interfaces."""
from typing import Any

from ..config_engine.errors import ArgumentError
from ..config_engine.schema import Declaration, Snapshot
from .base import ResourceKind
from .interface import ETHERNET_PATTERN

VALID_MODES = {"access", "trunk"}
VLAN_RANGE = (1, 4094)


def _valid_vlan(vlan: Any) -> bool:
    return isinstance(vlan, int) and VLAN_RANGE[0] <= vlan <= VLAN_RANGE[1]


class NetworkTrunkKind(ResourceKind):
    name = "network_trunk"

    immediate = frozenset({"mode", "untagged_vlan", "tagged_vlans"})
    unsupported = frozenset({"encapsulation", "pruned_vlans"})

    def snapshot(self, record: dict[str, Any]) -> Snapshot:
        return Snapshot.present(self.name, record["name"], {
            "mode": record.get("mode", "access"),
            "untagged_vlan": record.get("untagged_vlan", 1),
            "tagged_vlans": sorted(record.get("tagged_vlans") or ()),
        })

    def same(self, attribute: str, declared: Any, current: Any) -> bool:
        if attribute == "tagged_vlans":
            return set(declared or ()) == set(current or ())
        return declared == current

    def validate(self, declaration: Declaration) -> None:
        super().validate(declaration)
        if not ETHERNET_PATTERN.match(declaration.key):
            raise ArgumentError(f"Invalid interface name: {declaration.key}")

        attrs = declaration.attributes
        mode = attrs.get("mode")
        if mode is not None and mode not in VALID_MODES:
            raise ArgumentError(f"Invalid switchport mode '{mode}' for {declaration.key}")

        untagged = attrs.get("untagged_vlan")
        if untagged is not None and not _valid_vlan(untagged):
            raise ArgumentError(
                f"Invalid VLAN ID {untagged}: must be between {VLAN_RANGE[0]} and {VLAN_RANGE[1]}"
            )
        for vlan in attrs.get("tagged_vlans") or ():
            if not _valid_vlan(vlan):
                raise ArgumentError(
                    f"Invalid VLAN ID {vlan}: must be between {VLAN_RANGE[0]} and {VLAN_RANGE[1]}"
                )
