"""Physical Ethernet interfaces.

Interfaces always exist on the device: they can be configured but never
created or removed. They are also the members port-channels aggregate.
"""
import re

from ..config_engine.errors import ArgumentError
from ..config_engine.schema import Declaration, FlushCategory, Lifecycle
from .base import ResourceKind

ETHERNET_PATTERN = re.compile(r"^Ethernet\d+(/\d+)*$")

VALID_SPEEDS = {"auto", "10m", "100m", "1g", "10g", "25g", "40g", "50g", "100g"}
VALID_DUPLEX = {"auto", "full", "half"}
VALID_FLOWCONTROL = {"on", "off", "desired"}


def validate_link(kind: str, declaration: Declaration) -> None:
    """Check speed, duplex and flow-control values shared by interfaces and port-channels."""
    attrs = declaration.attributes
    if "speed" in attrs and attrs["speed"] not in VALID_SPEEDS:
        raise ArgumentError(
            f"Invalid speed '{attrs['speed']}' for {kind} {declaration.key}. "
            f"Valid: {', '.join(sorted(VALID_SPEEDS))}"
        )
    if "duplex" in attrs and attrs["duplex"] not in VALID_DUPLEX:
        raise ArgumentError(f"Invalid duplex '{attrs['duplex']}' for {kind} {declaration.key}")
    for name in ("flowcontrol_send", "flowcontrol_receive"):
        if name in attrs and attrs[name] not in VALID_FLOWCONTROL:
            raise ArgumentError(f"Invalid {name} '{attrs[name]}' for {kind} {declaration.key}")


class InterfaceKind(ResourceKind):
    name = "interface"

    immediate = frozenset({"description", "enable", "flowcontrol_send", "flowcontrol_receive"})
    deferred = {"speed": FlushCategory.LINK, "duplex": FlushCategory.LINK}
    unsupported = frozenset({"mtu"})

    creatable = False
    destroyable = False

    def validate(self, declaration: Declaration) -> None:
        if declaration.ensure == Lifecycle.ABSENT:
            raise ArgumentError(f"Physical interface {declaration.key} cannot be removed")
        super().validate(declaration)
        if not ETHERNET_PATTERN.match(declaration.key):
            raise ArgumentError(f"Invalid interface name: {declaration.key}")
        enable = declaration.attributes.get("enable")
        if enable is not None and not isinstance(enable, bool):
            raise ArgumentError(f"enable must be true or false for {declaration.key}")
        validate_link(self.name, declaration)
