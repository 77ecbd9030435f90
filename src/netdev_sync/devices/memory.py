"""In-memory device client.

Behaves like a device state database keyed by resource kind and identity.
Used for tests, lab inventories and local simulations.

Features:
- Records every mutating call in ``calls`` and every read in ``reads``
- Can inject faults per operation (optionally per key) to simulate
  rejected configuration
"""
import copy
import logging
from typing import Any, Optional, Sequence

from .base import DeviceClient, DeviceConfig, DeviceFault

logger = logging.getLogger(__name__)

KINDS = ("interface", "port_channel", "radius_global", "syslog_server", "network_trunk")

RADIUS_DEFAULTS = {
    "enable": True,
    "key": None,
    "key_format": 7,
    "timeout": 5,
    "retransmit_count": 3,
}


class InMemoryDevice(DeviceClient):
    """Simulated device keeping its configuration in dictionaries.

    State layout::

        {
            "interface": {"Ethernet1": {"speed": "1g", "duplex": "full", ...}},
            "port_channel": {"Port-Channel5": {"mode": "active", "interfaces": [...]}},
            "radius_global": {"settings": {...}},
            "syslog_server": {"10.0.0.5": {}},
            "network_trunk": {"Ethernet7": {"mode": "trunk", ...}},
        }
    """

    def __init__(
        self,
        device_id: str = "memory",
        config: Optional[DeviceConfig] = None,
        state: Optional[dict[str, dict[str, dict]]] = None,
    ):
        config = config or DeviceConfig(type="memory", name=device_id)
        super().__init__(device_id, config)
        initial = state if state is not None else config.state
        self.state: dict[str, dict[str, dict]] = {kind: {} for kind in KINDS}
        for kind, instances in copy.deepcopy(initial or {}).items():
            self.state.setdefault(kind, {}).update(instances or {})
        self.state["radius_global"].setdefault("settings", {})
        for name, value in RADIUS_DEFAULTS.items():
            self.state["radius_global"]["settings"].setdefault(name, value)

        self.calls: list[tuple] = []
        self.reads: list[tuple] = []
        self._faults: dict[tuple[str, Optional[str]], DeviceFault] = {}

    # --- Fault injection ---

    def fail(self, operation: str, key: Optional[str] = None, kind: str = "rejected",
             message: str = "injected fault") -> None:
        """Make an operation raise DeviceFault (for one key, or for all keys)."""
        self._faults[(operation, key)] = DeviceFault(kind, message)

    def clear_faults(self) -> None:
        self._faults.clear()

    def _check(self, operation: str, key: Optional[str] = None) -> None:
        fault = self._faults.get((operation, key)) or self._faults.get((operation, None))
        if fault:
            raise fault

    def _record(self, operation: str, *args: Any) -> None:
        # Attempts are recorded even when an injected fault rejects them
        self.calls.append((operation, *args))
        self._check(operation, args[1] if operation in _KEYED_BY_SECOND else args[0])

    # --- Session ---

    async def connect(self) -> bool:
        self._connected = True
        return True

    async def disconnect(self) -> None:
        self._connected = False

    # --- Reads ---

    async def list_all(self, kind: str) -> list[dict[str, Any]]:
        self.reads.append(("list_all", kind))
        self._check("list_all", kind)
        if kind not in self.state:
            raise DeviceFault("unknown-kind", f"No such resource kind: {kind}")
        records = []
        for name, attrs in self.state[kind].items():
            record = copy.deepcopy(attrs)
            record["name"] = name
            records.append(record)
        return records

    async def get_flowcontrol(self, member_key: str) -> dict[str, str]:
        self.reads.append(("get_flowcontrol", member_key))
        self._check("get_flowcontrol", member_key)
        iface = self._interface(member_key)
        return {
            "send": iface.get("flowcontrol_send", "off"),
            "receive": iface.get("flowcontrol_receive", "off"),
        }

    # --- Mutations ---

    async def create(self, kind: str, key: str, attributes: dict[str, Any]) -> None:
        self._record("create", kind, key, copy.deepcopy(attributes))
        if kind == "interface":
            raise DeviceFault("not-creatable", f"Cannot create physical interface {key}")
        attrs = copy.deepcopy(attributes)
        if kind == "port_channel":
            members = attrs.pop("interfaces", None) or []
            mode = attrs.setdefault("mode", "disabled")
            link = {n: attrs.pop(n) for n in _MEMBER_ATTRIBUTES if n in attrs}
            self.state[kind][key] = {"interfaces": [], **attrs}
            for member in members:
                self._join(key, member, mode)
                self._interface(member).update(link)
            return
        self.state[kind][key] = attrs

    async def destroy(self, kind: str, key: str) -> None:
        self._record("destroy", kind, key)
        if kind == "interface":
            raise DeviceFault("not-removable", f"Cannot remove physical interface {key}")
        if key not in self.state[kind]:
            raise DeviceFault("not-found", f"{kind} {key} does not exist")
        del self.state[kind][key]

    async def set_attribute(self, kind: str, key: str, name: str, value: Any) -> None:
        self._record("set_attribute", kind, key, name, value)
        self._instance(kind, key)[name] = copy.deepcopy(value)

    async def set_attributes(
        self,
        kind: str,
        key: str,
        values: dict[str, Any],
        members: Sequence[str] = (),
    ) -> None:
        self._record("set_attributes", kind, key, dict(values), tuple(members))
        if members:
            for member in members:
                self._interface(member).update(copy.deepcopy(values))
            return
        self._instance(kind, key).update(copy.deepcopy(values))

    async def assign_member(self, aggregate_key: str, member_key: str, mode: str) -> None:
        self._record("assign_member", aggregate_key, member_key, mode)
        if aggregate_key not in self.state["port_channel"]:
            raise DeviceFault("not-found", f"port_channel {aggregate_key} does not exist")
        self._join(aggregate_key, member_key, mode)

    async def unassign_member(self, member_key: str) -> None:
        self._record("unassign_member", member_key)
        self._leave(member_key)

    # --- Helpers ---

    def _instance(self, kind: str, key: str) -> dict:
        try:
            return self.state[kind][key]
        except KeyError:
            raise DeviceFault("not-found", f"{kind} {key} does not exist")

    def _interface(self, key: str) -> dict:
        return self._instance("interface", key)

    def _join(self, aggregate_key: str, member_key: str, mode: str) -> None:
        self._interface(member_key)
        self._leave(member_key)
        self.state["port_channel"][aggregate_key]["interfaces"].append(member_key)

    def _leave(self, member_key: str) -> None:
        for channel in self.state["port_channel"].values():
            if member_key in channel.get("interfaces", []):
                channel["interfaces"].remove(member_key)


# Operations whose fault-injection key is the second positional argument
_KEYED_BY_SECOND = {"create", "destroy", "set_attribute", "set_attributes", "assign_member"}

_MEMBER_ATTRIBUTES = ("speed", "duplex", "flowcontrol_send", "flowcontrol_receive")
