"""Arista EOS client over eAPI (JSON-RPC on HTTP/HTTPS).

Reads parse the text running-config into normalized records; every
mutating call is rendered as one batch of configuration commands sent in a
single ``runCmds`` request.

Command Reference:
- show running-config                       : full configuration (text)
- show running-config interfaces <name>     : one interface block (text)
- interface Port-ChannelN / channel-group N mode active|passive|on
- speed forced 1000full / speed auto
- flowcontrol send|receive on|off|desired
- radius-server key 7 <key> / timeout <n> / retransmit <n>
- logging host <host>
- switchport mode trunk / switchport trunk allowed vlan <list>

The netdev ``disabled`` port-channel mode is the static EOS mode ``on``.
"""
import itertools
import logging
import re
from typing import Any, Optional, Sequence

import httpx

from .base import DeviceClient, DeviceConfig, DeviceFault
from ..utils.connection import (
    RETRYABLE_EXCEPTIONS,
    RETRYABLE_STATUS_CODES,
    TransientDeviceError,
    with_retry,
)
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)

INTERFACE_BLOCK = re.compile(r"^interface (\S+)\n((?:[ ]+.*(?:\n|$))*)", re.MULTILINE)
CHANNEL_GROUP = re.compile(r"^\s*channel-group (\d+) mode (\S+)", re.MULTILINE)
MIN_LINKS = re.compile(r"^\s*port-channel min-links (\d+)", re.MULTILINE)
DESCRIPTION = re.compile(r"^\s*description (.+)$", re.MULTILINE)
SPEED = re.compile(r"^\s*speed (?:forced )?(\d+g?)(full|half)\s*$", re.MULTILINE)
FLOWCONTROL = re.compile(r"^\s*flowcontrol (send|receive) (on|off|desired)", re.MULTILINE)
RADIUS_KEY = re.compile(r"^radius-server key (\d) (\S+)", re.MULTILINE)
RADIUS_TIMEOUT = re.compile(r"^radius-server timeout (\d+)", re.MULTILINE)
RADIUS_RETRANSMIT = re.compile(r"^radius-server retransmit (\d+)", re.MULTILINE)
LOGGING_HOST = re.compile(r"^logging host (\S+)", re.MULTILINE)
ACCESS_VLAN = re.compile(r"^\s*switchport access vlan (\d+)", re.MULTILINE)
NATIVE_VLAN = re.compile(r"^\s*switchport trunk native vlan (\d+)", re.MULTILINE)
ALLOWED_VLANS = re.compile(r"^\s*switchport trunk allowed vlan (\S+)", re.MULTILINE)

SPEED_TO_EOS = {
    "10m": "10", "100m": "100", "1g": "1000", "10g": "10000",
    "25g": "25g", "40g": "40g", "50g": "50g", "100g": "100g",
}
EOS_TO_SPEED = {v: k for k, v in SPEED_TO_EOS.items()}

MODE_TO_EOS = {"active": "active", "passive": "passive", "disabled": "on"}
EOS_TO_MODE = {v: k for k, v in MODE_TO_EOS.items()}

RADIUS_DEFAULTS = {"key": None, "key_format": 7, "timeout": 5, "retransmit_count": 3}
ALL_VLANS = list(range(1, 4095))


def expand_vlans(text: str) -> list[int]:
    """Expand an EOS VLAN list like ``1,10-12`` into integers."""
    if text in ("all", "1-4094"):
        return list(ALL_VLANS)
    if text == "none":
        return []
    vlans: list[int] = []
    for part in text.split(","):
        if "-" in part:
            start, end = part.split("-", 1)
            vlans.extend(range(int(start), int(end) + 1))
        elif part:
            vlans.append(int(part))
    return vlans


def compress_vlans(vlans: Sequence[int]) -> str:
    """Render VLAN ids as an EOS list, collapsing contiguous runs."""
    ordered = sorted(set(vlans))
    if not ordered:
        return "none"
    parts = []
    start = prev = ordered[0]
    for vlan in ordered[1:] + [None]:
        if vlan is not None and vlan == prev + 1:
            prev = vlan
            continue
        parts.append(str(start) if start == prev else f"{start}-{prev}")
        if vlan is not None:
            start = prev = vlan
    return ",".join(parts)


def link_commands(values: dict[str, Any]) -> list[str]:
    """Commands for speed/duplex; EOS sets both with one ``speed`` line."""
    speed = values.get("speed")
    duplex = values.get("duplex")
    if speed is None and duplex is None:
        return []
    if speed in (None, "auto"):
        if duplex not in (None, "auto"):
            raise DeviceFault("invalid-input", "duplex can only be forced together with a speed")
        return ["speed auto"]
    return [f"speed forced {SPEED_TO_EOS[speed]}{duplex if duplex in ('full', 'half') else 'full'}"]


def parse_interfaces(config: str) -> dict[str, str]:
    """Split running-config text into ``{interface: block body}``."""
    return {m.group(1): m.group(2) for m in INTERFACE_BLOCK.finditer(config)}


def _flowcontrol(body: str) -> dict[str, str]:
    state = {"send": "off", "receive": "off"}
    for direction, value in FLOWCONTROL.findall(body):
        state[direction] = value
    return state


def _description(body: str) -> str:
    match = DESCRIPTION.search(body)
    return match.group(1).strip() if match else ""


class EapiClient(DeviceClient):
    """Device API Client for Arista EOS switches."""

    def __init__(
        self,
        device_id: str,
        config: DeviceConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(device_id, config)
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)
        self._base_url = f"{config.protocol}://{config.host}:{config.port}"

    # --- Session ---

    def _ensure_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                auth=(self.config.username, self.config.get_password()),
                timeout=httpx.Timeout(self.config.timeout),
                verify=self.config.verify_ssl,
                transport=self._transport,
            )
        return self._http

    async def connect(self) -> bool:
        """Open the HTTP session and check the device answers."""
        logger.info(f"Connecting to EOS {self.device_id} at {self._base_url}")
        result = await self._run_cmds(["show version"])
        version = result[0].get("version", "unknown") if result else "unknown"
        self._connected = True
        logger.info(f"Connected to {self.device_id} (EOS {version})")
        return True

    async def disconnect(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self._connected = False
        logger.info(f"Disconnected from {self.device_id}")

    # --- Transport ---

    async def _run_cmds(self, cmds: list[str], fmt: str = "json") -> list[dict[str, Any]]:
        """Send one runCmds request.

        Raises:
            DeviceFault: If the device rejects the request or a command, or
                stays unreachable after retries
        """
        payload = {
            "jsonrpc": "2.0",
            "method": "runCmds",
            "params": {"version": 1, "cmds": cmds, "format": fmt},
            "id": f"netdev-sync-{next(self._ids)}",
        }
        try:
            response = await self._post(payload)
        except RETRYABLE_EXCEPTIONS as e:
            raise DeviceFault("unreachable", f"{self.device_id}: {e}") from e

        if response.status_code == 401:
            raise DeviceFault("unauthorized", f"Authentication to {self.device_id} failed")
        if response.status_code != 200:
            raise DeviceFault("http-error", f"HTTP {response.status_code}: {response.text[:200]}")

        body = response.json()
        if "error" in body:
            error = body["error"]
            details = [
                entry["errors"][0] for entry in error.get("data", [])
                if isinstance(entry, dict) and entry.get("errors")
            ]
            message = error.get("message", "")
            if details:
                message = f"{message}: {'; '.join(details)}"
            raise DeviceFault(str(error.get("code", "error")), message)
        return body.get("result", [])

    @with_retry(max_attempts=3, min_wait=1, max_wait=10)
    @timed("run_cmds")
    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        response = await self._ensure_http().post("/command-api", json=payload)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientDeviceError(response.status_code, response.reason_phrase)
        return response

    async def _configure(self, cmds: list[str]) -> None:
        logger.debug(f"Configuring {self.device_id}: {len(cmds)} commands")
        await self._run_cmds(["enable", "configure", *cmds, "end"])

    async def _running_config(self, section: Optional[str] = None) -> str:
        cmd = f"show running-config interfaces {section}" if section else "show running-config"
        result = await self._run_cmds([cmd], fmt="text")
        return result[0].get("output", "") if result else ""

    # --- Reads ---

    async def list_all(self, kind: str) -> list[dict[str, Any]]:
        config = await self._running_config()
        parsers = {
            "interface": self._interfaces,
            "port_channel": self._port_channels,
            "radius_global": self._radius,
            "syslog_server": self._syslog_hosts,
            "network_trunk": self._trunks,
        }
        if kind not in parsers:
            raise DeviceFault("unknown-kind", f"No such resource kind: {kind}")
        return parsers[kind](config)

    async def get_flowcontrol(self, member_key: str) -> dict[str, str]:
        body = parse_interfaces(await self._running_config(member_key)).get(member_key)
        if body is None:
            raise DeviceFault("not-found", f"Interface {member_key} not found")
        return _flowcontrol(body)

    def _interfaces(self, config: str) -> list[dict[str, Any]]:
        records = []
        for name, body in parse_interfaces(config).items():
            if not name.startswith("Ethernet"):
                continue
            speed, duplex = "auto", "auto"
            match = SPEED.search(body)
            if match:
                speed = EOS_TO_SPEED.get(match.group(1), match.group(1))
                duplex = match.group(2)
            flowcontrol = _flowcontrol(body)
            records.append({
                "name": name,
                "description": _description(body),
                "enable": not re.search(r"^\s*shutdown\s*$", body, re.MULTILINE),
                "speed": speed,
                "duplex": duplex,
                "flowcontrol_send": flowcontrol["send"],
                "flowcontrol_receive": flowcontrol["receive"],
            })
        return records

    def _port_channels(self, config: str) -> list[dict[str, Any]]:
        blocks = parse_interfaces(config)
        members: dict[int, list[tuple[str, str]]] = {}
        for name, body in blocks.items():
            match = CHANNEL_GROUP.search(body)
            if match:
                members.setdefault(int(match.group(1)), []).append((name, match.group(2)))

        records = []
        for name, body in blocks.items():
            if not name.startswith("Port-Channel"):
                continue
            group = members.get(int(name[len("Port-Channel"):]), [])
            min_links = MIN_LINKS.search(body)
            records.append({
                "name": name,
                "mode": EOS_TO_MODE.get(group[0][1], group[0][1]) if group else "disabled",
                "minimum_links": int(min_links.group(1)) if min_links else 0,
                "description": _description(body),
                "interfaces": [member for member, _ in group],
            })
        return records

    def _radius(self, config: str) -> list[dict[str, Any]]:
        record: dict[str, Any] = {"name": "settings", "enable": True, **RADIUS_DEFAULTS}
        key = RADIUS_KEY.search(config)
        if key:
            record["key_format"] = int(key.group(1))
            record["key"] = key.group(2)
        timeout = RADIUS_TIMEOUT.search(config)
        if timeout:
            record["timeout"] = int(timeout.group(1))
        retransmit = RADIUS_RETRANSMIT.search(config)
        if retransmit:
            record["retransmit_count"] = int(retransmit.group(1))
        return [record]

    def _syslog_hosts(self, config: str) -> list[dict[str, Any]]:
        return [{"name": host} for host in LOGGING_HOST.findall(config)]

    def _trunks(self, config: str) -> list[dict[str, Any]]:
        records = []
        for name, body in parse_interfaces(config).items():
            if not name.startswith("Ethernet") or re.search(r"^\s*no switchport", body, re.MULTILINE):
                continue
            mode = "trunk" if re.search(r"^\s*switchport mode trunk", body, re.MULTILINE) else "access"
            untagged = (NATIVE_VLAN if mode == "trunk" else ACCESS_VLAN).search(body)
            allowed = ALLOWED_VLANS.search(body)
            records.append({
                "name": name,
                "mode": mode,
                "untagged_vlan": int(untagged.group(1)) if untagged else 1,
                "tagged_vlans": expand_vlans(allowed.group(1)) if allowed else list(ALL_VLANS),
            })
        return records

    # --- Mutations ---

    async def create(self, kind: str, key: str, attributes: dict[str, Any]) -> None:
        if kind == "syslog_server":
            await self._configure([f"logging host {key}"])
        elif kind == "port_channel":
            await self._configure(self._port_channel_commands(key, attributes))
        elif kind == "network_trunk":
            cmds = [f"interface {key}", "switchport"]
            for name, value in attributes.items():
                cmds.extend(self._attribute_commands(kind, name, value))
            await self._configure(cmds)
        elif kind == "radius_global":
            await self._configure(self._radius_commands(attributes))
        else:
            raise DeviceFault("not-creatable", f"{kind} {key} cannot be created")

    async def destroy(self, kind: str, key: str) -> None:
        if kind == "syslog_server":
            await self._configure([f"no logging host {key}"])
        elif kind == "port_channel":
            group = _channel_group(key)
            cmds = []
            for name, body in parse_interfaces(await self._running_config()).items():
                match = CHANNEL_GROUP.search(body)
                if match and int(match.group(1)) == group:
                    cmds.extend([f"interface {name}", "no channel-group"])
            cmds.append(f"no interface {key}")
            await self._configure(cmds)
        elif kind == "network_trunk":
            await self._configure([f"interface {key}", "no switchport"])
        else:
            raise DeviceFault("not-removable", f"{kind} {key} cannot be removed")

    async def set_attribute(self, kind: str, key: str, name: str, value: Any) -> None:
        await self.set_attributes(kind, key, {name: value})

    async def set_attributes(
        self,
        kind: str,
        key: str,
        values: dict[str, Any],
        members: Sequence[str] = (),
    ) -> None:
        if kind == "radius_global":
            await self._configure(self._radius_commands(values))
            return

        link = {n: values[n] for n in ("speed", "duplex") if n in values}
        others = {n: v for n, v in values.items() if n not in link}
        cmds: list[str] = []

        if others:
            cmds.append(f"interface {key}")
            for name, value in others.items():
                cmds.extend(self._attribute_commands(kind, name, value))
        if link:
            for target in members or [key]:
                cmds.append(f"interface {target}")
                cmds.extend(link_commands(link))
        if cmds:
            await self._configure(cmds)

    async def assign_member(self, aggregate_key: str, member_key: str, mode: str) -> None:
        group = _channel_group(aggregate_key)
        await self._configure([
            f"interface {member_key}",
            f"channel-group {group} mode {MODE_TO_EOS.get(mode, mode)}",
        ])

    async def unassign_member(self, member_key: str) -> None:
        await self._configure([f"interface {member_key}", "no channel-group"])

    # --- Command rendering ---

    def _port_channel_commands(self, key: str, attributes: dict[str, Any]) -> list[str]:
        group = _channel_group(key)
        mode = MODE_TO_EOS.get(attributes.get("mode", "disabled"), "on")
        cmds = [f"interface {key}"]
        for name in ("description", "minimum_links"):
            if name in attributes:
                cmds.extend(self._attribute_commands("port_channel", name, attributes[name]))
        member_settings = []
        for name in ("flowcontrol_send", "flowcontrol_receive"):
            if name in attributes:
                member_settings.extend(self._attribute_commands("interface", name, attributes[name]))
        member_settings.extend(link_commands(attributes))
        for member in attributes.get("interfaces") or ():
            cmds.extend([f"interface {member}", f"channel-group {group} mode {mode}", *member_settings])
        return cmds

    def _radius_commands(self, values: dict[str, Any]) -> list[str]:
        cmds = []
        if values.get("key") is not None:
            cmds.append(f"radius-server key {values.get('key_format', 7)} {values['key']}")
        elif "key_format" in values:
            # EOS stores the format only as part of the key line
            raise DeviceFault("invalid-input", "key_format cannot be set without a RADIUS key")
        if "timeout" in values:
            cmds.append(f"radius-server timeout {values['timeout']}")
        if "retransmit_count" in values:
            cmds.append(f"radius-server retransmit {values['retransmit_count']}")
        return cmds

    def _attribute_commands(self, kind: str, name: str, value: Any) -> list[str]:
        """Interface-mode commands for one attribute."""
        if name == "description":
            return [f"description {value}"] if value else ["no description"]
        if name == "enable":
            return ["no shutdown" if value else "shutdown"]
        if name == "minimum_links":
            return [f"port-channel min-links {value}"]
        if name == "flowcontrol_send":
            return [f"flowcontrol send {value}"]
        if name == "flowcontrol_receive":
            return [f"flowcontrol receive {value}"]
        if name == "mode" and kind == "network_trunk":
            return [f"switchport mode {value}"]
        if name == "untagged_vlan":
            return [f"switchport access vlan {value}", f"switchport trunk native vlan {value}"]
        if name == "tagged_vlans":
            return [f"switchport trunk allowed vlan {compress_vlans(value)}"]
        if name in ("speed", "duplex"):
            return link_commands({name: value})
        raise DeviceFault("unsupported", f"{kind} attribute {name} cannot be set")


def _channel_group(key: str) -> int:
    match = re.match(r"^Port-Channel(\d+)$", key)
    if not match:
        raise DeviceFault("invalid-input", f"Invalid port-channel name: {key}")
    return int(match.group(1))
