"""Parser for resource manifests.

Converts dict/YAML input to Declarations grouped per device.
"""
import hashlib
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from .schema import Declaration, Lifecycle, ResourceKey

# "Ethernet1-4" or "Ethernet1/1-4"
PORT_RANGE = re.compile(r"^(?P<prefix>[A-Za-z-]+(?:\d+/)*)(?P<start>\d+)-(?P<end>\d+)$")

# Attributes holding lists of interface names
INTERFACE_LISTS = ("interfaces",)
# Attributes holding lists of VLAN ids
VLAN_LISTS = ("tagged_vlans", "pruned_vlans")


class ParseError(Exception):
    """Error parsing a resource manifest."""
    pass


@dataclass
class Manifest:
    """Declarations for one device."""
    device_id: Optional[str]
    declarations: list[Declaration] = field(default_factory=list)

    def for_kind(self, kind: str) -> list[Declaration]:
        return [d for d in self.declarations if d.kind == kind]

    @property
    def kinds(self) -> list[str]:
        return list(dict.fromkeys(d.kind for d in self.declarations))


class ManifestParser:
    """Parse manifests from dict/YAML format."""

    def __init__(self, kinds: Optional[Iterable[str]] = None):
        """
        Args:
            kinds: Resource kinds accepted in manifests; any kind if None
        """
        self.kinds = set(kinds) if kinds is not None else None

    def parse(self, config: dict[str, Any]) -> Manifest:
        """
        Parse a manifest dict into a Manifest.

        Args:
            config: Dict with device and resources

        Returns:
            Manifest object

        Raises:
            ParseError: If the manifest is invalid
        """
        if not isinstance(config, dict):
            raise ParseError("Manifest must be a mapping")

        device_id = config.get("device_id") or config.get("device")

        resources = config.get("resources") or {}
        if not isinstance(resources, dict):
            raise ParseError("'resources' must map resource kinds to instances")

        declarations = []
        for kind, instances in resources.items():
            if self.kinds is not None and kind not in self.kinds:
                raise ParseError(f"Unknown resource kind: {kind}")
            declarations.extend(self._parse_kind(kind, instances or {}))

        return Manifest(device_id=device_id, declarations=declarations)

    def _parse_kind(self, kind: str, instances: Any) -> list[Declaration]:
        if not isinstance(instances, dict):
            raise ParseError(f"Instances of {kind} must be a mapping of name to attributes")
        return [
            self._parse_single(kind, str(key), attrs)
            for key, attrs in instances.items()
        ]

    def _parse_single(self, kind: str, key: str, config: Optional[dict[str, Any]]) -> Declaration:
        """Parse a single resource declaration."""
        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ParseError(f"Attributes of {kind} {key} must be a mapping")

        attributes = dict(config)
        ensure_str = attributes.pop("ensure", Lifecycle.PRESENT.value)
        try:
            ensure = Lifecycle(ensure_str)
        except ValueError:
            raise ParseError(
                f"Invalid ensure for {kind} {key}: {ensure_str}. "
                f"Must be 'present' or 'absent'"
            )

        for name in INTERFACE_LISTS:
            if name in attributes:
                attributes[name] = expand_port_list(attributes[name])
        for name in VLAN_LISTS:
            if name in attributes:
                attributes[name] = expand_vlan_list(attributes[name], f"{kind} {key}")

        return Declaration(kind=kind, key=ResourceKey(key), ensure=ensure, attributes=attributes)


def expand_port_list(ports: list[str] | str | None) -> list[str]:
    """
    Expand port list, handling ranges like "Ethernet1-4".

    Examples:
        ["Ethernet1", "Ethernet2"] -> ["Ethernet1", "Ethernet2"]
        "Ethernet1-3" -> ["Ethernet1", "Ethernet2", "Ethernet3"]
        ["Ethernet1/1-2"] -> ["Ethernet1/1", "Ethernet1/2"]
    """
    if ports is None:
        return []
    if isinstance(ports, str):
        ports = [ports]

    expanded = []
    for port in ports:
        match = PORT_RANGE.match(str(port))
        if match:
            prefix = match.group("prefix")
            start, end = int(match.group("start")), int(match.group("end"))
            if end < start:
                raise ParseError(f"Invalid port range: {port}")
            expanded.extend(f"{prefix}{i}" for i in range(start, end + 1))
        else:
            expanded.append(str(port))
    return expanded


def expand_vlan_list(vlans: Any, owner: str = "") -> list[int]:
    """Expand VLAN ids given as ints, "10-20" ranges or a comma string."""
    if vlans is None:
        return []
    if isinstance(vlans, (int, str)):
        vlans = [vlans]

    expanded: list[int] = []
    for item in vlans:
        for part in str(item).split(","):
            part = part.strip()
            try:
                if "-" in part:
                    start, end = (int(p) for p in part.split("-", 1))
                    expanded.extend(range(start, end + 1))
                elif part:
                    expanded.append(int(part))
            except ValueError:
                raise ParseError(f"Invalid VLAN id '{part}' in {owner}".rstrip())
    return expanded


def load_manifest(path: str | Path, parser: Optional[ManifestParser] = None) -> Manifest:
    """Load and parse a YAML manifest file.

    Raises:
        ParseError: If the file cannot be read or parsed
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ParseError(f"Cannot read manifest {path}: {e}")
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in {path}: {e}")
    return (parser or ManifestParser()).parse(data)


def compute_checksum(config: dict[str, Any]) -> str:
    """
    Compute SHA256 checksum of a manifest dict.

    Useful for matching audit records to the manifest that produced them.
    """
    config_copy = {k: v for k, v in config.items() if k != "checksum"}
    config_str = json.dumps(config_copy, sort_keys=True, separators=(",", ":"), default=str)
    hash_bytes = hashlib.sha256(config_str.encode()).hexdigest()
    return f"sha256:{hash_bytes[:16]}"  # Short hash for readability
