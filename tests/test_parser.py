"""Tests for manifest parsing."""
import pytest

from netdev_sync.config_engine.parser import (
    ManifestParser,
    ParseError,
    compute_checksum,
    expand_port_list,
    expand_vlan_list,
    load_manifest,
)
from netdev_sync.config_engine.schema import Lifecycle


class TestManifestParser:
    """Tests for ManifestParser."""

    def test_parse_basic(self):
        manifest = ManifestParser().parse({
            "device": "leaf1",
            "resources": {
                "syslog_server": {"10.0.0.5": None, "10.0.0.6": {"ensure": "absent"}},
            },
        })

        assert manifest.device_id == "leaf1"
        assert [d.key for d in manifest.declarations] == ["10.0.0.5", "10.0.0.6"]
        assert manifest.declarations[0].ensure == Lifecycle.PRESENT
        assert manifest.declarations[1].ensure == Lifecycle.ABSENT
        assert "ensure" not in manifest.declarations[1].attributes

    def test_device_id_alias(self):
        assert ManifestParser().parse({"device_id": "leaf2"}).device_id == "leaf2"

    def test_device_is_optional(self):
        assert ManifestParser().parse({"resources": {}}).device_id is None

    def test_member_ranges_expand(self):
        manifest = ManifestParser().parse({"resources": {"port_channel": {
            "Port-Channel5": {"interfaces": ["Ethernet1-3", "Ethernet7"]},
        }}})
        assert manifest.declarations[0].attributes["interfaces"] == [
            "Ethernet1", "Ethernet2", "Ethernet3", "Ethernet7",
        ]

    def test_vlan_lists_expand(self):
        manifest = ManifestParser().parse({"resources": {"network_trunk": {
            "Ethernet4": {"tagged_vlans": "10,20-22"},
        }}})
        assert manifest.declarations[0].attributes["tagged_vlans"] == [10, 20, 21, 22]

    def test_numeric_keys_become_strings(self):
        manifest = ManifestParser().parse({"resources": {"syslog_server": {1234: {}}}})
        assert manifest.declarations[0].key == "1234"

    def test_for_kind_and_kinds(self):
        manifest = ManifestParser().parse({"resources": {
            "syslog_server": {"10.0.0.5": {}},
            "interface": {"Ethernet1": {}},
        }})
        assert manifest.kinds == ["syslog_server", "interface"]
        assert [d.key for d in manifest.for_kind("interface")] == ["Ethernet1"]

    def test_invalid_ensure(self):
        with pytest.raises(ParseError, match="Invalid ensure"):
            ManifestParser().parse({"resources": {"syslog_server": {"10.0.0.5": {"ensure": "gone"}}}})

    def test_unknown_kind(self):
        with pytest.raises(ParseError, match="Unknown resource kind"):
            ManifestParser(kinds=["interface"]).parse({"resources": {"vlan": {"10": {}}}})

    def test_resources_must_be_mapping(self):
        with pytest.raises(ParseError):
            ManifestParser().parse({"resources": ["interface"]})

    def test_attributes_must_be_mapping(self):
        with pytest.raises(ParseError):
            ManifestParser().parse({"resources": {"interface": {"Ethernet1": "up"}}})

    def test_manifest_must_be_mapping(self):
        with pytest.raises(ParseError):
            ManifestParser().parse(["not", "a", "manifest"])


class TestExpansion:
    """Tests for port and VLAN list expansion."""

    def test_single_string(self):
        assert expand_port_list("Ethernet1-2") == ["Ethernet1", "Ethernet2"]

    def test_module_ports(self):
        assert expand_port_list(["Ethernet1/1-3"]) == ["Ethernet1/1", "Ethernet1/2", "Ethernet1/3"]

    def test_plain_names_untouched(self):
        assert expand_port_list(["Ethernet1", "Ethernet10"]) == ["Ethernet1", "Ethernet10"]

    def test_reversed_range(self):
        with pytest.raises(ParseError):
            expand_port_list(["Ethernet4-1"])

    def test_none(self):
        assert expand_port_list(None) == []

    def test_vlan_ints_and_ranges(self):
        assert expand_vlan_list([10, "20-21"]) == [10, 20, 21]

    def test_invalid_vlan(self):
        with pytest.raises(ParseError, match="Invalid VLAN"):
            expand_vlan_list(["ten"], "network_trunk Ethernet4")


class TestLoadManifest:
    """Tests for load_manifest()."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "leaf1.yaml"
        path.write_text(
            "device: leaf1\n"
            "resources:\n"
            "  port_channel:\n"
            "    Port-Channel5:\n"
            "      mode: active\n"
            "      interfaces: [Ethernet1-2]\n"
        )
        manifest = load_manifest(path)
        assert manifest.device_id == "leaf1"
        assert manifest.declarations[0].attributes["interfaces"] == ["Ethernet1", "Ethernet2"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ParseError, match="Cannot read"):
            load_manifest(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("resources: [unclosed\n")
        with pytest.raises(ParseError, match="Invalid YAML"):
            load_manifest(path)


class TestChecksum:
    """Tests for compute_checksum()."""

    def test_stable_across_key_order(self):
        a = {"device": "leaf1", "resources": {"x": 1, "y": 2}}
        b = {"resources": {"y": 2, "x": 1}, "device": "leaf1"}
        assert compute_checksum(a) == compute_checksum(b)

    def test_ignores_checksum_field(self):
        config = {"device": "leaf1"}
        assert compute_checksum(config) == compute_checksum({**config, "checksum": "sha256:0"})
        assert compute_checksum(config).startswith("sha256:")
