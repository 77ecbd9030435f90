"""Tests for the Arista eAPI client, against a mocked HTTP transport."""
import json

import httpx
import pytest

from netdev_sync.config_engine import ReconcileEngine
from netdev_sync.devices.base import DeviceConfig, DeviceFault
from netdev_sync.devices.eapi import (
    EapiClient,
    compress_vlans,
    expand_vlans,
    link_commands,
)

RUNNING_CONFIG = """\
! device: leaf1 (DCS-7050TX-64, EOS-4.28.3M)
!
hostname leaf1
!
radius-server key 7 070E234F
radius-server timeout 10
!
logging host 10.0.0.5
logging host syslog.example.net 514
!
interface Port-Channel5
   description uplink
   port-channel min-links 2
!
interface Port-Channel6
!
interface Ethernet1
   channel-group 5 mode active
   speed forced 1000full
   flowcontrol send on
!
interface Ethernet2
   channel-group 5 mode active
   speed forced 1000half
!
interface Ethernet3
   description server
   shutdown
   switchport mode trunk
   switchport trunk native vlan 10
   switchport trunk allowed vlan 20-22,30
!
interface Ethernet4
   no switchport
!
interface Management1
   ip address 192.0.2.10/24
!
end
"""


EMPTY_CHANNEL_CONFIG = """\
interface Port-Channel9
!
interface Ethernet5
   speed forced 1000full
!
interface Ethernet6
   speed forced 1000full
!
end
"""


class FakeSwitch:
    """Answers runCmds requests and records configuration batches."""

    def __init__(self, config: str = RUNNING_CONFIG):
        self.config = config
        self.batches: list[list[str]] = []
        self.requests: list[httpx.Request] = []
        self.error: dict | None = None
        self.statuses: list[int] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.statuses:
            return httpx.Response(self.statuses.pop(0))

        body = json.loads(request.content)
        cmds = body["params"]["cmds"]
        if self.error is not None:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.error})

        if cmds[0] == "show version":
            result = [{"version": "4.28.3M"}]
        elif cmds[0] == "show running-config":
            result = [{"output": self.config}]
        elif cmds[0].startswith("show running-config interfaces "):
            name = cmds[0].rsplit(" ", 1)[1]
            block = self.config.split(f"interface {name}\n", 1)[1].split("!", 1)[0]
            result = [{"output": f"interface {name}\n{block}"}]
        else:
            self.batches.append(cmds)
            result = [{} for _ in cmds]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


@pytest.fixture
def switch():
    return FakeSwitch()


@pytest.fixture
def client(switch):
    config = DeviceConfig(type="eapi", name="leaf1", host="leaf1.example.net", password="secret")
    return EapiClient("leaf1", config, transport=httpx.MockTransport(switch))


class TestSession:
    """Tests for connecting and the JSON-RPC envelope."""

    @pytest.mark.asyncio
    async def test_connect(self, client, switch):
        async with client:
            assert client.is_connected
        assert not client.is_connected

        request = switch.requests[0]
        assert request.url.scheme == "https"
        assert request.url.host == "leaf1.example.net"
        assert request.url.path == "/command-api"
        assert request.headers["authorization"].startswith("Basic ")
        body = json.loads(request.content)
        assert body["method"] == "runCmds"
        assert body["params"] == {"version": 1, "cmds": ["show version"], "format": "json"}

    @pytest.mark.asyncio
    async def test_command_error_is_a_device_fault(self, client, switch):
        switch.error = {
            "code": 1002,
            "message": "CLI command 3 of 4 'speed forced 7full' failed: invalid command",
            "data": [{}, {}, {"errors": ["Invalid input (at token 2: '7full')"]}],
        }
        with pytest.raises(DeviceFault) as exc_info:
            await client.unassign_member("Ethernet1")
        assert exc_info.value.kind == "1002"
        assert "Invalid input" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unauthorized(self, client, switch):
        switch.statuses = [401]
        with pytest.raises(DeviceFault) as exc_info:
            await client.list_all("interface")
        assert exc_info.value.kind == "unauthorized"

    @pytest.mark.asyncio
    async def test_busy_device_is_retried(self, client, switch):
        switch.statuses = [503]
        records = await client.list_all("syslog_server")
        assert len(switch.requests) == 2
        assert records

    @pytest.mark.asyncio
    async def test_unreachable_after_retries(self, client, switch):
        switch.statuses = [503, 503, 503]
        with pytest.raises(DeviceFault) as exc_info:
            await client.list_all("syslog_server")
        assert exc_info.value.kind == "unreachable"
        assert len(switch.requests) == 3


class TestDiscovery:
    """Tests for parsing the running configuration."""

    @pytest.mark.asyncio
    async def test_interfaces(self, client):
        records = {r["name"]: r for r in await client.list_all("interface")}

        assert list(records) == ["Ethernet1", "Ethernet2", "Ethernet3", "Ethernet4"]
        assert records["Ethernet1"]["speed"] == "1g"
        assert records["Ethernet1"]["duplex"] == "full"
        assert records["Ethernet1"]["flowcontrol_send"] == "on"
        assert records["Ethernet2"]["duplex"] == "half"
        assert records["Ethernet3"]["speed"] == "auto"
        assert records["Ethernet3"]["enable"] is False
        assert records["Ethernet3"]["description"] == "server"

    @pytest.mark.asyncio
    async def test_port_channels(self, client):
        records = {r["name"]: r for r in await client.list_all("port_channel")}

        assert records["Port-Channel5"] == {
            "name": "Port-Channel5",
            "mode": "active",
            "minimum_links": 2,
            "description": "uplink",
            "interfaces": ["Ethernet1", "Ethernet2"],
        }
        assert records["Port-Channel6"]["interfaces"] == []
        assert records["Port-Channel6"]["mode"] == "disabled"

    @pytest.mark.asyncio
    async def test_radius(self, client):
        assert await client.list_all("radius_global") == [{
            "name": "settings",
            "enable": True,
            "key": "070E234F",
            "key_format": 7,
            "timeout": 10,
            "retransmit_count": 3,
        }]

    @pytest.mark.asyncio
    async def test_syslog_hosts(self, client):
        records = await client.list_all("syslog_server")
        assert [r["name"] for r in records] == ["10.0.0.5", "syslog.example.net"]

    @pytest.mark.asyncio
    async def test_trunks(self, client):
        records = {r["name"]: r for r in await client.list_all("network_trunk")}

        assert "Ethernet4" not in records
        assert records["Ethernet3"]["mode"] == "trunk"
        assert records["Ethernet3"]["untagged_vlan"] == 10
        assert records["Ethernet3"]["tagged_vlans"] == [20, 21, 22, 30]
        assert records["Ethernet1"]["mode"] == "access"
        assert len(records["Ethernet1"]["tagged_vlans"]) == 4094

    @pytest.mark.asyncio
    async def test_flowcontrol(self, client):
        assert await client.get_flowcontrol("Ethernet1") == {"send": "on", "receive": "off"}

    @pytest.mark.asyncio
    async def test_unknown_kind(self, client):
        with pytest.raises(DeviceFault):
            await client.list_all("vlan")


class TestMutations:
    """Tests for rendering mutations as configuration batches."""

    @pytest.mark.asyncio
    async def test_link_settings_on_every_member(self, client, switch):
        await client.set_attributes(
            "port_channel", "Port-Channel5", {"speed": "1g", "duplex": "full"},
            members=["Ethernet1", "Ethernet2"],
        )
        assert switch.batches == [[
            "enable", "configure",
            "interface Ethernet1", "speed forced 1000full",
            "interface Ethernet2", "speed forced 1000full",
            "end",
        ]]

    @pytest.mark.asyncio
    async def test_radius_categories(self, client, switch):
        await client.set_attributes("radius_global", "settings", {"key": "secret", "key_format": 0})
        await client.set_attributes("radius_global", "settings", {"timeout": 20})
        assert switch.batches[0][2:-1] == ["radius-server key 0 secret"]
        assert switch.batches[1][2:-1] == ["radius-server timeout 20"]

    @pytest.mark.asyncio
    async def test_key_format_needs_a_key(self, client, switch):
        with pytest.raises(DeviceFault) as exc_info:
            await client.set_attributes("radius_global", "settings", {"key_format": 0})
        assert exc_info.value.kind == "invalid-input"
        assert switch.batches == []

    @pytest.mark.asyncio
    async def test_create_port_channel(self, client, switch):
        await client.create("port_channel", "Port-Channel7", {
            "mode": "disabled",
            "minimum_links": 1,
            "interfaces": ["Ethernet4"],
        })
        assert switch.batches[0][2:-1] == [
            "interface Port-Channel7",
            "port-channel min-links 1",
            "interface Ethernet4",
            "channel-group 7 mode on",
        ]

    @pytest.mark.asyncio
    async def test_destroy_port_channel_releases_members(self, client, switch):
        await client.destroy("port_channel", "Port-Channel5")
        assert switch.batches[0][2:-1] == [
            "interface Ethernet1", "no channel-group",
            "interface Ethernet2", "no channel-group",
            "no interface Port-Channel5",
        ]

    @pytest.mark.asyncio
    async def test_member_moves(self, client, switch):
        await client.assign_member("Port-Channel5", "Ethernet3", "passive")
        await client.unassign_member("Ethernet2")
        assert switch.batches[0][2:-1] == ["interface Ethernet3", "channel-group 5 mode passive"]
        assert switch.batches[1][2:-1] == ["interface Ethernet2", "no channel-group"]

    @pytest.mark.asyncio
    async def test_immediate_attributes(self, client, switch):
        await client.set_attribute("interface", "Ethernet1", "enable", False)
        await client.set_attribute("interface", "Ethernet1", "description", "")
        await client.set_attribute("network_trunk", "Ethernet3", "tagged_vlans", [30, 20, 21])
        assert switch.batches[0][2:-1] == ["interface Ethernet1", "shutdown"]
        assert switch.batches[1][2:-1] == ["interface Ethernet1", "no description"]
        assert switch.batches[2][2:-1] == ["interface Ethernet3", "switchport trunk allowed vlan 20-21,30"]

    @pytest.mark.asyncio
    async def test_syslog_host(self, client, switch):
        await client.create("syslog_server", "10.0.0.6", {})
        await client.destroy("syslog_server", "10.0.0.5")
        assert switch.batches[0][2:-1] == ["logging host 10.0.0.6"]
        assert switch.batches[1][2:-1] == ["no logging host 10.0.0.5"]

    @pytest.mark.asyncio
    async def test_interfaces_cannot_be_created(self, client, switch):
        with pytest.raises(DeviceFault):
            await client.create("interface", "Ethernet9", {})
        assert switch.batches == []


class TestReconcilePasses:
    """Tests for whole passes against the mocked switch."""

    @pytest.mark.asyncio
    async def test_empty_channel_mode_is_idempotent(self, client, switch):
        """EOS keeps no mode for a channel without members."""
        engine = ReconcileEngine(client)
        manifest = {"resources": {"port_channel": {"Port-Channel6": {"mode": "active"}}}}

        for _ in range(2):
            [result] = await engine.apply(manifest)
            assert result.success
            assert not result.changed
        assert switch.batches == []

    @pytest.mark.asyncio
    async def test_new_members_keep_observed_speed(self, client, switch):
        """Duplex declared with new members is forced at the speed they run."""
        switch.config = EMPTY_CHANNEL_CONFIG
        engine = ReconcileEngine(client)

        [result] = await engine.apply({"resources": {"port_channel": {"Port-Channel9": {
            "mode": "disabled",
            "interfaces": ["Ethernet5", "Ethernet6"],
            "duplex": "half",
        }}}})

        assert result.errors == []
        assert result.changed
        assert result.snapshot.get("speed") == "1g"
        assert [batch[2:-1] for batch in switch.batches] == [
            ["interface Ethernet5", "channel-group 9 mode on"],
            ["interface Ethernet6", "channel-group 9 mode on"],
            ["interface Ethernet5", "speed forced 1000half", "interface Ethernet6", "speed forced 1000half"],
        ]

class TestHelpers:
    """Tests for VLAN and speed helpers."""

    def test_vlan_round_trip_examples(self):
        assert expand_vlans("1,10-12") == [1, 10, 11, 12]
        assert compress_vlans([12, 10, 11, 1]) == "1,10-12"
        assert compress_vlans([]) == "none"
        assert expand_vlans("none") == []

    def test_link_commands(self):
        assert link_commands({"speed": "auto"}) == ["speed auto"]
        assert link_commands({"speed": "10g", "duplex": "full"}) == ["speed forced 10000full"]
        assert link_commands({"speed": "100m", "duplex": "half"}) == ["speed forced 100half"]
        assert link_commands({}) == []

    def test_duplex_needs_speed(self):
        with pytest.raises(DeviceFault):
            link_commands({"duplex": "half"})
