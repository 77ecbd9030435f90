"""Shared fixtures: a small lab switch held in memory."""
import pytest

from netdev_sync.devices.memory import InMemoryDevice
from netdev_sync.resources import default_kinds


def lab_state() -> dict:
    """Three 1G ports in Port-Channel5, one of them at half duplex."""
    return {
        "interface": {
            "Ethernet1": {"description": "", "enable": True, "speed": "1g", "duplex": "full",
                          "flowcontrol_send": "off", "flowcontrol_receive": "off"},
            "Ethernet2": {"description": "", "enable": True, "speed": "1g", "duplex": "full",
                          "flowcontrol_send": "off", "flowcontrol_receive": "off"},
            "Ethernet3": {"description": "", "enable": True, "speed": "1g", "duplex": "half",
                          "flowcontrol_send": "off", "flowcontrol_receive": "off"},
            "Ethernet4": {"description": "", "enable": True, "speed": "1g", "duplex": "full",
                          "flowcontrol_send": "off", "flowcontrol_receive": "off"},
        },
        "port_channel": {
            "Port-Channel5": {
                "mode": "active",
                "minimum_links": 0,
                "description": "",
                "interfaces": ["Ethernet1", "Ethernet2", "Ethernet3"],
            },
        },
        "radius_global": {
            "settings": {"key": None, "key_format": 7, "timeout": 5, "retransmit_count": 3},
        },
        "syslog_server": {
            "10.0.0.5": {},
        },
        "network_trunk": {
            "Ethernet4": {"mode": "access", "untagged_vlan": 1, "tagged_vlans": []},
        },
    }


@pytest.fixture
def device():
    return InMemoryDevice("lab", state=lab_state())


@pytest.fixture
def kinds():
    return default_kinds()
