"""Resource kinds managed by the reconciliation engine."""
from .base import ResourceKind
from .interface import InterfaceKind
from .network_trunk import NetworkTrunkKind
from .port_channel import PortChannelKind
from .radius_global import RadiusGlobalKind
from .syslog_server import SyslogServerKind

__all__ = [
    "ResourceKind",
    "InterfaceKind",
    "NetworkTrunkKind",
    "PortChannelKind",
    "RadiusGlobalKind",
    "SyslogServerKind",
    "RESOURCE_KINDS",
    "default_kinds",
]

# Resource kind registry
RESOURCE_KINDS = {
    "interface": InterfaceKind,
    "port_channel": PortChannelKind,
    "radius_global": RadiusGlobalKind,
    "syslog_server": SyslogServerKind,
    "network_trunk": NetworkTrunkKind,
}


def default_kinds() -> dict[str, ResourceKind]:
    """Fresh instances of every registered resource kind."""
    return {name: kind_class() for name, kind_class in RESOURCE_KINDS.items()}
