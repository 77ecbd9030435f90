"""Remote syslog hosts.

Only presence is managed. Severity, VRF and source interface have no
equivalent in the device API; declaring them is a logged no-op.
"""
import ipaddress
import re

from ..config_engine.errors import ArgumentError
from ..config_engine.schema import Declaration
from .base import ResourceKind

HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9.-]{0,251}[A-Za-z0-9])?$")


class SyslogServerKind(ResourceKind):
    name = "syslog_server"

    unsupported = frozenset({"severity_level", "vrf", "source_interface"})

    def validate(self, declaration: Declaration) -> None:
        super().validate(declaration)
        host = declaration.key
        try:
            ipaddress.ip_address(host)
        except ValueError:
            if not HOSTNAME_PATTERN.match(host):
                raise ArgumentError(f"Invalid syslog host: {host}")
