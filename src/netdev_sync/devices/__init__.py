"""Device API clients for managed switches."""
from .base import DeviceClient, DeviceConfig, DeviceFault
from .dry_run import DryRunClient
from .eapi import EapiClient
from .memory import InMemoryDevice

__all__ = [
    "DeviceClient",
    "DeviceConfig",
    "DeviceFault",
    "DryRunClient",
    "EapiClient",
    "InMemoryDevice",
    "CLIENT_TYPES",
    "create_client",
]

# Device type registry
CLIENT_TYPES = {
    "eapi": EapiClient,
    "memory": InMemoryDevice,
}


def create_client(device_id: str, config: dict) -> DeviceClient:
    """Factory function to create device clients."""
    device_type = config.get("type", "").lower()
    if device_type not in CLIENT_TYPES:
        raise ValueError(f"Unknown device type: {device_type}")

    client_class = CLIENT_TYPES[device_type]
    return client_class(device_id, DeviceConfig(**config))
