"""Device inventory management from YAML configuration."""
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from ..devices import DeviceClient, create_client

logger = logging.getLogger(__name__)

INVENTORY_ENV = "NETDEV_SYNC_INVENTORY"
DEVICE_ENV = "NETDEV_SYNC_DEVICE"


class DeviceInventory:
    """Manages the device inventory loaded from YAML config.

    ```yaml
    default: leaf1
    defaults:
      username: admin
      password_env: NETWORK_PASSWORD
    devices:
      leaf1:
        type: eapi
        name: Leaf 1
        host: 192.0.2.10
      lab:
        type: memory
        name: Lab switch
        state:
          interface:
            Ethernet1: {speed: 1g, duplex: full}
    ```
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._clients: dict[str, DeviceClient] = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the devices.yaml config file."""
        env_path = os.environ.get(INVENTORY_ENV)
        if env_path:
            return env_path

        search_paths = [
            Path.cwd() / "configs" / "devices.yaml",
            Path.cwd() / "devices.yaml",
            Path.home() / ".config" / "netdev-sync" / "devices.yaml",
            Path("/etc/netdev-sync/devices.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find devices.yaml. Create one in ./configs/devices.yaml "
            f"or set {INVENTORY_ENV}"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration."""
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        # Apply defaults
        defaults = self._config.get("defaults", {})
        for device_id, device_config in self._config.get("devices", {}).items():
            device_config.setdefault("name", device_id)
            for key, value in defaults.items():
                if key not in device_config:
                    device_config[key] = value

    @property
    def default_device(self) -> Optional[str]:
        """Device used when none is given: $NETDEV_SYNC_DEVICE, then the file's default."""
        return os.environ.get(DEVICE_ENV) or self._config.get("default")

    def get_device_ids(self) -> list[str]:
        """Get all device IDs."""
        return list(self._config.get("devices", {}).keys())

    def get_device_config(self, device_id: str) -> dict:
        """Get raw config for a device."""
        devices = self._config.get("devices", {})
        if device_id not in devices:
            raise KeyError(f"Unknown device: {device_id}")
        return devices[device_id]

    def get_client(self, device_id: Optional[str] = None) -> DeviceClient:
        """Get or create the client for a device.

        Raises:
            KeyError: If the device is unknown or no default is configured
        """
        device_id = device_id or self.default_device
        if not device_id:
            raise KeyError(f"No device given and no default configured (set {DEVICE_ENV})")
        if device_id not in self._clients:
            config = self.get_device_config(device_id)
            logger.debug(f"Creating {config.get('type')} client for {device_id}")
            self._clients[device_id] = create_client(device_id, config)
        return self._clients[device_id]

    async def close_all(self) -> None:
        """Close all device connections."""
        for client in self._clients.values():
            if client.is_connected:
                await client.disconnect()
        self._clients.clear()
