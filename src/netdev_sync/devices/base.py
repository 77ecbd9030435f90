"""Base device client abstraction for managed network devices."""
import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)


class DeviceFault(Exception):
    """A device API call was rejected or failed.

    Attributes:
        kind: Operation-specific error kind (e.g. "invalid-command")
        message: Error text reported by the device or client
    """

    def __init__(self, kind: str, message: str = ""):
        super().__init__(f"{kind}: {message}" if message else kind)
        self.kind = kind
        self.message = message


@dataclass
class DeviceConfig:
    """Connection settings for a managed device."""
    type: str
    name: str
    host: str = "localhost"
    protocol: str = "https"
    port: int = 443
    username: str = "admin"
    password: Optional[str] = None
    password_env: str = "NETWORK_PASSWORD"
    timeout: int = 30
    retries: int = 3
    verify_ssl: bool = True
    # Initial device state for simulated devices
    state: dict = field(default_factory=dict)

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")


class DeviceClient(ABC):
    """Abstract Device API Client used by the reconciliation engine.

    Every operation either returns structured data or raises DeviceFault.
    Retry and timeout policy belongs to the concrete client; callers treat
    each call as a terminal success or failure.
    """

    def __init__(self, device_id: str, config: DeviceConfig):
        self.device_id = device_id
        self.config = config
        self._connected = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_connected(self) -> bool:
        return self._connected

    # Session management
    @abstractmethod
    async def connect(self) -> bool:
        """Open the device session."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the device session."""
        pass

    # Reads
    @abstractmethod
    async def list_all(self, kind: str) -> list[dict[str, Any]]:
        """List every instance of a resource kind.

        Returns:
            Records, each carrying the instance identity under "name"
        """
        pass

    @abstractmethod
    async def get_flowcontrol(self, member_key: str) -> dict[str, str]:
        """Get flow-control state of one physical interface.

        Returns:
            Dict with "send" and "receive" values
        """
        pass

    # Mutations
    @abstractmethod
    async def create(self, kind: str, key: str, attributes: dict[str, Any]) -> None:
        """Create a resource instance with the given attributes."""
        pass

    @abstractmethod
    async def destroy(self, kind: str, key: str) -> None:
        """Remove a resource instance."""
        pass

    @abstractmethod
    async def set_attribute(self, kind: str, key: str, name: str, value: Any) -> None:
        """Set a single attribute of a resource instance."""
        pass

    @abstractmethod
    async def set_attributes(
        self,
        kind: str,
        key: str,
        values: dict[str, Any],
        members: Sequence[str] = (),
    ) -> None:
        """Set several attributes in one call.

        Args:
            kind: Resource kind
            key: Resource identity
            values: Attribute values to commit together
            members: Member interfaces the values apply to (composite kinds)
        """
        pass

    @abstractmethod
    async def assign_member(self, aggregate_key: str, member_key: str, mode: str) -> None:
        """Join a physical interface to an aggregate with the given mode."""
        pass

    @abstractmethod
    async def unassign_member(self, member_key: str) -> None:
        """Remove a physical interface from whatever aggregate it is in."""
        pass

    # Context manager support
    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
