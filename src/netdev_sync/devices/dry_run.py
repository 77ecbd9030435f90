"""Dry-run wrapper: preview mutations without sending them."""
import logging
from typing import Any, Sequence

from .base import DeviceClient

logger = logging.getLogger(__name__)


class DryRunClient(DeviceClient):
    """Wrap a client so reads pass through and writes are only recorded.

    ``planned`` lists every mutation the engine would have issued, in order.
    """

    def __init__(self, client: DeviceClient):
        super().__init__(client.device_id, client.config)
        self.client = client
        self.planned: list[tuple] = []

    def _plan(self, operation: str, *args: Any) -> None:
        # Values may hold key material; only the target is logged
        logger.info(f"[DRY-RUN] {operation} {' '.join(str(a) for a in args[:2])}")
        self.planned.append((operation, *args))

    async def connect(self) -> bool:
        return await self.client.connect()

    async def disconnect(self) -> None:
        await self.client.disconnect()

    async def list_all(self, kind: str) -> list[dict[str, Any]]:
        return await self.client.list_all(kind)

    async def get_flowcontrol(self, member_key: str) -> dict[str, str]:
        return await self.client.get_flowcontrol(member_key)

    async def create(self, kind: str, key: str, attributes: dict[str, Any]) -> None:
        self._plan("create", kind, key, dict(attributes))

    async def destroy(self, kind: str, key: str) -> None:
        self._plan("destroy", kind, key)

    async def set_attribute(self, kind: str, key: str, name: str, value: Any) -> None:
        self._plan("set_attribute", kind, key, name, value)

    async def set_attributes(
        self,
        kind: str,
        key: str,
        values: dict[str, Any],
        members: Sequence[str] = (),
    ) -> None:
        self._plan("set_attributes", kind, key, dict(values), tuple(members))

    async def assign_member(self, aggregate_key: str, member_key: str, mode: str) -> None:
        self._plan("assign_member", aggregate_key, member_key, mode)

    async def unassign_member(self, member_key: str) -> None:
        self._plan("unassign_member", member_key)
