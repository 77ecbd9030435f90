"""Global RADIUS settings.

A singleton resource (key ``settings``). RADIUS cannot be disabled on the
device, so ``ensure: absent`` and ``enable: false`` are rejected up front.
Key material, timeout and retransmit count are committed by flush, one
device call per category.
"""
from typing import Any

from ..config_engine.errors import ArgumentError
from ..config_engine.schema import Declaration, FlushCategory, Lifecycle, Snapshot
from .base import ResourceKind

SETTINGS_KEY = "settings"

VALID_KEY_FORMATS = {0, 7}
TIMEOUT_RANGE = (1, 1000)
RETRANSMIT_RANGE = (1, 100)


class RadiusGlobalKind(ResourceKind):
    name = "radius_global"

    deferred = {
        "key": FlushCategory.KEY,
        "key_format": FlushCategory.KEY,
        "timeout": FlushCategory.TIMEOUT,
        "retransmit_count": FlushCategory.RETRANSMIT,
    }
    fixed = frozenset({"enable"})
    sensitive = frozenset({"key"})

    creatable = False
    destroyable = False

    def snapshot(self, record: dict[str, Any]) -> Snapshot:
        return Snapshot.present(self.name, record.get("name", SETTINGS_KEY), {
            "enable": True,
            "key": record.get("key"),
            "key_format": record.get("key_format"),
            "timeout": record.get("timeout"),
            "retransmit_count": record.get("retransmit_count"),
        })

    def validate(self, declaration: Declaration) -> None:
        if declaration.ensure == Lifecycle.ABSENT or declaration.attributes.get("enable") is False:
            raise ArgumentError("RADIUS cannot be disabled on this platform")
        super().validate(declaration)
        if declaration.key != SETTINGS_KEY:
            raise ArgumentError(f"radius_global must be named '{SETTINGS_KEY}', got '{declaration.key}'")

        attrs = declaration.attributes
        if "key_format" in attrs and attrs["key_format"] not in VALID_KEY_FORMATS:
            raise ArgumentError(f"key_format must be one of {sorted(VALID_KEY_FORMATS)}")
        _check_range(attrs, "timeout", TIMEOUT_RANGE)
        _check_range(attrs, "retransmit_count", RETRANSMIT_RANGE)


def _check_range(attrs, name: str, bounds: tuple[int, int]) -> None:
    if name not in attrs:
        return
    low, high = bounds
    value = attrs[name]
    if not isinstance(value, int) or not low <= value <= high:
        raise ArgumentError(f"{name} must be an integer between {low} and {high}")
