#!/usr/bin/env python3
"""netdev-sync command line.

Usage:
    netdev-sync apply MANIFEST [--device ID] [--inventory PATH] [--dry-run] [--json]
    netdev-sync discover KIND [--device ID] [--inventory PATH] [--json]

Environment variables:
    NETDEV_SYNC_INVENTORY    Inventory file (default: ./configs/devices.yaml)
    NETDEV_SYNC_DEVICE       Device used when --device is not given
    NETWORK_PASSWORD         Device credentials
"""
import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import yaml

from .config.inventory import DeviceInventory
from .config_engine import (
    ParseError,
    ReconcileEngine,
    ReconcileError,
    compute_checksum,
    summarize_results,
)
from .devices.base import DeviceFault
from .utils.audit_log import ChangeTracker, setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netdev-sync",
        description="Reconcile declared network device resources against a live device",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Preview a manifest
    netdev-sync apply leaf1.yaml --dry-run

    # Apply to a device from a specific inventory
    netdev-sync apply leaf1.yaml --inventory configs/devices.lab.yaml --device lab

    # Show port-channels as the engine sees them
    netdev-sync discover port_channel --json
""",
    )
    parser.add_argument(
        "--inventory",
        type=str,
        help="Inventory file (default: search ./configs/devices.yaml and friends)",
    )
    parser.add_argument(
        "--device",
        type=str,
        help="Device ID from the inventory",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    apply = sub.add_parser("apply", help="Converge the device to a manifest")
    apply.add_argument("manifest", type=Path, help="YAML manifest file")
    apply.add_argument("--dry-run", action="store_true", help="Report changes without applying them")
    apply.add_argument("--audit-dir", type=str, help="Audit log directory (default: ~/.netdev-sync)")

    discover = sub.add_parser("discover", help="Print discovered instances of a resource kind")
    discover.add_argument("kind", type=str, help="Resource kind, e.g. port_channel")

    return parser


async def run_apply(args: argparse.Namespace) -> int:
    with open(args.manifest) as f:
        data = yaml.safe_load(f) or {}

    inventory = DeviceInventory(args.inventory)
    device_id = args.device or data.get("device") or data.get("device_id")
    client = inventory.get_client(device_id)

    setup_audit_logging(args.audit_dir)
    tracker = ChangeTracker(client.device_id, user=getpass.getuser())

    async with client:
        engine = ReconcileEngine(client, tracker=tracker)
        results = await engine.apply(data, dry_run=args.dry_run)

    if args.json:
        print(json.dumps({
            "device": client.device_id,
            "checksum": compute_checksum(data),
            "dry_run": args.dry_run,
            "results": [r.to_dict() for r in results],
        }, indent=2))
    else:
        if args.dry_run:
            print("DRY RUN - no changes were sent")
        print(summarize_results(results))

    return 0 if all(r.success for r in results) else 1


async def run_discover(args: argparse.Namespace) -> int:
    inventory = DeviceInventory(args.inventory)
    client = inventory.get_client(args.device)

    async with client:
        engine = ReconcileEngine(client)
        discovery = engine.discover(args.kind)
        kind = engine.kinds[args.kind]
        snapshots = [
            {"name": s.key, **kind.mask(s.to_dict())}
            async for s in discovery
        ]

    if args.json:
        print(json.dumps(snapshots, indent=2, default=str))
    else:
        for snapshot in snapshots:
            name = snapshot.pop("name")
            attrs = ", ".join(f"{k}={v}" for k, v in snapshot.items())
            print(f"{args.kind} {name}: {attrs}")

    for error in discovery.errors:
        logger.warning(str(error))
    return 1 if discovery.partial else 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the netdev-sync CLI."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        os.environ["NETDEV_SYNC_LOG_LEVEL"] = "DEBUG"
    setup_logging(console=True)

    handler = run_apply if args.command == "apply" else run_discover
    try:
        return asyncio.run(handler(args))
    except (FileNotFoundError, KeyError, ParseError, ReconcileError, yaml.YAMLError) as e:
        logger.error(str(e))
        return 2
    except DeviceFault as e:
        logger.error(f"Device error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
