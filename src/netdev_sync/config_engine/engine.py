"""Reconcile Engine - orchestrates one reconciliation pass.

Provides a single entry point for:
1. Validating declarations (before any device call)
2. Discovering current state of every declared kind
3. Matching declarations to discovered instances
4. Converging each instance (immediate writes, recreate, membership)
5. Flushing deferred changes once per instance
"""
import asyncio
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ..devices.base import DeviceClient, DeviceFault
from ..devices.dry_run import DryRunClient
from ..utils.audit_log import ChangeTracker
from .discovery import Discovery, InstanceDiscovery
from .errors import ArgumentError, DeviceWriteError, DiscoveryError, PartialFlushError, ReconcileError
from .flush import FlushExecutor
from .matcher import Match, match
from .parser import ManifestParser
from .reconciler import PropertyReconciler
from .schema import Declaration, ResourceResult, Snapshot

if TYPE_CHECKING:
    from ..resources.base import ResourceKind

logger = logging.getLogger(__name__)


class ReconcileEngine:
    """
    Reconciliation engine for one device session.

    Usage:
        engine = ReconcileEngine(client)
        results = await engine.apply(manifest_dict, dry_run=True)
    """

    def __init__(
        self,
        client: DeviceClient,
        kinds: Optional[dict[str, "ResourceKind"]] = None,
        tracker: Optional[ChangeTracker] = None,
    ):
        """
        Initialize the engine.

        Args:
            client: Device API client the pass runs against
            kinds: Resource kinds by name (defaults to every registered kind)
            tracker: Audit tracker; no audit records are written if None
        """
        if kinds is None:
            from ..resources import default_kinds
            kinds = default_kinds()
        self.client = client
        self.kinds = kinds
        self.tracker = tracker
        self.instances = InstanceDiscovery(client, kinds)

    def discover(self, kind: str) -> Discovery:
        """Lazy Snapshot sequence for one kind (for external use)."""
        if kind not in self.kinds:
            raise ArgumentError(f"Unknown resource kind: {kind}")
        return self.instances.discover(kind)

    async def apply(self, config: dict[str, Any], dry_run: bool = False) -> list[ResourceResult]:
        """
        Apply a manifest to the device.

        Args:
            config: Manifest dict (device, resources)
            dry_run: If True, report changes without sending mutations

        Returns:
            One ResourceResult per declared resource

        Raises:
            ParseError: If the manifest is invalid
        """
        manifest = ManifestParser(self.kinds).parse(config)
        if manifest.device_id and manifest.device_id != self.client.device_id:
            logger.warning(
                f"Manifest targets {manifest.device_id} but the session is "
                f"{self.client.device_id}; applying to {self.client.device_id}"
            )

        if dry_run:
            preview = ReconcileEngine(DryRunClient(self.client), self.kinds, self.tracker)
            return await preview.reconcile(manifest.declarations, dry_run=True)
        return await self.reconcile(manifest.declarations)

    async def reconcile(
        self,
        declarations: Iterable[Declaration],
        dry_run: bool = False,
    ) -> list[ResourceResult]:
        """
        Run one reconciliation pass.

        Per-instance errors are reported in the results and never abort
        the pass.

        Args:
            declarations: Desired state of the resources to manage
            dry_run: Only used to label audit records

        Returns:
            One ResourceResult per declared resource, in declaration order
        """
        results: dict[tuple[str, str], ResourceResult] = {}
        by_kind: dict[str, list[Declaration]] = {}

        # Step 1: Validate
        for declaration in declarations:
            ident = (declaration.kind, declaration.key)
            result = ResourceResult(kind=declaration.kind, key=declaration.key)
            results.pop(ident, None)
            results[ident] = result
            try:
                kind = self.kinds.get(declaration.kind)
                if kind is None:
                    raise ArgumentError(f"Unknown resource kind: {declaration.kind}")
                kind.validate(declaration)
            except ArgumentError as e:
                logger.error(f"Rejected {declaration.kind} {declaration.key}: {e}")
                result.add_error(e)
                self._drop(by_kind, declaration)
                continue
            self._drop(by_kind, declaration)
            by_kind.setdefault(declaration.kind, []).append(declaration)

        by_kind = {name: group for name, group in by_kind.items() if group}
        if not by_kind:
            return list(results.values())

        # Step 2: Discover every declared kind concurrently
        logger.info(f"Discovering {', '.join(by_kind)} on {self.client.device_id}")
        discovered = await asyncio.gather(*(self._discover(name) for name in by_kind))

        # Step 3-5: Match, converge and flush, one kind at a time
        for (name, kind_declarations), (snapshots, members, failed) in zip(by_kind.items(), discovered):
            kind = self.kinds[name]
            reconciler = PropertyReconciler(kind, self.client, members)
            flusher = FlushExecutor(kind, self.client)

            for key, pair in match(kind_declarations, snapshots or ()).items():
                result = results[(name, key)]
                error = failed.get(key) if snapshots is not None else failed.get(None)
                if error is not None:
                    # Current state is unknown; leave the instance alone
                    result.add_error(error)
                    continue
                await self._converge(kind, reconciler, flusher, pair, result)
                self._audit(kind, pair, result, dry_run)

        final = list(results.values())
        changed = sum(1 for r in final if r.changed)
        failed_count = sum(1 for r in final if not r.success)
        logger.info(
            f"{'DRY RUN: ' if dry_run else ''}Pass on {self.client.device_id} complete: "
            f"{len(final)} resources, {changed} changed, {failed_count} with errors"
        )
        return final

    @staticmethod
    def _drop(by_kind: dict[str, list[Declaration]], declaration: Declaration) -> None:
        """Forget an earlier declaration of the same key; the last one wins."""
        group = by_kind.get(declaration.kind)
        if group and any(d.key == declaration.key for d in group):
            logger.warning(f"{declaration.kind} {declaration.key} declared twice; using the last declaration")
            group[:] = [d for d in group if d.key != declaration.key]

    async def _discover(
        self, name: str
    ) -> tuple[Optional[list[Snapshot]], dict[str, Snapshot], dict[Optional[str], DiscoveryError]]:
        """Collect snapshots of one kind.

        Returns:
            Tuple of (snapshots, member snapshots, errors by key). If the kind
            could not be listed at all, snapshots is None and the error is
            under None.
        """
        discovery = self.instances.discover(name)
        try:
            snapshots = await discovery.collect()
        except (DeviceFault, ReconcileError) as e:
            logger.error(f"Discovery of {name} on {self.client.device_id} failed: {e}")
            return None, {}, {None: DiscoveryError(name, None, str(e))}
        return snapshots, discovery.members, {error.key: error for error in discovery.errors if error.key}

    async def _converge(
        self,
        kind: "ResourceKind",
        reconciler: PropertyReconciler,
        flusher: FlushExecutor,
        pair: Match,
        result: ResourceResult,
    ) -> None:
        try:
            rec = await reconciler.reconcile(pair.declaration, pair.snapshot)
        except ReconcileError as e:
            logger.error(f"Reconcile of {kind.name} {pair.declaration.key} failed: {e}")
            result.add_error(e)
            result.snapshot = pair.snapshot
            return

        result.changed = rec.result.changed
        result.errors.extend(rec.result.errors)
        result.warnings.extend(rec.result.warnings)
        snapshot = rec.snapshot

        if rec.pending.flags and snapshot.exists:
            try:
                snapshot = await flusher.flush(rec.pending, snapshot)
                result.changed = True
            except PartialFlushError as e:
                result.add_error(e)
                snapshot = e.snapshot
                if len(e.failed) < len(rec.pending.flags):
                    result.changed = True
            except DeviceFault as e:
                result.add_error(DeviceWriteError(f"Flush of {kind.name} {snapshot.key} failed: {e}"))

        result.snapshot = snapshot
        result.ensure = snapshot.lifecycle

    def _audit(self, kind: "ResourceKind", pair: Match, result: ResourceResult, dry_run: bool) -> None:
        if self.tracker is None or (result.success and not result.changed):
            return
        before = pair.snapshot.to_dict() if pair.snapshot.exists else None
        after = result.snapshot.to_dict() if result.snapshot and result.snapshot.exists else None
        self.tracker.log_change(
            kind=kind.name,
            key=result.key,
            parameters={"ensure": pair.declaration.ensure.value, **pair.declaration.attributes},
            success=result.success,
            changed=result.changed,
            errors=[e.to_dict() for e in result.errors],
            dry_run=dry_run,
            before_state=before,
            after_state=after,
            sensitive=kind.sensitive,
        )


def summarize_results(results: list[ResourceResult]) -> str:
    """
    Create a human-readable summary of a pass.

    Useful for dry-run output and logging.
    """
    if not results:
        return "No resources declared"

    changed = [r for r in results if r.changed]
    failed = [r for r in results if not r.success]
    if not changed and not failed:
        return "No changes needed - current state matches desired state"

    lines = [f"Resources reconciled ({len(results)} total, {len(changed)} changed, {len(failed)} failed):"]
    lines.append("")

    for result in results:
        if not result.success:
            marker = "[!]"
        elif result.changed:
            marker = "[~]"
        else:
            marker = "[=]"
        ensure = result.ensure.value if result.ensure else "unknown"
        lines.append(f"  {marker} {result.kind} {result.key} ({ensure})")
        for error in result.errors:
            lines.append(f"      {error.category}: {error.message}")
        for warning in result.warnings:
            lines.append(f"      warning: {warning}")

    return "\n".join(lines)
