"""Prefetch matching of declarations to discovered snapshots."""
import logging
from typing import Iterable, NamedTuple

from .schema import Declaration, ResourceKey, Snapshot

logger = logging.getLogger(__name__)


class Match(NamedTuple):
    """A declared resource paired with its current state."""
    declaration: Declaration
    snapshot: Snapshot


def match(
    declarations: Iterable[Declaration],
    snapshots: Iterable[Snapshot],
) -> dict[ResourceKey, Match]:
    """Pair every declaration with the discovered snapshot of the same key.

    Declarations without a discovered snapshot are paired with an absent
    Snapshot so the reconciler creates rather than modifies them. When a
    key is declared twice the last declaration wins.

    Args:
        declarations: Declarations of one resource kind
        snapshots: Snapshots discovered for that kind

    Returns:
        Mapping of resource key to Match, in declaration order
    """
    index: dict[ResourceKey, Snapshot] = {}
    for snapshot in snapshots:
        if snapshot.key in index:
            logger.warning(f"Device reported {snapshot.kind} {snapshot.key} twice; using the last record")
        index[snapshot.key] = snapshot

    matches: dict[ResourceKey, Match] = {}
    for declaration in declarations:
        if declaration.key in matches:
            logger.warning(
                f"{declaration.kind} {declaration.key} declared more than once; "
                f"the last declaration wins"
            )
            del matches[declaration.key]
        snapshot = index.get(declaration.key) or Snapshot.absent(declaration.kind, declaration.key)
        matches[declaration.key] = Match(declaration, snapshot)

    return matches
