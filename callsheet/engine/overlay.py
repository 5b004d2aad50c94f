"""Priority overlay - merge an external ranking onto the local queue.

The priority list is untrusted: it may be partial, repeat ids, or name
contacts that do not exist. The merge only ever reorders; it never adds
or drops queue entries.

Usage:
    from callsheet.engine.overlay import apply_priority_overlay

    apply_priority_overlay(["a", "b", "c"], ["c", "zzz", "c"])  # ["c", "a", "b"]
"""

from collections.abc import Hashable
from typing import Iterable, Optional, Sequence, TypeVar

T = TypeVar("T", bound=Hashable)


def apply_priority_overlay(queue: Sequence[T], priority: Optional[Iterable[object]]) -> list[T]:
    """Reorder ``queue`` by ``priority``.

    Ids from ``priority`` that are in the queue come first, in priority
    order, first occurrence only. Everything else follows in its original
    relative order. Unknown, None and unhashable entries are ignored.

    Args:
        queue: Current queue (contact ids)
        priority: Suggested order, may be None or empty

    Returns:
        A permutation of ``queue``
    """
    known = set(queue)
    placed: set = set()
    merged: list = []

    for ident in priority or ():
        if ident is None or not isinstance(ident, Hashable):
            continue
        try:
            wanted = ident in known and ident not in placed
        except TypeError:
            # e.g. a tuple holding a list
            continue
        if wanted:
            placed.add(ident)
            merged.append(ident)

    merged.extend(ident for ident in queue if ident not in placed)
    return merged
