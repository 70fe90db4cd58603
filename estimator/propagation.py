# estimator/propagation.py
"""AC-3 over per-instance placement domains with pairwise non-overlap."""
from __future__ import annotations

import time
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple

from models import Placement


def _revise(di: Sequence[Placement], dj: Sequence[Placement]) -> List[Placement]:
    """Keep the values of ``di`` that some value of ``dj`` does not overlap."""
    dj_masks = [b.mask for b in dj]
    kept: List[Placement] = []
    for a in di:
        am = a.mask
        for bm in dj_masks:
            if not am & bm:
                kept.append(a)
                break
    return kept


def arc_consistency(
    domains: Sequence[Sequence[Placement]],
    *,
    deadline: Optional[float] = None,
) -> Tuple[bool, List[List[Placement]], Dict[str, object]]:
    """Run AC-3 to a fixpoint.

    Returns ``(consistent, pruned_domains, stats)``.  ``consistent`` is False
    as soon as a domain empties, which proves no configuration exists.  When
    the deadline cuts the loop short the domains are still sound (only
    unsupported values were removed) and ``stats["complete"]`` is False.
    """

    current: List[List[Placement]] = [list(d) for d in domains]
    n = len(current)
    before = sum(len(d) for d in current)
    stats: Dict[str, object] = {
        "instances": n,
        "values_before": before,
        "values_after": before,
        "revisions": 0,
        "arcs_processed": 0,
        "complete": True,
        "empty_instance": None,
    }

    if any(not d for d in current):
        stats["empty_instance"] = next(i for i, d in enumerate(current) if not d)
        return False, current, stats

    queue: Deque[Tuple[int, int]] = deque()
    queued: Set[Tuple[int, int]] = set()
    for i in range(n):
        for j in range(n):
            if i != j:
                queue.append((i, j))
                queued.add((i, j))

    arcs = 0
    revisions = 0
    while queue:
        if deadline is not None and arcs % 64 == 0 and time.time() >= deadline:
            stats["complete"] = False
            break
        i, j = queue.popleft()
        queued.discard((i, j))
        arcs += 1
        revised = _revise(current[i], current[j])
        if len(revised) == len(current[i]):
            continue
        revisions += 1
        current[i] = revised
        if not revised:
            stats.update({
                "arcs_processed": arcs,
                "revisions": revisions,
                "values_after": sum(len(d) for d in current),
                "empty_instance": i,
            })
            return False, current, stats
        for k in range(n):
            if k != i and k != j and (k, i) not in queued:
                queue.append((k, i))
                queued.add((k, i))

    stats.update({
        "arcs_processed": arcs,
        "revisions": revisions,
        "values_after": sum(len(d) for d in current),
    })
    return True, current, stats
