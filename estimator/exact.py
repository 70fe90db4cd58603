# estimator/exact.py
"""Exhaustive backtracking over every valid configuration.

The search walks instances in catalog order.  Each node holds the mask of
cells taken so far and the partial selection; a leaf is a full configuration
and goes straight into the coverage tally.  Two guards keep the walk
bounded: a cap on recorded configurations and the shared wall-clock budget.
Either one abandons the run and the partial tally is thrown away, so a
caller only ever sees complete enumerations.
"""
from __future__ import annotations

import time
from typing import Dict, List, Optional, Tuple

from models import EngineOptions, Placement
from estimator.bitmask import popcount
from estimator.catalog import PlacementCatalog
from estimator.coverage import CoverageTally


class _Abandon(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _symmetry_links(catalog: PlacementCatalog) -> List[bool]:
    """``links[i]`` is True when instance ``i`` is interchangeable with ``i - 1``."""
    links = [False] * catalog.instance_count
    for i in range(1, catalog.instance_count):
        if catalog.instance_specs[i] != catalog.instance_specs[i - 1]:
            continue
        a, b = catalog.placements[i], catalog.placements[i - 1]
        links[i] = a is b or a == b
    return links


def enumerate_exact(
    catalog: PlacementCatalog,
    options: EngineOptions,
    *,
    deadline: Optional[float] = None,
) -> Tuple[Optional[CoverageTally], Dict[str, object]]:
    """Return ``(tally, stats)``; ``tally`` is None when the search was abandoned."""

    n = catalog.instance_count
    stats: Dict[str, object] = {
        "instances": n,
        "nodes": 0,
        "configurations": 0,
        "pruned": 0,
        "symmetry_breaking": bool(options.symmetry_breaking),
        "reason": None,
    }
    if catalog.is_infeasible():
        stats["reason"] = "empty_options"
        return None, stats

    tally = CoverageTally(catalog)
    cap = max(1, int(options.max_valid_configurations))
    check_every = max(1, int(options.time_check_nodes))
    prune = bool(options.prune_area)

    domains = catalog.placements
    masks: List[List[int]] = [[p.mask for p in opts] for opts in domains]
    links = _symmetry_links(catalog) if options.symmetry_breaking else [False] * n

    areas = [catalog.specs[s].area for s in catalog.instance_specs]
    remaining_area = [0] * (n + 1)
    for i in range(n - 1, -1, -1):
        remaining_area[i] = remaining_area[i + 1] + areas[i]

    hit_mask = catalog.hit_mask
    selection: List[Optional[Placement]] = [None] * n
    chosen_index = [0] * n
    nodes = 0
    pruned = 0

    def _feasible(index: int, occupied: int) -> bool:
        # Forward check: every remaining instance keeps a compatible option, and
        # together they can still reach enough cells (and every open hit cell).
        usable = 0
        for j in range(index, n):
            found = False
            for m in masks[j]:
                if not m & occupied:
                    usable |= m
                    found = True
            if not found:
                return False
        if popcount(usable) < remaining_area[index]:
            return False
        open_hits = hit_mask & ~occupied
        return (open_hits & usable) == open_hits

    def _search(index: int, occupied: int) -> None:
        nonlocal nodes, pruned
        nodes += 1
        if nodes % check_every == 0 and deadline is not None and time.time() >= deadline:
            raise _Abandon("timebox")
        if index == n:
            if tally.record(selection):  # type: ignore[arg-type]
                if tally.total >= cap:
                    raise _Abandon("configuration cap")
            return
        if prune and not _feasible(index, occupied):
            pruned += 1
            return
        opts = domains[index]
        opt_masks = masks[index]
        start = chosen_index[index - 1] + 1 if links[index] else 0
        for k in range(start, len(opts)):
            m = opt_masks[k]
            if m & occupied:
                continue
            selection[index] = opts[k]
            chosen_index[index] = k
            _search(index + 1, occupied | m)
        selection[index] = None

    try:
        _search(0, catalog.fixed_mask)
    except _Abandon as exc:
        stats.update({"nodes": nodes, "pruned": pruned, "reason": exc.reason,
                      "configurations": tally.total})
        return None, stats

    stats.update({"nodes": nodes, "pruned": pruned, "configurations": tally.total})
    return tally, stats
