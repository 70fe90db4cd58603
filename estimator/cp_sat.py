# estimator/cp_sat.py
"""Exact enumeration as a CP-SAT model with a counting solution callback.

Same semantics as :mod:`estimator.exact`: one Boolean per
(instance, placement), exactly one placement per instance, at most one
placement per cell, at least one placement over every hit cell.
Interchangeable instances are ordered by placement index so every unordered
configuration is reported once.
"""
from __future__ import annotations

import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ortools.sat.python import cp_model as _cp

from models import EngineOptions, Placement
from estimator.bitmask import iter_bits
from estimator.catalog import PlacementCatalog
from estimator.coverage import CoverageTally
from estimator.exact import _symmetry_links


class _CoverageCollector(_cp.CpSolverSolutionCallback):
    def __init__(
        self,
        choice_vars: List[List[_cp.IntVar]],
        domains: List[List[Placement]],
        tally: CoverageTally,
        cap: int,
        deadline: Optional[float],
    ):
        super().__init__()
        self._vars = choice_vars
        self._domains = domains
        self._tally = tally
        self._cap = cap
        self._deadline = deadline
        self.stopped: Optional[str] = None

    def on_solution_callback(self) -> None:
        selection: List[Placement] = []
        for vars_i, opts in zip(self._vars, self._domains):
            for var, placement in zip(vars_i, opts):
                if self.boolean_value(var):
                    selection.append(placement)
                    break
        self._tally.record(selection)
        if self._tally.total >= self._cap:
            self.stopped = "configuration cap"
            self.stop_search()
        elif self._deadline is not None and time.time() >= self._deadline:
            self.stopped = "timebox"
            self.stop_search()


def build_model(catalog: PlacementCatalog, *, symmetry_breaking: bool = True):
    m = _cp.CpModel()
    domains = catalog.placements
    n = len(domains)

    p = [[m.new_bool_var(f"p_{i}_{k}") for k in range(len(domains[i]))] for i in range(n)]
    for i in range(n):
        m.add_exactly_one(p[i])

    cell_to_vars: Dict[int, List[_cp.IntVar]] = defaultdict(list)
    for i in range(n):
        for k, placement in enumerate(domains[i]):
            for cell in iter_bits(placement.mask):
                cell_to_vars[cell].append(p[i][k])

    for vars_here in cell_to_vars.values():
        if len(vars_here) > 1:
            m.add_at_most_one(vars_here)

    for cell in iter_bits(catalog.hit_mask):
        m.add_bool_or(cell_to_vars[cell])

    if symmetry_breaking:
        links = _symmetry_links(catalog)
        place_idx = []
        for i in range(n):
            idx = m.new_int_var(0, max(0, len(domains[i]) - 1), f"idx_{i}")
            m.add(idx == sum(k * p[i][k] for k in range(len(domains[i]))))
            place_idx.append(idx)
        for i in range(1, n):
            if links[i]:
                m.add(place_idx[i - 1] < place_idx[i])

    return m, p


def enumerate_cp_sat(
    catalog: PlacementCatalog,
    options: EngineOptions,
    *,
    deadline: Optional[float] = None,
) -> Tuple[Optional[CoverageTally], Dict[str, object]]:
    """Return ``(tally, stats)``; ``tally`` is None when enumeration was cut short."""

    stats: Dict[str, object] = {
        "instances": catalog.instance_count,
        "configurations": 0,
        "status": None,
        "reason": None,
    }
    if catalog.is_infeasible():
        stats["reason"] = "empty_options"
        return None, stats

    tally = CoverageTally(catalog)
    reachable = 0
    for opts in catalog.placements:
        for placement in opts:
            reachable |= placement.mask
    if catalog.hit_mask & ~reachable:
        # Some hit cell is out of reach of every placement: no configuration.
        stats["status"] = "INFEASIBLE"
        return tally, stats

    m, p = build_model(catalog, symmetry_breaking=bool(options.symmetry_breaking))

    seconds = float(options.time_budget)
    if deadline is not None:
        seconds = max(0.01, deadline - time.time())

    solver = _cp.CpSolver()
    solver.parameters.enumerate_all_solutions = True
    solver.parameters.num_workers = 1  # enumeration is single-worker only
    solver.parameters.max_time_in_seconds = seconds
    solver.parameters.max_memory_in_mb = int(options.max_memory_mb)
    solver.parameters.log_search_progress = False

    collector = _CoverageCollector(
        p,
        [list(d) for d in catalog.placements],
        tally,
        max(1, int(options.max_valid_configurations)),
        deadline,
    )
    status = solver.solve(m, collector)
    stats["status"] = solver.status_name(status)
    stats["configurations"] = tally.total

    if collector.stopped:
        stats["reason"] = collector.stopped
        return None, stats
    if status == _cp.MODEL_INVALID:
        raise RuntimeError(f"CP-SAT model invalid: {m.validate()}")
    if status in (_cp.OPTIMAL, _cp.INFEASIBLE):
        return tally, stats
    stats["reason"] = "timebox"
    return None, stats
