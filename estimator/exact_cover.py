# estimator/exact_cover.py
"""Full-tiling search with dancing links.

One primary column per free cell and one row per distinct candidate
placement of each requested object spec.  A solution is a set of rows whose
cells partition the free area exactly.  Rows carry their spec index so the
search can refuse more copies of a spec than were requested; with the
requested area equal to the free area, every quota-respecting tiling is
exactly one unordered configuration.
"""
from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence, Set, Tuple

from models import EngineOptions, Placement
from estimator.bitmask import full_mask, iter_bits
from estimator.catalog import PlacementCatalog
from estimator.coverage import CoverageTally


class DancingLinks:
    """Toroidal doubly linked exact-cover matrix (Knuth's Algorithm X).

    Node 0 is the root header, nodes ``1..columns`` are column headers and
    every row node after that.  Links live in parallel int lists.
    """

    def __init__(self, columns: int):
        self.columns = columns
        size = columns + 1
        self.L = [i - 1 for i in range(size)]
        self.R = [i + 1 for i in range(size)]
        self.L[0] = columns
        self.R[columns] = 0
        self.U = list(range(size))
        self.D = list(range(size))
        self.C = list(range(size))
        self.S = [0] * size
        self.row_of = [-1] * size
        self.rows = 0

    def add_row(self, cols: Sequence[int]) -> int:
        """Append a row touching column ids ``cols`` (1-based)."""
        row_id = self.rows
        self.rows += 1
        first = -1
        for col in cols:
            node = len(self.C)
            self.C.append(col)
            self.row_of.append(row_id)
            self.S.append(0)
            # vertical: insert above the column header (bottom of the column)
            self.U.append(self.U[col])
            self.D.append(col)
            self.D[self.U[col]] = node
            self.U[col] = node
            self.S[col] += 1
            # horizontal: circular list through this row
            if first == -1:
                first = node
                self.L.append(node)
                self.R.append(node)
            else:
                self.L.append(self.L[first])
                self.R.append(first)
                self.R[self.L[first]] = node
                self.L[first] = node
        return row_id

    def cover(self, c: int) -> None:
        L, R, U, D, C, S = self.L, self.R, self.U, self.D, self.C, self.S
        R[L[c]] = R[c]
        L[R[c]] = L[c]
        i = D[c]
        while i != c:
            j = R[i]
            while j != i:
                D[U[j]] = D[j]
                U[D[j]] = U[j]
                S[C[j]] -= 1
                j = R[j]
            i = D[i]

    def uncover(self, c: int) -> None:
        L, R, U, D, C, S = self.L, self.R, self.U, self.D, self.C, self.S
        i = U[c]
        while i != c:
            j = L[i]
            while j != i:
                S[C[j]] += 1
                D[U[j]] = j
                U[D[j]] = j
                j = L[j]
            i = U[i]
        R[L[c]] = c
        L[R[c]] = c

    def choose_column(self) -> int:
        """Column with the fewest remaining rows (0 when every column is covered)."""
        R, S = self.R, self.S
        best = 0
        best_size = None
        c = R[0]
        while c != 0:
            if best_size is None or S[c] < best_size:
                best, best_size = c, S[c]
                if best_size <= 1:
                    break
            c = R[c]
        return best


def search_tilings(
    catalog: PlacementCatalog,
    options: EngineOptions,
    *,
    deadline: Optional[float] = None,
    enforce_quotas: bool = True,
) -> Tuple[Optional[CoverageTally], Dict[str, object]]:
    """Enumerate tilings of the free area, up to ``options.max_tilings``.

    Returns ``(tally, stats)``.  Reaching the tiling cap keeps the tilings
    found so far (``stats["capped"]``); running past ``deadline`` abandons
    the search and returns ``None``.
    """

    grid = catalog.grid
    free = full_mask(grid.cells) & ~catalog.blocked_mask & ~catalog.fixed_mask
    stats: Dict[str, object] = {
        "columns": 0,
        "rows": 0,
        "tilings": 0,
        "nodes": 0,
        "capped": False,
        "reason": None,
    }

    column_of: Dict[int, int] = {}
    for cell in iter_bits(free):
        column_of[cell] = len(column_of) + 1

    quotas: Dict[int, int] = {}
    for spec_idx in catalog.instance_specs:
        quotas[spec_idx] = quotas.get(spec_idx, 0) + 1

    dlx = DancingLinks(len(column_of))
    row_placements: List[Placement] = []
    row_specs: List[int] = []
    seen: Set[Tuple[int, int]] = set()
    for spec_idx, opts in zip(catalog.instance_specs, catalog.placements):
        for p in opts:
            key = (spec_idx, p.mask)
            if key in seen or p.mask & ~free:
                continue
            seen.add(key)
            cols = [column_of[(y * grid.width) + x] for x, y in p.cells]
            dlx.add_row(cols)
            row_placements.append(p)
            row_specs.append(spec_idx)

    stats["columns"] = dlx.columns
    stats["rows"] = dlx.rows
    tally = CoverageTally(catalog)
    if dlx.columns == 0:
        stats["reason"] = "no_free_cells"
        return tally, stats

    cap = max(1, int(options.max_tilings))
    check_every = max(1, int(options.time_check_nodes))
    used: Dict[int, int] = {k: 0 for k in quotas}
    solution: List[int] = []
    nodes = 0
    state = {"stop": None}

    def _search() -> None:
        nonlocal nodes
        nodes += 1
        if nodes % check_every == 0 and deadline is not None and time.time() >= deadline:
            state["stop"] = "timebox"
            return
        c = dlx.choose_column()
        if c == 0:
            tally.record([row_placements[r] for r in solution])
            if tally.total >= cap:
                state["stop"] = "tiling cap"
            return
        if dlx.S[c] == 0:
            return
        dlx.cover(c)
        r = dlx.D[c]
        while r != c:
            row = dlx.row_of[r]
            spec_idx = row_specs[row]
            if enforce_quotas and used.get(spec_idx, 0) >= quotas.get(spec_idx, 0):
                r = dlx.D[r]
                continue
            used[spec_idx] = used.get(spec_idx, 0) + 1
            solution.append(row)
            j = dlx.R[r]
            while j != r:
                dlx.cover(dlx.C[j])
                j = dlx.R[j]
            _search()
            j = dlx.L[r]
            while j != r:
                dlx.uncover(dlx.C[j])
                j = dlx.L[j]
            solution.pop()
            used[spec_idx] -= 1
            if state["stop"]:
                break
            r = dlx.D[r]
        dlx.uncover(c)

    _search()
    stats.update({"tilings": tally.total, "nodes": nodes})
    if state["stop"] == "timebox":
        stats["reason"] = "timebox"
        return None, stats
    if state["stop"] == "tiling cap":
        stats["capped"] = True
        stats["reason"] = "tiling cap"
    return tally, stats
