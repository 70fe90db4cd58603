# estimator/coverage.py
from typing import Dict, List, Optional, Sequence

from models import GridSpec, Matrix, Placement, zero_matrix
from estimator.bitmask import add_coverage, iter_bits
from estimator.catalog import PlacementCatalog


def coverage_to_matrix(
    counts: Sequence[float],
    total: int,
    grid: GridSpec,
    blocked_mask: int = 0,
) -> Matrix:
    """Divide per-cell counts by ``total``; blocked cells are always 0."""
    matrix = zero_matrix(grid)
    if total:
        inverse = 1.0 / total
        W = grid.width
        for y in range(grid.height):
            row = matrix[y]
            base = y * W
            for x in range(W):
                row[x] = min(1.0, counts[base + x] * inverse)
    for idx in iter_bits(blocked_mask):
        y, x = divmod(idx, grid.width)
        if y < grid.height:
            matrix[y][x] = 0.0
    return matrix


class CoverageTally:
    """Per-cell hit counts over a population of configurations.

    A cell counts at most once per configuration, both overall and per
    object spec. Configurations that leave a hit cell uncovered are
    rejected and do not count towards ``total``.
    """

    def __init__(self, catalog: PlacementCatalog):
        self.grid = catalog.grid
        self.blocked_mask = catalog.blocked_mask
        self.hit_mask = catalog.hit_mask
        self.instance_specs = list(catalog.instance_specs)
        cells = catalog.grid.cells
        self.counts: List[int] = [0] * cells
        self.object_counts: List[List[int]] = [[0] * cells for _ in catalog.specs]
        self.total = 0

    def covers_hits(self, union_mask: int) -> bool:
        return (union_mask & self.hit_mask) == self.hit_mask

    def record(self, selection: Sequence[Placement]) -> bool:
        union = 0
        per_spec: Dict[int, int] = {}
        for p in selection:
            union |= p.mask
            per_spec[p.spec_index] = per_spec.get(p.spec_index, 0) | p.mask
        if not self.covers_hits(union):
            return False
        self.total += 1
        add_coverage(self.counts, union)
        for spec_idx, mask in per_spec.items():
            add_coverage(self.object_counts[spec_idx], mask)
        return True

    def snapshot(self) -> List[float]:
        if not self.total:
            return [0.0] * len(self.counts)
        inverse = 1.0 / self.total
        return [c * inverse for c in self.counts]

    def probabilities(self) -> Matrix:
        return coverage_to_matrix(self.counts, self.total, self.grid, self.blocked_mask)

    def object_probabilities(self) -> List[Matrix]:
        return [
            coverage_to_matrix(c, self.total, self.grid, self.blocked_mask)
            for c in self.object_counts
        ]


def max_abs_delta(previous: Sequence[float], current: Sequence[float]) -> Optional[float]:
    if len(previous) != len(current):
        return None
    worst = 0.0
    for a, b in zip(previous, current):
        d = abs(a - b)
        if d > worst:
            worst = d
    return worst
