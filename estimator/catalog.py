# estimator/catalog.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models import Cell, GridSpec, ObjectSpec, Placement
from estimator.bitmask import free_cells, mask_from_cells, rect_mask

# Largest integer a double holds exactly.
ESTIMATE_CAP = 2 ** 53 - 1


@dataclass
class PlacementCatalog:
    grid: GridSpec
    specs: List[ObjectSpec]
    instance_specs: List[int]
    placements: List[List[Placement]]
    blocked_mask: int = 0
    fixed_mask: int = 0
    hit_mask: int = 0

    @property
    def instance_count(self) -> int:
        return len(self.placements)

    def empty_instances(self) -> List[int]:
        return [i for i, opts in enumerate(self.placements) if not opts]

    def is_infeasible(self) -> bool:
        return not self.placements or any(not opts for opts in self.placements)

    def total_area(self) -> int:
        return sum(self.specs[s].area for s in self.instance_specs)

    def free_cell_count(self) -> int:
        return free_cells(self.grid.cells, self.fixed_mask, self.blocked_mask)

    def placement_counts(self) -> List[int]:
        return [len(opts) for opts in self.placements]

    def with_domains(self, domains: Sequence[Sequence[Placement]]) -> "PlacementCatalog":
        if len(domains) != len(self.placements):
            raise ValueError("domain count does not match instance count")
        return replace(self, placements=[list(d) for d in domains])


def orientations(w: int, h: int) -> List[Tuple[int, int]]:
    if w == h:
        return [(w, h)]
    return [(w, h), (h, w)]


def enumerate_placements(
    grid: GridSpec,
    spec: ObjectSpec,
    forbidden_mask: int,
    *,
    spec_index: int = 0,
) -> List[Placement]:
    """Every in-bounds placement of ``spec`` avoiding ``forbidden_mask``.

    Rows are scanned top to bottom, columns left to right, one orientation
    after the other, so the order is stable across runs.
    """
    out: List[Placement] = []
    W, H = grid.width, grid.height
    for w, h in orientations(spec.width, spec.height):
        if w <= 0 or h <= 0 or w > W or h > H:
            continue
        for y in range(0, H - h + 1):
            for x in range(0, W - w + 1):
                mask = rect_mask(x, y, w, h, W)
                if mask & forbidden_mask:
                    continue
                cells = tuple((x + dx, y + dy) for dy in range(h) for dx in range(w))
                out.append(Placement(x, y, w, h, cells, mask, spec_index))
    return out


def build_catalog(
    grid: GridSpec,
    objects: Sequence[ObjectSpec],
    blocked: Iterable[Cell] = (),
    *,
    hit_cells: Iterable[Cell] = (),
    placed_cells: Iterable[Cell] = (),
) -> PlacementCatalog:
    """Expand ``objects`` by count and list the placements of every instance.

    Identical instances share one placement list; nothing downstream mutates
    these lists in place.
    """
    blocked_mask = mask_from_cells(blocked, grid.width)
    fixed_mask = mask_from_cells(placed_cells, grid.width)
    hit_mask = mask_from_cells(hit_cells, grid.width) & ~fixed_mask
    forbidden = blocked_mask | fixed_mask

    specs = list(objects)
    instance_specs: List[int] = []
    placements: List[List[Placement]] = []
    by_shape: Dict[Tuple[int, int], List[Placement]] = {}

    for idx, spec in enumerate(specs):
        if spec.count <= 0:
            continue
        key = (spec.width, spec.height)
        shared = by_shape.get(key)
        if shared is None or (shared and shared[0].spec_index != idx):
            shared = enumerate_placements(grid, spec, forbidden, spec_index=idx)
            by_shape[key] = shared
        for _ in range(spec.count):
            instance_specs.append(idx)
            placements.append(shared)

    return PlacementCatalog(
        grid=grid,
        specs=specs,
        instance_specs=instance_specs,
        placements=placements,
        blocked_mask=blocked_mask,
        fixed_mask=fixed_mask,
        hit_mask=hit_mask,
    )


def estimate_configurations(
    placements: Sequence[Sequence[Placement]],
    cap: Optional[int] = None,
) -> int:
    """Product of per-instance list lengths, saturating at ``cap``."""
    limit = ESTIMATE_CAP if cap is None else int(cap)
    estimate = 1
    for opts in placements:
        estimate *= len(opts)
        if estimate > limit:
            return limit
    return estimate
