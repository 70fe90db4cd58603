# estimator/decomposition.py
"""Approximate divide-and-conquer over two horizontal bands.

Each band is estimated on its own with the full engine and the matrices are
stacked back by row.  Objects are never placed across the band boundary
and the bands do not see each other's choices, so the result is a
heuristic and is always flagged ``approximate``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models import Cell, EngineOptions, EstimateResult, GridSpec, ObjectSpec, Strategy, zero_matrix
from attempt_log import log_attempt_detail


@dataclass
class BandPlan:
    y0: int
    height: int
    counts: List[int] = field(default_factory=list)
    free_cells: int = 0

    @property
    def instances(self) -> int:
        return sum(self.counts)


def _fits(spec: ObjectSpec, width: int, height: int) -> bool:
    return (spec.width <= width and spec.height <= height) or (
        spec.height <= width and spec.width <= height
    )


def split_bands(grid: GridSpec) -> List[Tuple[int, int]]:
    """``[(y0, height), ...]`` for the top and bottom band."""
    top = (grid.height + 1) // 2
    return [(0, top), (top, grid.height - top)]


def plan_bands(
    grid: GridSpec,
    objects: Sequence[ObjectSpec],
    blocked: Sequence[Cell] = (),
    placed_cells: Sequence[Cell] = (),
) -> Tuple[Optional[List[BandPlan]], Optional[str]]:
    """Distribute instances over the bands.

    Objects that fit one band go there; objects that fit both are dealt out
    one at a time to whichever band has the most unclaimed free area.
    Returns ``(None, reason)`` when some object fits neither band.
    """
    if grid.height < 2:
        return None, "grid too short to split"

    taken = set(blocked) | set(placed_cells)
    plans: List[BandPlan] = []
    for y0, h in split_bands(grid):
        free = sum(
            1
            for y in range(y0, y0 + h)
            for x in range(grid.width)
            if (x, y) not in taken
        )
        plans.append(BandPlan(y0=y0, height=h, counts=[0] * len(objects), free_cells=free))

    claimed = [0] * len(plans)
    shared: List[int] = []
    for idx, spec in enumerate(objects):
        if spec.count <= 0:
            continue
        fits = [b for b, plan in enumerate(plans) if _fits(spec, grid.width, plan.height)]
        if not fits:
            return None, f"object {spec.width}x{spec.height} spans both bands"
        if len(fits) == 1:
            plans[fits[0]].counts[idx] += spec.count
            claimed[fits[0]] += spec.area * spec.count
        else:
            shared.append(idx)

    # Larger shapes first so the small ones fill in around them.
    shared.sort(key=lambda i: -objects[i].area)
    for idx in shared:
        spec = objects[idx]
        for _ in range(spec.count):
            best = max(range(len(plans)), key=lambda b: (plans[b].free_cells - claimed[b], -b))
            plans[best].counts[idx] += 1
            claimed[best] += spec.area

    return plans, None


def _band_cells(cells: Sequence[Cell], y0: int, height: int) -> List[Cell]:
    return [(x, y - y0) for x, y in cells if y0 <= y < y0 + height]


EstimateFn = Callable[..., EstimateResult]


def estimate_decomposed(
    grid: GridSpec,
    objects: Sequence[ObjectSpec],
    blocked: Sequence[Cell],
    *,
    hit_cells: Sequence[Cell] = (),
    placed_cells: Sequence[Cell] = (),
    options: EngineOptions,
    estimate_fn: EstimateFn,
    deadline: Optional[float] = None,
) -> Tuple[Optional[EstimateResult], Dict[str, object]]:
    """Estimate per band and stack the matrices.

    Returns ``(None, meta)`` when the objects cannot be split over bands or
    some band has no configuration under the greedy split; the caller then
    runs the undivided engine.
    """

    plans, reason = plan_bands(grid, objects, blocked, placed_cells)
    meta: Dict[str, object] = {"bands": [], "declined": reason}
    if plans is None:
        return None, meta

    probabilities = zero_matrix(grid)
    object_probabilities = [zero_matrix(grid) for _ in objects]
    configurations: List[int] = []
    infeasible: Optional[int] = None

    for band_no, plan in enumerate(plans):
        band_grid = GridSpec(grid.width, plan.height)
        band_hits = _band_cells(hit_cells, plan.y0, plan.height)
        band_meta: Dict[str, object] = {
            "y0": plan.y0,
            "height": plan.height,
            "instances": plan.instances,
        }
        meta["bands"].append(band_meta)  # type: ignore[union-attr]

        if plan.instances == 0:
            if band_hits:
                infeasible = band_no
                band_meta["strategy"] = Strategy.INFEASIBLE.value
                break
            band_meta["strategy"] = None
            continue

        band_objects = [
            ObjectSpec(spec.width, spec.height, plan.counts[idx])
            for idx, spec in enumerate(objects)
        ]
        sub = estimate_fn(
            band_grid,
            band_objects,
            _band_cells(blocked, plan.y0, plan.height),
            hit_cells=band_hits,
            placed_cells=_band_cells(placed_cells, plan.y0, plan.height),
            options=options,
            deadline=deadline,
        )
        band_meta["strategy"] = sub.strategy.value
        band_meta["configurations"] = sub.configurations
        if sub.strategy in (Strategy.INFEASIBLE, Strategy.CONSTRAINT_FILTERED) or not sub.configurations:
            infeasible = band_no
            break

        configurations.append(sub.configurations)
        for dy, row in enumerate(sub.probabilities):
            probabilities[plan.y0 + dy] = list(row)
        for spec_idx, matrix in enumerate(sub.object_probabilities):
            for dy, row in enumerate(matrix):
                object_probabilities[spec_idx][plan.y0 + dy] = list(row)

    log_attempt_detail(
        "Decomposition finished",
        bands=len(plans),
        infeasible_band=infeasible,
        instances="/".join(str(p.instances) for p in plans),
    )

    if infeasible is not None:
        # Only the split is disproved here, not the request.
        meta["declined"] = f"band {infeasible} infeasible"
        return None, meta

    return EstimateResult(
        probabilities=probabilities,
        object_probabilities=object_probabilities,
        strategy=Strategy.DECOMPOSED,
        configurations=min(configurations) if configurations else 0,
        approximate=True,
        meta=meta,
    ), meta
