# Orchestrator: picks the estimation strategy for one request
from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models import (
    Cell, EngineOptions, EstimateResult, GridSpec, ObjectSpec, RequestError,
    Strategy, zero_matrix,
)
from config import CFG
from attempt_log import fmt_seconds, log_attempt_detail, log_attempt_warning
from estimator.catalog import PlacementCatalog, build_catalog, estimate_configurations
from estimator.coverage import CoverageTally
from estimator.decomposition import estimate_decomposed
from estimator.exact import enumerate_exact
from estimator.exact_cover import search_tilings
from estimator.monte_carlo import sample_monte_carlo
from estimator.propagation import arc_consistency

Runner = Callable[..., Tuple[Optional[CoverageTally], Dict[str, object]]]


def _run_cp_sat(catalog: PlacementCatalog, options: EngineOptions, *, deadline=None):
    # ortools is only loaded when this backend is selected
    from estimator.cp_sat import enumerate_cp_sat
    return enumerate_cp_sat(catalog, options, deadline=deadline)


_RUNNERS: Dict[Strategy, Runner] = {
    Strategy.EXACT_COVER: search_tilings,
    Strategy.EXACT: enumerate_exact,
    Strategy.EXACT_CP_SAT: _run_cp_sat,
    Strategy.MONTE_CARLO: sample_monte_carlo,
}

_EXACT_BACKENDS = {
    "backtracking": Strategy.EXACT,
    "cp_sat": Strategy.EXACT_CP_SAT,
}


# ---------- helpers ----------

def _fmt_objects(objects: Sequence[ObjectSpec]) -> str:
    return ",".join(f"{o.width}x{o.height}({o.count})" for o in objects)


def _validate(
    grid: GridSpec,
    objects: Sequence[ObjectSpec],
    blocked: Sequence[Cell],
    hit_cells: Sequence[Cell],
    placed_cells: Sequence[Cell],
) -> None:
    if grid.width <= 0 or grid.height <= 0:
        raise RequestError("Bad request: grid width and height must be positive")
    max_cells = int(getattr(CFG, "MAX_CELLS", 256))
    if grid.cells > max_cells:
        raise RequestError(f"Bad request: grid {grid.cells} cells exceeds the {max_cells}-cell mask width")

    for spec in objects:
        if spec.width <= 0 or spec.height <= 0:
            raise RequestError(f"Bad request: object {spec.width}x{spec.height} must have positive sides")
        if spec.count < 0:
            raise RequestError(f"Bad request: object {spec.width}x{spec.height} has negative count")

    for label, cells in (("blocked", blocked), ("hit", hit_cells), ("placed", placed_cells)):
        for x, y in cells:
            if not grid.contains(x, y):
                raise RequestError(f"Bad request: {label} cell ({x},{y}) is outside the {grid.width}x{grid.height} grid")

    blocked_set = set(blocked)
    for cell in hit_cells:
        if cell in blocked_set:
            raise RequestError(f"Bad request: hit cell ({cell[0]},{cell[1]}) is blocked")
    for cell in placed_cells:
        if cell in blocked_set:
            raise RequestError(f"Bad request: placed cell ({cell[0]},{cell[1]}) is blocked")


def _zero_result(
    grid: GridSpec,
    objects: Sequence[ObjectSpec],
    strategy: Strategy,
    meta: Dict[str, object],
    reason: str,
) -> EstimateResult:
    meta["reason"] = reason
    log_attempt_detail("Estimate short-circuited", strategy=strategy.value, reason=reason)
    return EstimateResult(
        probabilities=zero_matrix(grid),
        object_probabilities=[zero_matrix(grid) for _ in objects],
        strategy=strategy,
        configurations=0,
        meta=meta,
    )


def _strategy_plan(
    catalog: PlacementCatalog,
    options: EngineOptions,
    meta: Dict[str, object],
) -> List[Strategy]:
    """Ordered strategies to try; Monte Carlo always closes the list."""
    plan: List[Strategy] = []

    if options.enable_exact_cover:
        if catalog.total_area() == catalog.free_cell_count():
            plan.append(Strategy.EXACT_COVER)
        else:
            meta["exact_cover_skipped"] = "requested area differs from free area"

    estimate = estimate_configurations(catalog.placements)
    meta["estimated_configurations"] = estimate
    backend = _EXACT_BACKENDS.get(options.exact_backend)
    if backend is None:
        raise RequestError(f"Bad request: unknown exact backend: {options.exact_backend!r}")
    if estimate <= int(options.exact_threshold):
        plan.append(backend)
    else:
        meta["exact_skipped"] = f"estimate {estimate} > {options.exact_threshold}"

    plan.append(Strategy.MONTE_CARLO)
    return plan


# ---------- public entrypoint ----------

def estimate_probabilities(
    grid: GridSpec,
    objects: Sequence[ObjectSpec],
    blocked: Sequence[Cell] = (),
    *,
    hit_cells: Sequence[Cell] = (),
    placed_cells: Sequence[Cell] = (),
    options: Optional[EngineOptions] = None,
    deadline: Optional[float] = None,
) -> EstimateResult:
    """Per-cell coverage probabilities for ``objects`` on ``grid``.

    Infeasible input (an instance with no placement, too much requested
    area, or an inconsistency found by propagation) yields an all-zero
    matrix, never an error.  Malformed input raises :class:`RequestError`.
    """
    t0 = time.time()
    options = options or EngineOptions.from_cfg()
    if deadline is None:
        deadline = t0 + float(options.time_budget)

    objects = list(objects)
    blocked = [tuple(c) for c in blocked]
    hit_cells = [tuple(c) for c in hit_cells]
    placed_cells = [tuple(c) for c in placed_cells]
    _validate(grid, objects, blocked, hit_cells, placed_cells)

    log_attempt_detail(
        "Estimate started",
        grid=f"{grid.width}x{grid.height}",
        objects=_fmt_objects(objects),
        blocked=len(blocked),
        hits=len(hit_cells),
        placed=len(placed_cells),
    )

    meta: Dict[str, object] = {"attempts": []}
    catalog = build_catalog(
        grid, objects, blocked, hit_cells=hit_cells, placed_cells=placed_cells
    )
    meta["placement_counts"] = catalog.placement_counts()
    meta["instances"] = catalog.instance_count

    if not catalog.instance_count:
        return _zero_result(grid, objects, Strategy.INFEASIBLE, meta, "no objects requested")
    if catalog.is_infeasible():
        return _zero_result(
            grid, objects, Strategy.INFEASIBLE, meta,
            f"instance {catalog.empty_instances()[0]} has no valid placement",
        )
    if catalog.total_area() > catalog.free_cell_count():
        return _zero_result(
            grid, objects, Strategy.INFEASIBLE, meta,
            f"requested area {catalog.total_area()} exceeds free cells {catalog.free_cell_count()}",
        )

    if options.enable_decomposition and catalog.instance_count > int(options.decomposition_threshold):
        result, decomp_meta = estimate_decomposed(
            grid,
            objects,
            blocked,
            hit_cells=hit_cells,
            placed_cells=placed_cells,
            options=options,
            estimate_fn=estimate_probabilities,
            deadline=deadline,
        )
        meta["decomposition"] = decomp_meta
        if result is not None:
            result.meta = {**meta, **result.meta, "elapsed": time.time() - t0}
            return result
        log_attempt_detail("Decomposition declined", reason=decomp_meta.get("declined"))

    exact_catalog = catalog
    if options.enable_propagation:
        if catalog.instance_count > int(options.propagation_max_instances):
            meta["propagation"] = {"skipped": "too many instances"}
        else:
            consistent, domains, prop_stats = arc_consistency(catalog.placements, deadline=deadline)
            meta["propagation"] = prop_stats
            log_attempt_detail(
                "Propagation finished",
                consistent=consistent,
                values_before=prop_stats.get("values_before"),
                values_after=prop_stats.get("values_after"),
            )
            if not consistent:
                return _zero_result(
                    grid, objects, Strategy.CONSTRAINT_FILTERED, meta,
                    "arc consistency emptied a domain",
                )
            exact_catalog = catalog.with_domains(domains)

    for strategy in _strategy_plan(exact_catalog, options, meta):
        # Monte Carlo samples from the unpruned catalog.
        source = catalog if strategy is Strategy.MONTE_CARLO else exact_catalog
        started = time.time()
        run_deadline = deadline
        if strategy is Strategy.MONTE_CARLO and started >= deadline:
            # The fallback still gets a short budget of its own.
            run_deadline = started + float(options.fallback_grace)
            meta["fallback_grace"] = float(options.fallback_grace)
        log_attempt_detail("Strategy started", strategy=strategy.value)
        tally, stats = _RUNNERS[strategy](source, options, deadline=run_deadline)
        stats = dict(stats)
        stats["strategy"] = strategy.value
        stats["duration"] = time.time() - started
        meta["attempts"].append(stats)  # type: ignore[union-attr]
        log_attempt_detail(
            "Strategy finished",
            strategy=strategy.value,
            duration=fmt_seconds(stats["duration"]),
            reason=stats.get("reason"),
            accepted=tally is not None,
        )
        if tally is None:
            log_attempt_warning(
                "Strategy abandoned, falling back",
                strategy=strategy.value,
                reason=stats.get("reason"),
            )
            continue

        meta["elapsed"] = time.time() - t0
        approximate = strategy is Strategy.MONTE_CARLO or bool(stats.get("capped"))
        log_attempt_detail(
            "Estimate finished",
            strategy=strategy.value,
            configurations=tally.total,
            approximate=approximate,
            duration=fmt_seconds(meta["elapsed"]),  # type: ignore[arg-type]
        )
        return EstimateResult(
            probabilities=tally.probabilities(),
            object_probabilities=tally.object_probabilities(),
            strategy=strategy,
            configurations=tally.total,
            approximate=approximate,
            meta=meta,
        )

    # Monte Carlo always returns a tally.
    raise RuntimeError("no strategy produced an estimate")
