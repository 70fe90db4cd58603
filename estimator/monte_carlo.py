# estimator/monte_carlo.py
from __future__ import annotations

import random
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models import EngineOptions, Placement
from attempt_log import log_attempt_detail
from estimator.catalog import PlacementCatalog
from estimator.coverage import CoverageTally, max_abs_delta

SEQUENTIAL = "sequential"
REJECTION = "rejection"

Draw = Callable[[random.Random], Optional[List[Placement]]]


def _sequential_draw(
    domains: Sequence[Sequence[Placement]],
    masks: Sequence[Sequence[int]],
    base_mask: int,
) -> Draw:
    """Walk instances in order, picking uniformly among still-compatible options.

    Earlier picks are never revisited and a dead end discards the whole
    sample, so the resulting distribution depends on instance order.
    """

    def draw(rng: random.Random) -> Optional[List[Placement]]:
        occupied = base_mask
        chosen: List[Placement] = []
        for opts, opt_masks in zip(domains, masks):
            valid = [k for k, m in enumerate(opt_masks) if not m & occupied]
            if not valid:
                return None
            k = valid[rng.randrange(len(valid))]
            chosen.append(opts[k])
            occupied |= opt_masks[k]
        return chosen

    return draw


def _rejection_draw(
    domains: Sequence[Sequence[Placement]],
    masks: Sequence[Sequence[int]],
    base_mask: int,
) -> Draw:
    """Draw every instance from its full list and reject on any overlap.

    Accepted samples are uniform over valid configurations.
    """

    def draw(rng: random.Random) -> Optional[List[Placement]]:
        occupied = base_mask
        chosen: List[Placement] = []
        for opts, opt_masks in zip(domains, masks):
            k = rng.randrange(len(opts))
            m = opt_masks[k]
            if m & occupied:
                return None
            chosen.append(opts[k])
            occupied |= m
        return chosen

    return draw


def make_rng(options: EngineOptions) -> random.Random:
    if options.random_seed is None:
        return random.Random()
    return random.Random(int(options.random_seed))


def sample_monte_carlo(
    catalog: PlacementCatalog,
    options: EngineOptions,
    *,
    deadline: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[CoverageTally, Dict[str, object]]:
    """Estimate coverage from random configurations.

    Stops at the sample budget, when two consecutive checkpoints differ by
    less than ``options.tolerance`` on every cell, or once ``deadline`` has
    passed (checked at checkpoints).
    """

    tally = CoverageTally(catalog)
    mode = (options.monte_carlo_mode or SEQUENTIAL).lower()
    stats: Dict[str, object] = {
        "mode": mode,
        "samples": 0,
        "valid_samples": 0,
        "checkpoints": 0,
        "converged": False,
        "last_delta": None,
        "reason": None,
    }
    if catalog.is_infeasible():
        stats["reason"] = "empty_options"
        return tally, stats

    if mode == SEQUENTIAL:
        factory = _sequential_draw
    elif mode == REJECTION:
        factory = _rejection_draw
    else:
        raise ValueError(f"Unknown Monte Carlo mode: {options.monte_carlo_mode!r}")

    domains = catalog.placements
    masks = [[p.mask for p in opts] for opts in domains]
    draw = factory(domains, masks, catalog.fixed_mask)
    rng = rng or make_rng(options)

    max_samples = max(0, int(options.monte_carlo_samples))
    interval = max(1, int(options.convergence_check))
    tolerance = float(options.tolerance)

    previous: Optional[List[float]] = None
    samples = 0
    reason = "sample budget"

    while samples < max_samples:
        samples += 1
        chosen = draw(rng)
        if chosen is not None:
            tally.record(chosen)

        if samples % interval:
            continue

        stats["checkpoints"] = int(stats["checkpoints"]) + 1
        log_attempt_detail(
            "Monte Carlo progress",
            samples=f"{samples}/{max_samples}",
            valid_pct=f"{(tally.total / samples) * 100.0:.2f}",
        )
        if tally.total:
            current = tally.snapshot()
            if previous is not None:
                delta = max_abs_delta(previous, current)
                stats["last_delta"] = delta
                if delta is not None and delta < tolerance:
                    stats["converged"] = True
                    reason = "converged"
                    break
            previous = current

        if deadline is not None and time.time() >= deadline:
            reason = "timebox"
            break

    stats.update({"samples": samples, "valid_samples": tally.total, "reason": reason})
    return tally, stats
