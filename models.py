from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from config import CFG

Cell = Tuple[int, int]
Matrix = List[List[float]]


class RequestError(ValueError):
    """Malformed estimation input; surfaced to the caller as an error response."""


@dataclass(frozen=True)
class GridSpec:
    width: int
    height: int

    @property
    def cells(self) -> int:
        return self.width * self.height

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    @classmethod
    def default(cls) -> "GridSpec":
        return cls(int(CFG.GRID_WIDTH), int(CFG.GRID_HEIGHT))


@dataclass(frozen=True)
class ObjectSpec:
    width: int
    height: int
    count: int = 1

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Placement:
    x: int
    y: int
    w: int
    h: int
    cells: Tuple[Cell, ...]
    mask: int
    spec_index: int = 0


class Strategy(str, Enum):
    INFEASIBLE = "infeasible"
    CONSTRAINT_FILTERED = "constraint_filtered"
    EXACT = "exact"
    EXACT_CP_SAT = "exact_cp_sat"
    EXACT_COVER = "exact_cover"
    MONTE_CARLO = "monte_carlo"
    DECOMPOSED = "decomposed"


@dataclass
class EngineOptions:
    """Per-request snapshot of the strategy knobs in :mod:`config`."""

    exact_threshold: int = 200000
    exact_backend: str = "backtracking"
    max_valid_configurations: int = 1000000
    prune_area: bool = True
    symmetry_breaking: bool = True
    time_check_nodes: int = 4096
    monte_carlo_samples: int = 1000000
    convergence_check: int = 25000
    tolerance: float = 0.0005
    monte_carlo_mode: str = "sequential"
    fallback_grace: float = 2.0
    random_seed: Optional[int] = None
    max_tilings: int = 100000
    time_budget: float = 30.0
    enable_propagation: bool = True
    propagation_max_instances: int = 64
    enable_exact_cover: bool = False
    enable_decomposition: bool = False
    decomposition_threshold: int = 12
    max_memory_mb: int = 2048

    @classmethod
    def from_cfg(cls, **overrides: Any) -> "EngineOptions":
        seed = int(CFG.RANDOM_SEED)
        opts = cls(
            exact_threshold=int(CFG.EXACT_CONFIGURATION_THRESHOLD),
            exact_backend=str(CFG.EXACT_BACKEND).strip().lower(),
            max_valid_configurations=int(CFG.MAX_VALID_CONFIGURATIONS),
            prune_area=bool(CFG.EXACT_PRUNE_AREA),
            symmetry_breaking=bool(CFG.EXACT_SYMMETRY_BREAKING),
            time_check_nodes=max(1, int(CFG.EXACT_TIME_CHECK_NODES)),
            monte_carlo_samples=int(CFG.MONTE_CARLO_SAMPLES),
            convergence_check=max(1, int(CFG.MONTE_CARLO_CONVERGENCE_CHECK)),
            tolerance=float(CFG.MONTE_CARLO_TOLERANCE),
            monte_carlo_mode=str(CFG.MONTE_CARLO_MODE).strip().lower(),
            fallback_grace=float(CFG.MONTE_CARLO_FALLBACK_TIME),
            random_seed=seed if seed >= 0 else None,
            max_tilings=int(CFG.MAX_TILINGS),
            time_budget=float(CFG.MAX_CALCULATION_TIME),
            enable_propagation=bool(CFG.ENABLE_PROPAGATION),
            propagation_max_instances=int(CFG.PROPAGATION_MAX_INSTANCES),
            enable_exact_cover=bool(CFG.ENABLE_EXACT_COVER),
            enable_decomposition=bool(CFG.ENABLE_DECOMPOSITION),
            decomposition_threshold=int(CFG.DECOMPOSITION_THRESHOLD),
            max_memory_mb=int(CFG.MAX_MEMORY_MB),
        )
        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown engine option: {key}")
            setattr(opts, key, value)
        return opts


@dataclass
class EstimateResult:
    probabilities: Matrix
    object_probabilities: List[Matrix]
    strategy: Strategy
    configurations: int = 0
    approximate: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)


def zero_matrix(grid: GridSpec) -> Matrix:
    return [[0.0] * grid.width for _ in range(grid.height)]
