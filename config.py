# config.py
import os

# ======= Grid =======
# The caller and the engine share these; they are not part of a request.
GRID_WIDTH  = int(os.getenv("TP_GRID_WIDTH", "9"))
GRID_HEIGHT = int(os.getenv("TP_GRID_HEIGHT", "5"))
MAX_CELLS   = int(os.getenv("TP_MAX_CELLS", "256"))

# ======= Strategy selection =======
EXACT_CONFIGURATION_THRESHOLD = int(os.getenv("TP_EXACT_CONFIGURATION_THRESHOLD", "200000"))
EXACT_BACKEND                 = os.getenv("TP_EXACT_BACKEND", "backtracking")  # backtracking | cp_sat
ENABLE_PROPAGATION            = int(os.getenv("TP_ENABLE_PROPAGATION", "1")) != 0
ENABLE_EXACT_COVER            = int(os.getenv("TP_ENABLE_EXACT_COVER", "0")) != 0
ENABLE_DECOMPOSITION          = int(os.getenv("TP_ENABLE_DECOMPOSITION", "0")) != 0
DECOMPOSITION_THRESHOLD       = int(os.getenv("TP_DECOMPOSITION_THRESHOLD", "12"))

# ======= Exact enumeration guards =======
MAX_VALID_CONFIGURATIONS = int(os.getenv("TP_MAX_VALID_CONFIGURATIONS", "1000000"))
EXACT_PRUNE_AREA         = int(os.getenv("TP_EXACT_PRUNE_AREA", "1")) != 0
EXACT_SYMMETRY_BREAKING  = int(os.getenv("TP_EXACT_SYMMETRY_BREAKING", "1")) != 0
EXACT_TIME_CHECK_NODES   = int(os.getenv("TP_EXACT_TIME_CHECK_NODES", "4096"))

# ======= Monte Carlo =======
MONTE_CARLO_SAMPLES           = int(os.getenv("TP_MONTE_CARLO_SAMPLES", "1000000"))
MONTE_CARLO_CONVERGENCE_CHECK = int(os.getenv("TP_MONTE_CARLO_CONVERGENCE_CHECK", "25000"))
MONTE_CARLO_TOLERANCE         = float(os.getenv("TP_MONTE_CARLO_TOLERANCE", "0.0005"))
MONTE_CARLO_MODE              = os.getenv("TP_MONTE_CARLO_MODE", "sequential")  # sequential | rejection
# Budget Monte Carlo gets when an exact strategy used up the deadline.
MONTE_CARLO_FALLBACK_TIME     = float(os.getenv("TP_MONTE_CARLO_FALLBACK_TIME", "2"))
# Negative seed means "seed from the system".
RANDOM_SEED                   = int(os.getenv("TP_RANDOM_SEED", "-1"))

# ======= Exact cover / propagation caps =======
MAX_TILINGS               = int(os.getenv("TP_MAX_TILINGS", "100000"))
PROPAGATION_MAX_INSTANCES = int(os.getenv("TP_PROPAGATION_MAX_INSTANCES", "64"))

# ======= Timeboxes (seconds) =======
MAX_CALCULATION_TIME = float(os.getenv("TP_MAX_CALCULATION_TIME", "30"))
WORKER_TIMEOUT       = float(os.getenv("TP_WORKER_TIMEOUT", "5"))
ISOLATE_WORKER       = int(os.getenv("TP_ISOLATE_WORKER", "0")) != 0

# ======= CP-SAT backend =======
MAX_MEMORY_MB = int(os.getenv("TP_MAX_MEMORY_MB", "2048"))

# ======= Logging =======
ATTEMPT_LOG = os.getenv("TP_ATTEMPT_LOG", "logs/estimator_attempts.log")

class CFG:
    GRID_WIDTH  = GRID_WIDTH
    GRID_HEIGHT = GRID_HEIGHT
    MAX_CELLS   = MAX_CELLS

    EXACT_CONFIGURATION_THRESHOLD = EXACT_CONFIGURATION_THRESHOLD
    EXACT_BACKEND                 = EXACT_BACKEND
    ENABLE_PROPAGATION            = ENABLE_PROPAGATION
    ENABLE_EXACT_COVER            = ENABLE_EXACT_COVER
    ENABLE_DECOMPOSITION          = ENABLE_DECOMPOSITION
    DECOMPOSITION_THRESHOLD       = DECOMPOSITION_THRESHOLD

    MAX_VALID_CONFIGURATIONS = MAX_VALID_CONFIGURATIONS
    EXACT_PRUNE_AREA         = EXACT_PRUNE_AREA
    EXACT_SYMMETRY_BREAKING  = EXACT_SYMMETRY_BREAKING
    EXACT_TIME_CHECK_NODES   = EXACT_TIME_CHECK_NODES

    MONTE_CARLO_SAMPLES           = MONTE_CARLO_SAMPLES
    MONTE_CARLO_CONVERGENCE_CHECK = MONTE_CARLO_CONVERGENCE_CHECK
    MONTE_CARLO_TOLERANCE         = MONTE_CARLO_TOLERANCE
    MONTE_CARLO_MODE              = MONTE_CARLO_MODE
    MONTE_CARLO_FALLBACK_TIME     = MONTE_CARLO_FALLBACK_TIME
    RANDOM_SEED                   = RANDOM_SEED

    MAX_TILINGS               = MAX_TILINGS
    PROPAGATION_MAX_INSTANCES = PROPAGATION_MAX_INSTANCES

    MAX_CALCULATION_TIME = MAX_CALCULATION_TIME
    WORKER_TIMEOUT       = WORKER_TIMEOUT
    ISOLATE_WORKER       = ISOLATE_WORKER

    MAX_MEMORY_MB = MAX_MEMORY_MB

    ATTEMPT_LOG = ATTEMPT_LOG

__all__ = ["CFG"]
