import time

import pytest

from models import EngineOptions, GridSpec, ObjectSpec
from estimator.catalog import build_catalog
from estimator.exact import enumerate_exact
from estimator.monte_carlo import REJECTION, SEQUENTIAL, sample_monte_carlo


def _opts(**kw):
    base = dict(monte_carlo_samples=20000, convergence_check=5000, tolerance=0.0, random_seed=7)
    base.update(kw)
    return EngineOptions(**base)


def test_sequential_single_instance_is_uniform():
    catalog = build_catalog(GridSpec(2, 2), [ObjectSpec(1, 1)])
    tally, stats = sample_monte_carlo(catalog, _opts(monte_carlo_mode=SEQUENTIAL, monte_carlo_samples=8000))
    assert stats["samples"] == 8000
    assert stats["valid_samples"] == 8000
    for row in tally.probabilities():
        for p in row:
            assert p == pytest.approx(0.25, abs=0.03)


def test_rejection_converges_to_exact():
    grid = GridSpec(3, 2)
    objects = [ObjectSpec(2, 1), ObjectSpec(1, 1)]
    catalog = build_catalog(grid, objects)
    exact, _ = enumerate_exact(catalog, EngineOptions())
    sampled, stats = sample_monte_carlo(catalog, _opts(monte_carlo_mode=REJECTION))
    assert stats["mode"] == REJECTION
    assert 0 < stats["valid_samples"] < stats["samples"]
    for row_e, row_s in zip(exact.probabilities(), sampled.probabilities()):
        for e, s in zip(row_e, row_s):
            assert s == pytest.approx(e, abs=0.03)


def test_same_seed_same_estimate():
    catalog = build_catalog(GridSpec(4, 3), [ObjectSpec(2, 1, 2)], [(0, 0)])
    a, _ = sample_monte_carlo(catalog, _opts(monte_carlo_samples=3000))
    b, _ = sample_monte_carlo(catalog, _opts(monte_carlo_samples=3000))
    assert a.probabilities() == b.probabilities()


def test_stops_when_checkpoints_agree():
    catalog = build_catalog(GridSpec(1, 1), [ObjectSpec(1, 1)])
    tally, stats = sample_monte_carlo(
        catalog, _opts(monte_carlo_samples=100000, convergence_check=100, tolerance=0.0005)
    )
    assert stats["converged"] is True
    assert stats["reason"] == "converged"
    assert stats["samples"] == 200
    assert tally.probabilities() == [[1.0]]


def test_deadline_stops_at_first_checkpoint():
    catalog = build_catalog(GridSpec(3, 3), [ObjectSpec(1, 1, 2)])
    _, stats = sample_monte_carlo(
        catalog, _opts(convergence_check=50), deadline=time.time() - 1
    )
    assert stats["reason"] == "timebox"
    assert stats["samples"] == 50


def test_blocked_cells_stay_zero():
    catalog = build_catalog(GridSpec(3, 3), [ObjectSpec(1, 1, 2)], [(1, 1)])
    tally, _ = sample_monte_carlo(catalog, _opts(monte_carlo_samples=2000))
    probs = tally.probabilities()
    assert probs[1][1] == 0.0
    assert all(0.0 <= p <= 1.0 for row in probs for p in row)


def test_unknown_mode_raises():
    catalog = build_catalog(GridSpec(2, 2), [ObjectSpec(1, 1)])
    with pytest.raises(ValueError):
        sample_monte_carlo(catalog, _opts(monte_carlo_mode="importance"))
