import pytest

from models import EngineOptions, GridSpec, ObjectSpec
from estimator.catalog import build_catalog
from estimator.exact import enumerate_exact
from estimator.exact_cover import DancingLinks, search_tilings


def test_dancing_links_cover_uncover_restores_links():
    dlx = DancingLinks(3)
    dlx.add_row([1, 2])
    dlx.add_row([3])
    dlx.add_row([2, 3])
    before = (list(dlx.L), list(dlx.R), list(dlx.U), list(dlx.D), list(dlx.S))
    dlx.cover(2)
    assert dlx.S[3] == 1
    dlx.uncover(2)
    assert (dlx.L, dlx.R, dlx.U, dlx.D, dlx.S) == tuple(map(list, before))


def test_two_dominoes_tile_a_square_two_ways():
    catalog = build_catalog(GridSpec(2, 2), [ObjectSpec(2, 1, 2)])
    tally, stats = search_tilings(catalog, EngineOptions())
    assert stats["tilings"] == 2
    assert tally.probabilities() == [[1.0, 1.0], [1.0, 1.0]]


def test_domino_tilings_of_two_by_four():
    catalog = build_catalog(GridSpec(4, 2), [ObjectSpec(2, 1, 4)])
    tally, _ = search_tilings(catalog, EngineOptions())
    assert tally.total == 5


def test_quotas_limit_shape_copies():
    catalog = build_catalog(GridSpec(3, 2), [ObjectSpec(2, 2), ObjectSpec(1, 1, 2)])
    with_quota, _ = search_tilings(catalog, EngineOptions())
    without, _ = search_tilings(catalog, EngineOptions(), enforce_quotas=False)
    assert with_quota.total == 2
    # Six unit squares also tile the board once quotas are off.
    assert without.total == 3


def test_full_tiling_matches_backtracking():
    catalog = build_catalog(GridSpec(3, 2), [ObjectSpec(2, 2), ObjectSpec(1, 1, 2)])
    tilings, _ = search_tilings(catalog, EngineOptions())
    exact, _ = enumerate_exact(catalog, EngineOptions())
    assert tilings.total == exact.total
    assert tilings.object_probabilities() == exact.object_probabilities()
    square = tilings.object_probabilities()[0]
    assert square[0] == pytest.approx([0.5, 1.0, 0.5])


def test_tiling_cap_keeps_partial_tally():
    catalog = build_catalog(GridSpec(4, 2), [ObjectSpec(2, 1, 4)])
    tally, stats = search_tilings(catalog, EngineOptions(max_tilings=1))
    assert stats["capped"] is True
    assert stats["reason"] == "tiling cap"
    assert tally.total == 1


def test_blocked_cells_are_not_columns():
    catalog = build_catalog(GridSpec(3, 1), [ObjectSpec(2, 1)], [(0, 0)])
    tally, stats = search_tilings(catalog, EngineOptions())
    assert stats["columns"] == 2
    assert tally.probabilities() == [[0.0, 1.0, 1.0]]


def test_rotated_twins_keep_their_own_matrices():
    # A 2x1 and a 1x2 share every placement but are separate objects.
    catalog = build_catalog(GridSpec(2, 2), [ObjectSpec(2, 1), ObjectSpec(1, 2)])
    tilings, stats = search_tilings(catalog, EngineOptions())
    exact, _ = enumerate_exact(catalog, EngineOptions())
    assert stats["rows"] == 8
    assert tilings.total == exact.total == 4
    assert tilings.object_probabilities() == exact.object_probabilities()
    for matrix in tilings.object_probabilities():
        assert matrix == [[0.5, 0.5], [0.5, 0.5]]
