from models import GridSpec, ObjectSpec
from estimator.bitmask import cell_bit, iter_bits, mask_from_cells, popcount, rect_mask
from estimator.catalog import (
    ESTIMATE_CAP,
    build_catalog,
    enumerate_placements,
    estimate_configurations,
    orientations,
)


def test_orientations_square_has_one():
    assert orientations(2, 2) == [(2, 2)]
    assert orientations(2, 1) == [(2, 1), (1, 2)]


def test_rect_mask_matches_cells():
    W = 4
    mask = rect_mask(1, 1, 2, 2, W)
    assert sorted(iter_bits(mask)) == [5, 6, 9, 10]
    assert mask == mask_from_cells([(1, 1), (2, 1), (1, 2), (2, 2)], W)
    assert popcount(mask) == 4


def test_full_row_object_has_one_placement_per_row():
    grid = GridSpec(9, 5)
    placements = enumerate_placements(grid, ObjectSpec(9, 1), 0)
    assert len(placements) == 5
    assert [p.y for p in placements] == [0, 1, 2, 3, 4]


def test_placements_avoid_blocked_cells():
    grid = GridSpec(3, 2)
    blocked = cell_bit(1, 0, 3)
    placements = enumerate_placements(grid, ObjectSpec(2, 1), blocked)
    assert all(not p.mask & blocked for p in placements)
    # 4 horizontal + 3 vertical without the block, minus 2 horizontal and 1 vertical
    assert len(placements) == 4


def test_identical_instances_share_placement_list():
    grid = GridSpec(4, 4)
    catalog = build_catalog(grid, [ObjectSpec(2, 1, 3), ObjectSpec(1, 1, 0), ObjectSpec(1, 1, 1)])
    assert catalog.instance_count == 4
    assert catalog.instance_specs == [0, 0, 0, 2]
    assert catalog.placements[0] is catalog.placements[1] is catalog.placements[2]
    assert all(p.spec_index == 2 for p in catalog.placements[3])
    assert catalog.total_area() == 7


def test_same_shape_different_specs_keep_their_own_lists():
    grid = GridSpec(3, 3)
    catalog = build_catalog(grid, [ObjectSpec(1, 2), ObjectSpec(1, 2)])
    assert {p.spec_index for p in catalog.placements[0]} == {0}
    assert {p.spec_index for p in catalog.placements[1]} == {1}


def test_object_wider_than_grid_is_infeasible():
    catalog = build_catalog(GridSpec(9, 5), [ObjectSpec(10, 1)])
    assert catalog.is_infeasible()
    assert catalog.empty_instances() == [0]


def test_placed_cells_are_fixed_and_not_hit():
    grid = GridSpec(3, 1)
    catalog = build_catalog(
        grid, [ObjectSpec(1, 1)], hit_cells=[(0, 0), (2, 0)], placed_cells=[(0, 0)]
    )
    assert catalog.fixed_mask == cell_bit(0, 0, 3)
    assert catalog.hit_mask == cell_bit(2, 0, 3)
    assert catalog.free_cell_count() == 2
    assert [p.x for p in catalog.placements[0]] == [1, 2]


def test_estimate_is_product_and_saturates():
    catalog = build_catalog(GridSpec(3, 2), [ObjectSpec(2, 1, 2)])
    assert estimate_configurations(catalog.placements) == 49
    # Only saturates once the product passes the cap itself.
    assert estimate_configurations(catalog.placements, cap=10_000) == 49
    assert estimate_configurations(catalog.placements, cap=48) == 48

    big = build_catalog(GridSpec(9, 5), [ObjectSpec(1, 1, 20)])
    assert estimate_configurations(big.placements) == ESTIMATE_CAP
    assert estimate_configurations(big.placements, cap=10_000) == 10_000
