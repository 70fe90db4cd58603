from estimator.rankings import rank_cells


def test_highest_and_second_highest():
    matrix = [
        [0.5, 0.2, 0.2],
        [0.5, 0.1, 0.0],
    ]
    ranks = rank_cells(matrix)
    assert [(c["x"], c["y"]) for c in ranks["highest"]] == [(0, 0), (0, 1)]
    assert [(c["x"], c["y"]) for c in ranks["second_highest"]] == [(1, 0), (2, 0)]


def test_second_highest_is_limited_to_two_cells():
    matrix = [[0.9, 0.3, 0.3, 0.3]]
    ranks = rank_cells(matrix)
    assert len(ranks["second_highest"]) == 2


def test_revealed_cells_never_rank():
    matrix = [[1.0, 0.4, 0.2]]
    ranks = rank_cells(matrix, exclude=[(0, 0)])
    assert ranks["highest"] == [{"x": 1, "y": 0, "probability": 0.4}]
    assert ranks["second_highest"] == [{"x": 2, "y": 0, "probability": 0.2}]


def test_all_zero_matrix_has_no_ranking():
    assert rank_cells([[0.0, 0.0]]) == {"highest": [], "second_highest": []}
