import pytest

from config import CFG
from models import EngineOptions
from estimator import worker


@pytest.fixture(autouse=True)
def _grid_9x5(monkeypatch):
    monkeypatch.setattr(CFG, "GRID_WIDTH", 9)
    monkeypatch.setattr(CFG, "GRID_HEIGHT", 5)


def test_success_envelope():
    resp = worker.handle_request(
        {"correlationId": 3, "objectSpecs": [{"width": 1, "height": 1, "count": 1}]},
        options=EngineOptions(),
    )
    assert resp["correlationId"] == 3
    assert "error" not in resp
    assert len(resp["probabilityMatrix"]) == 5
    assert all(len(row) == 9 for row in resp["probabilityMatrix"])
    assert resp["probabilityMatrix"][2][4] == pytest.approx(1 / 45)
    assert resp["strategy"] == "exact"
    assert len(resp["objectProbabilities"]) == 1
    assert len(resp["rankings"]["highest"]) == 45
    assert isinstance(resp["elapsedTimeMs"], int)


def test_over_demand_is_all_zero_not_an_error():
    resp = worker.handle_request(
        {"correlationId": "x", "objectSpecs": [{"width": 1, "height": 1, "count": 46}]},
        options=EngineOptions(),
    )
    assert "error" not in resp
    assert resp["strategy"] == "infeasible"
    assert all(p == 0.0 for row in resp["probabilityMatrix"] for p in row)
    assert resp["rankings"] == {"highest": [], "second_highest": []}


def test_malformed_request_becomes_error_envelope():
    resp = worker.handle_request({"correlationId": 9, "objectSpecs": "nope"})
    assert resp["correlationId"] == 9
    assert resp["probabilityMatrix"] == []
    assert resp["error"].startswith("Bad request:")
    assert resp["elapsedTimeMs"] >= 0


def test_internal_failure_becomes_error_envelope(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("engine exploded")

    monkeypatch.setattr(worker, "estimate_probabilities", boom)
    resp = worker.handle_request({"correlationId": 1, "objectSpecs": []})
    assert resp["error"] == "engine exploded"
    assert resp["probabilityMatrix"] == []


def test_hit_and_placed_cells_are_excluded_from_rankings():
    resp = worker.handle_request(
        {
            "objectSpecs": [{"width": 1, "height": 1, "count": 1}],
            "hitCells": [{"x": 0, "y": 0}],
        },
        options=EngineOptions(),
    )
    assert resp["probabilityMatrix"][0][0] == 1.0
    assert resp["rankings"]["highest"] == []


def test_isolated_run_returns_same_envelope():
    resp = worker.run_request_isolated(
        {"correlationId": "iso", "objectSpecs": [{"width": 9, "height": 5, "count": 1}]}
    )
    assert resp["correlationId"] == "iso"
    assert resp.get("error") is None
    assert all(p == 1.0 for row in resp["probabilityMatrix"] for p in row)


def test_isolated_run_times_out(monkeypatch):
    monkeypatch.setattr(CFG, "MAX_CALCULATION_TIME", 0.0)
    resp = worker.run_request_isolated(
        {"correlationId": "slow", "objectSpecs": [{"width": 1, "height": 1}]},
        grace_seconds=0.0,
    )
    assert resp["correlationId"] == "slow"
    assert resp["probabilityMatrix"] == []
    assert resp["error"]
