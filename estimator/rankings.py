# estimator/rankings.py
from typing import Dict, Iterable, List, Sequence

from models import Cell


def rank_cells(
    matrix: Sequence[Sequence[float]],
    exclude: Iterable[Cell] = (),
) -> Dict[str, List[Dict[str, float]]]:
    """Cells with the highest and second-highest probability.

    Zero-probability cells and ``exclude`` (revealed or already placed cells)
    never rank.  At most two second-highest cells are returned.
    """
    skip = set(exclude)
    ranked = [
        (p, x, y)
        for y, row in enumerate(matrix)
        for x, p in enumerate(row)
        if p > 0 and (x, y) not in skip
    ]
    ranked.sort(key=lambda t: -t[0])
    if not ranked:
        return {"highest": [], "second_highest": []}

    top = ranked[0][0]
    highest = [{"x": x, "y": y, "probability": p} for p, x, y in ranked if p == top]
    lower = [t for t in ranked if t[0] < top]
    second: List[Dict[str, float]] = []
    if lower:
        runner_up = lower[0][0]
        second = [
            {"x": x, "y": y, "probability": p} for p, x, y in lower if p == runner_up
        ][:2]
    return {"highest": highest, "second_highest": second}
