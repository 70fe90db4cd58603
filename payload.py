# payload.py: request parser for the probability endpoint and worker
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models import Cell, GridSpec, ObjectSpec, RequestError

__all__ = ["EstimateRequest", "RequestError", "parse_request", "parse_cell", "parse_object"]


def _to_int(x: Any, what: str) -> int:
    if isinstance(x, bool):
        raise RequestError(f"Bad request: {what} must be an integer, got {x!r}")
    try:
        val = float(x)
    except (TypeError, ValueError):
        raise RequestError(f"Bad request: {what} must be an integer, got {x!r}") from None
    if not math.isfinite(val) or val != int(val):
        raise RequestError(f"Bad request: {what} must be an integer, got {x!r}")
    return int(val)


def _as_list(val: Any, what: str) -> List[Any]:
    if val is None:
        return []
    if isinstance(val, (list, tuple)):
        return list(val)
    raise RequestError(f"Bad request: {what} must be a list")


def parse_cell(raw: Any, what: str = "cell") -> Cell:
    """``{x, y}`` or ``[x, y]`` to an ``(x, y)`` tuple."""
    if isinstance(raw, dict):
        if "x" not in raw or "y" not in raw:
            raise RequestError(f"Bad request: {what} needs x and y")
        return _to_int(raw["x"], f"{what}.x"), _to_int(raw["y"], f"{what}.y")
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return _to_int(raw[0], f"{what}.x"), _to_int(raw[1], f"{what}.y")
    raise RequestError(f"Bad request: {what} must be {{x, y}} or [x, y], got {raw!r}")


def parse_object(raw: Any, idx: int = 0) -> ObjectSpec:
    if not isinstance(raw, dict):
        raise RequestError(f"Bad request: object #{idx} must be a mapping")
    w = raw.get("width", raw.get("w"))
    h = raw.get("height", raw.get("h"))
    if w is None or h is None:
        raise RequestError(f"Bad request: object #{idx} needs width and height")
    width = _to_int(w, f"object #{idx} width")
    height = _to_int(h, f"object #{idx} height")
    count = _to_int(raw.get("count", 1), f"object #{idx} count")
    if width <= 0 or height <= 0:
        raise RequestError(f"Bad request: object #{idx} has non-positive size {width}x{height}")
    if count < 0:
        raise RequestError(f"Bad request: object #{idx} has negative count {count}")
    return ObjectSpec(width, height, count)


def _parse_cells(raw: Any, what: str) -> List[Cell]:
    return [parse_cell(c, f"{what}[{i}]") for i, c in enumerate(_as_list(raw, what))]


@dataclass
class EstimateRequest:
    correlation_id: Any
    objects: List[ObjectSpec]
    blocked: List[Cell] = field(default_factory=list)
    hit_cells: List[Cell] = field(default_factory=list)
    placed_cells: List[Cell] = field(default_factory=list)
    grid: GridSpec = field(default_factory=GridSpec.default)

    @property
    def revealed(self) -> List[Cell]:
        """Cells that never rank: hits and cells under placed objects."""
        return list(self.hit_cells) + list(self.placed_cells)


def correlation_of(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("correlationId", payload.get("id"))
    return None


def parse_request(payload: Any, grid: Optional[GridSpec] = None) -> EstimateRequest:
    """Validate a request mapping.

    Accepts ``objectSpecs`` (or ``objects``) entries with ``width``/``height``
    or ``w``/``h`` keys, ``blockedCells``, ``hitCells`` and ``placedObjects``
    (each ``{cells: [...]}``).  The grid is not part of the request.
    """
    if not isinstance(payload, dict):
        raise RequestError("Bad request: payload must be a JSON object")

    raw_objects = payload.get("objectSpecs", payload.get("objects"))
    if raw_objects is None:
        raise RequestError("Bad request: missing objectSpecs")
    objects = [parse_object(o, i) for i, o in enumerate(_as_list(raw_objects, "objectSpecs"))]

    blocked = _parse_cells(payload.get("blockedCells"), "blockedCells")
    hits = _parse_cells(payload.get("hitCells"), "hitCells")

    placed: List[Cell] = []
    for i, obj in enumerate(_as_list(payload.get("placedObjects"), "placedObjects")):
        cells = obj.get("cells") if isinstance(obj, dict) else obj
        placed.extend(_parse_cells(cells, f"placedObjects[{i}].cells"))

    grid = grid or GridSpec.default()
    for label, cells in (("blockedCells", blocked), ("hitCells", hits), ("placedObjects", placed)):
        for x, y in cells:
            if not grid.contains(x, y):
                raise RequestError(
                    f"Bad request: {label} cell ({x},{y}) outside {grid.width}x{grid.height} grid"
                )

    return EstimateRequest(
        correlation_id=correlation_of(payload),
        objects=objects,
        blocked=_dedupe(blocked),
        hit_cells=_dedupe(hits),
        placed_cells=_dedupe(placed),
        grid=grid,
    )


def _dedupe(cells: Sequence[Cell]) -> List[Cell]:
    seen: Dict[Cell, None] = {}
    for c in cells:
        seen.setdefault(tuple(c), None)  # type: ignore[arg-type]
    return list(seen)


def request_summary(req: EstimateRequest) -> Tuple[str, int]:
    """``("2x1(3),1x1(2)", total_instances)`` for log lines."""
    text = ",".join(f"{o.width}x{o.height}({o.count})" for o in req.objects)
    return text, sum(o.count for o in req.objects)
