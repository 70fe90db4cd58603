# estimator/worker.py
import multiprocessing as mp
import queue
import time
import traceback
from typing import Any, Dict, Optional

from config import CFG
from models import EngineOptions, EstimateResult
from payload import EstimateRequest, correlation_of, parse_request, request_summary
from attempt_log import fmt_ms, log_attempt_detail, log_attempt_error
from estimator.orchestrator import estimate_probabilities
from estimator.rankings import rank_cells


def _elapsed_ms(t0: float) -> int:
    return int(round((time.time() - t0) * 1000))


def error_response(correlation_id: Any, message: str, t0: float) -> Dict[str, Any]:
    return {
        "correlationId": correlation_id,
        "probabilityMatrix": [],
        "error": message,
        "elapsedTimeMs": _elapsed_ms(t0),
    }


def success_response(req: EstimateRequest, result: EstimateResult, t0: float) -> Dict[str, Any]:
    return {
        "correlationId": req.correlation_id,
        "probabilityMatrix": result.probabilities,
        "objectProbabilities": result.object_probabilities,
        "strategy": result.strategy.value,
        "approximate": result.approximate,
        "configurations": result.configurations,
        "rankings": rank_cells(result.probabilities, exclude=req.revealed),
        "elapsedTimeMs": _elapsed_ms(t0),
    }


def handle_request(payload: Any, options: Optional[EngineOptions] = None) -> Dict[str, Any]:
    """One request in, one response out; never raises."""
    t0 = time.time()
    correlation_id = correlation_of(payload)
    try:
        req = parse_request(payload)
        objects_text, instances = request_summary(req)
        log_attempt_detail(
            "Request received",
            correlation_id=correlation_id,
            objects=objects_text,
            instances=instances,
        )
        result = estimate_probabilities(
            req.grid,
            req.objects,
            req.blocked,
            hit_cells=req.hit_cells,
            placed_cells=req.placed_cells,
            options=options,
        )
    except Exception as e:
        log_attempt_error(
            "Request failed",
            correlation_id=correlation_id,
            error=str(e),
            duration=fmt_ms(time.time() - t0),
        )
        return error_response(correlation_id, str(e) or e.__class__.__name__, t0)

    response = success_response(req, result, t0)
    log_attempt_detail(
        "Request answered",
        correlation_id=correlation_id,
        strategy=response["strategy"],
        duration=fmt_ms(time.time() - t0),
    )
    return response


# Worker must be top-level (picklable under spawn)
def _request_worker(q, payload: Any) -> None:
    try:
        q.put(("ok", handle_request(payload)))
    except MemoryError:
        q.put(("err", "Child ran out of memory"))
    except Exception as e:
        q.put(("exc", f"{e}\n{traceback.format_exc()}"))


def run_request_isolated(payload: Any, grace_seconds: Optional[float] = None) -> Dict[str, Any]:
    """
    Run :func:`handle_request` in a spawned child process.
    A child that crashes, runs out of memory or outlives the time budget plus
    ``grace_seconds`` becomes an error response carrying the correlation id.
    """
    t0 = time.time()
    correlation_id = correlation_of(payload)
    budget = float(CFG.MAX_CALCULATION_TIME)
    grace = float(CFG.WORKER_TIMEOUT if grace_seconds is None else grace_seconds)

    ctx = mp.get_context("spawn")
    q = ctx.Queue()
    p = ctx.Process(target=_request_worker, args=(q, payload))
    p.daemon = True
    p.start()

    # The result is read before join so a large matrix cannot block the child on a full pipe.
    try:
        tag, body = q.get(timeout=budget + grace)
    except queue.Empty:
        tag, body = None, None

    if tag is None:
        if p.is_alive():
            p.terminate()
            p.join(2.0)
            log_attempt_error("Worker killed", correlation_id=correlation_id, reason="timeout")
            return error_response(correlation_id, "Stopped before result (timebox)", t0)
        p.join(2.0)
        log_attempt_error("Worker crashed", correlation_id=correlation_id, exitcode=p.exitcode)
        return error_response(correlation_id, f"Worker exited without result (exit {p.exitcode})", t0)

    p.join(2.0)
    if tag == "ok":
        return body
    log_attempt_error("Worker failed", correlation_id=correlation_id, error=body)
    return error_response(correlation_id, str(body).splitlines()[0] if body else "worker error", t0)
