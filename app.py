# app.py: JSON endpoint for the probability estimator
from __future__ import annotations
import json
import os
from typing import Any, Dict

from flask import Flask, request, jsonify

from config import CFG
from estimator.worker import handle_request, run_request_isolated

app = Flask(__name__)


@app.after_request
def _no_cache_results(resp):
    # Estimates depend on board state.
    if request.path in ("/probability", "/grid"):
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


def _merge_like_mapping() -> Dict[str, Any]:
    """JSON body, falling back to a ``payload`` form field holding JSON."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    raw = request.form.get("payload")
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


@app.route("/grid", methods=["GET"])
def grid():
    return jsonify({
        "width": int(CFG.GRID_WIDTH),
        "height": int(CFG.GRID_HEIGHT),
        "maxCalculationTime": float(CFG.MAX_CALCULATION_TIME),
    })


@app.route("/probability", methods=["POST"])
def probability():
    payload = _merge_like_mapping()
    if CFG.ISOLATE_WORKER:
        response = run_request_isolated(payload)
    else:
        response = handle_request(payload)
    # Errors travel inside the envelope, like every other response.
    return jsonify(response)


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=int(os.getenv("TP_PORT", "5000")), debug=False)
