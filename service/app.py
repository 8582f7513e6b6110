# service/app.py  (series-sharded estimators with snapshot persistence)
from __future__ import annotations

import json
import logging
import os
import time
from collections import OrderedDict, defaultdict
from contextlib import asynccontextmanager
from math import isfinite
from threading import Lock
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.responses import Response

from kalman.config import load_config
from kalman.errors import IncompatibleState, InvalidInput, SingularMatrix
from kalman.pipeline import Pipeline
from kalman.types import Measurement
from service.middleware import ServiceTimingMiddleware
from service.schemas import EstimateIn, EstimateOut, SnapshotBody


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_snapshot()
    try:
        yield
    finally:
        save_snapshot()

# ---------- app & logging ----------
app = FastAPI(lifespan=lifespan)
app.add_middleware(ServiceTimingMiddleware)

logger = logging.getLogger("kalman-estimate-lite")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

# ---------- config ----------
cfg = load_config()

def _int_from_env_or_cfg(env_name: str, cfg_key: str, default: int) -> int:
    v = os.getenv(env_name)
    if v is not None:
        try:
            return int(v)
        except ValueError:
            logger.warning(json.dumps({"evt": "bad_env", "name": env_name, "value": v}))
            return default
    try:
        return int(cfg.get(cfg_key, default))
    except (TypeError, ValueError):
        return default

# ---------- Prometheus: PRIVATE registry to avoid duplicates on reload ----------
PROM_REG = CollectorRegistry()
REQS = Counter("requests_total", "Total requests", ["endpoint"], registry=PROM_REG)
ERRORS = Counter("estimate_errors_total", "Rejected estimate calls", ["kind"], registry=PROM_REG)
SKIPS = Counter("estimate_skipped_total", "Updates skipped on a singular covariance", registry=PROM_REG)
SERVICE_LAT = Histogram(
    "estimate_service_ms",
    "Estimate latency inside the handler (ms)",
    buckets=(0.05, 0.1, 0.2, 0.5, 1, 2, 5, 10, 50),
    registry=PROM_REG,
)

# ---------- series-sharded pipelines ----------
_MAX_SERIES = _int_from_env_or_cfg("MAX_SERIES", "max_series", 1024)
_pipes: OrderedDict[str, Pipeline] = OrderedDict()
_pipe_locks: defaultdict[str, Lock] = defaultdict(Lock)

def _get_pipe(series_id: str, create: bool = True) -> Pipeline | None:
    p = _pipes.get(series_id)
    if p is None:
        if not create:
            return None
        p = Pipeline(cfg)
        _pipes[series_id] = p
    _pipes.move_to_end(series_id)
    while len(_pipes) > _MAX_SERIES:
        sid_ev, _ = _pipes.popitem(last=False)
        _pipe_locks.pop(sid_ev, None)
        logger.info(json.dumps({"evt": "series_evicted", "series_id": sid_ev}))
    return p

def _series(series_id: str | None) -> str:
    return (series_id or "default").strip() or "default"

# ---------- auth ----------
def _current_api_key() -> str:
    # Prefer explicit service key, then generic API_KEY, then cfg
    return os.getenv("SERVICE_API_KEY") or os.getenv("API_KEY") or (cfg.get("api_key") or "")

def _auth(request: Request) -> None:
    key = _current_api_key()
    if key and request.headers.get("x-api-key") != key:
        raise HTTPException(status_code=401, detail="Unauthorized")

# ---------- snapshot / restore ----------
def _snapshot_path() -> str:
    return os.getenv("SNAPSHOT_PATH") or str(cfg.get("snapshot_path") or "")

def load_snapshot() -> None:
    path = _snapshot_path()
    if not path or not os.path.exists(path):
        return
    try:
        with open(path, encoding="utf-8") as f:
            state = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(json.dumps({"evt": "snapshot_load_error", "err": str(e)}))
        return

    pipes = state.get("pipes") if isinstance(state, dict) else None
    if not isinstance(pipes, dict):
        logger.warning(json.dumps({"evt": "snapshot_load_error", "err": "missing or malformed \"pipes\" map"}))
        return

    _pipes.clear()
    for sid, pst in pipes.items():
        try:
            _pipes[str(sid)] = Pipeline.from_state(cfg, pst)
        except (IncompatibleState, AttributeError, TypeError, ValueError) as e:
            logger.warning(json.dumps({"evt": "pipe_restore_error", "series_id": sid, "err": str(e)}))
    # file order is LRU order (oldest first), as written by save_snapshot
    while len(_pipes) > _MAX_SERIES:
        _pipes.popitem(last=False)
    logger.info(json.dumps({"evt": "snapshot_loaded", "path": path, "series": len(_pipes)}))

def save_snapshot() -> None:
    path = _snapshot_path()
    if not path:
        return
    try:
        state: dict[str, Any] = {
            "pipes": {sid: pipe.state_dict() for sid, pipe in _pipes.items()},
        }
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(state, f)
        os.replace(tmp, path)
    except OSError as e:
        logger.warning(json.dumps({"evt": "snapshot_save_error", "err": str(e)}))
        return
    logger.info(json.dumps({"evt": "snapshot_saved", "path": path, "series": len(state["pipes"])}))

# ---------- endpoints ----------
@app.get("/healthz")
def healthz() -> dict[str, str]:
    REQS.labels("healthz").inc()
    return {"status": "ok"}

@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(PROM_REG), media_type=CONTENT_TYPE_LATEST)

@app.post("/estimate", response_model=EstimateOut)
def estimate(request: Request, inp: EstimateIn) -> EstimateOut:
    _auth(request)
    REQS.labels("estimate").inc()
    t0 = time.perf_counter()

    for name in ("value", "noise_sd", "rate"):
        v = getattr(inp, name)
        if v is not None and not isfinite(v):
            ERRORS.labels("non_finite").inc()
            raise HTTPException(status_code=422, detail=f"{name} must be a finite number")

    series_id = _series(inp.series_id)
    tick: Measurement = {"value": inp.value}  # type: ignore[typeddict-item]
    for name in ("noise_sd", "rate", "timestamp"):
        v = getattr(inp, name)
        if v is not None:
            tick[name] = v  # type: ignore[literal-required]

    lock = _pipe_locks[series_id]
    with lock:
        pipe = _get_pipe(series_id)
        assert pipe is not None
        try:
            out = pipe.process(tick)
        except InvalidInput as e:
            ERRORS.labels("invalid_input").inc()
            raise HTTPException(status_code=422, detail=str(e)) from e
        except SingularMatrix as e:
            ERRORS.labels("singular_matrix").inc()
            raise HTTPException(status_code=422, detail=str(e)) from e

    if out["skipped"]:
        SKIPS.inc()

    service_ms = (time.perf_counter() - t0) * 1000.0
    SERVICE_LAT.observe(service_ms)

    resp = EstimateOut(
        series_id=series_id,
        estimate=out["estimate"],
        variant=out["variant"],
        arity=out["arity"],
        skipped=out["skipped"],
        n_updates=out["n_updates"],
        latency_ms={"service_ms": service_ms},
    )
    logger.info(json.dumps({
        "evt": "estimate",
        "series_id": series_id,
        "variant": resp.variant,
        "arity": resp.arity,
        "skipped": resp.skipped,
        "service_ms": round(service_ms, 3),
    }))
    return resp

@app.get("/series/{series_id}/snapshot", response_model=SnapshotBody)
def get_snapshot(request: Request, series_id: str) -> SnapshotBody:
    _auth(request)
    REQS.labels("snapshot_get").inc()
    sid = _series(series_id)
    # look up before touching _pipe_locks so unknown ids never allocate a lock
    if sid not in _pipes:
        raise HTTPException(status_code=404, detail=f"Unknown series: {sid}")
    with _pipe_locks[sid]:
        pipe = _get_pipe(sid, create=False)
        if pipe is None:
            raise HTTPException(status_code=404, detail=f"Unknown series: {sid}")
        return SnapshotBody(**pipe.state_dict())

@app.put("/series/{series_id}/snapshot", response_model=SnapshotBody)
def put_snapshot(request: Request, series_id: str, body: SnapshotBody) -> SnapshotBody:
    _auth(request)
    REQS.labels("snapshot_put").inc()
    sid = _series(series_id)
    try:
        # build off to the side so a bad snapshot never half-restores a live series
        fresh = Pipeline.from_state(cfg, body.model_dump())
    except IncompatibleState as e:
        ERRORS.labels("incompatible_state").inc()
        raise HTTPException(status_code=409, detail=str(e)) from e
    with _pipe_locks[sid]:
        _pipes[sid] = fresh
        _get_pipe(sid)
        logger.info(json.dumps({"evt": "snapshot_restored", "series_id": sid, "variant": body.variant}))
        return SnapshotBody(**fresh.state_dict())
