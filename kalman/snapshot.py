from __future__ import annotations

from dataclasses import dataclass
from math import isfinite
from typing import Any, Literal, Union

from kalman.errors import IncompatibleState
from kalman.matrix2 import Col2, Mat2, identity
from kalman.scalar import ScalarEstimator
from kalman.validate import require_int
from kalman.vector import VectorEstimator


@dataclass(frozen=True)
class ScalarSnapshot:
    initialized: bool
    transition: float
    measurement_noise_sd: float
    estimate: float
    variance: float
    kind: Literal["scalar"] = "scalar"


@dataclass(frozen=True)
class VectorSnapshot:
    initialized: bool
    measurement_matrix: Mat2 | None
    covariance: Mat2
    state: Col2
    last_timestamp: int
    kind: Literal["vector"] = "vector"


Snapshot = Union[ScalarSnapshot, VectorSnapshot]


def capture(est: ScalarEstimator | VectorEstimator) -> Snapshot:
    """Copy every field needed to resume `est` exactly. Does not mutate it."""
    if isinstance(est, ScalarEstimator):
        return ScalarSnapshot(
            initialized=est.initialized,
            transition=est.transition,
            measurement_noise_sd=est.measurement_noise_sd,
            estimate=est.estimate,
            variance=est.variance,
        )
    if isinstance(est, VectorEstimator):
        return VectorSnapshot(
            initialized=est.initialized,
            measurement_matrix=est.measurement_matrix,
            covariance=est.covariance,
            state=est.state,
            last_timestamp=est.last_timestamp,
        )
    raise IncompatibleState(f"cannot capture state of {type(est).__name__}")


def restore(est: ScalarEstimator | VectorEstimator, snap: Snapshot) -> None:
    """
    Overwrite `est` with `snap`. The variant is checked before any field is
    written; a mismatch raises IncompatibleState and leaves `est` untouched.
    """
    if isinstance(est, ScalarEstimator) and isinstance(snap, ScalarSnapshot):
        est.initialized = bool(snap.initialized)
        est.transition = float(snap.transition)
        est.measurement_noise_sd = float(snap.measurement_noise_sd)
        est.estimate = float(snap.estimate)
        est.variance = float(snap.variance)
        return
    if isinstance(est, VectorEstimator) and isinstance(snap, VectorSnapshot):
        if snap.initialized and snap.measurement_matrix is None:
            raise IncompatibleState("initialized vector snapshot is missing its measurement matrix")
        if snap.initialized and tuple(map(tuple, snap.measurement_matrix)) != identity():  # type: ignore[arg-type]
            raise IncompatibleState("measurement matrix must be the identity")
        if isinstance(snap.last_timestamp, bool) or int(snap.last_timestamp) != snap.last_timestamp:
            raise IncompatibleState(f"last_timestamp must be a whole number, got {snap.last_timestamp!r}")
        est.measurement_matrix = snap.measurement_matrix if snap.initialized else None
        est.covariance = snap.covariance
        est.state = snap.state
        est.last_timestamp = int(snap.last_timestamp)
        return
    raise IncompatibleState(
        f"cannot restore {getattr(snap, 'kind', type(snap).__name__)!s} snapshot "
        f"into {type(est).__name__}"
    )


#  JSON-safe dict form (for persistence by the host) 
def _mat(v: Any, rows: int, cols: int, field: str) -> tuple[tuple[float, ...], ...]:
    try:
        out = tuple(tuple(float(c) for c in row) for row in v)
    except (TypeError, ValueError) as e:
        raise IncompatibleState(f"field {field!r} is not a numeric matrix") from e
    if len(out) != rows or any(len(r) != cols for r in out):
        raise IncompatibleState(f"field {field!r} must be {rows}x{cols}")
    return out


def snapshot_to_dict(snap: Snapshot) -> dict[str, Any]:
    if isinstance(snap, ScalarSnapshot):
        return {
            "kind": "scalar",
            "initialized": snap.initialized,
            "transition": snap.transition,
            "measurement_noise_sd": snap.measurement_noise_sd,
            "estimate": snap.estimate,
            "variance": snap.variance,
        }
    if isinstance(snap, VectorSnapshot):
        return {
            "kind": "vector",
            "initialized": snap.initialized,
            "measurement_matrix": (
                [list(r) for r in snap.measurement_matrix] if snap.measurement_matrix is not None else None
            ),
            "covariance": [list(r) for r in snap.covariance],
            "state": [list(r) for r in snap.state],
            "last_timestamp": snap.last_timestamp,
        }
    raise IncompatibleState(f"not a snapshot: {type(snap).__name__}")


def snapshot_from_dict(d: dict[str, Any]) -> Snapshot:
    """
    Inverse of snapshot_to_dict. Floats survive a JSON round trip exactly
    (repr-based encoding), so restored estimators stay bit-identical.
    """
    if not isinstance(d, dict):
        raise IncompatibleState("snapshot must be a mapping")
    kind = d.get("kind")
    if kind not in ("scalar", "vector"):
        raise IncompatibleState(f"unknown snapshot kind: {kind!r}")
    try:
        if kind == "scalar":
            values = [float(d[k]) for k in ("transition", "measurement_noise_sd", "estimate", "variance")]
            initialized = bool(d["initialized"])
        else:
            h = d.get("measurement_matrix")
            h_mat = _mat(h, 2, 2, "measurement_matrix") if h is not None else None
            cov = _mat(d["covariance"], 2, 2, "covariance")
            state = _mat(d["state"], 2, 1, "state")
            last_ts = require_int(d["last_timestamp"], 4, "last_timestamp")
            initialized = bool(d["initialized"])
    except KeyError as e:
        raise IncompatibleState(f"{kind} snapshot is missing field {e.args[0]!r}") from e
    except IncompatibleState:
        raise
    except (TypeError, ValueError) as e:
        raise IncompatibleState(f"{kind} snapshot has a malformed field: {e}") from e

    if kind == "scalar":
        if not all(isfinite(v) for v in values):
            raise IncompatibleState("scalar snapshot holds non-finite values")
        return ScalarSnapshot(initialized, *values)
    return VectorSnapshot(
        initialized=initialized,
        measurement_matrix=h_mat,  # type: ignore[arg-type]
        covariance=cov,  # type: ignore[arg-type]
        state=state,  # type: ignore[arg-type]
        last_timestamp=last_ts,
    )
