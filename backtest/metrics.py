from __future__ import annotations

import math
from collections.abc import Sequence


def _pair_count(xs: Sequence[float], ys: Sequence[float]) -> int:
    """Number of elementwise pairs that will be compared (min lengths)."""
    return min(len(xs), len(ys))


def mae(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """
    Mean Absolute Error over available pairs. Returns NaN if no pairs.
    """
    n = _pair_count(y_true, y_pred)
    if n == 0:
        return float("nan")
    s = 0.0
    for a, b in zip(y_true, y_pred, strict=False):
        s += abs(a - b)
    return s / n


def rmse(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """
    Root Mean Squared Error over available pairs. Returns NaN if no pairs.
    """
    n = _pair_count(y_true, y_pred)
    if n == 0:
        return float("nan")
    ss = 0.0
    for a, b in zip(y_true, y_pred, strict=False):
        d = a - b
        ss += d * d
    return math.sqrt(ss / n)


def noise_reduction(raw_rmse: float, est_rmse: float) -> float:
    """
    1 - est/raw: share of measurement error removed by the filter.
    NaN when the raw error is zero or undefined.
    """
    if not math.isfinite(raw_rmse) or raw_rmse <= 0.0 or not math.isfinite(est_rmse):
        return float("nan")
    return 1.0 - est_rmse / raw_rmse


def latency_p50_p95(latencies_ms: Sequence[float]) -> dict[str, float]:
    """
    p50 / p95 of latencies using simple order statistics. Returns zeros if empty.
    """
    if not latencies_ms:
        return {"p50": 0.0, "p95": 0.0}
    xs = sorted(latencies_ms)
    n = len(xs)
    p50 = xs[int(0.5 * (n - 1))]
    p95 = xs[int(0.95 * (n - 1))]
    return {"p50": float(p50), "p95": float(p95)}
