from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any

from kalman.pipeline import Pipeline

from .metrics import latency_p50_p95, mae, noise_reduction, rmse


class BacktestRunner:
    """
    Replay a measurement stream through a Pipeline and score it.

    Ticks carrying `truth` are scored twice: the filter estimate against
    truth, and the raw measured value against truth (the do-nothing
    baseline). The first `burn_in` ticks are run but not scored.
    """

    def __init__(self, burn_in: int = 0) -> None:
        self.burn_in = max(0, int(burn_in))

    def run(
        self, pipe: Pipeline, stream: Iterable[dict[str, Any]]
    ) -> tuple[dict[str, float], list[dict[str, Any]]]:
        log: list[dict[str, Any]] = []

        truth_seq: list[float] = []
        est_seq: list[float] = []
        raw_seq: list[float] = []
        lat_seq: list[float] = []

        for i, tick in enumerate(stream):
            t0 = time.perf_counter()
            out = pipe.process(tick)  # type: ignore[arg-type]
            lat_seq.append((time.perf_counter() - t0) * 1000.0)

            truth = tick.get("truth")
            log.append(
                {
                    "t": tick.get("timestamp", i),
                    "value": float(tick["value"]),
                    "estimate": out["estimate"],
                    "truth": None if truth is None else float(truth),
                    "skipped": out["skipped"],
                }
            )
            if truth is None or i < self.burn_in:
                continue
            truth_seq.append(float(truth))
            est_seq.append(out["estimate"])
            raw_seq.append(float(tick["value"]))

        m: dict[str, float] = {
            "mae": mae(truth_seq, est_seq),
            "rmse": rmse(truth_seq, est_seq),
            "raw_mae": mae(truth_seq, raw_seq),
            "raw_rmse": rmse(truth_seq, raw_seq),
            "n_scored": float(len(truth_seq)),
            "n_skipped": float(pipe.n_skipped),
        }
        m["noise_reduction"] = noise_reduction(m["raw_rmse"], m["rmse"])
        p = latency_p50_p95(lat_seq)
        m["latency_p50_ms"] = p["p50"]
        m["latency_p95_ms"] = p["p95"]
        return m, log
