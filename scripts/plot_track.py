#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json

import matplotlib.pyplot as plt
import pandas as pd

from backtest.runner import BacktestRunner
from kalman.config import load_config
from kalman.pipeline import Pipeline
from data.replay import Replay


def _run_backtest(data: str, profile: str | None, config: str | None, burn_in: int):
    cfg = load_config(config, profile) or {}
    pipe = Pipeline(cfg)
    metrics, log = BacktestRunner(burn_in=burn_in).run(pipe, Replay(data))
    return metrics, pd.DataFrame(log)


def main() -> None:
    ap = argparse.ArgumentParser(
        description="Plot a replayed track: measured value vs filter estimate (vs truth if present)."
    )
    ap.add_argument("--data", required=True, help="CSV/Parquet with value[,noise_sd,rate,timestamp,truth]")
    ap.add_argument("--profile", default=None)
    ap.add_argument("--config", default=None, help="Path to YAML config (overrides default/profile)")
    ap.add_argument("--burn-in", dest="burn_in", type=int, default=0)
    ap.add_argument("--out", default="track.png", help="Output image path")
    args = ap.parse_args()

    metrics, df = _run_backtest(args.data, args.profile, args.config, args.burn_in)

    fig, (ax, ax_err) = plt.subplots(2, 1, figsize=(11, 7), sharex=True)
    ax.plot(df["t"], df["value"], ".", ms=2, alpha=0.4, label="measured")
    ax.plot(df["t"], df["estimate"], lw=1.2, label="estimate")
    if df["truth"].notna().any():
        ax.plot(df["t"], df["truth"], "--", lw=1.0, label="truth")
        ax_err.plot(df["t"], (df["value"] - df["truth"]).abs(), lw=0.6, alpha=0.5, label="|measured - truth|")
        ax_err.plot(df["t"], (df["estimate"] - df["truth"]).abs(), lw=0.9, label="|estimate - truth|")
        ax_err.set_yscale("log")
        ax_err.legend(loc="upper right")
    skipped = df[df["skipped"]]
    if not skipped.empty:
        ax.plot(skipped["t"], skipped["estimate"], "rx", label="skipped (singular)")
    ax.legend(loc="best")
    ax.set_title(f"rmse={metrics['rmse']:.3g}  raw_rmse={metrics['raw_rmse']:.3g}")
    ax_err.set_xlabel("timestamp")

    fig.tight_layout()
    fig.savefig(args.out, dpi=120)
    print(json.dumps({"out": args.out, "metrics": metrics}, indent=2))


if __name__ == "__main__":
    main()
