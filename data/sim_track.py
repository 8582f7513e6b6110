from __future__ import annotations

import argparse

import numpy as np
import pandas as pd


def simulate(
    n: int,
    start: float = -74.178444,
    rate: float = 0.003,
    noise_sd: float = 0.01,
    rate_noise_sd: float = 0.0005,
    dt_min: int = 1,
    dt_max: int = 3,
    t0: int = 1445234861,
    seed: int = 42,
) -> pd.DataFrame:
    """
    Constant-rate track sampled at irregular integer time steps.

    truth(t) = start + rate * (t - t0); each row carries a noisy `value`,
    a noisy `rate`, the nominal `noise_sd` and the integer `timestamp`,
    i.e. everything the vector variant needs, plus `truth` for scoring.
    """
    rng = np.random.default_rng(seed)
    steps = rng.integers(dt_min, dt_max + 1, size=n)
    steps[0] = 0
    ts = t0 + np.cumsum(steps)
    truth = start + rate * (ts - t0)
    value = truth + rng.normal(0.0, noise_sd, size=n)
    rate_meas = rate + rng.normal(0.0, rate_noise_sd, size=n)

    return pd.DataFrame({
        "timestamp": ts.astype("int64"),
        "value": value,
        "rate": rate_meas,
        "noise_sd": np.full(n, noise_sd),
        "truth": truth,
    })


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--n", type=int, default=2000)
    ap.add_argument("--out", required=True)
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--start", type=float, default=-74.178444)
    ap.add_argument("--rate", type=float, default=0.003)
    ap.add_argument("--noise_sd", type=float, default=0.01)
    ap.add_argument("--dt_min", type=int, default=1)
    ap.add_argument("--dt_max", type=int, default=3)
    args = ap.parse_args()

    df = simulate(
        n=args.n,
        start=args.start,
        rate=args.rate,
        noise_sd=args.noise_sd,
        dt_min=args.dt_min,
        dt_max=args.dt_max,
        seed=args.seed,
    )
    df.to_csv(args.out, index=False)
    print(f"wrote {len(df)} rows to {args.out}")


if __name__ == "__main__":
    main()
