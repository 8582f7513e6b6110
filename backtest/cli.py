# backtest/cli.py
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Local imports
from backtest.runner import BacktestRunner
from data.replay import Replay
from kalman.config import load_config
from kalman.pipeline import Pipeline

_VARIANT_COLS = {
    "scalar": ("noise_sd",),
    "scalar-default": (),
    "vector": ("noise_sd", "rate", "timestamp"),
}


def _select(stream, variant: str | None):
    """
    Drop optional measurement fields so a full-track file can be replayed
    through any variant. None keeps whatever the file provides.
    """
    if variant is None:
        yield from stream
        return
    keep = set(_VARIANT_COLS[variant]) | {"value", "truth"}
    for tick in stream:
        yield {k: v for k, v in tick.items() if k in keep}


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--data", required=True, help="CSV/Parquet file containing at least column 'value'.")
    ap.add_argument("--variant", choices=sorted(_VARIANT_COLS), default=None,
                    help="Force an estimator variant (default: infer per tick from the columns present).")
    ap.add_argument("--burn-in", "--burn_in", dest="burn_in", type=int, default=0,
                    help="Ticks to run before scoring starts.")
    ap.add_argument("--profile", help="Config profile to load (config/profiles/<name>.yaml).")
    ap.add_argument("--config", help="Path to a YAML config file.")
    ap.add_argument("--log-out", help="Optional path to write the per-tick log as JSON lines.")
    args = ap.parse_args()

    p = Path(args.data)
    if not p.is_file():
        raise FileNotFoundError(f"--data not found: {p}")

    # Resolve configuration (explicit path > env > profile > default)
    cfg = load_config(args.config, args.profile) or {}

    pipe = Pipeline(cfg)
    stream = _select(Replay(str(p)), args.variant)
    metrics, log = BacktestRunner(burn_in=args.burn_in).run(pipe, stream)

    if args.log_out:
        with open(args.log_out, "w", encoding="utf-8") as f:
            for rec in log:
                f.write(json.dumps(rec) + "\n")

    out = {
        "metrics": metrics,
        "n_points": len(log),
    }
    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
