from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

from kalman.validate import require_int

# optional measurement columns, in the order they are copied onto a tick
_OPTIONAL = ("noise_sd", "rate", "timestamp", "truth")


def _cast(name: str, raw: Any) -> float | int | None:
    if raw is None or raw == "":
        return None
    if name == "timestamp":
        return require_int(raw, 4, "timestamp")
    return float(raw)


class Replay:
    """
    Stream recorded measurements from CSV or Parquet.

    CSV: uses Python's csv module (streaming, low memory).
    Parquet: tries PyArrow streaming in batches; falls back to pandas if PyArrow
             isn't installed (then the whole file is loaded once).

    Required column: `value_col` (default "value"). Optional columns
    noise_sd / rate / timestamp / truth are copied when present and non-empty,
    so a file with only value+noise_sd replays through the scalar variant and
    one with all four measurement columns through the vector variant.
    """

    def __init__(self, path: str, value_col: str = "value", batch_size: int = 4096) -> None:
        self.path = path
        self.value_col = value_col
        self.batch_size = int(batch_size)

    def _tick(self, get) -> dict[str, Any]:
        tick: dict[str, Any] = {"value": float(get(self.value_col))}
        for c in _OPTIONAL:
            v = _cast(c, get(c))
            if v is not None:
                tick[c] = v
        return tick

    def _check(self, cols: list[str]) -> None:
        if self.value_col not in cols:
            raise KeyError(f"Missing required column '{self.value_col}' in {self.path}")

    def __iter__(self) -> Iterator[dict[str, Any]]:
        ext = os.path.splitext(self.path)[1].lower()

        if ext == ".csv":
            import csv

            with open(self.path, newline="", encoding="utf-8") as f:
                reader = csv.DictReader(f)
                self._check(list(reader.fieldnames or []))
                for row in reader:
                    yield self._tick(row.get)
            return

        try:
            import pyarrow.parquet as pq

            pf = pq.ParquetFile(self.path)
            self._check([fld.name for fld in pf.schema_arrow])
            for batch in pf.iter_batches(batch_size=max(1, self.batch_size)):
                bd = batch.to_pydict()
                for i in range(batch.num_rows):
                    yield self._tick(lambda c, i=i: bd[c][i] if c in bd else None)
            return
        except ModuleNotFoundError:
            # fall back to pandas (loads entire file)
            import pandas as pd

            df = pd.read_parquet(self.path)
            self._check(list(df.columns))
            for _, r in df.iterrows():
                yield self._tick(lambda c, r=r: r[c] if c in r.index and pd.notna(r[c]) else None)
