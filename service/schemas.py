from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class EstimateIn(BaseModel):
    value: float | None = None
    # Optional: presence selects the estimator variant (see kalman.types.Measurement)
    noise_sd: float | None = None
    rate: float | None = None
    timestamp: int | None = None
    series_id: str | None = None


class EstimateOut(BaseModel):
    series_id: str
    estimate: float
    variant: Literal["scalar", "vector"]
    arity: int
    skipped: bool = False  # true when a singular update was skipped
    n_updates: int = 0

    latency_ms: dict[str, float] = Field(default_factory=dict)


class SnapshotBody(BaseModel):
    # Pipeline.state_dict() payload; the core parses "snapshot" itself
    variant: Literal["scalar", "vector"] | None = None
    snapshot: dict[str, Any] | None = None
    n_updates: int = 0
    n_skipped: int = 0
