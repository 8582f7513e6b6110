# kalman/types.py
from __future__ import annotations

from typing import Literal, TypedDict


class Measurement(TypedDict, total=False):
    # value is required; which optional keys are present selects the variant:
    #   value                               -> scalar, default noise
    #   value, noise_sd                     -> scalar, explicit noise
    #   value, rate, noise_sd, timestamp    -> vector
    value: float
    rate: float
    noise_sd: float
    timestamp: int
    truth: float  # only present in simulated/backtest streams


Variant = Literal["scalar", "vector"]


class EstimateOut(TypedDict):
    estimate: float
    variant: Variant
    arity: int
    skipped: bool
    n_updates: int
