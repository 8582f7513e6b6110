from __future__ import annotations

import json
import logging
from typing import Any

from kalman.config import load_config
from kalman.errors import IncompatibleState, InvalidInput, SingularMatrix
from kalman.matrix2 import DEFAULT_EPS
from kalman.scalar import DEFAULT_NOISE_SD, INITIAL_VARIANCE, ScalarEstimator
from kalman.snapshot import restore, snapshot_from_dict, snapshot_to_dict
from kalman.types import EstimateOut, Measurement, Variant
from kalman.vector import VectorEstimator

logger = logging.getLogger(__name__)


class KalmanFunction:
    """
    Arity-dispatched filter call, one instance per stream:

        f(value)                               -> ScalarEstimator.update
        f(value, noise_sd)                     -> ScalarEstimator.update_with_noise
        f(value, rate, noise_sd, timestamp)    -> VectorEstimator.update

    The first successful call binds the instance to the scalar or vector
    variant; switching variant afterwards raises InvalidInput.
    """

    ARITIES = (1, 2, 4)

    def __init__(
        self,
        initial_variance: float = INITIAL_VARIANCE,
        default_noise_sd: float = DEFAULT_NOISE_SD,
        singular_eps: float = DEFAULT_EPS,
    ) -> None:
        self.scalar = ScalarEstimator(initial_variance=initial_variance, default_noise_sd=default_noise_sd)
        self.vector = VectorEstimator(initial_variance=initial_variance, singular_eps=singular_eps)
        self.variant: Variant | None = None

    @property
    def estimator(self) -> ScalarEstimator | VectorEstimator | None:
        if self.variant is None:
            return None
        return self.scalar if self.variant == "scalar" else self.vector

    def current_estimate(self) -> float | None:
        if self.variant == "scalar" and self.scalar.initialized:
            return self.scalar.estimate
        if self.variant == "vector" and self.vector.initialized:
            return self.vector.value
        return None

    def __call__(self, *args: Any) -> float:
        n = len(args)
        if n not in self.ARITIES:
            raise InvalidInput(
                f"Invalid no of arguments passed to kalman_filter(), required 1, 2 or 4, but found {n}"
            )
        want: Variant = "vector" if n == 4 else "scalar"
        if self.variant is not None and want != self.variant:
            raise InvalidInput(
                f"kalman_filter() is bound to the {self.variant} variant; got {n} argument(s)"
            )

        if n == 1:
            out = self.scalar.update(args[0])
        elif n == 2:
            out = self.scalar.update_with_noise(args[0], args[1])
        else:
            out = self.vector.update(*args)
        self.variant = want
        return out

    #  snapshot 
    def state_dict(self) -> dict[str, Any]:
        est = self.estimator
        return {
            "variant": self.variant,
            "snapshot": snapshot_to_dict(est.capture()) if est is not None else None,
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        """Restore in place; nothing is written unless the whole state parses."""
        variant = state.get("variant")
        raw = state.get("snapshot")
        if variant is None or raw is None:
            self.scalar = ScalarEstimator(self.scalar.initial_variance, self.scalar.default_noise_sd)
            self.vector = VectorEstimator(self.vector.initial_variance, self.vector.singular_eps)
            self.variant = None
            return
        if variant not in ("scalar", "vector"):
            raise IncompatibleState(f"unknown variant: {variant!r}")
        snap = snapshot_from_dict(raw)
        target = self.scalar if variant == "scalar" else self.vector
        restore(target, snap)
        self.variant = variant


def _args_from_tick(tick: Measurement) -> tuple[Any, ...]:
    present = {k for k in ("rate", "noise_sd", "timestamp") if tick.get(k) is not None}
    value = tick.get("value")
    if not present:
        return (value,)
    if present == {"noise_sd"}:
        return (value, tick["noise_sd"])
    if present == {"rate", "noise_sd", "timestamp"}:
        return (value, tick["rate"], tick["noise_sd"], tick["timestamp"])
    raise InvalidInput(
        "measurement must carry value, value+noise_sd, or value+rate+noise_sd+timestamp; "
        f"got optional fields {sorted(present)}"
    )


class Pipeline:
    """
    Single-series, online estimation:
      - picks the variant from the fields present on each tick
      - skips (and logs) an update whose innovation covariance is singular,
        returning the previous estimate with skipped=True
      - state_dict()/from_state() for snapshot persistence
    """

    def __init__(self, cfg: dict[str, Any] | None = None) -> None:
        self.cfg = cfg if cfg is not None else load_config()
        self.fn = KalmanFunction(
            initial_variance=float(self.cfg.get("initial_variance", INITIAL_VARIANCE)),
            default_noise_sd=float(self.cfg.get("default_noise_sd", DEFAULT_NOISE_SD)),
            singular_eps=float(self.cfg.get("singular_eps", DEFAULT_EPS)),
        )
        self.n_updates = 0
        self.n_skipped = 0

    def process(self, tick: Measurement) -> EstimateOut:
        args = _args_from_tick(tick)
        try:
            estimate = self.fn(*args)
        except SingularMatrix as e:
            prev = self.fn.current_estimate()
            if prev is None:
                raise
            self.n_skipped += 1
            logger.warning(json.dumps({
                "evt": "singular_skip",
                "variant": self.fn.variant,
                "determinant": e.determinant,
                "n_skipped": self.n_skipped,
            }))
            return {
                "estimate": float(prev),
                "variant": self.fn.variant or "vector",
                "arity": len(args),
                "skipped": True,
                "n_updates": self.n_updates,
            }

        self.n_updates += 1
        return {
            "estimate": float(estimate),
            "variant": self.fn.variant or "scalar",
            "arity": len(args),
            "skipped": False,
            "n_updates": self.n_updates,
        }

    #  snapshot state 
    def state_dict(self) -> dict[str, Any]:
        out = self.fn.state_dict()
        out["n_updates"] = self.n_updates
        out["n_skipped"] = self.n_skipped
        return out

    def load_state(self, state: dict[str, Any]) -> None:
        self.fn.load_state_dict(state)
        self.n_updates = int(state.get("n_updates", 0))
        self.n_skipped = int(state.get("n_skipped", 0))

    @classmethod
    def from_state(cls, cfg: dict[str, Any] | None, state: dict[str, Any]) -> Pipeline:
        self = cls(cfg)
        self.load_state(state)
        return self
