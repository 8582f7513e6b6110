from __future__ import annotations

from math import isfinite

from kalman.errors import InvalidInput, SingularMatrix
from kalman.validate import FUNCTION_NAME, require_float

INITIAL_VARIANCE = 1000.0
DEFAULT_NOISE_SD = 0.001


class ScalarEstimator:
    """
    Kalman filter for a static scalar (no dynamics, transition fixed at 1).

    Two entry points, kept apart on purpose:
      - update(value): noise SD fixed at `default_noise_sd`; the first call
        seeds the state and returns `value` untouched.
      - update_with_noise(value, noise_sd): the first call seeds the state
        with the supplied noise and runs the full correction right away.
    Either way the noise SD is latched on the first call; later noise
    arguments are validated but not re-read.

    State is four floats plus an `initialized` flag, so a legitimate zero
    estimate never triggers re-initialization.
    """

    def __init__(
        self,
        initial_variance: float = INITIAL_VARIANCE,
        default_noise_sd: float = DEFAULT_NOISE_SD,
    ) -> None:
        self.initial_variance = float(initial_variance)
        self.default_noise_sd = float(default_noise_sd)

        self.initialized = False
        self.transition = 0.0
        self.measurement_noise_sd = 0.0
        self.estimate = 0.0
        self.variance = 0.0

    def _seed(self, value: float, noise_sd: float) -> None:
        self.transition = 1.0
        self.variance = self.initial_variance
        self.measurement_noise_sd = noise_sd
        self.estimate = value
        self.initialized = True

    def _step(self, value: float, transition: float, estimate: float, variance: float, noise_sd: float) -> tuple[float, float]:
        denom = variance + noise_sd
        if not isfinite(denom) or denom <= 0.0:
            raise SingularMatrix(
                f"variance + noise must be positive (variance={variance!r}, noise_sd={noise_sd!r})",
                determinant=denom,
            )
        predicted = transition * estimate
        gain = variance / denom
        return predicted + gain * (value - predicted), (1.0 - gain) * variance

    def _correct(self, value: float, noise_sd: float | None = None) -> float:
        """
        One predict/correct step. On the first call (noise_sd given) the seed
        is applied only once the step is known to be computable.
        """
        if noise_sd is not None:
            est, var = self._step(value, 1.0, value, self.initial_variance, noise_sd)
            self._seed(value, noise_sd)
        else:
            est, var = self._step(value, self.transition, self.estimate, self.variance, self.measurement_noise_sd)
        self.estimate = est
        self.variance = var
        return est

    @property
    def gain(self) -> float:
        """Gain the next correction would use (0.0 before the first call)."""
        denom = self.variance + self.measurement_noise_sd
        if not self.initialized or denom <= 0.0:
            return 0.0
        return self.variance / denom

    def update(self, value: float) -> float:
        x = require_float(value, 1, "measured.value")
        if not self.initialized:
            # innovation is zero here; only the variance contracts
            self._correct(x, self.default_noise_sd)
            return x
        return self._correct(x)

    def update_with_noise(self, value: float, noise_sd: float) -> float:
        x = require_float(value, 1, "measured.value")
        sd = require_float(noise_sd, 2, "measurement.noise.sd")
        if sd < 0.0:
            raise InvalidInput(
                f"Invalid input given to {FUNCTION_NAME}: argument 2 (measurement.noise.sd) must not be negative",
                position=2,
                name="measurement.noise.sd",
            )
        if not self.initialized:
            return self._correct(x, sd)
        return self._correct(x)

    # snapshot hooks
    def capture(self):
        from kalman.snapshot import capture

        return capture(self)

    def restore(self, snap) -> None:
        from kalman.snapshot import restore

        restore(self, snap)
