from __future__ import annotations

from kalman import matrix2 as m2
from kalman.matrix2 import DEFAULT_EPS, Col2, Mat2
from kalman.validate import require_float, require_int

INITIAL_VARIANCE = 1000.0
FIRST_TIMESTAMP_DELTA = 1


class VectorEstimator:
    """
    Two-state (value, rate) Kalman filter with irregular time steps.

    Model per call, with dt = timestamp - last_timestamp (1 on the first call):
        A = [[1, dt], [0, 1]]      H = I      R = diag(noise_sd, noise_sd)
        x <- A x
        P <- A P A^T               (no process-noise term)
        S = H P H^T + R
        K = P H^T S^-1
        x <- x + K (z - H x)
        P <- P - K H P

    dt is used as-is: zero or negative deltas from out-of-order timestamps
    are not rejected. Everything is computed on locals and committed at the
    end, so a SingularMatrix leaves the previous state in place.
    """

    def __init__(
        self,
        initial_variance: float = INITIAL_VARIANCE,
        singular_eps: float = DEFAULT_EPS,
    ) -> None:
        self.initial_variance = float(initial_variance)
        self.singular_eps = float(singular_eps)

        self.measurement_matrix: Mat2 | None = None  # H; None until the first call
        self.covariance: Mat2 = m2.diag(0.0, 0.0)
        self.state: Col2 = m2.column(0.0, 0.0)
        self.last_timestamp = 0

    @property
    def initialized(self) -> bool:
        return self.measurement_matrix is not None

    @property
    def value(self) -> float:
        return self.state[0][0]

    @property
    def rate(self) -> float:
        return self.state[1][0]

    def update(self, value: float, rate: float, noise_sd: float, timestamp: int) -> float:
        x_meas = require_float(value, 1, "measured.value")
        r_meas = require_float(rate, 2, "measured.changing.rate")
        sd = require_float(noise_sd, 3, "measurement.noise.sd")
        ts = require_int(timestamp, 4, "timestamp")

        z = m2.column(x_meas, r_meas)
        if self.measurement_matrix is None:
            dt = FIRST_TIMESTAMP_DELTA
            h = m2.identity()
            p = m2.diag(self.initial_variance, self.initial_variance)
            x = z
        else:
            dt = ts - self.last_timestamp
            h = self.measurement_matrix
            p = self.covariance
            x = self.state

        r = m2.diag(sd, sd)
        a = ((1.0, float(dt)), (0.0, 1.0))
        h_t = m2.transpose(h)

        # predict
        x = m2.multiply(a, x)
        p = m2.multiply(m2.multiply(a, p), m2.transpose(a))

        # correct
        s = m2.add(m2.multiply(m2.multiply(h, p), h_t), r)
        s_inv = m2.invert2x2(s, self.singular_eps)
        k = m2.multiply(m2.multiply(p, h_t), s_inv)
        x = m2.add(x, m2.multiply(k, m2.subtract(z, m2.multiply(h, x))))
        p = m2.subtract(p, m2.multiply(m2.multiply(k, h), p))

        self.measurement_matrix = h
        self.covariance = p
        self.state = x
        self.last_timestamp = ts
        return x[0][0]

    # snapshot hooks
    def capture(self):
        from kalman.snapshot import capture

        return capture(self)

    def restore(self, snap) -> None:
        from kalman.snapshot import restore

        restore(self, snap)
