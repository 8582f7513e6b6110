import random

import pytest

from kalman.errors import InvalidInput, SingularMatrix
from kalman.scalar import ScalarEstimator


def test_noise_form_matches_reference_rounds():
    est = ScalarEstimator()
    out = [est.update_with_noise(v, 0.003) for v in (-74.178444, -74.175703, -74.177872)]
    assert out[0] == pytest.approx(-74.178444, abs=1e-6)
    assert out[1] == pytest.approx(-74.17707350205573, abs=1e-6)
    assert out[2] == pytest.approx(-74.177339667771, abs=1e-6)


def test_default_noise_form_matches_reference_rounds():
    est = ScalarEstimator()
    out = [est.update(v) for v in (-74.178444, -74.175703, -74.177872)]
    assert out[0] == -74.178444  # first call hands back the measurement untouched
    assert out[1] == pytest.approx(-74.1770735006853, abs=1e-6)
    assert out[2] == pytest.approx(-74.1773396670348, abs=1e-6)
    assert est.measurement_noise_sd == 0.001


def test_variance_non_increasing_and_gain_bounded():
    random.seed(7)
    est = ScalarEstimator()
    prev_var = None
    for _ in range(300):
        est.update_with_noise(5.0 + random.gauss(0.0, 0.5), 0.5)
        assert 0.0 <= est.gain <= 1.0
        assert est.variance >= 0.0
        if prev_var is not None:
            assert est.variance <= prev_var
        prev_var = est.variance
    assert est.estimate == pytest.approx(5.0, abs=0.2)


def test_noise_is_latched_on_first_call():
    est = ScalarEstimator()
    est.update_with_noise(1.0, 0.25)
    est.update_with_noise(1.1, 99.0)
    assert est.measurement_noise_sd == 0.25


def test_zero_estimate_does_not_reinitialize():
    est = ScalarEstimator()
    est.update_with_noise(0.0, 0.1)
    v_after_first = est.variance
    est.update_with_noise(0.0, 0.1)
    # a zero-sentinel design would reset variance to 1000 here
    assert est.variance < v_after_first


def test_invalid_input_leaves_state_untouched():
    est = ScalarEstimator()
    est.update_with_noise(2.0, 0.1)
    before = (est.estimate, est.variance, est.measurement_noise_sd)

    with pytest.raises(InvalidInput) as ei:
        est.update(None)  # type: ignore[arg-type]
    assert ei.value.position == 1

    with pytest.raises(InvalidInput) as ei:
        est.update_with_noise(2.5, None)  # type: ignore[arg-type]
    assert ei.value.position == 2

    with pytest.raises(InvalidInput):
        est.update("abc")  # type: ignore[arg-type]

    assert (est.estimate, est.variance, est.measurement_noise_sd) == before


def test_uninitialized_invalid_call_stays_uninitialized():
    est = ScalarEstimator()
    with pytest.raises(InvalidInput):
        est.update_with_noise(1.0, None)  # type: ignore[arg-type]
    assert est.initialized is False
    assert est.gain == 0.0


def test_zero_noise_collapses_variance_then_raises_singular():
    est = ScalarEstimator()
    assert est.update_with_noise(1.0, 0.0) == 1.0
    assert est.variance == 0.0
    assert est.gain == 0.0
    with pytest.raises(SingularMatrix):
        est.update_with_noise(2.0, 0.0)
    assert (est.estimate, est.variance) == (1.0, 0.0)


def test_negative_noise_rejected_before_seeding():
    est = ScalarEstimator()
    with pytest.raises(InvalidInput) as ei:
        est.update_with_noise(1.0, -1000.0)
    assert ei.value.position == 2
    assert est.initialized is False


def test_non_positive_default_noise_raises_singular_without_seeding():
    est = ScalarEstimator(initial_variance=1.0, default_noise_sd=-1.0)
    with pytest.raises(SingularMatrix):
        est.update(3.0)
    assert est.initialized is False
