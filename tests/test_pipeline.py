import logging

import pytest

from kalman.errors import IncompatibleState, InvalidInput
from kalman.pipeline import KalmanFunction, Pipeline
from kalman.snapshot import VectorSnapshot, restore


def test_function_dispatches_by_arity():
    f1, f2, f4 = KalmanFunction(), KalmanFunction(), KalmanFunction()
    assert f1(-74.178444) == -74.178444
    assert f1.variant == "scalar"
    assert f2(-74.178444, 0.003) == pytest.approx(-74.178444, abs=1e-6)
    assert f2.scalar.measurement_noise_sd == 0.003
    assert f4(-74.178444, 0.003, 0.01, 1) == pytest.approx(-74.178444, abs=1e-6)
    assert f4.variant == "vector"


@pytest.mark.parametrize("args", [(), (1.0, 2.0, 3.0), (1.0, 2.0, 3.0, 4, 5)])
def test_function_rejects_arity(args):
    f = KalmanFunction()
    with pytest.raises(InvalidInput, match="required 1, 2 or 4"):
        f(*args)
    assert f.variant is None


def test_function_is_bound_to_first_variant():
    f = KalmanFunction()
    f(1.0, 0.1)
    f(1.0)  # both scalar forms share the scalar estimator
    with pytest.raises(InvalidInput, match="bound to the scalar"):
        f(1.0, 0.0, 0.1, 5)


def test_process_selects_variant_from_fields():
    p = Pipeline(cfg={})
    out = p.process({"value": 2.0})
    assert out == {"estimate": 2.0, "variant": "scalar", "arity": 1, "skipped": False, "n_updates": 1}

    q = Pipeline(cfg={})
    out = q.process({"value": 2.0, "rate": 0.0, "noise_sd": 0.1, "timestamp": 3})
    assert out["variant"] == "vector" and out["arity"] == 4


def test_process_rejects_partial_vector_tick():
    p = Pipeline(cfg={})
    with pytest.raises(InvalidInput, match="optional fields"):
        p.process({"value": 1.0, "rate": 0.5})
    with pytest.raises(InvalidInput):
        p.process({"noise_sd": 0.1})
    assert p.n_updates == 0


def test_cfg_overrides_reach_estimators():
    p = Pipeline(cfg={"initial_variance": 50.0, "default_noise_sd": 0.5, "singular_eps": 1e-3})
    p.process({"value": 1.0})
    assert p.fn.scalar.measurement_noise_sd == 0.5
    assert p.fn.vector.singular_eps == 1e-3
    assert p.fn.scalar.variance == pytest.approx(50.0 * 0.5 / 50.5)


def test_singular_update_is_skipped_and_logged(caplog):
    p = Pipeline(cfg={})
    p.process({"value": 1.0, "rate": 0.0, "noise_sd": 0.1, "timestamp": 10})
    restore(p.fn.vector, VectorSnapshot(
        initialized=True,
        measurement_matrix=((1.0, 0.0), (0.0, 1.0)),
        covariance=((0.0, 0.0), (0.0, 0.0)),
        state=((3.0,), (0.0,)),
        last_timestamp=10,
    ))
    with caplog.at_level(logging.WARNING, logger="kalman.pipeline"):
        out = p.process({"value": 9.0, "rate": 0.0, "noise_sd": 0.0, "timestamp": 11})
    assert out["skipped"] is True
    assert out["estimate"] == 3.0
    assert p.n_skipped == 1 and p.n_updates == 1
    assert "singular_skip" in caplog.text

    # next well-posed update proceeds from the retained state
    out = p.process({"value": 4.0, "rate": 0.0, "noise_sd": 0.1, "timestamp": 12})
    assert out["skipped"] is False


def test_state_round_trip_resumes_identically():
    a = Pipeline(cfg={})
    for i, v in enumerate([1.0, 1.2, 0.9, 1.1]):
        a.process({"value": v, "rate": 0.05, "noise_sd": 0.02, "timestamp": 100 + 2 * i})
    b = Pipeline.from_state({}, a.state_dict())
    tick = {"value": 1.05, "rate": 0.05, "noise_sd": 0.02, "timestamp": 109}
    assert b.process(tick) == a.process(tick)


def test_empty_state_gives_fresh_pipeline():
    b = Pipeline.from_state({}, {"variant": None, "snapshot": None})
    assert b.fn.variant is None
    assert b.process({"value": 5.0})["estimate"] == 5.0


def test_bad_variant_in_state():
    with pytest.raises(IncompatibleState):
        Pipeline.from_state({}, {"variant": "matrix", "snapshot": {"kind": "scalar"}})
