import json

import pytest

from backtest.metrics import latency_p50_p95, mae, noise_reduction, rmse
from backtest.runner import BacktestRunner
from data.replay import Replay
from data.sim_track import simulate
from kalman.pipeline import Pipeline


def test_metrics_basics():
    assert mae([1.0, 2.0], [1.5, 2.5]) == 0.5
    assert rmse([0.0, 0.0], [3.0, 4.0]) == pytest.approx(12.5 ** 0.5)
    assert noise_reduction(2.0, 1.0) == 0.5
    assert noise_reduction(0.0, 1.0) != noise_reduction(0.0, 1.0)  # NaN
    assert latency_p50_p95([]) == {"p50": 0.0, "p95": 0.0}


def test_vector_filter_beats_raw_measurements(tmp_path):
    df = simulate(n=400, noise_sd=0.01, seed=3)
    path = tmp_path / "track.csv"
    df.to_csv(path, index=False)

    m, log = BacktestRunner(burn_in=20).run(Pipeline(cfg={}), Replay(str(path)))
    assert len(log) == 400
    assert m["n_scored"] == 380.0
    assert m["n_skipped"] == 0.0
    assert m["rmse"] < m["raw_rmse"]
    assert m["noise_reduction"] > 0.0
    json.dumps(m)


def test_replay_scalar_columns(tmp_path):
    path = tmp_path / "scalar.csv"
    path.write_text("value,noise_sd\n1.0,0.1\n1.2,0.1\n")
    ticks = list(Replay(str(path)))
    assert ticks == [{"value": 1.0, "noise_sd": 0.1}, {"value": 1.2, "noise_sd": 0.1}]

    m, log = BacktestRunner().run(Pipeline(cfg={}), ticks)
    assert log[0]["estimate"] == 1.0
    assert m["n_scored"] == 0.0


def test_replay_rejects_fractional_timestamp(tmp_path):
    path = tmp_path / "frac.csv"
    path.write_text("value,rate,noise_sd,timestamp\n1.0,0.1,0.1,10.5\n")
    with pytest.raises(ValueError, match="timestamp"):
        list(Replay(str(path)))

    path.write_text("value,rate,noise_sd,timestamp\n1.0,0.1,0.1,10.0\n")
    assert list(Replay(str(path)))[0]["timestamp"] == 10
