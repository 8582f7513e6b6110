import pytest

from kalman.config import load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("KALMAN_CONFIG", raising=False)
    monkeypatch.delenv("KALMAN_PROFILE", raising=False)


def test_explicit_file_wins_and_flattens(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("estimator:\n  default_noise_sd: 0.2\n  singular_eps: 1.0e-9\nmax_series: 3\n")
    cfg = load_config(p)
    assert cfg["default_noise_sd"] == 0.2
    assert cfg["singular_eps"] == 1e-9
    assert cfg["max_series"] == 3


def test_env_file(tmp_path, monkeypatch):
    p = tmp_path / "env.yaml"
    p.write_text("initial_variance: 10\n")
    monkeypatch.setenv("KALMAN_CONFIG", str(p))
    assert load_config()["initial_variance"] == 10


def test_profile_overlays_default():
    cfg = load_config(profile="tracking")
    assert cfg["default_noise_sd"] == 0.01  # top-level profile key beats estimator block
    assert cfg["initial_variance"] == 1000.0
    assert cfg["max_series"] == 8192


def test_missing_files_raise(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
    with pytest.raises(FileNotFoundError):
        load_config(profile="does-not-exist")


def test_bad_number_in_estimator_block(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("estimator:\n  initial_variance: lots\n")
    with pytest.raises(ValueError):
        load_config(p)
