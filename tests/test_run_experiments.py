"""Batch driver: series persistence, batching, config handling, CLI."""

import math
import os
import struct

import numpy as np
import pytest

from checkout.metrics import TrialResult
from experiments import run_experiments as rx
from experiments.scenarios import SCENARIOS, get_scenario


class CountingSimulator:
    def __init__(self):
        self.calls = 0

    def run_trial(self):
        self.calls += 1
        n = float(self.calls)
        return TrialResult(n / 10.0, n, math.nan if self.calls == 2 else 2 * n)


def test_write_series_is_raw_little_endian_float64(tmp_path):
    path = str(tmp_path / "series.dat")
    nbytes = rx.write_series(path, [1.5, math.nan, -2.0])
    assert nbytes == 24
    with open(path, "rb") as f:
        raw = f.read()
    assert len(raw) == 24
    assert raw[:8] == struct.pack("<d", 1.5)
    assert raw[16:] == struct.pack("<d", -2.0)
    values = np.fromfile(path, dtype="<f8")
    assert values[0] == 1.5
    assert math.isnan(values[1])
    assert values[2] == -2.0


def test_run_batch_calls_run_trial_exactly_n_times_in_order():
    sim = CountingSimulator()
    out = rx.run_batch(sim, 4)
    assert sim.calls == 4
    assert out.shape == (3, 4)
    assert out.dtype == np.float64
    assert list(out[1]) == [1.0, 2.0, 3.0, 4.0]
    assert out[0] == pytest.approx([0.1, 0.2, 0.3, 0.4])
    assert math.isnan(out[2][1])
    assert out[2][3] == 8.0


def test_run_batch_logs_progress(caplog):
    caplog.set_level("INFO", logger=rx.logger.name)
    rx.run_batch(CountingSimulator(), 5, progress_every=2)
    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["trial 0/5", "trial 2/5", "trial 4/5"]


def test_run_batch_rejects_empty():
    with pytest.raises(ValueError):
        rx.run_batch(CountingSimulator(), 0)


def test_write_all_series_one_file_per_statistic(tmp_path):
    results = rx.run_batch(CountingSimulator(), 3)
    paths = rx.write_all_series(str(tmp_path), results)
    assert sorted(os.path.basename(p) for p in paths.values()) == [
        "mean_customers.dat", "mean_system_times.dat", "utilisations.dat",
    ]
    for row, name in enumerate(("utilisation", "mean_customers", "mean_system_time")):
        back = rx.read_series(paths[name])
        assert os.path.getsize(paths[name]) == 3 * 8
        np.testing.assert_array_equal(back, results[row])


def test_apply_overrides_merges_without_mutating():
    base = {"sim": {"horizon": 10.0, "arrival_rate": 1.0}, "experiments": {"trials": 3}}
    merged = rx.apply_overrides(base, {"sim": {"arrival_rate": 2.0}, "extra": [1]})
    assert merged["sim"] == {"horizon": 10.0, "arrival_rate": 2.0}
    assert merged["experiments"] == {"trials": 3}
    assert merged["extra"] == [1]
    assert base["sim"]["arrival_rate"] == 1.0


def test_load_cfg_default_has_baseline_values():
    cfg = rx.load_cfg()
    assert cfg["sim"]["horizon"] == 5000.0
    assert cfg["sim"]["arrival_rate"] == 4.0
    assert cfg["sim"]["service_rate"] == 5.0
    assert cfg["experiments"]["trials"] == 500000


def test_scenarios_lookup():
    assert get_scenario("baseline")["overrides"] == {}
    assert {s["name"] for s in SCENARIOS} >= {"baseline", "light_load", "heavy_load"}
    with pytest.raises(KeyError):
        get_scenario("no_such_scenario")


@pytest.mark.parametrize(
    "trials, workers, expected",
    [(10, 3, [4, 3, 3]), (2, 4, [1, 1]), (8, 1, [8]), (6, 2, [3, 3])],
)
def test_split_trials(trials, workers, expected):
    assert rx.split_trials(trials, workers) == expected


def test_worker_seeds_are_deterministic_and_distinct():
    seeds = rx.worker_seeds(7, 4)
    assert seeds == rx.worker_seeds(7, 4)
    assert len(set(seeds)) == 4


def test_mean_ci_ignores_nan():
    mu, half, n = rx.mean_ci([1.0, math.nan, 3.0], 0.95)
    assert mu == 2.0
    assert n == 2
    assert half > 0.0


def test_mean_ci_degenerate_inputs():
    assert rx.mean_ci([5.0], 0.95) == (5.0, 0.0, 1)
    mu, half, n = rx.mean_ci([math.nan], 0.95)
    assert math.isnan(mu) and half == 0.0 and n == 0


def test_run_batch_parallel_shape(small_cfg):
    out = rx.run_batch_parallel(small_cfg, 5, 2)
    assert out.shape == (3, 5)
    assert np.all((out[0] >= 0.0) & (out[0] <= 1.0))


def test_run_batch_parallel_rejects_bad_counts(small_cfg):
    with pytest.raises(ValueError):
        rx.run_batch_parallel(small_cfg, 0, 2)
    with pytest.raises(ValueError):
        rx.run_batch_parallel(small_cfg, 5, 0)


def test_plot_histograms_writes_png(tmp_path, small_cfg):
    from checkout.metrics import mm1_theory
    from checkout.simulation import make_simulator

    results = rx.run_batch(make_simulator(small_cfg), 6)
    path = rx.plot_histograms(results, "Small Run", str(tmp_path), mm1_theory(4.0, 5.0))
    assert path.endswith("small_run_histograms.png")
    assert os.path.exists(path)


def test_main_writes_three_series(tmp_path, capsys):
    code = rx.main([
        "--scenario", "short_horizon",
        "--trials", "5",
        "--seed", "3",
        "--output-dir", str(tmp_path),
        "--no-plots",
        "--log-level", "WARNING",
    ])
    assert code == 0
    out_dir = tmp_path / "short_horizon"
    for name in ("utilisations.dat", "mean_customers.dat", "mean_system_times.dat"):
        assert (out_dir / name).stat().st_size == 5 * 8
    printed = capsys.readouterr().out
    assert "Scenario: short_horizon (trials=5" in printed
    assert "Utilisation:" in printed
