"""
experiments/run_experiments.py

Batch driver that loads the baseline config, applies scenario overrides, runs
the checkout simulator many times, and persists each statistic's series as a
raw little-endian float64 file (one value per trial, in call order, no
header). Each output file can be read back with
`numpy.fromfile(path, dtype="<f8")`.

A short report with Student-t confidence intervals and the closed-form M/M/1
values is printed at the end, and histograms are saved when plots are on.

Usage:
  python -m experiments.run_experiments
  python -m experiments.run_experiments --scenario light_load --trials 10000
  python -m experiments.run_experiments --workers 4 --seed 7 --no-plots
"""

from __future__ import annotations
import argparse, copy, logging, math, os, time
from multiprocessing import Pool
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import yaml
from scipy.stats import t as student_t

from checkout.metrics import STATISTICS, mm1_theory
from checkout.simulation import CheckoutSimulator, make_simulator
from experiments.scenarios import get_scenario

logger = logging.getLogger(__name__)

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# One raw output file per statistic, same order as TrialResult
SERIES_FILES = {
    "utilisation": "utilisations.dat",
    "mean_customers": "mean_customers.dat",
    "mean_system_time": "mean_system_times.dat",
}

SERIES_DTYPE = np.dtype("<f8")

LABELS = {
    "utilisation": "Utilisation",
    "mean_customers": "Mean customers in system",
    "mean_system_time": "Mean system time",
}

def load_cfg(path: Optional[str] = None) -> Dict:
    if path is None:
        path = os.path.join(ROOT, "config", "baseline.yaml")
    with open(path, "r") as f:
        return yaml.safe_load(f)

def apply_overrides(cfg: Dict, overrides: Dict) -> Dict:
    """Apply scenario overrides (recursive merge) on top of the base config."""
    new = copy.deepcopy(cfg)

    def _merge(dst: Dict, src: Dict):
        for key, val in src.items():
            if isinstance(val, dict) and isinstance(dst.get(key), dict):
                _merge(dst[key], val)
            else:
                dst[key] = copy.deepcopy(val)

    _merge(new, overrides)
    return new

def run_batch(simulator: CheckoutSimulator, trials: int, progress_every: int = 0) -> np.ndarray:
    """
    Call simulator.run_trial() exactly `trials` times on the same instance.

    Returns
    -------
    np.ndarray
        Shape (3, trials), float64. Rows follow TrialResult's field order;
        column i is the i-th trial. NaN mean system times are kept as NaN.
    """
    if trials <= 0:
        raise ValueError(f"trials must be > 0, got {trials}")
    out = np.empty((len(STATISTICS), trials), dtype=np.float64)
    for count in range(trials):
        if progress_every and count % progress_every == 0:
            logger.info("trial %d/%d", count, trials)
        out[:, count] = simulator.run_trial()
    return out

def _run_block(job: Tuple[Dict, int, int]) -> np.ndarray:
    # Worker entry point: every block gets its own simulator and streams
    cfg, seed, n = job
    simulator = make_simulator(cfg, seed=seed)
    return run_batch(simulator, n)

def split_trials(trials: int, workers: int) -> List[int]:
    """Contiguous block sizes, as even as possible, summing to trials."""
    base, extra = divmod(trials, workers)
    return [base + (1 if i < extra else 0) for i in range(workers) if base or i < extra]

def worker_seeds(seed: Optional[int], workers: int) -> List[int]:
    """Derive one independent seed per worker from the master seed."""
    return [int(s) for s in np.random.SeedSequence(seed).generate_state(workers, dtype=np.uint64)]

def run_batch_parallel(cfg: Dict, trials: int, workers: int) -> np.ndarray:
    """
    Split the trials into one contiguous block per worker process.

    Each worker owns a simulator with its own derived seed, so no stream is
    shared between processes. Blocks are concatenated in worker order.
    Results differ from run_batch with the same master seed since each block
    draws from a different stream.
    """
    if trials <= 0:
        raise ValueError(f"trials must be > 0, got {trials}")
    if workers <= 0:
        raise ValueError(f"workers must be > 0, got {workers}")
    sizes = split_trials(trials, workers)
    seeds = worker_seeds(cfg.get("sim", {}).get("seed"), len(sizes))
    jobs = [(cfg, seed, n) for seed, n in zip(seeds, sizes)]
    logger.info("running %d trials on %d workers (blocks %s)", trials, len(jobs), sizes)
    with Pool(processes=len(jobs)) as pool:
        blocks = pool.map(_run_block, jobs)
    return np.concatenate(blocks, axis=1)

def write_series(path: str, values: Sequence[float]) -> int:
    """Write values as contiguous little-endian float64. Returns bytes written."""
    arr = np.ascontiguousarray(values, dtype=SERIES_DTYPE)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    arr.tofile(path)
    return arr.nbytes

def write_all_series(out_dir: str, results: np.ndarray) -> Dict[str, str]:
    """Persist each row of a run_batch result to its own .dat file."""
    paths = {}
    for row, name in enumerate(STATISTICS):
        path = os.path.join(out_dir, SERIES_FILES[name])
        nbytes = write_series(path, results[row])
        logger.info("wrote %s (%d bytes)", path, nbytes)
        paths[name] = path
    return paths

def read_series(path: str) -> np.ndarray:
    return np.fromfile(path, dtype=SERIES_DTYPE)

def mean_ci(values: Sequence[float], confidence_level: float) -> Tuple[float, float, int]:
    """
    Return (mean, half-width, n) using a t-distribution critical value.
    NaN entries (trials with nobody served) are left out; n counts the rest.
    """
    arr = np.asarray(values, dtype=np.float64)
    arr = arr[~np.isnan(arr)]
    n = int(arr.size)
    if n == 0:
        return math.nan, 0.0, 0
    mu = float(arr.mean())
    if n < 2:
        return mu, 0.0, n
    level = min(max(confidence_level, 0.0), 0.999999)
    alpha = 1.0 - level
    tcrit = float(student_t.ppf(1 - alpha / 2.0, n - 1))
    half = tcrit * float(arr.std(ddof=1)) / math.sqrt(n)
    return mu, half, n

def plot_histograms(results: np.ndarray, scenario_name: str, out_dir: str, theory=None) -> Optional[str]:
    """
    Persist a PNG with one histogram per statistic. The closed-form M/M/1
    value is drawn as a dashed vertical line when available.
    """
    if results.size == 0:
        return None
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    expected = theory.expected() if theory is not None else None
    fig, axes = plt.subplots(1, len(STATISTICS), figsize=(14, 4))
    for row, name in enumerate(STATISTICS):
        ax = axes[row]
        vals = results[row]
        vals = vals[~np.isnan(vals)]
        if vals.size:
            ax.hist(vals, bins=60, color="#2563eb", alpha=0.8)
        if expected is not None:
            ax.axvline(expected[row], color="#d97706", linestyle="--", label="M/M/1 theory")
            ax.legend()
        ax.set_title(LABELS[name])
        ax.grid(True, linestyle="--", alpha=0.4)
    fig.suptitle(f"{scenario_name}: distribution over {results.shape[1]} trials")
    os.makedirs(out_dir, exist_ok=True)
    safe_name = scenario_name.lower().replace(" ", "_")
    out_path = os.path.join(out_dir, f"{safe_name}_histograms.png")
    fig.tight_layout()
    fig.savefig(out_path, dpi=160)
    plt.close(fig)
    return out_path

def print_report(cfg: Dict, scenario_name: str, results: np.ndarray, elapsed: float):
    sim_cfg = cfg["sim"]
    confidence = float(cfg.get("experiments", {}).get("confidence_level", 0.95))
    trials = results.shape[1]
    try:
        theory = mm1_theory(sim_cfg["arrival_rate"], sim_cfg["service_rate"])
    except ValueError as exc:
        logger.warning("no steady-state reference: %s", exc)
        theory = None

    print(
        f"Scenario: {scenario_name} (trials={trials}, horizon={sim_cfg['horizon']}, "
        f"lambda={sim_cfg['arrival_rate']}, mu={sim_cfg['service_rate']}, "
        f"{confidence*100:.1f}% CI, {elapsed:.1f}s)"
    )
    for row, name in enumerate(STATISTICS):
        mu, half, n = mean_ci(results[row], confidence)
        line = f"  {LABELS[name]}: {mu:.4f} ± {half:.4f}"
        if theory is not None:
            line += f" (theory {theory.expected()[row]:.4f})"
        if n < trials:
            line += f" [{trials - n} trials with no departures]"
        print(line)
    return theory

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Monte Carlo batch of single-server checkout simulations",
    )
    parser.add_argument("--config", type=str, default=None, help="YAML config (default: config/baseline.yaml)")
    parser.add_argument("--scenario", type=str, default="baseline", help="Scenario name from experiments/scenarios.py")
    parser.add_argument("--trials", type=int, default=None, help="Number of trials (overrides config)")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes (overrides config)")
    parser.add_argument("--seed", type=int, default=None, help="Master seed (overrides config)")
    parser.add_argument("--output-dir", type=str, default=None, help="Directory for .dat files and plots")
    parser.add_argument("--no-plots", action="store_true", help="Skip histogram plots")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (default: INFO)")
    return parser

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point: run one scenario, persist the series, and report."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    cfg = load_cfg(args.config)
    sc = get_scenario(args.scenario)
    cfg = apply_overrides(cfg, sc["overrides"])
    exp_cfg = cfg.setdefault("experiments", {})
    if args.trials is not None:
        exp_cfg["trials"] = args.trials
    if args.workers is not None:
        exp_cfg["workers"] = args.workers
    if args.seed is not None:
        cfg["sim"]["seed"] = args.seed

    trials = int(exp_cfg.get("trials", 1))
    workers = int(exp_cfg.get("workers", 1))
    progress_every = int(exp_cfg.get("progress_every", 0))
    out_dir = args.output_dir or exp_cfg.get("output_dir", os.path.join("experiments", "output"))
    if not os.path.isabs(out_dir):
        out_dir = os.path.join(ROOT, out_dir)
    out_dir = os.path.join(out_dir, sc["name"])

    started = time.perf_counter()
    if workers > 1:
        results = run_batch_parallel(cfg, trials, workers)
    else:
        results = run_batch(make_simulator(cfg), trials, progress_every)
    elapsed = time.perf_counter() - started

    write_all_series(out_dir, results)
    theory = print_report(cfg, sc["name"], results, elapsed)
    if exp_cfg.get("plots", True) and not args.no_plots:
        plot_path = plot_histograms(results, sc["name"], out_dir, theory)
        if plot_path:
            print(f"  Histograms saved to: {plot_path}")
    print(f"  Series written to: {out_dir}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
