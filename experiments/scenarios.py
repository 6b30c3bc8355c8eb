"""
experiments/scenarios.py

Holds scenario definitions (load levels and horizons) to sweep during
experiments. Each scenario is a set of overrides merged on top of
config/baseline.yaml.
"""

from __future__ import annotations

BASELINE = {
    "name": "baseline",
    "overrides": {},  # lambda=4, mu=5 -> rho=0.8
}

LIGHT_LOAD = {
    "name": "light_load",
    "overrides": {
        "sim": {"arrival_rate": 2.5},  # rho=0.5
    },
}

HEAVY_LOAD = {
    "name": "heavy_load",
    "overrides": {
        "sim": {"arrival_rate": 4.75},  # rho=0.95, slow to reach steady state
    },
}

SHORT_HORIZON = {
    "name": "short_horizon",
    "overrides": {
        "sim": {"horizon": 50.0},
        "experiments": {"trials": 100000, "progress_every": 20000},
    },
}

SCENARIOS = [BASELINE, LIGHT_LOAD, HEAVY_LOAD, SHORT_HORIZON]

def get_scenario(name: str) -> dict:
    for sc in SCENARIOS:
        if sc["name"] == name:
            return sc
    known = ", ".join(s["name"] for s in SCENARIOS)
    raise KeyError(f"Unknown scenario {name!r} (known: {known})")
