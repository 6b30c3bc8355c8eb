# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# metrics.py
# -----------------------------------------------------------------------------
# Purpose:
#   Accumulate per-trial statistics (busy time, time-weighted number in
#   system, sojourn totals) and derive the result triple. Also provides the
#   closed-form M/M/1 values used as a reference by the batch report.
#
# Design notes:
#   - integrate() is called on every FEL pop BEFORE the event executes, over
#     the interval [previous event time, this event time).
#   - note_departure() is the only place customers are counted.
#
# Usage:
#   acc = StatisticsAccumulator(); ...; acc.summary(horizon)
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Dict, List, NamedTuple
import math

class TrialResult(NamedTuple):
    """Statistics of one trial, in fixed order."""
    utilisation: float
    mean_customers: float
    mean_system_time: float

STATISTICS = TrialResult._fields

class StatisticsAccumulator:
    def __init__(self, keep_samples: bool = False):
        self.keep_samples = keep_samples
        self.reset()

    def reset(self):
        self.served = 0
        self.system_time_total = 0.0
        self.busy_time = 0.0
        self.customer_time_area = 0.0
        self.sojourn_samples: List[float] = []

    def integrate(self, duration: float, serving: int, waiting: int):
        # Time-weighted areas under the busy indicator and the number in system
        self.busy_time += duration * serving
        self.customer_time_area += duration * (serving + waiting)

    def note_departure(self, sojourn: float):
        self.served += 1
        self.system_time_total += sojourn
        if self.keep_samples:
            self.sojourn_samples.append(sojourn)

    def summary(self, horizon: float) -> TrialResult:
        """Derive (utilisation, mean customers, mean system time).

        The mean system time is NaN when no customer completed service.
        """
        mean_system_time = (
            self.system_time_total / self.served if self.served > 0 else math.nan
        )
        return TrialResult(
            self.busy_time / horizon,
            self.customer_time_area / horizon,
            mean_system_time,
        )

@dataclass(frozen=True)
class MM1Theory:
    """Steady-state M/M/1 metrics."""
    rho: float
    L: float
    Lq: float
    W: float
    Wq: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def expected(self) -> TrialResult:
        """Theory values lined up with TrialResult's fields."""
        return TrialResult(self.rho, self.L, self.W)

def mm1_theory(arrival_rate: float, service_rate: float) -> MM1Theory:
    """
    Closed-form M/M/1 steady state.

    Raises
    ------
    ValueError
        If either rate is not positive or rho >= 1 (no steady state).
    """
    if arrival_rate <= 0 or service_rate <= 0:
        raise ValueError("arrival_rate and service_rate must be > 0")
    rho = arrival_rate / service_rate
    if rho >= 1.0:
        raise ValueError(f"Unstable system: rho={rho:.3f} must be < 1 for M/M/1")
    L = rho / (1.0 - rho)
    Lq = rho * rho / (1.0 - rho)
    return MM1Theory(rho=rho, L=L, Lq=Lq, W=L / arrival_rate, Wq=Lq / arrival_rate)
