# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# simulation.py
# -----------------------------------------------------------------------------
# Purpose:
#   Simulate the checkout as a single-server FIFO system: hold the per-trial
#   state, execute Arrive/Depart/Stop events, and run one trial from time 0
#   to the stop horizon, returning (utilisation, mean customers, mean system
#   time).
#
# Design notes:
#   - execute() is the single dispatch point over the closed set of event
#     kinds; the state it mutates is passed in explicitly.
#   - Every trial starts from a freshly reset SimulationState. The variate
#     streams are the only thing carried from one trial to the next.
#   - A simulator instance is not thread-safe; give each concurrent worker
#     its own instance (and its own seed).
#
# Usage:
#   from checkout.simulation import CheckoutSimulator
#   sim = CheckoutSimulator(horizon=5000, arrival_rate=4, service_rate=5)
#   utilisation, mean_customers, mean_system_time = sim.run_trial()
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from collections import Counter, deque
from typing import Deque, Dict, Iterator, Optional
from .entities import Customer
from .metrics import StatisticsAccumulator, TrialResult
from .queues import ARRIVE, DEPART, STOP, Event, FutureEventList
from .variates import check_rate, make_streams

logger = logging.getLogger(__name__)

class SimulationState:
    """Mutable state of one trial.

    Attributes
    ----------
    current_customer : Customer or None
        Customer occupying the server; None iff the server is idle.
    waiting_line : deque[Customer]
        FIFO line of customers not yet in service.
    fel : FutureEventList
        Pending events.
    previous_time : float
        Time of the last processed event.
    stats : StatisticsAccumulator
        served / system_time_total / busy_time / customer_time_area.
    executed : Counter
        Number of executed events per kind.
    """
    def __init__(self, keep_samples: bool = False):
        self.stats = StatisticsAccumulator(keep_samples=keep_samples)
        self.reset()

    def reset(self):
        self.current_customer: Optional[Customer] = None
        self.waiting_line: Deque[Customer] = deque()
        self.fel = FutureEventList()
        self.previous_time: float = 0.0
        self.stats.reset()
        self.executed: Counter = Counter()

    @property
    def busy(self) -> bool:
        return self.current_customer is not None

    @property
    def serving(self) -> int:
        return 1 if self.current_customer is not None else 0

    @property
    def in_system(self) -> int:
        return self.serving + len(self.waiting_line)

    # Shortcuts to the cumulative counters
    @property
    def served(self) -> int:
        return self.stats.served

    @property
    def system_time_total(self) -> float:
        return self.stats.system_time_total

    @property
    def busy_time(self) -> float:
        return self.stats.busy_time

    @property
    def customer_time_area(self) -> float:
        return self.stats.customer_time_area

class CheckoutSimulator:
    """Single-server checkout simulator, reused across many trials.

    Parameters
    ----------
    horizon : float
        Time at which each trial stops (> 0).
    arrival_rate : float
        Mean customer arrival rate (> 0).
    service_rate : float
        Mean service rate (> 0).
    seed : int, optional
        Master seed for the default interarrival/service streams.
    arrival_stream, service_stream : object, optional
        Any object with a sample(rate) method; replaces the default stream.
    keep_samples : bool
        Keep every completed customer's sojourn time in state.stats.

    Notes
    -----
    - Invalid horizon or rates raise ValueError at construction.
    - Streams continue across trials; they are never reseeded by run_trial().
    """
    def __init__(
        self,
        horizon: float,
        arrival_rate: float,
        service_rate: float,
        *,
        seed: Optional[int] = None,
        arrival_stream=None,
        service_stream=None,
        keep_samples: bool = False,
    ):
        self.horizon = check_rate("horizon", horizon)
        self.arrival_rate = check_rate("arrival_rate", arrival_rate)
        self.service_rate = check_rate("service_rate", service_rate)
        if arrival_stream is None or service_stream is None:
            default_arrivals, default_service = make_streams(seed)
            if arrival_stream is None:
                arrival_stream = default_arrivals
            if service_stream is None:
                service_stream = default_service
        self.arrival_stream = arrival_stream
        self.service_stream = service_stream
        self.state = SimulationState(keep_samples=keep_samples)
        self.trials_run = 0

    def reset(self):
        """Zero the trial state. Streams keep their position."""
        self.state.reset()

    def execute(self, state: SimulationState, ev: Event):
        """Apply one event to state, possibly scheduling follow-up events."""
        t = ev.t
        if ev.kind == ARRIVE:
            # Arrivals keep coming whatever the state of the server
            state.fel.schedule(t + self.arrival_stream.sample(self.arrival_rate), ARRIVE)
            customer = Customer(arrival_time=t)
            if state.current_customer is None:
                state.current_customer = customer
                state.fel.schedule(t + self.service_stream.sample(self.service_rate), DEPART)
            else:
                state.waiting_line.append(customer)
        elif ev.kind == DEPART:
            state.stats.note_departure(state.current_customer.sojourn(t))
            if not state.waiting_line:
                state.current_customer = None
            else:
                state.current_customer = state.waiting_line.popleft()
                state.fel.schedule(t + self.service_stream.sample(self.service_rate), DEPART)
        elif ev.kind == STOP:
            # Customers still in the system are abandoned, not counted
            state.fel.clear()
        else:
            raise ValueError(f"Unknown event kind: {ev.kind!r}")
        state.executed[ev.kind] += 1

    def run_trial(self) -> TrialResult:
        """Run one trial from time 0 to the horizon and return its statistics."""
        state = self.state
        state.reset()
        state.fel.schedule(self.arrival_stream.sample(self.arrival_rate), ARRIVE)
        state.fel.schedule(self.horizon, STOP)

        while not state.fel.is_empty():
            ev = state.fel.pop_min()
            state.stats.integrate(ev.t - state.previous_time, state.serving, len(state.waiting_line))
            self.execute(state, ev)
            state.previous_time = ev.t

        result = state.stats.summary(self.horizon)
        self.trials_run += 1
        logger.debug(
            "trial %d: served=%d events=%s result=%s",
            self.trials_run, state.served, dict(state.executed), result,
        )
        return result

    # Same entry point name as the batch driver historically used
    run = run_trial

    def run_trials(self, n: int) -> Iterator[TrialResult]:
        """Yield the results of n consecutive trials on this instance."""
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        for _ in range(n):
            yield self.run_trial()

    def __repr__(self):
        return (
            f"CheckoutSimulator(horizon={self.horizon}, arrival_rate={self.arrival_rate}, "
            f"service_rate={self.service_rate})"
        )

def make_simulator(cfg: Dict, seed: Optional[int] = None) -> CheckoutSimulator:
    """
    Build a simulator from the 'sim' section of a parsed YAML config.

    Parameters
    ----------
    cfg : dict
        Config with sim.horizon, sim.arrival_rate, sim.service_rate and an
        optional sim.seed.
    seed : int, optional
        Overrides sim.seed (used to give parallel workers their own streams).
    """
    sim_cfg = cfg["sim"]
    if seed is None:
        seed = sim_cfg.get("seed")
    return CheckoutSimulator(
        sim_cfg["horizon"],
        sim_cfg["arrival_rate"],
        sim_cfg["service_rate"],
        seed=seed,
    )
