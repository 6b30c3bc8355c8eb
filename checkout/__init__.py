"""
checkout package initializer.

This package contains the discrete-event simulation core for a single-server
checkout (M/M/1 queue): the future event list, the Arrive/Depart/Stop event
machine, exponential variate streams, and per-trial statistics.
"""
from .metrics import TrialResult, mm1_theory
from .simulation import CheckoutSimulator, make_simulator

__all__ = [
    "entities", "queues", "variates", "metrics", "simulation",
    "CheckoutSimulator", "make_simulator", "TrialResult", "mm1_theory",
]
