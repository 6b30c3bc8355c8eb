# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# variates.py
# -----------------------------------------------------------------------------
# Purpose:
#   Random variate source for the checkout: exponential interarrival and
#   service times drawn from two independent pseudorandom streams.
#
# Design notes:
#   - Each ExponentialStream owns a private random.Random, so two simulators
#     never interleave draws from the same generator.
#   - A stream is NOT reseeded between trials. All trials run by one
#     simulator consume consecutive windows of the same long stream.
#   - Parallel workers must each call make_streams with a distinct seed.
#
# Usage:
#   arrivals, service = make_streams(seed=42)
#   dt = arrivals.sample(4.0)
# -----------------------------------------------------------------------------

from __future__ import annotations
import math, random
from typing import Optional, Tuple

def check_rate(name: str, value: float) -> float:
    """Return value as float, raising ValueError unless finite and > 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a real number, got {value!r}") from None
    if not math.isfinite(value) or value <= 0.0:
        raise ValueError(f"{name} must be finite and > 0, got {value!r}")
    return value

class ExponentialStream:
    """Exponential sampler over a private pseudorandom stream.

    Parameters
    ----------
    seed : int, optional
        Seed for a fresh generator. None draws one from OS entropy.
    rng : random.Random, optional
        Use this generator directly instead of creating one from seed.
    """
    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random(seed)
        self.draws = 0

    def sample(self, rate: float) -> float:
        """Draw one value with mean 1/rate."""
        rate = check_rate("rate", rate)
        self.draws += 1
        return self.rng.expovariate(rate)

def make_streams(seed: Optional[int] = None) -> Tuple[ExponentialStream, ExponentialStream]:
    """
    Build the (interarrival, service) stream pair from one master seed.

    The two child seeds are drawn from a master generator, so the same master
    seed always reproduces the same pair while the two streams stay distinct.
    """
    master = random.Random(seed)
    return (
        ExponentialStream(master.getrandbits(64)),
        ExponentialStream(master.getrandbits(64)),
    )
