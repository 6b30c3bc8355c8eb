"""Shared fixtures: deterministic variate streams and simulator factories."""

import pytest

from checkout.simulation import CheckoutSimulator


class FixedStream:
    """Stand-in variate stream that always returns the same value."""

    def __init__(self, value):
        self.value = value
        self.draws = 0

    def sample(self, rate):
        self.draws += 1
        return self.value


@pytest.fixture
def fixed_simulator():
    """Build a simulator whose interarrival and service times are constants."""

    def _make(horizon, interarrival, service, **kwargs):
        return CheckoutSimulator(
            horizon,
            arrival_rate=1.0,
            service_rate=1.0,
            arrival_stream=FixedStream(interarrival),
            service_stream=FixedStream(service),
            **kwargs,
        )

    return _make


@pytest.fixture
def small_cfg():
    return {
        "sim": {"horizon": 50.0, "arrival_rate": 4.0, "service_rate": 5.0, "seed": 11},
        "experiments": {"trials": 5, "confidence_level": 0.95, "progress_every": 0, "workers": 1},
    }
