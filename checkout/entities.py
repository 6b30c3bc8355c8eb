# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# entities.py
# -----------------------------------------------------------------------------
# Purpose:
#   Entity definitions for the checkout DES: the Customer.
#
# Design notes:
#   - A customer only needs its arrival timestamp; the sojourn time is
#     computed at departure as (departure time) - (arrival time).
#   - At any instant a customer is owned either by the server slot or by the
#     waiting line, never both.
#
# Usage:
#   from checkout.entities import Customer
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass

@dataclass
class Customer:
    arrival_time: float              # time the Arrive event fired

    def sojourn(self, now: float) -> float:
        return now - self.arrival_time
