"""
Tiered Fare Pricing  (Strategy Pattern)
=======================================

Price is a step function of the driving distance:

* up to  8 km  -> 129
* up to 12 km  -> 137
* beyond       -> 150 (ceiling)

The tiers are a deliberately crude placeholder kept for compatibility with
fares already persisted on rides; they are not a general fare model.

Complexity: O(tiers) per price calculation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(self, distance_meters: float) -> float: ...


class TieredPricing(PricingStrategy):
    DEFAULT_TIERS: tuple[tuple[int, float], ...] = ((8_000, 129.0), (12_000, 137.0))
    DEFAULT_CEILING = 150.0

    def __init__(
        self,
        tiers: tuple[tuple[int, float], ...] = DEFAULT_TIERS,
        ceiling: float = DEFAULT_CEILING,
    ):
        self.tiers = tuple(sorted(tiers))
        self.ceiling = ceiling

    def calculate(self, distance_meters: float) -> float:
        for upper_bound, price in self.tiers:
            if distance_meters <= upper_bound:
                return price
        return self.ceiling


# ── Display helpers ───────────────────────────────────────────────────


def format_distance(distance_meters: float) -> str:
    return f"{distance_meters / 1000:.1f} km"


def format_duration(duration_seconds: float) -> str:
    minutes = max(1, round(duration_seconds / 60))
    return f"{minutes} min" if minutes == 1 else f"{minutes} mins"
