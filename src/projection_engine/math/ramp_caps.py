"""Weekly load ramp caps: percentage ramp and CTL-ramp-per-week limits.

The percentage cap bounds week-over-week load growth. The CTL cap bounds the
fitness gained across the week; because CTL is monotonic in the weekly load
the largest admissible load is found by bisection.

Reference:
    Gabbett (2016). The training-injury prevention paradox: should athletes
        be training smarter and harder? Br J Sports Med 50(5):273-280.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from projection_engine.math.training_load import simulate_ctl
from projection_engine.models.enums import CTL_RAMP_BISECTION_ITERATIONS
from projection_engine.models.safety import SafetyConfig


def floor_tenth(value: float) -> float:
    """Round *value* down to one decimal, never producing a negative load."""
    return max(0.0, math.floor(value * 10.0 + 1e-9) / 10.0)


@dataclass(frozen=True)
class RampCapResult:
    """Outcome of clamping one week's requested load."""

    requested_load: float
    cap_by_pct: float
    pct_clamped: bool
    requested_ctl_ramp: float
    applied_ctl_ramp: float
    ctl_clamped: bool
    applied_load: float

    @property
    def clamped(self) -> bool:
        return self.pct_clamped or self.ctl_clamped


def percentage_cap(previous_load: float, max_ramp_pct: float) -> float:
    """Largest load allowed by the week-over-week percentage ramp."""
    return floor_tenth(max(0.0, previous_load) * (1.0 + max_ramp_pct / 100.0))


def find_load_for_ctl_ramp(
    start_ctl: float,
    upper_load: float,
    max_ctl_ramp: float,
    days: int,
    iterations: int = CTL_RAMP_BISECTION_ITERATIONS,
) -> float:
    """Bisect for the largest weekly load whose CTL gain stays within the cap.

    Args:
        start_ctl: CTL at the start of the week.
        upper_load: Upper end of the search interval (a load known to exceed the cap).
        max_ctl_ramp: Maximum CTL gain over the week.
        days: Days in the week.
        iterations: Bisection steps.

    Returns:
        Admissible load, floored to one decimal.
    """
    low, high = 0.0, max(0.0, upper_load)
    for _ in range(iterations):
        mid = (low + high) / 2.0
        if simulate_ctl(start_ctl, mid, days) - start_ctl > max_ctl_ramp:
            high = mid
        else:
            low = mid
    return floor_tenth(low)


def enforce_ramp_caps(
    requested_load: float,
    previous_load: float,
    start_ctl: float,
    days: int,
    config: SafetyConfig,
) -> RampCapResult:
    """Clamp *requested_load* against both ramp caps.

    The percentage cap is applied first; the CTL cap then searches below the
    result if the simulated CTL gain still exceeds ``max_ctl_ramp_per_week``.
    """
    requested = max(0.0, requested_load)
    cap = percentage_cap(previous_load, config.max_weekly_load_ramp_pct)
    pct_clamped = requested > cap
    applied = cap if pct_clamped else requested

    requested_ctl_ramp = simulate_ctl(start_ctl, applied, days) - start_ctl
    ctl_clamped = requested_ctl_ramp > config.max_ctl_ramp_per_week
    if ctl_clamped:
        applied = find_load_for_ctl_ramp(
            start_ctl, applied, config.max_ctl_ramp_per_week, days
        )

    return RampCapResult(
        requested_load=requested,
        cap_by_pct=cap,
        pct_clamped=pct_clamped,
        requested_ctl_ramp=requested_ctl_ramp,
        applied_ctl_ramp=simulate_ctl(start_ctl, applied, days) - start_ctl,
        ctl_clamped=ctl_clamped,
        applied_load=applied,
    )


def feasible_load_bounds(
    baseline_load: float,
    previous_load: float,
    start_ctl: float,
    days: int,
    config: SafetyConfig,
    max_downside_fraction: float,
    minimum_load: float | None = None,
) -> tuple[float, float]:
    """Interval of loads the optimizer may choose from.

    The upper bound is the largest load that passes both caps; the lower bound
    sits ``max_downside_fraction`` below the capped baseline, raised to
    *minimum_load* (the week's demand floor) where the caps allow it.

    Returns:
        ``(lower, upper)`` with ``lower <= upper``.
    """
    cap = percentage_cap(previous_load, config.max_weekly_load_ramp_pct)
    upper = enforce_ramp_caps(cap, previous_load, start_ctl, days, config).applied_load
    anchor = min(max(0.0, baseline_load), upper)
    lower = floor_tenth(anchor * (1.0 - max_downside_fraction))
    if minimum_load is not None:
        lower = max(lower, min(upper, minimum_load))
    return min(lower, upper), upper
