"""Fitness/fatigue state simulation (impulse-response EMA model).

CTL and ATL follow the daily recurrence

    new = old + (daily_load - old) * alpha

with alpha = 1 - e^(-1/42) for CTL and 1 - e^(-1/7) for ATL. A week's load is
spread evenly over its days, so a constant daily load lets the recurrence be
evaluated in closed form: after n days the value is
``daily + (start - daily) * (1 - alpha) ** n``.

References:
    Banister et al. (1975). A systems model of training for athletic
        performance. Aust J Sports Med 7:57-61.
    Coggan & Allen (2010). Training and Racing with a Power Meter, 2nd ed.
        (Performance Manager: CTL/ATL/TSB).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from projection_engine.models.enums import ATL_ALPHA, CTL_ALPHA


@dataclass(frozen=True)
class LoadState:
    """Fitness (CTL) and fatigue (ATL) at one instant."""

    ctl: float
    atl: float

    @property
    def tsb(self) -> float:
        """Form: CTL - ATL."""
        return self.ctl - self.atl


def _daily_load(weekly_load: float, days: int) -> float:
    return weekly_load / max(1, days)


def _decay(start: float, daily_load: float, days: int, alpha: float) -> float:
    if days <= 0:
        return start
    return daily_load + (start - daily_load) * (1.0 - alpha) ** days


def simulate_ctl(start_ctl: float, weekly_load: float, days: int) -> float:
    """CTL after *days* days of ``weekly_load / days`` per day.

    Args:
        start_ctl: CTL before the first day.
        weekly_load: Total load spread evenly over the days.
        days: Number of days to simulate; 0 returns *start_ctl*.

    Returns:
        Simulated CTL.
    """
    return _decay(start_ctl, _daily_load(weekly_load, days), days, CTL_ALPHA)


def simulate_atl(start_atl: float, weekly_load: float, days: int) -> float:
    """ATL after *days* days of ``weekly_load / days`` per day."""
    return _decay(start_atl, _daily_load(weekly_load, days), days, ATL_ALPHA)


def advance_state(state: LoadState, weekly_load: float, days: int) -> LoadState:
    """Advance CTL and ATL across one (possibly short) week."""
    return LoadState(
        ctl=simulate_ctl(state.ctl, weekly_load, days),
        atl=simulate_atl(state.atl, weekly_load, days),
    )


def daily_trajectory(state: LoadState, weekly_load: float, days: int) -> tuple[LoadState, ...]:
    """End-of-day states for each day of a week.

    Day *k* (1-indexed) equals simulating *k* days at the week's daily load,
    so the last entry matches ``advance_state(state, weekly_load, days)``.

    Args:
        state: State before the first day of the week.
        weekly_load: Applied load of the week.
        days: Days in the week (1-7).

    Returns:
        Tuple of ``days`` LoadState snapshots, oldest first.
    """
    if days <= 0:
        return ()
    daily = _daily_load(weekly_load, days)
    k = np.arange(1, days + 1, dtype=np.float64)
    ctl = daily + (state.ctl - daily) * (1.0 - CTL_ALPHA) ** k
    atl = daily + (state.atl - daily) * (1.0 - ATL_ALPHA) ** k
    return tuple(LoadState(ctl=float(c), atl=float(a)) for c, a in zip(ctl, atl))


def simulate_daily_loads(state: LoadState, daily_loads: Sequence[float]) -> pd.DataFrame:
    """Response of CTL/ATL/TSB to an arbitrary daily load series.

    Uses a pandas exponentially weighted mean seeded with the starting
    state, which is exactly the EMA recurrence above.

    Args:
        state: State before the first load.
        daily_loads: One load per day, oldest first.

    Returns:
        DataFrame with ``load``, ``ctl``, ``atl`` and ``tsb`` columns, one row
        per input day. Empty input yields an empty frame with those columns.
    """
    if len(daily_loads) == 0:
        return pd.DataFrame(columns=["load", "ctl", "atl", "tsb"], dtype=np.float64)

    loads = pd.Series(daily_loads, dtype=np.float64)
    ctl = pd.Series([state.ctl, *loads], dtype=np.float64).ewm(alpha=CTL_ALPHA, adjust=False).mean()
    atl = pd.Series([state.atl, *loads], dtype=np.float64).ewm(alpha=ATL_ALPHA, adjust=False).mean()

    frame = pd.DataFrame(
        {
            "load": loads.to_numpy(),
            "ctl": ctl.iloc[1:].to_numpy(),
            "atl": atl.iloc[1:].to_numpy(),
        }
    )
    frame["tsb"] = frame["ctl"] - frame["atl"]
    return frame
