"""Half-up rounding shared by scores, loads and recovery days.

Python's ``round`` rounds halves to even (``round(2.5) == 2``); scores and
whole-number loads here round halves up so ``72.5`` scores as ``73``.
"""

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round *value* to *ndigits* decimals with halves going up."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def round_half_up_int(value: float) -> int:
    """Nearest integer with halves going up (``2.5 -> 3``, ``-2.5 -> -2``)."""
    return int(math.floor(value + 0.5))
