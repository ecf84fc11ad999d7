"""Rounding helpers shared by the weighting and pattern calculations"""
import math


def round_half_up(value: float, places: int = 2) -> float:
    """
    Round to a number of decimal places, halves away from zero.

    Python's round() rounds halves to even; report weights and ratios
    round 0.125 up to 0.13.
    """
    factor = 10 ** places
    if value < 0:
        return -math.floor(-value * factor + 0.5) / factor
    return math.floor(value * factor + 0.5) / factor
