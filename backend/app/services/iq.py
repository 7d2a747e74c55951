"""Percentile to IQ mapping.

The baseline IQ is read off a normal distribution (mean 100, sd 15) using
Acklam's rational approximation of the inverse standard normal CDF. For the
comprehensive test type the baseline is blended with the raw score, accuracy
and how quickly the test was finished.

The coefficients below are displayed values on the leaderboard and must not be
replaced by another approximation without re-checking the reference points
(percentile 50 -> 100, percentile 84.13 -> 115).
"""

from __future__ import annotations

import math

IQ_MIN = 70
IQ_MAX = 160

# Values returned at the percentile extremes.
IQ_AT_ZERO_PERCENTILE = 70
IQ_AT_FULL_PERCENTILE = 130

_A = (-39.69683028665, 220.9460984245, -275.9285104470, 138.3577518673, -30.66479806615, 2.506628277459)
_B = (-54.47609879822, 161.5858368580, -155.6989798599, 66.80131188772, -13.28068155289)
_C = (-0.0077848940024, -0.3223964580411, -2.4007582771618, -2.5497325393437, 4.3746641414650, 2.9381639826988)
_D = (0.0077846957090, 0.3224671290700, 2.4451341371430, 3.7544086619074)

P_LOW = 0.02425
P_HIGH = 1 - P_LOW


def _tail(q: float) -> float:
    c1, c2, c3, c4, c5, c6 = _C
    d1, d2, d3, d4 = _D
    return (((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6) / ((((d1 * q + d2) * q + d3) * q + d4) * q + 1)


def inv_norm(p: float) -> float:
    """Inverse standard normal CDF for 0 < p < 1."""

    if not 0.0 < p < 1.0:
        raise ValueError(f"p must be in (0, 1), got {p!r}")

    if p < P_LOW:
        return _tail(math.sqrt(-2 * math.log(p)))
    if p > P_HIGH:
        return -_tail(math.sqrt(-2 * math.log(1 - p)))

    a1, a2, a3, a4, a5, a6 = _A
    b1, b2, b3, b4, b5 = _B
    q = p - 0.5
    r = q * q
    return (
        (((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6)
        * q
        / (((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1)
    )


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def base_iq(percentile: float) -> int:
    if percentile <= 0:
        return IQ_AT_ZERO_PERCENTILE
    if percentile >= 100:
        return IQ_AT_FULL_PERCENTILE
    z = inv_norm(percentile / 100)
    return int(_clamp(round(100 + 15 * z), IQ_MIN, IQ_MAX))


def time_component(time_taken: float, time_limit: float) -> float:
    """15 points under half the limit, 5 points past 90%, linear in between."""

    if not time_limit or time_limit <= 0:
        return 5.0
    ratio = max(0.0, float(time_taken)) / float(time_limit)
    if ratio < 0.5:
        return 15.0
    if ratio > 0.9:
        return 5.0
    return 15.0 - (ratio - 0.5) / 0.4 * 10.0


def enhanced_iq(
    *,
    percentile: float,
    score: float,
    accuracy: float,
    time_taken: float,
    time_limit: float,
) -> int:
    weighted = (
        0.4 * base_iq(percentile)
        + 0.3 * (float(score) / 100 * 100)
        + 0.2 * (float(accuracy) / 100 * 100)
        + time_component(time_taken, time_limit)
    )
    return int(round(_clamp(70 + weighted / 100 * 60, IQ_MIN, IQ_MAX)))
