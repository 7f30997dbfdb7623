"""
rvbattery/discharge.py
======================
Battery Energy Source — RV Discharge Transform

Pure functions implementing the Rakhmatov–Vrudhula (RV) analytical battery
model.  The model maps a piecewise-constant load history onto a single
scalar alpha: the charge that must have been available at t=0 for the cell
to sustain that history until time t.

Segment contribution (all times converted to minutes):

    Δ1 = (t − s_k)   / 60
    Δ2 = (t − s_k−1) / 60
    δ  = (s_k − s_k−1) / 60

    A(t, s_k, s_k−1, β) = δ + 2 · Σ_{m=1..N} [e^(−β²m²Δ1) − e^(−β²m²Δ2)] / (β²m²)

Total:

    α(t) = Σ_k L_k−1 · A(t, s_k, s_k−1, β)

Rules:
    - No state, no I/O.
    - The series is truncated to ``num_terms`` terms (10 by default).
"""

from __future__ import annotations

import math

from rvbattery.config import RV_NUM_OF_TERMS
from rvbattery.load_history import LoadHistory


# ---------------------------------------------------------------------------
# Segment contribution
# ---------------------------------------------------------------------------

def rv_a_function(
    t: float,
    sk: float,
    sk_1: float,
    beta: float,
    num_terms: int = RV_NUM_OF_TERMS,
) -> float:
    """Compute the RV contribution of one constant-load segment.

    Args:
        t:         Query time [s].
        sk:        End of the segment [s].
        sk_1:      Start of the segment [s].
        beta:      Diffusion rate β (1/√min).  Must be non-negative.
        num_terms: Number of series terms.  Must be at least 1.

    Returns:
        A(t, s_k, s_k−1, β) in minutes.  Multiply by the segment load to get
        its share of alpha.

    Raises:
        ValueError: If ``beta`` is negative or ``num_terms`` < 1.

    Example:
        >>> rv_a_function(60.0, 60.0, 0.0, 0.0)   # β = 0: every term tends to δ
        21.0
    """
    if beta < 0.0:
        raise ValueError(f"Beta must be non-negative; received beta={beta!r}")
    if num_terms < 1:
        raise ValueError(
            f"Number of series terms must be at least 1; received num_terms={num_terms!r}"
        )

    first_delta = (t - sk) / 60
    second_delta = (t - sk_1) / 60
    delta = (sk - sk_1) / 60

    total = 0.0
    for m in range(1, num_terms + 1):
        square = beta * beta * m * m
        total += _series_term(square, first_delta, second_delta)
    return delta + 2 * total


def _series_term(square: float, first_delta: float, second_delta: float) -> float:
    """[e^(−x·Δ1) − e^(−x·Δ2)] / x, continued to Δ2 − Δ1 at x = 0."""
    if square == 0.0:
        return second_delta - first_delta
    return (math.exp(-square * first_delta) - math.exp(-square * second_delta)) / square


# ---------------------------------------------------------------------------
# Alpha over a load history
# ---------------------------------------------------------------------------

def compute_alpha(
    history: LoadHistory,
    t: float,
    beta: float,
    num_terms: int = RV_NUM_OF_TERMS,
) -> float:
    """Compute alpha at time ``t`` over every segment of ``history``.

    Equation:
        α(t) = Σ_k L_k−1 · A(t, s_k, s_k−1, β)

    A history with no recorded load yields 0.0.  A single-segment history
    reduces to one term, L0 · A(t, s1, s0, β).

    Args:
        history:   Recorded load history.  Load units carry into alpha.
        t:         Query time [s]; normally the history's last sample time.
        beta:      Diffusion rate β (1/√min).
        num_terms: Number of series terms.

    Returns:
        Alpha in load-units × minutes.
    """
    if len(history.loads) != len(history.timestamps) - 1:
        raise ValueError(
            f"Load history is inconsistent: {len(history.loads)} loads for "
            f"{len(history.timestamps)} timestamps"
        )
    segments = history.segments()
    if not segments:
        return 0.0
    if len(segments) == 1:
        only = segments[0]
        return only.load * rv_a_function(t, only.end_s, only.start_s, beta, num_terms)

    alpha = 0.0
    for segment in segments:
        alpha += segment.load * rv_a_function(t, segment.end_s, segment.start_s, beta, num_terms)
    return alpha


def constant_load_alpha(
    load: float,
    duration_s: float,
    beta: float,
    num_terms: int = RV_NUM_OF_TERMS,
) -> float:
    """Closed-form alpha for ``load`` held from 0 to ``duration_s``.

    Equation:
        α = L · [ T + 2 · Σ_{m=1..N} (1 − e^(−β²m²T)) / (β²m²) ],  T in minutes

    Example:
        >>> constant_load_alpha(2.0, 120.0, 0.0)
        84.0
    """
    if beta < 0.0:
        raise ValueError(f"Beta must be non-negative; received beta={beta!r}")
    minutes = duration_s / 60
    series = sum(
        _series_term((beta * m) ** 2, 0.0, minutes)
        for m in range(1, num_terms + 1)
    )
    return load * (minutes + 2 * series)
