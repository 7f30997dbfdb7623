"""
rvbattery/voltage_model.py
==========================
Battery Energy Source — Terminal Voltage Curves

Pure functions mapping drained charge onto cell terminal voltage.

Li-Ion multi-zone curve (datasheet fit with exponential, nominal and knee
zones):

    A  = E_full − E_exp
    B  = 3 / Q_exp
    K  = | (E_full − E_nom + A·(e^(−B·Q_nom) − 1)) · (Q_rated − Q_nom) / Q_nom |
    E0 = E_full + K + R·I_typ − A
    E  = E0 − K·Q_rated / (Q_rated − it) + A·e^(−B·it)
    V  = E − R·i

Parametric RV curve:

    level = max(0, 1 − α / α_capacity)
    V     = V_cutoff + (V_oc − V_cutoff) · level

Rules:
    - Every function is a pure, deterministic mapping of its arguments.
    - No simulation state, no I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from rvbattery.config import (
    INITIAL_CELL_VOLTAGE,
    NOMINAL_CELL_VOLTAGE,
    EXP_CELL_VOLTAGE,
    RATED_CAPACITY_AH,
    NOMINAL_CAPACITY_AH,
    EXP_CAPACITY_AH,
    INTERNAL_RESISTANCE_OHM,
    TYPICAL_CURRENT_A,
)


# ---------------------------------------------------------------------------
# Li-Ion curve parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiIonCurve:
    """Datasheet parameters of a Li-Ion discharge curve.

    Attributes:
        e_full:              Fully charged cell voltage [V].
        e_nom:               Voltage at the end of the nominal zone [V].
        e_exp:               Voltage at the end of the exponential zone [V].
        q_rated:             Rated capacity [Ah].
        q_nom:               Capacity at the end of the nominal zone [Ah].
        q_exp:               Capacity at the end of the exponential zone [Ah].
        internal_resistance: Cell internal resistance [Ω].
        typical_current:     Discharge current the curve was fitted at [A].
    """
    e_full:              float = INITIAL_CELL_VOLTAGE
    e_nom:               float = NOMINAL_CELL_VOLTAGE
    e_exp:               float = EXP_CELL_VOLTAGE
    q_rated:             float = RATED_CAPACITY_AH
    q_nom:               float = NOMINAL_CAPACITY_AH
    q_exp:               float = EXP_CAPACITY_AH
    internal_resistance: float = INTERNAL_RESISTANCE_OHM
    typical_current:     float = TYPICAL_CURRENT_A

    def __post_init__(self) -> None:
        if self.q_nom <= 0.0 or self.q_exp <= 0.0:
            raise ValueError(
                f"Zone capacities must be positive; received "
                f"q_nom={self.q_nom!r}, q_exp={self.q_exp!r}"
            )
        if self.q_rated <= self.q_nom:
            raise ValueError(
                f"Rated capacity must exceed the nominal capacity; received "
                f"q_rated={self.q_rated!r}, q_nom={self.q_nom!r}"
            )
        if self.internal_resistance < 0.0:
            raise ValueError(
                f"Internal resistance must be non-negative; "
                f"received internal_resistance={self.internal_resistance!r}"
            )


# ---------------------------------------------------------------------------
# Li-Ion multi-zone curve
# ---------------------------------------------------------------------------

def li_ion_polarization_constant(curve: LiIonCurve) -> float:
    """Slope K of the polarisation curve [V]."""
    a = curve.e_full - curve.e_exp
    b = 3 / curve.q_exp
    return abs(
        (curve.e_full - curve.e_nom + a * (math.exp(-b * curve.q_nom) - 1))
        * (curve.q_rated - curve.q_nom) / curve.q_nom
    )


def li_ion_cell_voltage(curve: LiIonCurve, current_a: float, drained_ah: float) -> float:
    """Compute the terminal voltage of a Li-Ion cell.

    Args:
        curve:      Datasheet curve parameters.
        current_a:  Instantaneous total current drawn from the cell [A].
        drained_ah: Charge drained so far, ``it`` [Ah].

    Returns:
        Terminal voltage V [V], never negative.  Once the drained charge
        reaches the rated capacity the curve has no physical meaning and 0.0
        is returned.

    Example:
        >>> round(li_ion_cell_voltage(LiIonCurve(), 0.0, 0.0), 4)
        4.2434
    """
    if drained_ah >= curve.q_rated:
        return 0.0

    a = curve.e_full - curve.e_exp
    b = 3 / curve.q_exp
    k = li_ion_polarization_constant(curve)

    # constant voltage
    e0 = curve.e_full + k + curve.internal_resistance * curve.typical_current - a

    e = e0 - k * curve.q_rated / (curve.q_rated - drained_ah) + a * math.exp(-b * drained_ah)
    return max(0.0, e - curve.internal_resistance * current_a)


# ---------------------------------------------------------------------------
# Parametric RV curve
# ---------------------------------------------------------------------------

def rv_battery_level(alpha: float, alpha_capacity: float) -> float:
    """Fraction of the RV capacity still available, clamped to [0.0, 1.0].

    Raises:
        ValueError: If ``alpha_capacity`` is not positive.

    Example:
        >>> rv_battery_level(8805.0, 35220.0)
        0.75
    """
    if alpha_capacity <= 0.0:
        raise ValueError(
            f"RV alpha capacity must be positive; received alpha_capacity={alpha_capacity!r}"
        )
    return min(1.0, max(0.0, 1.0 - alpha / alpha_capacity))


def rv_cell_voltage(
    alpha: float,
    alpha_capacity: float,
    open_circuit_voltage: float,
    cutoff_voltage: float,
) -> float:
    """Compute the RV terminal voltage from the consumed alpha.

    The voltage falls linearly with the battery level from the open-circuit
    voltage (fresh cell) to the cutoff voltage (level 0).

    Example:
        >>> rv_cell_voltage(17610.0, 35220.0, 4.0, 3.0)
        3.5
    """
    level = rv_battery_level(alpha, alpha_capacity)
    return cutoff_voltage + (open_circuit_voltage - cutoff_voltage) * level
