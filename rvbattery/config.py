"""
rvbattery/config.py
===================
Battery Energy Source — Default Cell Constants

Default parameter set for the Li-Ion discharge curve and the RV
(Rakhmatov–Vrudhula) diffusion model.  The Li-Ion values describe a
Panasonic CGR18650DA cell as read off its manufacturer datasheet.

Rules:
    - No calculations or derived quantities here.
    - Voltages in V, capacities in Ah, currents in A, energy in J, time in s.
    - RV alpha is expressed in A·min (the series is evaluated in minutes).
    - No simulation logic or conditional expressions.
"""


# ---------------------------------------------------------------------------
# Energy source — shared
# ---------------------------------------------------------------------------

INITIAL_ENERGY_J: float = 31752.0
"""Initial energy stored in the cell (J).

31752 J = 3.6 V nominal × 2.45 Ah rated × 3600 s/h.
"""

LOW_BATTERY_THRESHOLD: float = 0.10
"""Fraction of the initial energy at or below which the source is depleted."""

ENERGY_UPDATE_INTERVAL_S: float = 1.0
"""Time between two consecutive periodic energy updates (s)."""


# ---------------------------------------------------------------------------
# Li-Ion discharge curve — datasheet zones
# ---------------------------------------------------------------------------

INITIAL_CELL_VOLTAGE: float = 4.05     # Volts — fully charged cell
NOMINAL_CELL_VOLTAGE: float = 3.6      # Volts — end of nominal zone
EXP_CELL_VOLTAGE:     float = 3.6      # Volts — end of exponential zone

RATED_CAPACITY_AH: float = 2.45        # Ah
NOMINAL_CAPACITY_AH: float = 1.1       # Ah — end of nominal zone
EXP_CAPACITY_AH: float = 1.2           # Ah — end of exponential zone

INTERNAL_RESISTANCE_OHM: float = 0.083
"""Internal resistance of the cell (Ω)."""

TYPICAL_CURRENT_A: float = 2.33
"""Typical discharge current used to fit the datasheet curves (A)."""

THRESHOLD_VOLTAGE: float = 3.3
"""Minimum terminal voltage; at or below it the cell is depleted (V)."""

LOAD_SCALE_MA: float = 1000.0
"""Amperes → milliamps factor applied to loads recorded by the Li-Ion source."""


# ---------------------------------------------------------------------------
# RV diffusion model
# ---------------------------------------------------------------------------

RV_ALPHA: float = 35220.0
"""Battery capacity in the RV model (A·min)."""

RV_BETA: float = 0.637
"""Diffusion rate of the active material (1/√min).  Must be non-negative."""

RV_NUM_OF_TERMS: int = 10
"""Number of terms of the truncated infinite series."""

RV_OPEN_CIRCUIT_VOLTAGE: float = 4.1   # Volts — fresh cell, no load
RV_CUTOFF_VOLTAGE: float = 3.0         # Volts — fully discharged cell
