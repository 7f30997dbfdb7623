"""
rvbattery/li_ion_battery.py
===========================
Battery Energy Source — Li-Ion Cell with RV Charge Accounting

Li-Ion energy source whose consumed charge is tracked with the RV discharge
transform and whose terminal voltage follows the datasheet multi-zone curve.

Per update:
    i       = Σ device currents                       [A]
    history ← i · 1000                                [mA]
    α(now)  = RV transform of the history              [mA·min]
    ΔE      = (α(now) − α_last) · V_prev               [J]
    it      = α(now) / 3600                            drained capacity
    V       = Li-Ion curve(i, it)

Only an increase of alpha since the previous update is taken from the
remaining energy.  Alpha falls while the cell rests (charge recovery); that
shows up in the voltage and is never credited back as energy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rvbattery.config import (
    INITIAL_ENERGY_J,
    LOW_BATTERY_THRESHOLD,
    ENERGY_UPDATE_INTERVAL_S,
    INITIAL_CELL_VOLTAGE,
    NOMINAL_CELL_VOLTAGE,
    EXP_CELL_VOLTAGE,
    RATED_CAPACITY_AH,
    NOMINAL_CAPACITY_AH,
    EXP_CAPACITY_AH,
    INTERNAL_RESISTANCE_OHM,
    TYPICAL_CURRENT_A,
    THRESHOLD_VOLTAGE,
    LOAD_SCALE_MA,
    RV_BETA,
)
from rvbattery.discharge import compute_alpha
from rvbattery.energy_source import EnergySource
from rvbattery.load_history import LoadHistory
from rvbattery.scheduler import Simulator
from rvbattery.voltage_model import LiIonCurve, li_ion_cell_voltage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class LiIonBatteryConfig:
    """Parameters of a :class:`LiIonBatteryModel`.

    Attributes:
        initial_energy_j:        Energy stored at start [J].
        low_battery_threshold:   Depletion threshold, fraction of initial energy.
        initial_cell_voltage:    Fully charged cell voltage [V].
        nominal_cell_voltage:    Voltage at the end of the nominal zone [V].
        exp_cell_voltage:        Voltage at the end of the exponential zone [V].
        rated_capacity_ah:       Rated capacity [Ah].
        nominal_capacity_ah:     Capacity at the end of the nominal zone [Ah].
        exp_capacity_ah:         Capacity at the end of the exponential zone [Ah].
        internal_resistance_ohm: Internal resistance [Ω].
        typical_current_a:       Current the curves were fitted at [A].
        threshold_voltage:       Depletion voltage [V].
        update_interval_s:       Period of the energy update [s].
        beta:                    RV diffusion rate β (1/√min).
    """
    initial_energy_j:        float = INITIAL_ENERGY_J
    low_battery_threshold:   float = LOW_BATTERY_THRESHOLD
    initial_cell_voltage:    float = INITIAL_CELL_VOLTAGE
    nominal_cell_voltage:    float = NOMINAL_CELL_VOLTAGE
    exp_cell_voltage:        float = EXP_CELL_VOLTAGE
    rated_capacity_ah:       float = RATED_CAPACITY_AH
    nominal_capacity_ah:     float = NOMINAL_CAPACITY_AH
    exp_capacity_ah:         float = EXP_CAPACITY_AH
    internal_resistance_ohm: float = INTERNAL_RESISTANCE_OHM
    typical_current_a:       float = TYPICAL_CURRENT_A
    threshold_voltage:       float = THRESHOLD_VOLTAGE
    update_interval_s:       float = ENERGY_UPDATE_INTERVAL_S
    beta:                    float = RV_BETA

    def __post_init__(self) -> None:
        if self.initial_energy_j < 0.0:
            raise ValueError(
                f"Initial energy must be non-negative; received initial_energy_j={self.initial_energy_j!r}"
            )
        if not (0.0 <= self.low_battery_threshold <= 1.0):
            raise ValueError(
                f"Low battery threshold must be in [0.0, 1.0]; "
                f"received low_battery_threshold={self.low_battery_threshold!r}"
            )
        if self.update_interval_s <= 0.0:
            raise ValueError(
                f"Update interval must be positive; received update_interval_s={self.update_interval_s!r}"
            )
        if self.beta < 0.0:
            raise ValueError(f"Beta must be non-negative; received beta={self.beta!r}")
        # validates the capacity and resistance ranges
        self.curve()

    def curve(self) -> LiIonCurve:
        """Datasheet curve described by this configuration."""
        return LiIonCurve(
            e_full=self.initial_cell_voltage,
            e_nom=self.nominal_cell_voltage,
            e_exp=self.exp_cell_voltage,
            q_rated=self.rated_capacity_ah,
            q_nom=self.nominal_capacity_ah,
            q_exp=self.exp_capacity_ah,
            internal_resistance=self.internal_resistance_ohm,
            typical_current=self.typical_current_a,
        )


# ---------------------------------------------------------------------------
# Li-Ion battery model
# ---------------------------------------------------------------------------

class LiIonBatteryModel(EnergySource):
    """Li-Ion energy source driven by the RV transform and the datasheet curve.

    Args:
        simulator: Clock shared with devices and telemetry.
        config:    Cell parameters.  Defaults to :class:`LiIonBatteryConfig`.
        node_id:   Label of the owning node, used in log records.

    Example:
        >>> sim = Simulator()
        >>> battery = LiIonBatteryModel(sim)
        >>> battery.initialize()
        >>> battery.get_remaining_energy()
        31752.0
    """

    def __init__(
        self,
        simulator: Simulator,
        config: LiIonBatteryConfig | None = None,
        node_id: int | None = None,
    ) -> None:
        config = config if config is not None else LiIonBatteryConfig()
        super().__init__(
            simulator,
            initial_energy_j=config.initial_energy_j,
            low_battery_threshold=config.low_battery_threshold,
            min_voltage_threshold=config.threshold_voltage,
            update_interval_s=config.update_interval_s,
            supply_voltage_v=config.initial_cell_voltage,
            node_id=node_id,
        )
        self._config: LiIonBatteryConfig = config
        self._curve: LiIonCurve = config.curve()
        self._beta: float = config.beta
        self._history: LoadHistory = LoadHistory(start_time=simulator.now())
        self._last_update_alpha: float = 0.0
        self._drained_capacity_ah: float = 0.0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> LiIonBatteryConfig:
        return self._config

    @property
    def curve(self) -> LiIonCurve:
        return self._curve

    @property
    def beta(self) -> float:
        """RV diffusion rate β (1/√min).  Must be non-negative."""
        return self._beta

    @beta.setter
    def beta(self, value: float) -> None:
        if value < 0.0:
            raise ValueError(f"Beta must be non-negative; received beta={value!r}")
        self._beta = value

    @property
    def load_history(self) -> LoadHistory:
        return self._history

    @property
    def last_update_alpha(self) -> float:
        """Alpha computed by the previous update."""
        return self._last_update_alpha

    @property
    def drained_capacity_ah(self) -> float:
        return self._drained_capacity_ah

    # ------------------------------------------------------------------
    # Energy update
    # ------------------------------------------------------------------

    def _calculate_remaining_energy(self) -> None:
        total_current_a = self._calculate_total_current()
        now = self._simulator.now()

        self._history.record(total_current_a * LOAD_SCALE_MA, now)
        calculated_alpha = compute_alpha(self._history, now, self._beta)

        # energy = Δalpha · voltage, at the voltage of the previous update
        energy_to_decrease_j = max(calculated_alpha - self._last_update_alpha, 0.0) * self._supply_voltage_v
        self._set_remaining_energy(self._remaining_energy_j - energy_to_decrease_j)

        self._drained_capacity_ah = calculated_alpha / 3600
        self._supply_voltage_v = li_ion_cell_voltage(
            self._curve, total_current_a, self._drained_capacity_ah
        )
        self._last_update_alpha = calculated_alpha

        logger.debug(
            "%s: t=%.3f s i=%.4f A alpha=%.4f remaining=%.4f J voltage=%.4f V",
            self, now, total_current_a, calculated_alpha,
            self._remaining_energy_j, self._supply_voltage_v,
        )
