"""
rvbattery/rv_battery.py
=======================
Battery Energy Source — Parametric RV Battery

Energy source described only by the RV diffusion model: a charge capacity
alpha, a diffusion rate beta and a linear voltage curve between the
open-circuit and cutoff voltages.

Per update:
    i       = Σ device currents                        [A]
    α(now)  = RV transform of the load history          [A·min]
    level   = max(0, 1 − α(now) / α_capacity)
    ΔE      = E_initial · max(0, α(now) − α_last) / α_capacity  [J]
    V       = V_cutoff + (V_oc − V_cutoff) · level
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rvbattery.config import (
    INITIAL_ENERGY_J,
    LOW_BATTERY_THRESHOLD,
    ENERGY_UPDATE_INTERVAL_S,
    RV_ALPHA,
    RV_BETA,
    RV_NUM_OF_TERMS,
    RV_OPEN_CIRCUIT_VOLTAGE,
    RV_CUTOFF_VOLTAGE,
)
from rvbattery.discharge import compute_alpha
from rvbattery.energy_source import EnergySource
from rvbattery.load_history import LoadHistory
from rvbattery.scheduler import Simulator
from rvbattery.voltage_model import rv_battery_level, rv_cell_voltage

logger = logging.getLogger(__name__)


@dataclass
class RvBatteryConfig:
    """Parameters of a :class:`RvBatteryModel`.

    ``threshold_voltage`` defaults to the cutoff voltage when left as None.
    """
    initial_energy_j:      float = INITIAL_ENERGY_J
    low_battery_threshold: float = LOW_BATTERY_THRESHOLD
    alpha:                 float = RV_ALPHA
    beta:                  float = RV_BETA
    num_of_terms:          int = RV_NUM_OF_TERMS
    open_circuit_voltage:  float = RV_OPEN_CIRCUIT_VOLTAGE
    cutoff_voltage:        float = RV_CUTOFF_VOLTAGE
    threshold_voltage:     float | None = None
    update_interval_s:     float = ENERGY_UPDATE_INTERVAL_S

    def __post_init__(self) -> None:
        if self.alpha <= 0.0:
            raise ValueError(f"Alpha must be positive; received alpha={self.alpha!r}")
        if self.beta < 0.0:
            raise ValueError(f"Beta must be non-negative; received beta={self.beta!r}")
        if self.num_of_terms < 1:
            raise ValueError(
                f"Number of series terms must be at least 1; received num_of_terms={self.num_of_terms!r}"
            )
        if self.open_circuit_voltage <= self.cutoff_voltage:
            raise ValueError(
                f"Open-circuit voltage must exceed the cutoff voltage; received "
                f"open_circuit_voltage={self.open_circuit_voltage!r}, "
                f"cutoff_voltage={self.cutoff_voltage!r}"
            )
        if self.threshold_voltage is None:
            self.threshold_voltage = self.cutoff_voltage


class RvBatteryModel(EnergySource):
    """Energy source following the parametric RV battery model.

    Args:
        simulator: Clock shared with devices and telemetry.
        config:    Model parameters.  Defaults to :class:`RvBatteryConfig`.
        node_id:   Label of the owning node, used in log records.
    """

    def __init__(
        self,
        simulator: Simulator,
        config: RvBatteryConfig | None = None,
        node_id: int | None = None,
    ) -> None:
        config = config if config is not None else RvBatteryConfig()
        super().__init__(
            simulator,
            initial_energy_j=config.initial_energy_j,
            low_battery_threshold=config.low_battery_threshold,
            min_voltage_threshold=config.threshold_voltage,
            update_interval_s=config.update_interval_s,
            supply_voltage_v=config.open_circuit_voltage,
            node_id=node_id,
        )
        self._alpha: float = config.alpha
        self._beta: float = config.beta
        self._num_of_terms: int = config.num_of_terms
        self._open_circuit_voltage: float = config.open_circuit_voltage
        self._cutoff_voltage: float = config.cutoff_voltage
        self._history: LoadHistory = LoadHistory(start_time=simulator.now())
        self._last_update_alpha: float = 0.0
        self._battery_level: float = 1.0

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def alpha(self) -> float:
        """Charge capacity of the cell (A·min)."""
        return self._alpha

    @alpha.setter
    def alpha(self, value: float) -> None:
        if value <= 0.0:
            raise ValueError(f"Alpha must be positive; received alpha={value!r}")
        self._alpha = value

    @property
    def beta(self) -> float:
        return self._beta

    @beta.setter
    def beta(self, value: float) -> None:
        if value < 0.0:
            raise ValueError(f"Beta must be non-negative; received beta={value!r}")
        self._beta = value

    @property
    def num_of_terms(self) -> int:
        return self._num_of_terms

    @num_of_terms.setter
    def num_of_terms(self, value: int) -> None:
        if value < 1:
            raise ValueError(f"Number of series terms must be at least 1; received num_of_terms={value!r}")
        self._num_of_terms = value

    @property
    def open_circuit_voltage(self) -> float:
        return self._open_circuit_voltage

    @open_circuit_voltage.setter
    def open_circuit_voltage(self, value: float) -> None:
        if value <= self._cutoff_voltage:
            raise ValueError(
                f"Open-circuit voltage must exceed the cutoff voltage {self._cutoff_voltage!r}; "
                f"received open_circuit_voltage={value!r}"
            )
        self._open_circuit_voltage = value

    @property
    def cutoff_voltage(self) -> float:
        return self._cutoff_voltage

    @cutoff_voltage.setter
    def cutoff_voltage(self, value: float) -> None:
        if value >= self._open_circuit_voltage:
            raise ValueError(
                f"Cutoff voltage must be below the open-circuit voltage "
                f"{self._open_circuit_voltage!r}; received cutoff_voltage={value!r}"
            )
        self._cutoff_voltage = value

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def battery_level(self) -> float:
        """Fraction of the RV capacity available at the last update."""
        return self._battery_level

    @property
    def load_history(self) -> LoadHistory:
        return self._history

    @property
    def last_update_alpha(self) -> float:
        return self._last_update_alpha

    def _calculate_remaining_energy(self) -> None:
        total_current_a = self._calculate_total_current()
        now = self._simulator.now()

        self._history.record(total_current_a, now)
        calculated_alpha = compute_alpha(self._history, now, self._beta, self._num_of_terms)

        consumed = max(calculated_alpha - self._last_update_alpha, 0.0)
        self._set_remaining_energy(
            self._remaining_energy_j - self._initial_energy_j * consumed / self._alpha
        )

        self._battery_level = rv_battery_level(calculated_alpha, self._alpha)
        self._supply_voltage_v = rv_cell_voltage(
            calculated_alpha, self._alpha, self._open_circuit_voltage, self._cutoff_voltage
        )
        self._last_update_alpha = calculated_alpha

        logger.debug(
            "%s: t=%.3f s i=%.4f A alpha=%.4f level=%.5f voltage=%.4f V",
            self, now, total_current_a, calculated_alpha,
            self._battery_level, self._supply_voltage_v,
        )
