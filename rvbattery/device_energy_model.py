"""
rvbattery/device_energy_model.py
================================
Battery Energy Source — Device Energy Models

A device energy model is a consumer attached to one energy source.  The
source polls it for its present current draw on every update and calls it
back when the remaining energy changes and when the source is depleted.

Ownership:
    - The source keeps the device in its registry under an integer key.
    - The device keeps that key and a weak reference to the source; the
      source's ``dispose()`` detaches every device explicitly.
"""

from __future__ import annotations

import abc
import logging
import weakref
from typing import TYPE_CHECKING, Callable

from rvbattery.scheduler import Simulator

if TYPE_CHECKING:
    from rvbattery.energy_source import EnergySource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class DeviceEnergyModel(abc.ABC):
    """Consumer that reports a current draw to its energy source."""

    def __init__(self) -> None:
        self._source_ref: weakref.ref[EnergySource] | None = None
        self._registry_key: int | None = None

    @property
    def energy_source(self) -> EnergySource | None:
        """Source this device drains, or None when detached."""
        if self._source_ref is None:
            return None
        return self._source_ref()

    @property
    def registry_key(self) -> int | None:
        return self._registry_key

    def _attach(self, source: EnergySource, key: int) -> None:
        self._source_ref = weakref.ref(source)
        self._registry_key = key

    def _detach(self) -> None:
        self._source_ref = None
        self._registry_key = None

    @abc.abstractmethod
    def get_current_a(self) -> float:
        """Present current draw [A]."""

    @abc.abstractmethod
    def handle_energy_depletion(self) -> None:
        """Called once when the source enters the depleted state."""

    def handle_energy_changed(self) -> None:
        """Called after every recomputation of the source."""


# ---------------------------------------------------------------------------
# Constant-draw device
# ---------------------------------------------------------------------------

class SimpleDeviceEnergyModel(DeviceEnergyModel):
    """Device drawing a constant current set explicitly by its owner.

    Every current change first brings the source up to date, so the interval
    that just ended is charged at the old current.

    Args:
        simulator:          Clock shared with the source.
        depletion_callback: Called with no arguments when the source is
                            depleted.

    Example:
        >>> sim = Simulator()
        >>> device = SimpleDeviceEnergyModel(sim)
        >>> device.set_current_a(0.5)
        >>> device.get_current_a()
        0.5
    """

    def __init__(
        self,
        simulator: Simulator,
        depletion_callback: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self._simulator: Simulator = simulator
        self._depletion_callback = depletion_callback
        self._current_a: float = 0.0
        self._total_energy_consumption_j: float = 0.0
        self._last_update_time: float = simulator.now()
        self.depleted: bool = False

    def set_current_a(self, current_a: float) -> None:
        """Change the drawn current to ``current_a`` amperes from now on.

        Raises:
            ValueError: If ``current_a`` is negative.
        """
        if current_a < 0.0:
            raise ValueError(f"Current must be non-negative; received current_a={current_a!r}")

        now = self._simulator.now()
        source = self.energy_source
        if source is not None:
            duration_s = now - self._last_update_time
            self._total_energy_consumption_j += (
                duration_s * self._current_a * source.get_supply_voltage()
            )
            source.update_energy_source()

        self._last_update_time = now
        self._current_a = current_a
        logger.debug("device %s: current set to %.4f A at t=%.3f s", self._registry_key, current_a, now)

    def get_current_a(self) -> float:
        return self._current_a

    def get_total_energy_consumption(self) -> float:
        """Energy drawn so far, current × voltage × time [J]."""
        source = self.energy_source
        if source is None:
            return self._total_energy_consumption_j
        duration_s = self._simulator.now() - self._last_update_time
        return self._total_energy_consumption_j + duration_s * self._current_a * source.get_supply_voltage()

    def handle_energy_depletion(self) -> None:
        self.depleted = True
        logger.info("device %s: energy source depleted at t=%.3f s", self._registry_key, self._simulator.now())
        if self._depletion_callback is not None:
            self._depletion_callback()

    def __repr__(self) -> str:
        return f"SimpleDeviceEnergyModel(current_a={self._current_a!r})"
