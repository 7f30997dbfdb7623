"""
rvbattery/energy_source.py
==========================
Battery Energy Source — Periodic Update State Machine

Base class shared by every battery model.  It owns the remaining energy and
terminal voltage of one storage unit, keeps them current through a periodic
update driven by a :class:`~rvbattery.scheduler.Simulator`, and tells the
attached device energy models when the source is depleted.

States:
    ACTIVE    periodic updates running
    DEPLETED  terminal; reached once, never rescheduled

Update cycle (``update_energy_source``):
    1. skip if the simulator has finished
    2. cancel the pending periodic update
    3. recompute remaining energy and voltage   (subclass hook)
    4. record the update time, notify devices
    5. depletion check: energy ≤ threshold · initial  or  voltage ≤ V_min
    6. reschedule after ``update_interval_s`` while ACTIVE

Scope:
    - Single-threaded; every update runs inside a simulator callback or a
      direct call from the owner.
    - Remaining energy is clamped at 0.
"""

from __future__ import annotations

import enum
import itertools
import logging
from typing import TYPE_CHECKING, Callable

from rvbattery.scheduler import EventId, Simulator

if TYPE_CHECKING:
    from rvbattery.device_energy_model import DeviceEnergyModel

logger = logging.getLogger(__name__)

EnergyObserver = Callable[[float, float], None]


class SourceState(enum.Enum):
    ACTIVE = "active"
    DEPLETED = "depleted"


# ---------------------------------------------------------------------------
# Energy source
# ---------------------------------------------------------------------------

class EnergySource:
    """Stateful energy source updated periodically on a simulated clock.

    Subclasses implement :meth:`_calculate_remaining_energy`, which must
    bring ``_remaining_energy_j`` (through :meth:`_set_remaining_energy`) and
    ``_supply_voltage_v`` up to the current simulated time.

    Args:
        simulator:             Clock shared with devices and telemetry.
        initial_energy_j:      Energy stored at start [J].  Must be ≥ 0.
        low_battery_threshold: Fraction of the initial energy at or below
                               which the source is depleted, in [0.0, 1.0].
        min_voltage_threshold: Terminal voltage at or below which the
                               source is depleted [V].
        update_interval_s:     Period of the energy update [s].  Must be > 0.
        supply_voltage_v:      Terminal voltage before the first update [V].
        node_id:               Label of the owning node, used in log records.

    Raises:
        ValueError: If any argument is outside its valid range.
    """

    def __init__(
        self,
        simulator: Simulator,
        initial_energy_j: float,
        low_battery_threshold: float,
        min_voltage_threshold: float,
        update_interval_s: float,
        supply_voltage_v: float,
        node_id: int | None = None,
    ) -> None:
        if not (0.0 <= low_battery_threshold <= 1.0):
            raise ValueError(
                f"Low battery threshold must be in [0.0, 1.0]; "
                f"received low_battery_threshold={low_battery_threshold!r}"
            )

        self._simulator: Simulator = simulator
        self.node_id: int | None = node_id

        self._initial_energy_j: float = 0.0
        self._remaining_energy_j: float = 0.0
        self.initial_energy_j = initial_energy_j
        self._low_battery_threshold: float = low_battery_threshold
        self._min_voltage_threshold: float = min_voltage_threshold
        self._update_interval_s: float = 0.0
        self.update_interval_s = update_interval_s
        self._supply_voltage_v: float = supply_voltage_v

        self._start_time: float = simulator.now()
        self._last_update_time: float = simulator.now()
        self._energy_update_event: EventId | None = None
        self._state: SourceState = SourceState.ACTIVE
        self._depletion_time: float | None = None
        self._updating: bool = False

        self._devices: dict[int, DeviceEnergyModel] = {}
        self._device_keys = itertools.count()
        self._observers: dict[int, EnergyObserver] = {}
        self._observer_tokens = itertools.count()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Start the periodic energy update at the current simulated time."""
        logger.info("%s: starting periodic update every %.3f s", self, self._update_interval_s)
        self.update_energy_source()

    def dispose(self) -> None:
        """Cancel the pending update and detach every device energy model."""
        self._simulator.cancel(self._energy_update_event)
        self._energy_update_event = None
        for key in list(self._devices):
            self.remove_device_energy_model(key)
        self._observers.clear()
        logger.debug("%s: disposed", self)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_remaining_energy(self) -> float:
        """Remaining energy [J], brought up to date first."""
        self.update_energy_source()
        return self._remaining_energy_j

    def get_energy_fraction(self) -> float:
        """Remaining energy as a fraction of the initial energy."""
        self.update_energy_source()
        if self._initial_energy_j == 0.0:
            return 0.0
        return self._remaining_energy_j / self._initial_energy_j

    def get_supply_voltage(self) -> float:
        """Terminal voltage computed by the last update [V]."""
        return self._supply_voltage_v

    def decrease_remaining_energy(self, energy_j: float) -> None:
        """Remove ``energy_j`` joules from the source.

        Raises:
            ValueError: If ``energy_j`` is negative.
        """
        if energy_j < 0.0:
            raise ValueError(
                f"Energy to decrease must be non-negative; received energy_j={energy_j!r}"
            )
        self._set_remaining_energy(self._remaining_energy_j - energy_j)
        if self._state is SourceState.ACTIVE and self._is_exhausted():
            self._handle_energy_drained_event()

    def increase_remaining_energy(self, energy_j: float) -> None:
        """Add ``energy_j`` joules to the source.

        A depleted source stays depleted; the energy is still credited.

        Raises:
            ValueError: If ``energy_j`` is negative.
        """
        if energy_j < 0.0:
            raise ValueError(
                f"Energy to increase must be non-negative; received energy_j={energy_j!r}"
            )
        if self._state is SourceState.DEPLETED:
            logger.warning("%s: recharging a depleted source does not restart it", self)
        self._set_remaining_energy(self._remaining_energy_j + energy_j)

    def update_energy_source(self) -> None:
        """Recompute remaining energy and voltage at the current time.

        Calling it twice at the same simulated time changes nothing the
        second time.  Nested calls made from device notifications are
        ignored.  After the simulator has finished this is a no-op.
        """
        if self._simulator.is_finished() or self._updating:
            return

        self._updating = True
        try:
            self._simulator.cancel(self._energy_update_event)
            self._energy_update_event = None

            now = self._simulator.now()
            if now < self._last_update_time:
                raise RuntimeError(
                    f"Simulated time went backwards: now={now!r}, "
                    f"last update={self._last_update_time!r}"
                )

            self._calculate_remaining_energy()
            self._last_update_time = now
            self._notify_energy_changed()

            if self._state is SourceState.ACTIVE and self._is_exhausted():
                self._handle_energy_drained_event()

            if self._state is SourceState.ACTIVE:
                self._energy_update_event = self._simulator.schedule(
                    self._update_interval_s, self.update_energy_source
                )
        finally:
            self._updating = False

    # ------------------------------------------------------------------
    # Device energy model registry
    # ------------------------------------------------------------------

    def append_device_energy_model(self, device: DeviceEnergyModel) -> int:
        """Register ``device`` and return its registry key."""
        if device.energy_source is not None:
            raise ValueError(f"{device!r} is already attached to {device.energy_source!r}")
        key = next(self._device_keys)
        self._devices[key] = device
        device._attach(self, key)
        logger.debug("%s: attached device %d (%r)", self, key, device)
        return key

    def remove_device_energy_model(self, key: int) -> None:
        """Unregister the device stored under ``key``.

        Raises:
            KeyError: If no device is registered under ``key``.
        """
        device = self._devices.pop(key)
        device._detach()
        logger.debug("%s: detached device %d", self, key)

    def find_device_energy_models(self) -> list[DeviceEnergyModel]:
        return list(self._devices.values())

    # ------------------------------------------------------------------
    # Remaining-energy observers
    # ------------------------------------------------------------------

    def subscribe_remaining_energy(self, callback: EnergyObserver) -> int:
        """Call ``callback(old_j, new_j)`` whenever the remaining energy changes.

        Returns:
            Token to pass to :meth:`unsubscribe_remaining_energy`.
        """
        token = next(self._observer_tokens)
        self._observers[token] = callback
        return token

    def unsubscribe_remaining_energy(self, token: int) -> None:
        self._observers.pop(token, None)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def simulator(self) -> Simulator:
        return self._simulator

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def is_depleted(self) -> bool:
        return self._state is SourceState.DEPLETED

    @property
    def initial_energy_j(self) -> float:
        """Energy stored at start [J].  Setting it resets the remaining energy."""
        return self._initial_energy_j

    @initial_energy_j.setter
    def initial_energy_j(self, value: float) -> None:
        if value < 0.0:
            raise ValueError(f"Initial energy must be non-negative; received initial_energy_j={value!r}")
        self._initial_energy_j = value
        self._remaining_energy_j = value

    @property
    def remaining_energy_j(self) -> float:
        """Remaining energy as of the last update [J], without recomputing."""
        return self._remaining_energy_j

    @property
    def supply_voltage_v(self) -> float:
        return self._supply_voltage_v

    @property
    def low_battery_threshold(self) -> float:
        return self._low_battery_threshold

    @property
    def min_voltage_threshold(self) -> float:
        return self._min_voltage_threshold

    @property
    def update_interval_s(self) -> float:
        """Period of the energy update [s]."""
        return self._update_interval_s

    @update_interval_s.setter
    def update_interval_s(self, value: float) -> None:
        if value <= 0.0:
            raise ValueError(f"Update interval must be positive; received update_interval_s={value!r}")
        self._update_interval_s = value

    @property
    def last_update_time(self) -> float:
        return self._last_update_time

    @property
    def pending_update(self) -> EventId | None:
        """Next scheduled periodic update, or None when none is pending."""
        event = self._energy_update_event
        if event is None or event.is_expired():
            return None
        return event

    @property
    def depletion_time(self) -> float | None:
        """Simulated time at which the source was depleted [s]."""
        return self._depletion_time

    @property
    def lifetime(self) -> float | None:
        """Time from creation to depletion [s], or None while active."""
        if self._depletion_time is None:
            return None
        return self._depletion_time - self._start_time

    # ------------------------------------------------------------------
    # Subclass hooks and helpers
    # ------------------------------------------------------------------

    def _calculate_remaining_energy(self) -> None:
        raise NotImplementedError

    def _calculate_total_current(self) -> float:
        """Sum of the current drawn by every registered device [A]."""
        return sum(device.get_current_a() for device in list(self._devices.values()))

    def _set_remaining_energy(self, value: float) -> None:
        """Store ``value`` clamped at 0 and notify observers if it changed."""
        old = self._remaining_energy_j
        new = max(0.0, value)
        self._remaining_energy_j = new
        if new != old:
            for callback in list(self._observers.values()):
                callback(old, new)

    def _is_exhausted(self) -> bool:
        return (
            self._remaining_energy_j <= self._low_battery_threshold * self._initial_energy_j
            or self._supply_voltage_v <= self._min_voltage_threshold
        )

    def _handle_energy_drained_event(self) -> None:
        self._state = SourceState.DEPLETED
        self._depletion_time = self._simulator.now()
        self._simulator.cancel(self._energy_update_event)
        self._energy_update_event = None
        logger.info(
            "%s: energy depleted at t=%.3f s (remaining=%.3f J, voltage=%.4f V)",
            self, self._depletion_time, self._remaining_energy_j, self._supply_voltage_v,
        )
        for device in list(self._devices.values()):
            device.handle_energy_depletion()

    def _notify_energy_changed(self) -> None:
        for device in list(self._devices.values()):
            device.handle_energy_changed()

    def __repr__(self) -> str:
        node = "?" if self.node_id is None else self.node_id
        return f"{type(self).__name__}(node={node}, state={self._state.value})"
