"""
rvbattery/telemetry.py
======================
Battery Energy Source — Cell Telemetry

Periodic sampling of an energy source's read accessors into a time series,
plus the two sinks the runner scripts use: a plain-text log and a
voltage/energy plot.

Sampling order per poll:
    1. get_remaining_energy()   (forces an update of the source)
    2. get_supply_voltage()     (value of that same update)

Scope:
    - Observation only; telemetry never changes the source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import matplotlib.pyplot as plt

from rvbattery.energy_source import EnergySource
from rvbattery.scheduler import EventId, Simulator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass
class DischargeSample:
    """Snapshot of one energy source at a single poll.

    Attributes:
        time_s:             Simulated time of the poll [s].
        voltage_v:          Terminal voltage [V].
        remaining_energy_j: Remaining energy [J].
    """
    time_s:             float
    voltage_v:          float
    remaining_energy_j: float


@dataclass
class DischargeTimeSeries:
    """Ordered polls of one energy source.

    Attributes:
        samples:     Ordered list of DischargeSample snapshots.
        interval_s:  Polling period used [s].
    """
    samples:    list[DischargeSample] = field(default_factory=list)
    interval_s: float = 0.0

    def times(self) -> list[float]:
        return [s.time_s for s in self.samples]

    def voltages(self) -> list[float]:
        return [s.voltage_v for s in self.samples]

    def energies(self) -> list[float]:
        return [s.remaining_energy_j for s in self.samples]

    def first_below(self, voltage_v: float) -> DischargeSample | None:
        """First sample whose voltage is strictly below ``voltage_v``."""
        return next((s for s in self.samples if s.voltage_v < voltage_v), None)


# ---------------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------------

class CellTelemetry:
    """Polls an energy source every ``interval_s`` seconds of simulated time.

    Args:
        simulator:  Clock driving the polls.
        source:     Energy source to observe.
        interval_s: Polling period [s].  Must be positive.

    Raises:
        ValueError: If ``interval_s`` is not positive.
    """

    def __init__(self, simulator: Simulator, source: EnergySource, interval_s: float = 20.0) -> None:
        if interval_s <= 0.0:
            raise ValueError(f"Polling interval must be positive; received interval_s={interval_s!r}")
        self._simulator = simulator
        self._source = source
        self._event: EventId | None = None
        self.series = DischargeTimeSeries(interval_s=interval_s)

    def start(self) -> None:
        """Take a sample now and keep sampling until the simulator stops."""
        self._event = self._simulator.schedule_now(self._poll)

    def stop(self) -> None:
        self._simulator.cancel(self._event)
        self._event = None

    def sample(self) -> DischargeSample:
        """Record one sample at the current simulated time."""
        energy_j = self._source.get_remaining_energy()
        sample = DischargeSample(
            time_s=self._simulator.now(),
            voltage_v=self._source.get_supply_voltage(),
            remaining_energy_j=energy_j,
        )
        self.series.samples.append(sample)
        logger.info(
            "At %.1f s cell voltage: %.4f V remaining energy: %.3f J",
            sample.time_s, sample.voltage_v, sample.remaining_energy_j,
        )
        return sample

    def _poll(self) -> None:
        self.sample()
        if not self._simulator.is_finished():
            self._event = self._simulator.schedule(self.series.interval_s, self._poll)


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

def write_log(series: DischargeTimeSeries, path: str | Path) -> Path:
    """Write ``time voltage energy`` lines, one per sample, to ``path``."""
    path = Path(path)
    with path.open("w") as log_file:
        for s in series.samples:
            log_file.write(f"{s.time_s:f} {s.voltage_v:f} {s.remaining_energy_j:f}\n")
    return path


def plot_discharge(
    series: DischargeTimeSeries,
    path: str | Path,
    title: str = "Battery discharge",
    threshold_voltage: float | None = None,
    show: bool = False,
) -> Path:
    """Render terminal voltage and remaining energy versus time."""
    path = Path(path)
    times_min = [t / 60 for t in series.times()]

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 7), sharex=True)
    fig.suptitle(title, fontsize=12, fontweight="bold")

    # ── Voltage subplot ──────────────────────────────────────────────────
    ax1.plot(times_min, series.voltages(), color="#2196F3", linewidth=2, label="Cell voltage")
    if threshold_voltage is not None:
        ax1.axhline(threshold_voltage, color="#F44336", linewidth=1.2, linestyle="--",
                    label=f"Threshold ({threshold_voltage:.2f} V)")
    ax1.set_ylabel("Voltage [V]", fontsize=11)
    ax1.legend(fontsize=9, loc="lower left")
    ax1.grid(True, linestyle="--", alpha=0.5)

    # ── Energy subplot ───────────────────────────────────────────────────
    ax2.plot(times_min, series.energies(), color="#4CAF50", linewidth=2, label="Remaining energy")
    ax2.set_xlabel("Simulation Time [minutes]", fontsize=11)
    ax2.set_ylabel("Remaining Energy [J]", fontsize=11)
    ax2.legend(fontsize=9, loc="upper right")
    ax2.grid(True, linestyle="--", alpha=0.5)

    plt.tight_layout()
    fig.savefig(path, dpi=150, bbox_inches="tight")
    if show:
        plt.show()
    plt.close(fig)
    return path
