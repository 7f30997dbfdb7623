"""
li_ion_discharge_simulation.py
==============================
Battery Energy Source — Li-Ion Discharge Scenario

Drains a Li-Ion cell (Panasonic CGR18650DA parameter set) through one
constant-current device and samples its terminal voltage and remaining
energy every 20 s, so the voltage trace can be compared with the datasheet
discharge curve.

Load profile:
    0 s    – 1800 s   1 A
    1800 s – 2400 s   0 A   (rest)
    2400 s – 4200 s   1 A

Execution sequence:
    1. Build simulator, battery and device
    2. Schedule the load profile and telemetry
    3. Run to the end of the profile
    4. Print console summary
    5. Write the telemetry log and plot

Usage:
    python li_ion_discharge_simulation.py [--verbose] [--no-plot]
"""

from __future__ import annotations

import argparse
import logging
import sys

from rvbattery.config import INITIAL_ENERGY_J, THRESHOLD_VOLTAGE
from rvbattery.device_energy_model import SimpleDeviceEnergyModel
from rvbattery.li_ion_battery import LiIonBatteryConfig, LiIonBatteryModel
from rvbattery.scheduler import Simulator
from rvbattery.telemetry import CellTelemetry, DischargeTimeSeries, plot_discharge, write_log


# ---------------------------------------------------------------------------
# Scenario parameters (execution configuration only)
# ---------------------------------------------------------------------------

LOAD_PROFILE: list[tuple[float, float]] = [
    (1800.0, 1.0),   # (duration_s, current_A)
    (600.0,  0.0),
    (1800.0, 1.0),
]
TELEMETRY_INTERVAL_S: float = 20.0

LOG_OUTPUT_FILE: str = "li_ion_log.txt"
PLOT_OUTPUT_FILE: str = "li_ion_discharge.png"


# ---------------------------------------------------------------------------
# Scenario
# ---------------------------------------------------------------------------

def run_discharge(
    profile: list[tuple[float, float]] = LOAD_PROFILE,
    config: LiIonBatteryConfig | None = None,
    telemetry_interval_s: float = TELEMETRY_INTERVAL_S,
) -> tuple[LiIonBatteryModel, SimpleDeviceEnergyModel, DischargeTimeSeries]:
    """Run the load ``profile`` against a fresh Li-Ion cell."""
    sim = Simulator()
    battery = LiIonBatteryModel(sim, config, node_id=0)
    device = SimpleDeviceEnergyModel(sim)
    battery.append_device_energy_model(device)

    now = 0.0
    for duration_s, current_a in profile:
        sim.schedule(now, device.set_current_a, current_a)
        now += duration_s

    telemetry = CellTelemetry(sim, battery, telemetry_interval_s)
    battery.initialize()
    telemetry.start()

    sim.stop(now)
    sim.run()
    battery.dispose()
    return battery, device, telemetry.series


def print_console_summary(
    battery: LiIonBatteryModel,
    device: SimpleDeviceEnergyModel,
    series: DischargeTimeSeries,
) -> None:
    sep = "─" * 60
    final = series.samples[-1]
    crossing = series.first_below(THRESHOLD_VOLTAGE)

    print(f"\n{'═' * 60}")
    print("  LI-ION DISCHARGE — SIMULATION SUMMARY")
    print(f"{'═' * 60}")
    print(f"    Initial energy              :  {INITIAL_ENERGY_J:10.1f} J")
    print(f"    Final remaining energy      :  {final.remaining_energy_j:10.3f} J")
    print(f"    Final cell voltage          :  {final.voltage_v:10.4f} V")
    print(f"    Drained capacity            :  {battery.drained_capacity_ah:10.4f} Ah")
    print(f"    Device energy consumption   :  {device.get_total_energy_consumption():10.3f} J")
    print(sep)
    if battery.depletion_time is not None:
        print(f"    Depleted at                 :  {battery.depletion_time:10.1f} s")
    else:
        print("    Depleted at                 :  never")
    if crossing is not None:
        print(f"    Below {THRESHOLD_VOLTAGE:.2f} V from          :  {crossing.time_s:10.1f} s")
    print(f"    Samples recorded            :  {len(series.samples)}")
    print(f"{'═' * 60}\n")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[3])
    parser.add_argument("--verbose", action="store_true", help="log every energy update")
    parser.add_argument("--no-plot", action="store_true", help="skip the matplotlib plot")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )

    battery, device, series = run_discharge()
    print_console_summary(battery, device, series)

    write_log(series, LOG_OUTPUT_FILE)
    print(f"  [log]  Saved → {LOG_OUTPUT_FILE}")
    if not args.no_plot:
        plot_discharge(series, PLOT_OUTPUT_FILE, title="Li-Ion cell discharge",
                       threshold_voltage=THRESHOLD_VOLTAGE)
        print(f"  [plot] Saved → {PLOT_OUTPUT_FILE}")


if __name__ == "__main__":
    main()
