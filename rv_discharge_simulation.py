"""
rv_discharge_simulation.py
==========================
Battery Energy Source — RV Model Discharge Scenario

Drains a parametric RV battery with a constant 1 A load and samples its
voltage and remaining energy every 10 s.

Model parameters (scenario-specific, not the package defaults):
    alpha = 36000 A·min, beta = 1.0, 100 series terms,
    V_oc  = 4.2 V,       V_cutoff = 4.0 V

Usage:
    python rv_discharge_simulation.py [--verbose] [--duration SECONDS] [--current AMPS]
"""

from __future__ import annotations

import argparse
import logging
import sys

from rvbattery.device_energy_model import SimpleDeviceEnergyModel
from rvbattery.discharge import constant_load_alpha
from rvbattery.rv_battery import RvBatteryConfig, RvBatteryModel
from rvbattery.scheduler import Simulator
from rvbattery.telemetry import CellTelemetry, DischargeTimeSeries, plot_discharge, write_log


# ---------------------------------------------------------------------------
# Scenario parameters
# ---------------------------------------------------------------------------

RV_SCENARIO_CONFIG = RvBatteryConfig(
    alpha=36000.0,
    beta=1.0,
    num_of_terms=100,
    open_circuit_voltage=4.2,
    cutoff_voltage=4.0,
)

DURATION_S: float = 600.0
CURRENT_A: float = 1.0
TELEMETRY_INTERVAL_S: float = 10.0

LOG_OUTPUT_FILE: str = "rv_log.txt"
PLOT_OUTPUT_FILE: str = "rv_discharge.png"


def run_discharge(
    duration_s: float = DURATION_S,
    current_a: float = CURRENT_A,
    config: RvBatteryConfig = RV_SCENARIO_CONFIG,
    telemetry_interval_s: float = TELEMETRY_INTERVAL_S,
) -> tuple[RvBatteryModel, DischargeTimeSeries]:
    """Drain a fresh RV battery at ``current_a`` for ``duration_s`` seconds."""
    sim = Simulator()
    battery = RvBatteryModel(sim, config, node_id=0)
    device = SimpleDeviceEnergyModel(sim)
    battery.append_device_energy_model(device)

    device.set_current_a(current_a)
    telemetry = CellTelemetry(sim, battery, telemetry_interval_s)
    battery.initialize()
    telemetry.start()

    sim.stop(duration_s)
    sim.run()
    battery.dispose()
    return battery, telemetry.series


def print_console_summary(battery: RvBatteryModel, series: DischargeTimeSeries) -> None:
    final = series.samples[-1]
    print(f"\n{'═' * 60}")
    print("  RV MODEL DISCHARGE — SIMULATION SUMMARY")
    print(f"{'═' * 60}")
    print(f"    Alpha / beta                :  {battery.alpha:.1f} A·min / {battery.beta:.3f}")
    print(f"    Consumed alpha              :  {battery.last_update_alpha:10.4f} A·min")
    closed_form = constant_load_alpha(
        battery.load_history.current_load or 0.0, battery.simulator.now(),
        battery.beta, battery.num_of_terms,
    )
    print(f"    Closed-form alpha           :  {closed_form:10.4f} A·min")
    print(f"    Battery level               :  {battery.battery_level:10.5%}")
    print(f"    Final cell voltage          :  {final.voltage_v:10.4f} V")
    print(f"    Final remaining energy      :  {final.remaining_energy_j:10.3f} J")
    lifetime = battery.lifetime
    print(f"    Lifetime                    :  {'not depleted' if lifetime is None else f'{lifetime:.1f} s'}")
    print(f"{'═' * 60}\n")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="RV model discharge scenario")
    parser.add_argument("--verbose", action="store_true", help="log every energy update")
    parser.add_argument("--duration", type=float, default=DURATION_S, help="simulated seconds")
    parser.add_argument("--current", type=float, default=CURRENT_A, help="constant load in A")
    parser.add_argument("--no-plot", action="store_true", help="skip the matplotlib plot")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )

    battery, series = run_discharge(duration_s=args.duration, current_a=args.current)
    print_console_summary(battery, series)

    write_log(series, LOG_OUTPUT_FILE)
    print(f"  [log]  Saved → {LOG_OUTPUT_FILE}")
    if not args.no_plot:
        plot_discharge(series, PLOT_OUTPUT_FILE, title="RV battery discharge",
                       threshold_voltage=battery.min_voltage_threshold)
        print(f"  [plot] Saved → {PLOT_OUTPUT_FILE}")


if __name__ == "__main__":
    main()
