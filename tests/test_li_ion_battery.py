"""
tests/test_li_ion_battery.py
============================
Battery Energy Source — Tests for the Li-Ion Source State Machine

Covers the periodic update cycle, the depletion transition and the
reference discharge scenario:

    initial energy 31752 J, threshold voltage 3.3 V
    1 A for 1800 s → 0 A for 600 s → 1 A for 1800 s, polled every 20 s

Expected behaviour:
    - remaining energy never negative and never increasing
    - strictly decreasing while the cell is drained and still active
    - unchanged while the load is 0 A
    - voltage below 3.3 V before t = 4200 s
    - one depletion notification, no periodic update afterwards

The same profile at 0.05 A never depletes the cell, so both draw phases and
the rest between them can be checked sample by sample.
"""

import pytest

from rvbattery.config import INITIAL_ENERGY_J, INITIAL_CELL_VOLTAGE
from rvbattery.device_energy_model import SimpleDeviceEnergyModel
from rvbattery.energy_source import SourceState
from rvbattery.li_ion_battery import LiIonBatteryConfig, LiIonBatteryModel
from rvbattery.scheduler import Simulator
from rvbattery.telemetry import CellTelemetry


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sim():
    return Simulator()


@pytest.fixture
def depletions():
    """Collects one entry per depletion notification."""
    return []


@pytest.fixture
def battery(sim):
    return LiIonBatteryModel(sim, node_id=7)


@pytest.fixture
def device(sim, battery, depletions):
    dev = SimpleDeviceEnergyModel(sim, depletion_callback=lambda: depletions.append(sim.now()))
    battery.append_device_energy_model(dev)
    return dev


@pytest.fixture
def energy_changes(battery):
    changes = []
    battery.subscribe_remaining_energy(lambda old, new: changes.append((sim_time(battery), old, new)))
    return changes


def sim_time(battery):
    return battery.simulator.now()


def run_profile(sim, device, profile, poll_interval_s=None, battery=None):
    """Schedule (duration_s, current_a) steps and run to the end."""
    now = 0.0
    for duration_s, current_a in profile:
        sim.schedule(now, device.set_current_a, current_a)
        now += duration_s
    telemetry = None
    if poll_interval_s is not None:
        telemetry = CellTelemetry(sim, battery, poll_interval_s)
        telemetry.start()
    sim.stop(now)
    sim.run()
    return telemetry


# ---------------------------------------------------------------------------
# Construction and configuration
# ---------------------------------------------------------------------------

class TestConfiguration:

    def test_defaults(self, battery):
        assert battery.initial_energy_j == INITIAL_ENERGY_J
        assert battery.remaining_energy_j == INITIAL_ENERGY_J
        assert battery.get_supply_voltage() == INITIAL_CELL_VOLTAGE
        assert battery.update_interval_s == 1.0
        assert battery.state is SourceState.ACTIVE

    def test_initial_energy_setter_resets_remaining(self, battery):
        battery.decrease_remaining_energy(100.0)
        battery.initial_energy_j = 5000.0
        assert battery.remaining_energy_j == 5000.0

    def test_negative_beta_config_raises(self):
        with pytest.raises(ValueError, match="Beta"):
            LiIonBatteryConfig(beta=-0.5)

    def test_negative_beta_setter_raises(self, battery):
        with pytest.raises(ValueError, match="Beta"):
            battery.beta = -1.0

    def test_non_positive_interval_raises(self, battery):
        with pytest.raises(ValueError, match="Update interval"):
            battery.update_interval_s = 0.0

    def test_threshold_out_of_range_raises(self):
        with pytest.raises(ValueError, match="Low battery threshold"):
            LiIonBatteryConfig(low_battery_threshold=1.5)

    def test_invalid_curve_raises(self):
        with pytest.raises(ValueError, match="Rated capacity"):
            LiIonBatteryConfig(rated_capacity_ah=0.5)


# ---------------------------------------------------------------------------
# Explicit energy changes
# ---------------------------------------------------------------------------

class TestEnergyAdjustments:

    def test_decrease(self, battery):
        battery.decrease_remaining_energy(752.0)
        assert battery.remaining_energy_j == pytest.approx(31000.0)

    def test_increase(self, battery):
        battery.decrease_remaining_energy(1000.0)
        battery.increase_remaining_energy(400.0)
        assert battery.remaining_energy_j == pytest.approx(31152.0)

    def test_negative_decrease_raises(self, battery):
        with pytest.raises(ValueError, match="non-negative"):
            battery.decrease_remaining_energy(-1.0)

    def test_negative_increase_raises(self, battery):
        with pytest.raises(ValueError, match="non-negative"):
            battery.increase_remaining_energy(-1.0)

    def test_decrease_clamps_at_zero_and_depletes(self, battery, device, depletions):
        battery.decrease_remaining_energy(1.0e9)
        assert battery.remaining_energy_j == 0.0
        assert battery.is_depleted
        assert device.depleted
        battery.decrease_remaining_energy(1.0)
        assert len(depletions) == 1

    def test_observers_see_old_and_new(self, battery):
        seen = []
        token = battery.subscribe_remaining_energy(lambda old, new: seen.append((old, new)))
        battery.decrease_remaining_energy(2.0)
        battery.unsubscribe_remaining_energy(token)
        battery.decrease_remaining_energy(2.0)
        assert seen == [(INITIAL_ENERGY_J, INITIAL_ENERGY_J - 2.0)]


# ---------------------------------------------------------------------------
# Periodic update cycle
# ---------------------------------------------------------------------------

class TestPeriodicUpdate:

    def test_initialize_schedules_next_update(self, sim, battery, device):
        battery.initialize()
        assert battery.pending_update is not None
        assert battery.pending_update.time == pytest.approx(1.0)
        assert battery.get_remaining_energy() == INITIAL_ENERGY_J

    def test_no_draw_keeps_energy(self, sim, battery, device):
        battery.initialize()
        sim.stop(120.0)
        sim.run()
        assert battery.remaining_energy_j == INITIAL_ENERGY_J

    def test_get_remaining_energy_idempotent(self, sim, battery, device):
        readings = []
        device.set_current_a(0.5)
        battery.initialize()
        sim.schedule(50.5, lambda: readings.extend(
            [battery.get_remaining_energy(), battery.get_remaining_energy()]
        ))
        sim.stop(60.0)
        sim.run()
        assert readings[0] == readings[1]
        assert readings[0] < INITIAL_ENERGY_J

    def test_energy_fraction_matches_remaining(self, sim, battery, device):
        readings = []
        device.set_current_a(0.5)
        battery.initialize()
        sim.schedule(40.0, lambda: readings.extend(
            [battery.get_energy_fraction(), battery.get_remaining_energy()]
        ))
        sim.stop(40.0)
        sim.run()
        fraction, remaining = readings
        assert fraction == pytest.approx(remaining / INITIAL_ENERGY_J, rel=1e-12)
        assert 0.0 < fraction < 1.0

    def test_energy_fraction_recomputes_between_ticks(self, sim, battery, device):
        readings = {}

        def read_fraction():
            readings["stale"] = battery.remaining_energy_j
            readings["fraction"] = battery.get_energy_fraction()
            readings["updated_at"] = battery.last_update_time

        device.set_current_a(0.5)
        battery.initialize()
        sim.schedule(50.5, read_fraction)
        sim.stop(51.0)
        sim.run()
        assert readings["updated_at"] == pytest.approx(50.5)
        assert readings["fraction"] < readings["stale"] / INITIAL_ENERGY_J

    def test_energy_fraction_of_empty_source_is_zero(self, sim):
        battery = LiIonBatteryModel(sim, LiIonBatteryConfig(initial_energy_j=0.0))
        assert battery.get_energy_fraction() == 0.0

    def test_manual_update_cancels_pending(self, sim, battery, device):
        seen = {}

        def manual_update():
            seen["before"] = battery.pending_update
            battery.update_energy_source()
            seen["after"] = battery.pending_update

        device.set_current_a(0.2)
        battery.initialize()
        sim.schedule(10.5, manual_update)
        sim.stop(12.0)
        sim.run()
        assert seen["before"].cancelled
        assert seen["after"].time == pytest.approx(11.5)

    def test_update_after_finish_is_noop(self, sim, battery, device):
        device.set_current_a(1.0)
        battery.initialize()
        sim.stop(30.0)
        sim.run()
        energy = battery.remaining_energy_j
        last_update = battery.last_update_time
        battery.update_energy_source()
        assert battery.get_remaining_energy() == energy
        assert battery.last_update_time == last_update

    def test_last_update_time_follows_clock(self, sim, battery, device):
        battery.initialize()
        sim.stop(15.0)
        sim.run()
        assert battery.last_update_time == pytest.approx(15.0)

    def test_energy_non_increasing_under_irregular_load(self, sim, battery, device, energy_changes):
        pattern = [0.5, 2.0, 0.0, 1.0, 3.0, 0.1, 0.0, 0.7]
        battery.initialize()
        run_profile(sim, device, [(7.0, current) for current in pattern * 5])
        assert energy_changes
        for _, old, new in energy_changes:
            assert new <= old
            assert new >= 0.0

    def test_load_history_grows_with_transitions_only(self, sim, battery, device):
        battery.initialize()
        run_profile(sim, device, [(30.0, 0.5), (30.0, 0.5), (30.0, 1.5)])
        assert battery.load_history.loads == [0.0, 500.0, 1500.0]


# ---------------------------------------------------------------------------
# Depletion
# ---------------------------------------------------------------------------

class TestDepletion:

    def test_voltage_threshold_depletes_immediately(self, sim, depletions):
        battery = LiIonBatteryModel(sim, LiIonBatteryConfig(threshold_voltage=4.5))
        dev = SimpleDeviceEnergyModel(sim, depletion_callback=lambda: depletions.append(sim.now()))
        battery.append_device_energy_model(dev)
        battery.initialize()
        assert battery.is_depleted
        assert depletions == [0.0]
        assert battery.pending_update is None

    def test_energy_threshold_depletes_immediately(self, sim):
        battery = LiIonBatteryModel(sim, LiIonBatteryConfig(low_battery_threshold=1.0))
        battery.initialize()
        assert battery.is_depleted
        assert battery.lifetime == 0.0

    def test_depletion_fires_once_and_stops_updates(self, sim, battery, device, depletions):
        snapshots = []
        device.set_current_a(2.0)
        battery.initialize()
        for t in (900.0, 1200.0, 1500.0):
            sim.schedule(t, lambda: snapshots.append(
                (battery.get_remaining_energy(), battery.pending_update)
            ))
        sim.stop(1800.0)
        sim.run()

        assert len(depletions) == 1
        assert battery.depletion_time == depletions[0]
        assert battery.state is SourceState.DEPLETED
        assert all(pending is None for _, pending in snapshots)
        assert all(energy >= 0.0 for energy, _ in snapshots)

    def test_dispose_cancels_and_detaches(self, sim, battery, device):
        battery.initialize()
        pending = battery.pending_update
        battery.dispose()
        assert pending.cancelled
        assert battery.find_device_energy_models() == []
        assert device.energy_source is None


# ---------------------------------------------------------------------------
# Reference discharge scenario
# ---------------------------------------------------------------------------

class TestReferenceDischarge:

    @pytest.fixture
    def scenario(self, sim, battery, device, depletions):
        battery.initialize()
        telemetry = run_profile(
            sim, device, [(1800.0, 1.0), (600.0, 0.0), (1800.0, 1.0)],
            poll_interval_s=20.0, battery=battery,
        )
        return telemetry.series

    def test_samples_cover_whole_profile(self, scenario):
        times = scenario.times()
        assert times[0] == 0.0
        assert times[-1] == pytest.approx(4200.0)

    def test_energy_never_negative_or_increasing(self, scenario):
        energies = scenario.energies()
        assert all(e >= 0.0 for e in energies)
        assert all(b <= a for a, b in zip(energies, energies[1:]))

    def test_energy_strictly_decreasing_while_draining(self, scenario, battery):
        assert battery.depletion_time is not None
        samples = scenario.samples
        draining = [
            (prev, cur) for prev, cur in zip(samples, samples[1:])
            if cur.time_s <= min(1800.0, battery.depletion_time)
        ]
        assert draining
        assert all(cur.remaining_energy_j < prev.remaining_energy_j for prev, cur in draining)

    def test_energy_unchanged_at_zero_current(self, scenario):
        resting = [s.remaining_energy_j for s in scenario.samples if 1800.0 < s.time_s < 2400.0]
        assert len(resting) > 10
        assert all(e == resting[0] for e in resting)

    def test_voltage_crosses_threshold_before_end(self, scenario):
        crossing = scenario.first_below(3.3)
        assert crossing is not None
        assert crossing.time_s < 4200.0

    def test_single_depletion_notification(self, scenario, battery, depletions):
        assert len(depletions) == 1
        assert battery.pending_update is None


# ---------------------------------------------------------------------------
# Light-load discharge with a rest phase
# ---------------------------------------------------------------------------

class TestLightLoadDischarge:
    """0.05 A for 1800 s → 0 A for 600 s → 0.05 A for 1800 s; never depletes."""

    @pytest.fixture
    def scenario(self, sim, battery, device):
        battery.initialize()
        telemetry = run_profile(
            sim, device, [(1800.0, 0.05), (600.0, 0.0), (1800.0, 0.05)],
            poll_interval_s=20.0, battery=battery,
        )
        return telemetry.series

    def test_stays_active(self, scenario, battery, depletions):
        assert not battery.is_depleted
        assert depletions == []

    def test_energy_strictly_decreasing_in_first_draw(self, scenario):
        samples = scenario.samples
        pairs = [(prev, cur) for prev, cur in zip(samples, samples[1:]) if cur.time_s <= 1800.0]
        assert len(pairs) == 90
        assert all(cur.remaining_energy_j < prev.remaining_energy_j for prev, cur in pairs)

    def test_energy_strictly_decreasing_after_rest(self, scenario):
        samples = scenario.samples
        pairs = [(prev, cur) for prev, cur in zip(samples, samples[1:]) if cur.time_s > 2400.0]
        assert len(pairs) == 90
        assert all(cur.remaining_energy_j < prev.remaining_energy_j for prev, cur in pairs)

    def test_energy_constant_and_positive_during_rest(self, scenario):
        resting = [s.remaining_energy_j for s in scenario.samples if 1800.0 <= s.time_s <= 2400.0]
        assert len(resting) == 31
        assert resting[0] > 0.0
        assert all(e == resting[0] for e in resting)

    def test_voltage_recovers_during_rest(self, scenario):
        by_time = {s.time_s: s.voltage_v for s in scenario.samples}
        assert by_time[2380.0] > by_time[1820.0]
