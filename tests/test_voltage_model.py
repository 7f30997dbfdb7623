"""
tests/test_voltage_model.py
===========================
Battery Energy Source — Unit Tests for the Voltage Curves

Li-Ion reference values (default CGR18650DA parameters):
    V(i=0, it=0)  = E_full + R·I_typ = 4.05 + 0.083 · 2.33 = 4.24339 V
    V(i, it)      = V(0, it) − R·i
    V < 3.3 V deep in the knee zone, V = 0 once it ≥ Q_rated
"""

import pytest

from rvbattery.voltage_model import (
    LiIonCurve,
    li_ion_cell_voltage,
    li_ion_polarization_constant,
    rv_battery_level,
    rv_cell_voltage,
)


@pytest.fixture
def curve():
    return LiIonCurve()


# ---------------------------------------------------------------------------
# Li-Ion multi-zone curve
# ---------------------------------------------------------------------------

class TestLiIonCurve:

    def test_fresh_cell_open_circuit(self, curve):
        assert li_ion_cell_voltage(curve, 0.0, 0.0) == pytest.approx(4.24339, abs=1e-9)

    def test_internal_resistance_drop(self, curve):
        no_load = li_ion_cell_voltage(curve, 0.0, 0.5)
        loaded = li_ion_cell_voltage(curve, 1.0, 0.5)
        assert no_load - loaded == pytest.approx(0.083, abs=1e-12)

    def test_polarization_constant(self, curve):
        assert li_ion_polarization_constant(curve) == pytest.approx(0.03531, abs=1e-4)

    def test_voltage_decreases_with_drained_capacity(self, curve):
        drained = [0.1 * k for k in range(0, 24)]
        voltages = [li_ion_cell_voltage(curve, 1.0, it) for it in drained]
        assert all(b < a for a, b in zip(voltages, voltages[1:]))

    def test_nominal_zone_above_threshold(self, curve):
        assert li_ion_cell_voltage(curve, 1.0, 1.0) > 3.3

    def test_knee_zone_below_threshold(self, curve):
        assert li_ion_cell_voltage(curve, 1.0, 2.3) < 3.3

    def test_exhausted_cell_reads_zero(self, curve):
        assert li_ion_cell_voltage(curve, 1.0, 2.45) == 0.0
        assert li_ion_cell_voltage(curve, 1.0, 10.0) == 0.0

    def test_voltage_never_negative(self, curve):
        assert li_ion_cell_voltage(curve, 1.0, 2.449) == 0.0

    def test_rated_not_above_nominal_raises(self):
        with pytest.raises(ValueError, match="Rated capacity"):
            LiIonCurve(q_rated=1.0, q_nom=1.1)

    def test_non_positive_zone_capacity_raises(self):
        with pytest.raises(ValueError, match="Zone capacities"):
            LiIonCurve(q_exp=0.0)

    def test_negative_resistance_raises(self):
        with pytest.raises(ValueError, match="Internal resistance"):
            LiIonCurve(internal_resistance=-0.1)


# ---------------------------------------------------------------------------
# Parametric RV curve
# ---------------------------------------------------------------------------

class TestRvCurve:

    def test_level_of_fresh_cell(self):
        assert rv_battery_level(0.0, 35220.0) == 1.0

    def test_level_clamped_at_zero(self):
        assert rv_battery_level(50000.0, 35220.0) == 0.0

    def test_voltage_endpoints(self):
        assert rv_cell_voltage(0.0, 100.0, 4.2, 4.0) == pytest.approx(4.2, abs=1e-12)
        assert rv_cell_voltage(100.0, 100.0, 4.2, 4.0) == pytest.approx(4.0, abs=1e-12)

    def test_voltage_linear_in_level(self):
        assert rv_cell_voltage(25.0, 100.0, 4.0, 3.0) == pytest.approx(3.75, abs=1e-12)

    def test_voltage_is_pure(self):
        first = rv_cell_voltage(12.5, 100.0, 4.1, 3.0)
        second = rv_cell_voltage(12.5, 100.0, 4.1, 3.0)
        assert first == second

    def test_non_positive_capacity_raises(self):
        with pytest.raises(ValueError, match="alpha capacity"):
            rv_battery_level(1.0, 0.0)
