"""
Unit tests for the Black Book lookup and derivation formulas.
"""
import math

import pytest

from swarf.blackbook import BlackBook, MaterialCategory, ToolMaterial
from swarf.blackbook import calculations as calc
from swarf.blackbook.materials import ThinningRule
from swarf.utils.errors import UnknownMaterial, UnknownToolMaterial
from swarf.utils.units import Units


class TestMaterialLookup:
    def test_find_by_grade_and_name(self, black_book):
        assert black_book.find("6061-T6").name == "Aluminum 6061-T6"
        assert black_book.find("aluminum 6061-t6").name == "Aluminum 6061-T6"
        assert black_book.find("304").category == MaterialCategory.STAINLESS_AUSTENITIC
        assert black_book.find("Ti64").category == MaterialCategory.TITANIUM

    def test_unknown_material(self, black_book):
        assert black_book.find("unobtainium") is None
        with pytest.raises(UnknownMaterial) as excinfo:
            black_book.material("unobtainium")
        assert excinfo.value.material == "unobtainium"

    def test_unknown_tool_material(self, black_book):
        with pytest.raises(UnknownToolMaterial):
            black_book.lookup("6061-T6", "diamond", 0.25)

    def test_all_materials_have_full_tables(self, black_book):
        for entry in black_book.materials:
            assert len(entry.chip_loads_carbide) == len(calc.TOOL_DIAMETERS)
            assert len(entry.chip_loads_hss) == len(calc.TOOL_DIAMETERS)
            assert entry.sfm_carbide.min <= entry.sfm_carbide.max

    def test_lookup_selects_speed_range(self, black_book):
        entry = black_book.material("6061-T6")
        assert black_book.lookup("6061-T6", ToolMaterial.HSS, 0.25).sfm == entry.sfm_hss
        assert black_book.lookup("6061-T6", ToolMaterial.CARBIDE, 0.25).sfm == entry.sfm_carbide
        assert black_book.lookup("6061-T6", ToolMaterial.CARBIDE, 0.25, coated=True).sfm == entry.sfm_coated
        # No ceramic range for aluminum: falls back to carbide
        assert black_book.lookup("6061-T6", ToolMaterial.CERAMIC, 0.25).sfm == entry.sfm_carbide


class TestFormulas:
    def test_sfm_mid_is_midpoint(self, black_book):
        sfm = black_book.material("6061-T6").sfm_carbide
        assert sfm.mid == (sfm.min + sfm.max) / 2.0

    def test_rpm(self):
        assert calc.calculate_rpm(1000, 0.5) == math.floor(1000 * 3.82 / 0.5)
        assert calc.calculate_rpm(1000, 0.5, max_rpm=5000) == 5000
        assert calc.calculate_rpm(-10, 0.5) == 0

    def test_feed(self):
        assert calc.calculate_feed(10000, 3, 0.002) == pytest.approx(60.0)

    def test_pass_count(self):
        assert calc.pass_count(0.3, 0.1) == 3
        assert calc.pass_count(0.31, 0.1) == 4
        assert calc.pass_count(0.05, 0.1) == 1

    def test_chip_load_interpolates_and_clamps(self, black_book):
        entry = black_book.material("6061-T6")
        table = entry.chip_loads_carbide
        assert calc.lookup_chip_load(entry, 0.25, ToolMaterial.CARBIDE) == table[2]
        midway = calc.lookup_chip_load(entry, 0.3125, ToolMaterial.CARBIDE)
        assert midway == pytest.approx((table[2] + table[3]) / 2)
        assert calc.lookup_chip_load(entry, 0.01, ToolMaterial.CARBIDE) == table[0]
        assert calc.lookup_chip_load(entry, 2.0, ToolMaterial.CARBIDE) == table[-1]
        assert calc.lookup_chip_load(entry, 0.25, ToolMaterial.COBALT) == entry.chip_loads_hss[2]

    def test_thinning_rule(self):
        rule = ThinningRule()
        assert rule.factor(100) == 1.0
        assert rule.factor(50) == 1.0
        assert rule.factor(25) == pytest.approx(2.0)
        assert rule.factor(5) == 3.0

    def test_hazards(self, black_book):
        aluminum = calc.hazard_flags(black_book.material("6061-T6"), ToolMaterial.CARBIDE)
        assert aluminum.count == 0
        stainless = calc.hazard_flags(black_book.material("304"), ToolMaterial.HSS)
        assert stainless.work_hardening and stainless.heat_buildup
        titanium = calc.hazard_flags(black_book.material("Ti64"), ToolMaterial.CARBIDE)
        assert titanium.names() == ("work hardening", "heat buildup")

    def test_doc_woc_scaled_by_hazards(self, black_book):
        entry = black_book.material("304")
        doc, woc = calc.default_doc_woc(entry, 0.5, calc.hazard_flags(entry, ToolMaterial.HSS))
        assert doc == pytest.approx(0.5 * 0.2 * 0.75 ** 2)
        assert woc == pytest.approx(0.5 * 0.10 * 0.75 ** 2)

    def test_rpm_guideline(self):
        assert calc.recommended_max_rpm(0.0625) == 40000
        assert calc.recommended_max_rpm(0.5) == 12000
        assert calc.recommended_max_rpm(2.0) == 4000

    def test_tool_life(self):
        assert calc.estimate_tool_life(750, 0.0, ToolMaterial.CARBIDE, 100) == pytest.approx(16.0)
        assert calc.estimate_tool_life(750, 0.002, ToolMaterial.CARBIDE, 100) == pytest.approx(16.0 / 1.02)
        assert calc.estimate_tool_life(1000, 0.0, ToolMaterial.CARBIDE, 100, coated=True) == pytest.approx(16.0)
        assert calc.estimate_tool_life(150, 0.0, ToolMaterial.HSS, 100) == pytest.approx(256.0)
        # Harder to machine, shorter life at the same speed
        assert (calc.estimate_tool_life(300, 0.0, ToolMaterial.CARBIDE, 45)
                < calc.estimate_tool_life(300, 0.0, ToolMaterial.CARBIDE, 78))
        assert calc.estimate_tool_life(0, 0.001, ToolMaterial.HSS, 100) is None


class TestDerive:
    def test_aluminum_pocket_parameters(self, black_book):
        params = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.2, 2, total_depth=0.3)
        entry = black_book.material("6061-T6")
        expected_rpm = math.floor(entry.sfm_carbide.mid * 3.82 / 0.2)
        assert params.rpm == expected_rpm
        assert params.doc == pytest.approx(0.1)
        assert params.woc == pytest.approx(0.06)
        assert params.pass_count == 3
        thinning = 1 / math.sqrt(0.3)
        assert params.chip_load_ipt == pytest.approx(0.002 * thinning)
        assert params.feed == pytest.approx(expected_rpm * 2 * 0.002 * thinning)
        assert params.plunge_feed == pytest.approx(params.feed / 2)
        assert params.derived

    def test_full_engagement_skips_thinning(self, black_book):
        params = black_book.derive("6061-T6", "hss", 0.25, 2, full_engagement=True)
        assert params.thinning_factor == 1.0
        assert params.chip_load_ipt == pytest.approx(0.001)

    def test_max_rpm_clamps(self, black_book):
        params = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.25, 2, max_rpm=8000)
        assert params.rpm == 8000

    def test_explicit_values_win(self, black_book):
        params = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.5, 3,
                                   rpm=5000, feed=40, stepdown=0.05, stepover=0.5)
        assert params.rpm == 5000
        assert params.feed == 40
        assert params.doc == 0.05
        assert params.woc == pytest.approx(0.25)
        assert params.chip_load_ipt == pytest.approx(40 / (5000 * 3))

    def test_metric_units_convert_at_boundary(self, black_book):
        inch = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.5, 3)
        metric = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 12.7, 3, units=Units.MM)
        assert abs(metric.rpm - inch.rpm) <= 1
        assert metric.feed == pytest.approx(inch.feed * 25.4, rel=1e-3)
        assert metric.doc == pytest.approx(inch.doc * 25.4)

    def test_horsepower_estimate(self, black_book):
        params = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.5, 3)
        assert params.mrr == pytest.approx(params.woc * params.doc * params.feed)
        assert params.horsepower == pytest.approx(params.mrr * 0.25)

    def test_derived_tool_life(self, black_book):
        params = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.5, 3)
        faster = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.5, 3, rpm=params.rpm * 2)
        assert params.tool_life_min > 0
        assert faster.tool_life_min < params.tool_life_min
        assert BlackBook.explicit(0.5, 2, rpm=3000, feed=30).tool_life_min is None

    def test_edge_parameters(self, black_book, monkeypatch):
        derived = black_book.derive("6061-T6", ToolMaterial.CARBIDE, 0.25, 2)

        def refuse(*args, **kwargs):
            raise AssertionError("chip load table consulted")

        monkeypatch.setattr(calc, "lookup_chip_load", refuse)
        params = black_book.edge("6061-T6", ToolMaterial.CARBIDE, 0.25, 2, feed=10, depth=0.02)
        assert params.rpm == derived.rpm
        assert params.feed == 10
        assert params.plunge_feed == 5
        assert (params.doc, params.woc) == (0.02, 0.02)
        assert params.chip_load_ipt == pytest.approx(10 / (derived.rpm * 2))
        assert params.pass_count == 1

    def test_explicit_without_material(self):
        params = BlackBook.explicit(0.5, 2, rpm=3000, feed=30, total_depth=0.3)
        assert not params.derived
        assert params.doc == pytest.approx(0.125)
        assert params.woc == pytest.approx(0.2)
        assert params.pass_count == 3
        assert params.plunge_feed == 15
