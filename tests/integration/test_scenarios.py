"""
End-to-end compilation scenarios, DSL text in and G-code out.
"""
import pytest

from swarf.utils.errors import ResolutionError, UnknownMaterial, UnknownTool, ValidationError

PROFILES = ("fanuc", "mach3", "linuxcnc", "haas")

SETUP = 'setup {{ zero left front top material "6061-T6" stock 4 3 {thickness} {extra} }}\n'


def source(body, thickness=0.5, extra=""):
    return SETUP.format(thickness=thickness, extra=extra) + body


def words(line):
    """G-code words of a line, without any N number."""
    parts = line.split()
    if parts and parts[0].startswith("N"):
        parts = parts[1:]
    return parts


def plunge_depths(gcode):
    """Z values of G01 moves that only move Z, in program order."""
    depths = []
    for line in gcode.splitlines():
        parts = words(line)
        if len(parts) >= 2 and parts[0] == "G01" and parts[1].startswith("Z"):
            if not any(p[0] in "XY" for p in parts[2:]):
                depths.append(float(parts[1][1:]))
    return depths


class TestDrilling:
    def test_through_hole(self, compile_dsl, drill_source):
        result = compile_dsl(drill_source)
        lines = result.gcode.splitlines()
        # Library tools 1 and 5 are taken, so the derived drill is T2
        assert "T2 M06" in lines
        assert any(line.startswith("G98 G81 X1.0000 Y1.0000 Z-0.5500 R0.1000 F") for line in lines)
        assert result.program.activations[0].cut_depth == pytest.approx(0.55)

    def test_deep_hole_pecks_deeper_each_time(self, compile_dsl):
        text = source("drill 0.25 at 1 1 depth 1.5", thickness=2)
        fanuc = compile_dsl(text).gcode
        assert any(line.startswith("G98 G83 ") and "Q0.2500" in line for line in fanuc.splitlines())

        depths = plunge_depths(compile_dsl(text, "mach3").gcode)
        assert depths == [-0.25, -0.5, -0.75, -1.0, -1.25, -1.5]
        assert all(a > b for a, b in zip(depths, depths[1:]))

    def test_metric_program(self, compile_dsl):
        text = ('setup { zero left front top units mm material "6061-T6" stock 100 75 12 }\n'
                "drill 6 at 25 25 thru")
        lines = compile_dsl(text).gcode.splitlines()
        assert "G21" in lines
        assert any(line.startswith("G98 G81 X25.000 Y25.000 Z-13.270 R2.540 F") for line in lines)


class TestMilling:
    def test_pocket_in_three_passes(self, compile_dsl, pocket_source):
        result = compile_dsl(pocket_source)
        activation = result.program.activations[0]
        assert activation.params.pass_count == 3
        assert activation.params.doc == pytest.approx(0.1)
        assert sorted(set(plunge_depths(result.gcode))) == [-0.3, -0.2, -0.1]

    def test_upward_cut_is_one_pass_at_full_height(self, compile_dsl):
        result = compile_dsl(source("tool 1 dia 0.25\ncut X+ 1 0.5 0.1 Z+ at 0 0"))
        assert set(plunge_depths(result.gcode)) == {-0.1}
        assert result.program.activations[0].params.pass_count == 1

    def test_upward_cut_taller_than_stepdown(self, compile_dsl):
        with pytest.raises(ResolutionError) as excinfo:
            compile_dsl(source("tool 1 dia 0.25\ncut X+ 1 0.5 0.3 Z+ at 0 0"))
        assert excinfo.value.details["operation"] == 1
        assert excinfo.value.details["stepdown"] == pytest.approx(0.125)

    def test_upward_cut_with_explicit_stepdown(self, compile_dsl):
        result = compile_dsl(source("tool 1 dia 0.25\ncut X+ 1 0.5 0.3 Z+ at 0 0 stepdown 0.3"))
        assert set(plunge_depths(result.gcode)) == {-0.3}

    def test_fractional_tool_diameter(self, compile_dsl):
        result = compile_dsl(source("tool 1 dia 5/8\npocket 1 1 0.1 at stock"))
        assert result.program.activations[0].tool.diameter == 0.625
        assert "T1 0.625 endmill" in result.gcode

    def test_library_tool(self, compile_dsl):
        result = compile_dsl(source("tool T1\npocket 1 1 0.2 at stock"))
        lines = result.gcode.splitlines()
        assert "T1 M06" in lines
        assert "M08" in lines
        assert result.program.activations[0].params.rpm <= 12000

    def test_library_tool_in_metric_program(self, compile_dsl):
        text = ('setup { zero left front top units mm material "6061-T6" stock 100 75 12 }\n'
                "tool T1\npocket 40 30 2 at stock")
        tool = compile_dsl(text).program.activations[0].tool
        assert tool.diameter == pytest.approx(12.7)
        assert tool.label == "T1 1/2 3FL Carbide Endmill (3FL carbide)"

    def test_face_inside_y_limit(self, compile_dsl):
        result = compile_dsl(source("tool 1 dia 0.5\nface 0.02", extra="y-limit 3"))
        assert not any(d.code == "TRAVEL_LIMIT" for d in result.diagnostics)

    def test_edge_passes_skip_chip_load_tables(self, compile_dsl, monkeypatch):
        from swarf.blackbook import calculations

        def refuse(*args, **kwargs):
            raise AssertionError("chip load table consulted")

        text = source("tool 1 dia 0.25\ndeburr 0.01 rect 2 1 at stock\nchamfer 0.02 circle 1 at stock")
        monkeypatch.setattr(calculations, "lookup_chip_load", refuse)
        result = compile_dsl(text)
        assert [a.params.feed for a in result.program.activations] == [10.0, 10.0]


class TestFailures:
    def test_unknown_material(self, compile_dsl):
        text = ('setup { zero left front top material "unobtainium" stock 4 3 0.5 }\n'
                "drill 0.25 at 1 1 thru")
        with pytest.raises(UnknownMaterial) as excinfo:
            compile_dsl(text)
        assert excinfo.value.material == "unobtainium"

    @pytest.mark.parametrize("profile", PROFILES)
    def test_deflection_blocks_every_controller(self, compile_dsl, profile):
        text = source("tool 1 dia 0.25 stickout 2\npocket 1 1 0.2 at stock")
        with pytest.raises(ValidationError) as excinfo:
            compile_dsl(text, profile)
        assert [d.code for d in excinfo.value.errors] == ["TOOL_DEFLECTION"]

    def test_z_floor(self, compile_dsl):
        text = source("tool 1 dia 0.25\nface 0.02\npocket 1 1 0.3 at stock", extra="z-min -0.2")
        with pytest.raises(ResolutionError) as excinfo:
            compile_dsl(text)
        assert excinfo.value.details["operation"] == 2

    def test_missing_library_tool(self, compile_dsl):
        with pytest.raises(UnknownTool):
            compile_dsl(source("tool T42\npocket 1 1 0.2 at stock"))

    def test_tool_number_reused_with_new_geometry(self, compile_dsl):
        text = source("tool 3 dia 0.5\npocket 1 1 0.2 at stock\n"
                      "tool 3 dia 0.25\npocket 0.5 0.5 0.2 at 1 1")
        with pytest.raises(ResolutionError) as excinfo:
            compile_dsl(text)
        assert excinfo.value.details["tool"] == "T3"

    def test_tool_number_redefined_identically(self, compile_dsl):
        text = source("tool 3 dia 0.25\npocket 1 1 0.2 at stock\n"
                      "tool 3 dia 0.25\npocket 0.5 0.5 0.2 at 1 1")
        activations = compile_dsl(text).program.activations
        assert [a.tool.tool_id for a in activations] == [3, 3]


class TestTapping:
    def test_tap_without_material(self, compile_dsl):
        text = ("setup { zero left front top stock 4 3 0.5 }\n"
                "tap 1/4 pitch 1/20 at 1 1 depth 0.4")
        result = compile_dsl(text)
        activation = result.program.activations[0]
        assert activation.tool.tool_type == "tap"
        assert activation.params.feed == pytest.approx(25.0)
        assert any(line.startswith("G98 G84 X1.0000 Y1.0000 Z-0.4000 R0.1000 F25.0")
                   for line in result.gcode.splitlines())

    def test_tap_rpm_modifier_sets_feed(self, compile_dsl):
        result = compile_dsl(source("tap 0.25 pitch 0.05 at 1 1 depth 0.4 rpm 300"))
        params = result.program.activations[0].params
        assert params.rpm == 300
        assert params.feed == pytest.approx(15.0)
        assert not params.derived

    @pytest.mark.parametrize("profile", PROFILES)
    def test_tap_compiles_for_every_controller(self, compile_dsl, profile):
        result = compile_dsl(source("drill 0.201 at 1 1 depth 0.5\ntap 0.25 pitch 0.05 at 1 1 depth 0.4"),
                             profile)
        assert not any(d.is_error for d in result.diagnostics)
        assert len(result.program.activations) == 2


class TestWholePart:
    @pytest.mark.parametrize("profile", PROFILES)
    def test_part_compiles_for_every_controller(self, compile_dsl, part_source, profile):
        result = compile_dsl(part_source, profile)
        assert len(result.program.activations) == 6
        assert result.gcode.rstrip("\n%").endswith("M30")
        assert not any(d.is_error for d in result.diagnostics)

    def test_compilation_is_deterministic(self, compile_dsl, part_source):
        assert compile_dsl(part_source).gcode == compile_dsl(part_source).gcode

    def test_warnings_are_written_as_comments(self, compile_dsl, part_source):
        result = compile_dsl(part_source)
        assert result.warnings
        for diagnostic in result.warnings:
            text = str(diagnostic).replace("(", "[").replace(")", "]")
            assert f"({text})" in result.gcode

    def test_controllers_share_one_toolpath(self, compile_dsl, part_source):
        results = [compile_dsl(part_source, profile) for profile in PROFILES]
        programs = [r.program for r in results]
        assert all(p.activations == programs[0].activations for p in programs)
