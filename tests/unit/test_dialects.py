"""
Unit tests for controller dialect rendering.
"""
import pytest

from swarf.compiler import SwarfCompiler
from swarf.config.machine_config import ConfigManager, ControllerProfile
from swarf.dialects import DIALECTS, get_dialect
from swarf.dialects.base_dialect import recognize_drill_cycle, recognize_tap_cycle
from swarf.dialects.fanuc_dialect import FanucDialect
from swarf.utils.errors import ConfigError

SETUP = 'setup {{ zero left front top material "6061-T6" stock 4 3 {thickness} }}\n'


@pytest.fixture
def build(black_book):
    """Canonical program for a body of operations, with no tool library."""
    compiler = SwarfCompiler(black_book)

    def _build(body, thickness=0.5):
        return compiler.build(SETUP.format(thickness=thickness) + body)
    return _build


def render(program, profile="fanuc"):
    return get_dialect(ConfigManager.get_profile(profile)).render(program).splitlines()


class TestFanucDrilling:
    def test_through_hole_uses_g81(self, build):
        program = build("drill 0.25 at 1 1 thru")
        feed = program.activations[0].params.feed
        lines = render(program)
        cycle = f"G98 G81 X1.0000 Y1.0000 Z-0.5500 R0.1000 F{feed:.1f}"
        assert cycle in lines
        assert lines[lines.index(cycle) + 1] == "G80"
        assert lines[lines.index(cycle) - 1] == "G00 X1.0000 Y1.0000"
        assert lines[lines.index(cycle) - 2] == "G00 Z0.2500"

    def test_dwell_uses_g82(self, build):
        lines = render(build("drill 0.25 at 1 1 depth 0.3 dwell 0.5"))
        [cycle] = [line for line in lines if line.startswith("G98 ")]
        assert cycle.startswith("G98 G82 X1.0000 Y1.0000 Z-0.3000 R0.1000 P0.50 F")

    def test_peck_uses_g83(self, build):
        lines = render(build("drill 0.25 at 1 1 depth 1.5", thickness=2))
        [cycle] = [line for line in lines if line.startswith("G98 ")]
        assert cycle.startswith("G98 G83 X1.0000 Y1.0000 Z-1.5000 R0.1000 Q0.2500 F")

    def test_short_final_peck_still_a_cycle(self, build):
        lines = render(build("drill 0.25 at 1 1 depth 0.5 peck 0.2"))
        assert any(line.startswith("G98 G83 ") and "Q0.2000" in line for line in lines)

    def test_non_drill_pattern_is_not_recognised(self, build):
        program = build("tool 1 dia 0.25\npocket 1 1 0.1 at 2 1.5")
        assert recognize_drill_cycle(list(program.activations[0].moves), 0.0) is None

    def test_safe_z_before_first_xy_rapid(self, build):
        lines = render(build("drill 0.25 at 3 2 depth 0.2"))
        first = lines.index("T1 M06")
        motion = [line for line in lines[first:] if line.startswith("G0")]
        assert motion[0] == "G00 Z0.2500"
        assert motion[1] == "G00 X3.0000 Y2.0000"


class TestFanucTapping:
    def test_tap_uses_g84(self, build):
        lines = render(build("tap 0.25 pitch 0.05 at 1 1 depth 0.5"))
        cycle = "G98 G84 X1.0000 Y1.0000 Z-0.5000 R0.1000 F25.0"
        assert cycle in lines
        assert lines[lines.index(cycle) + 1] == "G80"
        assert "M04" not in lines

    def test_tap_dwell_is_kept(self, build):
        lines = render(build("tap 0.25 pitch 0.05 at 1 1 depth 0.3 dwell 0.2"))
        [cycle] = [line for line in lines if line.startswith("G98 ")]
        assert cycle.startswith("G98 G84 X1.0000 Y1.0000 Z-0.3000 R0.1000 P0.20 F")

    def test_drill_pattern_is_not_a_tap(self, build):
        program = build("drill 0.25 at 1 1 depth 0.2")
        assert recognize_tap_cycle(list(program.activations[0].moves)) is None


class TestFanucProgram:
    def test_program_frame(self, build):
        lines = render(build("drill 0.25 at 1 1 thru"))
        assert lines[0] == "(SWARF PROGRAM)"
        assert "(MATERIAL: Aluminum 6061-T6)" in lines
        assert lines[-6:] == ["(PROGRAM END)", "G00 Z0.2500", "M05", "M09",
                              "G00 X0.0000 Y0.0000", "M30"]
        start = lines.index("G20")
        assert lines[start:start + 3] == ["G20", "G17 G40 G49 G80 G90 G94", "G54"]

    def test_tool_change(self, build, part_source, black_book):
        program = SwarfCompiler(black_book).build(part_source)
        lines = render(program)
        first = lines.index("T1 M06")
        assert lines[first - 1] == "(OP 1: FACE 4x3 DEPTH 0.02)"
        assert lines[first + 1] == f"S{program.activations[0].params.rpm} M03"
        assert lines[first + 2] == "M08"
        assert lines[first + 3] == f"G00 Z{program.clearance:.4f}"
        assert lines[first + 4].startswith("G00 X")
        assert "Z" not in lines[first + 4]
        second = lines.index("T3 M06")
        assert lines[second - 2:second] == ["M05", "M09"]

    def test_summary_comments_escape_parentheses(self, build):
        lines = render(build("drill 0.25 at 1 1 thru"))
        assert "(OP 1: DRILL 0.25 THRU - T1 0.25 drill [2FL hss])" in lines

    def test_arc_centers_are_incremental(self, black_book, part_source):
        lines = render(SwarfCompiler(black_book).build(part_source))
        assert "G02 X0.0000 Y3.2500 I0.2500 J0.0000" in lines

    def test_render_is_repeatable(self, build):
        program = build("tool 1 dia 0.25\npocket circle 1 0.2 at 2 1.5\ndrill 0.25 at 1 1 thru")
        dialect = get_dialect(ConfigManager.fanuc())
        assert dialect.render(program) == dialect.render(program)

    def test_negative_zero_is_not_written(self):
        dialect = FanucDialect(ConfigManager.fanuc())
        assert dialect.fmt(-0.00001) == "0.0000"
        assert dialect.fmt(-0.5) == "-0.5000"


class TestOtherControllers:
    def test_mach3_numbers_lines_and_expands_cycles(self, build):
        lines = render(build("drill 0.25 at 1 1 thru"), "mach3")
        assert lines[0] == "(SWARF PROGRAM - MACH3/MACH4)"
        numbered = [line for line in lines if line.startswith("N")]
        assert numbered[0] == "N0010 G20"
        assert numbered[1] == "N0020 G17 G40 G49 G90 G94"
        text = "\n".join(lines)
        for code in ("G80", "G81", "G82", "G83", "G98"):
            assert code not in text
        assert any("G01 Z-0.5500 F" in line for line in numbered)

    def test_mach3_expands_tapping(self, build):
        lines = render(build("tap 0.25 pitch 0.05 at 1 1 depth 0.5"), "mach3")
        codes = [line.split(" ", 1)[1] for line in lines if line.startswith("N")]
        assert not any("G84" in code for code in codes)
        reverse = codes.index("M04")
        assert codes[reverse - 1] == "G01 Z-0.5000 F25.0"
        assert codes[reverse + 1] == "G01 Z0.1000"
        assert codes[reverse + 2] == "M03"

    def test_linuxcnc_semicolon_comments(self, build):
        lines = render(build("drill 0.25 at 1 1 thru"), "linuxcnc")
        assert lines[0] == "; LinuxCNC compatible output"
        assert "; PROGRAM END" in lines
        assert not any(line.startswith("(") for line in lines)
        assert any(line.startswith("G98 G81 ") for line in lines)

    def test_haas_framing_and_length_offset(self, build):
        lines = render(build("drill 0.25 at 1 1 thru"), "haas")
        assert lines[0] == "%"
        assert lines[-1] == "%"
        assert "G17 G40 G49 G80 G90 G94 G98" in lines
        offset = lines.index("G43 H1 Z0.2500")
        assert lines[offset + 1] == "G00 X1.0000 Y1.0000"

    def test_dialects_agree_on_parameters(self, build):
        program = build("drill 0.25 at 1 1 thru")
        spindle = f"S{program.activations[0].params.rpm} M03"
        for profile in ("fanuc", "mach3", "linuxcnc", "haas"):
            assert any(line.endswith(spindle) for line in render(program, profile))


class TestRegistry:
    def test_every_dialect_registered(self):
        assert set(DIALECTS) == {"fanuc", "mach3", "linuxcnc", "haas"}

    def test_unknown_dialect(self):
        with pytest.raises(ConfigError):
            get_dialect(ControllerProfile(name="Custom", dialect="heidenhain"))
