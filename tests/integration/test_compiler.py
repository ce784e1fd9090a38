"""
Integration tests for the SwarfCompiler facade.
"""
import pytest

from swarf import CompileResult, SwarfCompiler, compile_source
from swarf.config.machine_config import ConfigManager
from swarf.utils.errors import ConfigError, ValidationWarning


class TestCompile:
    def test_compile_result(self, compiler, drill_source):
        result = compiler.compile(drill_source)
        assert isinstance(result, CompileResult)
        assert result.profile == ConfigManager.fanuc()
        assert result.gcode.endswith("M30\n")

    def test_profile_object(self, compiler, drill_source):
        result = compiler.compile(drill_source, ConfigManager.haas())
        assert result.gcode.startswith("%\n")

    def test_unknown_profile(self, compiler, drill_source):
        with pytest.raises(ConfigError):
            compiler.compile(drill_source, "heidenhain")

    def test_emit_warnings(self, compiler, part_source):
        with pytest.warns(ValidationWarning):
            compiler.compile(part_source, emit_warnings=True)

    def test_compile_source_defaults(self, drill_source):
        result = compile_source(drill_source)
        # Without a tool library the derived drill gets the first number
        assert "T1 M06" in result.gcode.splitlines()

    def test_render_existing_program(self, compiler, drill_source):
        program = compiler.build(drill_source)
        assert SwarfCompiler.render(program, ConfigManager.fanuc()) == compiler.compile(drill_source).gcode

    def test_no_material_with_explicit_speeds(self, compiler):
        result = compiler.compile("setup { zero left front top stock 4 3 0.5 }\n"
                                  "tool 1 dia 0.25\npocket 1 1 0.1 at stock feed 20 rpm 8000")
        params = result.program.activations[0].params
        assert params.rpm == 8000
        assert params.feed == 20
        assert not params.derived
        assert "MATERIAL" not in result.gcode


class TestHelpers:
    def test_validate_syntax(self, compiler, drill_source):
        assert compiler.validate_syntax(drill_source)
        assert not compiler.validate_syntax("setup { zero left front top } drill at")
        assert not compiler.validate_syntax("setup { zero left front top } @")

    def test_toolpath_summary(self, compiler, part_source):
        program = compiler.build(part_source)
        summary = compiler.toolpath_summary(program)
        assert summary["feed_length"] > 0
        assert summary["cycle_time_min"] > 0
        assert [op["tool"] for op in summary["operations"]] == [1, 3, 3, 1, 1, 2]
        assert [tool["tool_id"] for tool in summary["tools"]] == [1, 3, 2]
        low, high = summary["bounding_box"]["min"], summary["bounding_box"]["max"]
        assert low[2] == pytest.approx(-0.8)
        assert high[0] > 4.0
