"""
Unit tests for tool records and the tool library.
"""
import json

import pytest

from swarf.blackbook import ToolMaterial
from swarf.tooling.library import CoolantType, ToolLibrary, ToolSpec, tool_from_record
from swarf.utils.errors import ConfigError, UnknownTool, UnknownToolMaterial
from swarf.utils.units import Units


class TestToolRecords:
    def test_record_aliases(self):
        tool = tool_from_record({"tool_id": "3", "dia": "0.375", "flutes": 4,
                                 "tool_material": "Carbide", "coolant": "MIST"})
        assert tool.tool_id == 3
        assert tool.diameter == 0.375
        assert tool.flutes == 4
        assert tool.tool_material == ToolMaterial.CARBIDE
        assert tool.coolant == CoolantType.MIST

    def test_missing_required_fields(self):
        with pytest.raises(ConfigError) as excinfo:
            tool_from_record({"id": 1, "name": "no diameter", "flute_count": 2, "material": "hss"})
        assert "diameter" in excinfo.value.details["missing"]

    def test_bad_tool_material(self):
        with pytest.raises(UnknownToolMaterial):
            tool_from_record({"id": 1, "diameter": 0.25, "flute_count": 2, "material": "wood"})

    def test_label_and_radius(self):
        tool = ToolSpec(tool_id=2, diameter=0.5, flutes=3, tool_material=ToolMaterial.CARBIDE)
        assert tool.radius == 0.25
        assert tool.label == "T2 0.5 endmill (3FL carbide)"

    def test_converted_to_program_units(self):
        tool = tool_from_record({"id": 1, "diameter": 0.5, "flute_count": 3, "material": "carbide",
                                 "stickout": 1.25, "max_rpm": 12000, "default_plunge_feed": 10,
                                 "default_feed_per_tooth": 0.002})
        metric = tool.in_units(Units.MM)
        assert metric.diameter == pytest.approx(12.7)
        assert metric.stickout == pytest.approx(31.75)
        assert metric.default_plunge_feed == pytest.approx(254.0)
        assert metric.length is None
        # Per-tooth chip load stays in inches, spindle limits have no length
        assert metric.default_feed_per_tooth == 0.002
        assert metric.max_rpm == 12000
        assert tool.in_units(Units.INCH) is tool


class TestToolLibrary:
    def test_lookup_by_number_and_name(self, tool_library):
        assert tool_library.get("T1").diameter == 0.5
        assert tool_library.get("5").tool_type == "drill"
        assert tool_library.get("1/2 3FL Carbide Endmill").tool_id == 1
        assert tool_library.get("stub drill").tool_id == 5
        assert tool_library.get("T9") is None

    def test_lookup_missing_raises(self, tool_library):
        with pytest.raises(UnknownTool) as excinfo:
            tool_library.lookup("T9")
        assert excinfo.value.reference == "T9"

    def test_ambiguous_partial_name(self, tool_library):
        assert tool_library.get_by_name("1/") is None

    def test_duplicate_ids_rejected(self, tool_records):
        with pytest.raises(ConfigError):
            ToolLibrary.from_records(tool_records + [tool_records[0]])

    def test_records_keyed_by_number(self):
        library = ToolLibrary.from_records({"7": {"diameter": 0.125, "flutes": 2, "material": "carbide"}})
        assert 7 in library
        assert len(library) == 1

    def test_json_round_trip(self, tool_library, tmp_path):
        path = tmp_path / "tools.json"
        tool_library.save(str(path))
        loaded = ToolLibrary.load(str(path))
        assert [t.tool_id for t in loaded.list()] == [1, 5]
        assert loaded.get("T1").max_rpm == 12000
        assert loaded.get("T1").coolant == CoolantType.FLOOD

    def test_json_wrapper_and_errors(self, tmp_path):
        text = json.dumps({"tools": [{"id": 2, "diameter": 0.25, "flute_count": 2, "material": "hss"}]})
        assert ToolLibrary.from_json(text).get("T2").flutes == 2
        with pytest.raises(ConfigError):
            ToolLibrary.from_json("{not json")
        with pytest.raises(ConfigError):
            ToolLibrary.load(str(tmp_path / "missing.json"))
