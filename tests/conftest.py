"""
Pytest configuration and shared fixtures for swarf tests.
"""
import pytest

from swarf.blackbook import BlackBook
from swarf.compiler import SwarfCompiler
from swarf.config.machine_config import ConfigManager
from swarf.tooling.library import ToolLibrary


DRILL_SOURCE = """
setup {
    zero left front top
    material "6061-T6"
    stock 4 3 0.5
}
drill 1/4 at 1 1 thru
"""

POCKET_SOURCE = """
setup {
    zero left front top
    material "6061-T6"
    stock 4 3 0.5
}
tool 1 dia 0.2 flutes 2 carbide
pocket rect 1 1 0.3 at stock
"""

PART_SOURCE = """
// Bracket: face, drill, pocket, profile, deburr
setup {
    zero left front top
    material "6061-T6"
    stock 4 3 0.75
    clearance 0.5
}
tool 1 dia 0.5 flutes 3 carbide coolant flood
face 0.02
drill 0.25 at 1 1 thru
drill 0.25 at 3 1 depth 0.4 dwell 0.5
pocket circle 1 0.25 at 2 2
profile outside at stock
tool 2 dia 0.25 flutes 2 carbide
deburr 0.01 profile
"""


@pytest.fixture
def black_book():
    """The built-in Black Book."""
    return BlackBook()


@pytest.fixture
def machine():
    return ConfigManager.mill_3axis()


@pytest.fixture
def tool_records():
    return [
        {"id": 1, "name": "1/2 3FL Carbide Endmill", "type": "endmill", "diameter": 0.5,
         "flute_count": 3, "material": "carbide", "max_rpm": 12000, "coolant_type": "flood"},
        {"id": 5, "name": "1/4 Stub Drill", "type": "drill", "diameter": 0.25,
         "flute_count": 2, "material": "hss"},
    ]


@pytest.fixture
def tool_library(tool_records):
    return ToolLibrary.from_records(tool_records)


@pytest.fixture
def compiler(black_book, tool_library, machine):
    return SwarfCompiler(black_book, tool_library, machine)


@pytest.fixture
def compile_dsl(compiler):
    """Compile DSL text with the shared compiler."""
    def _compile(source, profile="fanuc"):
        return compiler.compile(source, profile)
    return _compile


@pytest.fixture
def drill_source():
    return DRILL_SOURCE


@pytest.fixture
def pocket_source():
    return POCKET_SOURCE


@pytest.fixture
def part_source():
    return PART_SOURCE
