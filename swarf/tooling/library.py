"""
Tool records and the tool library.

A library is loaded once (from JSON or in-memory records) and then only
read, so one instance can be shared between compilations. Library
records are always in inches, whatever the units of the program that
uses them.
"""
import json
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from swarf.blackbook.materials import ToolMaterial
from swarf.utils.errors import ConfigError, UnknownTool
from swarf.utils.logging import get_logger
from swarf.utils.units import Units

logger = get_logger(__name__)

LIBRARY_UNITS = Units.INCH


class CoolantType(Enum):
    FLOOD = "flood"
    MIST = "mist"
    AIR = "air"
    NONE = "none"


@dataclass(frozen=True)
class ToolSpec:
    """A fully resolved cutting tool."""
    tool_id: int
    diameter: float
    flutes: int
    tool_material: ToolMaterial
    name: str = ""
    tool_type: str = "endmill"
    max_rpm: Optional[float] = None
    stickout: Optional[float] = None
    length: Optional[float] = None
    default_feed_per_tooth: Optional[float] = None
    default_plunge_feed: Optional[float] = None
    coating: Optional[str] = None
    coolant: Optional[CoolantType] = None
    recommended_materials: Tuple[str, ...] = ()

    @property
    def radius(self) -> float:
        return self.diameter / 2.0

    @property
    def label(self) -> str:
        name = self.name or f"{self.diameter:g} {self.tool_type}"
        return f"T{self.tool_id} {name} ({self.flutes}FL {self.tool_material.value})"

    def in_units(self, units: Units, source: Units = LIBRARY_UNITS) -> "ToolSpec":
        """Copy with lengths and the plunge feed converted from source units."""
        if units is source:
            return self

        def convert(value):
            return None if value is None else units.from_inches(source.to_inches(value))

        return replace(self, diameter=convert(self.diameter), stickout=convert(self.stickout),
                       length=convert(self.length),
                       default_plunge_feed=convert(self.default_plunge_feed))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["tool_material"] = self.tool_material.value
        data["coolant"] = self.coolant.value if self.coolant else None
        data["recommended_materials"] = list(self.recommended_materials)
        return {k: v for k, v in data.items() if v is not None}


# Record field name -> accepted spellings
_FIELD_ALIASES = {
    "tool_id": ("tool_id", "id"),
    "diameter": ("diameter", "dia"),
    "flutes": ("flute_count", "flutes"),
    "tool_material": ("material", "tool_material"),
    "name": ("name",),
    "tool_type": ("type", "tool_type"),
    "max_rpm": ("max_rpm",),
    "stickout": ("stickout",),
    "length": ("length",),
    "default_feed_per_tooth": ("default_feed_per_tooth",),
    "default_plunge_feed": ("default_plunge_feed",),
    "coating": ("coating",),
    "coolant": ("coolant_type", "coolant"),
    "recommended_materials": ("recommended_materials",),
}
_REQUIRED = ("tool_id", "diameter", "flutes", "tool_material")


def tool_from_record(record: Dict[str, Any]) -> ToolSpec:
    """Build a ToolSpec from a tool-library record."""
    values: Dict[str, Any] = {}
    for field_name, aliases in _FIELD_ALIASES.items():
        for alias in aliases:
            if alias in record and record[alias] is not None:
                values[field_name] = record[alias]
                break

    missing = [name for name in _REQUIRED if name not in values]
    if missing:
        raise ConfigError("Tool record is missing required fields",
                          {"missing": ",".join(missing), "record": record.get("name", "?")})

    try:
        values["tool_id"] = int(values["tool_id"])
        values["diameter"] = float(values["diameter"])
        values["flutes"] = int(values["flutes"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid tool record: {e}", {"record": record.get("name", "?")}) from e

    values["tool_material"] = ToolMaterial.parse(str(values["tool_material"]))
    if "coolant" in values:
        try:
            values["coolant"] = CoolantType(str(values["coolant"]).lower())
        except ValueError:
            raise ConfigError("Invalid coolant type", {"coolant": values["coolant"]}) from None
    if "recommended_materials" in values:
        values["recommended_materials"] = tuple(values["recommended_materials"])
    return ToolSpec(**values)


class ToolLibrary:
    """Read-only collection of tools, looked up by number or name."""

    def __init__(self, tools: Iterable[ToolSpec] = ()):
        self._tools: Dict[int, ToolSpec] = {}
        for tool in tools:
            if tool.tool_id in self._tools:
                raise ConfigError("Duplicate tool number", {"tool_id": tool.tool_id})
            self._tools[tool.tool_id] = tool

    @classmethod
    def from_records(cls, records: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]]) -> "ToolLibrary":
        """Accepts a list of records or a mapping keyed by tool number."""
        if isinstance(records, dict):
            items = []
            for key, record in records.items():
                record = dict(record)
                record.setdefault("id", key)
                items.append(record)
            records = items
        return cls(tool_from_record(record) for record in records)

    @classmethod
    def from_json(cls, text: str) -> "ToolLibrary":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid tool library JSON: {e.msg}", {"line": e.lineno}) from e
        if isinstance(data, dict) and "tools" in data:
            data = data["tools"]
        return cls.from_records(data)

    @classmethod
    def load(cls, filepath: str) -> "ToolLibrary":
        """Load a tool library from a JSON file."""
        try:
            with open(filepath, 'r') as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read tool library: {e.strerror}", {"path": filepath}) from e
        library = cls.from_json(text)
        logger.debug("Loaded %d tools from %s", len(library), filepath)
        return library

    def save(self, filepath: str):
        data = {str(tool.tool_id): tool.to_dict() for tool in self.list()}
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)

    def get_by_id(self, tool_id: int) -> Optional[ToolSpec]:
        return self._tools.get(tool_id)

    def get_by_name(self, name: str) -> Optional[ToolSpec]:
        """Exact name first, then a unique case-insensitive substring match."""
        needle = name.strip().lower()
        for tool in self.list():
            if tool.name.lower() == needle:
                return tool
        partial = [tool for tool in self.list() if needle and needle in tool.name.lower()]
        if len(partial) == 1:
            return partial[0]
        return None

    def get(self, reference: str) -> Optional[ToolSpec]:
        text = reference.strip()
        number = text[1:] if text[:1] in ("T", "t") else text
        if number.isdigit():
            tool = self.get_by_id(int(number))
            if tool is not None:
                return tool
        return self.get_by_name(text)

    def lookup(self, reference: str) -> ToolSpec:
        """Like get(), but a missing tool is an error."""
        tool = self.get(reference)
        if tool is None:
            raise UnknownTool(reference)
        return tool

    def list(self) -> List[ToolSpec]:
        return [self._tools[key] for key in sorted(self._tools)]

    def __len__(self):
        return len(self._tools)

    def __contains__(self, tool_id: int) -> bool:
        return tool_id in self._tools
