"""
Machine and controller configuration.
Simple dataclass presets with JSON persistence for machine limits.
"""
from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from typing import Dict, List
import json
from swarf.utils.errors import ConfigError


@dataclass
class MachineConfig:
    """
    Limits and safety margins of a milling machine.

    Lengths are inches and feeds inches/min; programs in mm are
    converted before comparison.
    """
    name: str
    machine_type: str = "mill"
    axes: List[str] = field(default_factory=lambda: ["X", "Y", "Z"])

    # Machine limits
    max_feed: float = 300.0
    max_spindle: float = 24000.0
    max_rapid: float = 600.0

    # Features
    has_tool_changer: bool = True
    has_coolant: bool = True

    # Safety thresholds
    deflection_warning_ratio: float = 4.0
    deflection_error_ratio: float = 6.0
    length_safety_margin: float = 0.1

    # Toolpath heights and margins
    clearance_height: float = 0.25
    retract_gap: float = 0.1
    breakthrough_margin: float = 0.05
    peck_clearance: float = 0.02


class CannedCycleMode(Enum):
    EXPAND = "expand"
    RETAIN = "retain"


class CommentStyle(Enum):
    PAREN = "paren"
    SEMICOLON = "semicolon"


@dataclass(frozen=True)
class ControllerProfile:
    """How a canonical program is rendered for one controller family."""
    name: str
    dialect: str
    line_numbering: bool = False
    line_number_step: int = 10
    canned_cycles: CannedCycleMode = CannedCycleMode.RETAIN
    header_style: str = "standard"
    footer_style: str = "standard"
    comment_style: CommentStyle = CommentStyle.PAREN
    use_tool_length_offset: bool = False


class ConfigManager:
    """Manages machine configurations and controller profiles with simple presets."""

    DEFAULT_PROFILE = "fanuc"

    @staticmethod
    def mill_3axis() -> MachineConfig:
        """Standard 3-axis vertical mill."""
        return MachineConfig(name="3-Axis Mill")

    @staticmethod
    def hobby_mill() -> MachineConfig:
        """Small benchtop mill with a low spindle ceiling and no tool changer."""
        return MachineConfig(
            name="Benchtop Mill",
            max_feed=100.0,
            max_spindle=10000.0,
            max_rapid=200.0,
            has_tool_changer=False,
            has_coolant=False,
        )

    @staticmethod
    def fanuc() -> ControllerProfile:
        """Generic Fanuc-compatible output, compact canned cycles."""
        return ControllerProfile(name="Generic Fanuc", dialect="fanuc")

    @staticmethod
    def mach3() -> ControllerProfile:
        """Mach3/Mach4, which get drilling expanded to long form."""
        return ControllerProfile(
            name="Mach3/Mach4",
            dialect="mach3",
            line_numbering=True,
            line_number_step=10,
            canned_cycles=CannedCycleMode.EXPAND,
            header_style="mach3",
        )

    @staticmethod
    def linuxcnc() -> ControllerProfile:
        return ControllerProfile(
            name="LinuxCNC",
            dialect="linuxcnc",
            header_style="linuxcnc",
            comment_style=CommentStyle.SEMICOLON,
        )

    @staticmethod
    def haas() -> ControllerProfile:
        return ControllerProfile(
            name="Haas",
            dialect="haas",
            header_style="haas",
            footer_style="haas",
            use_tool_length_offset=True,
        )

    @staticmethod
    def profiles() -> Dict[str, ControllerProfile]:
        return {
            "fanuc": ConfigManager.fanuc(),
            "generic": ConfigManager.fanuc(),
            "mach3": ConfigManager.mach3(),
            "mach4": ConfigManager.mach3(),
            "linuxcnc": ConfigManager.linuxcnc(),
            "haas": ConfigManager.haas(),
        }

    @staticmethod
    def get_profile(name: str) -> ControllerProfile:
        """Get a controller profile by name; unknown names are an error."""
        profiles = ConfigManager.profiles()
        key = name.strip().lower()
        if key not in profiles:
            raise ConfigError(f"Unknown controller profile '{name}'",
                              {"available": ", ".join(sorted(profiles))})
        return profiles[key]

    @staticmethod
    def get_config(machine_type: str) -> MachineConfig:
        """Get machine configuration by preset name."""
        configs = {
            "mill": ConfigManager.mill_3axis(),
            "mill_3axis": ConfigManager.mill_3axis(),
            "hobby": ConfigManager.hobby_mill(),
        }
        key = machine_type.lower()
        if key not in configs:
            raise ConfigError(f"Unknown machine preset '{machine_type}'",
                              {"available": ", ".join(sorted(configs))})
        return configs[key]

    @staticmethod
    def save_config(config: MachineConfig, filepath: str):
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(asdict(config), f, indent=2)

    @staticmethod
    def load_config(filepath: str) -> MachineConfig:
        """Load configuration from JSON file."""
        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read machine config: {e.strerror}", {"path": filepath}) from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid machine config JSON: {e.msg}", {"path": filepath}) from e

        known = {f.name for f in fields(MachineConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError("Unknown machine config keys", {"keys": ", ".join(unknown)})
        try:
            return MachineConfig(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid machine config: {e}", {"path": filepath}) from e
