"""
Unit handling. The Black Book works in inches; programs may be in mm.
"""
from enum import Enum

MM_PER_INCH = 25.4


class Units(Enum):
    INCH = "inch"
    MM = "mm"

    @property
    def gcode(self) -> str:
        return "G20" if self is Units.INCH else "G21"

    @property
    def precision(self) -> int:
        """Decimal places used when rendering coordinates."""
        return 4 if self is Units.INCH else 3

    @property
    def scale(self) -> float:
        """Program units per inch."""
        return 1.0 if self is Units.INCH else MM_PER_INCH

    @property
    def feed_label(self) -> str:
        return "IPM" if self is Units.INCH else "mm/min"

    def to_inches(self, value: float) -> float:
        return value / self.scale

    def from_inches(self, value: float) -> float:
        return value * self.scale
