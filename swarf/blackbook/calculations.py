"""
Feeds and speeds derivation.

All arithmetic here is in inches; callers convert program units at the
boundary.
"""
import math
from dataclasses import dataclass
from typing import Optional, Tuple
from swarf.blackbook.materials import (
    BlackBookEntry, DOC_RATIOS, MaterialCategory, SfmRange, TOOL_DIAMETERS, ToolMaterial,
)

# 12 / pi, surface feet per minute to rev/min for a diameter in inches
SFM_TO_RPM = 3.82
HAZARD_SCALE = 0.75
PLUNGE_RATIO = 0.5
FALLBACK_DOC_RATIO = 0.25
FALLBACK_WOC_RATIO = 0.4

# (max tool diameter, rpm) guideline pairs, smallest first
RPM_GUIDELINES = (
    (0.0625, 40000),
    (0.125, 30000),
    (0.25, 20000),
    (0.375, 15000),
    (0.5, 12000),
    (0.75, 8000),
    (1.0, 6000),
)
RPM_GUIDELINE_LARGE = 4000

# Taylor tool life, V * T**n = C: (C in SFM for 1212 steel, n) per tool material
TOOL_LIFE_MODEL = {
    ToolMaterial.HSS: (300.0, 0.125),
    ToolMaterial.COBALT: (400.0, 0.15),
    ToolMaterial.CARBIDE: (1500.0, 0.25),
    ToolMaterial.CERAMIC: (10000.0, 0.5),
}
COATED_CARBIDE_LIFE_MODEL = (2000.0, 0.25)
# Life lost per 0.001 IPT of chip load
CHIP_LOAD_LIFE_PENALTY = 0.01


@dataclass(frozen=True)
class HazardFlags:
    work_hardening: bool = False
    heat_buildup: bool = False

    @property
    def count(self) -> int:
        return int(self.work_hardening) + int(self.heat_buildup)

    def names(self) -> Tuple[str, ...]:
        names = []
        if self.work_hardening:
            names.append("work hardening")
        if self.heat_buildup:
            names.append("heat buildup")
        return tuple(names)


@dataclass(frozen=True)
class CuttingParameters:
    """
    Cutting parameters for one tool activation, in program units.

    feed and plunge_feed are per minute; doc and woc are lengths;
    chip_load_ipt is always inches per tooth.
    """
    rpm: int
    feed: float
    plunge_feed: float
    doc: float
    woc: float
    chip_load_ipt: float
    pass_count: int = 1
    sfm: float = 0.0
    engagement_pct: float = 100.0
    thinning_factor: float = 1.0
    mrr: float = 0.0
    horsepower: Optional[float] = None
    tool_life_min: Optional[float] = None
    hazards: Tuple[str, ...] = ()
    derived: bool = True


def lookup_sfm(entry: BlackBookEntry, tool_material: ToolMaterial, coated: bool = False) -> SfmRange:
    """Surface speed range for a material/tool-material pair."""
    if tool_material == ToolMaterial.HSS:
        return entry.sfm_hss
    if tool_material == ToolMaterial.COBALT:
        return entry.sfm_cobalt
    if tool_material == ToolMaterial.CERAMIC:
        return entry.sfm_ceramic or entry.sfm_carbide
    return entry.sfm_coated if coated else entry.sfm_carbide


def lookup_chip_load(entry: BlackBookEntry, diameter_in: float, tool_material: ToolMaterial) -> float:
    """
    Chip load in IPT for a tool diameter.

    Interpolates linearly between the bracketing table sizes and clamps
    to the first/last entry outside the table.
    """
    table = entry.chip_loads_hss if tool_material.is_high_speed_steel else entry.chip_loads_carbide
    if diameter_in <= TOOL_DIAMETERS[0]:
        return table[0]
    if diameter_in >= TOOL_DIAMETERS[-1]:
        return table[-1]
    for idx in range(len(TOOL_DIAMETERS) - 1):
        low, high = TOOL_DIAMETERS[idx], TOOL_DIAMETERS[idx + 1]
        if low <= diameter_in <= high:
            pct = (diameter_in - low) / (high - low)
            return table[idx] + (table[idx + 1] - table[idx]) * pct
    return table[-1]


def calculate_rpm(sfm: float, diameter_in: float, max_rpm: Optional[float] = None) -> int:
    rpm = sfm * SFM_TO_RPM / diameter_in
    if max_rpm is not None:
        rpm = min(rpm, max_rpm)
    return int(math.floor(max(rpm, 0.0)))


def surface_speed(rpm: float, diameter_in: float) -> float:
    """Actual SFM at a spindle speed."""
    return rpm * diameter_in / SFM_TO_RPM


def calculate_feed(rpm: float, flutes: int, chip_load_ipt: float) -> float:
    return rpm * flutes * chip_load_ipt


def hazard_flags(entry: BlackBookEntry, tool_material: ToolMaterial) -> HazardFlags:
    category = entry.category
    tough = category in (MaterialCategory.TITANIUM, MaterialCategory.HIGH_TEMP_ALLOY)
    work_hardening = entry.high_feed_recommended and (
        tough or category == MaterialCategory.STAINLESS_AUSTENITIC)
    heat_buildup = tough or (
        tool_material.is_high_speed_steel
        and (category.is_stainless or category == MaterialCategory.STEEL_HIGH_ALLOY))
    return HazardFlags(work_hardening=work_hardening, heat_buildup=heat_buildup)


def default_doc_woc(entry: BlackBookEntry, diameter: float, hazards: HazardFlags) -> Tuple[float, float]:
    """Material-class stepdown and stepover, reduced once per hazard."""
    scale = HAZARD_SCALE ** hazards.count
    doc = diameter * DOC_RATIOS[entry.category] * scale
    woc = diameter * entry.recommended_engagement / 100.0 * scale
    return doc, woc


def pass_count(total_depth: float, doc: float) -> int:
    if total_depth <= 0 or doc <= 0:
        return 1
    # Tolerance keeps 0.3/0.1 from rounding up to 4
    return max(1, math.ceil(total_depth / doc - 1e-9))


def recommended_max_rpm(diameter_in: float) -> int:
    """Rule-of-thumb spindle ceiling for a tool diameter."""
    for max_diameter, rpm in RPM_GUIDELINES:
        if diameter_in <= max_diameter:
            return rpm
    return RPM_GUIDELINE_LARGE


def material_removal_rate(woc_in: float, doc_in: float, feed_ipm: float) -> float:
    """Cubic inches per minute."""
    return woc_in * doc_in * feed_ipm


def estimate_tool_life(sfm: float, chip_load_ipt: float, tool_material: ToolMaterial,
                       machinability: float, coated: bool = False) -> Optional[float]:
    """
    Rough tool life in minutes from Taylor's equation.

    The material constant is scaled by machinability (percent of 1212
    steel), and heavy chip loads shorten the result.
    """
    if sfm <= 0:
        return None
    if coated and tool_material == ToolMaterial.CARBIDE:
        constant, exponent = COATED_CARBIDE_LIFE_MODEL
    else:
        constant, exponent = TOOL_LIFE_MODEL[tool_material]
    constant *= machinability / 100.0
    minutes = (constant / sfm) ** (1.0 / exponent)
    return minutes / (1.0 + chip_load_ipt / 0.001 * CHIP_LOAD_LIFE_PENALTY)
