"""
The Black Book: read-only feeds-and-speeds knowledge base.

A BlackBook holds an immutable tuple of material entries. Build it once
and share it between compilations; tests can pass their own entries.
"""
from typing import Iterable, Optional, Tuple
from swarf.blackbook import calculations as calc
from swarf.blackbook.calculations import CuttingParameters, HazardFlags
from swarf.blackbook.materials import MATERIALS, BlackBookEntry, SfmRange, ThinningRule, ToolMaterial
from swarf.utils.errors import UnknownMaterial
from swarf.utils.logging import get_logger
from swarf.utils.units import Units

logger = get_logger(__name__)


class LookupResult:
    """Raw Black Book data for one material, tool material and diameter."""

    __slots__ = ("entry", "sfm", "chip_load_ipt", "thinning", "hazards")

    def __init__(self, entry: BlackBookEntry, sfm: SfmRange, chip_load_ipt: float,
                 thinning: ThinningRule, hazards: HazardFlags):
        self.entry = entry
        self.sfm = sfm
        self.chip_load_ipt = chip_load_ipt
        self.thinning = thinning
        self.hazards = hazards


class BlackBook:

    def __init__(self, materials: Iterable[BlackBookEntry] = MATERIALS):
        self.materials: Tuple[BlackBookEntry, ...] = tuple(materials)

    def find(self, material: str) -> Optional[BlackBookEntry]:
        for entry in self.materials:
            if entry.matches(material):
                return entry
        return None

    def material(self, material: str) -> BlackBookEntry:
        """Resolve a material name or grade, raising UnknownMaterial."""
        entry = self.find(material)
        if entry is None:
            raise UnknownMaterial(material)
        return entry

    def lookup(self, material: str, tool_material: ToolMaterial, diameter_in: float,
               coated: bool = False) -> LookupResult:
        """
        Look up surface speed, chip load, thinning rule and hazards.

        Args:
            material: Material name or grade, e.g. "6061-T6"
            tool_material: Cutting tool material
            diameter_in: Tool diameter in inches
            coated: Use the coated-carbide speed range

        Returns:
            LookupResult for the pair
        """
        if isinstance(tool_material, str):
            tool_material = ToolMaterial.parse(tool_material)
        entry = self.material(material)
        return LookupResult(
            entry=entry,
            sfm=calc.lookup_sfm(entry, tool_material, coated),
            chip_load_ipt=calc.lookup_chip_load(entry, diameter_in, tool_material),
            thinning=entry.thinning,
            hazards=calc.hazard_flags(entry, tool_material),
        )

    def derive(self, material: str, tool_material: ToolMaterial, diameter: float, flutes: int,
               units: Units = Units.INCH, coated: bool = False,
               max_rpm: Optional[float] = None, stepover: Optional[float] = None,
               stepdown: Optional[float] = None, total_depth: float = 0.0,
               rpm: Optional[float] = None, feed: Optional[float] = None,
               plunge: Optional[float] = None, full_engagement: bool = False) -> CuttingParameters:
        """
        Derive cutting parameters for a tool in a material.

        Explicit rpm/feed/plunge/stepdown values (program units) win over
        derived ones. stepover is a fraction of the tool diameter.
        full_engagement treats the cut as slotting or drilling, so no
        chip thinning applies.
        """
        if isinstance(tool_material, str):
            tool_material = ToolMaterial.parse(tool_material)
        diameter_in = units.to_inches(diameter)
        found = self.lookup(material, tool_material, diameter_in, coated)
        entry = found.entry

        doc_in, woc_in = calc.default_doc_woc(entry, diameter_in, found.hazards)
        if stepdown is not None:
            doc_in = units.to_inches(stepdown)
        if stepover is not None:
            woc_in = stepover * diameter_in

        engagement_pct = 100.0 if full_engagement else woc_in / diameter_in * 100.0
        thinning_factor = found.thinning.factor(engagement_pct)
        chip_load = found.chip_load_ipt * thinning_factor

        spindle = int(rpm) if rpm is not None else calc.calculate_rpm(found.sfm.mid, diameter_in, max_rpm)
        if feed is not None:
            feed_ipm = units.to_inches(feed)
            chip_load = feed_ipm / (spindle * flutes) if spindle and flutes else 0.0
        else:
            feed_ipm = calc.calculate_feed(spindle, flutes, chip_load)
        plunge_ipm = units.to_inches(plunge) if plunge is not None else feed_ipm * calc.PLUNGE_RATIO

        mrr = calc.material_removal_rate(woc_in, doc_in, feed_ipm)
        sfm = calc.surface_speed(spindle, diameter_in)
        doc = units.from_inches(doc_in)
        params = CuttingParameters(
            rpm=spindle,
            feed=units.from_inches(feed_ipm),
            plunge_feed=units.from_inches(plunge_ipm),
            doc=doc,
            woc=units.from_inches(woc_in),
            chip_load_ipt=chip_load,
            pass_count=calc.pass_count(total_depth, doc),
            sfm=sfm,
            engagement_pct=engagement_pct,
            thinning_factor=thinning_factor,
            mrr=mrr,
            horsepower=mrr * entry.unit_horsepower,
            tool_life_min=calc.estimate_tool_life(sfm, chip_load, tool_material,
                                                  entry.machinability, coated),
            hazards=found.hazards.names(),
            derived=True,
        )
        logger.debug("Derived %s / %s D=%.4f: rpm=%d feed=%.2f doc=%.4f woc=%.4f",
                     entry.name, tool_material.value, diameter, params.rpm,
                     params.feed, params.doc, params.woc)
        return params

    def edge(self, material: str, tool_material: ToolMaterial, diameter: float, flutes: int,
             feed: float, depth: float, units: Units = Units.INCH, coated: bool = False,
             max_rpm: Optional[float] = None, rpm: Optional[float] = None) -> CuttingParameters:
        """
        Parameters for a single light edge pass (chamfer, deburr).

        The spindle speed comes from the material's surface speed; the
        feed is fixed by the caller. Chip-load tables are not consulted.
        """
        if isinstance(tool_material, str):
            tool_material = ToolMaterial.parse(tool_material)
        entry = self.material(material)
        diameter_in = units.to_inches(diameter)
        sfm_range = calc.lookup_sfm(entry, tool_material, coated)
        spindle = int(rpm) if rpm is not None else calc.calculate_rpm(sfm_range.mid, diameter_in, max_rpm)
        feed_ipm = units.to_inches(feed)
        depth_in = units.to_inches(depth)
        mrr = calc.material_removal_rate(depth_in, depth_in, feed_ipm)
        return CuttingParameters(
            rpm=spindle,
            feed=feed,
            plunge_feed=feed * calc.PLUNGE_RATIO,
            doc=depth,
            woc=depth,
            chip_load_ipt=feed_ipm / (spindle * flutes) if spindle and flutes else 0.0,
            sfm=calc.surface_speed(spindle, diameter_in),
            engagement_pct=depth_in / diameter_in * 100.0 if diameter_in else 0.0,
            mrr=mrr,
            horsepower=mrr * entry.unit_horsepower,
            hazards=calc.hazard_flags(entry, tool_material).names(),
        )

    @staticmethod
    def explicit(diameter: float, flutes: int, rpm: float, feed: float,
                 units: Units = Units.INCH, stepover: Optional[float] = None,
                 stepdown: Optional[float] = None, total_depth: float = 0.0,
                 plunge: Optional[float] = None) -> CuttingParameters:
        """Parameters from explicit rpm and feed, for programs with no material."""
        doc = stepdown if stepdown is not None else diameter * calc.FALLBACK_DOC_RATIO
        woc = (stepover if stepover is not None else calc.FALLBACK_WOC_RATIO) * diameter
        spindle = int(rpm)
        chip_load = units.to_inches(feed) / (spindle * flutes) if spindle and flutes else 0.0
        return CuttingParameters(
            rpm=spindle,
            feed=feed,
            plunge_feed=plunge if plunge is not None else feed * calc.PLUNGE_RATIO,
            doc=doc,
            woc=woc,
            chip_load_ipt=chip_load,
            pass_count=calc.pass_count(total_depth, doc),
            sfm=calc.surface_speed(spindle, units.to_inches(diameter)),
            engagement_pct=woc / diameter * 100.0,
            mrr=calc.material_removal_rate(units.to_inches(woc), units.to_inches(doc), units.to_inches(feed)),
            derived=False,
        )
