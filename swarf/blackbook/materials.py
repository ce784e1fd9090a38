"""
Static feeds-and-speeds reference data.

Surface speeds are in SFM, chip loads in inches per tooth. Chip-load
tables are indexed by TOOL_DIAMETERS.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from swarf.utils.errors import UnknownToolMaterial

TOOL_DIAMETERS: Tuple[float, ...] = (0.125, 0.1875, 0.25, 0.375, 0.5, 0.625, 0.75, 1.0)


class ToolMaterial(Enum):
    HSS = "hss"
    CARBIDE = "carbide"
    COBALT = "cobalt"
    CERAMIC = "ceramic"

    @classmethod
    def parse(cls, value: str) -> "ToolMaterial":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise UnknownToolMaterial(value) from None

    @property
    def is_high_speed_steel(self) -> bool:
        """HSS and cobalt share the HSS chip-load table."""
        return self in (ToolMaterial.HSS, ToolMaterial.COBALT)


class MaterialCategory(Enum):
    NON_FERROUS = "non-ferrous"
    STEEL_LOW_ALLOY = "low-alloy steel"
    STEEL_HIGH_ALLOY = "high-alloy steel"
    STAINLESS_AUSTENITIC = "austenitic stainless"
    STAINLESS_MARTENSITIC = "martensitic stainless"
    STAINLESS_PRECIPITATION = "precipitation-hardening stainless"
    CAST_IRON = "cast iron"
    TITANIUM = "titanium"
    HIGH_TEMP_ALLOY = "high-temperature alloy"
    PLASTIC = "plastic"

    @property
    def is_stainless(self) -> bool:
        return self in (MaterialCategory.STAINLESS_AUSTENITIC,
                        MaterialCategory.STAINLESS_MARTENSITIC,
                        MaterialCategory.STAINLESS_PRECIPITATION)


# Axial depth of cut as a fraction of tool diameter, per material class
DOC_RATIOS = {
    MaterialCategory.NON_FERROUS: 0.5,
    MaterialCategory.STEEL_LOW_ALLOY: 0.25,
    MaterialCategory.STEEL_HIGH_ALLOY: 0.1,
    MaterialCategory.STAINLESS_AUSTENITIC: 0.2,
    MaterialCategory.STAINLESS_MARTENSITIC: 0.1,
    MaterialCategory.STAINLESS_PRECIPITATION: 0.15,
    MaterialCategory.CAST_IRON: 0.3,
    MaterialCategory.TITANIUM: 0.15,
    MaterialCategory.HIGH_TEMP_ALLOY: 0.1,
    MaterialCategory.PLASTIC: 0.5,
}

# Unit horsepower: HP per cubic inch per minute removed
UNIT_HORSEPOWER = {
    MaterialCategory.NON_FERROUS: 0.4,
    MaterialCategory.STEEL_LOW_ALLOY: 1.0,
    MaterialCategory.STEEL_HIGH_ALLOY: 1.3,
    MaterialCategory.STAINLESS_AUSTENITIC: 1.0,
    MaterialCategory.STAINLESS_MARTENSITIC: 1.2,
    MaterialCategory.STAINLESS_PRECIPITATION: 1.1,
    MaterialCategory.CAST_IRON: 0.6,
    MaterialCategory.TITANIUM: 1.5,
    MaterialCategory.HIGH_TEMP_ALLOY: 2.0,
    MaterialCategory.PLASTIC: 0.1,
}


@dataclass(frozen=True)
class SfmRange:
    min: float
    max: float
    recommended: float

    @property
    def mid(self) -> float:
        return (self.min + self.max) / 2.0

    def contains(self, sfm: float) -> bool:
        return self.min <= sfm <= self.max


@dataclass(frozen=True)
class ThinningRule:
    """
    Radial chip thinning compensation.

    At or above threshold_pct engagement the chip load is used as is.
    Between floor_pct and the threshold it is scaled by 1/sqrt(ae/D);
    below floor_pct the factor is capped.
    """
    threshold_pct: float = 50.0
    floor_pct: float = 10.0
    cap: float = 3.0

    def factor(self, engagement_pct: float) -> float:
        if engagement_pct >= self.threshold_pct:
            return 1.0
        if engagement_pct >= self.floor_pct:
            return 1.0 / (engagement_pct / 100.0) ** 0.5
        return self.cap


@dataclass(frozen=True)
class BlackBookEntry:
    name: str
    category: MaterialCategory
    grades: Tuple[str, ...]
    sfm_hss: SfmRange
    sfm_cobalt: SfmRange
    sfm_carbide: SfmRange
    sfm_coated: SfmRange
    sfm_ceramic: Optional[SfmRange]
    chip_loads_carbide: Tuple[float, ...]
    chip_loads_hss: Tuple[float, ...]
    max_doc_diameter_ratio: float
    recommended_engagement: float
    coolant_required: bool
    high_feed_recommended: bool
    # Percent, relative to 1212 steel at 100
    machinability: float = 100.0
    thinning: ThinningRule = ThinningRule()

    @property
    def unit_horsepower(self) -> float:
        if self.category == MaterialCategory.NON_FERROUS:
            if "Aluminum" in self.name:
                return 0.25
            if "Brass" in self.name:
                return 0.5
            if "Copper" in self.name:
                return 0.8
        return UNIT_HORSEPOWER[self.category]

    def matches(self, query: str) -> bool:
        """Match by full name or any grade, case-insensitively."""
        query = query.strip().lower()
        if query == self.name.lower():
            return True
        return any(query == grade.lower() for grade in self.grades)


_AL_CARBIDE = (0.001, 0.002, 0.002, 0.003, 0.004, 0.005, 0.006, 0.007)
_AL_HSS = (0.0005, 0.001, 0.001, 0.002, 0.002, 0.003, 0.003, 0.004)
_BRASS_CARBIDE = (0.001, 0.001, 0.002, 0.0025, 0.003, 0.004, 0.004, 0.005)
_LOW_ALLOY_CARBIDE = (0.0005, 0.0005, 0.001, 0.001, 0.0015, 0.002, 0.003, 0.004)
_LOW_ALLOY_HSS = (0.0002, 0.0003, 0.0005, 0.001, 0.001, 0.0015, 0.002, 0.0025)
_AUSTENITIC_CARBIDE = (0.0001, 0.0002, 0.0005, 0.001, 0.0015, 0.002, 0.003, 0.004)
_AUSTENITIC_HSS = (0.0001, 0.0001, 0.0002, 0.0005, 0.001, 0.001, 0.002, 0.0025)


def _sfm(low, high, rec):
    return SfmRange(float(low), float(high), float(rec))


MATERIALS: Tuple[BlackBookEntry, ...] = (
    BlackBookEntry(
        name="Aluminum 6061-T6",
        category=MaterialCategory.NON_FERROUS,
        grades=("6061-T6", "6061-T651", "6061"),
        sfm_hss=_sfm(300, 600, 450),
        sfm_cobalt=_sfm(400, 800, 600),
        sfm_carbide=_sfm(800, 1500, 1200),
        sfm_coated=_sfm(1000, 2000, 1500),
        sfm_ceramic=None,
        chip_loads_carbide=_AL_CARBIDE,
        chip_loads_hss=_AL_HSS,
        max_doc_diameter_ratio=1.5,
        recommended_engagement=30.0,
        coolant_required=False,
        high_feed_recommended=True,
        machinability=200.0,
    ),
    BlackBookEntry(
        name="Aluminum 7075-T6",
        category=MaterialCategory.NON_FERROUS,
        grades=("7075-T6", "7075-T651", "7075"),
        sfm_hss=_sfm(250, 500, 400),
        sfm_cobalt=_sfm(350, 700, 550),
        sfm_carbide=_sfm(800, 1500, 1100),
        sfm_coated=_sfm(900, 1800, 1300),
        sfm_ceramic=None,
        chip_loads_carbide=_AL_CARBIDE,
        chip_loads_hss=_AL_HSS,
        max_doc_diameter_ratio=1.0,
        recommended_engagement=25.0,
        coolant_required=False,
        high_feed_recommended=True,
        machinability=150.0,
    ),
    BlackBookEntry(
        name="Aluminum 2024-T3",
        category=MaterialCategory.NON_FERROUS,
        grades=("2024-T3", "2024-T4", "2024-T6", "2024"),
        sfm_hss=_sfm(250, 500, 400),
        sfm_cobalt=_sfm(350, 700, 550),
        sfm_carbide=_sfm(800, 1500, 1100),
        sfm_coated=_sfm(900, 1800, 1300),
        sfm_ceramic=None,
        chip_loads_carbide=_AL_CARBIDE,
        chip_loads_hss=_AL_HSS,
        max_doc_diameter_ratio=1.0,
        recommended_engagement=25.0,
        coolant_required=False,
        high_feed_recommended=True,
        machinability=170.0,
    ),
    BlackBookEntry(
        name="Brass C360",
        category=MaterialCategory.NON_FERROUS,
        grades=("C360", "C36000", "brass"),
        sfm_hss=_sfm(200, 400, 300),
        sfm_cobalt=_sfm(300, 600, 450),
        sfm_carbide=_sfm(800, 1500, 1200),
        sfm_coated=_sfm(1000, 1800, 1400),
        sfm_ceramic=None,
        chip_loads_carbide=_BRASS_CARBIDE,
        chip_loads_hss=(0.0005, 0.001, 0.001, 0.0015, 0.002, 0.0025, 0.003, 0.0035),
        max_doc_diameter_ratio=2.0,
        recommended_engagement=40.0,
        coolant_required=False,
        high_feed_recommended=True,
        machinability=100.0,
    ),
    BlackBookEntry(
        name="Copper C110",
        category=MaterialCategory.NON_FERROUS,
        grades=("C110", "C11000", "copper"),
        sfm_hss=_sfm(100, 200, 150),
        sfm_cobalt=_sfm(150, 300, 225),
        sfm_carbide=_sfm(600, 1000, 800),
        sfm_coated=_sfm(800, 1200, 1000),
        sfm_ceramic=None,
        chip_loads_carbide=_BRASS_CARBIDE,
        chip_loads_hss=(0.0003, 0.0005, 0.001, 0.0015, 0.002, 0.0025, 0.003, 0.0035),
        max_doc_diameter_ratio=1.0,
        recommended_engagement=20.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=20.0,
    ),
    BlackBookEntry(
        name="Steel 1018",
        category=MaterialCategory.STEEL_LOW_ALLOY,
        grades=("1018", "A36", "1020"),
        sfm_hss=_sfm(80, 150, 120),
        sfm_cobalt=_sfm(100, 200, 150),
        sfm_carbide=_sfm(200, 400, 300),
        sfm_coated=_sfm(300, 600, 450),
        sfm_ceramic=None,
        chip_loads_carbide=(0.0005, 0.001, 0.0015, 0.002, 0.003, 0.004, 0.005, 0.006),
        chip_loads_hss=(0.0003, 0.0005, 0.001, 0.0015, 0.002, 0.0025, 0.003, 0.004),
        max_doc_diameter_ratio=1.0,
        recommended_engagement=30.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=78.0,
    ),
    BlackBookEntry(
        name="Steel 4140",
        category=MaterialCategory.STEEL_LOW_ALLOY,
        grades=("4140", "4142", "4150"),
        sfm_hss=_sfm(60, 100, 80),
        sfm_cobalt=_sfm(80, 140, 110),
        sfm_carbide=_sfm(150, 300, 225),
        sfm_coated=_sfm(200, 400, 300),
        sfm_ceramic=None,
        chip_loads_carbide=_LOW_ALLOY_CARBIDE,
        chip_loads_hss=_LOW_ALLOY_HSS,
        max_doc_diameter_ratio=0.5,
        recommended_engagement=20.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=66.0,
    ),
    BlackBookEntry(
        name="Steel 8620",
        category=MaterialCategory.STEEL_LOW_ALLOY,
        grades=("8620",),
        sfm_hss=_sfm(50, 90, 70),
        sfm_cobalt=_sfm(70, 120, 95),
        sfm_carbide=_sfm(130, 260, 195),
        sfm_coated=_sfm(180, 350, 265),
        sfm_ceramic=None,
        chip_loads_carbide=_LOW_ALLOY_CARBIDE,
        chip_loads_hss=_LOW_ALLOY_HSS,
        max_doc_diameter_ratio=0.5,
        recommended_engagement=20.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=65.0,
    ),
    BlackBookEntry(
        name="Steel A2",
        category=MaterialCategory.STEEL_HIGH_ALLOY,
        grades=("A2", "A6", "D2", "O1"),
        sfm_hss=_sfm(40, 80, 60),
        sfm_cobalt=_sfm(50, 100, 75),
        sfm_carbide=_sfm(100, 250, 175),
        sfm_coated=_sfm(150, 350, 250),
        sfm_ceramic=_sfm(300, 500, 400),
        chip_loads_carbide=(0.0003, 0.0005, 0.0008, 0.001, 0.001, 0.0015, 0.002, 0.003),
        chip_loads_hss=(0.0001, 0.0002, 0.0003, 0.0005, 0.0008, 0.001, 0.001, 0.002),
        max_doc_diameter_ratio=0.3,
        recommended_engagement=15.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=65.0,
    ),
    BlackBookEntry(
        name="Stainless 304",
        category=MaterialCategory.STAINLESS_AUSTENITIC,
        grades=("304", "304L", "302", "303"),
        sfm_hss=_sfm(30, 60, 45),
        sfm_cobalt=_sfm(50, 100, 75),
        sfm_carbide=_sfm(100, 350, 225),
        sfm_coated=_sfm(150, 450, 300),
        sfm_ceramic=None,
        chip_loads_carbide=_AUSTENITIC_CARBIDE,
        chip_loads_hss=_AUSTENITIC_HSS,
        max_doc_diameter_ratio=0.5,
        recommended_engagement=10.0,
        coolant_required=True,
        high_feed_recommended=True,
        machinability=45.0,
    ),
    BlackBookEntry(
        name="Stainless 316",
        category=MaterialCategory.STAINLESS_AUSTENITIC,
        grades=("316", "316L"),
        sfm_hss=_sfm(25, 50, 40),
        sfm_cobalt=_sfm(40, 80, 60),
        sfm_carbide=_sfm(100, 250, 175),
        sfm_coated=_sfm(150, 350, 250),
        sfm_ceramic=None,
        chip_loads_carbide=_AUSTENITIC_CARBIDE,
        chip_loads_hss=_AUSTENITIC_HSS,
        max_doc_diameter_ratio=0.4,
        recommended_engagement=10.0,
        coolant_required=True,
        high_feed_recommended=True,
        machinability=36.0,
    ),
    BlackBookEntry(
        name="Stainless 17-4PH",
        category=MaterialCategory.STAINLESS_PRECIPITATION,
        grades=("17-4PH", "15-5PH"),
        sfm_hss=_sfm(30, 60, 45),
        sfm_cobalt=_sfm(50, 90, 70),
        sfm_carbide=_sfm(90, 250, 170),
        sfm_coated=_sfm(120, 300, 210),
        sfm_ceramic=None,
        chip_loads_carbide=(0.0003, 0.0005, 0.001, 0.001, 0.002, 0.002, 0.004, 0.006),
        chip_loads_hss=(0.0001, 0.0002, 0.0003, 0.0005, 0.001, 0.0015, 0.002, 0.003),
        max_doc_diameter_ratio=0.5,
        recommended_engagement=15.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=48.0,
    ),
    BlackBookEntry(
        name="Stainless 440C",
        category=MaterialCategory.STAINLESS_MARTENSITIC,
        grades=("440C", "420"),
        sfm_hss=_sfm(25, 50, 40),
        sfm_cobalt=_sfm(40, 80, 60),
        sfm_carbide=_sfm(90, 250, 170),
        sfm_coated=_sfm(120, 300, 210),
        sfm_ceramic=None,
        chip_loads_carbide=(0.0001, 0.0002, 0.0005, 0.0005, 0.001, 0.001, 0.003, 0.004),
        chip_loads_hss=(0.00005, 0.0001, 0.0002, 0.0003, 0.0005, 0.001, 0.0015, 0.002),
        max_doc_diameter_ratio=0.3,
        recommended_engagement=12.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=40.0,
    ),
    BlackBookEntry(
        name="Cast Iron Gray",
        category=MaterialCategory.CAST_IRON,
        grades=("Class 30", "Class 40"),
        sfm_hss=_sfm(50, 120, 85),
        sfm_cobalt=_sfm(80, 150, 115),
        sfm_carbide=_sfm(100, 400, 250),
        sfm_coated=_sfm(150, 500, 325),
        sfm_ceramic=_sfm(400, 800, 600),
        chip_loads_carbide=(0.0005, 0.001, 0.002, 0.003, 0.004, 0.005, 0.006, 0.008),
        chip_loads_hss=(0.0003, 0.0005, 0.001, 0.0015, 0.002, 0.003, 0.004, 0.005),
        max_doc_diameter_ratio=1.0,
        recommended_engagement=40.0,
        coolant_required=False,
        high_feed_recommended=False,
        machinability=110.0,
    ),
    BlackBookEntry(
        name="Cast Iron Ductile",
        category=MaterialCategory.CAST_IRON,
        grades=("65-45-12", "80-55-06"),
        sfm_hss=_sfm(40, 100, 70),
        sfm_cobalt=_sfm(60, 120, 90),
        sfm_carbide=_sfm(80, 300, 190),
        sfm_coated=_sfm(120, 400, 260),
        sfm_ceramic=_sfm(300, 600, 450),
        chip_loads_carbide=(0.0005, 0.001, 0.0015, 0.002, 0.0025, 0.003, 0.004, 0.005),
        chip_loads_hss=(0.0003, 0.0005, 0.0008, 0.001, 0.0015, 0.002, 0.003, 0.004),
        max_doc_diameter_ratio=0.8,
        recommended_engagement=35.0,
        coolant_required=True,
        high_feed_recommended=False,
        machinability=90.0,
    ),
    BlackBookEntry(
        name="Titanium Ti-6Al-4V",
        category=MaterialCategory.TITANIUM,
        grades=("Grade 5", "Ti-6Al-4V", "Ti64"),
        sfm_hss=_sfm(20, 40, 30),
        sfm_cobalt=_sfm(30, 60, 45),
        sfm_carbide=_sfm(50, 150, 100),
        sfm_coated=_sfm(80, 200, 140),
        sfm_ceramic=None,
        chip_loads_carbide=(0.0003, 0.0005, 0.001, 0.001, 0.001, 0.0015, 0.002, 0.003),
        chip_loads_hss=(0.0001, 0.0002, 0.0003, 0.0005, 0.0008, 0.001, 0.001, 0.002),
        max_doc_diameter_ratio=0.3,
        recommended_engagement=10.0,
        coolant_required=True,
        high_feed_recommended=True,
        machinability=22.0,
    ),
    BlackBookEntry(
        name="Inconel 718",
        category=MaterialCategory.HIGH_TEMP_ALLOY,
        grades=("Inconel 718", "N07718", "718"),
        sfm_hss=_sfm(10, 20, 15),
        sfm_cobalt=_sfm(15, 30, 22),
        sfm_carbide=_sfm(30, 80, 55),
        sfm_coated=_sfm(50, 120, 85),
        sfm_ceramic=_sfm(200, 400, 300),
        chip_loads_carbide=(0.0002, 0.0003, 0.0005, 0.0008, 0.001, 0.001, 0.002, 0.003),
        chip_loads_hss=(0.00005, 0.0001, 0.0002, 0.0003, 0.0005, 0.0008, 0.001, 0.0015),
        max_doc_diameter_ratio=0.2,
        recommended_engagement=8.0,
        coolant_required=True,
        high_feed_recommended=True,
        machinability=12.0,
    ),
)
