from swarf.blackbook.black_book import BlackBook, LookupResult
from swarf.blackbook.calculations import CuttingParameters, HazardFlags
from swarf.blackbook.materials import BlackBookEntry, MaterialCategory, SfmRange, ToolMaterial

__all__ = [
    "BlackBook", "LookupResult", "CuttingParameters", "HazardFlags",
    "BlackBookEntry", "MaterialCategory", "SfmRange", "ToolMaterial",
]
