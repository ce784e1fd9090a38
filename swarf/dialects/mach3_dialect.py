"""
Mach3/Mach4 output.

Mach3 has unreliable canned cycle support, so drilling is always written
in long form and cycle cancels are left out. Lines are numbered.
"""
from typing import List
from swarf.core.canonical import CanonicalProgram
from swarf.dialects.base_dialect import BaseDialect


class Mach3Dialect(BaseDialect):
    name = "Mach3/Mach4"
    safety_codes = "G17 G40 G49 G90 G94"

    def header(self, program: CanonicalProgram) -> List[str]:
        return [self.comment("SWARF PROGRAM - MACH3/MACH4")]
