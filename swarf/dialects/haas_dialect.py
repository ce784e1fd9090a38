"""
Haas output.

Haas is Fanuc-compatible. Programs are framed with % and select the
initial-plane return (G98) in the preamble; tool length offsets are
applied after every tool change.
"""
from typing import List
from swarf.core.canonical import CanonicalProgram
from swarf.dialects.base_dialect import BaseDialect


class HaasDialect(BaseDialect):
    name = "Haas"
    safety_codes = "G17 G40 G49 G80 G90 G94 G98"

    def header(self, program: CanonicalProgram) -> List[str]:
        return ["%", self.comment("HAAS CNC PROGRAM")]

    def footer(self, program: CanonicalProgram) -> List[str]:
        return super().footer(program) + ["%"]
