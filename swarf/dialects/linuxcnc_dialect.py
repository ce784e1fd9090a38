"""
LinuxCNC output: Fanuc-style codes with semicolon comments.
"""
from typing import List
from swarf.core.canonical import CanonicalProgram
from swarf.dialects.base_dialect import BaseDialect


class LinuxCNCDialect(BaseDialect):
    name = "LinuxCNC"

    def header(self, program: CanonicalProgram) -> List[str]:
        return [self.comment("LinuxCNC compatible output")]
