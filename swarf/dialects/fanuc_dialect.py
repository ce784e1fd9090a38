"""
Generic Fanuc-compatible output, the default dialect.
"""
from typing import List
from swarf.core.canonical import CanonicalProgram
from swarf.dialects.base_dialect import BaseDialect


class FanucDialect(BaseDialect):
    name = "Generic Fanuc"

    def header(self, program: CanonicalProgram) -> List[str]:
        return [self.comment("SWARF PROGRAM")]
