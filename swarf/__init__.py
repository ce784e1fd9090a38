"""
swarf: compiles a small machining DSL to controller G-code, deriving
feeds and speeds from a built-in machinist's reference table.
"""
from swarf.compiler import CompileResult, SwarfCompiler, compile_source

__version__ = "0.1.0"

__all__ = ["CompileResult", "SwarfCompiler", "compile_source", "__version__"]
