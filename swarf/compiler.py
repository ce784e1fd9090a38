"""
Main compiler interface.
This is the primary entry point: DSL text in, controller G-code out.
"""
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from swarf.blackbook import BlackBook
from swarf.config.machine_config import ConfigManager, ControllerProfile, MachineConfig
from swarf.core.canonical import CanonicalProgram
from swarf.core.codegen import Codegen
from swarf.core.geometry import measure
from swarf.core.lexer import Lexer
from swarf.core.parser import Parser
from swarf.core.program import Program
from swarf.core.resolver import Resolver
from swarf.core.validator import Validator
from swarf.dialects import get_dialect
from swarf.tooling.library import ToolLibrary
from swarf.utils.errors import Diagnostic, LexError, ParseError, ValidationError, ValidationWarning
from swarf.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CompileResult:
    """Rendered G-code plus the program and findings it came from."""
    gcode: str
    program: CanonicalProgram
    diagnostics: List[Diagnostic] = field(default_factory=list)
    profile: Optional[ControllerProfile] = None

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]


class SwarfCompiler:
    """
    Main interface for compiling machining programs.

    The Black Book, tool library and machine config are read-only, so one
    compiler can be reused for any number of programs.
    """

    def __init__(self, black_book: Optional[BlackBook] = None,
                 tool_library: Optional[ToolLibrary] = None,
                 machine: Optional[MachineConfig] = None):
        self.black_book = black_book or BlackBook()
        self.tool_library = tool_library or ToolLibrary()
        self.machine = machine or ConfigManager.mill_3axis()
        self.resolver = Resolver(self.black_book, self.tool_library, self.machine)
        self.codegen = Codegen(self.black_book, self.machine)
        self.validator = Validator(self.machine, self.black_book)

    def parse(self, source: str) -> Program:
        """
        Lex and parse DSL text.

        Args:
            source: DSL program text

        Returns:
            The parsed Program
        """
        tokens = Lexer(source).tokenize()
        logger.debug("Lexed %d tokens", len(tokens))
        program = Parser(tokens).parse()
        logger.debug("Parsed %d operations", len(program.operations))
        return program

    def build(self, source: str) -> CanonicalProgram:
        """
        Run every stage up to and including validation.

        Returns:
            The canonical program with warnings attached

        Raises:
            ValidationError: if any safety rule reports an error
        """
        program = self.parse(source)
        resolved = self.resolver.resolve(program)
        canonical = self.codegen.generate(resolved)
        diagnostics = self.validator.validate(canonical)
        if any(d.is_error for d in diagnostics):
            logger.debug("Validation failed with %d diagnostics", len(diagnostics))
            raise ValidationError(diagnostics)
        return canonical.with_diagnostics(diagnostics)

    def compile(self, source: str, profile: Union[str, ControllerProfile] = ConfigManager.DEFAULT_PROFILE,
                emit_warnings: bool = False) -> CompileResult:
        """
        Compile DSL text to G-code for one controller.

        Args:
            source: DSL program text
            profile: Controller profile or its preset name
            emit_warnings: Also report warnings through warnings.warn

        Returns:
            CompileResult; no G-code is produced when compilation fails
        """
        if isinstance(profile, str):
            profile = ConfigManager.get_profile(profile)
        canonical = self.build(source)
        gcode = self.render(canonical, profile)
        diagnostics = list(canonical.diagnostics)
        if emit_warnings:
            for diagnostic in canonical.warnings():
                warnings.warn(str(diagnostic), ValidationWarning, stacklevel=2)
        return CompileResult(gcode=gcode, program=canonical, diagnostics=diagnostics, profile=profile)

    @staticmethod
    def render(program: CanonicalProgram, profile: ControllerProfile) -> str:
        """Render an already validated program for a controller profile."""
        return get_dialect(profile).render(program)

    def validate_syntax(self, source: str) -> bool:
        """
        Check that DSL text lexes and parses.
        Useful for editor feedback before a full compile.
        """
        try:
            self.parse(source)
        except (LexError, ParseError) as exc:
            logger.debug("Syntax check failed: %s", exc)
            return False
        return True

    def toolpath_summary(self, program: CanonicalProgram) -> Dict[str, Any]:
        """
        Summarise a canonical program for display purposes.

        Returns:
            Dictionary with path lengths, bounding box, cycle time and per-tool data
        """
        rapid_rate = program.units.from_inches(self.machine.max_rapid)
        stats = measure(program.all_moves(), rapid_rate=rapid_rate)
        summary = stats.to_dict()
        summary["tools"] = [tool.to_dict() for tool in program.tools()]
        summary["operations"] = [
            {
                "label": activation.label,
                "tool": activation.tool.tool_id,
                "rpm": activation.params.rpm,
                "feed": activation.params.feed,
                "passes": activation.params.pass_count,
                "horsepower": activation.params.horsepower,
            }
            for activation in program.activations
        ]
        return summary


def compile_source(source: str, profile: Union[str, ControllerProfile] = ConfigManager.DEFAULT_PROFILE,
                   black_book: Optional[BlackBook] = None,
                   tool_library: Optional[ToolLibrary] = None,
                   machine: Optional[MachineConfig] = None) -> CompileResult:
    """Compile DSL text with a one-off compiler."""
    compiler = SwarfCompiler(black_book, tool_library, machine)
    return compiler.compile(source, profile)
