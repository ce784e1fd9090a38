"""
Error definitions and handling for the swarf compiler.

Stage failures (lexing, parsing, resolution, codegen) raise immediately.
Safety findings are collected as Diagnostics and only turned into a
ValidationError once every rule has run.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Optional, List


class ErrorType(Enum):
    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    RESOLUTION = "resolution"
    INTERNAL = "internal"
    SAFETY = "safety"


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


@dataclass
class Diagnostic:
    """A finding attached to a compiled program."""
    code: str
    message: str
    severity: ErrorSeverity
    error_type: ErrorType = ErrorType.SAFETY
    line: Optional[int] = None
    column: Optional[int] = None
    operation_index: Optional[int] = None
    suggestion: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity in (ErrorSeverity.ERROR, ErrorSeverity.FATAL)

    def __str__(self):
        prefix = self.severity.value.upper()
        where = ""
        if self.operation_index is not None:
            where = f" [op {self.operation_index + 1}]"
        elif self.line is not None:
            where = f" [line {self.line}]"
        text = f"{prefix}{where} {self.code}: {self.message}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text


class ErrorCollector:
    """Collects diagnostics produced while checking a program."""

    def __init__(self):
        self.diagnostics: List[Diagnostic] = []

    def add(self, code: str, message: str,
            severity: ErrorSeverity = ErrorSeverity.ERROR,
            error_type: ErrorType = ErrorType.SAFETY,
            operation_index: Optional[int] = None,
            line: Optional[int] = None,
            suggestion: Optional[str] = None) -> Diagnostic:
        """Add a diagnostic to the collection."""
        diagnostic = Diagnostic(code, message, severity, error_type,
                                line=line, operation_index=operation_index,
                                suggestion=suggestion)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def has_errors(self) -> bool:
        """Check if there are any errors (excluding warnings and info)."""
        return any(d.is_error for d in self.diagnostics)

    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == ErrorSeverity.WARNING]

    def clear(self):
        """Clear all diagnostics."""
        self.diagnostics.clear()

    def get_all(self) -> List[Diagnostic]:
        """Get all diagnostics sorted by operation, then line."""
        return sorted(
            self.diagnostics,
            key=lambda d: (d.operation_index if d.operation_index is not None else -1,
                           d.line or 0),
        )


class SwarfError(Exception):
    """
    Base exception for all compiler errors.

    Carries a human-readable message plus a details dictionary with the
    offending values so callers can produce actionable reports.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class LexError(SwarfError):
    """Raised on a character the lexer cannot start a token with."""

    def __init__(self, message: str, line: int, column: int, char: str = ""):
        super().__init__(message, {"line": line, "column": column, "char": repr(char)})
        self.line = line
        self.column = column
        self.char = char


class ParseError(SwarfError):
    """Raised on a grammar violation or an invalid literal value."""

    def __init__(self, message: str, expected: str = "", found: str = "",
                 line: int = 0, column: int = 0):
        details = {}
        if expected:
            details["expected"] = expected
        if found:
            details["found"] = found
        details["line"] = line
        details["column"] = column
        super().__init__(message, details)
        self.expected = expected
        self.found = found
        self.line = line
        self.column = column


class ResolutionError(SwarfError):
    """Raised when a position, material or tool reference cannot be resolved."""

    def __init__(self, message: str, details: Optional[dict] = None,
                 operation_index: Optional[int] = None):
        details = dict(details or {})
        if operation_index is not None:
            details["operation"] = operation_index + 1
        super().__init__(message, details)
        self.operation_index = operation_index


class UnknownMaterial(ResolutionError):
    """Material grade not present in the Black Book."""

    def __init__(self, material: str, operation_index: Optional[int] = None):
        super().__init__(f"Unknown material '{material}'", {"material": material},
                         operation_index)
        self.material = material


class UnknownToolMaterial(ResolutionError):
    """Tool material with no surface speed data."""

    def __init__(self, tool_material: str, material: str = ""):
        details = {"tool_material": tool_material}
        if material:
            details["material"] = material
        super().__init__(f"No cutting data for tool material '{tool_material}'", details)
        self.tool_material = tool_material


class UnknownTool(ResolutionError):
    """Tool reference missing from the tool library."""

    def __init__(self, reference: str):
        super().__init__(f"Tool '{reference}' not found in tool library",
                         {"tool": reference})
        self.reference = reference


class CodegenInvariantError(SwarfError):
    """
    Generated geometry violates a hard constraint.

    This indicates a defect in a toolpath generator, not bad user input.
    """


class ValidationError(SwarfError):
    """Raised when one or more safety rules report Error severity."""

    def __init__(self, diagnostics: List[Diagnostic]):
        errors = [d for d in diagnostics if d.is_error]
        summary = "; ".join(d.message for d in errors)
        super().__init__(f"Program failed safety validation: {summary}",
                         {"errors": len(errors)})
        self.diagnostics = diagnostics
        self.errors = errors


class ValidationWarning(UserWarning):
    """Warning category for non-blocking safety findings."""


class ConfigError(SwarfError):
    """Raised when a configuration file or preset name is invalid."""
