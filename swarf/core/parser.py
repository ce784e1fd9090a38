"""
Recursive-descent parser turning DSL tokens into a Program.
"""
from fractions import Fraction
from typing import Iterable, List, Optional, Dict, Any, Set
from swarf.core.lexer import Lexer, Token, TokenType
from swarf.core.program import (
    Chamfer, Cut, Deburr, DepthSpec, Direction, Drill, Face, Modifiers,
    OperationKind, Operation, Pocket, PositionExpr, Profile, ProfileSide,
    Program, SetupBlock, Shape, ShapeKind, Stock, Tap, ToolStatement, ZConstraint,
)
from swarf.utils.errors import ParseError
from swarf.utils.logging import get_logger
from swarf.utils.units import Units

logger = get_logger(__name__)


class Parser:
    """Parses a token sequence into a Program."""

    X_REFS = {"left", "right", "center"}
    Y_REFS = {"front", "back", "center"}
    Z_REFS = {"top", "bottom", "center"}
    TOOL_MATERIALS = {"hss", "carbide", "cobalt", "ceramic"}
    COOLANTS = {"flood", "mist", "air", "none"}
    WORK_OFFSETS = {"G54", "G55", "G56", "G57", "G58", "G59"}

    # Trailing modifiers each operation kind accepts
    ALLOWED_MODIFIERS: Dict[OperationKind, Set[str]] = {
        OperationKind.FACE: {"feed", "rpm", "stepdown", "stepover", "plunge"},
        OperationKind.DRILL: {"feed", "rpm", "plunge", "peck", "dwell"},
        OperationKind.POCKET: {"feed", "rpm", "stepdown", "stepover", "plunge", "finish"},
        OperationKind.PROFILE: {"feed", "rpm", "stepdown", "plunge", "finish", "depth"},
        OperationKind.CUT: {"feed", "rpm", "stepdown", "stepover", "plunge"},
        OperationKind.CHAMFER: {"feed", "rpm"},
        OperationKind.DEBURR: {"feed", "rpm"},
        OperationKind.TAP: {"rpm", "dwell"},
    }
    MODIFIER_KEYWORDS = {"feed", "rpm", "stepdown", "stepover", "plunge",
                         "finish", "peck", "dwell", "depth"}

    def __init__(self, tokens: Iterable[Token]):
        self.tokens: List[Token] = list(tokens)
        if not self.tokens or self.tokens[-1].type != TokenType.EOF:
            end = self.tokens[-1].end if self.tokens else 0
            self.tokens.append(Token(TokenType.EOF, "", 0, 0, end, end))
        self.pos = 0
        self.active_tool: Optional[ToolStatement] = None
        self.operation_parsers = {
            "face": self.parse_face,
            "drill": self.parse_drill,
            "pocket": self.parse_pocket,
            "profile": self.parse_profile,
            "cut": self.parse_cut,
            "chamfer": self.parse_chamfer,
            "deburr": self.parse_deburr,
            "tap": self.parse_tap,
        }

    def parse(self) -> Program:
        """Parse the whole token sequence."""
        setup = self.parse_setup()
        operations: List[Operation] = []

        while not self._at_end():
            token = self._peek()
            if token.is_keyword("tool"):
                self.active_tool = self.parse_tool()
                continue
            handler = self.operation_parsers.get(token.value) if token.type == TokenType.KEYWORD else None
            if handler is None:
                raise self._error("Expected an operation or tool statement",
                                  "operation", token)
            operations.append(handler())

        logger.debug("Parsed %d operations", len(operations))
        return Program(setup=setup, operations=tuple(operations))

    # Setup block

    def parse_setup(self) -> SetupBlock:
        self._expect_keyword("setup")
        self._expect_symbol("{")
        fields: Dict[str, Any] = {}

        while not self._peek().is_symbol("}"):
            token = self._advance()
            if token.type == TokenType.EOF:
                raise self._error("Unterminated setup block", "}", token)
            if token.is_keyword("zero"):
                fields["zero"] = (
                    self._axis_ref(self.X_REFS, "x"),
                    self._axis_ref(self.Y_REFS, "y"),
                    self._axis_ref(self.Z_REFS, "z"),
                )
            elif token.is_keyword("material"):
                fields["material"] = self._name("material grade")
            elif token.is_keyword("z-min"):
                fields["z_min"] = self._number()
            elif token.is_keyword("y-limit"):
                fields["y_limit"] = self._number()
            elif token.is_keyword("units"):
                unit = self._advance()
                if not unit.is_keyword("inch", "mm"):
                    raise self._error("Invalid units", "inch or mm", unit)
                fields["units"] = Units(unit.value)
            elif token.is_keyword("stock"):
                fields["stock"] = Stock(
                    self._positive("stock width"),
                    self._positive("stock height"),
                    self._positive("stock thickness"),
                )
            elif token.is_keyword("wcs"):
                offset = self._advance()
                if offset.value.upper() not in self.WORK_OFFSETS:
                    raise self._error("Invalid work offset", "G54..G59", offset)
                fields["wcs"] = offset.value.upper()
            elif token.is_keyword("clearance"):
                fields["clearance"] = self._positive("clearance")
            else:
                raise self._error("Unknown setup statement", "setup statement", token)

        self._expect_symbol("}")
        if "zero" not in fields:
            raise self._error("Setup block must declare 'zero'", "zero", self._peek())
        return SetupBlock(**fields)

    def _axis_ref(self, allowed: Set[str], axis: str):
        token = self._peek()
        if token.type in (TokenType.NUMBER, TokenType.FRACTION):
            return self._number()
        self._advance()
        if token.type != TokenType.KEYWORD or token.value not in allowed:
            expected = "|".join(sorted(allowed)) + "|number"
            raise self._error(f"Invalid {axis} zero reference", expected, token)
        return token.value

    # Tool statement

    def parse_tool(self) -> ToolStatement:
        tool_token = self._expect_keyword("tool")
        ref_token = self._advance()
        if ref_token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.IDENTIFIER):
            reference = ref_token.value
        else:
            raise self._error("Expected a tool number or name", "tool reference", ref_token)

        attrs: Dict[str, Any] = {}
        while self._peek().type == TokenType.KEYWORD:
            token = self._peek()
            if token.value in self.TOOL_MATERIALS:
                self._advance()
                attrs["tool_material"] = token.value
            elif token.value == "dia":
                self._advance()
                attrs["diameter"] = self._positive("tool diameter")
            elif token.value == "flutes":
                self._advance()
                attrs["flutes"] = self._flute_count()
            elif token.value == "length":
                self._advance()
                attrs["length"] = self._positive("tool length")
            elif token.value == "stickout":
                self._advance()
                attrs["stickout"] = self._positive("tool stickout")
            elif token.value == "max-rpm":
                self._advance()
                attrs["max_rpm"] = self._positive("max rpm")
            elif token.value == "coating":
                self._advance()
                attrs["coating"] = self._name("coating")
            elif token.value == "coolant":
                self._advance()
                coolant = self._advance()
                if not coolant.is_keyword(*self.COOLANTS):
                    raise self._error("Invalid coolant", "flood|mist|air|none", coolant)
                attrs["coolant"] = coolant.value
            else:
                break

        if attrs and "diameter" not in attrs:
            raise self._error("Inline tool definition requires 'dia'", "dia", self._peek())
        return ToolStatement(reference=reference, line=tool_token.line, **attrs)

    def _flute_count(self) -> int:
        token = self._peek()
        value = self._number()
        if value < 1 or value != int(value):
            raise self._error("Flute count must be a positive integer", "integer >= 1", token)
        return int(value)

    # Operations

    def parse_face(self) -> Face:
        start = self._expect_keyword("face")
        if self._peek().is_keyword("depth"):
            self._advance()
        depth = self._positive("face depth")
        width = height = None
        if self._peek().is_keyword("rect"):
            self._advance()
            width, height = self._positive("face width"), self._positive("face height")
        elif self._is_number(self._peek()):
            width, height = self._positive("face width"), self._positive("face height")
        position = PositionExpr.stock()
        if self._peek().is_keyword("at"):
            position = self.parse_at_clause()
        modifiers = self.parse_modifiers(OperationKind.FACE)
        return Face(depth=depth, width=width, height=height, position=position,
                    modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_drill(self) -> Drill:
        start = self._expect_keyword("drill")
        diameter = self._positive("drill diameter")
        position = self.parse_at_clause()
        depth = self.parse_depth_spec()
        modifiers = self.parse_modifiers(OperationKind.DRILL)
        return Drill(diameter=diameter, depth=depth, position=position,
                     modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_tap(self) -> Tap:
        """tap_op ::= "tap" diameter "pitch" number at_clause depth_spec"""
        start = self._expect_keyword("tap")
        diameter = self._positive("tap diameter")
        self._expect_keyword("pitch")
        pitch = self._positive("thread pitch")
        position = self.parse_at_clause()
        depth = self.parse_depth_spec()
        modifiers = self.parse_modifiers(OperationKind.TAP)
        return Tap(diameter=diameter, pitch=pitch, depth=depth, position=position,
                   modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_pocket(self) -> Pocket:
        start = self._expect_keyword("pocket")
        token = self._peek()
        if token.is_keyword("circle"):
            self._advance()
            shape = Shape(ShapeKind.CIRCLE, diameter=self._positive("pocket diameter"))
        else:
            if token.is_keyword("rect"):
                self._advance()
            shape = Shape(ShapeKind.RECT, width=self._positive("pocket width"),
                          height=self._positive("pocket height"))
        if self._peek().is_keyword("depth"):
            self._advance()
        depth = self._positive("pocket depth")
        position = self.parse_at_clause()
        modifiers = self.parse_modifiers(OperationKind.POCKET)
        return Pocket(shape=shape, depth=depth, position=position,
                      modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_profile(self) -> Profile:
        start = self._expect_keyword("profile")
        side_token = self._advance()
        if not side_token.is_keyword("inside", "outside", "on"):
            raise self._error("Invalid profile side", "inside|outside|on", side_token)
        side = ProfileSide(side_token.value)
        shape = None
        if self._peek().is_keyword("rect", "circle"):
            shape = self.parse_shape(allow_hole=False)
        position = self.parse_at_clause()
        offset = 0.0
        if self._peek().is_keyword("offset"):
            self._advance()
            offset = self._non_negative("profile offset")
        modifiers = self.parse_modifiers(OperationKind.PROFILE)
        return Profile(side=side, shape=shape, offset=offset, position=position,
                       modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_cut(self) -> Cut:
        start = self._expect_keyword("cut")
        direction_token = self._advance()
        if not direction_token.is_symbol("X+", "X-", "Y+", "Y-"):
            raise self._error("Invalid cut direction", "X+|X-|Y+|Y-", direction_token)
        direction = Direction.from_symbol(direction_token.value)
        sweep = self._positive("cut sweep")
        depth = self._positive("cut depth")
        height = self._positive("cut height")
        z_constraint = None
        if self._peek().is_symbol("Z+", "Z-"):
            z_constraint = ZConstraint(self._advance().value)
        position = PositionExpr.zero()
        if self._peek().is_keyword("at"):
            position = self.parse_at_clause()
        modifiers = self.parse_modifiers(OperationKind.CUT)
        return Cut(direction=direction, sweep=sweep, depth=depth, height=height,
                   z_constraint=z_constraint, position=position,
                   modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_chamfer(self) -> Chamfer:
        start = self._expect_keyword("chamfer")
        width = self._positive("chamfer width")
        shape = self.parse_shape(allow_hole=True)
        position = self.parse_at_clause()
        modifiers = self.parse_modifiers(OperationKind.CHAMFER)
        return Chamfer(width=width, shape=shape, position=position,
                       modifiers=modifiers, tool=self.active_tool, line=start.line)

    def parse_deburr(self) -> Deburr:
        start = self._expect_keyword("deburr")
        pass_depth = self._positive("deburr pass depth")
        if self._peek().is_keyword("profile"):
            self._advance()
            shape = None
            position = PositionExpr.zero()
            if self._peek().is_keyword("at"):
                position = self.parse_at_clause()
        else:
            shape = self.parse_shape(allow_hole=False)
            position = self.parse_at_clause()
        modifiers = self.parse_modifiers(OperationKind.DEBURR)
        return Deburr(pass_depth=pass_depth, shape=shape, position=position,
                      modifiers=modifiers, tool=self.active_tool, line=start.line)

    # Shared productions

    def parse_shape(self, allow_hole: bool) -> Shape:
        token = self._advance()
        if token.is_keyword("rect"):
            return Shape(ShapeKind.RECT, width=self._positive("width"),
                         height=self._positive("height"))
        if token.is_keyword("circle"):
            return Shape(ShapeKind.CIRCLE, diameter=self._positive("diameter"))
        if allow_hole and token.is_keyword("hole"):
            return Shape(ShapeKind.HOLE, diameter=self._positive("hole diameter"))
        expected = "rect|circle|hole" if allow_hole else "rect|circle"
        raise self._error("Expected a shape", expected, token)

    def parse_at_clause(self) -> PositionExpr:
        """
        at_clause ::= "at" ("zero" | "stock" | number number)

        A bare coordinate pair is never accepted without "at".
        """
        self._expect_keyword("at")
        token = self._peek()
        if token.is_keyword("zero"):
            self._advance()
            return PositionExpr.zero()
        if token.is_keyword("stock"):
            self._advance()
            return PositionExpr.stock()
        if self._is_number(token):
            x = self._number()
            return PositionExpr.explicit(x, self._number())
        raise self._error("Expected a position", "zero|stock|x y", token)

    def parse_depth_spec(self) -> DepthSpec:
        token = self._peek()
        if token.is_keyword("thru"):
            self._advance()
            return DepthSpec(thru=True)
        if token.is_keyword("depth"):
            self._advance()
        return DepthSpec(value=self._positive("depth"))

    def parse_modifiers(self, kind: OperationKind) -> Modifiers:
        values: Dict[str, float] = {}
        allowed = self.ALLOWED_MODIFIERS[kind]
        while self._peek().type == TokenType.KEYWORD and self._peek().value in self.MODIFIER_KEYWORDS:
            token = self._advance()
            name = token.value
            if name not in allowed:
                raise self._error(f"'{name}' is not valid for {kind.value}",
                                  ", ".join(sorted(allowed)), token)
            if name in values:
                raise self._error(f"Duplicate modifier '{name}'", "", token)
            if name == "stepover":
                value_token = self._peek()
                value = self._positive("stepover")
                if value > 1.0:
                    raise self._error("Stepover is a fraction of tool diameter",
                                      "0 < stepover <= 1", value_token)
            elif name == "finish":
                value = self._non_negative("finish allowance")
            else:
                value = self._positive(name)
            values[name] = value
        return Modifiers(**values)

    # Token helpers

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _expect_keyword(self, word: str) -> Token:
        token = self._advance()
        if not token.is_keyword(word):
            raise self._error(f"Expected '{word}'", word, token)
        return token

    def _expect_symbol(self, symbol: str) -> Token:
        token = self._advance()
        if not token.is_symbol(symbol):
            raise self._error(f"Expected '{symbol}'", symbol, token)
        return token

    @staticmethod
    def _is_number(token: Token) -> bool:
        return token.type in (TokenType.NUMBER, TokenType.FRACTION)

    def _number(self) -> float:
        """Read a decimal or machinist fraction."""
        token = self._advance()
        if token.type == TokenType.NUMBER:
            return float(token.value)
        if token.type == TokenType.FRACTION:
            return float(Fraction(token.value))
        raise self._error("Expected a number", "number", token)

    def _positive(self, what: str) -> float:
        token = self._peek()
        value = self._number()
        if value <= 0:
            raise self._error(f"{what.capitalize()} must be positive", "> 0", token)
        return value

    def _non_negative(self, what: str) -> float:
        token = self._peek()
        value = self._number()
        if value < 0:
            raise self._error(f"{what.capitalize()} must not be negative", ">= 0", token)
        return value

    def _name(self, what: str) -> str:
        token = self._advance()
        if token.type in (TokenType.STRING, TokenType.IDENTIFIER):
            return token.value
        raise self._error(f"Expected a {what}", "string", token)

    @staticmethod
    def _error(message: str, expected: str, token: Token) -> ParseError:
        found = "end of input" if token.type == TokenType.EOF else token.value
        return ParseError(message, expected=expected, found=found,
                          line=token.line, column=token.column)


def parse_source(source: str) -> Program:
    """Lex and parse DSL source text."""
    return Parser(Lexer(source)).parse()
