"""Parser for ClickHouse type expressions.

Two layers live here. The string helpers (``parse_base_type`` and friends)
peel the ``Nullable``/``Array`` wrappers off a declared type and never fail:
the catalog is trusted, so a malformed string yields a best-effort answer
instead of an exception. ``TypeParser`` is a full ply grammar used where the
structure matters (``Map`` key/value split, canonical rendering); it raises
``SyntaxError`` like any other ply parser here, and its callers degrade.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Union

import ply.yacc as yacc

from clickhouse_proto_gen.parsing.type_lexer import TypeLexer

NULLABLE = "Nullable"
ARRAY = "Array"
LOW_CARDINALITY = "LowCardinality"


@dataclass(frozen=True)
class EnumMember:
    """An ``'label' = value`` entry of an Enum8/Enum16 type."""

    label: str
    value: int


@dataclass(frozen=True)
class NamedType:
    """A named element of a Tuple or Nested type, e.g. ``a UInt8``."""

    name: str
    type: TypeExpr


TypeArg = Union["TypeExpr", NamedType, EnumMember, int, float, str]


@dataclass(frozen=True)
class TypeExpr:
    """A parsed type expression: a name and its parameters."""

    name: str
    args: tuple[TypeArg, ...] = ()

    def unwrap(self, wrapper: str) -> TypeExpr:
        """Return the single inner type when this is ``wrapper(T)``, else self."""
        if self.name == wrapper and len(self.args) == 1 and isinstance(self.args[0], TypeExpr):
            return self.args[0]
        return self

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}({', '.join(_render_arg(a) for a in self.args)})"


def _render_arg(arg: TypeArg) -> str:
    if isinstance(arg, EnumMember):
        return f"{_quote(arg.label)} = {arg.value}"
    if isinstance(arg, NamedType):
        return f"{arg.name} {arg.type}"
    if isinstance(arg, str):
        return _quote(arg)
    return str(arg)


def _quote(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


class TypeParser:
    """Parser for ClickHouse type expressions."""

    tokens = TypeLexer.tokens

    def __init__(self) -> None:
        self.lexer = TypeLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_type_expr_simple(self, p: yacc.YaccProduction) -> None:
        """type_expr : IDENTIFIER"""
        p[0] = TypeExpr(name=p[1])

    def p_type_expr_empty_args(self, p: yacc.YaccProduction) -> None:
        """type_expr : IDENTIFIER LPAREN RPAREN"""
        p[0] = TypeExpr(name=p[1])

    def p_type_expr_args(self, p: yacc.YaccProduction) -> None:
        """type_expr : IDENTIFIER LPAREN arg_list RPAREN"""
        p[0] = TypeExpr(name=p[1], args=tuple(p[3]))

    def p_arg_list_single(self, p: yacc.YaccProduction) -> None:
        """arg_list : arg"""
        p[0] = [p[1]]

    def p_arg_list_multiple(self, p: yacc.YaccProduction) -> None:
        """arg_list : arg_list COMMA arg"""
        p[0] = p[1] + [p[3]]

    def p_arg_type(self, p: yacc.YaccProduction) -> None:
        """arg : type_expr"""
        p[0] = p[1]

    def p_arg_named(self, p: yacc.YaccProduction) -> None:
        """arg : IDENTIFIER type_expr"""
        p[0] = NamedType(name=p[1], type=p[2])

    def p_arg_literal(self, p: yacc.YaccProduction) -> None:
        """arg : INTEGER
               | FLOAT
               | STRING"""
        p[0] = p[1]

    def p_arg_enum_member(self, p: yacc.YaccProduction) -> None:
        """arg : STRING EQUALS INTEGER"""
        p[0] = EnumMember(label=p[1], value=p[3])

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="type_expr", **kwargs)

    def parse(self, data: str) -> TypeExpr:
        """Parse a type expression and return its tree."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        if not data.strip():
            raise SyntaxError("Empty type expression")
        return self.parser.parse(data, lexer=self.lexer.lexer)


_local = threading.local()


def default_parser() -> TypeParser:
    """Return this thread's parser, building its tables on first use.

    ply lexers and parsers keep their input position on the instance, so each
    thread gets its own.
    """
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = TypeParser()
        parser.build(debug=False, write_tables=False)
        _local.parser = parser
    return parser


def parse_type(declared: str) -> TypeExpr:
    """Parse a declared type string, raising SyntaxError if it is malformed."""
    return default_parser().parse(declared)


def _strip_wrapper(declared: str, wrapper: str) -> tuple[str, bool]:
    """Remove one ``wrapper(...)`` layer; a missing closing paren is tolerated."""
    prefix = wrapper + "("
    if not declared.startswith(prefix):
        return declared, False
    inner = declared[len(prefix):]
    if inner.endswith(")"):
        inner = inner[:-1]
    return inner.strip(), True


def strip_wrappers(declared: str) -> str:
    """Return the innermost type string with Nullable/Array layers removed.

    Strips one ``Nullable``, then one ``Array``, then a ``Nullable`` directly
    inside the array (ClickHouse spells nullable arrays ``Array(Nullable(T))``).
    Parameters of the innermost type are kept.
    """
    inner = declared.strip()
    inner, _ = _strip_wrapper(inner, NULLABLE)
    inner, _ = _strip_wrapper(inner, ARRAY)
    inner, _ = _strip_wrapper(inner, NULLABLE)
    return inner


def parse_base_type(declared: str) -> str:
    """Return the innermost type name of a declared type.

    ``Nullable(Array(UInt64))`` -> ``UInt64``, ``DateTime64(3)`` -> ``DateTime64``,
    ``LowCardinality(String)`` -> ``LowCardinality`` (unwrapped by the mapper).
    """
    inner = strip_wrappers(declared)
    idx = inner.find("(")
    if idx > 0:
        return inner[:idx]
    return inner


def is_array_type(declared: str) -> bool:
    """Check whether the declared type is an array (possibly nullable-wrapped)."""
    inner, _ = _strip_wrapper(declared.strip(), NULLABLE)
    return inner.startswith(ARRAY + "(")


def is_nullable_type(declared: str) -> bool:
    """Check whether any Nullable layer appears in the wrapper chain.

    Looks through Array and LowCardinality, so ``Array(Nullable(T))`` and
    ``LowCardinality(Nullable(String))`` are both nullable.
    """
    inner = declared.strip()
    for wrapper in (ARRAY, LOW_CARDINALITY):
        inner, stripped = _strip_wrapper(inner, NULLABLE)
        if stripped:
            return True
        inner, _ = _strip_wrapper(inner, wrapper)
    return inner.startswith(NULLABLE + "(")


def unwrap_low_cardinality(declared: str) -> str:
    """Return the inner type of ``LowCardinality(T)`` with wrappers stripped."""
    inner, stripped = _strip_wrapper(declared.strip(), LOW_CARDINALITY)
    if not stripped:
        return declared
    return strip_wrappers(inner)


def parse_map_type(declared: str) -> tuple[str, str]:
    """Split ``Map(K, V)`` into its key and value type strings.

    One ``Nullable`` layer is removed from the value, since map values cannot
    be null-wrapped in the target format. Anything that is not a well-formed
    two-argument map returns ``("", "")``.
    """
    try:
        expr = parse_type(declared)
    except SyntaxError:
        return "", ""

    if expr.name != "Map" or len(expr.args) != 2:
        return "", ""
    key, value = expr.args
    if not isinstance(key, TypeExpr) or not isinstance(value, TypeExpr):
        return "", ""

    return str(key), str(value.unwrap(NULLABLE))


def fixed_string_length(declared: str) -> int | None:
    """Return N for ``FixedString(N)`` (nullable-wrapped too), else None."""
    inner, _ = _strip_wrapper(declared.strip(), NULLABLE)
    inner, stripped = _strip_wrapper(inner, "FixedString")
    if not stripped:
        return None
    try:
        return int(inner)
    except ValueError:
        return None
