"""
Recursive-descent parser for term expressions.

Grammar:

  s_expr     := '(' atom (ws atom)* ')'       ; at least 2 atoms
  atom       := s_expr | reference | identifier
  reference  := '#' digits ( vector_lit | term_idx )
  vector_lit := '[' float (',' float)* ']'
  term_idx   := ('p'|'n') digits
  identifier := run of non-whitespace, non-')' characters

Each parse function consumes a prefix of its input and returns
(value, remaining_text). The next character alone decides which rule
applies, so there is no backtracking. Identifiers are resolved against the
bindings as soon as they are read.
"""

from __future__ import annotations

import math

from .bindings import Bindings
from .errors import ParseError
from .expression import AppExpression, Expression, Reference, build_application
from .terms import (
    FunctionReference, NonPrimitive, Primitive, TermIndex, TermPointer,
    TermReference, VectorReference,
)

DIGITS = frozenset("0123456789")


def _digit_run_end(text: str) -> int:
    """Index of the first non-digit in `text` (len(text) if none)."""
    for i, c in enumerate(text):
        if c not in DIGITS:
            return i
    return len(text)


def _parse_int(numeral: str, context: str) -> int:
    if not numeral:
        raise ParseError(f"Malformed integer (no digits) in: {context}")
    return int(numeral)


# ============================================================
# Atoms
# ============================================================

def parse_s_expression(text: str, bindings: Bindings) -> tuple[AppExpression, str]:
    """(_* [func_atom] [arg_atom_1] ... [arg_atom_n] _*)"""
    if not text.startswith("("):
        raise ParseError(f"Missing left paren for sub-expression: {text}")
    current = text[1:].lstrip()

    atom_exprs: list[Expression] = []
    while not current.startswith(")"):
        if not current:
            raise ParseError(f"Ran out of input while parsing s-expression (missing right paren): {text}")
        atom_expr, current = parse_atom(current, bindings)
        current = current.lstrip()
        atom_exprs.append(atom_expr)

    return build_application(atom_exprs), current[1:]


def parse_reference(text: str) -> tuple[TermReference, str]:
    if not text.startswith("#"):
        raise ParseError(f"Missing pound sign for reference: {text}")
    without_pound = text[1:]
    split = _digit_run_end(without_pound)
    if split == len(without_pound):
        raise ParseError(f"Ran out of input while parsing reference: {text}")
    type_id = _parse_int(without_pound[:split], text)
    suffix = without_pound[split:]

    if suffix.startswith("["):
        vec, remaining = parse_vector(suffix)
        return VectorReference(type_id, vec), remaining
    term_index, remaining = parse_term_index(suffix)
    return FunctionReference(TermPointer(type_id, term_index)), remaining


def parse_term_index(text: str) -> tuple[TermIndex, str]:
    if not text.startswith(("p", "n")):
        raise ParseError(f"Cannot parse term index: {text}")
    is_primitive = text.startswith("p")
    numeral_text = text[1:]
    split = _digit_run_end(numeral_text)
    term_number = _parse_int(numeral_text[:split], text)
    term_index = Primitive(term_number) if is_primitive else NonPrimitive(term_number)
    return term_index, numeral_text[split:]


def _parse_float(elem: str, context: str) -> float:
    """Finite decimal literal only: no nan, inf or digit separators."""
    try:
        value = float(elem)
    except ValueError:
        raise ParseError(f"Malformed float: {elem!r} in {context}") from None
    if "_" in elem or not math.isfinite(value):
        raise ParseError(f"Malformed float: {elem!r} in {context}")
    return value


def parse_vector(text: str) -> tuple[tuple[float, ...], str]:
    if not text.startswith("["):
        raise ParseError(f"Missing left bracket for vector: {text}")
    without_left_bracket = text[1:]
    right_bracket = without_left_bracket.find("]")
    if right_bracket < 0:
        raise ParseError(f"Missing right bracket for vector: {text}")
    content = without_left_bracket[:right_bracket]
    remainder = without_left_bracket[right_bracket + 1:]

    elems = []
    for padded_elem in content.split(","):
        elems.append(_parse_float(padded_elem.strip(), text))
    return tuple(elems), remainder


def parse_identifier(text: str, bindings: Bindings) -> tuple[TermReference, str]:
    end = len(text)
    for i, c in enumerate(text):
        if c.isspace() or c == ")":
            end = i
            break
    if end == 0:
        raise ParseError(f"Expected an identifier: {text}")
    return bindings.lookup(text[:end]), text[end:]


def parse_atom(text: str, bindings: Bindings) -> tuple[Expression, str]:
    if not text:
        raise ParseError("Cannot parse atom: empty text")
    if text.startswith("("):
        return parse_s_expression(text, bindings)
    if text.startswith("#"):
        term_ref, remaining = parse_reference(text)
        return Reference(term_ref), remaining
    term_ref, remaining = parse_identifier(text, bindings)
    return Reference(term_ref), remaining


# ============================================================
# Whole-input entry points
# ============================================================

def _ensure_consumed(remaining: str, text: str):
    if remaining.strip():
        raise ParseError(f"Unexpected trailing input {remaining.strip()!r} after: {text}")


def parse_expression(text: str, bindings: Bindings) -> Expression:
    """Parse one complete atom (as used by let / eval / sim)."""
    text = text.strip()
    expr, remaining = parse_atom(text, bindings)
    _ensure_consumed(remaining, text)
    return expr


def parse_application(text: str, bindings: Bindings) -> AppExpression:
    """Parse one complete parenthesized s-expression."""
    text = text.strip()
    app_expr, remaining = parse_s_expression(text, bindings)
    _ensure_consumed(remaining, text)
    return app_expr
