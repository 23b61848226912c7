"""Tests for the term-expression parser and the binding environment."""

from __future__ import annotations

import pytest

from fetish_repl.bindings import Bindings
from fetish_repl.errors import (
    CannotApplyVectorError, ParseError, SingletonExpressionError, UnboundIdentifierError,
)
from fetish_repl.expression import AppExpression, Function, Reference
from fetish_repl.parsers import (
    parse_application, parse_atom, parse_expression, parse_reference, parse_s_expression,
    parse_vector,
)
from fetish_repl.terms import FunctionReference, NonPrimitive, Primitive, TermPointer, VectorReference


def fref(type_id, index):
    return FunctionReference(TermPointer(type_id, index))


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

def test_vector_literal():
    term_ref, rest = parse_reference("#0[1.0, 2.0, 3.0]")
    assert term_ref == VectorReference(0, [1.0, 2.0, 3.0])
    assert term_ref.vec == (1.0, 2.0, 3.0)
    assert rest == ""


def test_vector_literal_renders_back():
    term_ref, _ = parse_reference("#0[1.0, 2.0, 3.0]")
    assert repr(term_ref) == "#0[1.0, 2.0, 3.0]"
    again, _ = parse_reference(repr(term_ref))
    assert again == term_ref


def test_term_indices():
    assert parse_reference("#2p5") == (fref(2, Primitive(5)), "")
    assert parse_reference("#2n5") == (fref(2, NonPrimitive(5)), "")
    assert parse_reference("#12p345 rest") == (fref(12, Primitive(345)), " rest")


def test_reference_errors():
    with pytest.raises(ParseError, match="pound sign"):
        parse_reference("2p5")
    with pytest.raises(ParseError, match="Ran out of input"):
        parse_reference("#25")
    with pytest.raises(ParseError, match="Malformed integer"):
        parse_reference("#p5")
    with pytest.raises(ParseError, match="Malformed integer"):
        parse_reference("#2p")
    with pytest.raises(ParseError, match="term index"):
        parse_reference("#2x5")


def test_vector_errors():
    with pytest.raises(ParseError, match="Missing left bracket"):
        parse_vector("1.0]")
    with pytest.raises(ParseError, match="Missing right bracket"):
        parse_vector("[1.0, 2.0")
    with pytest.raises(ParseError, match="Malformed float"):
        parse_vector("[1.0, abc]")
    with pytest.raises(ParseError, match="Malformed float"):
        parse_vector("[]")


@pytest.mark.parametrize("text", ["[nan]", "[1.0, inf]", "[-Infinity, 2.0]", "[1_0]", "[1e400]"])
def test_vector_elements_must_be_finite_literals(text):
    with pytest.raises(ParseError, match="Malformed float"):
        parse_vector(text)


def test_vector_exponents_and_signs():
    assert parse_vector("[-1.5e2, +2, .5]") == ((-150.0, 2.0, 0.5), "")


# ---------------------------------------------------------------------------
# S-expressions
# ---------------------------------------------------------------------------

def test_curried_application_is_left_associative():
    bindings = Bindings()
    for name, index in [("f", 0), ("a", 1), ("b", 2), ("c", 3)]:
        bindings.write(name, fref(1, Primitive(index)))
    app, rest = parse_s_expression("(f a b c)", bindings)
    assert rest == ""

    f, a, b, c = (Function(TermPointer(1, Primitive(i))) for i in range(4))
    ref = lambda fn: Reference(FunctionReference(fn.term_ptr))
    expected = AppExpression(AppExpression(AppExpression(f, ref(a)), ref(b)), ref(c))
    assert app == expected
    assert repr(app) == "(((#1p0 #1p1) #1p2) #1p3)"


def test_nested_and_whitespace():
    app = parse_application("  ( #1p0   ( #2p0 #0[1.0,2.0] )\t#0[0.5, -1.5] ) ", Bindings())
    assert repr(app) == "((#1p0 (#2p0 #0[1.0, 2.0])) #0[0.5, -1.5])"


def test_paren_errors():
    with pytest.raises(ParseError, match="Missing left paren"):
        parse_s_expression("#1p0 #0[1.0])", Bindings())
    with pytest.raises(ParseError, match="Ran out of input"):
        parse_s_expression("(#1p0 #0[1.0]", Bindings())


def test_arity_errors_come_from_builder():
    with pytest.raises(SingletonExpressionError):
        parse_s_expression("(#1p0)", Bindings())
    with pytest.raises(CannotApplyVectorError):
        parse_s_expression("(#0[1.0] #1p0)", Bindings())
    with pytest.raises(ParseError, match="Empty expression"):
        parse_s_expression("()", Bindings())


def test_unbound_identifier():
    with pytest.raises(UnboundIdentifierError) as info:
        parse_s_expression("(foo bar)", Bindings())
    assert info.value.name == "foo"
    assert isinstance(info.value, LookupError)


def test_identifier_resolution():
    bindings = Bindings()
    bindings.write("v", VectorReference(0, [1.0, 2.0]))
    expr, rest = parse_atom("v)", bindings)
    assert expr == Reference(VectorReference(0, [1.0, 2.0]))
    assert rest == ")"


def test_parse_expression_rejects_trailing_input():
    assert parse_expression(" #2p5 ", Bindings()) == Reference(fref(2, Primitive(5)))
    with pytest.raises(ParseError, match="trailing"):
        parse_expression("(#1p0 #0[1.0]) extra", Bindings())


# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------

def test_bindings_overwrite_and_lookup():
    bindings = Bindings()
    bindings.write("x", fref(1, Primitive(0)))
    bindings.write("x", fref(1, Primitive(1)))
    assert bindings.lookup("x") == fref(1, Primitive(1))
    assert "x" in bindings and len(bindings) == 1
    with pytest.raises(UnboundIdentifierError, match="No identifier named X in scope"):
        bindings.lookup("X")
