from __future__ import annotations

import pytest

from fetish_repl.errors import CannotApplyVectorError, EmptyExpressionError, SingletonExpressionError
from fetish_repl.expression import (
    AppExpression, Function, Reference, build_application, maybe_func_expression,
)
from fetish_repl.terms import FunctionReference, Primitive, TermPointer, VectorReference

F = TermPointer(1, Primitive(0))
VEC = VectorReference(0, [1.0, 2.0])


def test_empty_and_singleton():
    with pytest.raises(EmptyExpressionError):
        build_application([])
    with pytest.raises(SingletonExpressionError):
        build_application([Reference(FunctionReference(F))])


def test_vector_in_head_position():
    with pytest.raises(CannotApplyVectorError):
        build_application([Reference(VEC), Reference(FunctionReference(F))])


def test_two_elements():
    app = build_application([Reference(FunctionReference(F)), Reference(VEC)])
    assert app == AppExpression(Function(F), Reference(VEC))


def test_fold_is_left_associative():
    args = [Reference(VectorReference(0, [float(i), 0.0])) for i in range(3)]
    app = build_application([Reference(FunctionReference(F))] + args)
    assert app.arg_expr == args[2]
    assert app.func_expr.arg_expr == args[1]
    assert app.func_expr.func_expr == AppExpression(Function(F), args[0])


def test_nested_application_in_head_position():
    inner = AppExpression(Function(F), Reference(VEC))
    app = build_application([inner, Reference(VEC)])
    assert app.func_expr is inner


def test_maybe_func_expression():
    assert maybe_func_expression(Reference(FunctionReference(F))) == Function(F)
    assert maybe_func_expression(Reference(VEC)) is None
