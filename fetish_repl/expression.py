"""
Expression trees.

  Expression     := Reference(term_ref) | AppExpression
  FuncExpression := Function(term_ptr)  | AppExpression

AppExpression doubles as the "application" variant of both unions. Keeping a
separate FuncExpression means a vector can never sit in callee position.
Trees are built once, bottom-up, and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .errors import CannotApplyVectorError, EmptyExpressionError, SingletonExpressionError
from .terms import FunctionReference, TermPointer, TermReference, VectorReference


# ============================================================
# AST
# ============================================================

@dataclass(frozen=True)
class Reference:
    term_ref: TermReference
    def __repr__(self): return repr(self.term_ref)


@dataclass(frozen=True)
class Function:
    term_ptr: TermPointer
    def __repr__(self): return repr(self.term_ptr)


@dataclass(frozen=True)
class AppExpression:
    func_expr: FuncExpression
    arg_expr: Expression
    def __repr__(self): return f"({self.func_expr!r} {self.arg_expr!r})"


Expression = Union[Reference, AppExpression]
FuncExpression = Union[Function, AppExpression]


# ============================================================
# Builder
# ============================================================

def maybe_func_expression(expr: Expression) -> FuncExpression | None:
    """View `expr` as something applicable, or None if it is a vector."""
    if isinstance(expr, AppExpression):
        return expr
    term_ref = expr.term_ref
    if isinstance(term_ref, FunctionReference):
        return Function(term_ref.term_ptr)
    if isinstance(term_ref, VectorReference):
        return None
    raise TypeError(f"Not an expression: {expr!r}")


def build_application(exprs: list[Expression]) -> AppExpression:
    """Left-associative curried application: (f a b c) -> (((f a) b) c)."""
    if not exprs:
        raise EmptyExpressionError()
    if len(exprs) < 2:
        raise SingletonExpressionError()
    func_expr = maybe_func_expression(exprs[0])
    if func_expr is None:
        raise CannotApplyVectorError()
    result = AppExpression(func_expr, exprs[1])
    for arg_expr in exprs[2:]:
        result = AppExpression(result, arg_expr)
    return result
