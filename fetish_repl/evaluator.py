"""
Deterministic evaluation of expression trees.

The model only needs one capability here:

  model.evaluate(func_ptr, arg_ref) -> TermReference

which is expected to memoize applications (and may grow the model as a side
effect). The callee is always evaluated before the argument.
"""

from __future__ import annotations

from .errors import ExpectedFunctionGotVectorError
from .expression import AppExpression, Expression, FuncExpression, Function
from .terms import FunctionReference, TermPointer, TermReference


def evaluate_func_expression(model, func_expr: FuncExpression) -> TermPointer:
    if isinstance(func_expr, Function):
        return func_expr.term_ptr
    result_ref = evaluate_app_expression(model, func_expr)
    if not isinstance(result_ref, FunctionReference):
        raise ExpectedFunctionGotVectorError(repr(func_expr))
    return result_ref.term_ptr


def evaluate_app_expression(model, app_expr: AppExpression) -> TermReference:
    func_ptr = evaluate_func_expression(model, app_expr.func_expr)
    arg_ref = evaluate_expression(model, app_expr.arg_expr)
    return model.evaluate(func_ptr, arg_ref)


def evaluate_expression(model, expr: Expression) -> TermReference:
    if isinstance(expr, AppExpression):
        return evaluate_app_expression(model, expr)
    return expr.term_ref
