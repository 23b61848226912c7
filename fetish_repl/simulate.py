"""
Stochastic simulation of expression trees.

Instead of applying posterior means, every function term leaf draws one
sample from its embedding and the sample is pushed through the application
as a linear map. All returned TypedVectors are fully expanded (never in a
type's compressed space). Vector literals are used as-is and draw nothing.
"""

from __future__ import annotations

import numpy as np

from .errors import EvaluationError, ExpectedFunctionGotVectorError
from .expression import AppExpression, Expression, FuncExpression, Function
from .terms import FunctionReference, TermPointer, TermReference, TypedVector, TypeId


def expand_compressed_vector(model, type_id: TypeId, vec: np.ndarray) -> TypedVector:
    if model.get_context().is_vector_type(type_id):
        return TypedVector(type_id, vec)
    elaborator_mean = model.get_elaborator_mean(type_id)
    return TypedVector(type_id, elaborator_mean @ vec)


def simulate_term_pointer(model, term_ptr: TermPointer) -> TypedVector:
    return TypedVector(term_ptr.type_id, model.sample(term_ptr))


def simulate_term_reference(model, term_ref: TermReference) -> TypedVector:
    if isinstance(term_ref, FunctionReference):
        return simulate_term_pointer(model, term_ref.term_ptr)
    return TypedVector(term_ref.type_id, np.array(term_ref.vec, dtype=np.float64))


def simulate_app_expression(model, app_expr: AppExpression) -> TypedVector:
    ctxt = model.get_context()

    func_vec = simulate_func_expression(model, app_expr.func_expr)
    arg_vec = simulate_expression(model, app_expr.arg_expr)

    expected_arg_type = ctxt.get_arg_type_id(func_vec.type_id)
    if arg_vec.type_id != expected_arg_type:
        raise EvaluationError(
            f"Cannot apply {app_expr.func_expr!r} of type {ctxt.display_type(func_vec.type_id)} "
            f"to {app_expr.arg_expr!r} of type #{arg_vec.type_id}")

    function_space_info = ctxt.get_function_space_info(func_vec.type_id)
    arg_feat_info = ctxt.get_feature_space_info(arg_vec.type_id)
    ret_type_id = ctxt.get_ret_type_id(func_vec.type_id)

    shape = (function_space_info.get_output_dimensions(), function_space_info.get_feature_dimensions())
    if func_vec.vec.size != shape[0] * shape[1]:
        raise EvaluationError(
            f"Sample for {app_expr.func_expr!r} has {func_vec.vec.size} entries, expected {shape[0]}x{shape[1]}")
    func_mat = func_vec.vec.reshape(shape)

    arg_feats = arg_feat_info.get_features_from_base(arg_vec.vec)

    ret_compressed = func_mat @ arg_feats
    return expand_compressed_vector(model, ret_type_id, ret_compressed)


def simulate_func_expression(model, func_expr: FuncExpression) -> TypedVector:
    if isinstance(func_expr, Function):
        return simulate_term_pointer(model, func_expr.term_ptr)
    formatted_app = repr(func_expr)
    result_vec = simulate_app_expression(model, func_expr)
    if model.get_context().is_vector_type(result_vec.type_id):
        raise ExpectedFunctionGotVectorError(formatted_app, verb="simulating")
    return result_vec


def simulate_expression(model, expr: Expression) -> TypedVector:
    if isinstance(expr, AppExpression):
        return simulate_app_expression(model, expr)
    return simulate_term_reference(model, expr.term_ref)
