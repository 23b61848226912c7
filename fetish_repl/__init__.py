"""
fetish_repl - interactive evaluator for term-embedding s-expressions.

Parses nested applications of typed terms, then either evaluates them
deterministically against a persistent term-application model, or simulates
them by sampling the terms' probabilistic embeddings.
"""

__version__ = "0.1.0"

from .bindings import Bindings
from .expression import AppExpression, Function, Reference, build_application
from .parsers import parse_atom, parse_expression, parse_s_expression
from .state import ContextState, GlobalState
from .terms import (
    FunctionReference, NonPrimitive, Primitive, TermPointer, TypedVector, VectorReference,
)

__all__ = [
    "AppExpression",
    "Bindings",
    "ContextState",
    "Function",
    "FunctionReference",
    "GlobalState",
    "NonPrimitive",
    "Primitive",
    "Reference",
    "TermPointer",
    "TypedVector",
    "VectorReference",
    "build_application",
    "parse_atom",
    "parse_expression",
    "parse_s_expression",
]
