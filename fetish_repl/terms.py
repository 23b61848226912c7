"""
Term identifiers and values.

A TermPointer names one function-typed term (primitive or synthesized during
evaluation). A TermReference is what an expression reduces to: either such a
function term, or a literal/derived vector of some vector type.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


TypeId = int


# ============================================================
# Term indices
# ============================================================

@dataclass(frozen=True)
class Primitive:
    index: int
    def __repr__(self): return f"p{self.index}"


@dataclass(frozen=True)
class NonPrimitive:
    index: int
    def __repr__(self): return f"n{self.index}"


TermIndex = Primitive | NonPrimitive


@dataclass(frozen=True)
class TermPointer:
    type_id: TypeId
    index: TermIndex
    def __repr__(self): return f"#{self.type_id}{self.index!r}"


# ============================================================
# Term references
# ============================================================

@dataclass(frozen=True)
class FunctionReference:
    term_ptr: TermPointer
    def __repr__(self): return repr(self.term_ptr)


@dataclass(frozen=True)
class VectorReference:
    type_id: TypeId
    vec: tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "vec", tuple(float(x) for x in self.vec))

    def __repr__(self): return f"#{self.type_id}{format_floats(self.vec)}"


TermReference = FunctionReference | VectorReference


@dataclass(frozen=True, eq=False)
class TypedVector:
    """A fully expanded vector of the given type, as produced by simulation."""

    type_id: TypeId
    vec: np.ndarray

    def __repr__(self): return f"#{self.type_id}{format_floats(self.vec)}"


def format_floats(values) -> str:
    """Render floats the way vector literals are written, e.g. [1.0, 2.5]."""
    return "[" + ", ".join(repr(float(x)) for x in values) + "]"


def format_term_ref(term_ref: TermReference) -> str:
    return repr(term_ref)
