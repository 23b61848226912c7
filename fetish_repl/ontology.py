"""
Reference type ontology ("Context").

Types are numbered in definition order. A type is either a raw vector space
of fixed dimension, or a function space from one earlier type to another.
A function-typed term is represented by a matrix mapping the argument's
features to the (compressed) return vector, stored flattened:

  output_dim  = compressed dimension of the return type
  feature_dim = full dimension of the argument type + 1 (bias)
  full_dim    = output_dim * feature_dim

Function types may carry a smaller compressed dimension; their vectors are
expanded back to full_dim through an elaborator matrix owned by the model.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .errors import ContextFormatError, EvaluationError
from .terms import TypeId


# ============================================================
# Kinds
# ============================================================

@dataclass(frozen=True)
class VectorKind:
    dim: int


@dataclass(frozen=True)
class FunctionKind:
    arg_type: TypeId
    ret_type: TypeId
    compressed_dim: int | None = None


Kind = VectorKind | FunctionKind


@dataclass(frozen=True)
class PrimitiveTerm:
    name: str
    def get_name(self) -> str: return self.name


@dataclass
class PrimitiveTypeSpace:
    type_id: TypeId
    terms: list[PrimitiveTerm] = field(default_factory=list)


@dataclass
class PrimitiveDirectory:
    primitive_type_spaces: dict[TypeId, PrimitiveTypeSpace] = field(default_factory=dict)

    def get_primitive_terms(self, type_id: TypeId) -> list[PrimitiveTerm]:
        space = self.primitive_type_spaces.get(type_id)
        return space.terms if space is not None else []


# ============================================================
# Space descriptions
# ============================================================

@dataclass(frozen=True)
class FunctionSpaceInfo:
    output_dim: int
    feature_dim: int

    def get_output_dimensions(self) -> int: return self.output_dim
    def get_feature_dimensions(self) -> int: return self.feature_dim
    def get_full_dimensions(self) -> int: return self.output_dim * self.feature_dim


@dataclass(frozen=True)
class FeatureSpaceInfo:
    base_dim: int

    @property
    def feature_dim(self) -> int:
        return self.base_dim + 1

    def get_features_from_base(self, base: np.ndarray) -> np.ndarray:
        base = np.asarray(base, dtype=np.float64)
        if base.shape != (self.base_dim,):
            raise EvaluationError(
                f"Expected a base vector of dimension {self.base_dim}, got shape {base.shape}")
        return np.concatenate([base, [1.0]])


# ============================================================
# Context
# ============================================================

class Context:
    def __init__(self, types: list[Kind], primitive_directory: PrimitiveDirectory | None = None):
        self.types = list(types)
        self.primitive_directory = primitive_directory or PrimitiveDirectory()
        self._validate()

    def _validate(self):
        for type_id, kind in enumerate(self.types):
            if isinstance(kind, VectorKind):
                if kind.dim < 1:
                    raise ContextFormatError(f"Type #{type_id}: vector dimension must be positive")
            elif isinstance(kind, FunctionKind):
                for ref in (kind.arg_type, kind.ret_type):
                    if not 0 <= ref < type_id:
                        raise ContextFormatError(
                            f"Type #{type_id}: function types may only refer to earlier types, got #{ref}")
                full = self.get_full_dimensions(type_id)
                if kind.compressed_dim is not None and not 1 <= kind.compressed_dim <= full:
                    raise ContextFormatError(
                        f"Type #{type_id}: compressed dimension must be in 1..{full}")
            else:
                raise ContextFormatError(f"Type #{type_id}: unknown kind {kind!r}")
        for type_id in self.primitive_directory.primitive_type_spaces:
            if not self.is_function_type(type_id):
                raise ContextFormatError(f"Primitive terms must have function types, got #{type_id}")

    def get_total_num_types(self) -> int:
        return len(self.types)

    def get_type(self, type_id: TypeId) -> Kind:
        if not 0 <= type_id < len(self.types):
            raise EvaluationError(f"No type #{type_id} in the current context")
        return self.types[type_id]

    def is_vector_type(self, type_id: TypeId) -> bool:
        return isinstance(self.get_type(type_id), VectorKind)

    def is_function_type(self, type_id: TypeId) -> bool:
        return isinstance(self.get_type(type_id), FunctionKind)

    def _function_kind(self, type_id: TypeId) -> FunctionKind:
        kind = self.get_type(type_id)
        if not isinstance(kind, FunctionKind):
            raise EvaluationError(f"Type #{type_id} is not a function type")
        return kind

    def get_arg_type_id(self, type_id: TypeId) -> TypeId:
        return self._function_kind(type_id).arg_type

    def get_ret_type_id(self, type_id: TypeId) -> TypeId:
        return self._function_kind(type_id).ret_type

    def get_full_dimensions(self, type_id: TypeId) -> int:
        kind = self.get_type(type_id)
        if isinstance(kind, VectorKind):
            return kind.dim
        return self.get_function_space_info(type_id).get_full_dimensions()

    def get_compressed_dimensions(self, type_id: TypeId) -> int:
        kind = self.get_type(type_id)
        if isinstance(kind, FunctionKind) and kind.compressed_dim is not None:
            return kind.compressed_dim
        return self.get_full_dimensions(type_id)

    def get_function_space_info(self, type_id: TypeId) -> FunctionSpaceInfo:
        kind = self._function_kind(type_id)
        return FunctionSpaceInfo(
            output_dim=self.get_compressed_dimensions(kind.ret_type),
            feature_dim=self.get_feature_space_info(kind.arg_type).feature_dim,
        )

    def get_feature_space_info(self, type_id: TypeId) -> FeatureSpaceInfo:
        return FeatureSpaceInfo(self.get_full_dimensions(type_id))

    def display_type(self, type_id: TypeId) -> str:
        kind = self.get_type(type_id)
        if isinstance(kind, VectorKind):
            return f"Vec({kind.dim})"
        return f"({self.display_type(kind.arg_type)} -> {self.display_type(kind.ret_type)})"

    # -------------------------------------------------------------------
    # Plain-data form
    # -------------------------------------------------------------------

    def to_dict(self) -> dict:
        types = []
        for kind in self.types:
            if isinstance(kind, VectorKind):
                types.append({"kind": "vector", "dim": kind.dim})
            else:
                types.append({"kind": "function", "arg": kind.arg_type, "ret": kind.ret_type,
                              "compressed_dim": kind.compressed_dim})
        primitives = {
            str(type_id): [term.name for term in space.terms]
            for type_id, space in sorted(self.primitive_directory.primitive_type_spaces.items())
        }
        return {"types": types, "primitives": primitives}

    @classmethod
    def from_dict(cls, data: dict) -> "Context":
        try:
            types: list[Kind] = []
            for entry in data["types"]:
                if entry["kind"] == "vector":
                    types.append(VectorKind(int(entry["dim"])))
                elif entry["kind"] == "function":
                    compressed = entry.get("compressed_dim")
                    types.append(FunctionKind(int(entry["arg"]), int(entry["ret"]),
                                              None if compressed is None else int(compressed)))
                else:
                    raise ContextFormatError(f"Unknown type kind {entry['kind']!r}")
            spaces = {}
            for type_key, names in data.get("primitives", {}).items():
                type_id = int(type_key)
                spaces[type_id] = PrimitiveTypeSpace(type_id, [PrimitiveTerm(str(n)) for n in names])
        except (KeyError, TypeError, ValueError) as e:
            raise ContextFormatError(f"Malformed context: {e!r}") from e
        return cls(types, PrimitiveDirectory(spaces))

    def __eq__(self, other):
        return isinstance(other, Context) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Context({self.get_total_num_types()} types)"
