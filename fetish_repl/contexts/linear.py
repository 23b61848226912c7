"""
Default context definition: linear function spaces over vector types.

Parameters are JSON of the form

  {
    "types": [
      {"vector": 2},
      {"function": [0, 0]},
      {"function": [0, 1], "compressed_dim": 4}
    ],
    "primitives": {"1": ["scale", "shift"], "2": ["pair"]}
  }

where each function type names its argument and return type ids, which must
be defined earlier. Generation validates the parameters and emits the
canonical context JSON that deserialize_serialized_context reads back.
"""

from __future__ import annotations

import json

from fetish_repl.errors import ContextFormatError
from fetish_repl.ontology import (
    Context, FunctionKind, PrimitiveDirectory, PrimitiveTerm, PrimitiveTypeSpace, VectorKind,
)


def _kind_from_params(type_id: int, entry) -> VectorKind | FunctionKind:
    if not isinstance(entry, dict):
        raise ContextFormatError(f"Type #{type_id}: expected an object, got {entry!r}")
    if "vector" in entry:
        return VectorKind(int(entry["vector"]))
    if "function" in entry:
        arg_type, ret_type = entry["function"]
        compressed = entry.get("compressed_dim")
        return FunctionKind(int(arg_type), int(ret_type), None if compressed is None else int(compressed))
    raise ContextFormatError(f"Type #{type_id}: expected a 'vector' or 'function' entry")


def context_from_params(params: dict) -> Context:
    if not isinstance(params, dict) or "types" not in params:
        raise ContextFormatError("Context parameters must be an object with a 'types' list")
    types = [_kind_from_params(i, entry) for i, entry in enumerate(params["types"])]
    spaces = {}
    for type_key, names in params.get("primitives", {}).items():
        type_id = int(type_key)
        if len(set(names)) != len(names):
            raise ContextFormatError(f"Duplicate primitive term names for type #{type_id}")
        spaces[type_id] = PrimitiveTypeSpace(type_id, [PrimitiveTerm(str(name)) for name in names])
    return Context(types, PrimitiveDirectory(spaces))


def generate_serialized_context(params: bytes) -> bytes:
    ctxt = context_from_params(json.loads(params))
    return json.dumps(ctxt.to_dict(), indent=2).encode()


def deserialize_serialized_context(data: bytes) -> Context:
    return Context.from_dict(json.loads(data))
