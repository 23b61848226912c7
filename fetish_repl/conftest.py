from __future__ import annotations

import json

import pytest

from fetish_repl.bindings import Bindings
from fetish_repl.contexts.linear import generate_serialized_context
from fetish_repl.loading import ContextDefinitionLibraryHandle
from fetish_repl.model import InterpreterAndEmbedderState
from fetish_repl.ontology import Context
from fetish_repl.state import ContextState, GlobalState

# #0: Vec(2)   #1: Vec(2) -> Vec(2), compressed to 4   #2: Vec(2) -> (Vec(2) -> Vec(2))
PARAMS = {
    "types": [
        {"vector": 2},
        {"function": [0, 0], "compressed_dim": 4},
        {"function": [0, 1]},
    ],
    "primitives": {"1": ["scale", "shift"], "2": ["pair"]},
}


@pytest.fixture
def params_bytes() -> bytes:
    return json.dumps(PARAMS).encode()


@pytest.fixture
def ctxt_bytes(params_bytes) -> bytes:
    return generate_serialized_context(params_bytes)


@pytest.fixture
def ctxt(ctxt_bytes) -> Context:
    return Context.from_dict(json.loads(ctxt_bytes))


@pytest.fixture
def model(ctxt) -> InterpreterAndEmbedderState:
    return InterpreterAndEmbedderState.new(ctxt, seed=0)


@pytest.fixture
def context_state(ctxt_bytes, ctxt) -> ContextState:
    return ContextState(ctxt_bytes, ctxt, seed=0)


@pytest.fixture
def bindings() -> Bindings:
    return Bindings()


@pytest.fixture
def glob_state() -> GlobalState:
    return GlobalState(ContextDefinitionLibraryHandle.load(), seed=0)


@pytest.fixture
def params_path(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps(PARAMS))
    return path
