"""Checkout protocol: the stored model is never left as the placeholder."""

from __future__ import annotations

import pytest

from fetish_repl.bindings import Bindings
from fetish_repl.errors import EvaluationError, StateUnavailableError
from fetish_repl.model import InterpreterAndEmbedderState
from fetish_repl.parsers import parse_expression
from fetish_repl.terms import FunctionReference, NonPrimitive, TermPointer, VectorReference


def expr(text):
    return parse_expression(text, Bindings())


def test_fresh_state_is_resident(context_state):
    assert not context_state.interpreter_and_embedder_state.is_empty()


def test_placeholder_only_while_checked_out(context_state):
    with context_state.checkout() as live:
        assert isinstance(live, InterpreterAndEmbedderState)
        assert context_state.interpreter_and_embedder_state.is_empty()
    assert not context_state.interpreter_and_embedder_state.is_empty()


def test_eval_persists_model_growth(context_state):
    result = context_state.eval(expr("(#2p0 #0[1.0, 2.0])"))
    assert result == FunctionReference(TermPointer(1, NonPrimitive(0)))
    stored = context_state.interpreter_and_embedder_state
    assert len(stored.application_tables) == 1
    assert stored.type_spaces == {"1": [["#2p0", "#0[1.0, 2.0]"]]}
    # the synthesized term is usable by later commands
    again = context_state.eval(expr("(#1n0 #0[0.0, 1.0])"))
    assert again.type_id == 0


def test_failed_eval_restores_model(context_state):
    context_state.eval(expr("(#1p0 #0[1.0, 2.0])"))
    with pytest.raises(EvaluationError):
        context_state.eval(expr("(#1p0 #0[1.0, 2.0] #0[1.0, 2.0])"))
    stored = context_state.interpreter_and_embedder_state
    assert not stored.is_empty()
    assert len(stored.application_tables) == 1


def test_exception_inside_operation_restores_model(context_state):
    def explode(live):
        live.evaluate(TermPointer(1, NonPrimitive(99)), VectorReference(0, [1.0, 2.0]))

    with pytest.raises(EvaluationError, match="No term #1n99"):
        context_state.perform_on_models(explode)
    assert not context_state.interpreter_and_embedder_state.is_empty()
    assert context_state.interpreter_and_embedder_state.deserialize(context_state.ctxt)


def test_failed_update_restores_model(context_state, monkeypatch):
    context_state.eval(expr("(#1p0 #0[1.0, 2.0])"))

    def broken(self):
        raise RuntimeError("update failed")

    monkeypatch.setattr(InterpreterAndEmbedderState, "bayesian_update_step", broken)
    with pytest.raises(RuntimeError):
        context_state.update_models()
    stored = context_state.interpreter_and_embedder_state
    assert not stored.is_empty()
    # the pending queue was not cleared since the update never completed
    assert len(stored.newly_evaluated_terms) == 1


def test_update_models_clears_queue(context_state):
    context_state.eval(expr("(#1p0 #0[1.0, 2.0])"))
    context_state.update_models()
    stored = context_state.interpreter_and_embedder_state
    assert stored.newly_evaluated_terms == []
    assert len(stored.application_tables) == 1


def test_simulate_advances_stored_rng(context_state):
    before = context_state.interpreter_and_embedder_state.rng_state
    context_state.simulate(expr("(#1p0 #0[1.0, 2.0])"))
    assert context_state.interpreter_and_embedder_state.rng_state != before


def test_failed_deserialize_keeps_snapshot(context_state, monkeypatch):
    snapshot = context_state.interpreter_and_embedder_state

    def broken(self, ctxt):
        raise ValueError("corrupt")

    monkeypatch.setattr(type(snapshot), "deserialize", broken)
    with pytest.raises(ValueError):
        context_state.eval(expr("(#1p0 #0[1.0, 2.0])"))
    assert context_state.interpreter_and_embedder_state is snapshot


def test_global_state_context_lifecycle(glob_state, ctxt_bytes, ctxt):
    with pytest.raises(StateUnavailableError):
        glob_state.require_context_state()
    glob_state.set_context(ctxt_bytes, ctxt)
    assert glob_state.require_context_state().ctxt is ctxt
    glob_state.unload_context()
    assert glob_state.maybe_context_state is None
