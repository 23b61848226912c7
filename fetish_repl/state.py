"""
Session state and the model checkout protocol.

A ContextState keeps the model at rest in serialized form, because the live
model borrows the Context. Every operation on the model checks it out:

  1. swap the stored snapshot for an empty placeholder
  2. deserialize the snapshot against the Context
  3. run the operation on the live model (errors are captured, not fatal)
  4. re-serialize the live model and swap it back in
  5. hand back the operation's result or re-raise its error

The stored snapshot is therefore always a complete model between commands,
whatever the operation did.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, TypeVar

from .bindings import Bindings
from .errors import StateUnavailableError
from .evaluator import evaluate_expression
from .expression import Expression
from .loading import ContextDefinitionLibraryHandle
from .model import InterpreterAndEmbedderState, SerializedInterpreterAndEmbedderState
from .ontology import Context
from .simulate import simulate_expression
from .terms import TermReference, TypedVector

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ContextState:
    def __init__(self, ctxt_bytes: bytes, ctxt: Context, seed: int | None = None):
        self.ctxt = ctxt
        self.ctxt_bytes = ctxt_bytes
        self.interpreter_and_embedder_state = InterpreterAndEmbedderState.new(ctxt, seed).serialize()

    @contextmanager
    def checkout(self) -> Iterator[InterpreterAndEmbedderState]:
        """Exclusive live view of the model, restored on every exit path."""
        serialized = self.interpreter_and_embedder_state
        self.interpreter_and_embedder_state = SerializedInterpreterAndEmbedderState.empty()
        try:
            live = serialized.deserialize(self.ctxt)
        except BaseException:
            self.interpreter_and_embedder_state = serialized
            raise
        logger.debug("Checked out model")
        try:
            yield live
        finally:
            try:
                restored = live.serialize()
            except BaseException:
                logger.error("Could not re-serialize the live model; keeping the previous snapshot")
                self.interpreter_and_embedder_state = serialized
                raise
            self.interpreter_and_embedder_state = restored
            logger.debug("Restored model")

    def perform_on_models(self, func: Callable[[InterpreterAndEmbedderState], R]) -> R:
        with self.checkout() as live:
            return func(live)

    def eval(self, expr: Expression) -> TermReference:
        return self.perform_on_models(lambda live: evaluate_expression(live, expr))

    def simulate(self, expr: Expression) -> TypedVector:
        return self.perform_on_models(lambda live: simulate_expression(live, expr))

    def update_models(self):
        def update(live: InterpreterAndEmbedderState):
            live.bayesian_update_step()
            live.clear_newly_received()
        self.perform_on_models(update)


@dataclass
class GlobalState:
    lib_handle: ContextDefinitionLibraryHandle
    bindings: Bindings = field(default_factory=Bindings)
    maybe_context_state: ContextState | None = None
    seed: int | None = None

    def set_context(self, ctxt_bytes: bytes, ctxt: Context):
        self.maybe_context_state = ContextState(ctxt_bytes, ctxt, self.seed)
        logger.info("Loaded context with %d types", ctxt.get_total_num_types())

    def unload_context(self):
        self.maybe_context_state = None

    def require_context_state(self) -> ContextState:
        if self.maybe_context_state is None:
            raise StateUnavailableError()
        return self.maybe_context_state
