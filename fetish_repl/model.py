"""
Reference interpreter + embedder model.

Holds everything an evaluation session mutates:

  * application tables: memoized (function term, argument) -> result
  * type spaces: the non-primitive terms synthesized so far, per type
  * model spaces: one matrix-normal embedding per function term
  * elaborators: compressed -> full expansion matrices, per function type
  * newly evaluated terms: applications not yet folded into the embeddings

Deterministic evaluation applies an embedding's posterior mean; simulation
applies a sample drawn from it. The live model borrows its Context, so it is
kept at rest in serialized form (see state.ContextState).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from .errors import ContextFormatError, EvaluationError
from .ontology import Context
from .parsers import parse_reference
from .terms import (
    FunctionReference, NonPrimitive, Primitive, TermPointer, TermReference,
    TypeId, VectorReference,
)

logger = logging.getLogger(__name__)

PRIOR_PRECISION = 1.0
NOISE_VARIANCE = 0.1
INIT_SCALE = 0.1


# ============================================================
# Embeddings
# ============================================================

class MatrixNormalEmbedding:
    """Gaussian belief over an [output_dim x feature_dim] linear map.

    Rows share the column precision matrix, which is the conjugate prior for
    Bayesian linear regression with isotropic noise.
    """

    def __init__(self, mean: np.ndarray, precision: np.ndarray):
        self.mean = np.asarray(mean, dtype=np.float64)
        self.precision = np.asarray(precision, dtype=np.float64)

    @classmethod
    def from_prior(cls, mean: np.ndarray) -> "MatrixNormalEmbedding":
        feature_dim = mean.shape[1]
        return cls(mean, PRIOR_PRECISION * np.eye(feature_dim))

    def get_mean_as_vec(self) -> np.ndarray:
        return self.mean.reshape(-1)

    def sample_as_vec(self, rng: np.random.Generator) -> np.ndarray:
        covariance = np.linalg.inv(self.precision)
        chol = np.linalg.cholesky(covariance)
        noise = rng.standard_normal(self.mean.shape)
        return (self.mean + noise @ chol.T).reshape(-1)

    def update(self, features: np.ndarray, targets: np.ndarray,
               noise_variance: float = NOISE_VARIANCE):
        """Condition on rows of (features -> targets)."""
        new_precision = self.precision + features.T @ features / noise_variance
        rhs = self.mean @ self.precision + targets.T @ features / noise_variance
        self.mean = np.linalg.solve(new_precision, rhs.T).T
        self.precision = new_precision


@dataclass(frozen=True)
class AppliedTerm:
    """How a non-primitive term came to be."""
    func_ptr: TermPointer
    arg_ref: TermReference


# ============================================================
# Serialized form
# ============================================================

@dataclass
class SerializedInterpreterAndEmbedderState:
    """Plain-data snapshot of a model; terms are stored in their textual form."""

    application_tables: list[list[str]] = field(default_factory=list)
    type_spaces: dict[str, list[list[str]]] = field(default_factory=dict)
    model_spaces: list[dict] = field(default_factory=list)
    elaborators: dict[str, list[list[float]]] = field(default_factory=dict)
    newly_evaluated_terms: list[list[str]] = field(default_factory=list)
    rng_state: dict | None = None

    @classmethod
    def empty(cls) -> "SerializedInterpreterAndEmbedderState":
        return cls()

    def is_empty(self) -> bool:
        return (not self.application_tables and not self.type_spaces
                and not self.model_spaces and not self.elaborators
                and not self.newly_evaluated_terms and self.rng_state is None)

    def deserialize(self, ctxt: Context) -> "InterpreterAndEmbedderState":
        if self.rng_state is None:
            raise ContextFormatError("Cannot deserialize an empty model")
        try:
            application_tables = {
                (_parse_ptr(f), _parse_ref(a)): _parse_ref(r)
                for f, a, r in self.application_tables
            }
            type_spaces = {
                int(type_key): [AppliedTerm(_parse_ptr(f), _parse_ref(a)) for f, a in terms]
                for type_key, terms in self.type_spaces.items()
            }
            model_spaces = {
                _parse_ptr(entry["term"]): MatrixNormalEmbedding(
                    np.array(entry["mean"], dtype=np.float64),
                    np.array(entry["precision"], dtype=np.float64))
                for entry in self.model_spaces
            }
            elaborators = {int(k): np.array(v, dtype=np.float64) for k, v in self.elaborators.items()}
            newly_evaluated_terms = [(_parse_ptr(f), _parse_ref(a)) for f, a in self.newly_evaluated_terms]
        except (KeyError, TypeError, ValueError) as e:
            raise ContextFormatError(f"Malformed serialized model: {e!r}") from e

        rng = np.random.default_rng()
        rng.bit_generator.state = self.rng_state
        return InterpreterAndEmbedderState(ctxt, application_tables, type_spaces, model_spaces,
                                           elaborators, newly_evaluated_terms, rng)


def _parse_ref(text: str) -> TermReference:
    term_ref, remaining = parse_reference(text)
    if remaining:
        raise ValueError(f"trailing text in serialized term {text!r}")
    return term_ref


def _parse_ptr(text: str) -> TermPointer:
    term_ref = _parse_ref(text)
    if not isinstance(term_ref, FunctionReference):
        raise ValueError(f"expected a term pointer, got {text!r}")
    return term_ref.term_ptr


# ============================================================
# Live model
# ============================================================

class InterpreterAndEmbedderState:
    def __init__(self, ctxt: Context,
                 application_tables: dict[tuple[TermPointer, TermReference], TermReference],
                 type_spaces: dict[TypeId, list[AppliedTerm]],
                 model_spaces: dict[TermPointer, MatrixNormalEmbedding],
                 elaborators: dict[TypeId, np.ndarray],
                 newly_evaluated_terms: list[tuple[TermPointer, TermReference]],
                 rng: np.random.Generator):
        self.ctxt = ctxt
        self.application_tables = application_tables
        self.type_spaces = type_spaces
        self.model_spaces = model_spaces
        self.elaborators = elaborators
        self.newly_evaluated_terms = newly_evaluated_terms
        self.rng = rng

    @classmethod
    def new(cls, ctxt: Context, seed: int | None = None) -> "InterpreterAndEmbedderState":
        """Fresh model: prior embeddings for every primitive term."""
        rng = np.random.default_rng(seed)
        elaborators = {}
        for type_id in range(ctxt.get_total_num_types()):
            if ctxt.is_vector_type(type_id):
                continue
            full = ctxt.get_full_dimensions(type_id)
            compressed = ctxt.get_compressed_dimensions(type_id)
            if compressed == full:
                elaborators[type_id] = np.eye(full)
            else:
                q, _ = np.linalg.qr(rng.standard_normal((full, compressed)))
                elaborators[type_id] = q

        model_spaces = {}
        for type_id, space in sorted(ctxt.primitive_directory.primitive_type_spaces.items()):
            info = ctxt.get_function_space_info(type_id)
            for i in range(len(space.terms)):
                mean = rng.normal(0.0, INIT_SCALE, (info.output_dim, info.feature_dim))
                model_spaces[TermPointer(type_id, Primitive(i))] = MatrixNormalEmbedding.from_prior(mean)

        return cls(ctxt, {}, {}, model_spaces, elaborators, [], rng)

    def get_context(self) -> Context:
        return self.ctxt

    # -------------------------------------------------------------------
    # Embedding access
    # -------------------------------------------------------------------

    def get_embedding(self, term_ptr: TermPointer) -> MatrixNormalEmbedding:
        embedding = self.model_spaces.get(term_ptr)
        if embedding is None:
            raise EvaluationError(f"No term {term_ptr!r} in the current context")
        return embedding

    def sample(self, term_ptr: TermPointer) -> np.ndarray:
        return self.get_embedding(term_ptr).sample_as_vec(self.rng)

    def get_elaborator_mean(self, type_id: TypeId) -> np.ndarray:
        if type_id not in self.elaborators:
            raise EvaluationError(f"Type #{type_id} has no elaborator")
        return self.elaborators[type_id]

    def get_mean_vector(self, term_ref: TermReference) -> np.ndarray:
        """Full-dimensional vector for a reference, using posterior means."""
        if isinstance(term_ref, VectorReference):
            return np.array(term_ref.vec, dtype=np.float64)
        return self.get_embedding(term_ref.term_ptr).get_mean_as_vec()

    def compress(self, type_id: TypeId, full_vec: np.ndarray) -> np.ndarray:
        if self.ctxt.is_vector_type(type_id):
            return full_vec
        return np.linalg.pinv(self.get_elaborator_mean(type_id)) @ full_vec

    def expand(self, type_id: TypeId, compressed_vec: np.ndarray) -> np.ndarray:
        if self.ctxt.is_vector_type(type_id):
            return compressed_vec
        return self.get_elaborator_mean(type_id) @ compressed_vec

    # -------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------

    def _check_argument(self, func_ptr: TermPointer, arg_ref: TermReference):
        expected = self.ctxt.get_arg_type_id(func_ptr.type_id)
        actual = arg_ref.type_id if isinstance(arg_ref, VectorReference) else arg_ref.term_ptr.type_id
        if actual != expected:
            raise EvaluationError(
                f"Cannot apply {func_ptr!r} of type {self.ctxt.display_type(func_ptr.type_id)} "
                f"to {arg_ref!r} of type #{actual}")

    def evaluate(self, func_ptr: TermPointer, arg_ref: TermReference) -> TermReference:
        key = (func_ptr, arg_ref)
        cached = self.application_tables.get(key)
        if cached is not None:
            logger.debug("Memo hit for (%r %r)", func_ptr, arg_ref)
            return cached

        self._check_argument(func_ptr, arg_ref)
        embedding = self.get_embedding(func_ptr)
        feat_info = self.ctxt.get_feature_space_info(self.ctxt.get_arg_type_id(func_ptr.type_id))
        features = feat_info.get_features_from_base(self.get_mean_vector(arg_ref))
        ret_compressed = embedding.mean @ features

        ret_type_id = self.ctxt.get_ret_type_id(func_ptr.type_id)
        if self.ctxt.is_vector_type(ret_type_id):
            result: TermReference = VectorReference(ret_type_id, ret_compressed)
        else:
            result = FunctionReference(self._add_nonprimitive(ret_type_id, func_ptr, arg_ref,
                                                              self.expand(ret_type_id, ret_compressed)))

        self.application_tables[key] = result
        self.newly_evaluated_terms.append(key)
        return result

    def _add_nonprimitive(self, type_id: TypeId, func_ptr: TermPointer, arg_ref: TermReference,
                          full_vec: np.ndarray) -> TermPointer:
        space = self.type_spaces.setdefault(type_id, [])
        term_ptr = TermPointer(type_id, NonPrimitive(len(space)))
        space.append(AppliedTerm(func_ptr, arg_ref))
        info = self.ctxt.get_function_space_info(type_id)
        mean = full_vec.reshape(info.output_dim, info.feature_dim)
        self.model_spaces[term_ptr] = MatrixNormalEmbedding.from_prior(mean)
        logger.debug("Created %r from (%r %r)", term_ptr, func_ptr, arg_ref)
        return term_ptr

    # -------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------

    def bayesian_update_step(self):
        """Fold every newly evaluated application into its function's embedding."""
        grouped: dict[TermPointer, list[TermReference]] = {}
        for func_ptr, arg_ref in self.newly_evaluated_terms:
            grouped.setdefault(func_ptr, []).append(arg_ref)

        for func_ptr, arg_refs in grouped.items():
            feat_info = self.ctxt.get_feature_space_info(self.ctxt.get_arg_type_id(func_ptr.type_id))
            ret_type_id = self.ctxt.get_ret_type_id(func_ptr.type_id)
            features = np.stack([feat_info.get_features_from_base(self.get_mean_vector(a))
                                 for a in arg_refs])
            targets = np.stack([
                self.compress(ret_type_id, self.get_mean_vector(self.application_tables[(func_ptr, a)]))
                for a in arg_refs
            ])
            self.get_embedding(func_ptr).update(features, targets)
            logger.debug("Updated %r with %d observations", func_ptr, len(arg_refs))

    def clear_newly_received(self):
        self.newly_evaluated_terms = []

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------

    def serialize(self) -> SerializedInterpreterAndEmbedderState:
        return SerializedInterpreterAndEmbedderState(
            application_tables=[[repr(f), repr(a), repr(r)]
                                for (f, a), r in self.application_tables.items()],
            type_spaces={str(type_id): [[repr(t.func_ptr), repr(t.arg_ref)] for t in terms]
                         for type_id, terms in self.type_spaces.items()},
            model_spaces=[{"term": repr(ptr), "mean": e.mean.tolist(), "precision": e.precision.tolist()}
                          for ptr, e in self.model_spaces.items()],
            elaborators={str(k): v.tolist() for k, v in self.elaborators.items()},
            newly_evaluated_terms=[[repr(f), repr(a)] for f, a in self.newly_evaluated_terms],
            rng_state=self.rng.bit_generator.state,
        )
