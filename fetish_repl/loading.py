"""
Context definition libraries.

A context definition is any Python module exposing

  generate_serialized_context(params: bytes) -> bytes
  deserialize_serialized_context(data: bytes) -> Context

It can be given as a path to a .py file or as a dotted module name.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import os
from pathlib import Path
from types import ModuleType

from .errors import ContextFormatError, ContextLibraryError, ReplError, ReplIOError
from .ontology import Context

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LIBRARY = "fetish_repl.contexts.linear"

_GENERATE_SYMBOL = "generate_serialized_context"
_DESERIALIZE_SYMBOL = "deserialize_serialized_context"


def _import_from_path(path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(f"fetish_context_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ContextLibraryError(f"Cannot load a module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_context_library(target: str) -> ModuleType:
    path = Path(expand_path(target))
    try:
        if path.suffix == ".py" or path.exists():
            if not path.is_file():
                raise ContextLibraryError(f"No context definition file at {path}")
            module = _import_from_path(path)
        else:
            module = importlib.import_module(target)
    except (ImportError, SyntaxError) as e:
        raise ContextLibraryError(f"Error loading context definition library {target}: {e}") from e
    logger.debug("Loaded context definition library %s", target)
    return module


class ContextDefinitionLibraryHandle:
    def __init__(self, module: ModuleType):
        try:
            self._generate = getattr(module, _GENERATE_SYMBOL)
            self._deserialize = getattr(module, _DESERIALIZE_SYMBOL)
        except AttributeError as e:
            raise ContextLibraryError(
                f"Error locating context definition library symbols in {module.__name__}: {e}") from e
        self.name = module.__name__

    @classmethod
    def load(cls, target: str = DEFAULT_CONTEXT_LIBRARY) -> "ContextDefinitionLibraryHandle":
        return cls(load_context_library(target))

    def generate_serialized_context(self, param_json_bytes: bytes) -> bytes:
        try:
            return self._generate(param_json_bytes)
        except ReplError:
            raise
        except (ValueError, KeyError, TypeError) as e:
            raise ContextFormatError(f"Cannot generate context: {e}") from e

    def deserialize_serialized_context(self, context_bytes: bytes) -> Context:
        try:
            return self._deserialize(context_bytes)
        except ReplError:
            raise
        except (ValueError, KeyError, TypeError) as e:
            raise ContextFormatError(f"Cannot deserialize context: {e}") from e


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def expand_path(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))


def read_from_path(path: str) -> bytes:
    try:
        return Path(expand_path(path)).read_bytes()
    except OSError as e:
        raise ReplIOError(f"Read Error: {e}") from e


def write_to_path(path: str, contents: bytes):
    try:
        Path(expand_path(path)).write_bytes(contents)
    except OSError as e:
        raise ReplIOError(f"Writing Error: {e}") from e
