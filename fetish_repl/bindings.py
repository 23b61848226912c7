"""Session-wide name -> term reference environment used by `let`."""

from __future__ import annotations

from .errors import UnboundIdentifierError
from .terms import TermReference


class Bindings:
    def __init__(self):
        self.bindings: dict[str, TermReference] = {}

    def write(self, identifier: str, term_ref: TermReference):
        self.bindings[identifier] = term_ref

    def lookup(self, identifier: str) -> TermReference:
        try:
            return self.bindings[identifier]
        except KeyError:
            raise UnboundIdentifierError(identifier) from None

    def names(self) -> list[str]:
        return sorted(self.bindings)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self.bindings

    def __len__(self) -> int:
        return len(self.bindings)
