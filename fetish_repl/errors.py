"""
Error taxonomy for the REPL.

Every failure the core can report is a ReplError. The command layer turns
them into result strings, so none of these ever ends a session.
"""

from __future__ import annotations


class ReplError(Exception):
    """Base class for all recoverable REPL failures."""

    category = "Error"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class ParseError(ReplError):
    category = "Expression Parsing Error"


class EmptyExpressionError(ParseError):
    def __init__(self):
        super().__init__("Empty expression")


class SingletonExpressionError(ParseError):
    def __init__(self):
        super().__init__("Singleton expressions are disallowed")


class CannotApplyVectorError(ParseError):
    def __init__(self):
        super().__init__("Cannot apply vector as a function")


class UnboundIdentifierError(ParseError, LookupError):
    """An identifier with no binding in scope."""

    def __init__(self, name: str):
        super().__init__(f"No identifier named {name} in scope")
        self.name = name


# ---------------------------------------------------------------------------
# Evaluation / simulation
# ---------------------------------------------------------------------------

class EvaluationError(ReplError):
    category = "Expression Evaluation Error"


class ExpectedFunctionGotVectorError(EvaluationError):
    """A sub-expression in callee position reduced to a vector."""

    def __init__(self, expression: str, verb: str = "evaluating"):
        super().__init__(f"Expected function, but obtained vector from {verb} {expression}")
        self.expression = expression


# ---------------------------------------------------------------------------
# State and context management
# ---------------------------------------------------------------------------

class StateUnavailableError(ReplError):
    category = "State Error"

    def __init__(self):
        super().__init__("This command may not be executed without a currently-loaded context")


class ContextLibraryError(ReplError):
    category = "Context Library Error"


class ContextFormatError(ReplError):
    category = "Context Format Error"


class ReplIOError(ReplError):
    category = "IO Error"


class UnimplementedError(ReplError, NotImplementedError):
    category = "Unimplemented"

    def __init__(self, what: str):
        super().__init__(f"{what} is not implemented")
