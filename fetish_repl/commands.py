"""
REPL commands.

A command line is a command word optionally followed by an argument string:

  parse [s_expr]                      render the parsed tree
  let [var] = [expr]                  evaluate and bind
  eval [expr] | evaluate [expr]       evaluate, binding the result to `ans`
  sim [expr]  | simulate [expr]       simulate via drawn samples
  ...

Every handler returns the text to show. ReplErrors raised while handling are
rendered as "<Command>: <category>: <message>" by handle_command_line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from .bindings import Bindings
from .errors import ParseError, ReplError, UnimplementedError
from .loading import read_from_path, write_to_path
from .parsers import parse_application, parse_expression
from .state import ContextState, GlobalState
from .terms import format_term_ref

logger = logging.getLogger(__name__)


# ============================================================
# Command line grammar
# ============================================================

COMMAND_GRAMMAR = r"""
    start: WORD (_SEP REST)?

    WORD: /\S+/
    REST: /\S.*/s
    _SEP: /\s+/
"""

command_parser = Lark(COMMAND_GRAMMAR, parser="lalr")


@v_args(inline=True)
class CommandLineBuilder(Transformer):
    def start(self, word, rest=None):
        return str(word), (str(rest).strip() if rest is not None else None)


command_line_builder = CommandLineBuilder()


def split_command_line(text: str) -> tuple[str, str | None]:
    trimmed = text.strip()
    if not trimmed:
        raise ParseError("Empty command")
    try:
        return command_line_builder.transform(command_parser.parse(trimmed))
    except LarkError as e:
        raise ParseError(f"Cannot split command line {trimmed!r}: {e}") from e


# ============================================================
# Commands
# ============================================================

class Command:
    label = "Command"

    def handle(self, glob_state: GlobalState) -> str:
        raise NotImplementedError


class ContextualCommand(Command):
    """A command that needs a loaded context."""

    def handle(self, glob_state: GlobalState) -> str:
        context_state = glob_state.require_context_state()
        return self.handle_with_context(context_state, glob_state.bindings)

    def handle_with_context(self, context_state: ContextState, bindings: Bindings) -> str:
        raise NotImplementedError


HELP_TEXT = "\n".join([
    "generate_context [path]: Generates a Context from the path to json-ized Params to generate it from",
    "load_context [path]: Loads a json-ized Context from the given path",
    "unload_context: Unloads the current Context",
    "list_types: Lists all types matching type numbers to their definitions",
    "list_bindings: Lists every bound variable with the term it names",
    "parse [expr]: Parses the given s-expression, and renders what it parsed as",
    "let [var] = [expr]: Evaluates the expression, and binds it to the given variable",
    "eval [expr] | evaluate [expr]: Evaluates the expression, and prints the result",
    "simulate [expr] | sim [expr]: Simulates the given expression [via a drawn sample], and prints the result",
    "list_primitive_terms [type_num] | list_prim_terms [type_num]: Lists the primitive terms of the type with the given number",
    "update_models: Folds newly evaluated applications into the embeddings",
    "save_context [path]: Saves the current Context, json-ized, to the given path",
    "load_models [path]: Loads the jsonized interpreter+embedder state from the given path",
    "save_models [path]: Saves the interpreter+embedder state as json to the given path",
    "help: Prints this help screen",
])


@dataclass
class Help(Command):
    label = "Help"

    def handle(self, glob_state):
        return HELP_TEXT


@dataclass
class Parse(Command):
    text: str
    label = "Parse"

    def handle(self, glob_state):
        return repr(parse_application(self.text, glob_state.bindings))


@dataclass
class GenerateContextFromPath(Command):
    path: str
    label = "Generate Context"

    def handle(self, glob_state):
        params = read_from_path(self.path)
        context_json = glob_state.lib_handle.generate_serialized_context(params)
        ctxt = glob_state.lib_handle.deserialize_serialized_context(context_json)
        glob_state.set_context(context_json, ctxt)
        return f"Generated context with {ctxt.get_total_num_types()} types"


@dataclass
class LoadContextFromPath(Command):
    path: str
    label = "Load Context"

    def handle(self, glob_state):
        contents = read_from_path(self.path)
        ctxt = glob_state.lib_handle.deserialize_serialized_context(contents)
        glob_state.set_context(contents, ctxt)
        return f"Loaded context with {ctxt.get_total_num_types()} types"


@dataclass
class UnloadContext(Command):
    label = "Unload Context"

    def handle(self, glob_state):
        glob_state.unload_context()
        return "Unloaded context"


@dataclass
class ListBindings(Command):
    label = "List Bindings"

    def handle(self, glob_state):
        bindings = glob_state.bindings
        return "\n".join(f"{name} = {format_term_ref(bindings.lookup(name))}" for name in bindings.names())


@dataclass
class Let(ContextualCommand):
    var: str
    expr_text: str
    label = "Let"

    def handle_with_context(self, context_state, bindings):
        expr = parse_expression(self.expr_text, bindings)
        result_ref = context_state.eval(expr)
        bindings.write(self.var, result_ref)
        return format_term_ref(result_ref)


@dataclass
class Evaluate(ContextualCommand):
    expr_text: str
    label = "Evaluate"

    def handle_with_context(self, context_state, bindings):
        return Let("ans", self.expr_text).handle_with_context(context_state, bindings)


@dataclass
class Simulate(ContextualCommand):
    expr_text: str
    label = "Simulate"

    def handle_with_context(self, context_state, bindings):
        expr = parse_expression(self.expr_text, bindings)
        return repr(context_state.simulate(expr))


@dataclass
class UpdateModels(ContextualCommand):
    label = "Update Models"

    def handle_with_context(self, context_state, bindings):
        context_state.update_models()
        return "Updated models"


@dataclass
class ListTypes(ContextualCommand):
    label = "List Types"

    def handle_with_context(self, context_state, bindings):
        ctxt = context_state.ctxt
        return "\n".join(f"#{type_id}: {ctxt.display_type(type_id)}"
                         for type_id in range(ctxt.get_total_num_types()))


@dataclass
class ListPrimitiveTerms(ContextualCommand):
    type_text: str
    label = "List Primitive Terms"

    def handle_with_context(self, context_state, bindings):
        try:
            type_id = int(self.type_text.strip())
        except ValueError:
            raise ParseError(f"Unable to parse type number from {self.type_text}") from None
        context_state.ctxt.get_type(type_id)
        terms = context_state.ctxt.primitive_directory.get_primitive_terms(type_id)
        return "\n".join(f"p{i}: {term.get_name()}" for i, term in enumerate(terms))


@dataclass
class SaveContextToPath(ContextualCommand):
    path: str
    label = "Save Context"

    def handle_with_context(self, context_state, bindings):
        write_to_path(self.path, context_state.ctxt_bytes)
        return "Successfully wrote out context JSON"


@dataclass
class LoadModelsFromPath(ContextualCommand):
    path: str
    label = "Load Models"

    def handle_with_context(self, context_state, bindings):
        raise UnimplementedError("load_models")


@dataclass
class SaveModelsToPath(ContextualCommand):
    path: str
    label = "Save Models"

    def handle_with_context(self, context_state, bindings):
        raise UnimplementedError("save_models")


# ============================================================
# Command line -> Command
# ============================================================

PRIMITIVE_COMMANDS = {
    "help": Help,
    "unload_context": UnloadContext,
    "list_types": ListTypes,
    "list_bindings": ListBindings,
    "update_models": UpdateModels,
}

ARGUMENTED_COMMANDS = {
    "parse": Parse,
    "generate_context": GenerateContextFromPath,
    "load_context": LoadContextFromPath,
    "evaluate": Evaluate,
    "eval": Evaluate,
    "simulate": Simulate,
    "sim": Simulate,
    "list_primitive_terms": ListPrimitiveTerms,
    "list_prim_terms": ListPrimitiveTerms,
    "save_context": SaveContextToPath,
    "load_models": LoadModelsFromPath,
    "save_models": SaveModelsToPath,
}


def parse_let(let_body_text: str) -> Let:
    var_text, sep, expr_text = let_body_text.partition("=")
    var_text, expr_text = var_text.strip(), expr_text.strip()
    if not sep or not var_text or not expr_text:
        raise ParseError(f"Let body {let_body_text} does not have the format [var] = [expr]")
    return Let(var_text, expr_text)


def parse_command_line(text: str) -> Command:
    command_text, rest = split_command_line(text)
    if rest is None:
        if command_text in PRIMITIVE_COMMANDS:
            return PRIMITIVE_COMMANDS[command_text]()
        raise ParseError(f"{command_text} is not a recognized command (without arguments)")
    if command_text == "let":
        return parse_let(rest)
    if command_text in ARGUMENTED_COMMANDS:
        return ARGUMENTED_COMMANDS[command_text](rest)
    raise ParseError(f"{command_text} is not a recognized command (with arguments)")


def handle_command_line(line: str, glob_state: GlobalState) -> str:
    """Run one command line, always producing a printable result."""
    try:
        command = parse_command_line(line)
    except ReplError as e:
        return f"Error: {e}"
    try:
        return command.handle(glob_state)
    except ReplError as e:
        logger.debug("%s failed", command.label, exc_info=True)
        return f"{command.label}: {e.category}: {e}"
