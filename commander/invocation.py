"""
Command locator and invoker.

Lookup
- command names are compared in normalized form: a token "op-one" finds the method
  op_one, "CommanderDefault" finds commander_default.
- candidates(arguments, path) gives the names tried, in order: the first remaining
  argument, the last resolved subcommand, then the default command.

Arity
- a command with N positional parameters takes exactly N arguments, unless its last
  parameter is a sequence: then it takes at least N - 1, missing arguments leave it
  "[]" and every argument from the Nth on is packed into a JSON array for it.
- a *args parameter takes the extra arguments one by one instead.
- trailing parameters with a default may be left out; the handler's own default
  applies. A sequence parameter always receives a value.

Outcome
- coercion failures are UncastableArgumentError, arity mismatches ArgumentCountError.
- anything the handler body raises is wrapped into ApplicationError so the
  dispatcher can tell it apart from its own faults and hand it back unchanged.
"""
import json
import logging

from . import coercion
from .faults import *
from .introspection import commands
from .utils import normalize, ordinal

DEFAULT_COMMAND = "CommanderDefault"

logger = logging.getLogger(__name__)


class ApplicationError(Exception):
    """Marker around an exception raised by a command handler."""

    def __init__(self, error):
        super().__init__(error)
        self.error = error


def locate(app, name, /):
    return commands(type(app)).get(normalize(name))


def candidates(arguments, path, /):
    names = []
    if arguments:
        names.append(arguments[0])
    if path:
        names.append(path[-1])
    names.append(DEFAULT_COMMAND)
    return names


def find_command(app, names, /):
    """Return the first name that locates a command on app, or None."""
    for name in names:
        if locate(app, name) is not None:
            return name
    return None


def _sequenced(parameter):
    try:
        return coercion.kind(parameter.annotation) == "slice"
    except TypeError:
        return False


def _count(spec, required, given):
    return ArgumentCountError(
        "command requires %d arguments, have %d" % (required, given),
        title="wrong argument count",
        code=FaultCode.ARGUMENT_COUNT,
        hint="%s takes %s" % (spec.name, ", ".join(parameter.name for parameter in spec.parameters) or "no arguments"),
    )


def _cast(spec, parameter, value, position):
    try:
        return coercion.parse_string(parameter.annotation, value)
    except (TypeError, ValueError, OverflowError) as error:
        raise UncastableArgumentError(
            "cannot parse the %s argument of %s into %r: %s" % (ordinal(position), spec.name, parameter.name, error),
            title="uncastable argument",
            code=FaultCode.UNCASTABLE_ARGUMENT,
            hint="%s expects a %s" % (parameter.name, _kind(parameter)),
        ) from error


def _kind(parameter):
    try:
        return coercion.kind(parameter.annotation)
    except TypeError:
        return "value of an unsupported type"


def coerce(spec, arguments, /):
    """Turn argument tokens into the positional values of a command call."""
    arguments = list(arguments)
    parameters = spec.parameters
    size = len(parameters)
    required = sum(parameter.default is parameter.empty for parameter in parameters)

    for parameter in spec.keywords:
        if parameter.default is parameter.empty:
            raise MalformedApplicationError(
                "keyword-only parameter %r of command %s needs a default" % (parameter.name, spec.name),
                title="malformed application",
                code=FaultCode.MALFORMED_APPLICATION,
            )

    if spec.variadic is not None:
        if len(arguments) < required:
            raise _count(spec, required, len(arguments))
        return [
            _cast(spec, spec.variadic if index >= size else parameters[index], value, index + 1)
            for index, value in enumerate(arguments)
        ]

    sequenced = size > 0 and _sequenced(parameters[-1])
    if not sequenced:
        if not required <= len(arguments) <= size:
            raise _count(spec, size if len(arguments) > size else required, len(arguments))
    elif len(arguments) < size - 1:
        raise _count(spec, size - 1, len(arguments))
    elif len(arguments) < size:
        arguments.append("[]")
    else:
        arguments[size - 1:] = [json.dumps(arguments[size - 1:], ensure_ascii=False)]

    return [_cast(spec, parameter, value, index + 1) for index, (parameter, value) in enumerate(zip(parameters, arguments))]


def invoke(app, spec, arguments, /):
    """Coerce arguments, call the command and return its result."""
    values = coerce(spec, arguments)
    logger.debug("invoking %s.%s with %r", type(app).__name__, spec.name, values)
    try:
        return getattr(app, spec.name)(*values)
    except Exception as error:
        raise ApplicationError(error) from error


__all__ = (
    "DEFAULT_COMMAND",
    "ApplicationError",
    "locate",
    "candidates",
    "find_command",
    "coerce",
    "invoke",
)
