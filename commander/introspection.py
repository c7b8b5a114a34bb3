"""
Type introspection adapter: the structural shape and command set of application nodes.

Overview
- An application node is any plain Python object (a class instance or a dataclass).
  Its fields are the annotated attributes of its class, in declaration order (base
  classes first); a field takes part in dispatch when its Annotated metadata carries
  a directive string.
- Its commands are its public methods (names not starting with "_"), including static
  and class methods, keyed by their normalized name.

Schemas
- schema(cls) and commands(cls) are computed once per class and cached, so every
  dispatch over the same class reuses one registry of fields and commands.

Indirection
- dereference(value) follows FieldRef handles until a concrete value; None is the
  nil terminus and builtin scalars, collections, classes, routines and modules are
  not structural.
- FieldRef is the addressable handle of a field: it reads and writes the attribute on
  the owning node itself, never on a copy.
"""
import functools
import inspect
import typing
from collections.abc import Mapping, Sequence, Set
from typing import NamedTuple

from .directives import parse
from .faults import *
from .utils import Unset, normalize


class FieldSpec(NamedTuple):
    name: str
    annotation: object
    directive: object


class CommandSpec(NamedTuple):
    name: str
    parameters: tuple
    variadic: inspect.Parameter | None
    keywords: tuple


class FieldRef:
    """Addressable handle of one field on one application node."""
    __slots__ = ("owner", "name", "annotation")

    def __init__(self, owner, name, annotation):
        self.owner = owner
        self.name = name
        self.annotation = annotation

    def get(self, default=Unset, /):
        if default is Unset:
            return getattr(self.owner, self.name)
        return getattr(self.owner, self.name, default)

    def set(self, value, /):
        setattr(self.owner, self.name, value)

    def __repr__(self):
        return f"FieldRef({type(self.owner).__name__}.{self.name})"


def _structural(value):
    if isinstance(value, (str, bytes, bytearray, int, float, complex, Sequence, Mapping, Set)):
        return False
    if isinstance(value, type) or inspect.isroutine(value) or inspect.ismodule(value):
        return False
    return hasattr(value, "__dict__") or hasattr(type(value), "__slots__")


def dereference(value, /):
    while isinstance(value, FieldRef):
        value = value.get(None)
    if value is None:
        return None, False
    return value, _structural(value)


def _hints(object, extras=True):
    try:
        return typing.get_type_hints(object, include_extras=extras)
    except (NameError, TypeError) as error:
        raise MalformedApplicationError(
            "cannot resolve the annotations of %r: %s" % (getattr(object, "__qualname__", object), error),
            title="malformed application",
            code=FaultCode.MALFORMED_APPLICATION,
        ) from error


@functools.cache
def schema(cls, /):
    """Return the directive-carrying fields of a class, in declaration order."""
    fields = []
    for name, hint in _hints(cls).items():
        if typing.get_origin(hint) is typing.ClassVar or typing.get_origin(hint) is not typing.Annotated:
            continue
        annotation, *metadata = typing.get_args(hint)
        directives = [item for item in metadata if isinstance(item, str)]
        if len(directives) > 1:
            raise MalformedDirectiveError(
                "field %s.%s carries %d directives" % (cls.__name__, name, len(directives)),
                title="malformed directive",
                code=FaultCode.MALFORMED_DIRECTIVE,
                hint="a field carries at most one directive",
            )
        if directives and (directive := parse(directives[0])) is not None:
            fields.append(FieldSpec(name, annotation, directive))
    return tuple(fields)


def fields(value, /):
    """Return the schema of a structural value; non-structural values are malformed applications."""
    value, ok = dereference(value)
    if not ok:
        raise MalformedApplicationError(
            "application must be a structured object, not %s" % type(value).__name__,
            title="malformed application",
            code=FaultCode.MALFORMED_APPLICATION,
            hint="pass an instance of a class whose fields carry directives",
        )
    return schema(type(value))


def field(value, spec, /):
    value, _ = dereference(value)
    return FieldRef(value, spec.name, spec.annotation)


def _signature(function, bound):
    hints = _hints(function, extras=False)
    parameters, variadic, keywords = [], None, []
    for parameter in list(inspect.signature(function).parameters.values())[bound:]:
        parameter = parameter.replace(annotation=hints.get(parameter.name, str))
        match parameter.kind:
            case inspect.Parameter.POSITIONAL_ONLY | inspect.Parameter.POSITIONAL_OR_KEYWORD:
                parameters.append(parameter)
            case inspect.Parameter.VAR_POSITIONAL:
                variadic = parameter
            case inspect.Parameter.KEYWORD_ONLY:
                keywords.append(parameter)
    return tuple(parameters), variadic, tuple(keywords)


@functools.cache
def commands(cls, /):
    """Return the commands of a class keyed by normalized name (lexical method order)."""
    registry = {}
    for name in sorted(dir(cls)):
        if name.startswith("_"):
            continue
        attribute = inspect.getattr_static(cls, name)
        if isinstance(attribute, staticmethod):
            function, bound = attribute.__func__, False
        elif isinstance(attribute, classmethod):
            function, bound = attribute.__func__, True
        elif inspect.isfunction(attribute):
            function, bound = attribute, True
        else:
            continue

        key = normalize(name)
        if key in registry:
            raise MalformedApplicationError(
                "commands %r and %r of %s share the name %r" % (registry[key].name, name, cls.__name__, key),
                title="ambiguous command",
                code=FaultCode.AMBIGUOUS_COMMAND,
                hint="rename one of them",
            )
        registry[key] = CommandSpec(name, *_signature(function, bound))
    return registry


__all__ = (
    "FieldSpec",
    "CommandSpec",
    "FieldRef",
    "dereference",
    "fields",
    "field",
    "schema",
    "commands",
)
