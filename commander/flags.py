"""
Flag binding registry: flag targets, flag surfaces and the token parser.

Overview
- FlagTarget binds one flag name to one destination field (a FieldRef) with its
  description; the field annotation gives the flag its kind, default and parser.
- MultiTarget is the fan-out variant: one flag name writing to several destinations.
  It only arises from flagslice composition, where every element of the sequence
  contributes the same flags.
- FlagSurface is the set of targets visible at one dispatch level plus the parser
  that feeds them from argument tokens.

Binding
- bind(surface, app) walks the fields of app in declaration order: flag fields become
  targets, unscoped flagstruct fields are walked into the same surface and unscoped
  flagslice fields walk every element.
- bind_scoped(surface, app, command) walks only the flagstruct/flagslice fields scoped
  to the given command.
- a name bound twice is a DuplicateFlagError unless both bindings come from flagslice
  composition.

Token grammar
- "--name value", "--name=value", "-name value" and "-name=value".
- boolean flags never consume the next token: "--verbose" sets True and
  "--verbose=false" sets False.
- parsing stops at the first token that is not a flag ("-" alone is not a flag) and
  right after a "--" terminator; the remaining tokens are returned.
- "-h" / "--help" request help unless a flag of that name is bound.

Round trip
- stringify() emits "--name value" for every target (sorted by name), skipping false
  booleans and unset pointers; parsing that output reproduces the field values.
"""
import difflib
import re
from collections import deque
from collections.abc import Sequence
from types import MappingProxyType

from . import coercion
from .directives import DirectiveKind
from .faults import *
from .introspection import dereference, field, fields
from .utils import normalize

_FLAG = re.compile(r"--?(?P<name>[^-=][^=]*)(=(?P<value>.*))?", re.DOTALL)


class FlagTarget:
    def __init__(self, name, destination, descr, *, composable=False):
        try:
            coercion.kind(destination.annotation)
        except TypeError:
            raise InvalidFieldError(
                "flag %r is bound to field %s.%s of unsupported type %r" % (
                    name, type(destination.owner).__name__, destination.name, destination.annotation
                ),
                title="invalid field",
                code=FaultCode.INVALID_FIELD,
                hint="use bool, int, float, str, timedelta, a sized numeric, list[str], dict[str, str] or an optional of these",
            ) from None
        self.name = name
        self.destination = destination
        self.descr = descr
        self.composable = composable

    @property
    def kind(self):
        return coercion.kind(self.destination.annotation)

    @property
    def boolean(self):
        return self.kind == "bool"

    @property
    def default(self):
        """The current value as rendered in usage text (strings quoted)."""
        value = self.destination.get(None)
        text = coercion.stringify(self.destination.annotation, value)
        return f'"{text}"' if self.kind == "string" else text

    def usage(self):
        return f"{self.descr} (type: {self.kind}, default: {self.default})"

    def parse(self, text, /):
        return coercion.parse_string(self.destination.annotation, text)

    def set(self, text, /):
        self.destination.set(self.parse(text))

    def stringify(self):
        value = self.destination.get(None)
        if self.boolean:
            return [f"--{self.name}"] if value else []
        if self.kind == "ptr" and value is None:
            return []
        return [f"--{self.name}", coercion.stringify(self.destination.annotation, value)]

    def __rich_repr__(self):
        yield self.name
        yield "kind", self.kind
        yield "destination", self.destination
        yield "descr", self.descr

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, {self.destination!r})"


class MultiTarget(FlagTarget):
    """
    Fan-out target: setting the flag writes every destination.

    Kind, description, default and stringification come from the first
    target; values are parsed for every destination before any is written.
    """

    def __init__(self, *targets):
        first, *_ = targets
        self.name = first.name
        self.destination = first.destination
        self.descr = first.descr
        self.composable = True
        self.targets = list(targets)

    @property
    def destinations(self):
        return tuple(target.destination for target in self.targets)

    def bind(self, target, /):
        self.targets.append(target)
        return self

    def set(self, text, /):
        values = [target.parse(text) for target in self.targets]
        for target, value in zip(self.targets, values):
            target.destination.set(value)

    def __rich_repr__(self):
        yield from super().__rich_repr__()
        yield "destinations", self.destinations


class FlagSurface:
    def __init__(self, name=""):
        self.name = name
        self.args = []
        self._targets = {}

    @property
    def targets(self):
        return MappingProxyType(self._targets)

    def add(self, name, destination, descr, *, composable=False):
        target = FlagTarget(name, destination, descr, composable=composable)
        try:
            existing = self._targets[name]
        except KeyError:
            self._targets[name] = target
            return target

        if not (composable and existing.composable):
            raise DuplicateFlagError(
                "duplicate binding of flag %r (%s.%s and %s.%s)" % (
                    name,
                    type(existing.destination.owner).__name__, existing.destination.name,
                    type(destination.owner).__name__, destination.name,
                ),
                title="duplicate flag",
                code=FaultCode.DUPLICATE_FLAG,
                hint="rename one of the flags, or compose them through a flagslice",
            )
        if not isinstance(existing, MultiTarget):
            existing = self._targets[name] = MultiTarget(existing)
        return existing.bind(target)

    def lookup(self, name, /):
        return self._targets.get(name)

    def set(self, name, value, /):
        try:
            target = self._targets[name]
        except KeyError:
            raise self._unknown(name) from None
        self._assign(target, value)

    def _unknown(self, name):
        suggestions = difflib.get_close_matches(name, self._targets.keys(), 5)
        try:
            hint = "did you mean '--%s'? you can also run '%s --help' to see all flags" % (suggestions[0], self.name)
        except IndexError:
            hint = "try '%s --help' to see all available flags" % self.name
        return UnknownFlagError(
            "flag provided but not defined: --%s" % name,
            title="unknown flag",
            code=FaultCode.UNKNOWN_FLAG,
            hint=hint,
        )

    def _assign(self, target, value):
        try:
            target.set(value)
        except (ValueError, OverflowError) as error:
            raise InvalidFlagValueError(
                "invalid %svalue %r for flag --%s: %s" % ("boolean " if target.boolean else "", value, target.name, error),
                title="invalid flag value",
                code=FaultCode.INVALID_FLAG_VALUE,
                hint="--%s expects a %s" % (target.name, target.kind),
            ) from error

    def parse(self, arguments, /):
        """Consume leading flag tokens, set their targets and return the remaining arguments."""
        tokens = deque(arguments)
        while tokens:
            token = tokens[0]
            if len(token) < 2 or not token.startswith("-"):
                break
            tokens.popleft()
            if token == "--":
                break

            if not (match := _FLAG.fullmatch(token)):
                raise FlagSyntaxError(
                    "bad flag syntax: %s" % token,
                    title="bad flag syntax",
                    code=FaultCode.FLAG_SYNTAX,
                    hint="write flags as '--name', '--name value' or '--name=value'",
                )

            name, value = match["name"], match["value"]
            if (target := self._targets.get(name)) is None:
                if name in ("h", "help"):
                    raise HelpRequestedError(
                        "help requested",
                        title="help requested",
                        code=FaultCode.HELP_REQUESTED,
                    )
                raise self._unknown(name)

            if target.boolean:
                value = "true" if value is None else value
            elif value is None:
                if not tokens:
                    raise MissingFlagValueError(
                        "flag needs an argument: --%s" % name,
                        title="missing flag value",
                        code=FaultCode.MISSING_FLAG_VALUE,
                        hint="pass it as '--%s value' or '--%s=value'" % (name, name),
                    )
                value = tokens.popleft()
            self._assign(target, value)

        self.args = list(tokens)
        return self.args

    def stringify(self):
        tokens = []
        for _, target in sorted(self._targets.items()):
            tokens.extend(target.stringify())
        return tokens

    def usage(self):
        lines = [f"Usage of {self.name}:" if self.name else "Usage:"]
        for name, target in sorted(self._targets.items()):
            lines.append(f"  --{name}" if target.boolean else f"  --{name} value")
            lines.append("      " + target.usage().replace("\n", "\n      "))
        return "\n".join(lines) + "\n"

    def __rich_repr__(self):
        yield self.name
        yield "targets", dict(self._targets)

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, targets={sorted(self._targets)!r})"


def _nested(app, spec):
    value = getattr(app, spec.name, None)
    if value is None:
        return None
    value, ok = dereference(value)
    if not ok:
        raise InvalidFieldError(
            "flagstruct field %s.%s must hold a structured object, not %s" % (type(app).__name__, spec.name, type(value).__name__),
            title="invalid field",
            code=FaultCode.INVALID_FIELD,
        )
    return value


def _items(app, spec):
    value = getattr(app, spec.name, None)
    if value is None:
        return ()
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise InvalidFieldError(
            "flagslice directive should only be used on sequence fields (%s.%s is %s)" % (
                type(app).__name__, spec.name, type(value).__name__
            ),
            title="invalid field",
            code=FaultCode.INVALID_FIELD,
        )
    return tuple(item for item in value if item is not None)


def _walk(surface, app, spec, composable):
    if spec.directive.kind is DirectiveKind.FLAGSTRUCT:
        if (nested := _nested(app, spec)) is not None:
            bind(surface, nested, composable=composable)
    else:
        for item in _items(app, spec):
            bind(surface, item, composable=True)


def bind(surface, app, /, *, composable=False):
    """Register the flags of app (and of its unscoped flag groups) on surface."""
    app, _ = dereference(app)
    for spec in fields(app):
        match spec.directive.kind:
            case DirectiveKind.FLAG:
                surface.add(spec.directive.name, field(app, spec), spec.directive.descr, composable=composable)
            case DirectiveKind.FLAGSTRUCT | DirectiveKind.FLAGSLICE if not spec.directive.scoped:
                _walk(surface, app, spec, composable)
    return surface


def bind_scoped(surface, app, command, /):
    """Register the flags of the flag groups of app scoped to command on surface."""
    app, _ = dereference(app)
    for spec in fields(app):
        if (
            spec.directive.kind in (DirectiveKind.FLAGSTRUCT, DirectiveKind.FLAGSLICE) and
            spec.directive.scoped and
            normalize(spec.directive.scope) == normalize(command)
        ):
            _walk(surface, app, spec, False)
    return surface


__all__ = (
    "FlagTarget",
    "MultiTarget",
    "FlagSurface",
    "bind",
    "bind_scoped",
)
