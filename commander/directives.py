"""
Field directives: the metadata grammar that binds application fields to the CLI.

Overview
- A directive is the single string carried in a field's Annotated metadata:

      class App:
          verbose: Annotated[bool, "flag=verbose,Print more"] = False
          remote: Annotated[Remote, "subcommand=remote,Manage remotes"] = None
          common: Annotated[Common, "flagstruct"] = None
          build: Annotated[BuildFlags, "flagstruct=build"] = None
          plugins: Annotated[list[Plugin], "flagslice"] = ()

Grammar
- flag=<name>[,<description>]        leaf value settable from one named flag
- subcommand=<name>[,<description>]  nested application reachable as a subcommand
- flagstruct[=<command>]             nested application whose flags join the surface
- flagslice[=<command>]              sequence of applications, each contributing flags

Rules
- the description is everything after the first comma; without one a canned
  description is used.
- flag/subcommand need a non-empty "=<name>"; anything else is a MalformedDirectiveError
  raised while the application schema is built, never later.
- flagstruct/flagslice scopes are optional; a degraded scope (empty, or containing "=")
  falls back to "apply always" and issues a DegradedDirectiveWarning.
- unknown directive kinds are ignored with an UnknownDirectiveWarning.
"""
import enum
from typing import NamedTuple

from .faults import *

FLAG_USAGE = "No usage found for this flag."
SUBCOMMAND_DESCR = "No description for this subcommand"


class DirectiveKind(enum.Enum):
    FLAG = "flag"
    SUBCOMMAND = "subcommand"
    FLAGSTRUCT = "flagstruct"
    FLAGSLICE = "flagslice"


class Directive(NamedTuple):
    kind: DirectiveKind
    name: str | None = None
    descr: str | None = None
    scope: str | None = None

    @property
    def scoped(self):
        return self.scope is not None


def parse(raw, /):
    """
    Parse one metadata string into a Directive.

    Returns None for an empty string or an unknown directive kind.
    """
    if not isinstance(raw, str):
        raise TypeError("parse() argument must be a string")
    if not raw:
        return None

    head, separator, payload = raw.partition("=")
    try:
        kind = DirectiveKind(head)
    except ValueError:
        trigger(UnknownDirectiveWarning(
            "unknown directive %r is ignored" % raw,
            title="unknown directive",
            code=FaultCode.UNKNOWN_DIRECTIVE,
            hint="use one of: %s" % ", ".join(kind.value for kind in DirectiveKind),
        ))
        return None

    if kind in (DirectiveKind.FLAG, DirectiveKind.SUBCOMMAND):
        name, comma, descr = payload.partition(",")
        if not separator or not name or name.startswith("-") or "=" in name:
            raise MalformedDirectiveError(
                "malformed %s directive %r" % (kind.value, raw),
                title="malformed directive",
                code=FaultCode.MALFORMED_DIRECTIVE,
                hint="write it as '%s=<name>[,<description>]'" % kind.value,
            )
        if not comma:
            descr = FLAG_USAGE if kind is DirectiveKind.FLAG else SUBCOMMAND_DESCR
        return Directive(kind, name, descr)

    if not separator:
        return Directive(kind)
    if not payload or "=" in payload:
        trigger(DegradedDirectiveWarning(
            "malformed scope in %s directive %r, applying it to every command" % (kind.value, raw),
            title="degraded directive",
            code=FaultCode.DEGRADED_DIRECTIVE,
            hint="write it as '%s' or '%s=<command>'" % (kind.value, kind.value),
        ))
        return Directive(kind)
    return Directive(kind, scope=payload)


__all__ = (
    "FLAG_USAGE",
    "SUBCOMMAND_DESCR",
    "DirectiveKind",
    "Directive",
)
