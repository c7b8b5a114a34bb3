"""
Subcommand resolver: finds the nested application a token descends into.

Both the token and each declared subcommand name are normalized before comparison,
so "sub-app", "sub_app" and "SubApp" all reach a field declared as
"subcommand=subapp". No match is not an error: the dispatcher then treats the token
as a command name.
"""
from .directives import DirectiveKind
from .faults import *
from .introspection import dereference, fields
from .utils import normalize


def subcommands(app, /):
    """Return (name, descr) for every subcommand of app, in declaration order."""
    return [
        (spec.directive.name, spec.directive.descr)
        for spec in fields(app)
        if spec.directive.kind is DirectiveKind.SUBCOMMAND
    ]


def resolve(app, token, /):
    """Return the child application named by token, or None when no subcommand matches."""
    app, _ = dereference(app)
    target = normalize(token)
    for spec in fields(app):
        if spec.directive.kind is not DirectiveKind.SUBCOMMAND or normalize(spec.directive.name) != target:
            continue
        child, ok = dereference(getattr(app, spec.name, None))
        if child is None:
            raise UnsetSubcommandError(
                "subcommand %r is unset (%s.%s is None)" % (spec.directive.name, type(app).__name__, spec.name),
                title="unset subcommand",
                code=FaultCode.UNSET_SUBCOMMAND,
                hint="assign an application instance to %s.%s before dispatching" % (type(app).__name__, spec.name),
            )
        if not ok:
            raise MalformedApplicationError(
                "subcommand %r must be a structured object, not %s" % (spec.directive.name, type(child).__name__),
                title="malformed application",
                code=FaultCode.MALFORMED_APPLICATION,
            )
        return child
    return None


__all__ = (
    "subcommands",
    "resolve",
)
