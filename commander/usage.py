"""
Usage renderer: the flag block of a surface followed by the subcommands of a level.

    Usage of myapp:
      --intflag value
          An int (type: int, default: 0)

    Sub-Commands:
      subapp  |  Use subapp commands

The "Sub-Commands:" block lists subcommands in declaration order and is omitted
when the level has none.
"""
from .introspection import dereference
from .subcommands import subcommands


def render(app, surface, /):
    text = surface.usage()
    app, ok = dereference(app)
    if not ok or not (entries := subcommands(app)):
        return text
    return text + "\nSub-Commands:\n" + "".join(f"  {name}  |  {descr}\n" for name, descr in entries)


__all__ = (
    "render",
)
