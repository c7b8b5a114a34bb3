"""
Commander faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue,
  grouped by domain (configuration, dispatch, warnings).
- CommanderException / CommanderWarning: base types that carry message + options and
  know how to render themselves (rich) and how to surface themselves (__trigger__).
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).

Taxonomy
- ConfigurationError: the application graph itself is wrong (malformed directives,
  duplicate flags, non-structural nodes, invalid fields). Always fatal.
- DispatchError: the argument tokens do not fit the application (unknown command,
  wrong argument count, uncastable argument, flag parse failures). The dispatch loop
  prints usage for the current level before surfacing these.
- Application errors are not faults: exceptions raised by command handlers reach the
  caller unchanged.

Integration
- In library mode (shell=False) faults are raised; in shell mode they are rendered on
  the stderr console and the process exits with status 1.
"""
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the dispatcher (stable identifiers).

    grouping (by high-level domain)
    - configuration (211xx)
      • MALFORMED_DIRECTIVE, DUPLICATE_FLAG, MALFORMED_APPLICATION, INVALID_FIELD,
        UNSET_SUBCOMMAND, AMBIGUOUS_COMMAND
    - dispatch (221xx)
      • UNKNOWN_COMMAND, ARGUMENT_COUNT, UNCASTABLE_ARGUMENT
      • FLAG_SYNTAX, UNKNOWN_FLAG, MISSING_FLAG_VALUE, INVALID_FLAG_VALUE, HELP_REQUESTED
      • POST_FLAG_PARSE
    - warnings (231xx)
      • DEGRADED_DIRECTIVE, UNKNOWN_DIRECTIVE

    normalize() lets the host remap codes to its own labels.
    """
    # --- configuration errors (211xx) ---
    MALFORMED_DIRECTIVE   = 21101
    DUPLICATE_FLAG        = 21102
    MALFORMED_APPLICATION = 21103
    INVALID_FIELD         = 21104
    UNSET_SUBCOMMAND      = 21105
    AMBIGUOUS_COMMAND     = 21106

    # --- dispatch errors (221xx) ---
    UNKNOWN_COMMAND       = 22101
    ARGUMENT_COUNT        = 22102
    UNCASTABLE_ARGUMENT   = 22103

    # --- flag surface errors (221xx) ---
    FLAG_SYNTAX           = 22111
    UNKNOWN_FLAG          = 22112
    MISSING_FLAG_VALUE    = 22113
    INVALID_FLAG_VALUE    = 22114
    HELP_REQUESTED        = 22115

    # --- hook errors (221xx) ---
    POST_FLAG_PARSE       = 22121

    # --- warnings (231xx) ---
    DEGRADED_DIRECTIVE    = 23101
    UNKNOWN_DIRECTIVE     = 23102

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette):
    main = __import__("__main__")
    options = fault.options

    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = options.get("colorful", False)
    fancy = options.get("fancy", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style] if colorful else "")

    code = options.get("code")
    title = options.get("title", type(fault).__name__)

    header = Text.assemble(
        "[ ",
        text(getattr(main, "__prog__", options.get("tool", "CLI")), "prog-name"),
        " — ",
        text(code.normalize() if isinstance(code, FaultCode) else "?", "code"),
        " | ",
        text(title.title(), "title"),
        " ]"
    )
    message = text(coalesce(fault.message, ""), "message")
    hint = Text.assemble(text(" → ", "hint-arrow"), text(options.get("hint"), "hint"))
    body = Group(message, hint) if options.get("hint") else Group(message)

    if fancy:
        return Panel(body, title=header, title_align="left", width=console.width - 4)

    return Group(header, body)


class CommanderException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "title": "bold #FF4DA6",  # friendly pinky title

            # body
            "message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            raise self from self.__cause__
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class ConfigurationError(CommanderException): ...
class MalformedDirectiveError(ConfigurationError): ...
class DuplicateFlagError(ConfigurationError): ...
class MalformedApplicationError(ConfigurationError): ...
class InvalidFieldError(ConfigurationError): ...
class UnsetSubcommandError(ConfigurationError): ...

class DispatchError(CommanderException): ...
class UnknownCommandError(DispatchError): ...
class ArgumentCountError(DispatchError): ...
class UncastableArgumentError(DispatchError): ...
class FlagSyntaxError(DispatchError): ...
class UnknownFlagError(DispatchError): ...
class MissingFlagValueError(DispatchError): ...
class InvalidFlagValueError(DispatchError): ...
class HelpRequestedError(DispatchError): ...
class PostFlagParseError(DispatchError): ...


class CommanderWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "title": "bold #FFC2E0",  # softer pinky title for warnings

            # body
            "message": "#D6D6DE",  # slightly lighter gray body
            "hint-arrow": "#B8EFAF dim",  # softer green arrow
            "hint": "italic #B8EFAF",  # softer green hint text
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DegradedDirectiveWarning(CommanderWarning): ...
class UnknownDirectiveWarning(CommanderWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are raised
      and warnings are issued through the warnings module.

    typical options
    - tool, shell, fancy, colorful, title, code, hint, and any other context the
      reporter may want to show (e.g., input/index/argument).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "CommanderException",
    "ConfigurationError",
    "MalformedDirectiveError",
    "DuplicateFlagError",
    "MalformedApplicationError",
    "InvalidFieldError",
    "UnsetSubcommandError",
    "DispatchError",
    "UnknownCommandError",
    "ArgumentCountError",
    "UncastableArgumentError",
    "FlagSyntaxError",
    "UnknownFlagError",
    "MissingFlagValueError",
    "InvalidFlagValueError",
    "HelpRequestedError",
    "PostFlagParseError",
    "CommanderWarning",
    "DegradedDirectiveWarning",
    "UnknownDirectiveWarning",
    "FaultCode",
    "trigger",
)
