"""
Commander dispatch layer: drive an application object from argument tokens.

What this module provides
- Commander: walks an application graph level by level, parsing flags, descending
  into subcommands and finally invoking the matching command method.
- run_cli(app, arguments): convenience runner with a default Commander.

Application objects
- fields carry directives through typing.Annotated (see commander.directives):

      class App:
          verbose: Annotated[bool, "flag=verbose,Print more"] = False
          remote: Annotated[Remote, "subcommand=remote,Manage remotes"] = None

          def status(self, path: str): ...

- optional hooks:
  • __cli_name__() -> str: display name of the root application (default "CLI").
  • __post_flag_parse__(): called once the flags of its level are parsed, before
    descending into a subcommand or invoking a command.

Dispatch
1. build the flag surface of the current level and parse the leading flags.
2. if the next argument names a subcommand, run the level hook, append the argument
   to the cumulative path, descend and start over.
3. otherwise try, in order: the next argument, the last resolved subcommand and
   "CommanderDefault" as command names. A command named by the next argument
   consumes it, unless that same token already resolved the previous level.
4. add the flags scoped to that command, parse flags again, run the level hook and
   invoke the command with the remaining arguments.

Outcome
- the command's return value is returned.
- configuration faults are raised as they are found.
- dispatch faults print the usage of the current level first.
- exceptions raised by the command itself reach the caller unchanged, without usage.
- in shell mode faults are rendered with rich and the process exits.
- warnings raised while dispatching (degraded or unknown directives) are re-triggered
  with the dispatcher options once the dispatch ends, so shell mode renders them too.
"""
import logging
import shlex
import sys
from collections.abc import Iterable
from contextlib import contextmanager
from warnings import catch_warnings, warn_explicit

from rich.console import Console

from .faults import *
from .flags import FlagSurface, bind, bind_scoped
from .invocation import ApplicationError, candidates, find_command, invoke, locate
from .subcommands import resolve
from .usage import render
from .utils import Unset

logger = logging.getLogger(__name__)


def cli_name(app, /, *path):
    """Return the display name of app followed by the cumulative path."""
    hook = getattr(app, "__cli_name__", None)
    name = str(hook()) if callable(hook) else "CLI"
    return " ".join((name, *path))


def _post_flag_parse(app):
    hook = getattr(app, "__post_flag_parse__", None)
    if not callable(hook):
        return
    try:
        hook()
    except Exception as error:
        raise PostFlagParseError(
            "post flag parse hook of %s failed: %s" % (type(app).__name__, error),
            title="post flag parse hook",
            code=FaultCode.POST_FLAG_PARSE,
        ) from error


def _tokenize(arguments):
    if arguments is Unset:
        return sys.argv[1:]
    if isinstance(arguments, str):
        return shlex.split(arguments)
    if isinstance(arguments, Iterable):
        tokens = list(arguments)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("run_cli() arguments must be a string or an iterable of strings")
        return tokens
    raise TypeError("run_cli() arguments must be a string or an iterable of strings")


class Commander:
    """
    Dispatcher configuration and entry points.

    Parameters
    - output: file-like object receiving usage text (default: standard output).
    - shell: render faults with rich and exit instead of raising them.
    - fancy: draw rendered faults inside a panel.
    - colorful: style rendered faults (colors come from __styles__ in __main__).

    Concurrent dispatches against the same application object are not safe: flag
    values are written onto the application in place.
    """

    def __init__(self, output=Unset, /, *, shell=False, fancy=False, colorful=False):
        self.output = output
        self.shell = shell
        self.fancy = fancy
        self.colorful = colorful
        self.console = Console(
            file=None if output is Unset else output,
            markup=False,
            emoji=False,
            highlight=False,
            soft_wrap=True,
        )

    def __rich_repr__(self):
        yield "output", self.output, Unset
        yield "shell", self.shell, False
        yield "fancy", self.fancy, False
        yield "colorful", self.colorful, False

    def trigger(self, fault, /, **options):
        trigger(fault, **{"shell": self.shell, "fancy": self.fancy, "colorful": self.colorful} | options)

    def get_flag_set(self, app, appname=Unset, /):
        """Return the flag surface of one level, named appname (default: the cli name)."""
        return bind(FlagSurface(cli_name(app) if appname is Unset else appname), app)

    def get_flag_set_with_command(self, app, appname, command, /):
        """Return the flag surface of one level including the flags scoped to command."""
        return bind_scoped(self.get_flag_set(app, f"{appname} {command}"), app, command)

    def named_usage(self, app, appname, /):
        return render(app, self.get_flag_set(app, appname))

    def named_usage_with_command(self, app, appname, command, /):
        return render(app, self.get_flag_set_with_command(app, appname, command))

    def usage(self, app, /):
        return self.named_usage(app, cli_name(app))

    def usage_with_command(self, app, command, /):
        return self.named_usage_with_command(app, cli_name(app), command)

    def print_usage(self, app, appname=Unset, /):
        self.console.print(self.named_usage(app, cli_name(app) if appname is Unset else appname), end="")

    def print_usage_with_command(self, app, appname, command, /):
        self.console.print(self.named_usage_with_command(app, appname, command), end="")

    def run_cli(self, app, arguments=Unset, /):
        """
        Dispatch arguments against app and return the invoked command's result.

        arguments
        - Unset: read sys.argv[1:].
        - str: split with shlex.split.
        - Iterable[str]: used as the tokens.
        """
        tokens = _tokenize(arguments)
        try:
            with self._collecting(app):
                return self._dispatch(app, tokens)
        except ApplicationError as fault:
            error = fault.error
        except HelpRequestedError:
            if self.shell:
                sys.exit(0)
            raise
        except CommanderException as fault:
            self.trigger(fault, tool=cli_name(app))
            raise
        raise error

    @contextmanager
    def _collecting(self, app):
        records = []
        try:
            with catch_warnings(record=True) as records:
                yield
        finally:
            for record in records:
                if isinstance(record.message, CommanderWarning):
                    self.trigger(record.message, tool=cli_name(app))
                else:
                    warn_explicit(record.message, record.category, record.filename, record.lineno)

    def _dispatch(self, app, arguments):
        root, path = app, []
        appname = cli_name(root)

        while True:
            surface = self.get_flag_set(app, appname)
            try:
                arguments = surface.parse(arguments)
            except DispatchError:
                self.print_usage(app, appname)
                raise
            if not arguments or (child := resolve(app, arguments[0])) is None:
                break
            _post_flag_parse(app)
            path.append(arguments[0])
            logger.debug("descending into subcommand %r of %s", arguments[0], type(app).__name__)
            app, arguments, appname = child, arguments[1:], cli_name(root, *path)

        names = candidates(arguments, path)
        if arguments:
            path.append(arguments[0])
        if (command := find_command(app, names)) is None:
            self.print_usage(app, appname)
            raise UnknownCommandError(
                "failed to find a command among %s" % ", ".join(map(repr, names)),
                title="unknown command",
                code=FaultCode.UNKNOWN_COMMAND,
                hint="run '%s --help' to see the available subcommands" % appname,
            )
        if arguments and command == arguments[0] and (len(path) < 2 or path[-2] != arguments[0]):
            arguments = arguments[1:]
        logger.debug("resolved command %r on %s with %r", command, type(app).__name__, arguments)

        bind_scoped(surface, app, command)
        try:
            arguments = surface.parse(arguments)
            _post_flag_parse(app)
            return invoke(app, locate(app, command), arguments)
        except DispatchError:
            self.print_usage_with_command(app, appname, command)
            raise


def run_cli(app, arguments=Unset, /, **options):
    """
    Convenience runner: dispatch once with a Commander built from options.

    >>> run_cli(App(), "--verbose status .")
    """
    return Commander(**options).run_cli(app, arguments)


__all__ = (
    "Commander",
    "cli_name",
    "run_cli",
)
