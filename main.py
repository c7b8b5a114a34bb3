from dataclasses import dataclass, field
from datetime import timedelta
from typing import Annotated

from rich.pretty import pprint

from commander import *


@dataclass
class Retry:
    attempts: Annotated[int, "flag=attempts,How many times to try"] = 3
    backoff: Annotated[timedelta, "flag=backoff,Pause between attempts"] = timedelta(seconds=1)


@dataclass
class Remote:
    url: Annotated[str, "flag=url,Address of the remote"] = "http://localhost"
    retry: Annotated[Retry, "flagstruct=fetch"] = field(default_factory=Retry)

    def fetch(self, *paths):
        return [f"{self.url}/{path}" for path in paths]


@dataclass
class Manager:
    dry_run: Annotated[bool, "flag=dry-run,Only print what would happen"] = False
    remote: Annotated[Remote, "subcommand=remote,Talk to the remote"] = field(default_factory=Remote)

    def __cli_name__(self):
        return "manager"

    def remove(self, path: str):
        return f"{'would remove' if self.dry_run else 'removed'} {path}"


if __name__ == '__main__':
    manager = Manager()
    commander = Commander(shell=True, colorful=True)
    pprint(commander.get_flag_set(manager))
    pprint(commander.run_cli(manager))
