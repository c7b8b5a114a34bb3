"""
Usage renderer tests.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import io
import unittest
from typing import Annotated
from unittest import TestCase

from commander import Commander


class Leaf:
    def run(self):
        pass


class Scoped:
    only: Annotated[bool, "flag=only,Only for run"] = False


class Root:
    mapping: Annotated[dict[str, str], "flag=map,A map"] = {"a": "b"}
    verbose: Annotated[bool, "flag=v,Be verbose"] = False
    second: Annotated[Leaf | None, "subcommand=second,Comes second"] = None
    first: Annotated[Leaf | None, "subcommand=first"] = None
    scoped: Annotated[Scoped | None, "flagstruct=run"] = None

    def __init__(self):
        self.scoped = Scoped()

    def run(self):
        pass


class Named(Leaf):
    def __cli_name__(self):
        return "named"


class TestUsage(TestCase):
    def setUp(self):
        self.output = io.StringIO()
        self.commander = Commander(self.output)

    def testLevelUsage(self):
        self.assertEqual(self.commander.usage(Root()), (
            "Usage of CLI:\n"
            "  --map value\n"
            '      A map (type: map, default: {"a":"b"})\n'
            "  --v\n"
            "      Be verbose (type: bool, default: false)\n"
            "\n"
            "Sub-Commands:\n"
            "  second  |  Comes second\n"
            "  first  |  No description for this subcommand\n"
        ))

    def testCommandUsageAddsScopedFlags(self):
        text = self.commander.usage_with_command(Root(), "run")
        self.assertTrue(text.startswith("Usage of CLI run:\n"))
        self.assertIn("  --only\n      Only for run (type: bool, default: false)\n", text)
        self.assertIn("  --map value\n", text)

    def testNoSubcommandsNoSection(self):
        self.assertEqual(self.commander.usage(Leaf()), "Usage of CLI:\n")

    def testCliName(self):
        self.assertEqual(self.commander.usage(Named()), "Usage of named:\n")
        self.assertEqual(self.commander.named_usage(Named(), "other"), "Usage of other:\n")

    def testPrintUsage(self):
        self.commander.print_usage(Root())
        self.commander.print_usage_with_command(Root(), "tool", "run")
        output = self.output.getvalue()
        self.assertIn("Usage of CLI:\n", output)
        self.assertIn("Sub-Commands:\n", output)
        self.assertIn("Usage of tool run:\n", output)
        self.assertIn("--only", output)

    def testFlagSet(self):
        surface = self.commander.get_flag_set(Root())
        self.assertEqual(surface.name, "CLI")
        self.assertEqual(sorted(surface.targets), ["map", "v"])

        surface = self.commander.get_flag_set_with_command(Root(), "tool", "run")
        self.assertEqual(surface.name, "tool run")
        self.assertEqual(sorted(surface.targets), ["map", "only", "v"])


if __name__ == "__main__":
    unittest.main()
