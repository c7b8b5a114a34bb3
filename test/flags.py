"""
Flag binding registry tests (binding, token grammar, fan-out, round trip, usage).

Conventions
- Test method names follow CamelCase per project convention.
- Surfaces are built through bind(FlagSurface(...), app) as the dispatcher does.
"""

from __future__ import annotations

import unittest
from datetime import timedelta
from typing import Annotated
from unittest import TestCase

from commander import FlagSurface, Float32, Int8, Int64, MultiTarget, bind, bind_scoped
from commander.faults import (
    DuplicateFlagError,
    FlagSyntaxError,
    HelpRequestedError,
    InvalidFieldError,
    InvalidFlagValueError,
    MissingFlagValueError,
    UnknownFlagError,
)


class Options:
    verbose: Annotated[bool, "flag=verbose,Print more"] = False
    quiet: Annotated[bool, "flag=quiet"] = False
    count: Annotated[int, "flag=count,How many"] = 0
    small: Annotated[Int8, "flag=small"] = Int8(0)
    name: Annotated[str, "flag=name"] = ""
    ratio: Annotated[float, "flag=ratio"] = 0.0
    single: Annotated[Float32, "flag=single"] = Float32(0)
    tags: Annotated[list[str], "flag=tags"] = None
    labels: Annotated[dict[str, str], "flag=labels"] = None
    timeout: Annotated[timedelta, "flag=timeout"] = timedelta(0)
    budget: Annotated[Int64, "flag=budget"] = Int64(0)
    limit: Annotated[int | None, "flag=limit"] = None
    plain: int = 0


class Nested:
    nested_flag: Annotated[str, "flag=nestedflag,A nested flag"] = ""


class WithNested:
    top: Annotated[int, "flag=top"] = 0
    nested: Annotated[Nested | None, "flagstruct"] = None
    scoped: Annotated[Nested | None, "flagstruct=run"] = None


class Plugin:
    level: Annotated[int, "flag=level,Plugin level"] = 0


class WithPlugins:
    plugins: Annotated[list[Plugin], "flagslice"] = None


class Mixed:
    level: Annotated[int, "flag=level"] = 0
    plugins: Annotated[list[Plugin], "flagslice"] = None


class Clash:
    first: Annotated[int, "flag=same"] = 0
    second: Annotated[str, "flag=same"] = ""


class Unsupported:
    tags: Annotated[set[str], "flag=tags"] = None


class BadGroup:
    nested: Annotated[int, "flagstruct"] = 5


class UsageOptions:
    mapping: Annotated[dict[str, str], "flag=map,A map"] = {"a": "b"}
    text: Annotated[str, "flag=text"] = ""
    verbose: Annotated[bool, "flag=v,Be verbose"] = False
    limit: Annotated[int | None, "flag=limit,Optional limit"] = None


def surface(app, name="tool"):
    return bind(FlagSurface(name), app)


class TestParse(TestCase):
    """Token grammar of the flag parser."""

    def testValueForms(self):
        options = Options()
        rest = surface(options).parse(["--count", "3", "-name", "x", "--ratio=0.5", "-small=-7", "command"])
        self.assertEqual(rest, ["command"])
        self.assertEqual((options.count, options.name, options.ratio, options.small), (3, "x", 0.5, -7))
        self.assertIsInstance(options.small, Int8)

    def testBooleanForms(self):
        options = Options()
        flags = surface(options)
        self.assertEqual(flags.parse(["--verbose", "rest"]), ["rest"])
        self.assertIs(options.verbose, True)
        flags.parse(["--verbose=false"])
        self.assertIs(options.verbose, False)
        flags.parse(["-verbose=T"])
        self.assertIs(options.verbose, True)

    def testNegativeValuesAreConsumed(self):
        options = Options()
        surface(options).parse(["--count", "-3"])
        self.assertEqual(options.count, -3)

    def testStopsAtFirstNonFlag(self):
        options = Options()
        flags = surface(options)
        self.assertEqual(flags.parse(["run", "--count", "3"]), ["run", "--count", "3"])
        self.assertEqual(options.count, 0)
        self.assertEqual(flags.parse(["-", "x"]), ["-", "x"])
        self.assertEqual(flags.args, ["-", "x"])

    def testTerminator(self):
        options = Options()
        self.assertEqual(surface(options).parse(["--count", "1", "--", "--verbose"]), ["--verbose"])
        self.assertEqual(options.count, 1)
        self.assertIs(options.verbose, False)

    def testDurations(self):
        options = Options()
        surface(options).parse(["--timeout", "1h30m", "--budget", "2s"])
        self.assertEqual(options.timeout, timedelta(hours=1, minutes=30))
        self.assertEqual(options.budget, 2_000_000_000)

        surface(options).parse(["--budget", "15"])
        self.assertEqual(options.budget, 15)

    def testStructuredValues(self):
        options = Options()
        surface(options).parse(["--tags", '["a","b"]', "--labels", '{"k":"v"}', "--limit", "4"])
        self.assertEqual(options.tags, ["a", "b"])
        self.assertEqual(options.labels, {"k": "v"})
        self.assertEqual(options.limit, 4)

    def testUndirectedFieldsAreNotFlags(self):
        with self.assertRaises(UnknownFlagError):
            surface(Options()).parse(["--plain", "1"])

    def testBadSyntax(self):
        for token in ("---x", "--=x", "-=x"):
            with self.subTest(token=token), self.assertRaises(FlagSyntaxError):
                surface(Options()).parse([token])

    def testUnknownFlagSuggestsCloseMatch(self):
        with self.assertRaises(UnknownFlagError) as context:
            surface(Options()).parse(["--cuont", "1"])
        self.assertEqual(str(context.exception), "flag provided but not defined: --cuont")
        self.assertIn("--count", context.exception.options["hint"])

    def testMissingValue(self):
        with self.assertRaises(MissingFlagValueError):
            surface(Options()).parse(["--count"])

    def testInvalidValue(self):
        for arguments in (["--count", "x"], ["--small", "300"], ["--verbose=yes"], ["--tags", "[1]"]):
            with self.subTest(arguments=arguments), self.assertRaises(InvalidFlagValueError):
                surface(Options()).parse(arguments)

    def testHelp(self):
        for token in ("-h", "--help", "-help"):
            with self.subTest(token=token), self.assertRaises(HelpRequestedError):
                surface(Options()).parse([token])


class TestBind(TestCase):
    """Binding of flags, flag groups and their faults."""

    def testNestedGroup(self):
        app = WithNested()
        app.nested = Nested()
        flags = surface(app)
        self.assertEqual(sorted(flags.targets), ["nestedflag", "top"])
        flags.parse(["--nestedflag", "x", "--top", "2"])
        self.assertEqual((app.nested.nested_flag, app.top), ("x", 2))

    def testUnsetGroupIsSkipped(self):
        self.assertEqual(sorted(surface(WithNested()).targets), ["top"])

    def testScopedGroup(self):
        app = WithNested()
        app.scoped = Nested()
        flags = surface(app)
        self.assertNotIn("nestedflag", flags.targets)
        bind_scoped(flags, app, "other")
        self.assertNotIn("nestedflag", flags.targets)
        bind_scoped(flags, app, "Run")
        flags.parse(["--nestedflag", "y"])
        self.assertEqual(app.scoped.nested_flag, "y")

    def testFanOut(self):
        app = WithPlugins()
        app.plugins = [Plugin(), None, Plugin()]
        flags = surface(app)
        target = flags.lookup("level")
        self.assertIsInstance(target, MultiTarget)
        self.assertEqual(len(target.destinations), 2)
        flags.parse(["--level", "3"])
        self.assertEqual([plugin.level for plugin in app.plugins if plugin], [3, 3])

    def testFanOutWritesNothingOnError(self):
        app = WithPlugins()
        app.plugins = [Plugin(), Plugin()]
        with self.assertRaises(InvalidFlagValueError):
            surface(app).parse(["--level", "x"])
        self.assertEqual([plugin.level for plugin in app.plugins], [0, 0])

    def testSingleElementIsNotFannedOut(self):
        app = WithPlugins()
        app.plugins = [Plugin()]
        self.assertNotIsInstance(surface(app).lookup("level"), MultiTarget)

    def testDuplicateFlag(self):
        with self.assertRaises(DuplicateFlagError):
            surface(Clash())

    def testPlainFlagDoesNotCompose(self):
        app = Mixed()
        app.plugins = [Plugin()]
        with self.assertRaises(DuplicateFlagError):
            surface(app)

    def testUnsupportedFieldType(self):
        with self.assertRaises(InvalidFieldError):
            surface(Unsupported())

    def testGroupOnScalar(self):
        with self.assertRaises(InvalidFieldError):
            surface(BadGroup())

    def testSliceOnNonSequence(self):
        app = WithPlugins()
        app.plugins = Plugin()
        with self.assertRaises(InvalidFieldError):
            surface(app)


class TestSet(TestCase):
    """Setting a flag by name without going through the token parser."""

    def testPlainTarget(self):
        options = Options()
        surface(options).set("count", "5")
        self.assertEqual(options.count, 5)

    def testFanOut(self):
        app = WithPlugins()
        app.plugins = [Plugin(), Plugin()]
        surface(app).set("level", "3")
        self.assertEqual([plugin.level for plugin in app.plugins], [3, 3])

    def testInvalidValue(self):
        options = Options()
        with self.assertRaises(InvalidFlagValueError):
            surface(options).set("count", "many")
        self.assertEqual(options.count, 0)

    def testUnknownName(self):
        with self.assertRaises(UnknownFlagError) as context:
            surface(Options()).set("nope", "1")
        self.assertEqual(str(context.exception), "flag provided but not defined: --nope")


class TestStringify(TestCase):
    """Rendering of flag values back into tokens."""

    def populated(self):
        options = Options()
        options.verbose = True
        options.count = -3
        options.small = Int8(-5)
        options.name = "hello world"
        options.ratio = 0.1
        options.single = Float32(2.5)
        options.tags = ["a", "b c"]
        options.labels = {"k": "v", "a": "ü"}
        options.timeout = timedelta(hours=1, minutes=30, milliseconds=500)
        options.budget = Int64(42)
        return options

    def testTokens(self):
        tokens = surface(self.populated()).stringify()
        self.assertNotIn("--quiet", tokens)
        self.assertNotIn("--limit", tokens)
        self.assertEqual(tokens[:2], ["--budget", "42"])
        self.assertIn("--verbose", tokens)
        self.assertEqual(tokens[tokens.index("--labels") + 1], '{"a":"ü","k":"v"}')
        self.assertEqual(tokens[tokens.index("--timeout") + 1], "1h30m0.5s")
        self.assertEqual(tokens[tokens.index("--ratio") + 1], "0.1")

    def testRoundTrip(self):
        original, copy = self.populated(), Options()
        surface(copy).parse(surface(original).stringify())
        for name in ("verbose", "quiet", "count", "small", "name", "ratio", "single", "tags", "labels", "timeout", "budget", "limit"):
            with self.subTest(name=name):
                self.assertEqual(getattr(copy, name), getattr(original, name))


class TestUsage(TestCase):
    """Usage text of a flag surface."""

    def testUsage(self):
        self.assertEqual(surface(UsageOptions(), "tool").usage(), (
            "Usage of tool:\n"
            "  --limit value\n"
            "      Optional limit (type: ptr, default: )\n"
            "  --map value\n"
            '      A map (type: map, default: {"a":"b"})\n'
            "  --text value\n"
            '      No usage found for this flag. (type: string, default: "")\n'
            "  --v\n"
            "      Be verbose (type: bool, default: false)\n"
        ))

    def testUnnamedSurface(self):
        self.assertEqual(FlagSurface().usage(), "Usage:\n")

    def testDefaultFollowsCurrentValue(self):
        options = UsageOptions()
        options.limit = 3
        self.assertIn("(type: ptr, default: 3)", surface(options).usage())


if __name__ == "__main__":
    unittest.main()
