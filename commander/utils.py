"""
Commander utilities (internal helpers shared across the dispatch layers)

Overview
- UnsetType / Unset
  • Singleton sentinel for “value not provided”, distinct from None.
  • Falsey, printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default; None/0/""/[] are preserved.

- normalize(name)
  • Canonical command-name form: hyphens and underscores stripped, lowercased.
    "op-one", "op_one", "OpOne" and "opone" all normalize to "opone".

- ordinal(number)
  • Position label for messages ("first", "second", ..., "11th", "22nd").

Stability and contract
- Names not in __all__ are internal and may change without notice.
"""
import functools
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and singleton per process.
    """

    def __or__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Returns object unless it is Unset, in which case default is returned.
    Falsey values like None, 0, "" or [] are preserved as-is.
    """
    return object if object is not Unset else default


@functools.cache
def normalize(name, /):
    """
    Return the canonical form of a command or subcommand name.

    Hyphens and underscores are removed and the result is lowercased, so the
    token typed by a user ("op-one"), a Python method name ("op_one") and a
    declared subcommand name ("OpOne") compare equal.
    """
    if not isinstance(name, str):
        raise TypeError("normalize() argument must be a string")
    return name.replace("-", "").replace("_", "").lower()


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with English suffixes.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    # 11th, 12th, 13th (and 111th, 112th, 113th, …)
    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Use Unset as a default when None is a valid, user-meaningful value but you still
need to distinguish “no input” from “explicitly passed None”.
"""


__all__ = (
    # Functions
    "coalesce",
    "normalize",
    "ordinal",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
