"""Error types raised by the scheduling core.

All of them subclass ``ValueError`` so callers that already guard user input
with ``except ValueError`` keep working.
"""


class FormatError(ValueError):
    """A time or day string could not be parsed."""


class RangeError(ValueError):
    """A numeric input fell outside its allowed domain."""


class DuplicateName(ValueError):
    """A block type with the same (case-insensitive) name already exists."""
