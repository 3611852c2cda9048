"""Inclusive integer intervals, used to constrain external port selection.

Two notations are understood::

    30000-30100        inclusive on both ends
    30000              a single value
    [30000;30100]      mathematical notation, ``,`` works as separator too
    ]29999;30101[      ``]`` on the left / ``[`` on the right exclude the bound
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

from tempdock.exceptions import ParseError

_DASH_RE = re.compile(r"^\s*(-?\d+)\s*(?:-\s*(-?\d+)\s*)?$")
_BRACKET_RE = re.compile(r"^\s*([\[\]])\s*(-?\d+)\s*[;,]\s*(-?\d+)\s*([\[\]])\s*$")


@dataclass(frozen=True)
class IntegerInterval:
    min: int
    max: int

    def __post_init__(self) -> None:
        if self.min > self.max:
            msg = f"Empty interval: {self.min} > {self.max}"
            raise ValueError(msg)

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.min <= value <= self.max

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.min, self.max + 1))

    def __len__(self) -> int:
        return self.max - self.min + 1

    def __str__(self) -> str:
        return f"[{self.min};{self.max}]"


def parse_interval(text: str) -> IntegerInterval:
    """Parses an interval expression into an inclusive `IntegerInterval`.

    Raises:
        ParseError: If the text is malformed or describes an empty range.
    """
    if not isinstance(text, str):
        raise ParseError(repr(text), "not a string")
    match = _DASH_RE.match(text)
    if match is not None:
        low = int(match.group(1))
        high = int(match.group(2)) if match.group(2) is not None else low
    else:
        match = _BRACKET_RE.match(text)
        if match is None:
            raise ParseError(text, "unrecognized format")
        left, low_s, high_s, right = match.groups()
        low = int(low_s) + (1 if left == "]" else 0)
        high = int(high_s) - (1 if right == "[" else 0)
    try:
        return IntegerInterval(low, high)
    except ValueError as e:
        raise ParseError(text, str(e)) from e
