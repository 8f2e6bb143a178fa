from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Match:
    literal: str
    rest: str


class CommandMatcher:
    """Finds the longest registered name that prefixes a message body.

    Names are compared case-insensitively. Equal-length matches resolve to
    the lexicographically smallest name.
    """

    def __init__(self, names: Iterable[str]) -> None:
        keys = {name.lower() for name in names if name}
        self._names = tuple(sorted(keys, key=lambda key: (-len(key), key)))

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def match(self, body: str) -> Match | None:
        for name in self._names:
            if body[: len(name)].lower() == name:
                return Match(literal=name, rest=body[len(name) :])
        return None
