"""Argument string tokenization and validation."""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .logging import get_logger
from .model import ArgumentSpec, CommandSpec, Custom, Number, Quoted, Word

logger = get_logger(__name__)

type SpanChooser = Callable[[int, str], int]

# plain ASCII decimals with an optional exponent; no underscores, no inf/nan
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


class RawArgumentsError(RuntimeError):
    pass


def _no_span(argument_id: int, remaining: str) -> int:
    _ = argument_id, remaining
    return 0


@dataclass(frozen=True, slots=True)
class ParsedArguments:
    remainder: str = ""
    texts: Mapping[int, str] = field(default_factory=dict)
    numbers: Mapping[int, float] = field(default_factory=dict)
    invalid_ids: frozenset[int] = frozenset()
    raw_only: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "texts", MappingProxyType(dict(self.texts)))
        object.__setattr__(self, "numbers", MappingProxyType(dict(self.numbers)))
        object.__setattr__(self, "invalid_ids", frozenset(self.invalid_ids))

    @property
    def is_valid(self) -> bool:
        return not self.invalid_ids

    def _require_parsed(self) -> None:
        if self.raw_only:
            raise RawArgumentsError(
                "the command uses raw arguments; read `remainder` instead"
            )

    def text(self, argument_id: int) -> str | None:
        self._require_parsed()
        return self.texts.get(argument_id)

    def number(self, argument_id: int) -> float:
        self._require_parsed()
        return self.numbers.get(argument_id, math.nan)

    def is_present(self, argument_id: int) -> bool:
        self._require_parsed()
        return self.texts.get(argument_id) is not None

    def is_invalid(self, argument_id: int) -> bool:
        self._require_parsed()
        return argument_id in self.invalid_ids


def resolve_raw(raw: str) -> ParsedArguments:
    return ParsedArguments(remainder=raw.strip(), raw_only=True)


class _Resolution:
    def __init__(self) -> None:
        self.texts: dict[int, str] = {}
        self.numbers: dict[int, float] = {}
        self.invalid: set[int] = set()

    def reject(self, argument: ArgumentSpec, reason: str, **fields: object) -> None:
        logger.debug(
            "arguments.invalid",
            argument=argument.name,
            reason=reason,
            **fields,
        )
        self.invalid.add(argument.id)


def resolve_arguments(
    spec: CommandSpec,
    raw: str,
    chooser: SpanChooser | None = None,
) -> ParsedArguments:
    """Consume `raw` argument by argument in declaration order.

    Each argument takes a prefix of what is left. Failures mark the argument
    invalid but never stop the remaining arguments from being processed.
    """
    if spec.raw_args:
        return resolve_raw(raw)
    choose = chooser or _no_span
    state = _Resolution()
    remaining = raw
    for argument in spec.arguments:
        remaining = remaining.strip()
        if not remaining:
            _apply_default(state, argument)
            continue
        kind = argument.kind
        if isinstance(kind, Word | Number):
            token, remaining = _split_token(remaining)
            _resolve_token(state, argument, token)
        elif isinstance(kind, Custom):
            remaining = _resolve_custom(state, argument, remaining, choose)
        elif isinstance(kind, Quoted):
            remaining = _resolve_quoted(state, argument, kind, remaining)
    return ParsedArguments(
        remainder=remaining,
        texts=state.texts,
        numbers=state.numbers,
        invalid_ids=frozenset(state.invalid),
    )


def _split_token(text: str) -> tuple[str, str]:
    token, *rest = text.split(maxsplit=1)
    return token, rest[0] if rest else ""


def _apply_default(state: _Resolution, argument: ArgumentSpec) -> None:
    if not argument.optional:
        state.reject(argument, "missing")
        return
    if argument.parse_number:
        state.numbers[argument.id] = argument.default_number
    elif argument.default_text is not None:
        state.texts[argument.id] = argument.default_text


def _resolve_token(state: _Resolution, argument: ArgumentSpec, token: str) -> None:
    state.texts[argument.id] = token
    kind = argument.kind
    if isinstance(kind, Word):
        if kind.options and not argument.optional:
            lowered = token.lower()
            if not any(option.lower() == lowered for option in kind.options):
                state.reject(argument, "option", value=token)
        _run_string_checks(state, argument, kind.checks, token)
        return
    if isinstance(kind, Number):
        value = _parse_number(token)
        if value is None:
            state.reject(argument, "not_a_number", value=token)
            return
        state.numbers[argument.id] = value
        for check in kind.checks:
            if not check(value):
                state.reject(argument, "numeric_check", value=value)
                break


def _parse_number(token: str) -> float | None:
    if _NUMBER_RE.fullmatch(token) is None:
        return None
    value = float(token)
    if math.isinf(value):
        return None
    return value


def _run_string_checks(
    state: _Resolution,
    argument: ArgumentSpec,
    checks: tuple[Callable[[str], bool], ...],
    value: str,
) -> None:
    for check in checks:
        if not check(value):
            state.reject(argument, "string_check", value=value)
            break


def _resolve_custom(
    state: _Resolution,
    argument: ArgumentSpec,
    remaining: str,
    choose: SpanChooser,
) -> str:
    taken = max(choose(argument.id, remaining), 0)
    if taken == 0:
        state.reject(argument, "nothing_chosen")
        return remaining
    taken = min(taken, len(remaining))
    state.texts[argument.id] = remaining[:taken]
    return remaining[taken:]


def _resolve_quoted(
    state: _Resolution,
    argument: ArgumentSpec,
    kind: Quoted,
    remaining: str,
) -> str:
    opening = remaining.find('"')
    if opening < 0:
        state.reject(argument, "no_opening_quote")
        return remaining
    closing = remaining.find('"', opening + 1)
    if closing < 0:
        state.reject(argument, "no_closing_quote")
        return remaining
    value = remaining[opening + 1 : closing]
    state.texts[argument.id] = value
    _run_string_checks(state, argument, kind.checks, value)
    return remaining[closing + 1 :]
