"""Command and argument specifications."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Literal

from .config import ConfigError

type ListType = Literal["listed", "unlisted"]
type StringCheck = Callable[[str], bool]
type NumberCheck = Callable[[float], bool]

REQUIRED_OPEN = "["
REQUIRED_CLOSE = "]"
OPTIONAL_OPEN = "{"
OPTIONAL_CLOSE = "}"
OPTIONS_OPEN = "("
OPTIONS_CLOSE = ")"


class CommandSpecError(ConfigError):
    pass


@dataclass(frozen=True, slots=True)
class Word:
    """A single whitespace-delimited token."""

    options: tuple[str, ...] = ()
    checks: tuple[StringCheck, ...] = ()


@dataclass(frozen=True, slots=True)
class Number:
    """A single token parsed as a float."""

    checks: tuple[NumberCheck, ...] = ()


@dataclass(frozen=True, slots=True)
class Quoted:
    """Text between the first pair of double quotes."""

    checks: tuple[StringCheck, ...] = ()


@dataclass(frozen=True, slots=True)
class Custom:
    """The command's span chooser decides how much text to consume."""


type ArgumentKind = Word | Number | Quoted | Custom


@dataclass(frozen=True, slots=True)
class ArgumentSpec:
    id: int
    name: str
    kind: ArgumentKind = field(default_factory=Word)
    description: str = ""
    optional: bool = False
    default_text: str | None = None
    default_number: float = math.nan
    error_message: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise CommandSpecError(f"argument {self.id} must have a name")
        if isinstance(self.kind, Word):
            cleaned = tuple(option for option in self.kind.options if option)
            if cleaned != self.kind.options:
                object.__setattr__(
                    self, "kind", Word(options=cleaned, checks=self.kind.checks)
                )

    @property
    def parse_number(self) -> bool:
        return isinstance(self.kind, Number)

    @property
    def quoted(self) -> bool:
        return isinstance(self.kind, Quoted)

    @property
    def custom(self) -> bool:
        return isinstance(self.kind, Custom)

    @property
    def options(self) -> tuple[str, ...]:
        if isinstance(self.kind, Word):
            return self.kind.options
        return ()

    @classmethod
    def build(
        cls,
        id: int,
        name: str,
        *,
        description: str = "",
        optional: bool = False,
        options: Iterable[str] = (),
        string_checks: Iterable[StringCheck] = (),
        numeric_checks: Iterable[NumberCheck] = (),
        parse_number: bool = False,
        quoted: bool = False,
        custom: bool = False,
        default_text: str | None = None,
        default_number: float = math.nan,
        error_message: str = "",
    ) -> ArgumentSpec:
        """Build an argument from independent flags.

        Rejects flag combinations that do not map onto exactly one
        tokenization mode.
        """
        options = tuple(options)
        string_checks = tuple(string_checks)
        numeric_checks = tuple(numeric_checks)
        label = f"argument {name!r}"
        if parse_number and options:
            raise CommandSpecError(
                f"{label} must either parse to a number or have options"
            )
        if numeric_checks and not parse_number:
            raise CommandSpecError(
                f"{label} has numeric checks but does not parse to a number"
            )
        if string_checks and (custom or parse_number):
            raise CommandSpecError(
                f"{label} cannot combine string checks with custom tokenization "
                "or number parsing"
            )
        if custom and quoted:
            raise CommandSpecError(
                f"{label} must either be quoted or use custom tokenization"
            )
        if (custom or quoted) and parse_number:
            raise CommandSpecError(
                f"{label} must either be quoted/custom or parse to a number"
            )
        if options and (custom or quoted):
            raise CommandSpecError(
                f"{label} cannot combine options with quoting or custom tokenization"
            )

        kind: ArgumentKind
        if parse_number:
            kind = Number(checks=numeric_checks)
        elif custom:
            kind = Custom()
        elif quoted:
            kind = Quoted(checks=string_checks)
        else:
            kind = Word(options=options, checks=string_checks)
        return cls(
            id=id,
            name=name,
            kind=kind,
            description=description,
            optional=optional,
            default_text=default_text,
            default_number=default_number,
            error_message=error_message,
        )


def _as_duration(value: timedelta | float | int) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


@dataclass(frozen=True, slots=True)
class CommandSpec:
    names: tuple[str, ...]
    description: str = ""
    verbose_description: str = ""
    list_type: ListType = "listed"
    user_cooldown: timedelta = timedelta(0)
    guild_cooldown: timedelta = timedelta(0)
    arguments: tuple[ArgumentSpec, ...] = ()
    guild_only: bool = False
    raw_args: bool = False
    raw_args_name: str = ""
    raw_args_description: str = ""
    execute_if_store_unreachable: bool = False
    required_capabilities: tuple[str, ...] = ()
    clean_cooldown_records: bool = True
    user_cleanup_threshold: timedelta | None = None
    guild_cleanup_threshold: timedelta | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(
            self, "required_capabilities", tuple(self.required_capabilities)
        )
        object.__setattr__(self, "user_cooldown", _as_duration(self.user_cooldown))
        object.__setattr__(self, "guild_cooldown", _as_duration(self.guild_cooldown))
        self._validate()

    def _validate(self) -> None:
        if not self.names:
            raise CommandSpecError("a command needs at least one name")
        seen: set[str] = set()
        for name in self.names:
            if not isinstance(name, str) or not name.strip():
                raise CommandSpecError(
                    f"command names must be non-empty strings, got {name!r}"
                )
            key = name.lower()
            if key in seen:
                raise CommandSpecError(
                    f"duplicate name {name!r} in command {self.names[0]!r}"
                )
            seen.add(key)
        label = f"command {self.name!r}"
        if self.list_type not in ("listed", "unlisted"):
            raise CommandSpecError(f"{label} has unknown list type {self.list_type!r}")
        if self.user_cooldown < timedelta(0) or self.guild_cooldown < timedelta(0):
            raise CommandSpecError(f"{label} has a negative cooldown")
        if self.guild_cooldown and not self.guild_only:
            raise CommandSpecError(
                f"{label} uses a guild cooldown and must be guild-only"
            )
        if self.raw_args and self.arguments:
            raise CommandSpecError(
                f"{label} uses raw arguments and cannot declare arguments"
            )
        ids: set[int] = set()
        previous_optional = False
        for argument in self.arguments:
            if argument.id in ids:
                raise CommandSpecError(
                    f"{label} declares argument id {argument.id} twice"
                )
            ids.add(argument.id)
            if previous_optional and not argument.optional:
                raise CommandSpecError(
                    f"{label}: argument {argument.name!r} follows an optional "
                    "argument and must be optional too"
                )
            previous_optional = argument.optional

    @property
    def name(self) -> str:
        return self.names[0]

    @property
    def aliases(self) -> tuple[str, ...]:
        return self.names[1:]

    @property
    def has_user_cooldown(self) -> bool:
        return self.user_cooldown > timedelta(0)

    @property
    def has_guild_cooldown(self) -> bool:
        return self.guild_cooldown > timedelta(0)

    @property
    def has_any_cooldown(self) -> bool:
        return self.has_user_cooldown or self.has_guild_cooldown

    @property
    def listed(self) -> bool:
        return self.list_type == "listed"

    @property
    def signature(self) -> str:
        parts = [self.name]
        if self.raw_args:
            if self.raw_args_name:
                parts.append(self.raw_args_name)
            return " ".join(parts)
        for argument in self.arguments:
            parts.append(_argument_signature(argument))
        return " ".join(parts)

    def argument(self, argument_id: int) -> ArgumentSpec | None:
        for argument in self.arguments:
            if argument.id == argument_id:
                return argument
        return None


def _argument_signature(argument: ArgumentSpec) -> str:
    label = argument.name.lower()
    if argument.options:
        label += OPTIONS_OPEN + "/".join(argument.options) + OPTIONS_CLOSE
    if argument.optional:
        return OPTIONAL_OPEN + label + OPTIONAL_CLOSE
    return REQUIRED_OPEN + label + REQUIRED_CLOSE
