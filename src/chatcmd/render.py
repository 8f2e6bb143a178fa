"""Plain-text replies produced by dispatch and the built-in commands."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import timedelta

from .arguments import ParsedArguments
from .model import (
    OPTIONAL_CLOSE,
    OPTIONAL_OPEN,
    OPTIONS_CLOSE,
    OPTIONS_OPEN,
    REQUIRED_CLOSE,
    REQUIRED_OPEN,
    CommandSpec,
)

GUILD_ONLY_TEXT = "This command can only be executed in a server chat."
STORE_UNAVAILABLE_TEXT = (
    "Unable to execute the command: cooldowns cannot be checked right now."
)
STORE_ERROR_TEXT = "Something went wrong while managing the cooldown of the command."
EXECUTION_FAILED_TEXT = "Something went wrong while executing the command."

ARGUMENTS_LEGEND = (
    f"Optional arguments - {OPTIONAL_OPEN}{OPTIONAL_CLOSE}\n"
    f"Required arguments - {REQUIRED_OPEN}{REQUIRED_CLOSE}\n"
    f"Argument options - {OPTIONS_OPEN}{OPTIONS_CLOSE}"
)

_UNITS: tuple[tuple[str, int], ...] = (
    ("day", 86_400),
    ("hour", 3_600),
    ("minute", 60),
    ("second", 1),
)


def format_duration_words(delta: timedelta) -> str:
    """Render a duration as words, e.g. ``1 minute 5 seconds``.

    Seconds round up so that a cooldown never reads as shorter than it is.
    Leading and trailing zero units are dropped; inner zero units are kept.
    """
    total = max(math.ceil(delta.total_seconds()), 0)
    values: list[tuple[str, int]] = []
    for unit, size in _UNITS:
        amount, total = divmod(total, size)
        values.append((unit, amount))
    while len(values) > 1 and values[0][1] == 0:
        values.pop(0)
    while len(values) > 1 and values[-1][1] == 0:
        values.pop()
    return " ".join(
        f"{amount} {unit}" if amount == 1 else f"{amount} {unit}s"
        for unit, amount in values
    )


def render_cooldown(remaining: timedelta) -> str:
    return f"The command is on cooldown: {format_duration_words(remaining)}"


def capability_label(capability: str) -> str:
    return capability.replace("_", " ").replace(".", " ").title()


def render_missing_capabilities(missing: Sequence[str]) -> str:
    labels = ", ".join(capability_label(capability) for capability in missing)
    noun = "permission" if len(missing) == 1 else "permissions"
    return f"You don't have {labels} {noun} in order to execute this command."


def render_wrong_usage(spec: CommandSpec, args: ParsedArguments) -> str:
    lines = ["**Wrong command usage**", f"`{spec.signature}`", "", "Wrong arguments:"]
    for argument in spec.arguments:
        if argument.id not in args.invalid_ids:
            continue
        detail = argument.error_message or argument.description
        entry = f"- **{argument.name.lower()}**"
        lines.append(f"{entry}: {detail}" if detail else entry)
    return "\n".join(lines)


def page_count(total: int, per_page: int) -> int:
    return max((total + per_page - 1) // per_page, 1)


def render_command_list(
    specs: Sequence[CommandSpec],
    *,
    page: int,
    per_page: int,
    prefix: str,
) -> str:
    pages = page_count(len(specs), per_page)
    start = (page - 1) * per_page
    lines = [
        "**Commands:**",
        f"Type {prefix} before a command name to execute it",
        ARGUMENTS_LEGEND,
        "",
    ]
    for spec in specs[start : start + per_page]:
        entry = f"`{spec.signature}`"
        if spec.description:
            entry += f" - {spec.description}"
        lines.append(entry)
    lines.append("")
    lines.append(f"Page {page} out of {pages}")
    return "\n".join(lines)


def _argument_notes(optional: bool, quoted: bool) -> Iterable[str]:
    if optional:
        yield "Optional"
    if quoted:
        yield "Should be in quotes"


def render_inspection(spec: CommandSpec) -> str:
    lines = [f"**{spec.name}**", spec.verbose_description or spec.description]
    if spec.aliases:
        aliases = ", ".join(f"**{alias}**" for alias in spec.aliases)
        lines.extend(["", f"Aliases: {aliases}"])
    lines.extend(["", f"Usage: `{spec.signature}`"])
    if spec.arguments:
        lines.extend(["", "Arguments:"])
        for argument in spec.arguments:
            entry = f"- **{argument.name}**"
            if argument.description:
                entry += f": {argument.description}"
            notes = ", ".join(_argument_notes(argument.optional, argument.quoted))
            if notes:
                entry += f" ({notes})"
            lines.append(entry)
    elif spec.raw_args and spec.raw_args_name:
        lines.extend(["", f"- **{spec.raw_args_name}**: {spec.raw_args_description}"])
    return "\n".join(lines).strip()
