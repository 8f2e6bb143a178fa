"""Built-in `command list` and `inspect command` commands."""

from __future__ import annotations

from .arguments import ParsedArguments
from .context import CommandContext, CommandFactory, CommandResult
from .logging import get_logger
from .model import ArgumentSpec, CommandSpec, Custom, Number
from .registry import CommandRegistry
from .render import ARGUMENTS_LEGEND, page_count, render_command_list, render_inspection

logger = get_logger(__name__)

PER_PAGE = 7
PAGE_ARG = 0
COMMAND_NAME_ARG = 0


def _valid_page(value: float) -> bool:
    return value >= 1 and value.is_integer()


COMMAND_LIST = CommandSpec(
    names=("command list", "commands", "cmds", "help"),
    description="Displays list of commands",
    verbose_description="Displays list of commands\n" + ARGUMENTS_LEGEND,
    list_type="unlisted",
    arguments=(
        ArgumentSpec(
            id=PAGE_ARG,
            name="page",
            kind=Number(checks=(_valid_page,)),
            description="Page number",
            optional=True,
            default_number=1.0,
            error_message="Page number must be a positive whole number",
        ),
    ),
)

INSPECT_COMMAND = CommandSpec(
    names=("inspect command", "inspect"),
    description="Shows information about a command",
    arguments=(
        ArgumentSpec(
            id=COMMAND_NAME_ARG,
            name="Command name",
            kind=Custom(),
            description="Name of the command you want to inspect",
            optional=True,
            default_text="inspect command",
        ),
    ),
)


class CommandListCommand:
    async def execute(
        self, ctx: CommandContext, args: ParsedArguments
    ) -> CommandResult:
        specs = ctx.registry.listed()
        page = int(args.number(PAGE_ARG))
        pages = page_count(len(specs), PER_PAGE)
        if page > pages:
            noun = "page" if pages == 1 else "pages"
            return CommandResult(text=f"There's a total of {pages} {noun}")
        logger.debug("builtin.command_list", page=page, pages=pages)
        return CommandResult(
            text=render_command_list(
                specs, page=page, per_page=PER_PAGE, prefix=ctx.prefix
            )
        )

    def choose_span(
        self, ctx: CommandContext, remaining: str, argument_id: int
    ) -> int:
        return 0


class InspectCommand:
    async def execute(
        self, ctx: CommandContext, args: ParsedArguments
    ) -> CommandResult:
        name = args.text(COMMAND_NAME_ARG) or ""
        spec = ctx.registry.spec_for(name)
        if spec is None:
            logger.debug("builtin.inspect_unknown", name=name)
            return CommandResult(text=f"{name} wasn't found.")
        return CommandResult(text=render_inspection(spec))

    def choose_span(
        self, ctx: CommandContext, remaining: str, argument_id: int
    ) -> int:
        """Consume the longest registered name that starts `remaining`.

        A name only counts when it ends the text or is followed by whitespace.
        """
        if argument_id != COMMAND_NAME_ARG:
            return 0
        best = 0
        for name in ctx.registry.names():
            size = len(name)
            if size <= best or remaining[:size].lower() != name:
                continue
            if size == len(remaining) or remaining[size].isspace():
                best = size
        return best


def register_builtins(
    registry: CommandRegistry, *, command_list: bool, inspect: bool
) -> None:
    entries: list[tuple[CommandSpec, CommandFactory]] = []
    if command_list:
        entries.append((COMMAND_LIST, CommandListCommand))
    if inspect:
        entries.append((INSPECT_COMMAND, InspectCommand))
    registry.register_all(entries)
