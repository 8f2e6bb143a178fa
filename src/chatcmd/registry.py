from __future__ import annotations

from collections.abc import Iterable

from .config import ConfigError
from .context import Command, CommandFactory
from .logging import get_logger
from .matcher import CommandMatcher
from .model import CommandSpec, CommandSpecError

logger = get_logger(__name__)


class RegistryError(ConfigError):
    pass


class CommandRegistry:
    """Name/alias table of command specs and their body factories.

    Built single-threaded at startup, then sealed and read concurrently.
    """

    def __init__(self) -> None:
        self._specs: list[CommandSpec] = []
        self._by_name: dict[str, CommandSpec] = {}
        self._factories: dict[str, CommandFactory] = {}
        self._matcher: CommandMatcher | None = None
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(self, spec: CommandSpec, factory: CommandFactory) -> None:
        self.register_all([(spec, factory)])

    def register_all(
        self, entries: Iterable[tuple[CommandSpec, CommandFactory]]
    ) -> None:
        """Register a batch of commands, or none of them.

        Every name in the batch is checked against the registry and the rest
        of the batch before anything is stored.
        """
        batch = list(entries)
        if self._sealed:
            names = ", ".join(repr(spec.name) for spec, _ in batch)
            raise RegistryError(
                f"cannot register {names}: the registry is already sealed"
            )
        claimed: dict[str, CommandSpec] = {}
        for spec, _ in batch:
            for key in (name.lower() for name in spec.names):
                existing = self._by_name.get(key) or claimed.get(key)
                if existing is not None:
                    raise CommandSpecError(
                        f"name {key!r} of command {spec.name!r} is already used by "
                        f"{existing.name!r}"
                    )
                claimed[key] = spec
        for spec, factory in batch:
            self._specs.append(spec)
            for name in spec.names:
                self._by_name[name.lower()] = spec
            self._factories[spec.name.lower()] = factory
            logger.debug(
                "registry.registered", command=spec.name, aliases=spec.aliases
            )
        self._matcher = None

    def seal(self) -> None:
        self._matcher = CommandMatcher(self._by_name)
        self._sealed = True
        logger.info("registry.sealed", commands=len(self._specs))

    @property
    def matcher(self) -> CommandMatcher:
        if self._matcher is None:
            self._matcher = CommandMatcher(self._by_name)
        return self._matcher

    def names(self) -> tuple[str, ...]:
        return tuple(self._by_name)

    def specs(self) -> tuple[CommandSpec, ...]:
        return tuple(self._specs)

    def listed(self) -> tuple[CommandSpec, ...]:
        return tuple(spec for spec in self._specs if spec.listed)

    def spec_for(self, name: str) -> CommandSpec | None:
        return self._by_name.get(name.lower())

    def create(self, name: str) -> Command | None:
        spec = self.spec_for(name)
        if spec is None:
            return None
        return self._factories[spec.name.lower()]()
