"""
Platform-agnostic command model and the registry that routes to handlers.

A chat integration turns its own payloads into a `CommandContext`, calls the
registry, and renders the returned `CommandResponse` however the platform
allows.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from torrent_courier.exceptions import CommandNotFoundError

log = logging.getLogger(__name__)


class Capability(enum.Flag):
    """What a command handler supports beyond being invoked by name."""

    BASIC = enum.auto()
    # Has a long-running `on_start` task started with the service.
    INITIALIZABLE = enum.auto()
    # Answers with a form and handles the form's submission.
    MODAL = enum.auto()


@dataclass
class CommandContext:
    """One invocation of a command by a user in a channel."""

    user_id: str
    channel_id: str
    interaction_id: str = ""
    options: dict[str, str] = field(default_factory=dict)

    def option(self, name: str, default: str = "") -> str:
        return self.options.get(name, default).strip()


@dataclass
class FormField:
    custom_id: str
    label: str
    value: str = ""
    placeholder: str = ""
    required: bool = False
    min_length: int = 0
    max_length: int = 0


@dataclass
class Form:
    custom_id: str
    title: str
    fields: list[FormField] = field(default_factory=list)


@dataclass
class CommandResponse:
    content: str = ""
    title: str = ""
    ephemeral: bool = False
    form: Optional[Form] = None


class Command:
    """Base class for command handlers."""

    name: str = ""
    description: str = ""
    capabilities: Capability = Capability.BASIC

    async def handle(self, ctx: CommandContext) -> CommandResponse:
        raise NotImplementedError

    def has_custom_id(self, custom_id: str) -> bool:
        return False

    async def handle_form(self, ctx: CommandContext, custom_id: str) -> CommandResponse:
        raise NotImplementedError

    async def on_start(self, stop_event: asyncio.Event) -> None:
        raise NotImplementedError


class CommandRegistry:
    """
    Routes invocations to command handlers.

    Each handler's `capabilities` are read once, when it is registered, and the
    handler is filed into the matching tables.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or log
        self._commands: dict[str, Command] = {}
        self._form_handlers: dict[str, Command] = {}
        self._initializers: dict[str, Command] = {}

    def register(self, *commands: Command) -> None:
        for command in commands:
            if not command.name:
                raise ValueError(f"{type(command).__name__} has no name.")
            self._commands[command.name] = command
            if Capability.MODAL in command.capabilities:
                self._form_handlers[command.name] = command
            if Capability.INITIALIZABLE in command.capabilities:
                self._initializers[command.name] = command
            self.log.debug(
                f"Registered command '{command.name}' ({command.capabilities})"
            )

    @property
    def names(self) -> list[str]:
        return sorted(self._commands)

    @property
    def form_handlers(self) -> list[str]:
        return sorted(self._form_handlers)

    @property
    def initializers(self) -> list[str]:
        return sorted(self._initializers)

    def get(self, name: str) -> Command:
        try:
            return self._commands[name]
        except KeyError:
            raise CommandNotFoundError(f"Unknown command: {name!r}") from None

    async def dispatch(self, name: str, ctx: CommandContext) -> CommandResponse:
        return await self.get(name).handle(ctx)

    async def dispatch_form(
        self, custom_id: str, ctx: CommandContext
    ) -> CommandResponse:
        """Hands a submitted form to the command that issued it."""
        for command in self._form_handlers.values():
            if command.has_custom_id(custom_id):
                return await command.handle_form(ctx, custom_id)
        raise CommandNotFoundError(f"No command is waiting for form {custom_id!r}")

    def start(self, stop_event: asyncio.Event) -> list[asyncio.Task]:
        """Starts the `on_start` task of every initializable command."""
        return [
            asyncio.create_task(command.on_start(stop_event), name=f"command:{name}")
            for name, command in self._initializers.items()
        ]
