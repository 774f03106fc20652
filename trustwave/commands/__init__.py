"""Command plugin infrastructure for the trustwave CLI."""
from __future__ import annotations

import argparse
import importlib
import inspect
import pkgutil
from pathlib import Path
from typing import Awaitable, Dict, List, Optional, Sequence, Tuple, Type, Union

from ..config import Settings, load_settings
from ..pipeline import close_store, open_store
from ..store import EventStore

CommandResult = Optional[int]
MaybeAwaitable = Union[CommandResult, Awaitable[CommandResult]]


class Command:
    """Base class for CLI subcommands."""

    name: str = ""
    help: str = ""
    aliases: Sequence[str] = ()

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        """Hook for subclasses to define command-specific arguments."""

    @classmethod
    def handle(cls, args: argparse.Namespace) -> MaybeAwaitable:
        """Execute the command using parsed ``argparse`` arguments."""
        raise NotImplementedError("Command subclasses must implement handle()")

    @classmethod
    def attach(cls, subparsers: argparse._SubParsersAction) -> None:
        """Register the command with an ``argparse`` sub-parser collection."""

        if not cls.name:
            raise ValueError("Command subclasses must define a non-empty 'name'")
        parser = subparsers.add_parser(
            cls.name,
            help=cls.help or None,
            description=cls.help or None,
            aliases=list(cls.aliases),
        )
        cls.configure_parser(parser)
        parser.set_defaults(_command_cls=cls)


class SourceCommand(Command):
    """Command reading events from a gateway or a local JSON dump."""

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--settings",
            type=Path,
            default=Path("data/settings.yaml"),
            help="Path to the settings YAML file.",
        )
        source = parser.add_mutually_exclusive_group()
        source.add_argument("--gateway", help="Base URL of the event gateway.")
        source.add_argument(
            "--events",
            type=Path,
            help="JSON file holding an array of raw events to query locally.",
        )
        parser.add_argument(
            "--no-depth1",
            dest="expand_depth1",
            action="store_false",
            help="Only trust direct follows.",
        )

    @classmethod
    def open(cls, args: argparse.Namespace) -> Tuple[Settings, EventStore]:
        settings = load_settings(args.settings)
        return settings, open_store(settings, gateway=args.gateway, events_path=args.events)

    @classmethod
    async def run(cls, args: argparse.Namespace, settings: Settings, store: EventStore) -> CommandResult:
        """Do the command's work against an open store."""
        raise NotImplementedError("SourceCommand subclasses must implement run()")

    @classmethod
    def handle(cls, args: argparse.Namespace) -> MaybeAwaitable:
        async def _runner() -> CommandResult:
            settings, store = cls.open(args)
            try:
                return await cls.run(args, settings, store)
            finally:
                await close_store(store)

        return _runner()


def discover_commands(module: object) -> List[Type[Command]]:
    """Return every named ``Command`` subclass defined on ``module``, sorted by name."""

    found = [
        obj
        for _, obj in inspect.getmembers(module, inspect.isclass)
        if issubclass(obj, Command) and obj is not Command and getattr(obj, "name", "")
    ]
    return sorted(found, key=lambda cls: cls.name)


def load_commands(package_name: str = __name__) -> List[Type[Command]]:
    """Collect commands from ``package_name`` and each of its submodules.

    A command re-exported by several modules is registered once. Two distinct
    classes claiming the same name raise ``ValueError``.
    """

    package = importlib.import_module(package_name)
    modules = [package]
    modules.extend(
        importlib.import_module(f"{package_name}.{info.name}") for info in pkgutil.iter_modules(package.__path__)
    )
    registry: Dict[str, Type[Command]] = {}
    for module in modules:
        for command_type in discover_commands(module):
            claimed = registry.setdefault(command_type.name, command_type)
            if claimed is not command_type:
                raise ValueError(
                    f"Command name {command_type.name!r} is used by both "
                    f"{claimed.__module__}.{claimed.__qualname__} and "
                    f"{command_type.__module__}.{command_type.__qualname__}"
                )
    return [registry[name] for name in sorted(registry)]


__all__ = ["Command", "SourceCommand", "CommandResult", "MaybeAwaitable", "discover_commands", "load_commands"]
