"""Package whose submodule reuses a command name from the package itself."""
from __future__ import annotations

from trustwave.commands import Command


class ShuffleCommand(Command):
    name = "shuffle"
