from __future__ import annotations

from trustwave.commands import Command


class AnotherShuffleCommand(Command):
    name = "shuffle"
