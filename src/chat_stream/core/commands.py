"""
Local slash-command handling and palette building.

Directives such as /help, /clear and /cost are resolved on the client without
touching the network. Every other input (including built-in commands the
client cannot resolve itself) goes to the backend as an ordinary message.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from chat_stream.core.constants import BUILT_IN_COMMANDS, COST_MESSAGE, HELP_MESSAGE, PALETTE_LIMIT
from chat_stream.models.api_models import FileNode, PaletteItem, SkillEntry


@dataclass(frozen=True, slots=True)
class DirectiveResult:
    """Outcome of a locally resolved directive.

    Attributes:
        clear_messages: Empty the conversation before appending
        reply: Assistant-role content to append (None for no reply)
    """

    clear_messages: bool = False
    reply: str | None = None


def _help() -> DirectiveResult:
    return DirectiveResult(reply=HELP_MESSAGE)


def _clear() -> DirectiveResult:
    return DirectiveResult(clear_messages=True)


def _cost() -> DirectiveResult:
    return DirectiveResult(reply=COST_MESSAGE)


_RESOLVERS: dict[str, Callable[[], DirectiveResult]] = {
    "help": _help,
    "clear": _clear,
    "cost": _cost,
}

#: Built-in commands flagged ``local``, keyed by their slash form
LOCAL_DIRECTIVES: dict[str, Callable[[], DirectiveResult]] = {
    cmd.value: _RESOLVERS[cmd.label] for cmd in BUILT_IN_COMMANDS if cmd.local
}


def resolve_directive(content: str) -> DirectiveResult | None:
    """Resolve input as a local directive.

    Args:
        content: Trimmed user input

    Returns:
        DirectiveResult if the input is a local directive, otherwise None
    """
    handler = LOCAL_DIRECTIVES.get(content)
    return handler() if handler else None


def build_command_palette(query: str, skills: Iterable[SkillEntry] = ()) -> list[PaletteItem]:
    """Merge built-in commands with enabled skills matching ``query``.

    Matching is a case-insensitive substring test on the name. Built-ins come
    first; the result is capped at PALETTE_LIMIT.
    """
    needle = query.lower()
    items = [
        PaletteItem(label=cmd.label, value=cmd.value, description=cmd.description, built_in=True)
        for cmd in BUILT_IN_COMMANDS
        if needle in cmd.label.lower()
    ]
    items.extend(
        PaletteItem(label=skill.name, value=f"/{skill.name}", description=skill.description)
        for skill in skills
        if skill.enabled and needle in skill.name.lower()
    )
    return items[:PALETTE_LIMIT]


def flatten_file_tree(nodes: Iterable[FileNode], limit: int = PALETTE_LIMIT) -> list[PaletteItem]:
    """Flatten a file tree depth-first into mention items."""
    items: list[PaletteItem] = []

    def walk(level: Iterable[FileNode]) -> None:
        for node in level:
            items.append(PaletteItem(label=node.name, value=node.path))
            if node.children:
                walk(node.children)

    walk(nodes)
    return items[:limit]
