"""A registry of named entity factories and their configuration options."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

from witness.option import ConfigOption, OptionKind

__all__ = ["Entry", "Registry", "set_options"]

T = TypeVar("T")


@dataclass
class Entry(Generic[T]):
    """A registered entity: its name, factory and configurable options."""

    name: str
    factory: Callable[[], T]
    options: list[ConfigOption] = field(default_factory=list)


class Registry(Generic[T]):
    """Named factories with options discoverable at run time."""

    def __init__(self) -> None:
        self._entries: dict[str, Entry[T]] = {}

    def register(self, name: str, factory: Callable[[], T], *args: ConfigOption) -> Entry[T]:
        """Add an entry for ``name``, replacing any existing one, and return it."""
        entry = Entry(name=name, factory=factory, options=list(args))
        self._entries[name] = entry
        return entry

    def options(self, name: str) -> list[ConfigOption] | None:
        """Return the options of the named entry, or None if it is unknown."""
        entry = self._entries.get(name)
        return None if entry is None else entry.options

    def entry(self, name: str) -> Entry[T] | None:
        """Return the named entry, or None if it is unknown."""
        return self._entries.get(name)

    def all_entries(self) -> list[Entry[T]]:
        return list(self._entries.values())

    def new_entity(self, name: str, *args: Callable[[T], T]) -> T:
        """Create the named entity with defaults set, then apply ``args`` setters.

        Raises LookupError if no entry has that name.
        """
        entry = self.entry(name)
        if entry is None:
            raise LookupError(f"could not find entry with name {name}")
        entity = self.set_default_vals(entry.factory(), entry.options)
        return set_options(entity, *args)

    def set_default_vals(self, entity: T, opts: list[ConfigOption]) -> T:
        """Apply every option's default value to ``entity`` through its setter."""
        for opt in opts:
            if not isinstance(opt, ConfigOption):
                continue
            default = opt.default_val
            if opt.kind is OptionKind.STRING_SLICE:
                default = list(default)
            entity = opt.setter(entity, default)
        return entity


def set_options(entity: T, *args: Callable[[T], T]) -> T:
    """Apply each setter in turn; a setter signals failure by raising."""
    for setter in args:
        entity = setter(entity)
    return entity