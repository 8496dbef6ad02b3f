"""Typed configuration options that registry entries expose."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

__all__ = [
    "OptionKind",
    "ConfigOption",
    "int_config_option",
    "string_config_option",
    "string_slice_config_option",
    "bool_config_option",
    "duration_config_option",
]

T = TypeVar("T")
V = TypeVar("V")


class OptionKind(enum.Enum):
    """The type of value an option carries."""

    INT = "int"
    STRING = "string"
    STRING_SLICE = "string_slice"
    BOOL = "bool"
    DURATION = "duration"


@dataclass
class ConfigOption(Generic[T, V]):
    """A named option with a default and a setter applying it to an entity.

    The setter returns the updated entity and raises on invalid values.
    """

    base_name: str
    description: str
    default_val: V
    setter: Callable[[T, V], T]
    kind: OptionKind
    prefix: str = ""

    @property
    def name(self) -> str:
        """The option name, prefixed with ``prefix-`` when a prefix is set."""
        if not self.prefix:
            return self.base_name
        return f"{self.prefix}-{self.base_name}"

    def set_prefix(self, prefix: str) -> None:
        self.prefix = prefix


def int_config_option(
    name: str, description: str, default_val: int, setter: Callable[[T, int], T]
) -> ConfigOption[T, int]:
    return ConfigOption(name, description, default_val, setter, OptionKind.INT)


def string_config_option(
    name: str, description: str, default_val: str, setter: Callable[[T, str], T]
) -> ConfigOption[T, str]:
    return ConfigOption(name, description, default_val, setter, OptionKind.STRING)


def string_slice_config_option(
    name: str,
    description: str,
    default_val: list[str],
    setter: Callable[[T, list[str]], T],
) -> ConfigOption[T, list[str]]:
    return ConfigOption(
        name, description, default_val, setter, OptionKind.STRING_SLICE
    )


def bool_config_option(
    name: str, description: str, default_val: bool, setter: Callable[[T, bool], T]
) -> ConfigOption[T, bool]:
    return ConfigOption(name, description, default_val, setter, OptionKind.BOOL)


def duration_config_option(
    name: str,
    description: str,
    default_val: datetime.timedelta,
    setter: Callable[[T, datetime.timedelta], T],
) -> ConfigOption[T, datetime.timedelta]:
    return ConfigOption(name, description, default_val, setter, OptionKind.DURATION)