"""Pluggable logging used throughout the library.

The library never writes output on its own: by default every message goes to a
:class:`SilentLogger`. Callers install their own logger with :func:`set_logger`.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Logger",
    "SilentLogger",
    "set_logger",
    "get_logger",
    "errorf",
    "error",
    "warnf",
    "warn",
    "debugf",
    "debug",
    "infof",
    "info",
]


@runtime_checkable
class Logger(Protocol):
    """Interface the library logs through."""

    def errorf(self, fmt: str, *args: Any) -> None: ...

    def error(self, *args: Any) -> None: ...

    def warnf(self, fmt: str, *args: Any) -> None: ...

    def warn(self, *args: Any) -> None: ...

    def debugf(self, fmt: str, *args: Any) -> None: ...

    def debug(self, *args: Any) -> None: ...

    def infof(self, fmt: str, *args: Any) -> None: ...

    def info(self, *args: Any) -> None: ...


class SilentLogger:
    """A logger that writes nothing; the library's default.

    It only counts the messages it has suppressed, in ``suppressed``.
    """

    def __init__(self) -> None:
        self.suppressed = 0

    def errorf(self, fmt: str, *args: Any) -> None:
        self.suppressed += 1

    def error(self, *args: Any) -> None:
        self.suppressed += 1

    def warnf(self, fmt: str, *args: Any) -> None:
        self.suppressed += 1

    def warn(self, *args: Any) -> None:
        self.suppressed += 1

    def debugf(self, fmt: str, *args: Any) -> None:
        self.suppressed += 1

    def debug(self, *args: Any) -> None:
        self.suppressed += 1

    def infof(self, fmt: str, *args: Any) -> None:
        self.suppressed += 1

    def info(self, *args: Any) -> None:
        self.suppressed += 1


_logger: Logger = SilentLogger()


def set_logger(logger: Logger) -> None:
    """Install the logger that all library code writes to."""
    global _logger
    _logger = logger


def get_logger() -> Logger:
    """Return the logger currently in use."""
    return _logger


class _FormattedError(Exception):
    """An error built from a format string; chained to the first error argument."""


_VERB = re.compile(r"%([+#\- 0-9.]*)([a-zA-Z%])")


def _plain(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_plain(item) for item in value) + "]"
    return str(value)


def _quote(value: Any, ascii_only: bool) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_quote(item, ascii_only) for item in value) + "]"
    return json.dumps(str(value), ensure_ascii=ascii_only)


def _format(fmt: str, args: tuple[Any, ...]) -> str:
    remaining = iter(args)

    def substitute(match: re.Match[str]) -> str:
        flags, verb = match.groups()
        if verb == "%":
            return "%"
        try:
            arg = next(remaining)
        except StopIteration:
            return f"%!{verb}(MISSING)"
        if verb == "q":
            return _quote(arg, ascii_only="+" in flags)
        if verb == "T":
            return type(arg).__name__
        return _plain(arg)

    message = _VERB.sub(substitute, fmt)
    extra = [f"{type(a).__name__}={_plain(a)}" for a in remaining]
    if extra:
        message += "%!(EXTRA " + ", ".join(extra) + ")"
    return message


def _wrap(fmt: str, args: tuple[Any, ...]) -> _FormattedError:
    err = _FormattedError(_format(fmt, args))
    err.__cause__ = next((a for a in args if isinstance(a, BaseException)), None)
    return err


def _has_error(args: tuple[Any, ...]) -> bool:
    return any(isinstance(a, BaseException) for a in args)


def errorf(fmt: str, *args: Any) -> None:
    """Format an error message and log it at error level."""
    _logger.error(_wrap(fmt, args))


def error(*args: Any) -> None:
    _logger.error(*args)


def warnf(fmt: str, *args: Any) -> None:
    """Log a formatted warning, wrapping it as an error if any argument is one."""
    if _has_error(args):
        _logger.warn(_wrap(fmt, args))
        return
    _logger.warnf(fmt, *args)


def warn(*args: Any) -> None:
    _logger.warn(*args)


def debugf(fmt: str, *args: Any) -> None:
    """Log a formatted debug message, wrapping it as an error if any argument is one."""
    if _has_error(args):
        _logger.debug(_wrap(fmt, args))
        return
    _logger.debugf(fmt, *args)


def debug(*args: Any) -> None:
    _logger.debug(*args)


def infof(fmt: str, *args: Any) -> None:
    _logger.infof(fmt, *args)


def info(*args: Any) -> None:
    _logger.info(*args)