"""Command-line logging options and process-wide logging setup."""

from __future__ import annotations

import argparse
import json
import logging
import os
import platform
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

__all__ = [
    "TRACE",
    "OFF",
    "LogFormat",
    "LogOptions",
    "parse_log_options",
]

TRACE = 5
OFF = logging.CRITICAL + 10
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(OFF, "OFF")

_APP_TARGETS = ("neuralzkp",)

_LEVEL_NAMES = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "off": OFF,
    "5": TRACE,
    "4": logging.DEBUG,
    "3": logging.INFO,
    "2": logging.WARNING,
    "1": logging.ERROR,
    "0": OFF,
}


def _parse_level(text: str) -> int:
    try:
        return _LEVEL_NAMES[text.strip().lower()]
    except KeyError:
        raise ValueError(f"invalid level: {text!r}") from None


def _parse_targets(text: str) -> tuple[int | None, dict[str, int]]:
    """Parse ``target=level`` directives separated by commas.

    A bare level sets the default; a bare target enables every level for it.
    """
    default: int | None = None
    targets: dict[str, int] = {}
    for directive in (part.strip() for part in text.split(",")):
        if not directive:
            continue
        if "=" in directive:
            target, level = directive.split("=", 1)
            target = target.strip().replace("::", ".")
            if not target:
                raise ValueError(f"missing target in directive {directive!r}")
            targets[target] = _parse_level(level)
        elif directive.lower() in _LEVEL_NAMES:
            default = _parse_level(directive)
        else:
            targets[directive.replace("::", ".")] = TRACE
    return default, targets


def _verbosity(verbose: int) -> tuple[int, int]:
    """Levels for (all loggers, application loggers) at a verbosity count."""
    match verbose:
        case 0:
            return logging.INFO, logging.INFO
        case 1:
            return logging.INFO, logging.DEBUG
        case 2:
            return logging.INFO, TRACE
        case 3:
            return logging.DEBUG, TRACE
        case _:
            return TRACE, TRACE


class _TargetFilter(logging.Filter):
    """Lets a record through if its level reaches the level of its best-matching target."""

    def __init__(self, default: int, targets: dict[str, int]) -> None:
        super().__init__()
        self.default = default
        self.targets = dict(targets)

    def level_for(self, name: str) -> int:
        matches = [
            target
            for target in self.targets
            if name == target or name.startswith(target + ".")
        ]
        if not matches:
            return self.default
        return self.targets[max(matches, key=len)]

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level_for(record.name)


class _CompactFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        uptime = record.relativeCreated / 1000.0
        return f"{uptime:>12.6f}s {record.levelname:>5} {record.name}: {record.getMessage()}"


class _PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        return (
            f"  {stamp} {record.levelname:>5} {record.name}: {record.getMessage()}\n"
            f"    at {record.pathname}:{record.lineno}\n"
        )


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        return json.dumps(
            {
                "timestamp": stamp,
                "level": record.levelname,
                "target": record.name,
                "fields": {"message": record.getMessage()},
            }
        )


class LogFormat(Enum):
    """Output format of log events."""

    COMPACT = "compact"
    PRETTY = "pretty"
    JSON = "json"

    @classmethod
    def parse(cls, text: str) -> LogFormat:
        """Parse one of ``compact``, ``pretty`` or ``json``."""
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Invalid log format: {text}") from None

    def formatter(self) -> logging.Formatter:
        match self:
            case LogFormat.COMPACT:
                return _CompactFormatter()
            case LogFormat.PRETTY:
                return _PrettyFormatter()
            case LogFormat.JSON:
                return _JsonFormatter()
        raise AssertionError(self)


class _AppHandler(logging.StreamHandler):
    """The stderr handler installed by :meth:`LogOptions.init`."""


@dataclass
class LogOptions:
    """Verbosity, target filter and output format for logging."""

    verbose: int = 0
    log_filter: str = ""
    log_format: LogFormat = field(default=LogFormat.COMPACT)

    def __post_init__(self) -> None:
        if isinstance(self.log_format, str):
            self.log_format = LogFormat.parse(self.log_format)

    def init(self) -> logging.Handler:
        """Install a stderr handler on the root logger and return it.

        Raises ``ValueError`` for a malformed log filter and ``RuntimeError``
        if logging was already initialized this way.
        """
        all_level, app_level = _verbosity(self.verbose)
        targets = {name: app_level for name in _APP_TARGETS}
        if self.log_filter:
            try:
                # A default level in the filter does not override the verbosity default.
                _, extra = _parse_targets(self.log_filter)
            except ValueError as exc:
                raise ValueError(f"Error parsing log-filter: {exc}") from exc
            targets.update(extra)

        root = logging.getLogger()
        if any(isinstance(handler, _AppHandler) for handler in root.handlers):
            raise RuntimeError("logging has already been initialized")

        handler = _AppHandler(sys.stderr)
        handler.setFormatter(self.log_format.formatter())
        handler.addFilter(_TargetFilter(all_level, targets))
        root.addHandler(handler)
        root.setLevel(min([all_level, *targets.values()]))

        logging.getLogger(_APP_TARGETS[0]).info(
            "%s (host=%s, pid=%d)", _APP_TARGETS[0], platform.machine(), os.getpid()
        )
        return handler


def parse_log_options(argv: Sequence[str] | None = None) -> LogOptions:
    """Read logging options from ``argv``, ignoring arguments meant for others.

    ``--log-filter`` and ``--log-format`` default to the ``LOG_FILTER`` and
    ``LOG_FORMAT`` environment variables.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("--log-filter", default=os.environ.get("LOG_FILTER", ""))
    parser.add_argument("--log-format", default=os.environ.get("LOG_FORMAT", "compact"))
    namespace, _ = parser.parse_known_args(argv)
    return LogOptions(
        verbose=namespace.verbose,
        log_filter=namespace.log_filter,
        log_format=LogFormat.parse(namespace.log_format),
    )