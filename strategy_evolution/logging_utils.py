"""
Loguru setup for the engine and its tests.

Records carry ``run_id``, ``strategy_id``, ``environment`` and
``service_version`` extras, are written to a console stream and are forwarded
into stdlib ``logging`` so that handlers attached to the root logger (pytest's
caplog, Sentry's LoggingIntegration) see them too.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO, Union

from loguru import logger

from strategy_evolution import __version__

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{line} | "
    "env={extra[environment]} run={extra[run_id]} strategy={extra[strategy_id]} | "
    "{message}"
)

_DEFAULT_EXTRA: Dict[str, str] = {
    "run_id": "-",
    "strategy_id": "-",
    "environment": "local",
    "service_version": __version__,
}

_context: Dict[str, ContextVar[str]] = {
    key: ContextVar(f"strategy_evolution_{key}", default=value)
    for key, value in _DEFAULT_EXTRA.items()
}

_sink_ids: list[int] = []


def _patch_extra(record: Dict[str, Any]) -> None:
    # bound and contextualized values win over the context defaults
    for key, var in _context.items():
        record["extra"].setdefault(key, var.get())


def _forward_to_stdlib(message) -> None:
    record = message.record
    exc = record["exception"]
    std_logger = logging.getLogger(record["name"] or "strategy_evolution")
    std_record = std_logger.makeRecord(
        std_logger.name,
        record["level"].no,
        record["file"].path,
        record["line"],
        record["message"],
        (),
        (exc.type, exc.value, exc.traceback) if exc else None,
        func=record["function"],
        extra=dict(record["extra"]),
    )
    std_logger.handle(std_record)


def _resolve_level(level: Optional[str], env_var: str) -> str:
    return (level or os.getenv(env_var) or "INFO").upper()


def setup_logging(
    *,
    force: bool = False,
    level: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Install the console sink and the stdlib bridge.

    Safe to call repeatedly; later calls are no-ops unless ``force`` is set.
    The level comes from ``level``, then ``LOG_LEVEL``, then INFO.
    """
    if _sink_ids and not force:
        return

    log_level = _resolve_level(level, "LOG_LEVEL")
    environment = os.getenv("ENV", "local")

    logger.remove()
    _sink_ids.clear()
    _context["environment"].set(environment)
    logger.configure(
        extra={**_DEFAULT_EXTRA, "environment": environment},
        patcher=_patch_extra,
    )

    _sink_ids.append(
        logger.add(
            stream or sys.stdout,
            level=log_level,
            format=LOG_FORMAT,
            backtrace=False,
            diagnose=False,
        )
    )
    _sink_ids.append(logger.add(_forward_to_stdlib, level=log_level, format="{message}"))
    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))


def setup_test_logging(
    path: Optional[Union[str, PathLike]] = None,
    *,
    level: Optional[str] = None,
    filename: str = "pytest.log",
) -> Optional[Path]:
    """
    Reset logging for a test session and optionally mirror it to a file.

    ``path`` may be a log file or a directory, in which case ``filename`` is
    created inside it. Returns the file written to, if any.
    """
    log_level = _resolve_level(level, "PYTEST_LOGLEVEL")
    setup_logging(force=True, level=log_level)
    if path is None:
        return None

    target = Path(path)
    if target.is_dir() or target.suffix != ".log":
        target.mkdir(parents=True, exist_ok=True)
        target = target / filename
    else:
        target.parent.mkdir(parents=True, exist_ok=True)

    _sink_ids.append(
        logger.add(str(target), level=log_level, format=LOG_FORMAT, diagnose=False)
    )
    return target


@contextmanager
def logging_context(**values: Optional[str]) -> Iterator[None]:
    """Attach identifiers such as ``run_id`` or ``strategy_id`` to every record in the block."""
    known = {k: (v or "-") for k, v in values.items() if k in _context}
    tokens = [(_context[k], _context[k].set(v)) for k, v in known.items()]
    try:
        with logger.contextualize(**known):
            yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


__all__ = ["LOG_FORMAT", "logging_context", "setup_logging", "setup_test_logging"]
