"""Structured trace helpers for backtest runs (loguru + OpenTelemetry API)."""

from __future__ import annotations

import uuid
from contextlib import ExitStack
from typing import Any, Dict, Optional

from loguru import logger
from opentelemetry import metrics, trace

_tracer = trace.get_tracer(__name__)
_meter = metrics.get_meter(__name__)

_run_counter = _meter.create_counter(
    name="backtest_runs_total",
    unit="1",
    description="Number of backtest runs completed",
)


def _span_value(value: Any) -> Any:
    if isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class EngineTrace:
    """
    Per-run diagnostics sink handed to the simulator.

    Binds the loguru logger to the strategy/run identifiers and mirrors every
    event onto an OpenTelemetry span. Use as a context manager to open the span.
    """

    def __init__(
        self,
        strategy_id: str = "-",
        run_id: Optional[str] = None,
        span_name: str = "backtest.run",
    ) -> None:
        self.strategy_id = strategy_id
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.span_name = span_name
        self.events: list[Dict[str, Any]] = []
        self._log = logger.bind(strategy_id=strategy_id, run_id=self.run_id)
        self._stack: ExitStack | None = None
        self._span = None

    def __enter__(self) -> "EngineTrace":
        self._stack = ExitStack()
        self._span = self._stack.enter_context(
            _tracer.start_as_current_span(
                self.span_name,
                attributes={"strategy_id": self.strategy_id, "run_id": self.run_id},
            )
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        stack, self._stack, self._span = self._stack, None, None
        if stack is not None:
            stack.__exit__(exc_type, exc, tb)

    def _record(self, level: str, name: str, attrs: Dict[str, Any]) -> None:
        self.events.append({"event": name, "level": level, **attrs})
        if self._span is not None:
            self._span.add_event(
                name, attributes={k: _span_value(v) for k, v in attrs.items()}
            )
        detail = " ".join(f"{k}={v}" for k, v in attrs.items())
        self._log.log(level, "[backtest] {} {}", name, detail)

    def event(self, name: str, **attrs: Any) -> None:
        self._record("DEBUG", name, attrs)

    def info(self, name: str, **attrs: Any) -> None:
        self._record("INFO", name, attrs)

    def warn(self, name: str, **attrs: Any) -> None:
        self._record("WARNING", name, attrs)

    def names(self) -> list[str]:
        return [e["event"] for e in self.events]


def record_run(attributes: Dict[str, Any]) -> None:
    _run_counter.add(1, attributes={k: _span_value(v) for k, v in attributes.items()})


__all__ = ["EngineTrace", "record_run"]
