"""
Batch evolution: derive variants from a base strategy, backtest them in
parallel and rank the survivors.

Usage:
    python -m strategy_evolution.evolution --config base.yaml --days 252 --count 10 --seed 7
"""

from __future__ import annotations

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import yaml
from loguru import logger
from pydantic import ValidationError

from strategy_evolution.backtest.engine import backtest
from strategy_evolution.backtest.variants import generate_variants
from strategy_evolution.core.exceptions import ConfigError, MarketDataError
from strategy_evolution.core.models import MarketBar, Strategy
from strategy_evolution.data.sample import generate_sample_data
from strategy_evolution.logging_utils import logging_context, setup_logging
from strategy_evolution.settings import get_engine_settings

DEFAULT_BASE = {
    "id": "base",
    "name": "MA Crossover",
    "type": "base",
    "parameters": {
        "ma_short": 20,
        "ma_long": 50,
        "rsi_threshold": 30,
        "position_size": 0.15,
    },
}


@dataclass(frozen=True)
class EvolutionResult:
    """Evaluated base plus its variants ordered best first."""

    base: Strategy
    ranked: List[Strategy]
    dropped: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def best(self) -> Optional[Strategy]:
        return self.ranked[0] if self.ranked else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base": self.base.model_dump(mode="json"),
            "ranked": [s.model_dump(mode="json") for s in self.ranked],
            "dropped": list(self.dropped),
            "duration_ms": round(self.duration_ms, 3),
        }


def _rank_key(strategy: Strategy):
    m = strategy.metrics
    return (-m.sharpe_ratio, -m.total_return) if m else (float("inf"), float("inf"))


def evaluate_strategy(
    strategy: Strategy,
    bars: Sequence[MarketBar],
    *,
    rng: np.random.Generator | None = None,
) -> Strategy:
    """Backtest `strategy` and return a copy carrying its reported metrics."""
    with logging_context(strategy_id=strategy.id):
        metrics = backtest(strategy, bars, rng=rng)
    return strategy.with_metrics(metrics)


def evolve(
    base: Strategy,
    bars: Sequence[MarketBar],
    *,
    count: int | None = None,
    max_workers: int | None = None,
    seed: int | None = None,
) -> EvolutionResult:
    """
    Generate `count` variants of `base`, evaluate them concurrently and rank
    them by reported Sharpe ratio, then total return.

    Variants whose backtest raises a market-data error are dropped and logged.
    Errors while evaluating the base strategy propagate.
    """
    cfg = get_engine_settings()
    count = cfg.default_variant_count if count is None else int(count)
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    workers = max(1, int(max_workers or cfg.max_workers))

    seeds = np.random.SeedSequence(seed).spawn(count + 2)
    variant_rng = np.random.default_rng(seeds[0])
    started = perf_counter()

    evaluated_base = evaluate_strategy(base, bars, rng=np.random.default_rng(seeds[1]))
    variants = generate_variants(base, count, rng=variant_rng)
    logger.info(
        "[evolution] base={} variants={} workers={}", base.id, len(variants), workers
    )

    ranked: List[Strategy] = []
    dropped: List[str] = []
    if variants:
        with ThreadPoolExecutor(max_workers=min(workers, len(variants))) as executor:
            future_map = {
                executor.submit(
                    evaluate_strategy,
                    variant,
                    bars,
                    rng=np.random.default_rng(seeds[idx + 2]),
                ): variant
                for idx, variant in enumerate(variants)
            }
            for future in as_completed(future_map):
                variant = future_map[future]
                try:
                    ranked.append(future.result())
                except MarketDataError as exc:
                    logger.warning(
                        "[evolution] variant={} dropped: {}", variant.id, exc
                    )
                    dropped.append(variant.id)

    ranked.sort(key=_rank_key)
    duration_ms = (perf_counter() - started) * 1000.0
    best = ranked[0] if ranked else None
    logger.info(
        "[evolution] completed base={} evaluated={} dropped={} best={} sharpe={}",
        base.id,
        len(ranked),
        len(dropped),
        best.id if best else None,
        best.metrics.sharpe_ratio if best else None,
    )
    return EvolutionResult(
        base=evaluated_base, ranked=ranked, dropped=dropped, duration_ms=duration_ms
    )


def _load_config(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read evolution config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Evolution config must be a mapping")
    return data


def load_base_strategy(path: Path | str) -> Strategy:
    """
    Read a base strategy from YAML.

    The file is either the strategy mapping itself or a mapping with a
    ``strategy`` key holding it.
    """
    cfg = _load_config(Path(path))
    payload = cfg.get("strategy", cfg)
    if not isinstance(payload, dict):
        raise ConfigError("'strategy' must be a mapping")
    try:
        return Strategy.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid base strategy in {path}: {exc}") from exc


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Evolve strategy variants against synthetic daily bars"
    )
    parser.add_argument("--config", type=Path, help="YAML file with the base strategy")
    parser.add_argument("--days", type=int, default=None, help="Sample bars to generate")
    parser.add_argument("--count", type=int, default=None, help="Variants to generate")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logging(force=True, stream=sys.stderr)

    cfg: Dict[str, Any] = {}
    if args.config:
        cfg = _load_config(args.config)
        base = load_base_strategy(args.config)
    else:
        base = Strategy.model_validate(DEFAULT_BASE)

    days = args.days if args.days is not None else int(cfg.get("days", 252))
    count = args.count if args.count is not None else cfg.get("count")
    seed = args.seed if args.seed is not None else cfg.get("seed")

    bars = generate_sample_data(days, rng=np.random.default_rng(seed))
    result = evolve(
        base, bars, count=count, max_workers=cfg.get("max_workers"), seed=seed
    )
    print(json.dumps(result.to_dict(), default=str, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
