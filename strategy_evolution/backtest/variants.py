from __future__ import annotations

import uuid
from typing import List

import numpy as np
from loguru import logger

from strategy_evolution.core.models import Strategy, StrategyParameters, StrategyType

# Perturbation bounds applied to each variant
POSITION_SIZE_MULTIPLIER = (0.8, 1.4)
POSITION_SIZE_BOUNDS = (0.10, 0.20)
MA_SHORT_JITTER = 5.0
MA_SHORT_FLOOR = 10
MA_LONG_JITTER = 10.0
MA_LONG_FLOOR = 30
RSI_JITTER = 5.0
RSI_THRESHOLD_BOUNDS = (25.0, 35.0)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _perturb(base: StrategyParameters, rng: np.random.Generator) -> StrategyParameters:
    size = base.position_size * rng.uniform(*POSITION_SIZE_MULTIPLIER)
    ma_short = base.ma_short + rng.uniform(-MA_SHORT_JITTER, MA_SHORT_JITTER)
    ma_long = base.ma_long + rng.uniform(-MA_LONG_JITTER, MA_LONG_JITTER)
    rsi_threshold = base.rsi_threshold + rng.uniform(-RSI_JITTER, RSI_JITTER)
    return StrategyParameters(
        # bar periods are whole numbers
        ma_short=max(MA_SHORT_FLOOR, int(round(ma_short))),
        ma_long=max(MA_LONG_FLOOR, int(round(ma_long))),
        rsi_threshold=_clamp(rsi_threshold, *RSI_THRESHOLD_BOUNDS),
        position_size=_clamp(size, *POSITION_SIZE_BOUNDS),
        stop_loss=base.stop_loss,
        take_profit=base.take_profit,
    )


def generate_variants(
    base: Strategy,
    count: int = 10,
    *,
    rng: np.random.Generator | None = None,
) -> List[Strategy]:
    """
    Derive `count` randomized children of `base`.

    Each child is an `optimized` strategy with a fresh id, `parent_id` set to
    the base id and the name "<base name> Variant <n>" (1-based). The ordering
    of `ma_short` and `ma_long` is not enforced.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    rng = rng if rng is not None else np.random.default_rng()

    variants: List[Strategy] = []
    for i in range(count):
        variants.append(
            Strategy(
                id=f"strategy_{uuid.uuid4().hex[:16]}",
                user_id=base.user_id,
                name=f"{base.name} Variant {i + 1}",
                type=StrategyType.OPTIMIZED,
                parameters=_perturb(base.parameters, rng),
                parent_id=base.id,
            )
        )

    logger.debug("[variants] generated {} variants from base={}", len(variants), base.id)
    return variants


__all__ = ["generate_variants"]
