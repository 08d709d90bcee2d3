"""
Scheduling Weights Configuration

The parameters handed to the ``fsrs`` scheduler, plus the steps and interval
factors the engine applies on top of it. They are data, not code: the engine
receives a SchedulingWeights instance on every call instead of reading
module-level constants, so alternative weight sets (per user, per experiment,
or fixed test fixtures) can be swapped in freely.

Weight vector layout (the fsrs package's parameter vector, FSRS-6 shape):
    w[0..3]    initial stability S0 for Again, Hard, Good, Easy (days)
    w[4], w[5] initial difficulty
    w[6], w[7] difficulty step and mean reversion
    w[8..10]   recall stability growth
    w[11..14]  lapse stability
    w[15]      Hard penalty on stability growth (0 < w15 <= 1)
    w[16]      Easy bonus on stability growth (w16 >= 1)
    w[17..19]  same-day (short-term) stability
    w[20]      forgetting-curve decay

Usage:
    from flashdeck.config import load_scheduling_weights

    weights = load_scheduling_weights()
    updated, log = schedule(card, Rating.GOOD, now, weights)

YAML (config/default.yaml):
    scheduling:
      desired_retention: 0.9
      maximum_interval: 36500
      learning_steps: [1, 10]
      w: [...]   # optional, defaults to the fsrs package's parameters
"""

import logging
from typing import Any, Optional

from fsrs import Scheduler as FSRSScheduler
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from flashdeck.config.settings import yaml_config

logger = logging.getLogger(__name__)

_DEFAULT_W: tuple[float, ...] = tuple(FSRSScheduler().parameters)
WEIGHT_COUNT = len(_DEFAULT_W)


class SchedulingWeights(BaseModel):
    """
    Validated, immutable weight set for the scheduling engine.

    Validators enforce the orderings the engine's guarantees depend on:
    initial stability strictly increases Again < Hard < Good < Easy, the
    Hard penalty shrinks growth and the Easy bonus enlarges it, and
    interval factors shrink (Hard) or expand (Easy) intervals. The fsrs
    package then applies its own parameter bounds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    w: tuple[float, ...] = Field(
        default=_DEFAULT_W, description="fsrs parameter vector"
    )
    desired_retention: float = Field(
        0.9, ge=0.7, le=0.99, description="Target recall probability at due time"
    )
    maximum_interval: int = Field(36500, ge=1, description="Max interval in days")
    learning_steps: tuple[float, ...] = Field(
        (1.0, 10.0), description="Learning steps in minutes"
    )
    relearning_steps: tuple[float, ...] = Field(
        (10.0,), description="Relearning steps in minutes"
    )
    hard_interval_factor: float = Field(0.8, gt=0.0, le=1.0)
    easy_interval_factor: float = Field(1.3, ge=1.0)
    stability_floor: float = Field(
        0.01, gt=0.0, description="Lowest stability estimated for imported cards"
    )

    @field_validator("w")
    @classmethod
    def _check_weights(cls, w: tuple[float, ...]) -> tuple[float, ...]:
        if len(w) != WEIGHT_COUNT:
            raise ValueError(f"expected {WEIGHT_COUNT} weights, got {len(w)}")
        s0 = w[0:4]
        if s0[0] <= 0:
            raise ValueError("initial stability must be positive")
        if any(a >= b for a, b in zip(s0, s0[1:])):
            raise ValueError("initial stability must increase Again < Hard < Good < Easy")
        if w[5] < 0 or w[6] < 0:
            raise ValueError("difficulty weights w5 and w6 must be non-negative")
        if not 0.0 <= w[7] <= 1.0:
            raise ValueError("mean-reversion weight w7 must be within [0, 1]")
        if w[10] <= 0:
            raise ValueError("recall sensitivity w10 must be positive")
        if w[11] <= 0:
            raise ValueError("lapse scale w11 must be positive")
        if not 0.0 < w[15] <= 1.0:
            raise ValueError("hard penalty w15 must be within (0, 1]")
        if w[16] < 1.0:
            raise ValueError("easy bonus w16 must be >= 1")
        # Raises ValueError for parameters outside the package's bounds
        FSRSScheduler(parameters=w)
        return w

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def _check_steps(cls, steps: tuple[float, ...]) -> tuple[float, ...]:
        if not steps:
            raise ValueError("at least one step is required")
        if any(step <= 0 for step in steps):
            raise ValueError("steps must be positive minutes")
        return steps

    @model_validator(mode="after")
    def _check_steps_fit_in_a_day(self) -> "SchedulingWeights":
        if self.learning_steps[0] > 24 * 60 or self.relearning_steps[0] > 24 * 60:
            raise ValueError("the first (re)learning step must not exceed one day")
        return self


DEFAULT_WEIGHTS = SchedulingWeights()


def load_scheduling_weights(config: Optional[dict[str, Any]] = None) -> SchedulingWeights:
    """
    Build SchedulingWeights from the ``scheduling`` section of the YAML config.

    Args:
        config: Parsed YAML config (defaults to config/default.yaml)

    Returns:
        Validated weights; built-in defaults when the section is absent.
    """
    source = yaml_config if config is None else config
    section = source.get("scheduling") or {}
    if not section:
        return DEFAULT_WEIGHTS

    weights = SchedulingWeights.model_validate(section)
    logger.debug(
        f"Loaded scheduling weights (retention={weights.desired_retention}, "
        f"max_interval={weights.maximum_interval})"
    )
    return weights
