"""Configuration package."""

from flashdeck.config.scheduling import (
    DEFAULT_WEIGHTS,
    SchedulingWeights,
    load_scheduling_weights,
)
from flashdeck.config.settings import (
    Settings,
    get_settings,
    load_yaml_config,
    settings,
    yaml_config,
)

__all__ = [
    # Scheduling weights
    "DEFAULT_WEIGHTS",
    "SchedulingWeights",
    "load_scheduling_weights",
    # Application settings
    "Settings",
    "get_settings",
    "load_yaml_config",
    "settings",
    "yaml_config",
]
