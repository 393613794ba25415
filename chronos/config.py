# chronos/config.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import dataclasses
from dataclasses import dataclass
from typing import Any, Optional

from chronos.core.errors import InvalidArgumentError
from chronos.core.validation import require_non_negative, require_positive


@dataclass(frozen=True)
class ChronosConfig:
    """
    Tunables shared by the scheduler, timers and default tick source.

    :param jitter_tolerance: Seconds below the earliest trigger time at which a
        scheduler pass is entered, absorbing tick-granularity jitter.
    :param tick_callback_interval: Minimum seconds between two rounds of timer
        tick callbacks, regardless of tick frequency.
    :param heartbeat_interval: Period of the threaded default tick source.
    :param max_workers: Thread pool size for the default dispatcher; None lets
        ``concurrent.futures`` decide.
    :param thread_name_prefix: Prefix for worker and heartbeat thread names.
    """

    jitter_tolerance: float = 0.016
    tick_callback_interval: float = 0.05
    heartbeat_interval: float = 1.0 / 60.0
    max_workers: Optional[int] = None
    thread_name_prefix: str = "chronos"

    def __post_init__(self) -> None:
        require_non_negative(self.jitter_tolerance, "jitter_tolerance")
        require_non_negative(self.tick_callback_interval, "tick_callback_interval")
        require_positive(self.heartbeat_interval, "heartbeat_interval")
        if self.max_workers is not None:
            if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int) or self.max_workers < 1:
                raise InvalidArgumentError(
                    "max_workers must be a positive integer", {"argument": "max_workers", "value": self.max_workers}
                )
        if not isinstance(self.thread_name_prefix, str) or not self.thread_name_prefix:
            raise InvalidArgumentError(
                "thread_name_prefix must be a non-empty string",
                {"argument": "thread_name_prefix", "value": self.thread_name_prefix},
            )

    def replace(self, **changes: Any) -> "ChronosConfig":
        """Return a copy with ``changes`` applied (and validated)."""
        return dataclasses.replace(self, **changes)


DEFAULT_CONFIG = ChronosConfig()


def coerce_config(config: Optional[ChronosConfig]) -> ChronosConfig:
    if config is None:
        return DEFAULT_CONFIG
    if not isinstance(config, ChronosConfig):
        raise InvalidArgumentError("config must be a ChronosConfig", {"argument": "config", "value": config})
    return config
