"""Tunable policy values for the tracker."""

import logging
import os
from dataclasses import dataclass, replace
from typing import Tuple

logger = logging.getLogger(__name__)

# GPS noise / track curvature slack when deciding a fix lies on a segment
SEGMENT_TOLERANCE = 1.2

# |delay| at or beyond this many minutes is early/delayed
DELAY_THRESHOLD_MINUTES = 2

# Predictions further in the past than this are dropped
STALE_WINDOW_MINUTES = 5

REFRESH_INTERVAL_SECONDS = 10
FETCH_TIMEOUT_SECONDS = 8

LOCAL_TIMEZONE = "America/Los_Angeles"

# Ordered (prefixes, train type) rules matched against the trip id; first match wins
TRAIN_TYPE_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("1", "2"), "Local"),
    (("3", "4", "5", "6"), "Limited"),
)
DEFAULT_TRAIN_TYPE = "Bullet"


@dataclass(frozen=True)
class TrackerConfig:
    """Policy values shared by every component."""
    segment_tolerance: float = SEGMENT_TOLERANCE
    delay_threshold_minutes: int = DELAY_THRESHOLD_MINUTES
    stale_window_minutes: int = STALE_WINDOW_MINUTES
    refresh_interval_seconds: float = REFRESH_INTERVAL_SECONDS
    fetch_timeout_seconds: float = FETCH_TIMEOUT_SECONDS
    timezone: str = LOCAL_TIMEZONE
    train_type_rules: Tuple[Tuple[Tuple[str, ...], str], ...] = TRAIN_TYPE_RULES
    default_train_type: str = DEFAULT_TRAIN_TYPE

    @classmethod
    def from_env(cls, prefix: str = "TRACKTRAIN_") -> "TrackerConfig":
        """
        Build a config from environment overrides.

        Recognized variables (with the default prefix): TRACKTRAIN_SEGMENT_TOLERANCE,
        TRACKTRAIN_DELAY_THRESHOLD_MINUTES, TRACKTRAIN_STALE_WINDOW_MINUTES,
        TRACKTRAIN_REFRESH_INTERVAL_SECONDS, TRACKTRAIN_FETCH_TIMEOUT_SECONDS and
        TRACKTRAIN_TIMEZONE. Unparseable values are ignored with a warning.
        """
        config = cls()
        casts = {
            "segment_tolerance": float,
            "delay_threshold_minutes": int,
            "stale_window_minutes": int,
            "refresh_interval_seconds": float,
            "fetch_timeout_seconds": float,
            "timezone": str,
        }
        overrides = {}
        for name, cast in casts.items():
            raw = os.environ.get(prefix + name.upper())
            if raw is None:
                continue
            try:
                overrides[name] = cast(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid {prefix + name.upper()}={raw!r}")

        return replace(config, **overrides) if overrides else config


DEFAULT_CONFIG = TrackerConfig()
