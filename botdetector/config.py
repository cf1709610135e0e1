from __future__ import annotations
import os
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "BOTDETECTOR_"

# ---------- Service ----------
REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
REDIS_DB = int(os.environ.get("REDIS_DB", "0"))
QUEUE = os.environ.get(ENV_PREFIX + "QUEUE", "interactions")
LOG_LEVEL = os.environ.get(ENV_PREFIX + "LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get(ENV_PREFIX + "LOG_FILE")  # unset → console only

DEFAULT_WEIGHTS = {
    "avg_cursor_speed": 0.3,
    "cursor_acceleration": 0.2,
    "path_deviation": 0.2,
    "typing_speed": 0.2,
    "scroll_behavior": 0.1,
}


class TrackerConfig(BaseModel):
    """Tunables for one tracking session.

    The defaults reproduce the deployed portal: a 1600 DPI reference mouse
    normalised against 800 DPI, a 50-sample motion window and a 5 s idle poll.
    """

    model_config = ConfigDict(frozen=True)

    target_dpi: float = Field(1600.0, gt=0)
    base_dpi: float = Field(800.0, gt=0)
    window_capacity: int = Field(50, ge=1)
    acceleration_cap: float = Field(50000.0, gt=0)
    max_sample_gap_s: float = Field(5.0, gt=0)
    sample_interval_ms: float = Field(100.0, ge=0)
    jitter_ratio: float = Field(0.05, ge=0)
    jitter_floor: float = Field(0.5, ge=0)
    idle_tick_ms: float = Field(5000.0, gt=0)
    idle_threshold_s: float = Field(1.0, ge=0)
    session_ttl_s: float = Field(1800.0, gt=0)
    error_keys: Tuple[str, ...] = ("Backspace", "Delete")
    complexity_weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    @property
    def normalization_factor(self) -> float:
        return self.target_dpi / self.base_dpi

    @classmethod
    def from_env(cls, environ=None) -> "TrackerConfig":
        """Build a config from BOTDETECTOR_<FIELD> overrides, e.g. BOTDETECTOR_TARGET_DPI=1200."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in ("target_dpi", "base_dpi", "window_capacity", "acceleration_cap",
                     "max_sample_gap_s", "sample_interval_ms", "jitter_ratio",
                     "jitter_floor", "idle_tick_ms", "idle_threshold_s", "session_ttl_s"):
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                overrides[name] = raw
        keys = environ.get(ENV_PREFIX + "ERROR_KEYS")
        if keys:
            overrides["error_keys"] = tuple(k.strip() for k in keys.split(",") if k.strip())
        return cls(**overrides)


DEFAULTS = TrackerConfig().model_dump()
