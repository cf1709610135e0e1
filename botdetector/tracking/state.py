from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple


@dataclass
class MotionSample:
    speed: float
    acceleration: float
    timestamp: float


@dataclass
class Diagnostics:
    """Counters for events and samples that never reach the feature vector."""

    out_of_order: int = 0
    malformed: int = 0
    late: int = 0
    rate_limited: int = 0
    discarded_samples: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "out_of_order": self.out_of_order,
            "malformed": self.malformed,
            "late": self.late,
            "rate_limited": self.rate_limited,
            "discarded_samples": self.discarded_samples,
        }


@dataclass
class SessionState:
    """Everything one tracking session accumulates.

    Created when tracking starts and read once by the aggregator at
    finalization. Each analyzer owns its own slice of the fields but they all
    mutate this one object.
    """

    started_at: float
    window_capacity: int = 50
    last_activity: Optional[float] = None
    finalized: bool = False

    # motion
    motion_window: Deque[MotionSample] = field(default_factory=deque)
    last_position: Optional[Tuple[float, float, float]] = None  # x, y, t
    avg_speed: float = 0.0
    avg_acceleration: float = 0.0
    path_deviation: float = 0.0
    jitter_count: int = 0

    # keystrokes
    key_down_times: Dict[str, float] = field(default_factory=dict)
    last_key_down: Optional[float] = None
    keystroke_durations: List[float] = field(default_factory=list)
    key_transitions: List[float] = field(default_factory=list)
    error_count: int = 0
    keyboard_attached: bool = False

    # attention
    click_count: int = 0
    scroll_distance: float = 0.0
    last_scroll_offset: float = 0.0
    idle_time: float = 0.0  # seconds
    focus_started_at: Optional[float] = None
    dwell_times: List[float] = field(default_factory=list)

    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    def __post_init__(self):
        self.motion_window = deque(self.motion_window, maxlen=self.window_capacity)
        if self.last_activity is None:
            self.last_activity = self.started_at

    def mark_activity(self, now: float) -> None:
        # sources are only ordered per device, so never move the marker back
        if now > self.last_activity:
            self.last_activity = now
