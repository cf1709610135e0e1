from __future__ import annotations
import logging
from math import hypot
from typing import Optional

from ..config import TrackerConfig
from ..events import RawEvent
from .state import MotionSample, SessionState

logger = logging.getLogger("botdetector.motion")


class RateLimiter:
    """Lets at most one call through per ``interval_ms``; the rest are dropped."""

    def __init__(self, interval_ms: float):
        self.interval_ms = interval_ms
        self._last: Optional[float] = None

    def allow(self, now: float) -> bool:
        if self._last is not None and (now - self._last) < self.interval_ms:
            return False
        self._last = now
        return True


class MotionAnalyzer:
    """Running cursor kinematics over a bounded window of recent samples.

    Raw pixel deltas are divided by the DPI normalization factor so that
    sensitive and coarse mice produce comparable distances. Samples more than
    ``max_sample_gap_s`` apart (tab switches, sensor sleep) are discarded
    without touching any counter.
    """

    def __init__(self, state: SessionState, config: Optional[TrackerConfig] = None, log=logger):
        self.state = state
        self.config = config or TrackerConfig()
        self.factor = self.config.normalization_factor
        self.limiter = RateLimiter(self.config.sample_interval_ms)
        self.log = log

    def on_move(self, ev: RawEvent) -> Optional[MotionSample]:
        st = self.state
        cfg = self.config
        if ev.x is None or ev.y is None:
            st.diagnostics.discarded_samples += 1
            return None
        if not self.limiter.allow(ev.timestamp):
            st.diagnostics.rate_limited += 1
            return None

        prev = st.last_position
        st.last_position = (ev.x, ev.y, ev.timestamp)
        if prev is None:
            return None

        px, py, pt = prev
        raw_dx, raw_dy = ev.x - px, ev.y - py
        dx, dy = raw_dx / self.factor, raw_dy / self.factor
        distance = hypot(dx, dy)
        elapsed = (ev.timestamp - pt) / 1000.0
        if elapsed <= 0 or elapsed >= cfg.max_sample_gap_s:
            st.diagnostics.discarded_samples += 1
            self.log.debug("motion sample discarded: elapsed=%.3fs", elapsed)
            return None

        prev_avg = st.avg_speed
        speed = distance / elapsed
        acceleration = (speed - prev_avg) / elapsed
        # coalesced events and focus jumps give non-physical spikes
        cap = cfg.acceleration_cap
        acceleration = max(-cap, min(cap, acceleration))

        sample = MotionSample(speed=speed, acceleration=acceleration, timestamp=ev.timestamp)
        window = st.motion_window
        window.append(sample)
        n = len(window)
        st.avg_speed = sum(s.speed for s in window) / n
        st.avg_acceleration = sum(s.acceleration for s in window) / n

        straight = hypot(raw_dx, raw_dy)
        deviation = abs(distance - straight)
        if st.path_deviation > 0:
            st.path_deviation = (st.path_deviation * (n - 1) + deviation) / n
        else:
            st.path_deviation = deviation

        threshold = max(cfg.jitter_ratio * prev_avg, cfg.jitter_floor)
        if distance < threshold:
            st.jitter_count += 1
        return sample
