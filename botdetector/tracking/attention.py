from __future__ import annotations
import logging
from typing import Dict, Optional

import numpy as np

from ..config import TrackerConfig
from ..events import RawEvent
from .state import SessionState

logger = logging.getLogger("botdetector.attention")


class AttentionTracker:
    """Clicks, scrolling, per-field dwell and idle time.

    Idle time is polled: ``tick`` runs on a fixed period and only books the
    gap since the last activity when it is longer than ``idle_threshold_s``.
    Idle stretches that end between two ticks are not counted.
    """

    def __init__(self, state: SessionState, config: Optional[TrackerConfig] = None, log=logger):
        self.state = state
        self.config = config or TrackerConfig()
        self.log = log

    def on_click(self, ev: RawEvent) -> None:
        self.state.click_count += 1
        self.state.mark_activity(ev.timestamp)

    def on_scroll(self, ev: RawEvent) -> None:
        st = self.state
        if ev.scroll_offset is None:
            return
        delta = abs(ev.scroll_offset - st.last_scroll_offset)
        if delta > 0:
            st.scroll_distance += delta
            st.mark_activity(ev.timestamp)
        st.last_scroll_offset = ev.scroll_offset

    def on_focus_in(self, ev: RawEvent) -> None:
        if not ev.editable:
            return
        self.state.focus_started_at = ev.timestamp
        self.state.keyboard_attached = True

    def on_focus_out(self, ev: RawEvent) -> None:
        st = self.state
        if st.focus_started_at is not None:
            st.dwell_times.append(ev.timestamp - st.focus_started_at)
            st.focus_started_at = None
        if ev.editable:
            st.keyboard_attached = False
            # their key-ups will never be routed here
            st.key_down_times.clear()

    def tick(self, now: float) -> float:
        """One idle poll at ``now`` (ms). Returns the seconds booked as idle."""
        st = self.state
        gap = (now - st.last_activity) / 1000.0
        if gap > self.config.idle_threshold_s:
            st.idle_time += gap
            st.last_activity = now
            self.log.debug("idle %.2fs booked (total %.2fs)", gap, st.idle_time)
            return gap
        return 0.0

    def summary(self) -> Dict[str, float]:
        st = self.state
        return {
            "idle_time": st.idle_time,
            "click_pattern": st.click_count,
            "average_dwell_time": float(np.mean(st.dwell_times)) if st.dwell_times else 0.0,
            "scroll_behavior": st.scroll_distance,
        }
