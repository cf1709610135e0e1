from __future__ import annotations
import logging
from typing import Dict, Optional

import numpy as np

from ..config import TrackerConfig
from ..events import RawEvent
from .state import SessionState

logger = logging.getLogger("botdetector.keystroke")


class KeystrokeAnalyzer:
    """Press durations, inter-key transitions and corrections while typing.

    Only fed while an editable element has focus; the attention tracker
    flips ``state.keyboard_attached``.
    """

    def __init__(self, state: SessionState, config: Optional[TrackerConfig] = None, log=logger):
        self.state = state
        self.config = config or TrackerConfig()
        self.log = log

    def on_key_down(self, ev: RawEvent) -> None:
        st = self.state
        code = ev.code or ev.key
        if code is None or code in st.key_down_times:
            return  # auto-repeat or unidentifiable key
        now = ev.timestamp
        st.key_down_times[code] = now
        if st.last_key_down is not None:
            st.key_transitions.append(now - st.last_key_down)
        st.last_key_down = now

    def on_key_up(self, ev: RawEvent) -> None:
        st = self.state
        code = ev.code or ev.key
        started = st.key_down_times.pop(code, None) if code is not None else None
        if started is None:
            return
        st.keystroke_durations.append(ev.timestamp - started)
        if ev.key in self.config.error_keys:
            st.error_count += 1

    def summary(self, session_seconds: float) -> Dict[str, float]:
        st = self.state
        count = len(st.keystroke_durations)
        transitions = st.key_transitions

        typing_speed = count / (session_seconds / 60.0) if session_seconds > 0 else 0.0
        avg_press = float(np.mean(st.keystroke_durations)) if count else 0.0
        avg_transition = float(np.mean(transitions)) if transitions else 0.0
        transition_std = float(np.std(transitions)) if transitions else 0.0  # population (ddof=0)
        if count:
            error_rate = st.error_count / count * 100.0
            accuracy = (count - st.error_count) / count * 100.0
        else:
            error_rate = 0.0
            accuracy = 100.0

        return {
            "typing_speed": typing_speed,
            "key_press_duration": avg_press,
            "key_transition_time": avg_transition,
            "key_transition_std_dev": transition_std,
            "error_rate": error_rate,
            "typing_accuracy": accuracy,
        }
