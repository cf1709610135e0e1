from __future__ import annotations
import logging
from typing import Dict, Optional

from ..config import TrackerConfig
from ..errors import FeatureValidationError, TransmitError
from ..vector import ANONYMOUS_USER, FeatureVector
from .attention import AttentionTracker
from .keystroke import KeystrokeAnalyzer
from .motion import MotionAnalyzer

logger = logging.getLogger("botdetector.aggregator")


def interaction_complexity(features: Dict[str, float], weights: Dict[str, float]) -> float:
    # weighted sum of already-derived session features
    return sum(w * float(features.get(name, 0.0)) for name, w in weights.items())


class SessionAggregator:
    """Fan-in point: terminal analyzer state → one validated FeatureVector."""

    def __init__(self, config: Optional[TrackerConfig] = None, log=logger):
        self.config = config or TrackerConfig()
        self.log = log

    def collect(self, motion: MotionAnalyzer, keystrokes: KeystrokeAnalyzer,
                attention: AttentionTracker, ended_at: float) -> Dict[str, float]:
        """Unrounded feature values keyed by Python field name."""
        st = motion.state
        session_seconds = max(0.0, (ended_at - st.started_at) / 1000.0)
        features = {
            "avg_cursor_speed": st.avg_speed,
            "cursor_acceleration": st.avg_acceleration,
            "path_deviation": st.path_deviation,
            "jitter": st.jitter_count,
            "session_duration": session_seconds,
        }
        features.update(keystrokes.summary(session_seconds))
        features.update(attention.summary())
        features["interaction_complexity"] = interaction_complexity(features, self.config.complexity_weights)
        return features

    def build(self, features: Dict[str, float], user_id: Optional[str] = None) -> FeatureVector:
        """Round to two decimals, rename to wire names and validate.

        Raises FeatureValidationError when any field is out of range.
        """
        fields = FeatureVector.model_fields
        wire = {"userId": (user_id or "").strip() or ANONYMOUS_USER}
        for name, value in features.items():
            if isinstance(value, float):
                value = round(value, 2)
            wire[fields[name].alias] = value
        try:
            return FeatureVector.checked(wire)
        except FeatureValidationError as e:
            self.log.warning("feature vector rejected, offending fields: %s", ", ".join(e.fields))
            raise

    def finalize(self, motion: MotionAnalyzer, keystrokes: KeystrokeAnalyzer,
                 attention: AttentionTracker, ended_at: float,
                 user_id: Optional[str] = None) -> FeatureVector:
        return self.build(self.collect(motion, keystrokes, attention, ended_at), user_id)

    def emit(self, vector: FeatureVector, sink):
        """Hand the vector to ``sink.submit``; a TransmitError carries the vector back."""
        try:
            ack = sink.submit(vector)
        except TransmitError as e:
            if e.vector is None:
                e.vector = vector
            self.log.warning("submit failed, vector retained: %s", e)
            raise
        self.log.info("feature vector submitted for %s", vector.user_id)
        return ack
