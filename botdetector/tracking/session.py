from __future__ import annotations
import time
import uuid
from typing import Callable, Iterable, Optional

from ..config import TrackerConfig
from ..errors import FeatureValidationError
from ..logs import get_trace_logger
from ..sinks import export_csv
from ..vector import FeatureVector
from .aggregator import SessionAggregator
from .attention import AttentionTracker
from .ingest import EventIngestor, RawInput
from .keystroke import KeystrokeAnalyzer
from .motion import MotionAnalyzer
from .state import SessionState


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class Session:
    """One tracking session, from first attach to finalization.

    Not thread-safe: feed it from a single thread (or hold a lock around it).
    Idle ticks are scheduled on the event clock every ``idle_tick_ms`` from
    ``started_at``; due ticks run before any later event is dispatched and
    when the session is finalized. Hosts with a real timer call
    ``advance_to(now)``.

    Usage::

        with Session(started_at=0.0) as s:
            s.ingest({"kind": "click", "timestamp": 120.0})
            vector = s.finalize(now=9000.0, user_id="123412341234", sink=sink)
    """

    def __init__(self, started_at: Optional[float] = None, config: Optional[TrackerConfig] = None,
                 session_id: Optional[str] = None, scroll_offset: float = 0.0,
                 clock: Callable[[], float] = monotonic_ms):
        self.config = config or TrackerConfig()
        self.clock = clock
        self.session_id = session_id or uuid.uuid4().hex
        self.log = get_trace_logger("botdetector.session", self.session_id)

        start = self.clock() if started_at is None else float(started_at)
        self.state = SessionState(started_at=start, window_capacity=self.config.window_capacity,
                                  last_scroll_offset=scroll_offset)
        self.ingestor = EventIngestor(self.state, self.log)
        self.motion = MotionAnalyzer(self.state, self.config, self.log)
        self.keystrokes = KeystrokeAnalyzer(self.state, self.config, self.log)
        self.attention = AttentionTracker(self.state, self.config, self.log)
        self.aggregator = SessionAggregator(self.config, self.log)

        self.last_timestamp = start
        self.vector: Optional[FeatureVector] = None
        self.ack = None
        self._next_tick = start + self.config.idle_tick_ms
        self._error: Optional[FeatureValidationError] = None

    # ---------- events ----------
    def ingest(self, raw: RawInput) -> bool:
        """Feed one raw event. Returns False when it was dropped."""
        ev = self.ingestor.normalize(raw)
        if ev is None:
            return False
        self.advance_to(ev.timestamp)
        if ev.timestamp > self.last_timestamp:
            self.last_timestamp = ev.timestamp

        st = self.state
        kind = ev.kind
        if kind == "pointermove":
            st.mark_activity(ev.timestamp)
            self.motion.on_move(ev)
        elif kind == "click":
            self.attention.on_click(ev)
        elif kind == "scroll":
            self.attention.on_scroll(ev)
        elif kind == "keydown":
            st.mark_activity(ev.timestamp)
            if st.keyboard_attached:
                self.keystrokes.on_key_down(ev)
        elif kind == "keyup":
            if st.keyboard_attached:
                self.keystrokes.on_key_up(ev)
        elif kind == "focusin":
            self.attention.on_focus_in(ev)
        elif kind == "focusout":
            self.attention.on_focus_out(ev)
        return True

    def ingest_many(self, events: Iterable[RawInput]) -> int:
        """Feed events in order; returns how many were accepted."""
        return sum(1 for raw in events if self.ingest(raw))

    def advance_to(self, now: float) -> int:
        """Run every idle tick due at or before ``now``. Returns the number run."""
        if self.state.finalized:
            return 0
        ran = 0
        period = self.config.idle_tick_ms
        while self._next_tick <= now:
            self.attention.tick(self._next_tick)
            self._next_tick += period
            ran += 1
        return ran

    @property
    def diagnostics(self) -> dict:
        return self.state.diagnostics.as_dict()

    @property
    def finalized(self) -> bool:
        return self.state.finalized

    @property
    def delivered(self) -> bool:
        return self.ack is not None

    # ---------- end of session ----------
    def finalize(self, now: Optional[float] = None, user_id: Optional[str] = None, sink=None) -> FeatureVector:
        """Close the session and build its FeatureVector (once; later calls replay the outcome).

        Raises FeatureValidationError if the vector breaks its contract, and
        TransmitError if ``sink`` is given and rejects it; the vector stays on
        ``self.vector`` for ``submit``/``export``. Calling again with a sink
        after a failed send submits the kept vector.
        """
        if self.state.finalized:
            if self._error is not None:
                raise self._error
            # an earlier send failed; this call is a retry
            if sink is not None and self.ack is None:
                self.submit(sink)
            return self.vector

        now = self.clock() if now is None else float(now)
        self.advance_to(now)
        self.state.finalized = True
        try:
            self.vector = self.aggregator.finalize(self.motion, self.keystrokes, self.attention,
                                                   ended_at=now, user_id=user_id)
        except FeatureValidationError as e:
            self._error = e
            raise
        self.log.info("session finalized after %.2fs, dropped=%s",
                      self.vector.session_duration, self.diagnostics)
        if sink is not None:
            self.submit(sink)
        return self.vector

    def submit(self, sink):
        """Send the finalized vector to ``sink``; call again to retry after a TransmitError."""
        if self.vector is None:
            raise RuntimeError("session has no feature vector; finalize it first")
        self.ack = self.aggregator.emit(self.vector, sink)
        return self.ack

    def export(self, path) -> None:
        """Write the finalized vector to ``path`` as a two-line CSV table."""
        if self.vector is None:
            raise RuntimeError("session has no feature vector; finalize it first")
        export_csv(self.vector, path)

    # teardown finalizes the session if the caller did not
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.state.finalized and exc_type is None:
            self.finalize(now=self.last_timestamp)
        return False
