from __future__ import annotations
import heapq
import logging
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

from pydantic import ValidationError

from ..events import KIND_ALIASES, RawEvent
from .state import SessionState

logger = logging.getLogger("botdetector.ingest")

RawInput = Union[RawEvent, Mapping]


def _timestamp_of(ev: RawInput) -> float:
    if isinstance(ev, RawEvent):
        return ev.timestamp
    ts = ev.get("timestamp", ev.get("timeStamp"))
    return float(ts) if ts is not None else float("-inf")


def to_event(raw: RawInput) -> RawEvent:
    """Validate one page event (DOM names and ``type``/``timeStamp`` keys accepted).

    Raises pydantic's ValidationError for anything that is not a usable event.
    """
    if isinstance(raw, RawEvent):
        return raw
    data = dict(raw)
    kind = data.pop("type", None) or data.pop("ev", None)
    data.setdefault("kind", kind)
    if isinstance(data["kind"], str):
        data["kind"] = KIND_ALIASES.get(data["kind"], data["kind"])
    if "timestamp" not in data and "timeStamp" in data:
        data["timestamp"] = data.pop("timeStamp")
    return RawEvent.model_validate(data)


def merge_streams(*streams: Iterable[RawInput]) -> Iterator[RawInput]:
    """Merge per-device streams (each already in order) into one ordered stream."""
    return heapq.merge(*streams, key=_timestamp_of)


class EventIngestor:
    """Turns raw page events into validated RawEvents in per-device order.

    Anything that cannot be used is dropped and counted in the session's
    diagnostics: malformed payloads, timestamps that go backwards for their
    source device, and events arriving after the session was finalized.
    """

    def __init__(self, state: SessionState, log=logger):
        self.state = state
        self.log = log
        self._last_ts: Dict[str, float] = {}

    def normalize(self, raw: RawInput) -> Optional[RawEvent]:
        diag = self.state.diagnostics
        if self.state.finalized:
            diag.late += 1
            self.log.debug("late event after finalize dropped")
            return None

        try:
            ev = to_event(raw)
        except ValidationError as e:
            diag.malformed += 1
            self.log.debug("malformed event dropped: %s", e.errors()[0].get("msg"))
            return None

        last = self._last_ts.get(ev.device)
        if last is not None and ev.timestamp < last:
            diag.out_of_order += 1
            self.log.debug("out-of-order %s at %.1f (last %.1f) dropped", ev.kind, ev.timestamp, last)
            return None
        self._last_ts[ev.device] = ev.timestamp
        return ev
