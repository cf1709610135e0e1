import pytest

from botdetector.errors import FeatureValidationError, TransmitError
from botdetector.sinks import Ack
from botdetector.tracking.ingest import merge_streams
from botdetector.tracking.session import Session
from botdetector.vector import FeatureVector


class ListSink:
    def __init__(self, failures=0):
        self.sent = []
        self.failures = failures

    def submit(self, vector):
        if self.failures:
            self.failures -= 1
            raise TransmitError("collector unreachable")
        self.sent.append(vector)
        return Ack(status="stored", ref=str(len(self.sent)))


def type_field(session, t, digits="123", hold=100, gap=200):
    session.ingest({"kind": "focusin", "timestamp": t, "targetTag": "INPUT"})
    for d in digits:
        t += gap
        session.ingest({"kind": "keydown", "timestamp": t, "code": f"Digit{d}", "key": d})
        session.ingest({"kind": "keyup", "timestamp": t + hold, "code": f"Digit{d}", "key": d})
    session.ingest({"kind": "focusout", "timestamp": t + gap, "targetTag": "INPUT"})
    return t + gap


def test_empty_session_yields_defaults(session):
    vector = session.finalize(now=0.0)
    assert vector.to_wire() == FeatureVector().to_wire()
    assert vector.user_id == "anonymous-user"
    assert vector.typing_accuracy == 100
    assert vector.error_rate == 0


def test_keys_only_counted_inside_editable_fields(session):
    session.ingest({"kind": "keydown", "timestamp": 10, "code": "KeyA", "key": "a"})
    session.ingest({"kind": "keyup", "timestamp": 60, "code": "KeyA", "key": "a"})
    assert session.state.keystroke_durations == []

    end = type_field(session, 1000)
    assert len(session.state.keystroke_durations) == 3
    session.ingest({"kind": "keydown", "timestamp": end + 50, "code": "KeyB", "key": "b"})
    assert session.state.key_down_times == {}


def test_full_session_vector(session):
    session.ingest({"kind": "pointermove", "timestamp": 0, "x": 0, "y": 0})
    session.ingest({"kind": "pointermove", "timestamp": 100, "x": 10, "y": 0})
    session.ingest({"kind": "click", "timestamp": 150})
    end = type_field(session, 200)
    session.ingest({"kind": "scroll", "timestamp": end + 10, "scrollOffset": 120})

    vector = session.finalize(now=60000.0, user_id=" 123412341234 ")
    assert vector.user_id == "123412341234"
    assert vector.avg_cursor_speed == 50.0
    assert vector.cursor_acceleration == 500.0
    assert vector.click_pattern == 1
    assert vector.key_press_duration == 100.0
    assert vector.key_transition_time == 200.0
    assert vector.typing_speed == 3.0
    assert vector.session_duration == 60.0
    assert vector.scroll_behavior == 120.0
    assert vector.average_dwell_time == 800.0
    assert vector.interaction_complexity == pytest.approx(
        round(0.3 * 50 + 0.2 * 500 + 0.2 * 5 + 0.2 * 3 + 0.1 * 120, 2))
    # idle polled at 5 s, 10 s, ... after the last activity at ~1.01 s
    assert vector.idle_time > 50


def test_idle_ticks_run_on_the_event_clock(session):
    session.ingest({"kind": "click", "timestamp": 12000})
    # ticks at 5000 and 10000 ran before the click was applied
    assert session.state.idle_time == pytest.approx(10.0)
    assert session.advance_to(14999) == 0
    assert session.advance_to(15000) == 1
    assert session.state.idle_time == pytest.approx(13.0)


def test_protocol_violations_are_dropped_and_counted(session):
    assert session.ingest({"kind": "click", "timestamp": 500})
    assert not session.ingest({"kind": "scroll", "timestamp": 400, "scrollOffset": 10})
    # other devices keep their own ordering
    assert session.ingest({"kind": "focusin", "timestamp": 450, "targetTag": "INPUT"})
    assert not session.ingest({"kind": "teleport", "timestamp": 600})
    assert not session.ingest({"kind": "click"})
    assert session.diagnostics["out_of_order"] == 1
    assert session.diagnostics["malformed"] == 2
    assert session.state.click_count == 1


def test_dom_names_are_accepted(session):
    assert session.ingest({"type": "mousemove", "timeStamp": 10, "x": 1, "y": 1})
    assert session.ingest({"kind": "focus", "timestamp": 20, "targetTag": "TEXTAREA"})
    assert session.state.keyboard_attached


def test_late_events_do_not_change_the_vector(session):
    session.ingest({"kind": "click", "timestamp": 100})
    vector = session.finalize(now=1000)
    assert not session.ingest({"kind": "click", "timestamp": 1100})
    assert session.diagnostics["late"] == 1
    assert session.finalize(now=5000) is vector
    assert vector.click_pattern == 1


def test_validation_failure_aborts_emission(session):
    sink = ListSink()
    session.state.avg_acceleration = -50000.0
    with pytest.raises(FeatureValidationError) as exc:
        session.finalize(now=1000, sink=sink)
    assert exc.value.fields == ["interactionComplexity"]
    assert sink.sent == []
    assert session.vector is None
    # finalization is terminal; asking again gives the same answer
    with pytest.raises(FeatureValidationError):
        session.finalize(now=2000)


def test_transmit_failure_keeps_vector_for_retry(session, tmp_path):
    sink = ListSink(failures=1)
    session.ingest({"kind": "click", "timestamp": 100})
    with pytest.raises(TransmitError) as exc:
        session.finalize(now=1000, sink=sink)
    assert exc.value.vector is session.vector
    assert session.vector.click_pattern == 1

    session.export(tmp_path / "interaction_data.csv")
    assert (tmp_path / "interaction_data.csv").read_text().startswith("userId,avgCursorSpeed,")

    ack = session.submit(sink)
    assert ack.status == "stored"
    assert sink.sent == [session.vector]


def test_finalize_again_with_sink_resends_undelivered_vector(session):
    sink = ListSink(failures=2)
    session.ingest({"kind": "click", "timestamp": 100})
    with pytest.raises(TransmitError):
        session.finalize(now=1000, sink=sink)
    with pytest.raises(TransmitError):
        session.finalize(now=5000, sink=sink)
    assert not session.delivered

    vector = session.finalize(now=9000, sink=sink)
    assert session.delivered
    assert sink.sent == [vector]
    # the first close time still stands
    assert vector.session_duration == 1.0

    # already delivered: nothing is sent twice
    session.finalize(sink=sink)
    assert sink.sent == [vector]


def test_submit_before_finalize_is_an_error(session):
    with pytest.raises(RuntimeError):
        session.submit(ListSink())


def test_context_exit_finalizes():
    with Session(started_at=0.0) as s:
        s.ingest({"kind": "click", "timestamp": 2500})
    assert s.finalized
    assert s.vector.session_duration == 2.5


def test_merge_streams_orders_devices():
    pointer = [{"kind": "click", "timestamp": 10}, {"kind": "click", "timestamp": 30}]
    keyboard = [{"kind": "keydown", "timestamp": 20, "code": "KeyA"}]
    merged = list(merge_streams(pointer, keyboard))
    assert [e["timestamp"] for e in merged] == [10, 20, 30]
