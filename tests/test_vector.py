import math

import pytest

from botdetector.errors import FeatureValidationError
from botdetector.vector import FeatureVector, parse, serialize

WIRE = [
    "userId", "avgCursorSpeed", "cursorAcceleration", "pathDeviation", "idleTime",
    "jitter", "clickPattern", "typingSpeed", "keyPressDuration", "keyTransitionTime",
    "keyTransitionStdDev", "typingAccuracy", "errorRate", "sessionDuration",
    "averageDwellTime", "scrollBehavior", "interactionComplexity",
]


def sample_vector(**overrides):
    values = {
        "userId": "123412341234",
        "avgCursorSpeed": 412.37,
        "cursorAcceleration": -1520.5,
        "pathDeviation": 3.21,
        "idleTime": 14.0,
        "jitter": 7,
        "clickPattern": 3,
        "typingSpeed": 41.98,
        "keyPressDuration": 123.33,
        "keyTransitionTime": 240.1,
        "keyTransitionStdDev": 61.75,
        "typingAccuracy": 87.5,
        "errorRate": 12.5,
        "sessionDuration": 34.29,
        "averageDwellTime": 9120.0,
        "scrollBehavior": 640.0,
        "interactionComplexity": 10.0,
    }
    values.update(overrides)
    return FeatureVector.checked(values)


def test_wire_names_and_order():
    assert FeatureVector.wire_names() == WIRE


def test_serialize_is_a_two_line_table():
    text = serialize(sample_vector())
    header, row = text.split("\n")
    assert header == ",".join(WIRE)
    assert row.startswith("123412341234,412.37,-1520.50,3.21,14.00,7,3,")


def test_parse_reads_serialized_values_back():
    v = sample_vector()
    back = parse(serialize(v))
    assert back.user_id == "123412341234"
    for name in FeatureVector.model_fields:
        original, parsed = getattr(v, name), getattr(back, name)
        if isinstance(original, float):
            assert parsed == pytest.approx(original, abs=0.005)
        else:
            assert parsed == original


def test_parse_rejects_extra_rows():
    text = serialize(sample_vector())
    with pytest.raises(ValueError):
        parse(text + "\n" + text.split("\n")[1])


def test_checked_names_every_bad_field():
    with pytest.raises(FeatureValidationError) as exc:
        sample_vector(avgCursorSpeed=-1.0, cursorAcceleration=60000.0, typingAccuracy=101.0)
    assert exc.value.fields == ["avgCursorSpeed", "cursorAcceleration", "typingAccuracy"]
    assert exc.value.values["avgCursorSpeed"] == -1.0


def test_non_finite_values_are_rejected():
    with pytest.raises(FeatureValidationError) as exc:
        sample_vector(pathDeviation=math.nan, idleTime=math.inf)
    assert exc.value.fields == ["pathDeviation", "idleTime"]


def test_vector_is_immutable():
    v = sample_vector()
    with pytest.raises(Exception):
        v.jitter = 0
