import io
import json
import urllib.error

import pytest

from botdetector import sinks
from botdetector.errors import TransmitError
from botdetector.sinks import HttpSink, RedisSink, export_csv, load_csv
from botdetector.vector import FeatureVector


@pytest.fixture
def vector():
    return FeatureVector(user_id="123412341234", avg_cursor_speed=12.5, jitter=2, interaction_complexity=3.75)


def test_redis_sink_pushes_wire_json(fake_redis, vector):
    ack = RedisSink(fake_redis, queue="interactions").submit(vector)
    assert ack.status == "queued"
    assert ack.ref == "1"
    stored = json.loads(fake_redis.lists["interactions"][0])
    assert stored["userId"] == "123412341234"
    assert stored["avgCursorSpeed"] == 12.5


def test_redis_sink_failure_carries_vector(broken_redis, vector):
    with pytest.raises(TransmitError) as exc:
        RedisSink(broken_redis).submit(vector)
    assert exc.value.vector is vector


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_http_sink_posts_json(monkeypatch, vector):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["body"] = json.loads(req.data)
        return FakeResponse(b'{"status": "stored"}')

    monkeypatch.setattr(sinks.urllib.request, "urlopen", fake_urlopen)
    ack = HttpSink("http://collector.local/collect-data").submit(vector)
    assert ack.status == "stored"
    assert seen["url"] == "http://collector.local/collect-data"
    assert seen["body"]["jitter"] == 2


def test_http_sink_unreachable(monkeypatch, vector):
    def fake_urlopen(req, timeout):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(sinks.urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(TransmitError) as exc:
        HttpSink("http://collector.local/collect-data").submit(vector)
    assert exc.value.vector is vector


def test_csv_export_round_trip(tmp_path, vector):
    path = export_csv(vector, tmp_path / "out" / "interaction_data.csv")
    assert path.read_text().count("\n") == 1
    back = load_csv(path)
    assert back.user_id == vector.user_id
    assert back.avg_cursor_speed == vector.avg_cursor_speed
    assert back.interaction_complexity == vector.interaction_complexity
