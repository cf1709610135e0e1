"""Where finished feature vectors go.

``OutputSink`` is the contract the tracking core calls into. The bindings
here push to the Redis ``interactions`` list (the document store the
collection service drains) or POST to a running collection service.
"""
from __future__ import annotations
import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import Optional, Protocol

import redis
from pydantic import BaseModel

from .config import QUEUE
from .errors import TransmitError
from .vector import FeatureVector, parse, serialize


class Ack(BaseModel):
    status: str
    ref: Optional[str] = None


class OutputSink(Protocol):
    def submit(self, vector: FeatureVector) -> Ack:
        ...


class RedisSink:
    def __init__(self, client: "redis.Redis", queue: str = QUEUE):
        self.client = client
        self.queue = queue

    def submit(self, vector: FeatureVector) -> Ack:
        try:
            n = self.client.rpush(self.queue, vector.model_dump_json(by_alias=True))
        except redis.RedisError as e:
            raise TransmitError(f"redis rpush to {self.queue!r} failed: {e}", vector) from e
        return Ack(status="queued", ref=str(n))


class HttpSink:
    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def submit(self, vector: FeatureVector) -> Ack:
        data = vector.model_dump_json(by_alias=True).encode("utf-8")
        req = urllib.request.Request(self.url, data=data, headers={"Content-Type": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as r:
                body = r.read()
        except urllib.error.HTTPError as e:
            raise TransmitError(f"{self.url} answered {e.code}", vector) from e
        except (urllib.error.URLError, OSError) as e:
            raise TransmitError(f"{self.url} unreachable: {e}", vector) from e
        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            payload = {}
        return Ack(status=str(payload.get("status", "sent")), ref=payload.get("ref"))


def export_csv(vector: FeatureVector, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialize(vector), encoding="utf-8")
    return path


def load_csv(path) -> FeatureVector:
    return parse(Path(path).read_text(encoding="utf-8"))
