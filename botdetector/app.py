import json
import logging
import os
import threading
import time
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
import redis
import uvicorn
from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import QUEUE, REDIS_DB, REDIS_HOST, REDIS_PORT, TrackerConfig
from .errors import FeatureValidationError, TransmitError
from .logs import configure_logging
from .sinks import RedisSink
from .tracking.ingest import to_event
from .tracking.session import Session
from .vector import FeatureVector

configure_logging()
logger = logging.getLogger("botdetector.app")

app = FastAPI(title="BotDetector API", version="0.1.0")

# CORS so the portal page can POST from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],             # tighten later
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

TRACKER_CONFIG = TrackerConfig.from_env()

# Connect to Redis once at startup
def _redis():
    return redis.Redis(host=REDIS_HOST, port=REDIS_PORT, db=REDIS_DB, decode_responses=False)

r = _redis()

# one Session per sid, each behind its own lock (single writer per session)
_sessions: Dict[str, Tuple[Session, threading.Lock]] = {}
_last_seen: Dict[str, float] = {}
_registry_lock = threading.Lock()
_clock = time.monotonic


def _evict_idle(now: float) -> None:
    """Drop sessions untouched for ``session_ttl_s``. Caller holds the registry lock."""
    ttl = TRACKER_CONFIG.session_ttl_s
    for sid in [sid for sid, seen in _last_seen.items() if now - seen > ttl]:
        _sessions.pop(sid, None)
        del _last_seen[sid]
        logger.info("session %s evicted after %.0fs without requests", sid, ttl)


def _get_session(sid: str, started_at: Optional[float] = None) -> Optional[Tuple[Session, threading.Lock]]:
    now = _clock()
    with _registry_lock:
        _evict_idle(now)
        entry = _sessions.get(sid)
        if entry is None and started_at is not None:
            entry = (Session(started_at=started_at, config=TRACKER_CONFIG, session_id=sid), threading.Lock())
            _sessions[sid] = entry
            logger.info("session %s started at %.1f", sid, started_at)
        if entry is not None:
            _last_seen[sid] = now
        return entry


def _release(sid: str):
    with _registry_lock:
        _last_seen.pop(sid, None)
        return _sessions.pop(sid, None)


def _first_timestamp(events: List[Dict[str, Any]]) -> Optional[float]:
    """Timestamp of the first event that would be accepted; dropped events never start a session."""
    for ev in events:
        try:
            return to_event(ev).timestamp
        except ValidationError:
            continue
    return None


class FinalizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    timestamp: Optional[float] = Field(None, description="session end, same clock as the events")


def _not_found(sid: str):
    return JSONResponse(status_code=404, content={"error": f"unknown session {sid}"})


@app.get("/health")
def health():
    redis_ok = False
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        pass
    return {"ok": True, "service": "botdetector-api", "redis": redis_ok}


@app.get("/config")
def config():
    return TRACKER_CONFIG.model_dump()


@app.post("/sessions/{sid}/events")
def ingest(sid: str, payload: Union[Dict[str, Any], List[Dict[str, Any]]] = Body(...)):
    """
    Accept either a single raw event or a list of them for session ``sid``.
    The first batch for an unknown sid starts the session at its first timestamp.
    """
    events = payload if isinstance(payload, list) else [payload]
    if not events:
        return {"status": "accepted", "count": 0, "dropped": 0}
    entry = _get_session(sid, started_at=_first_timestamp(events))
    if entry is None:
        return JSONResponse(status_code=400, content={"error": "no valid event in the batch"})
    session, lock = entry
    with lock:
        accepted = session.ingest_many(events)
    return {"status": "accepted", "count": accepted, "dropped": len(events) - accepted}


@app.get("/sessions/{sid}")
def session_status(sid: str):
    entry = _get_session(sid)
    if entry is None:
        return _not_found(sid)
    session, lock = entry
    with lock:
        return {
            "sid": sid,
            "finalized": session.finalized,
            "diagnostics": session.diagnostics,
            "vector": session.vector.to_wire() if session.vector is not None else None,
        }


@app.post("/sessions/{sid}/finalize")
def finalize(sid: str, req: Optional[FinalizeRequest] = None):
    req = req or FinalizeRequest()
    entry = _get_session(sid)
    if entry is None:
        return _not_found(sid)
    session, lock = entry
    with lock:
        now = req.timestamp if req.timestamp is not None else session.last_timestamp
        try:
            vector = session.finalize(now=now, user_id=req.user_id, sink=RedisSink(r, QUEUE))
        except FeatureValidationError as e:
            return JSONResponse(status_code=422, content={"error": str(e), "fields": e.fields})
        except TransmitError as e:
            return JSONResponse(status_code=502, content={"error": str(e), "vector": e.vector.to_wire()})
        if not session.delivered:
            return JSONResponse(status_code=409, content={
                "error": f"vector not delivered, POST /sessions/{sid}/retry",
                "vector": vector.to_wire(),
            })
        _release(sid)
        return {"status": "submitted", "vector": vector.to_wire(), "diagnostics": session.diagnostics}


@app.post("/sessions/{sid}/retry")
def retry(sid: str):
    entry = _get_session(sid)
    if entry is None:
        return _not_found(sid)
    session, lock = entry
    with lock:
        if session.vector is None:
            return JSONResponse(status_code=409, content={"error": "session has no feature vector"})
        try:
            ack = session.submit(RedisSink(r, QUEUE))
        except TransmitError as e:
            return JSONResponse(status_code=502, content={"error": str(e), "vector": e.vector.to_wire()})
        _release(sid)
        return {"status": ack.status, "vector": session.vector.to_wire()}


@app.delete("/sessions/{sid}")
def discard(sid: str):
    if _release(sid) is None:
        return _not_found(sid)
    return {"status": "discarded", "sid": sid}


@app.post("/collect-data")
def collect_data(vector: FeatureVector = Body(...)):
    try:
        RedisSink(r, QUEUE).submit(vector)
    except TransmitError as e:
        logger.error("error saving data: %s", e)
        return JSONResponse(status_code=500, content={"message": "Error saving data"})
    return {"message": "Data saved successfully"}


@app.get("/download-data")
def download_data():
    try:
        rows = r.lrange(QUEUE, 0, -1)
    except redis.RedisError as e:
        logger.error("error retrieving data: %s", e)
        return JSONResponse(status_code=500, content={"message": "Error retrieving data"})
    if not rows:
        return PlainTextResponse("No data available to download.")
    df = pd.DataFrame([json.loads(raw) for raw in rows], columns=FeatureVector.wire_names())
    return Response(
        content=df.to_csv(index=False),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="interactions.csv"'},
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8123)))
