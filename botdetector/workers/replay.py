"""Replay recorded raw events through tracking sessions, one per ``sid``.

Input is a JSON array or JSON-lines file of raw events carrying a ``sid``
column (and optionally ``uid``). Output is one CSV row per session with the
finished feature vector, or the validation error that blocked it.
"""
import argparse
from pathlib import Path
from typing import Dict, List

import pandas as pd

from ..errors import FeatureValidationError
from ..events import KIND_ALIASES, SOURCE_DEVICE
from ..tracking.ingest import merge_streams
from ..tracking.session import Session
from ..vector import FeatureVector

REPO_ROOT = Path(__file__).resolve().parents[2]
OUT_DIR = REPO_ROOT / "data" / "features"


def load_events(path: Path) -> pd.DataFrame:
    path = Path(path)
    text = path.read_text(encoding="utf-8").lstrip()
    # no inference: "timestamp" is not a date and digit keys stay strings
    df = pd.read_json(path, lines=not text.startswith("["), dtype=False,
                      convert_dates=False, keep_default_dates=False)
    if "sid" not in df.columns:
        raise ValueError(f"{path} has no 'sid' column")
    return df


def _records(g: pd.DataFrame) -> List[Dict]:
    out = []
    for rec in g.drop(columns=["sid", "uid"], errors="ignore").to_dict(orient="records"):
        # missing cells come back as NaN
        out.append({k: v for k, v in rec.items() if not (isinstance(v, float) and v != v)})
    return out


def _device(rec: Dict) -> str:
    kind = rec.get("kind")
    return SOURCE_DEVICE.get(KIND_ALIASES.get(kind, kind), "unknown")


def replay_session(records: List[Dict], sid: str, user_id=None) -> Dict:
    """Run one session's events (each device's stream in recorded order)."""
    streams: Dict[str, List[Dict]] = {}
    for rec in records:
        streams.setdefault(_device(rec), []).append(rec)
    ordered = list(merge_streams(*streams.values()))
    timestamps = [float(rec["timestamp"]) for rec in ordered if "timestamp" in rec]
    start = min(timestamps) if timestamps else 0.0
    end = max(timestamps) if timestamps else start

    session = Session(started_at=start, session_id=sid)
    session.ingest_many(ordered)
    row = {"sid": sid, "error": ""}
    try:
        row.update(session.finalize(now=end, user_id=user_id).to_wire())
    except FeatureValidationError as e:
        row["error"] = str(e)
    row.update({f"dropped_{k}": v for k, v in session.diagnostics.items()})
    return row


def replay(df: pd.DataFrame) -> pd.DataFrame:
    rows = []
    for sid, g in df.groupby("sid", sort=False):
        uid = None
        if "uid" in g.columns and g["uid"].notna().any():
            uid = str(g["uid"].dropna().iloc[0])
        rows.append(replay_session(_records(g), str(sid), uid))
    columns = ["sid"] + FeatureVector.wire_names() + ["error"]
    out = pd.DataFrame(rows)
    return out.reindex(columns=columns + [c for c in out.columns if c not in columns])


def main(argv=None):
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("events", type=Path, help="JSON or JSON-lines file of raw events")
    ap.add_argument("--out", type=Path, default=OUT_DIR / "session_vectors.csv")
    args = ap.parse_args(argv)

    out = replay(load_events(args.events))
    args.out.parent.mkdir(parents=True, exist_ok=True)
    out.to_csv(args.out, index=False)
    print(f"[replay] wrote {len(out)} sessions → {args.out}")
    return out


if __name__ == "__main__":
    main()
