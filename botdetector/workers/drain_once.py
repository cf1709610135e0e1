import json
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
import redis

from ..config import QUEUE, REDIS_DB, REDIS_HOST, REDIS_PORT
from ..vector import FeatureVector

REPO_ROOT = Path(__file__).resolve().parents[2]
OUTDIR = REPO_ROOT / "data" / "parquet"


def drain(client, queue: str = QUEUE) -> pd.DataFrame:
    """Pop every stored feature vector off ``queue`` into a DataFrame."""
    batch = []
    while True:
        raw = client.lpop(queue)
        if raw is None:
            break
        try:
            batch.append(FeatureVector.model_validate(json.loads(raw)).to_wire())
        except ValueError as e:
            print("[drain] skip bad record:", e)
    return pd.DataFrame(batch, columns=FeatureVector.wire_names())


def main(client=None, outdir: Path = OUTDIR):
    client = client or redis.Redis(host=REDIS_HOST, port=REDIS_PORT, db=REDIS_DB, decode_responses=False)
    df = drain(client)
    if df.empty:
        print("[drain] queue empty, nothing to write.")
        return None

    outdir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    path = outdir / f"interactions_{stamp}.parquet"
    df.to_parquet(path, engine="pyarrow", index=False)
    print(f"[drain] wrote {len(df)} rows → {path}")
    return path


if __name__ == "__main__":
    main()
