import json, urllib.request
from .personas import careful_typist, skimmer, scripted_bot

URL="http://127.0.0.1:8123"

def post_json(path, payload):
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(URL + path, data=data, headers={"Content-Type":"application/json"})
    with urllib.request.urlopen(req) as r:
        return json.loads(r.read() or b"{}")

def seed(events):
    # send each session as one batch, then close it at its last event
    sid = events[0]["sid"]; uid = events[0]["uid"]
    batch = [{k: v for k, v in ev.items() if k not in ("sid", "uid")} for ev in events]
    post_json(f"/sessions/{sid}/events", batch)
    end = max(ev["timestamp"] for ev in events)
    return post_json(f"/sessions/{sid}/finalize", {"userId": uid, "timestamp": end})

def main():
    for persona in (careful_typist, skimmer, scripted_bot):
        out = seed(persona(seed=7))
        print(f"[seed] {persona.__name__}: {out.get('status')}")

if __name__ == "__main__":
    main()
