from __future__ import annotations
import math, random
from typing import List, Dict, Optional

DIGITS = "0123456789"


def _rng(seed: Optional[int]) -> random.Random:
    return random.Random(seed)


def _type_digits(ev, sid, uid, t, rng, n=12, hold=(70, 140), gap=(120, 320), typo_every=0):
    """Key down/up pairs for ``n`` digits starting at ``t``; returns the end time."""
    typed = presses = 0
    while typed < n:
        d = rng.choice(DIGITS)
        down = t
        up = down + rng.uniform(*hold)
        ev += [
            {"sid":sid,"uid":uid,"kind":"keydown","timestamp":down,"code":f"Digit{d}","key":d},
            {"sid":sid,"uid":uid,"kind":"keyup","timestamp":up,"code":f"Digit{d}","key":d},
        ]
        t = up + rng.uniform(*gap)
        typed += 1; presses += 1
        # a correction after every ``typo_every`` digit presses
        if typo_every and presses % typo_every == 0 and typed < n:
            down = t
            up = down + rng.uniform(*hold)
            ev += [
                {"sid":sid,"uid":uid,"kind":"keydown","timestamp":down,"code":"Backspace","key":"Backspace"},
                {"sid":sid,"uid":uid,"kind":"keyup","timestamp":up,"code":"Backspace","key":"Backspace"},
            ]
            t = up + rng.uniform(*gap)
            typed -= 1
    return t


def careful_typist(uid="123412341234", sid="s_typist", t0=0.0, seed=None) -> List[Dict]:
    """Curved, uneven mouse path to the field, types the id with a couple of corrections."""
    rng = _rng(seed); ev=[]; t=t0
    x, y = 200.0, 500.0
    # arc towards the input, speed rising then falling
    for i in range(30):
        phase = i / 29
        x += 12 * math.sin(math.pi * phase) + rng.uniform(-2, 2)
        y -= 8 * math.sin(math.pi * phase) + rng.uniform(-2, 2)
        t += rng.uniform(105, 160)
        ev.append({"sid":sid,"uid":uid,"kind":"pointermove","timestamp":t,"x":round(x),"y":round(y)})
    t += rng.uniform(150, 300)
    ev.append({"sid":sid,"uid":uid,"kind":"click","timestamp":t,"x":round(x),"y":round(y)})
    ev.append({"sid":sid,"uid":uid,"kind":"focusin","timestamp":t+5,"targetTag":"INPUT"})
    t = _type_digits(ev, sid, uid, t + 400, rng, typo_every=5)
    # reading pause before submitting
    t += rng.uniform(6000, 7500)
    ev.append({"sid":sid,"uid":uid,"kind":"focusout","timestamp":t,"targetTag":"INPUT"})
    for i in range(8):
        t += rng.uniform(110, 180)
        x += rng.uniform(3, 9); y += rng.uniform(4, 10)
        ev.append({"sid":sid,"uid":uid,"kind":"pointermove","timestamp":t,"x":round(x),"y":round(y)})
    ev.append({"sid":sid,"uid":uid,"kind":"click","timestamp":t+200,"x":round(x),"y":round(y)})
    return ev


def skimmer(uid="anonymous-user", sid="s_skimmer", t0=0.0, seed=None) -> List[Dict]:
    """Scroll bursts with long idle stretches and no typing."""
    rng = _rng(seed); ev=[]; t=t0; offset=0
    for burst in range(6):
        for i in range(rng.randint(3, 7)):
            t += rng.uniform(40, 90)
            offset += rng.randint(120, 240)
            ev.append({"sid":sid,"uid":uid,"kind":"scroll","timestamp":t,"scrollOffset":offset})
        for i in range(4):
            t += rng.uniform(100, 140)
            ev.append({"sid":sid,"uid":uid,"kind":"pointermove","timestamp":t,
                       "x":500+rng.randint(-5,5),"y":350+rng.randint(-5,5)})
        t += rng.uniform(6000, 9000)  # reading
    return ev


def scripted_bot(uid="111111111111", sid="s_bot", t0=0.0, seed=None) -> List[Dict]:
    """Perfectly straight, constant-speed motion and metronome typing."""
    rng = _rng(seed); ev=[]; t=t0
    for i in range(20):
        t += 100.0
        ev.append({"sid":sid,"uid":uid,"kind":"pointermove","timestamp":t,"x":100+20*i,"y":100+10*i})
    ev.append({"sid":sid,"uid":uid,"kind":"click","timestamp":t+1,"x":480,"y":290})
    ev.append({"sid":sid,"uid":uid,"kind":"focusin","timestamp":t+2,"targetTag":"INPUT"})
    t = _type_digits(ev, sid, uid, t + 3, rng, hold=(10, 10), gap=(20, 20))
    ev.append({"sid":sid,"uid":uid,"kind":"focusout","timestamp":t,"targetTag":"INPUT"})
    ev.append({"sid":sid,"uid":uid,"kind":"click","timestamp":t+1,"x":480,"y":320})
    return ev
