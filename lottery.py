#!/usr/bin/env python3
"""Seat lottery core.

Applicants rank up to ``maxOrders`` shows; each show has a capacity, a time
slot and a play. The lottery hands out seats round by round:

* round ``rank`` only considers applicants whose ``rank``-th choice is the show
* applicants with fewer wins so far are served first (fairness buckets)
* ties inside a bucket are broken by a seeded Fisher–Yates shuffle
* nobody may hold two shows in the same time slot or of the same play

An optional vacancy pass then re-offers leftover seats to an opt-in list of
applicants, ignoring preferences altogether.

Everything here is in-memory; reading TSVs and writing results lives in
``lottery_io.py`` and the CLI in ``run_lottery.py``.
"""

from __future__ import annotations

import copy
import csv
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

T = TypeVar("T")

# =============== CONFIG ===============================================
DEFAULT_CONFIG = {
    "maxOrders": None,          # required, length of every preference list
    "enableVacancy": False,     # run the opt-in vacancy pass after the main lottery
    "seed": None,               # None -> generated from the clock and reported
    "strictPreferences": False, # reject preference ids missing from theaters.tsv
}


class LotteryInputError(ValueError):
    """Raised for input that must stop the run before any seat is drawn."""


def deep_update(dst: dict, src: dict) -> dict:
    """Recursively merge ``src`` into ``dst`` (in-place)."""

    for key, value in (src or {}).items():
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            deep_update(dst[key], value)
        else:
            dst[key] = copy.deepcopy(value)
    return dst


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def build_config(overrides: dict | None = None) -> dict:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if overrides:
        deep_update(cfg, overrides)

    max_orders = cfg.get("maxOrders")
    if not _is_int(max_orders) or max_orders < 1:
        raise LotteryInputError(f"maxOrders must be a positive integer (got {max_orders!r})")
    seed = cfg.get("seed")
    if seed is not None and not _is_int(seed):
        raise LotteryInputError(f"seed must be an integer (got {seed!r})")
    cfg["enableVacancy"] = bool(cfg.get("enableVacancy"))
    cfg["strictPreferences"] = bool(cfg.get("strictPreferences"))
    return cfg


def resolve_seed(seed: Optional[int], now: Callable[[], float] = time.time) -> Tuple[int, bool]:
    """Return ``(seed, generated)``; a missing seed is taken from the clock in ms."""
    if seed is not None:
        return int(seed), False
    return int(now() * 1000), True

# ------------------------ Model types --------------------------------

@dataclass
class Applicant:
    id: str
    preferences: List[Optional[str]]
    wins: Set[str] = field(default_factory=set)


@dataclass
class Show:
    id: str
    time_slot: str
    play: str
    capacity: int
    holders: Set[str] = field(default_factory=set)

    @property
    def remaining(self) -> int:
        return self.capacity - len(self.holders)

    @property
    def is_full(self) -> bool:
        return len(self.holders) >= self.capacity

# ------------------------ Random source -------------------------------

_MASK32 = 0xFFFFFFFF


def _int32(value: int) -> int:
    value &= _MASK32
    return value - 0x100000000 if value & 0x80000000 else value


class XorShiftRandom:
    """xorshift128 over signed 32-bit words; ``next()`` returns a float in [0, 1)."""

    def __init__(self, seed: int):
        self.seed = seed
        self._x = 123456789
        self._y = 362436069
        self._z = 521288629
        self._w = _int32(seed)

    def next(self) -> float:
        x = self._x
        t = _int32(x ^ _int32(x << 11))
        self._x, self._y, self._z = self._y, self._z, self._w
        w = self._w
        self._w = _int32(w ^ (w >> 19) ^ (t ^ (t >> 8)))
        return (self._w & _MASK32) / 4294967296

    __call__ = next

# ------------------------ Lottery primitives --------------------------

def shuffled(items: Sequence[T], random: Callable[[], float]) -> List[T]:
    """Fisher–Yates shuffle of a copy of ``items``."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = int(random() * (i + 1))
        out[i], out[j] = out[j], out[i]
    return out


def group_by_win_count(entities: Iterable[Applicant]) -> Tuple[Dict[int, List[Applicant]], List[int]]:
    groups: Dict[int, List[Applicant]] = {}
    for person in entities:
        groups.setdefault(len(person.wins), []).append(person)
    return groups, sorted(groups)


def pick_winners(candidates: Sequence[T], seats: int, random: Callable[[], float]) -> List[T]:
    if len(candidates) <= seats:
        return list(candidates)
    return shuffled(candidates, random)[:seats]


def has_conflict(person: Applicant, show: Show, shows_by_id: Dict[str, Show]) -> bool:
    """True if ``person`` already holds a show in the same time slot or of the same play."""
    for sid in person.wins:
        held = shows_by_id[sid]
        if held.time_slot == show.time_slot or held.play == show.play:
            return True
    return False


def grant(person: Applicant, show: Show) -> None:
    if show.is_full:
        raise RuntimeError(f"Show {show.id} is already full ({show.capacity})")
    show.holders.add(person.id)
    person.wins.add(show.id)


def assign_winners(winners: Iterable[Applicant], show: Show) -> None:
    for person in winners:
        grant(person, show)

# ------------------------ Draw log ------------------------------------

DRAW_LOG_FIELDS = ["Step", "Phase", "Rank", "Show", "WinCount", "Candidates", "Seats", "Winners"]


class DrawLogger:
    def __init__(self):
        self.step = 0
        self.rows: List[dict] = []

    def log(self, phase: str, rank: Optional[int], show: Show, win_count: int,
            candidates: Sequence[Applicant], seats: int, winners: Sequence[Applicant]):
        self.step += 1
        self.rows.append({
            "Step": self.step, "Phase": phase,
            "Rank": "" if rank is None else rank + 1,
            "Show": show.id, "WinCount": win_count,
            "Candidates": len(candidates), "Seats": seats,
            "Winners": " ".join(sorted(p.id for p in winners)),
        })

    def write_csv(self, out: Path):
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=DRAW_LOG_FIELDS)
            w.writeheader()
            for r in self.rows:
                w.writerow(r)

# ------------------------ Engines -------------------------------------

def _eligible(person: Applicant, show: Show, shows_by_id: Dict[str, Show], rank: Optional[int]) -> bool:
    if rank is not None and person.preferences[rank] != show.id:
        return False
    return show.id not in person.wins and not has_conflict(person, show, shows_by_id)


def fill_show(
    show: Show,
    pool: Sequence[Applicant],
    shows_by_id: Dict[str, Show],
    random: Callable[[], float],
    *,
    rank: Optional[int] = None,
    groups: Optional[Tuple[Dict[int, List[Applicant]], List[int]]] = None,
    log: Optional[DrawLogger] = None,
) -> List[Applicant]:
    """Draw the remaining seats of ``show`` from ``pool``, fewest wins first.

    ``groups`` is a fairness snapshot taken by the caller; when omitted the
    pool is regrouped from its current win counts. ``rank`` restricts the draw
    to applicants whose choice at that rank is this show; ``None`` ignores
    preferences.
    """
    seats = show.remaining
    if seats <= 0:
        return []
    by_count, counts = groups if groups is not None else group_by_win_count(pool)
    phase = "vacancy" if rank is None else "initial"

    granted: List[Applicant] = []
    for count in counts:
        if seats <= 0:
            break
        candidates = [p for p in by_count[count] if _eligible(p, show, shows_by_id, rank)]
        if not candidates:
            continue
        winners = pick_winners(candidates, seats, random)
        assign_winners(winners, show)
        if log is not None:
            log.log(phase, rank, show, count, candidates, seats, winners)
        seats -= len(winners)
        granted.extend(winners)
    return granted


def run_initial_lottery(
    persons: Sequence[Applicant],
    shows: Sequence[Show],
    shows_by_id: Dict[str, Show],
    max_orders: int,
    random: Callable[[], float],
    log: Optional[DrawLogger] = None,
) -> None:
    for rank in range(max_orders):
        if all(show.is_full for show in shows):
            break
        # One snapshot per round: wins granted later in the round do not reorder it.
        snapshot = group_by_win_count(persons)
        for show in shows:
            if show.is_full:
                continue
            fill_show(show, persons, shows_by_id, random, rank=rank, groups=snapshot, log=log)


def run_vacancy_lottery(
    persons: Sequence[Applicant],
    shows: Sequence[Show],
    shows_by_id: Dict[str, Show],
    vacancy_ids: Iterable[str],
    random: Callable[[], float],
    log: Optional[DrawLogger] = None,
) -> None:
    wanted = set(vacancy_ids or ())
    if not wanted:
        return
    candidates = [p for p in persons if p.id in wanted]
    for show in shows:
        if show.is_full:
            continue
        fill_show(show, candidates, shows_by_id, random, log=log)

# ------------------------ Orchestration -------------------------------

def index_shows(shows: Sequence[Show]) -> Dict[str, Show]:
    return {show.id: show for show in shows}


def run_lottery(
    persons: Sequence[Applicant],
    shows: Sequence[Show],
    *,
    max_orders: int,
    seed: int,
    enable_vacancy: bool = False,
    vacancy_ids: Iterable[str] = (),
    log: Optional[DrawLogger] = None,
) -> XorShiftRandom:
    """Run the main lottery and, when enabled, the vacancy pass on one RNG."""
    shows_by_id = index_shows(shows)
    random = XorShiftRandom(seed)
    run_initial_lottery(persons, shows, shows_by_id, max_orders, random, log=log)
    if enable_vacancy:
        run_vacancy_lottery(persons, shows, shows_by_id, vacancy_ids, random, log=log)
    return random


def collect_results(persons: Sequence[Applicant], shows: Sequence[Show]) -> dict:
    return {
        "individual": {p.id: sorted(p.wins) for p in persons},
        "class": {s.id: sorted(s.holders) for s in shows},
        "counts": {s.id: len(s.holders) for s in shows},
    }
