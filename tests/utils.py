"""Fixtures and helpers for lottery tests."""
from __future__ import annotations

import json
from itertools import combinations
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from lottery import Applicant, Show, index_shows

ShowRow = Tuple[str, str, str, int]


def make_shows(rows: Iterable[ShowRow]) -> List[Show]:
    return [Show(id=sid, time_slot=slot, play=play, capacity=cap) for sid, slot, play, cap in rows]


def make_applicants(orders: Dict[str, Sequence[Optional[str]]], max_orders: int) -> List[Applicant]:
    persons = []
    for pid, prefs in orders.items():
        padded = list(prefs)[:max_orders] + [None] * max(0, max_orders - len(prefs))
        persons.append(Applicant(id=pid, preferences=padded))
    return persons


def assert_invariants(persons: Sequence[Applicant], shows: Sequence[Show]) -> None:
    """Capacity, conflict and two-sided consistency must hold after any draw."""
    by_id = index_shows(shows)
    for show in shows:
        assert len(show.holders) <= show.capacity, show.id
    for person in persons:
        for a, b in combinations(sorted(person.wins), 2):
            assert by_id[a].time_slot != by_id[b].time_slot, (person.id, a, b)
            assert by_id[a].play != by_id[b].play, (person.id, a, b)
    pairs_from_people = {(p.id, sid) for p in persons for sid in p.wins}
    pairs_from_shows = {(pid, s.id) for s in shows for pid in s.holders}
    assert pairs_from_people == pairs_from_shows


def snapshot(persons: Sequence[Applicant], shows: Sequence[Show]):
    return (
        {p.id: sorted(p.wins) for p in persons},
        {s.id: sorted(s.holders) for s in shows},
    )


def write_inputs(
    input_dir: Path,
    *,
    settings: dict,
    shows: Iterable[ShowRow],
    orders: Dict[str, Sequence[str]],
    vacancy: Optional[Iterable[str]] = None,
) -> Path:
    """Write settings.json / theaters.tsv / orders.tsv (+ vacancy list) into ``input_dir``."""
    input_dir.mkdir(parents=True, exist_ok=True)
    (input_dir / "settings.json").write_text(json.dumps(settings), encoding="utf-8")
    (input_dir / "theaters.tsv").write_text(
        "\n".join("\t".join([sid, slot, play, str(cap)]) for sid, slot, play, cap in shows) + "\n",
        encoding="utf-8",
    )
    (input_dir / "orders.tsv").write_text(
        "\n".join("\t".join([pid, *prefs]) for pid, prefs in orders.items()) + "\n",
        encoding="utf-8",
    )
    if vacancy is not None:
        (input_dir / "vacancy_candidates.txt").write_text("\n".join(vacancy) + "\n", encoding="utf-8")
    return input_dir


def read_tsv_rows(path: Path) -> List[List[str]]:
    text = path.read_text(encoding="utf-8")
    return [line.split("\t") for line in text.splitlines() if line]
