#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Input loading + validation and result writing for the seat lottery.

Inputs (input dir):
  - settings.json            maxOrders, enableVacancy, seed, strictPreferences
  - theaters.tsv             ShowId <TAB> TimeSlot <TAB> Play <TAB> Capacity
  - orders.tsv               ApplicantId <TAB> 1st choice <TAB> 2nd choice ...
  - vacancy_candidates.txt   (optional) one applicant id per line

Outputs (output dir):
  - individual.tsv           ApplicantId <TAB> won show ids (sorted)
  - class.tsv                ShowId <TAB> holder ids (sorted)

Notes
  * Duplicate applicant or show ids abort the run before anything is drawn.
  * A missing vacancy list is not an error; it just disables the vacancy pass.
"""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from lottery import Applicant, LotteryInputError, Show, build_config

SETTINGS_FILE = "settings.json"
ORDERS_FILE = "orders.tsv"
THEATERS_FILE = "theaters.tsv"
VACANCY_CANDIDATES_FILE = "vacancy_candidates.txt"
INDIVIDUAL_RESULT_FILE = "individual.tsv"
CLASS_RESULT_FILE = "class.tsv"


def trim(s: str) -> str:
    return (s or "").strip()


def warn(msg: str) -> None:
    print(f"[warn] {msg}", file=sys.stderr)

# -------- Raw readers --------

def read_text(path: Path) -> str:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise LotteryInputError(f"Could not read {path}: {e.strerror or e}") from e
    return raw.decode("utf-8-sig", errors="replace")


def read_lines(path: Path, optional: bool = False) -> List[str]:
    """Non-empty lines of a text file; an absent optional file yields []."""
    if optional and not path.exists():
        warn(f"Optional file not found: {path}")
        return []
    return [line for line in re.split(r"\r\n|\n", read_text(path).strip()) if line]


def read_tsv(path: Path) -> List[List[str]]:
    return [line.split("\t") for line in read_lines(path)]


def load_settings(path: Path, overrides: dict | None = None) -> dict:
    try:
        data = json.loads(read_text(path))
    except json.JSONDecodeError as e:
        raise LotteryInputError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise LotteryInputError(f"{path} must contain a JSON object")
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return build_config(data)

# -------- Validation --------

def find_duplicates(values: Sequence[str]) -> List[str]:
    """Values seen more than once, each listed once in order of first repeat."""
    seen: Set[str] = set()
    dups: List[str] = []
    for v in values:
        if v in seen and v not in dups:
            dups.append(v)
        seen.add(v)
    return dups


def parse_capacity(raw: str, show_id: str) -> int:
    value = trim(raw)
    if not (value.isascii() and value.isdigit()):
        raise LotteryInputError(f"Show '{show_id}' has an invalid capacity: '{raw}'")
    return int(value)


def load_shows(path: Path) -> List[Show]:
    rows = read_tsv(path)
    ids = [trim(cols[0]) for cols in rows]
    dups = find_duplicates(ids)
    if dups:
        raise LotteryInputError(f"{path.name} contains duplicate show ids ({', '.join(dups)})")

    shows: List[Show] = []
    for cols in rows:
        if len(cols) < 4:
            raise LotteryInputError(f"{path.name}: expected 4 columns for show '{trim(cols[0])}', got {len(cols)}")
        sid = trim(cols[0])
        shows.append(Show(id=sid, time_slot=trim(cols[1]), play=trim(cols[2]),
                          capacity=parse_capacity(cols[3], sid)))
    return shows


def load_applicants(path: Path, max_orders: int, show_ids: Set[str], strict: bool = False) -> List[Applicant]:
    rows = read_tsv(path)
    ids = [trim(cols[0]) for cols in rows]
    dups = find_duplicates(ids)
    if dups:
        raise LotteryInputError(f"{path.name} contains duplicate applicant ids ({', '.join(dups)})")

    persons: List[Applicant] = []
    for cols in rows:
        pid = trim(cols[0])
        prefs: List[Optional[str]] = []
        for i in range(1, max_orders + 1):
            sid = trim(cols[i]) if i < len(cols) else ""
            if sid and sid not in show_ids:
                if strict:
                    raise LotteryInputError(
                        f"Applicant {pid} requested show '{sid}' which is not listed in {THEATERS_FILE}")
                warn(f"Applicant {pid} requested unknown show '{sid}' (choice {i}); it can never be won")
            prefs.append(sid or None)
        persons.append(Applicant(id=pid, preferences=prefs))
    return persons


def load_vacancy_ids(path: Path, persons: Iterable[Applicant] = ()) -> Set[str]:
    ids = {trim(line) for line in read_lines(path, optional=True) if trim(line)}
    known = {p.id for p in persons}
    if known:
        unknown = sorted(ids - known)
        if unknown:
            warn(f"{path.name} lists ids with no order: {', '.join(unknown)}")
    return ids


def load_inputs(input_dir: Path, overrides: dict | None = None) -> dict:
    """Read and validate every input; raises LotteryInputError before any draw."""
    cfg = load_settings(input_dir / SETTINGS_FILE, overrides)
    shows = load_shows(input_dir / THEATERS_FILE)
    persons = load_applicants(input_dir / ORDERS_FILE, cfg["maxOrders"], {s.id for s in shows},
                              strict=cfg["strictPreferences"])
    vacancy_ids: Set[str] = set()
    if cfg["enableVacancy"]:
        vacancy_ids = load_vacancy_ids(input_dir / VACANCY_CANDIDATES_FILE, persons)
    return {"config": cfg, "shows": shows, "persons": persons, "vacancy_ids": vacancy_ids}

# -------- Writers --------

def format_rows(assignments: Dict[str, List[str]]) -> str:
    return "\n".join("\t".join([key, *sorted(values)]) for key, values in sorted(assignments.items()))


def write_results(output_dir: Path, persons: Sequence[Applicant], shows: Sequence[Show]) -> Dict[str, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    individual = output_dir / INDIVIDUAL_RESULT_FILE
    klass = output_dir / CLASS_RESULT_FILE
    individual.write_text(format_rows({p.id: list(p.wins) for p in persons}), encoding="utf-8")
    klass.write_text(format_rows({s.id: list(s.holders) for s in shows}), encoding="utf-8")
    return {"individual": individual, "class": klass}


def read_assignment_tsv(path: Path) -> Dict[str, List[str]]:
    """Inverse of ``format_rows``; used by the report and graph scripts."""
    out: Dict[str, List[str]] = {}
    for cols in read_tsv(path):
        key = trim(cols[0])
        if key:
            out[key] = [trim(c) for c in cols[1:] if trim(c)]
    return out
