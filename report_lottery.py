#!/usr/bin/env python3
"""Summarize how well the lottery honoured everyone's orders.

Reads the orders and the per-applicant result and emits a per-applicant CSV
plus a plaintext recap: how many shows each applicant won, at which choice
ranks, whether they got their first choice, and how many seats came from the
vacancy pass (shows they never asked for). Only the first maxOrders columns of
an order count as ranked choices, as in the draw itself; the cut comes from
--max-orders or, failing that, the settings file.
"""

from __future__ import annotations

import argparse
import csv
import sys
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import lottery_io
from lottery import LotteryInputError, build_config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate a per-applicant lottery report", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--orders", default=Path("input") / "orders.tsv", type=Path, help="Orders TSV fed to run_lottery.py")
    ap.add_argument("--individual", default=Path("output") / "individual.tsv", type=Path, help="Per-applicant result written by run_lottery.py")
    ap.add_argument("--settings", default=Path("input") / "settings.json", type=Path, help="settings.json whose maxOrders cuts each order (optional)")
    ap.add_argument("--max-orders", type=int, default=None, help="Ranked choices per applicant; overrides --settings")
    ap.add_argument("--vacancy", default=Path("input") / "vacancy_candidates.txt", type=Path, help="Vacancy opt-in list (optional)")
    ap.add_argument("--out", default=Path("reports") / "lottery_report.csv", type=Path, help="Where to write the per-applicant CSV report")
    ap.add_argument("--summary", default=Path("reports") / "lottery_report.txt", type=Path, help="Plaintext summary (set to '-' to skip)")
    ap.add_argument("--plots-bars", default="", help="Optional PNG with the win-count histogram")
    ap.add_argument("--plots-lorenz", default="", help="Optional PNG with the Lorenz-like win distribution")
    return ap.parse_args(argv)


def resolve_max_orders(max_orders: Optional[int], settings: Path) -> Optional[int]:
    """The flag wins, then settings.json; with neither every column counts."""
    if max_orders is not None:
        return build_config({"maxOrders": max_orders})["maxOrders"]
    if not settings.exists():
        lottery_io.warn(f"Optional file not found: {settings}; every order column counts as a choice")
        return None
    return lottery_io.load_settings(settings)["maxOrders"]


def load_orders(path: Path, max_orders: Optional[int] = None) -> Dict[str, List[str]]:
    """Applicant id → requested show ids in rank order (gaps kept as '')."""
    orders: Dict[str, List[str]] = {}
    for cols in lottery_io.read_tsv(path):
        pid = lottery_io.trim(cols[0])
        if pid:
            prefs = cols[1:] if max_orders is None else cols[1:max_orders + 1]
            orders[pid] = [lottery_io.trim(c) for c in prefs]
    return orders


def build_report(
    orders: Dict[str, List[str]],
    results: Dict[str, List[str]],
    opted_in: Optional[Set[str]] = None,
) -> List[Dict[str, object]]:
    opted_in = opted_in or set()
    report: List[Dict[str, object]] = []
    for person in sorted(set(orders) | set(results)):
        prefs = orders.get(person, [])
        won = sorted(results.get(person, []))
        ranks = sorted(prefs.index(sid) + 1 for sid in won if sid in prefs)
        vacancy = sum(1 for sid in won if sid not in prefs)
        report.append(
            {
                "Applicant": person,
                "Wins": len(won),
                "Shows": " ".join(won),
                "RanksWon": " ".join(str(r) for r in ranks),
                "BestRank": ranks[0] if ranks else "",
                "FirstChoice": "YES" if 1 in ranks else "NO",
                "VacancyWins": vacancy,
                "Requested": sum(1 for sid in prefs if sid),
                "OptedIn": "YES" if person in opted_in else "NO",
            }
        )
    return report


def win_distribution(rows: Iterable[Dict[str, object]]) -> Dict[int, int]:
    return dict(sorted(Counter(int(row["Wins"]) for row in rows).items()))


def write_report(rows: List[Dict[str, object]], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = ["Applicant", "Wins", "Shows", "RanksWon", "BestRank", "FirstChoice", "VacancyWins", "Requested", "OptedIn"]
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def write_summary(rows: List[Dict[str, object]], path: Path) -> None:
    if str(path) == "-":
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["Lottery report"]
    if not rows:
        lines.append("No applicants found.")
    else:
        lines.append(f"Applicants: {len(rows)} (total wins={sum(int(r['Wins']) for r in rows)})")
        dist = win_distribution(rows)
        lines.append("Win distribution: " + ", ".join(f"{k} win(s)={v}" for k, v in dist.items()))
        requested = [r for r in rows if int(r["Requested"]) > 0]
        first = sum(1 for r in requested if r["FirstChoice"] == "YES")
        if requested:
            lines.append(f"First choice granted: {first}/{len(requested)} ({100.0 * first / len(requested):.1f}%)")
        empty = [str(r["Applicant"]) for r in requested if int(r["Wins"]) == 0]
        lines.append(f"Requested but won nothing: {len(empty)}" + (f" ({', '.join(empty)})" if empty else ""))
        vacancy = sum(int(r["VacancyWins"]) for r in rows)
        if vacancy:
            lines.append(f"Seats filled by the vacancy pass: {vacancy}")
        opted = [r for r in rows if r.get("OptedIn") == "YES"]
        if opted:
            filled = sum(1 for r in opted if int(r["VacancyWins"]) > 0)
            lines.append(f"Opted-in applicants who filled seats: {filled}/{len(opted)}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def write_plots(rows: List[Dict[str, object]], bars: str, lorenz: str) -> None:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    if bars:
        dist = win_distribution(rows)
        plt.figure(figsize=(6, 4))
        plt.bar([str(k) for k in dist], list(dist.values()))
        plt.xlabel("Shows won")
        plt.ylabel("Applicants")
        plt.title("Wins per applicant")
        plt.tight_layout()
        plt.savefig(bars, dpi=160)
        plt.close('all')

    if lorenz:
        xs = sorted(int(r["Wins"]) for r in rows)
        cum = [0.0]; s = 0.0
        for v in xs: s += v; cum.append(s)
        if s > 0: cum = [c/s for c in cum]
        plt.figure(figsize=(6, 5))
        plt.plot([i/max(len(xs), 1) for i in range(len(cum))], cum, marker='o')
        plt.plot([0,1],[0,1],'--')
        plt.xlabel("Fraction of applicants (sorted)")
        plt.ylabel("Fraction of seats won")
        plt.title("Seat distribution (Lorenz-like)")
        plt.tight_layout()
        plt.savefig(lorenz, dpi=160)
        plt.close('all')


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        max_orders = resolve_max_orders(args.max_orders, args.settings)
        orders = load_orders(args.orders, max_orders)
        results = lottery_io.read_assignment_tsv(args.individual)
        opted_in = lottery_io.load_vacancy_ids(args.vacancy)
    except LotteryInputError as e:
        raise SystemExit(f"error: {e}")
    rows = build_report(orders, results, opted_in)
    write_report(rows, args.out)
    write_summary(rows, args.summary)
    print(f"Wrote report to {args.out}")
    if str(args.summary) != "-":
        print(f"Summary saved to {args.summary}")
    if args.plots_bars or args.plots_lorenz:
        try:
            write_plots(rows, args.plots_bars, args.plots_lorenz)
            print(f"Wrote plots → {args.plots_bars or '-'} and {args.plots_lorenz or '-'}", file=sys.stderr)
        except Exception as e:
            print(f"[warn] Could not produce plots: {e}", file=sys.stderr)


if __name__ == "__main__":
    main()
