#!/usr/bin/env python3
"""Run the seat lottery end to end.

settings.json + theaters.tsv + orders.tsv (+ vacancy_candidates.txt)
  → main lottery by preference rank → optional vacancy pass
  → individual.tsv / class.tsv (+ draw_log.csv)

The seed actually used is always printed so any run can be replayed.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import lottery
import lottery_io


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Draw show seats from ranked orders",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--input-dir", default=Path("input"), type=Path, help="Directory holding settings.json and the TSV inputs")
    ap.add_argument("--output-dir", default=Path("output"), type=Path, help="Where individual.tsv / class.tsv are written")
    ap.add_argument("--seed", type=int, help="Override the seed from settings.json")
    ap.add_argument("--no-vacancy", action="store_true", help="Skip the vacancy pass even if settings enable it")
    ap.add_argument("--strict-preferences", action="store_true",
                    help="Abort when an order names a show missing from theaters.tsv")
    ap.add_argument("--draw-log", type=Path, help="Optional CSV with one row per draw step")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    overrides = {"seed": args.seed}
    if args.no_vacancy:
        overrides["enableVacancy"] = False
    if args.strict_preferences:
        overrides["strictPreferences"] = True

    try:
        inputs = lottery_io.load_inputs(args.input_dir, overrides)
    except lottery.LotteryInputError as e:
        raise SystemExit(f"error: {e}")

    cfg = inputs["config"]
    persons = inputs["persons"]
    shows = inputs["shows"]

    seed, generated = lottery.resolve_seed(cfg["seed"])
    if generated:
        print(f"[info] No seed configured; generated seed {seed}", file=sys.stderr)

    log = lottery.DrawLogger() if args.draw_log else None
    lottery.run_lottery(
        persons,
        shows,
        max_orders=cfg["maxOrders"],
        seed=seed,
        enable_vacancy=cfg["enableVacancy"],
        vacancy_ids=inputs["vacancy_ids"],
        log=log,
    )

    paths = lottery_io.write_results(args.output_dir, persons, shows)
    for show in shows:
        print(show.id, len(show.holders))
    if log is not None:
        log.write_csv(args.draw_log)
        print(f"Wrote draw log → {args.draw_log}")
    print(f"Lottery done (seed={seed}): wrote {paths['individual']} | {paths['class']}")


if __name__ == "__main__":
    main()
