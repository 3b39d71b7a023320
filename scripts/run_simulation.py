"""
CLI tool to run a balance batch.
Usage:
    python -m scripts.run_simulation --runs 500 --seed 42
    python -m scripts.run_simulation --hero mage --auto-skill --save --csv data/mage.csv
    python -m scripts.run_simulation --balance tuned.json --workers 4
"""

import argparse
import logging

from engine.balance import DEFAULT_BALANCE, load_balance
from engine.settings import load_settings
from engine.simulation import print_report, run_simulation
from warehouse.loader import export_runs_csv, save_batch


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Simulate full runs and report balance stats")
    parser.add_argument("--runs", type=int, default=settings.runs_per_hero, help="runs per hero")
    parser.add_argument("--hero", action="append", dest="heroes", help="hero key (repeatable, default all)")
    parser.add_argument("--seed", type=int, default=settings.seed)
    parser.add_argument("--workers", type=int, default=settings.workers)
    parser.add_argument("--elite-chance", type=float, default=0.0)
    parser.add_argument("--auto-skill", action="store_true", help="let the hero fire skills when charged")
    parser.add_argument("--detonate", action="store_true", help="special tiles explode when matched")
    parser.add_argument("--balance", help="JSON file with formula overrides")
    parser.add_argument("--save", action="store_true", help="store the batch in the database")
    parser.add_argument("--db", default=str(settings.db_path))
    parser.add_argument("--csv", help="export this batch's run records to a CSV file (implies --save)")
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    balance = load_balance(args.balance) if args.balance else DEFAULT_BALANCE
    batch = run_simulation(
        runs_per_hero=args.runs,
        heroes=args.heroes,
        seed=args.seed,
        workers=args.workers,
        balance=balance,
        elite_chance=args.elite_chance,
        auto_skill=args.auto_skill,
        detonate_specials=args.detonate,
    )
    print_report(batch, balance)

    if args.save or args.csv:
        batch_id = save_batch(batch, args.db, balance)
        print(f"\nSaved batch {batch_id} to {args.db}")
        if args.csv:
            rows = export_runs_csv(args.csv, batch_id=batch_id, db_path=args.db)
            print(f"Exported {rows} run records to {args.csv}")
    return batch


if __name__ == "__main__":
    main()
