"""
Database schema for simulation history.
Every balance batch gets saved so runs from different tunings can be compared.

Three tables, linked by batch_id:
  simulation_batches: one row per batch (seed, options, formula constants)
  run_records:        one row per simulated run
  hero_summaries:     one row per hero per batch (the aggregated numbers)

Usage:
    python -m warehouse.schema
"""

import sqlite3
from pathlib import Path

from engine.settings import load_settings


def default_db_path() -> Path:
    return load_settings().db_path


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Get a connection to the database. Creates the file if it doesn't exist."""
    path = Path(db_path) if db_path else default_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def create_tables(db_path: str | Path | None = None):
    """Create all tables. Safe to run multiple times, existing rows stay."""
    conn = get_connection(db_path)
    c = conn.cursor()

    # ─── BATCHES ───
    c.execute("""
        CREATE TABLE IF NOT EXISTS simulation_batches (
            batch_id        TEXT PRIMARY KEY,
            created_at      TEXT,
            seed            INTEGER,
            runs_per_hero   INTEGER,
            options         TEXT,       -- JSON: elite_chance, auto_skill, detonate_specials
            formulas        TEXT,       -- JSON: formula constants the batch ran with
            turn_cap        INTEGER,
            elapsed_seconds REAL
        )
    """)

    # ─── RUN RECORDS ───
    c.execute("""
        CREATE TABLE IF NOT EXISTS run_records (
            batch_id        TEXT NOT NULL,
            hero_key        TEXT NOT NULL,
            run_index       INTEGER NOT NULL,
            won             INTEGER,
            floors_cleared  INTEGER,
            total_turns     INTEGER,
            combats         INTEGER,
            final_outcome   TEXT,       -- "victory", "defeat", "turn_cap"
            hero_hp_remaining INTEGER,
            gold            INTEGER,
            potions_left    INTEGER,
            potions_used    INTEGER,
            PRIMARY KEY (batch_id, hero_key, run_index),
            FOREIGN KEY (batch_id) REFERENCES simulation_batches(batch_id)
        )
    """)

    # ─── HERO SUMMARIES ───
    c.execute("""
        CREATE TABLE IF NOT EXISTS hero_summaries (
            batch_id        TEXT NOT NULL,
            hero_key        TEXT NOT NULL,
            runs            INTEGER,
            wins            INTEGER,
            win_rate        REAL,
            avg_floors      REAL,
            avg_turns       REAL,
            avg_turns_per_combat REAL,
            turn_cap_losses INTEGER,
            deaths_by_floor TEXT,       -- JSON: {floor: deaths}
            win_rate_in_band INTEGER,
            turns_in_band   INTEGER,
            PRIMARY KEY (batch_id, hero_key),
            FOREIGN KEY (batch_id) REFERENCES simulation_batches(batch_id)
        )
    """)

    conn.commit()
    conn.close()


def table_counts(db_path: str | Path | None = None) -> dict:
    """Quick check: how many rows are in each table?"""
    conn = get_connection(db_path)
    counts = {}
    for table in ("simulation_batches", "run_records", "hero_summaries"):
        try:
            counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        except sqlite3.OperationalError:
            counts[table] = "TABLE NOT FOUND"
    conn.close()
    return counts


if __name__ == "__main__":
    create_tables()
    print(f"Database location: {default_db_path()}")
    print("\nRow counts:")
    for table, count in table_counts().items():
        print(f"  {table}: {count}")
