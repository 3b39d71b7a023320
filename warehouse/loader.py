"""
Batch loader: writes simulation batches into the database and reads them back.

Run records go through pandas both ways, so a saved batch comes back as a
DataFrame ready for groupby / plotting / CSV export.

Usage:
    python -m warehouse.loader
"""

import json
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from engine.balance import DEFAULT_BALANCE, BalanceConfig
from engine.simulation import SimulationBatch
from warehouse.schema import create_tables, get_connection


def records_frame(batch: SimulationBatch) -> pd.DataFrame:
    """Every run of the batch as one row."""
    rows = [r.to_dict() for records in batch.records.values() for r in records]
    return pd.DataFrame(rows)


def summaries_frame(batch: SimulationBatch) -> pd.DataFrame:
    rows = []
    for s in batch.summaries.values():
        row = s.to_dict()
        row["deaths_by_floor"] = json.dumps(s.deaths_by_floor)
        rows.append(row)
    return pd.DataFrame(rows)


def save_batch(
    batch: SimulationBatch,
    db_path: str | Path | None = None,
    balance: BalanceConfig = DEFAULT_BALANCE,
) -> str:
    """Store a batch with all its runs and summaries. Returns the new batch_id."""
    create_tables(db_path)
    batch_id = uuid.uuid4().hex[:12]
    conn = get_connection(db_path)
    try:
        conn.execute("""
            INSERT INTO simulation_batches
            (batch_id, created_at, seed, runs_per_hero, options, formulas, turn_cap, elapsed_seconds)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            batch_id,
            datetime.now(timezone.utc).isoformat(),
            batch.seed,
            batch.runs_per_hero,
            json.dumps(batch.options),
            json.dumps(asdict(balance.formulas)),
            balance.turn_cap,
            batch.elapsed_seconds,
        ))

        runs = records_frame(batch)
        if not runs.empty:
            runs.insert(0, "batch_id", batch_id)
            runs["won"] = runs["won"].astype(int)
            runs.to_sql("run_records", conn, if_exists="append", index=False)

        summaries = summaries_frame(batch)
        if not summaries.empty:
            summaries.insert(0, "batch_id", batch_id)
            for col in ("win_rate_in_band", "turns_in_band"):
                summaries[col] = summaries[col].astype(int)
            summaries.to_sql("hero_summaries", conn, if_exists="append", index=False)

        conn.commit()
    finally:
        conn.close()
    return batch_id


def list_batches(db_path: str | Path | None = None) -> pd.DataFrame:
    conn = get_connection(db_path)
    try:
        return pd.read_sql_query(
            "SELECT batch_id, created_at, seed, runs_per_hero, options, turn_cap, elapsed_seconds "
            "FROM simulation_batches ORDER BY created_at",
            conn,
        )
    finally:
        conn.close()


def load_run_records(
    batch_id: str | None = None,
    hero_key: str | None = None,
    db_path: str | Path | None = None,
) -> pd.DataFrame:
    """Run records, optionally narrowed to one batch and/or one hero."""
    query = "SELECT * FROM run_records"
    clauses, params = [], []
    if batch_id:
        clauses.append("batch_id = ?")
        params.append(batch_id)
    if hero_key:
        clauses.append("hero_key = ?")
        params.append(hero_key)
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY batch_id, hero_key, run_index"

    conn = get_connection(db_path)
    try:
        df = pd.read_sql_query(query, conn, params=params)
    finally:
        conn.close()
    df["won"] = df["won"].astype(bool)
    return df


def load_summaries(batch_id: str, db_path: str | Path | None = None) -> pd.DataFrame:
    conn = get_connection(db_path)
    try:
        df = pd.read_sql_query(
            "SELECT * FROM hero_summaries WHERE batch_id = ? ORDER BY hero_key", conn, params=[batch_id]
        )
    finally:
        conn.close()
    # JSON object keys are strings; floors go back to ints
    df["deaths_by_floor"] = df["deaths_by_floor"].map(lambda text: {int(k): v for k, v in json.loads(text).items()})
    return df


def export_runs_csv(path: str | Path, batch_id: str | None = None, db_path: str | Path | None = None) -> int:
    """Write run records to a CSV file. Returns how many rows were written."""
    df = load_run_records(batch_id=batch_id, db_path=db_path)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return len(df)


if __name__ == "__main__":
    from warehouse.schema import table_counts

    create_tables()
    print("Current database state:")
    for table, count in table_counts().items():
        print(f"  {table}: {count} rows")

    batches = list_batches()
    if batches.empty:
        print("\nNo batches yet. Run: python -m scripts.run_simulation --save")
    else:
        print(f"\n{len(batches)} saved batches:")
        print(batches.to_string(index=False))
