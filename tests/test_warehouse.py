"""
Warehouse Tests

Saving simulation batches to SQLite and reading them back with pandas.
"""

import pandas as pd
import pytest

from engine.simulation import RunRecord, SimulationBatch, run_simulation, summarize_runs
from warehouse.loader import (
    export_runs_csv, list_batches, load_run_records, load_summaries, save_batch,
)
from warehouse.schema import create_tables, table_counts


@pytest.fixture(scope="module")
def batch():
    return run_simulation(runs_per_hero=2, heroes=["warrior", "mage"], seed=13)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "sim.db"


class TestSchema:

    def test_create_tables_is_idempotent(self, db_path):
        create_tables(db_path)
        create_tables(db_path)
        assert table_counts(db_path) == {"simulation_batches": 0, "run_records": 0, "hero_summaries": 0}


class TestLoader:

    def test_save_and_load(self, batch, db_path):
        batch_id = save_batch(batch, db_path)
        assert table_counts(db_path) == {"simulation_batches": 1, "run_records": 4, "hero_summaries": 2}

        runs = load_run_records(batch_id, db_path=db_path)
        assert isinstance(runs, pd.DataFrame)
        assert len(runs) == 4
        assert runs["won"].dtype == bool
        expected = {(r.hero_key, r.run_index, r.floors_cleared) for rs in batch.records.values() for r in rs}
        assert set(zip(runs["hero_key"], runs["run_index"], runs["floors_cleared"])) == expected

    def test_filter_by_hero(self, batch, db_path):
        batch_id = save_batch(batch, db_path)
        mage = load_run_records(batch_id, hero_key="mage", db_path=db_path)
        assert list(mage["hero_key"].unique()) == ["mage"]

    def test_summaries_round_trip(self, batch, db_path):
        batch_id = save_batch(batch, db_path)
        summaries = load_summaries(batch_id, db_path)
        assert list(summaries["hero_key"]) == ["mage", "warrior"]
        warrior = summaries[summaries["hero_key"] == "warrior"].iloc[0]
        assert warrior["win_rate"] == pytest.approx(batch.summaries["warrior"].win_rate)
        assert warrior["deaths_by_floor"] == batch.summaries["warrior"].deaths_by_floor

    def test_death_floors_come_back_as_ints(self, db_path):
        records = [
            RunRecord("mage", i, False, floors, 10, floors + 1, "defeat", 0, 0, 0, 0)
            for i, floors in enumerate([4, 4, 9])
        ]
        summary = summarize_runs("mage", records)
        batch = SimulationBatch(1, 3, {}, {"mage": records}, {"mage": summary})
        batch_id = save_batch(batch, db_path)
        loaded = load_summaries(batch_id, db_path).iloc[0]["deaths_by_floor"]
        assert loaded == {5: 2, 10: 1}

    def test_batches_are_listed(self, batch, db_path):
        first = save_batch(batch, db_path)
        second = save_batch(batch, db_path)
        listed = list_batches(db_path)
        assert set(listed["batch_id"]) == {first, second}
        assert list(listed["seed"]) == [13, 13]
        assert len(load_run_records(db_path=db_path)) == 8

    def test_csv_export(self, batch, db_path, tmp_path):
        batch_id = save_batch(batch, db_path)
        out = tmp_path / "exports" / "runs.csv"
        assert export_runs_csv(out, batch_id=batch_id, db_path=db_path) == 4
        frame = pd.read_csv(out)
        assert len(frame) == 4
        assert "total_turns" in frame.columns


class TestCommandLine:

    def test_save_and_export(self, tmp_path, capsys):
        from scripts.run_simulation import main

        db = tmp_path / "cli.db"
        out = tmp_path / "runs.csv"
        batch = main(["--runs", "2", "--hero", "paladin", "--seed", "8", "--db", str(db), "--csv", str(out)])
        assert batch.summaries["paladin"].runs == 2
        assert table_counts(db)["run_records"] == 2
        assert len(pd.read_csv(out)) == 2
        assert "Saved batch" in capsys.readouterr().out
