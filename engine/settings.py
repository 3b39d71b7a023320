"""
Runtime settings from the environment (or a .env file in the project root).

    GEM_SIM_RUNS=500
    GEM_SIM_SEED=42
    GEM_SIM_WORKERS=4
    GEM_SIM_DB_PATH=data/gem_sim.db
    GEM_SIM_LOG_LEVEL=DEBUG
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent.parent
load_dotenv(ROOT / ".env")


@dataclass(frozen=True)
class Settings:
    runs_per_hero: int = 200
    seed: int | None = None
    workers: int = 1
    db_path: Path = ROOT / "data" / "gem_sim.db"
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read the GEM_SIM_* variables. Missing ones fall back to the defaults above."""
    seed = os.getenv("GEM_SIM_SEED")
    db_path = os.getenv("GEM_SIM_DB_PATH")
    return Settings(
        runs_per_hero=int(os.getenv("GEM_SIM_RUNS", "200")),
        seed=int(seed) if seed else None,
        workers=max(1, int(os.getenv("GEM_SIM_WORKERS", "1"))),
        db_path=Path(db_path) if db_path else ROOT / "data" / "gem_sim.db",
        log_level=os.getenv("GEM_SIM_LOG_LEVEL", "INFO").upper(),
    )
