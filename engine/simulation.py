"""
Run Simulator: plays whole 20-floor runs and adds up how they went.

One run = one hero climbing floors 1..20:
  - each floor is one fight (the heuristic plays the board)
  - win -> heal a bit (not after bosses), grow stats, pick up gold and maybe a potion
  - drink a potion when HP drops under 40%
  - lose (or stall past the turn cap) -> the run is over

Do that a few hundred times per hero and you get the balance numbers:
win rate, how far runs get on average, how many turns they take.

Every run has its own random.Random seeded from "{seed}:{hero}:{index}",
so a batch replays exactly from its seed, however many workers run it.

Usage:
    python -m engine.simulation
"""

import logging
import random
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field

from engine.balance import DEFAULT_BALANCE, BalanceConfig
from engine.combat import HeadlessCombatEngine, create_hero
from engine.settings import load_settings

logger = logging.getLogger(__name__)


@dataclass
class RunRecord:
    """How one simulated run went."""
    hero_key: str
    run_index: int
    won: bool
    floors_cleared: int
    total_turns: int
    combats: int
    final_outcome: str        # outcome of the last fight: "victory", "defeat" or "turn_cap"
    hero_hp_remaining: int
    gold: int
    potions_left: int
    potions_used: int

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class HeroSummary:
    hero_key: str
    runs: int
    wins: int
    win_rate: float
    avg_floors: float
    avg_turns: float
    avg_turns_per_combat: float
    turn_cap_losses: int
    deaths_by_floor: dict[int, int] = field(default_factory=dict)
    win_rate_in_band: bool = False
    turns_in_band: bool = False

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class SimulationBatch:
    seed: int
    runs_per_hero: int
    options: dict
    records: dict[str, list[RunRecord]]
    summaries: dict[str, HeroSummary]
    elapsed_seconds: float = 0.0


# ─── ONE RUN ───

def run_rng(seed: int, hero_key: str, index: int) -> random.Random:
    return random.Random(f"{seed}:{hero_key}:{index}")


def simulate_run(
    hero_key: str,
    index: int = 0,
    seed: int = 0,
    balance: BalanceConfig = DEFAULT_BALANCE,
    elite_chance: float = 0.0,
    auto_skill: bool = False,
    detonate_specials: bool = False,
) -> RunRecord:
    rng = run_rng(seed, hero_key, index)
    hero = create_hero(hero_key, balance)
    econ = balance.economy
    f = balance.formulas

    gold = econ.starting_gold
    potions = econ.starting_potions
    potions_used = 0
    floors_cleared = 0
    total_turns = 0
    combats = 0
    outcome = "victory"

    for floor in range(1, balance.total_floors + 1):
        encounter = balance.floor_encounter(floor)
        if encounter.is_boss:
            encounter_type = "boss"
        elif elite_chance > 0 and rng.random() < elite_chance:
            encounter_type = "elite"
        else:
            encounter_type = "normal"

        engine = HeadlessCombatEngine(
            hero, floor, encounter_type, balance, rng,
            detonate_specials=detonate_specials,
            auto_skill=auto_skill,
            record_timeline=False,
        )
        result = engine.run_combat()
        combats += 1
        total_turns += result.turns_played
        hero.current_hp = result.hero_hp_remaining
        gold += result.gold_earned
        outcome = result.outcome

        if not result.won:
            break

        floors_cleared = floor

        if not encounter.is_boss:
            hero.heal_percent(f.BETWEEN_ROOM_HEAL)

        # Rough stand-in for the reward screens
        if floor % 2 == 0:
            hero.atk += 1
            hero.matk += 1
        if floor % 3 == 0:
            hero.defense += 1
            hero.max_hp += 15
            hero.current_hp += 15

        low, high = econ.gold_per_elite if encounter_type == "elite" else econ.gold_per_combat
        gold += rng.randint(low, high)
        if rng.random() < econ.potion_drop_chance:
            potions += 1

        if hero.current_hp < hero.max_hp * econ.potion_use_threshold and potions > 0:
            potions -= 1
            potions_used += 1
            hero.heal_percent(econ.small_potion_heal)

    return RunRecord(
        hero_key=hero_key,
        run_index=index,
        won=floors_cleared == balance.total_floors,
        floors_cleared=floors_cleared,
        total_turns=total_turns,
        combats=combats,
        final_outcome=outcome,
        hero_hp_remaining=hero.current_hp,
        gold=gold,
        potions_left=potions,
        potions_used=potions_used,
    )


def _simulate_chunk(job: tuple) -> list[RunRecord]:
    """Process-pool worker: a slice of run indices for one hero."""
    hero_key, indices, seed, balance, options = job
    return [simulate_run(hero_key, i, seed, balance, **options) for i in indices]


# ─── MANY RUNS ───

def summarize_runs(hero_key: str, records: list[RunRecord], balance: BalanceConfig = DEFAULT_BALANCE) -> HeroSummary:
    n = len(records)
    if n == 0:
        return HeroSummary(hero_key, 0, 0, 0.0, 0.0, 0.0, 0.0, 0)

    wins = sum(1 for r in records if r.won)
    combats = sum(r.combats for r in records)
    turns = sum(r.total_turns for r in records)
    deaths: dict[int, int] = {}
    for r in records:
        if not r.won:
            deaths[r.floors_cleared + 1] = deaths.get(r.floors_cleared + 1, 0) + 1

    win_rate = wins / n
    turns_per_combat = turns / combats if combats else 0.0
    t = balance.targets
    return HeroSummary(
        hero_key=hero_key,
        runs=n,
        wins=wins,
        win_rate=win_rate,
        avg_floors=sum(r.floors_cleared for r in records) / n,
        avg_turns=turns / n,
        avg_turns_per_combat=turns_per_combat,
        turn_cap_losses=sum(1 for r in records if r.final_outcome == "turn_cap"),
        deaths_by_floor=dict(sorted(deaths.items())),
        win_rate_in_band=t.win_rate[0] <= win_rate <= t.win_rate[1],
        turns_in_band=t.turns_per_combat[0] <= turns_per_combat <= t.turns_per_combat[1],
    )


def run_simulation(
    runs_per_hero: int = 200,
    heroes: list[str] | None = None,
    seed: int | None = None,
    workers: int = 1,
    balance: BalanceConfig = DEFAULT_BALANCE,
    elite_chance: float = 0.0,
    auto_skill: bool = False,
    detonate_specials: bool = False,
) -> SimulationBatch:
    """
    Simulate `runs_per_hero` runs for each hero. With workers > 1 the runs
    are spread over a process pool; the records come out the same either way.
    """
    heroes = heroes or list(balance.heroes)
    for key in heroes:
        balance.hero_template(key)   # fail fast on a typo
    if seed is None:
        seed = random.randrange(1_000_000_000)
    options = {"elite_chance": elite_chance, "auto_skill": auto_skill, "detonate_specials": detonate_specials}

    logger.info("Simulating %d runs x %d heroes (seed=%d, workers=%d)", runs_per_hero, len(heroes), seed, workers)
    start = time.perf_counter()
    records: dict[str, list[RunRecord]] = {}

    if workers <= 1:
        for key in heroes:
            records[key] = [simulate_run(key, i, seed, balance, **options) for i in range(runs_per_hero)]
    else:
        chunk = max(1, runs_per_hero // workers)
        jobs = [
            (key, list(range(lo, min(lo + chunk, runs_per_hero))), seed, balance, options)
            for key in heroes
            for lo in range(0, runs_per_hero, chunk)
        ]
        with ProcessPoolExecutor(max_workers=workers) as pool:
            for job, chunk_records in zip(jobs, pool.map(_simulate_chunk, jobs)):
                records.setdefault(job[0], []).extend(chunk_records)
        for key in heroes:
            records.setdefault(key, [])

    summaries = {key: summarize_runs(key, records[key], balance) for key in heroes}
    elapsed = time.perf_counter() - start
    logger.info("Finished %d runs in %.1fs", runs_per_hero * len(heroes), elapsed)

    return SimulationBatch(
        seed=seed,
        runs_per_hero=runs_per_hero,
        options=options,
        records=records,
        summaries=summaries,
        elapsed_seconds=elapsed,
    )


# ─── REPORT ───

def print_report(batch: SimulationBatch, balance: BalanceConfig = DEFAULT_BALANCE):
    t = balance.targets
    print(f"=== Balance Simulation: {batch.runs_per_hero} runs per hero (seed {batch.seed}) ===\n")
    print(f"  Target win rate: {t.win_rate[0]:.0%}-{t.win_rate[1]:.0%} (ideal {t.win_rate_ideal:.0%})")
    print(f"  Target turns/combat: {t.turns_per_combat[0]:g}-{t.turns_per_combat[1]:g} "
          f"(ideal {t.turns_per_combat_ideal:g})\n")

    print(f"  {'Hero':10s} {'Win%':>6s} {'Floors':>7s} {'Turns':>7s} {'T/Fight':>8s} {'Stalls':>7s}  Band")
    for key, s in batch.summaries.items():
        band = "OK" if s.win_rate_in_band and s.turns_in_band else "OUT"
        print(f"  {key:10s} {s.win_rate:6.1%} {s.avg_floors:7.1f} {s.avg_turns:7.1f} "
              f"{s.avg_turns_per_combat:8.1f} {s.turn_cap_losses:7d}  {band}")

    print("\n--- Where runs end (floor: deaths) ---")
    for key, s in batch.summaries.items():
        worst = sorted(s.deaths_by_floor.items(), key=lambda kv: kv[1], reverse=True)[:5]
        text = ", ".join(f"F{floor}: {n}" for floor, n in worst) or "no deaths"
        print(f"  {key:10s} {text}")

    print(f"\nDone in {batch.elapsed_seconds:.1f}s")


# ─── CLI Entry Point ───
def main():
    """Run a balance check with the settings from the environment."""
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    batch = run_simulation(
        runs_per_hero=settings.runs_per_hero,
        seed=settings.seed,
        workers=settings.workers,
    )
    print_report(batch)


if __name__ == "__main__":
    main()
