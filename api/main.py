"""
Gem Crawler Sim API: FastAPI server that runs balance simulations on demand.

Start the server:
    uvicorn api.main:app --reload

Then open http://localhost:8000/docs to see the interactive API docs.
"""

import random

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from engine.balance import DEFAULT_BALANCE, UnknownTemplateError
from engine.board import Board
from engine.combat import ENCOUNTER_TYPES, HeadlessCombatEngine, create_encounter_enemy, create_hero
from engine.heuristic.explainer import explain_move
from engine.heuristic.search import rank_moves
from engine.simulation import run_simulation

app = FastAPI(
    title="Gem Crawler Sim",
    description="Headless match-3 combat simulator for game balance",
    version="0.1.0",
)

MAX_RUNS_PER_HERO = 2000


# ─── Request / Response Models ───

class SimulateRequest(BaseModel):
    runs_per_hero: int = 100
    heroes: list[str] | None = None   # Omit for every hero
    seed: int | None = None           # optional: for reproducible results
    elite_chance: float = 0.0
    auto_skill: bool = False
    detonate_specials: bool = False

class HeroSummaryOut(BaseModel):
    hero_key: str
    runs: int
    wins: int
    win_rate: float
    avg_floors: float
    avg_turns: float
    avg_turns_per_combat: float
    turn_cap_losses: int
    deaths_by_floor: dict[int, int]
    win_rate_in_band: bool
    turns_in_band: bool

class SimulateResponse(BaseModel):
    seed: int
    runs_per_hero: int
    summaries: list[HeroSummaryOut]
    elapsed_seconds: float


class CombatRequest(BaseModel):
    hero: str = "warrior"
    floor: int = 1
    encounter_type: str = "normal"    # "normal", "elite", "boss"
    seed: int | None = None
    auto_skill: bool = False
    detonate_specials: bool = False
    include_timeline: bool = True

class EventOut(BaseModel):
    turn: int
    type: str
    description: str
    details: dict = {}

class CombatResponse(BaseModel):
    won: bool
    outcome: str
    turns_played: int
    hero_hp_remaining: int
    enemy_key: str
    enemy_hp_remaining: int
    gold_earned: int
    damage_dealt: int
    max_cascade: int
    skills_used: int
    timeline: list[EventOut] = []


class HintRequest(BaseModel):
    board: list[list[int]]            # gem ids, row 0 at the top
    hero: str = "warrior"
    hero_hp: int | None = None        # Omit for full HP
    floor: int = 1
    blocked_column: int | None = None

class MoveOut(BaseModel):
    swap: dict
    score: float

class HintResponse(BaseModel):
    do_this: str
    why: str
    watch_for: str
    score: float
    swap: dict | None = None
    alternatives: list[MoveOut] = []


# ─── Endpoints ───

@app.get("/")
async def root():
    return {"message": "Gem Crawler Sim API is running. Visit /docs for the API explorer."}


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}


@app.get("/heroes")
async def list_heroes():
    return [
        {
            "key": t.key, "name": t.name, "hp": t.hp, "atk": t.atk, "matk": t.matk, "defense": t.defense,
            "skill": {"name": t.skill.name, "cost": t.skill.cost, "description": t.skill.description},
        }
        for t in DEFAULT_BALANCE.heroes.values()
    ]


@app.get("/floors")
async def list_floors():
    return [
        {"floor": e.floor, "theme": e.theme, "enemies": list(e.enemies), "boss": e.boss}
        for e in DEFAULT_BALANCE.floors.values()
    ]


@app.post("/simulate", response_model=SimulateResponse)
def simulate(request: SimulateRequest):
    """
    Run a balance batch: N full 20-floor runs per hero.
    Returns per-hero win rate, floors reached and turn counts.
    """
    if not 0.0 <= request.elite_chance <= 1.0:
        raise HTTPException(status_code=422, detail="elite_chance must be between 0 and 1")
    try:
        batch = run_simulation(
            runs_per_hero=max(1, min(request.runs_per_hero, MAX_RUNS_PER_HERO)),  # Cap at 2000
            heroes=request.heroes,
            seed=request.seed,
            elite_chance=request.elite_chance,
            auto_skill=request.auto_skill,
            detonate_specials=request.detonate_specials,
        )
    except UnknownTemplateError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))

    return SimulateResponse(
        seed=batch.seed,
        runs_per_hero=batch.runs_per_hero,
        summaries=[HeroSummaryOut(**s.to_dict()) for s in batch.summaries.values()],
        elapsed_seconds=round(batch.elapsed_seconds, 3),
    )


@app.post("/combat", response_model=CombatResponse)
def combat(request: CombatRequest):
    """Play one fight with the heuristic and return how it went, turn by turn."""
    if request.encounter_type not in ENCOUNTER_TYPES:
        raise HTTPException(status_code=422, detail=f"encounter_type must be one of {list(ENCOUNTER_TYPES)}")
    rng = random.Random(request.seed)
    try:
        hero = create_hero(request.hero)
        engine = HeadlessCombatEngine(
            hero, request.floor, request.encounter_type, rng=rng,
            auto_skill=request.auto_skill,
            detonate_specials=request.detonate_specials,
            record_timeline=request.include_timeline,
        )
    except UnknownTemplateError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))

    result = engine.run_combat().to_dict()
    return CombatResponse(**result)


@app.post("/hint", response_model=HintResponse)
def hint(request: HintRequest):
    """
    Suggest the next swap for a board a player is looking at.
    Send the grid of gem ids, get back the best swap in plain English.
    """
    rows = request.board
    gem_count = DEFAULT_BALANCE.gem_count
    if not rows or not rows[0] or any(len(row) != len(rows[0]) for row in rows):
        raise HTTPException(status_code=422, detail="board must be a non-empty rectangle")
    if any(not 0 <= g < gem_count for row in rows for g in row):
        raise HTTPException(status_code=422, detail=f"gem ids must be 0..{gem_count - 1}")

    try:
        hero = create_hero(request.hero)
        enemy = create_encounter_enemy(request.floor, random.Random(0))
    except UnknownTemplateError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    if request.hero_hp is not None:
        hero.current_hp = max(0, min(request.hero_hp, hero.max_hp))

    board = Board.from_rows(rows, gem_count=gem_count)
    if board.find_matches():
        # A run already on the board would be credited to every swap
        raise HTTPException(status_code=422, detail="board already holds a match; send it after the cascade settles")
    board.blocked_column = request.blocked_column
    ranked = rank_moves(board, hero)
    best = ranked[0] if ranked else None

    explanation = explain_move(best, hero, enemy)
    return HintResponse(
        **explanation,
        swap=best.swap.to_dict() if best else None,
        alternatives=[MoveOut(swap=m.swap.to_dict(), score=m.score) for m in ranked[1:4]],
    )
