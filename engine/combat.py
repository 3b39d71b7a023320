"""
Combat Turn Engine: one hero against one enemy until someone drops.

Each turn goes like this:

    HERO TURN:    a swap (from the heuristic or a player) -> cascade
                  -> every step's effects hit the enemy / the hero
    ENEMY TURN:   boss mechanic -> attack -> armor absorbs -> defense
                  -> lifesteal / poison -> armor decays

Victory when the enemy hits 0 HP, defeat when the hero does. A fight that
runs past the turn cap counts as a loss too, reported as "turn_cap" so the
balance numbers can tell stalls apart from deaths.

Usage:
    engine = HeadlessCombatEngine(create_hero("warrior"), floor=1, rng=random.Random(7))
    result = engine.run_combat()
"""

import copy
import logging
import random
from dataclasses import dataclass, field

from engine.balance import (
    DEFAULT_BALANCE, BalanceConfig, EquipmentItem, SkillTemplate, UnknownTemplateError,
)
from engine.board import Board, CascadeStep, SwapOutcome
from engine.game_state import (
    ColumnBlock, CombatEvent, CombatPhase, EffectBundle, Enemy, Enrage,
    GemBurn, GemEffect, Hero, LifestealPoison, Pos, SkillKind,
)
from engine.heuristic.search import ScoredMove, find_best_move
from engine.resolver import apply_defense, resolve_matches, roll_variance, round_half_up

logger = logging.getLogger(__name__)


class CombatOverError(RuntimeError):
    """A hero action on a fight that already ended."""


ENCOUNTER_TYPES = ("normal", "elite", "boss")
BOOSTABLE_STATS = ("atk", "matk", "defense", "hp")


# ─── ACTOR FACTORIES ───

def create_hero(key: str, balance: BalanceConfig = DEFAULT_BALANCE) -> Hero:
    t = balance.hero_template(key)
    return Hero(
        key=t.key, name=t.name,
        max_hp=t.hp, current_hp=t.hp,
        atk=t.atk, matk=t.matk, defense=t.defense,
    )


def scale_stat(base: int, floor: int, factor: float, multiplier: float = 1.0) -> int:
    """base * (1 + floor * factor) * multiplier, rounded half-up."""
    return round_half_up(base * (1 + floor * factor) * multiplier)


def create_enemy(key: str, floor: int, elite: bool = False, balance: BalanceConfig = DEFAULT_BALANCE) -> Enemy:
    t = balance.enemy_template(key)
    s = balance.enemy_scaling
    mult = balance.elite_multiplier if elite else 1.0
    hp = scale_stat(t.hp, floor, s.hp, mult)
    return Enemy(
        key=t.key, name=t.name,
        max_hp=hp, current_hp=hp,
        atk=scale_stat(t.atk, floor, s.atk, mult),
        defense=scale_stat(t.defense, floor, s.defense, mult),
        floor=floor, is_elite=elite,
    )


def create_boss(key: str, balance: BalanceConfig = DEFAULT_BALANCE) -> Enemy:
    """Bosses fight at their sheet stats. The mechanic is copied so each fight gets fresh state."""
    t = balance.boss_template(key)
    return Enemy(
        key=t.key, name=t.name,
        max_hp=t.hp, current_hp=t.hp,
        atk=t.atk, defense=t.defense,
        floor=t.floor, is_boss=True,
        mechanic=copy.deepcopy(t.mechanic),
    )


def create_encounter_enemy(
    floor: int,
    rng: random.Random,
    encounter_type: str = "normal",
    balance: BalanceConfig = DEFAULT_BALANCE,
) -> Enemy:
    """Whatever the floor spawns: its boss, or a random pick from its pool."""
    if encounter_type not in ENCOUNTER_TYPES:
        raise ValueError(f"Unknown encounter type: {encounter_type}")
    encounter = balance.floor_encounter(floor)
    if encounter.is_boss:
        return create_boss(encounter.boss, balance)
    if encounter_type == "boss":
        raise UnknownTemplateError(f"Floor {floor} has no boss")
    key = rng.choice(encounter.enemies)
    return create_enemy(key, floor, elite=(encounter_type == "elite"), balance=balance)


# ─── REWARDS ───

def apply_equipment(hero: Hero, item: EquipmentItem) -> None:
    """Equipment bonuses of the same stat stack additively."""
    hero.equipment[item.stat] = hero.equipment.get(item.stat, 0.0) + item.value


def apply_stat_boost(hero: Hero, stat: str, value: int) -> None:
    if stat not in BOOSTABLE_STATS:
        raise ValueError(f"Can't boost stat '{stat}' (expected one of {BOOSTABLE_STATS})")
    if stat == "hp":
        hero.max_hp += value
        hero.current_hp += value
    else:
        setattr(hero, stat, getattr(hero, stat) + value)


# ─── RESULT ───

@dataclass
class CombatResult:
    won: bool
    turns_played: int
    hero_hp_remaining: int
    outcome: str                 # "victory", "defeat" or "turn_cap"
    enemy_key: str = ""
    enemy_hp_remaining: int = 0
    gold_earned: int = 0
    damage_dealt: int = 0
    max_cascade: int = 0
    skills_used: int = 0
    timeline: list[CombatEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "won": self.won,
            "turns_played": self.turns_played,
            "hero_hp_remaining": self.hero_hp_remaining,
            "outcome": self.outcome,
            "enemy_key": self.enemy_key,
            "enemy_hp_remaining": self.enemy_hp_remaining,
            "gold_earned": self.gold_earned,
            "damage_dealt": self.damage_dealt,
            "max_cascade": self.max_cascade,
            "skills_used": self.skills_used,
            "timeline": [
                {"turn": e.turn, "type": e.event_type, "description": e.description, "details": e.details}
                for e in self.timeline
            ],
        }


# ─── THE ENGINE ───

class HeadlessCombatEngine:
    """
    Runs one fight. The hero passed in is copied; armor and skill charge
    start at 0. Read `self.hero.current_hp` (or the result) to carry HP
    into the next fight.

    The same object serves the heuristic driver (`run_combat`) and an
    interactive caller (`play_swap` / `activate_skill` one at a time).
    """

    def __init__(
        self,
        hero: Hero,
        floor: int = 1,
        encounter_type: str = "normal",
        balance: BalanceConfig = DEFAULT_BALANCE,
        rng: random.Random | None = None,
        detonate_specials: bool = False,
        auto_skill: bool = False,
        record_timeline: bool = True,
        enemy: Enemy | None = None,
        board: Board | None = None,
    ):
        self.balance = balance
        self.rng = rng or random.Random()
        self.floor = floor
        self.auto_skill = auto_skill
        self.record_timeline = record_timeline

        self.hero = hero.clone()
        self.hero.armor = 0
        self.hero.skill_charge = 0
        self.enemy = enemy or create_encounter_enemy(floor, self.rng, encounter_type, balance)
        self.board = board or Board.from_config(balance, rng=self.rng, detonate_specials=detonate_specials)

        self.phase = CombatPhase.HERO_TURN
        self.turn = 0
        self.turn_capped = False
        self.gold_earned = 0
        self.damage_dealt = 0
        self.max_cascade = 0
        self.skills_used = 0
        self.timeline: list[CombatEvent] = []

    # ── State ──

    @property
    def is_over(self) -> bool:
        return self.phase in (CombatPhase.VICTORY, CombatPhase.DEFEAT) or self.turn_capped

    @property
    def skill(self) -> SkillTemplate | None:
        t = self.balance.heroes.get(self.hero.key)
        return t.skill if t else None

    def skill_ready(self) -> bool:
        return self.skill is not None and self.hero.skill_charge >= self.skill.cost

    def _log(self, event_type: str, description: str, **details):
        if self.record_timeline:
            self.timeline.append(CombatEvent(self.turn, event_type, description, details))

    def _ensure_running(self):
        if self.is_over:
            raise CombatOverError(f"Combat already ended ({self.phase.value})")

    def _check_victory(self) -> bool:
        if self.enemy.alive:
            return False
        self.enemy.current_hp = 0
        self.phase = CombatPhase.VICTORY
        self._log("VICTORY", f"{self.enemy.name} defeated on turn {self.turn}")
        return True

    def _check_defeat(self) -> bool:
        if self.hero.alive:
            return False
        self.hero.current_hp = 0
        self.phase = CombatPhase.DEFEAT
        self._log("DEFEAT", f"{self.hero.name} fell to {self.enemy.name} on turn {self.turn}")
        return True

    # ── Hero turn ──

    def _resolve(self, gem_counts: dict[int, int], depth: int) -> EffectBundle:
        return resolve_matches(gem_counts, depth, self.hero, self.balance)

    def _hit_enemy(self, raw_damage: float) -> int:
        dealt = apply_defense(raw_damage, self.enemy.defense, self.rng, self.balance.formulas)
        self.enemy.current_hp -= dealt
        self.damage_dealt += dealt
        return dealt

    def _apply_step(self, step: CascadeStep):
        """Apply one cascade step's effects the moment it resolves."""
        fx = step.effects
        self.max_cascade = max(self.max_cascade, step.depth)

        dealt = 0
        if fx.physical_damage > 0:
            dealt += self._hit_enemy(fx.physical_damage)
        if fx.magic_damage > 0:
            dealt += self._hit_enemy(fx.magic_damage)
        if fx.heal > 0:
            self.hero.heal(fx.heal)
        if fx.armor > 0:
            self.hero.armor += fx.armor
        if fx.charge > 0:
            self.hero.skill_charge += fx.charge
        if fx.lifesteal_heal > 0:
            self.hero.heal(fx.lifesteal_heal)
        self.gold_earned += fx.gold

        self._log(
            "CASCADE",
            f"Cascade x{step.depth}: {dealt} damage, +{fx.heal} hp, +{fx.armor} armor",
            depth=step.depth, damage=dealt, burned_matched=step.burned_matched,
            effects=fx.to_dict(), specials=[sp.kind.value for sp in step.specials],
        )

    def find_best_move(self) -> ScoredMove | None:
        return find_best_move(self.board, self.hero, self.balance)

    def play_swap(self, a: Pos, b: Pos) -> SwapOutcome:
        """
        One full turn from a swap: hero's cascade, then the enemy's answer.
        An invalid swap changes nothing and doesn't use up the turn.
        """
        self._ensure_running()
        self.phase = CombatPhase.RESOLVING_CASCADE
        outcome = self.board.attempt_swap(a, b, resolve=self._resolve, on_step=self._apply_step)
        if not outcome.valid:
            self.phase = CombatPhase.HERO_TURN
            return outcome

        self.turn += 1
        self._log("SWAP", f"Swapped {a} and {b}", cascade_depth=outcome.cascade_depth)
        if self._check_victory():
            return outcome

        self.enemy_turn()
        if not self.is_over and self.turn >= self.balance.turn_cap:
            self.turn_capped = True
            self._log("TURN_CAP", f"No winner after {self.turn} turns")
        return outcome

    # ── Skills ──

    def activate_skill(self) -> bool:
        """Spend charge on the hero's skill. Doesn't use up the turn. False if not ready."""
        self._ensure_running()
        if not self.skill_ready():
            return False

        skill = self.skill
        self.hero.skill_charge -= skill.cost
        self.skills_used += 1
        self._SKILLS[skill.kind](self)
        logger.debug("%s used %s on turn %d", self.hero.name, skill.name, self.turn)
        self._check_victory()
        return True

    def _blade_storm(self):
        f = self.balance.formulas
        dealt = self._hit_enemy(f.BASE_SWORD_DMG * (1 + self.hero.atk * f.ATK_SCALING) * 2)
        sword = self.balance.gem_for_effect(GemEffect.PHYSICAL_DAMAGE).id
        converted = self.board.convert_random_cells(sword, 5)
        self._log("SKILL", f"Blade Storm hits for {dealt}", damage=dealt, converted=converted)
        # Converted gems can line up; those cascades count like any other
        self.phase = CombatPhase.RESOLVING_CASCADE
        self.board.settle(resolve=self._resolve, on_step=self._apply_step)
        self.phase = CombatPhase.HERO_TURN

    def _meteor(self):
        f = self.balance.formulas
        raw = f.BASE_FIRE_DMG * (1 + self.hero.matk * f.MATK_SCALING) * 3
        dealt = round_half_up(raw * roll_variance(self.rng, f))
        self.enemy.current_hp -= dealt
        self.damage_dealt += dealt
        self._log("SKILL", f"Meteor hits for {dealt}, ignoring defense", damage=dealt)

    def _holy_shield(self):
        armor = round_half_up(self.hero.max_hp * 0.5)
        self.hero.current_hp = self.hero.max_hp
        self.hero.armor += armor
        self._log("SKILL", f"Holy Shield: full heal, +{armor} armor", armor=armor)

    _SKILLS = {
        SkillKind.BLADE_STORM: _blade_storm,
        SkillKind.METEOR: _meteor,
        SkillKind.HOLY_SHIELD: _holy_shield,
    }

    # ── Enemy turn ──

    def enemy_turn(self) -> int:
        """The enemy's whole turn. Returns the attack damage that landed."""
        self.phase = CombatPhase.ENEMY_TURN
        e, h = self.enemy, self.hero
        mech = e.mechanic

        before = self._BEFORE_ATTACK.get(type(mech))
        if before is not None:
            before(self, mech)

        damage = e.atk
        if h.armor > 0:
            absorbed = min(h.armor, damage)
            damage -= absorbed
            h.armor -= absorbed
        damage = apply_defense(damage, h.defense, self.rng, self.balance.formulas)
        h.current_hp -= damage
        self._log("ENEMY_ATTACK", f"{e.name} hits for {damage}", damage=damage)

        after = self._AFTER_ATTACK.get(type(mech))
        if after is not None:
            after(self, mech, damage)

        h.armor = int(h.armor * self.balance.formulas.ARMOR_DECAY)

        if not self._check_defeat():
            self.phase = CombatPhase.HERO_TURN
        return damage

    def _enrage(self, mech: Enrage):
        if mech.enraged or self.enemy.current_hp > self.enemy.max_hp * mech.threshold:
            return
        mech.enraged = True
        self.enemy.atk = round_half_up(self.enemy.atk * mech.multiplier)
        logger.debug("%s enraged (atk %d)", self.enemy.name, self.enemy.atk)
        self._log("ENRAGE", f"{self.enemy.name} is enraged! Attack is now {self.enemy.atk}", atk=self.enemy.atk)

    def _column_block(self, mech: ColumnBlock):
        mech.turns_since_block += 1
        if mech.turns_since_block < mech.interval:
            return
        mech.turns_since_block = 0
        mech.blocked_column = self.rng.randrange(self.board.cols)
        self.board.blocked_column = mech.blocked_column
        logger.debug("%s blocked column %d", self.enemy.name, mech.blocked_column)
        self._log("COLUMN_BLOCK", f"Column {mech.blocked_column} is blocked", column=mech.blocked_column)

    def _gem_burn(self, mech: GemBurn):
        burned = self.board.burn_random_cells(mech.burn_count)
        self._log("BURN", f"{len(burned)} gems burned", cells=burned)

    def _drain(self, mech: LifestealPoison, damage: int):
        e, h = self.enemy, self.hero
        if mech.lifesteal:
            healed = round_half_up(damage * mech.lifesteal)
            e.current_hp = min(e.max_hp, e.current_hp + healed)
            self._log("LIFESTEAL", f"{e.name} drains {healed} HP", healed=healed)
        if mech.poison_percent:
            poison = round_half_up(h.max_hp * mech.poison_percent)
            h.current_hp -= poison
            self._log("POISON", f"Poison deals {poison}", damage=poison)

    _BEFORE_ATTACK = {
        Enrage: _enrage,
        ColumnBlock: _column_block,
        GemBurn: _gem_burn,
    }
    _AFTER_ATTACK = {
        LifestealPoison: _drain,
    }

    # ── Driver ──

    def run_combat(self) -> "CombatResult":
        """Let the heuristic play until the fight ends."""
        while not self.is_over:
            if self.auto_skill and self.skill_ready():
                self.activate_skill()
                if self.is_over:
                    break

            move = self.find_best_move()
            if move is None:
                self.board.reshuffle()
                self._log("RESHUFFLE", "No moves left, board reshuffled")
                continue
            self.play_swap(move.swap.a, move.swap.b)

        return self.result()

    def result(self) -> CombatResult:
        if self.phase == CombatPhase.VICTORY:
            outcome = "victory"
        elif self.phase == CombatPhase.DEFEAT:
            outcome = "defeat"
        elif self.turn_capped:
            outcome = "turn_cap"
        else:
            outcome = "in_progress"
        return CombatResult(
            won=self.phase == CombatPhase.VICTORY,
            turns_played=self.turn,
            hero_hp_remaining=self.hero.current_hp,
            outcome=outcome,
            enemy_key=self.enemy.key,
            enemy_hp_remaining=self.enemy.current_hp,
            gold_earned=self.gold_earned,
            damage_dealt=self.damage_dealt,
            max_cascade=self.max_cascade,
            skills_used=self.skills_used,
            timeline=list(self.timeline),
        )
