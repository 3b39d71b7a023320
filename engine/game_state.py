"""
Game State: the pieces every engine passes around.

Cells and matches on the board, the hero and the enemy, the effects a
cascade step produces, and the boss mechanics. The engines read and write
these; nothing in here knows how combat works.
"""

import copy
import math
from dataclasses import dataclass, field
from enum import Enum


Pos = tuple[int, int]   # (row, col), row 0 is the top of the board


class GemEffect(Enum):
    PHYSICAL_DAMAGE = "physical_damage"
    MAGIC_DAMAGE = "magic_damage"
    ARMOR = "armor"
    HEAL = "heal"
    GOLD = "gold"
    CHARGE = "charge"


class SpecialKind(Enum):
    NONE = "none"
    LINE_H = "line_h"           # Clears its whole row
    LINE_V = "line_v"           # Clears its whole column
    AREA_BOMB = "area_bomb"     # Clears the 3x3 block around it
    COLOR_BOMB = "color_bomb"   # Clears every gem of its color


class Direction(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class SkillKind(Enum):
    BLADE_STORM = "blade_storm"
    METEOR = "meteor"
    HOLY_SHIELD = "holy_shield"


class CombatPhase(Enum):
    HERO_TURN = "hero_turn"
    RESOLVING_CASCADE = "resolving_cascade"
    ENEMY_TURN = "enemy_turn"
    VICTORY = "victory"
    DEFEAT = "defeat"


# ─── BOARD PIECES ───

@dataclass
class Cell:
    """One board slot. gem_id is None while the slot is empty mid-cascade."""
    gem_id: int | None = None
    special: SpecialKind = SpecialKind.NONE
    burned: bool = False

    @property
    def is_empty(self) -> bool:
        return self.gem_id is None


@dataclass(frozen=True)
class Match:
    """A run of 3+ same gems in one row or column. Rebuilt after every change."""
    gem_id: int
    cells: tuple[Pos, ...]
    direction: Direction

    @property
    def length(self) -> int:
        return len(self.cells)

    @property
    def middle(self) -> Pos:
        return self.cells[len(self.cells) // 2]


@dataclass
class EffectBundle:
    """What one cascade step does to the fight."""
    physical_damage: int = 0
    magic_damage: int = 0
    heal: int = 0
    armor: int = 0
    gold: int = 0
    charge: int = 0
    lifesteal_heal: int = 0

    @property
    def total_damage(self) -> int:
        return self.physical_damage + self.magic_damage

    def __add__(self, other: "EffectBundle") -> "EffectBundle":
        return EffectBundle(
            physical_damage=self.physical_damage + other.physical_damage,
            magic_damage=self.magic_damage + other.magic_damage,
            heal=self.heal + other.heal,
            armor=self.armor + other.armor,
            gold=self.gold + other.gold,
            charge=self.charge + other.charge,
            lifesteal_heal=self.lifesteal_heal + other.lifesteal_heal,
        )

    def to_dict(self) -> dict:
        return dict(self.__dict__)


# ─── BOSS MECHANICS ───
# One dataclass per mechanic. Parameters come from the boss template,
# the rest is per-encounter state that the combat engine mutates.

@dataclass
class Enrage:
    threshold: float = 0.3
    multiplier: float = 1.5
    enraged: bool = False


@dataclass
class ColumnBlock:
    interval: int = 3
    blocked_column: int | None = None
    turns_since_block: int = 0


@dataclass
class LifestealPoison:
    lifesteal: float = 0.3
    poison_percent: float = 0.05


@dataclass
class GemBurn:
    burn_count: int = 3
    # Carried from the boss sheet; nothing turns burned matches into damage yet
    burn_damage: int = 15


BossMechanic = Enrage | ColumnBlock | LifestealPoison | GemBurn


# ─── ACTORS ───

@dataclass
class Hero:
    key: str
    name: str
    max_hp: int
    current_hp: int
    atk: int
    matk: int
    defense: int
    armor: int = 0
    skill_charge: int = 0
    # Equipment stat -> summed bonus, e.g. {"sword_bonus": 0.15, "lifesteal": 0.1}
    equipment: dict[str, float] = field(default_factory=dict)

    @property
    def hp_ratio(self) -> float:
        return self.current_hp / self.max_hp if self.max_hp > 0 else 0.0

    @property
    def alive(self) -> bool:
        return self.current_hp > 0

    def heal(self, amount: int) -> int:
        """Heal up to max HP. Returns how much was actually restored."""
        before = self.current_hp
        self.current_hp = min(self.max_hp, self.current_hp + max(0, amount))
        return self.current_hp - before

    def heal_percent(self, percent: float) -> int:
        return self.heal(math.floor(self.max_hp * percent + 0.5))

    def clone(self) -> "Hero":
        return copy.deepcopy(self)


@dataclass
class Enemy:
    key: str
    name: str
    max_hp: int
    current_hp: int
    atk: int
    defense: int
    floor: int = 1
    is_boss: bool = False
    is_elite: bool = False
    mechanic: BossMechanic | None = None

    @property
    def hp_ratio(self) -> float:
        return self.current_hp / self.max_hp if self.max_hp > 0 else 0.0

    @property
    def alive(self) -> bool:
        return self.current_hp > 0


@dataclass
class CombatEvent:
    """One thing that happened in a fight."""
    turn: int
    event_type: str      # "SWAP", "CASCADE", "ENEMY_ATTACK", "ENRAGE", "SKILL", ...
    description: str
    details: dict = field(default_factory=dict)
