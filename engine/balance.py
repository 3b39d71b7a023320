"""
Balance Config: every number the game runs on, in one place.

Gems, board size, combat formulas, heroes, enemies, bosses, which floor
spawns what, rewards and the economy. Pure data: nothing in here does any
combat math, it only gets read by the engines.

The engines never import these tables directly for their math. They get a
BalanceConfig handed to them, so a balance experiment can swap in tuned
numbers without touching any code:

    from engine.balance import DEFAULT_BALANCE
    tuned = DEFAULT_BALANCE.with_formula_overrides(CASCADE_BONUS=0.3)
"""

import json
from dataclasses import dataclass, field, replace
from pathlib import Path

from engine.game_state import (
    ColumnBlock, Enrage, GemBurn, GemEffect, LifestealPoison, SkillKind,
)


class UnknownTemplateError(KeyError):
    """A hero/enemy/boss/floor key that isn't in the tables. Fatal at setup."""


# ─── GEMS ───

@dataclass(frozen=True)
class GemType:
    """One entry of the gem catalog."""
    id: int
    key: str
    name: str
    effect: GemEffect
    bonus_key: str | None = None   # Equipment stat that multiplies this gem's effect


GEM_TYPES: tuple[GemType, ...] = (
    GemType(0, "sword", "Sword", GemEffect.PHYSICAL_DAMAGE, "sword_bonus"),
    GemType(1, "fire", "Fire", GemEffect.MAGIC_DAMAGE, "fire_bonus"),
    GemType(2, "shield", "Shield", GemEffect.ARMOR, "shield_bonus"),
    GemType(3, "heart", "Heart", GemEffect.HEAL, "heal_bonus"),
    GemType(4, "coin", "Coin", GemEffect.GOLD),
    GemType(5, "star", "Star", GemEffect.CHARGE),
)


# ─── BOARD ───

@dataclass(frozen=True)
class BoardConfig:
    rows: int = 7
    cols: int = 7


# ─── COMBAT FORMULAS ───

@dataclass(frozen=True)
class Formulas:
    # Physical: swords * BASE_SWORD_DMG * (1 + atk * ATK_SCALING)
    # 3-gem sword match at ATK 12: 3 * 8 * 1.96 = 47 dmg before defense
    BASE_SWORD_DMG: float = 8
    # Magic: fires * BASE_FIRE_DMG * (1 + matk * MATK_SCALING)
    BASE_FIRE_DMG: float = 9
    ATK_SCALING: float = 0.08
    MATK_SCALING: float = 0.10

    BASE_SHIELD: float = 5
    BASE_HEAL: float = 8
    BASE_GOLD: float = 2
    BASE_CHARGE: float = 10       # Skills cost ~100, so ~10 star gems to fill

    # Each cascade step past the first adds 25% to every effect
    CASCADE_BONUS: float = 0.25

    # dmg * (1 - def / (def + ARMOR_CONSTANT))
    ARMOR_CONSTANT: float = 50
    ARMOR_DECAY: float = 0.5      # Armor left after each enemy turn
    DAMAGE_VARIANCE: float = 0.1  # ±10%

    BETWEEN_ROOM_HEAL: float = 0.35


# ─── HEROES ───

@dataclass(frozen=True)
class SkillTemplate:
    kind: SkillKind
    name: str
    cost: int
    description: str = ""


@dataclass(frozen=True)
class HeroTemplate:
    key: str
    name: str
    hp: int
    atk: int
    matk: int
    defense: int
    skill: SkillTemplate


HEROES: dict[str, HeroTemplate] = {
    # Favors sword matches. Tanky, straightforward.
    "warrior": HeroTemplate(
        "warrior", "Warrior", hp=250, atk=12, matk=5, defense=12,
        skill=SkillTemplate(SkillKind.BLADE_STORM, "Blade Storm", 100,
                            "2x sword damage + convert 5 random gems to sword"),
    ),
    # Favors fire matches. Glass cannon.
    "mage": HeroTemplate(
        "mage", "Mage", hp=200, atk=5, matk=14, defense=8,
        skill=SkillTemplate(SkillKind.METEOR, "Meteor", 100,
                            "3x fire damage, ignores enemy defense"),
    ),
    # Balanced and tanky; the skill is a defensive powerhouse so it costs more.
    "paladin": HeroTemplate(
        "paladin", "Paladin", hp=270, atk=8, matk=8, defense=12,
        skill=SkillTemplate(SkillKind.HOLY_SHIELD, "Holy Shield", 120,
                            "Full heal + 50% max HP as armor"),
    ),
}


# ─── ENEMIES ───

@dataclass(frozen=True)
class EnemyScaling:
    """enemy_stat = base * (1 + floor * factor)"""
    hp: float = 0.06
    atk: float = 0.05
    defense: float = 0.03


@dataclass(frozen=True)
class EnemyTemplate:
    key: str
    name: str
    hp: int
    atk: int
    defense: int


ENEMIES: dict[str, EnemyTemplate] = {
    # Grassland (floors 1-4)
    "slime": EnemyTemplate("slime", "Slime", 80, 5, 2),
    "goblin": EnemyTemplate("goblin", "Goblin", 70, 6, 3),
    "wolf": EnemyTemplate("wolf", "Wolf", 100, 7, 3),
    "goblin_archer": EnemyTemplate("goblin_archer", "Goblin Archer", 60, 9, 2),
    # Desert (floors 6-9)
    "scorpion": EnemyTemplate("scorpion", "Scorpion", 110, 8, 5),
    "mummy": EnemyTemplate("mummy", "Mummy", 140, 7, 10),
    "sand_mage": EnemyTemplate("sand_mage", "Sand Mage", 70, 11, 3),
    # Frostlands (floors 11-14)
    "ice_golem": EnemyTemplate("ice_golem", "Ice Golem", 180, 9, 14),
    "frost_witch": EnemyTemplate("frost_witch", "Frost Witch", 80, 14, 3),
    "skeleton": EnemyTemplate("skeleton", "Skeleton", 120, 10, 5),
    # Infernal (floors 16-19)
    "imp": EnemyTemplate("imp", "Imp", 110, 11, 4),
    "fire_elemental": EnemyTemplate("fire_elemental", "Fire Elemental", 150, 14, 7),
    "demon_knight": EnemyTemplate("demon_knight", "Demon Knight", 200, 12, 12),
}


# ─── BOSSES ───

@dataclass(frozen=True)
class BossTemplate:
    key: str
    name: str
    floor: int
    hp: int
    atk: int
    defense: int
    # Template copy of the mechanic; the combat engine clones it per encounter
    mechanic: Enrage | ColumnBlock | LifestealPoison | GemBurn


BOSSES: dict[str, BossTemplate] = {
    "ogre_king": BossTemplate(
        "ogre_king", "Ogre King", floor=5, hp=350, atk=12, defense=6,
        mechanic=Enrage(threshold=0.3, multiplier=1.5),
    ),
    "sand_wyrm": BossTemplate(
        "sand_wyrm", "Sand Wyrm", floor=10, hp=500, atk=16, defense=8,
        mechanic=ColumnBlock(interval=3),
    ),
    "lich_lord": BossTemplate(
        "lich_lord", "Lich Lord", floor=15, hp=580, atk=16, defense=8,
        mechanic=LifestealPoison(lifesteal=0.3, poison_percent=0.05),
    ),
    "dragon_emperor": BossTemplate(
        "dragon_emperor", "Dragon Emperor", floor=20, hp=750, atk=20, defense=10,
        mechanic=GemBurn(burn_count=3, burn_damage=15),
    ),
}


# ─── FLOOR ENCOUNTERS ───

@dataclass(frozen=True)
class Encounter:
    """A floor spawns either one enemy from a pool or a fixed boss."""
    floor: int
    theme: str
    enemies: tuple[str, ...] = ()
    boss: str | None = None

    @property
    def is_boss(self) -> bool:
        return self.boss is not None


FLOOR_ENCOUNTERS: dict[int, Encounter] = {
    1: Encounter(1, "grassland", enemies=("slime",)),
    2: Encounter(2, "grassland", enemies=("goblin",)),
    3: Encounter(3, "grassland", enemies=("wolf",)),
    4: Encounter(4, "grassland", enemies=("goblin_archer",)),
    5: Encounter(5, "grassland", boss="ogre_king"),
    6: Encounter(6, "desert", enemies=("scorpion",)),
    7: Encounter(7, "desert", enemies=("scorpion",)),
    8: Encounter(8, "desert", enemies=("mummy",)),
    9: Encounter(9, "desert", enemies=("sand_mage",)),
    10: Encounter(10, "desert", boss="sand_wyrm"),
    11: Encounter(11, "frostlands", enemies=("skeleton",)),
    12: Encounter(12, "frostlands", enemies=("ice_golem",)),
    13: Encounter(13, "frostlands", enemies=("frost_witch",)),
    14: Encounter(14, "frostlands", enemies=("skeleton",)),
    15: Encounter(15, "frostlands", boss="lich_lord"),
    16: Encounter(16, "infernal", enemies=("imp",)),
    17: Encounter(17, "infernal", enemies=("fire_elemental",)),
    18: Encounter(18, "infernal", enemies=("demon_knight",)),
    19: Encounter(19, "infernal", enemies=("imp",)),
    20: Encounter(20, "infernal", boss="dragon_emperor"),
}


# ─── REWARDS ───

@dataclass(frozen=True)
class EquipmentItem:
    name: str
    stat: str
    value: float
    description: str = ""


# (min, max) per stat, inclusive
STAT_BOOST_TIERS: dict[int, dict[str, tuple[int, int]]] = {
    1: {"atk": (1, 3), "matk": (1, 3), "defense": (1, 3), "hp": (10, 25)},
    2: {"atk": (2, 5), "matk": (2, 5), "defense": (2, 5), "hp": (20, 45)},
    3: {"atk": (4, 8), "matk": (4, 8), "defense": (4, 8), "hp": (35, 70)},
    4: {"atk": (6, 12), "matk": (6, 12), "defense": (6, 12), "hp": (50, 100)},
}

EQUIPMENT_TIERS: dict[int, tuple[EquipmentItem, ...]] = {
    1: (
        EquipmentItem("Iron Sword", "sword_bonus", 0.15, "Sword matches +15% dmg"),
        EquipmentItem("Flame Staff", "fire_bonus", 0.15, "Fire matches +15% dmg"),
        EquipmentItem("Oak Shield", "shield_bonus", 0.20, "Shield matches +20% armor"),
        EquipmentItem("Healing Ring", "heal_bonus", 0.20, "Heart matches +20% heal"),
    ),
    2: (
        EquipmentItem("Steel Blade", "sword_bonus", 0.30, "Sword matches +30% dmg"),
        EquipmentItem("Inferno Rod", "fire_bonus", 0.30, "Fire matches +30% dmg"),
        EquipmentItem("Tower Shield", "shield_bonus", 0.40, "Shield matches +40% armor"),
        EquipmentItem("Life Amulet", "heal_bonus", 0.40, "Heart matches +40% heal"),
    ),
    3: (
        EquipmentItem("Dragon Fang", "sword_bonus", 0.50, "Sword matches +50% dmg"),
        EquipmentItem("Arcane Orb", "fire_bonus", 0.50, "Fire matches +50% dmg"),
        EquipmentItem("Flame Sword", "fire_sword_hybrid", 0.30, "Sword matches +30% fire dmg too"),
        EquipmentItem("Vampiric Ring", "lifesteal", 0.10, "10% of damage heals you"),
    ),
}


# ─── ECONOMY ───

@dataclass(frozen=True)
class Economy:
    gold_per_combat: tuple[int, int] = (10, 20)
    gold_per_elite: tuple[int, int] = (25, 40)
    small_potion_heal: float = 0.25
    large_potion_heal: float = 0.50
    starting_gold: int = 0
    starting_potions: int = 2
    potion_drop_chance: float = 0.20
    potion_use_threshold: float = 0.40   # Drink when HP drops under 40% of max


# ─── SIMULATION TARGETS ───

@dataclass(frozen=True)
class SimTargets:
    win_rate: tuple[float, float] = (0.30, 0.55)
    win_rate_ideal: float = 0.42
    turns_per_combat: tuple[float, float] = (5, 12)
    turns_per_combat_ideal: float = 8


# ─── THE WHOLE CONFIG ───

@dataclass(frozen=True)
class BalanceConfig:
    """Every table above, bundled so the engines can take it as one argument."""
    gems: tuple[GemType, ...] = GEM_TYPES
    board: BoardConfig = field(default_factory=BoardConfig)
    formulas: Formulas = field(default_factory=Formulas)
    heroes: dict[str, HeroTemplate] = field(default_factory=lambda: dict(HEROES))
    enemies: dict[str, EnemyTemplate] = field(default_factory=lambda: dict(ENEMIES))
    bosses: dict[str, BossTemplate] = field(default_factory=lambda: dict(BOSSES))
    enemy_scaling: EnemyScaling = field(default_factory=EnemyScaling)
    floors: dict[int, Encounter] = field(default_factory=lambda: dict(FLOOR_ENCOUNTERS))
    stat_boosts: dict[int, dict[str, tuple[int, int]]] = field(default_factory=lambda: dict(STAT_BOOST_TIERS))
    equipment: dict[int, tuple[EquipmentItem, ...]] = field(default_factory=lambda: dict(EQUIPMENT_TIERS))
    economy: Economy = field(default_factory=Economy)
    targets: SimTargets = field(default_factory=SimTargets)
    turn_cap: int = 50
    elite_multiplier: float = 1.5
    total_floors: int = 20

    @property
    def gem_count(self) -> int:
        return len(self.gems)

    def gem(self, gem_id: int) -> GemType:
        for g in self.gems:
            if g.id == gem_id:
                return g
        raise UnknownTemplateError(f"Unknown gem id: {gem_id}")

    def gem_for_effect(self, effect: GemEffect) -> GemType:
        for g in self.gems:
            if g.effect == effect:
                return g
        raise UnknownTemplateError(f"No gem produces {effect.value}")

    def hero_template(self, key: str) -> HeroTemplate:
        if key not in self.heroes:
            raise UnknownTemplateError(f"Unknown hero: {key}")
        return self.heroes[key]

    def enemy_template(self, key: str) -> EnemyTemplate:
        if key not in self.enemies:
            raise UnknownTemplateError(f"Unknown enemy: {key}")
        return self.enemies[key]

    def boss_template(self, key: str) -> BossTemplate:
        if key not in self.bosses:
            raise UnknownTemplateError(f"Unknown boss: {key}")
        return self.bosses[key]

    def floor_encounter(self, floor: int) -> Encounter:
        if floor not in self.floors:
            raise UnknownTemplateError(f"No encounter for floor {floor}")
        return self.floors[floor]

    def with_formula_overrides(self, **overrides: float) -> "BalanceConfig":
        """Copy of this config with some formula constants changed."""
        unknown = set(overrides) - set(Formulas.__dataclass_fields__)
        if unknown:
            raise UnknownTemplateError(f"Unknown formula constants: {sorted(unknown)}")
        return replace(self, formulas=replace(self.formulas, **overrides))


DEFAULT_BALANCE = BalanceConfig()


def load_balance(path: str | Path, base: BalanceConfig = DEFAULT_BALANCE) -> BalanceConfig:
    """
    Load a tuned balance from a JSON file.

    Only formula constants, the turn cap and the elite multiplier are tunable
    this way; the content tables (heroes, enemies, floors) stay code.

        {"formulas": {"CASCADE_BONUS": 0.3}, "turn_cap": 60}
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    config = base.with_formula_overrides(**data.get("formulas", {}))
    if "turn_cap" in data:
        config = replace(config, turn_cap=int(data["turn_cap"]))
    if "elite_multiplier" in data:
        config = replace(config, elite_multiplier=float(data["elite_multiplier"]))
    return config
