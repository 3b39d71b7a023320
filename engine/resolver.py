"""
Match Resolver: turns "what got matched" into "what happens in the fight".

Input is a count per gem (all matches of that gem in one cascade step added
together), how deep into the cascade we are, and the hero doing the matching.
Output is one EffectBundle: damage, heal, armor, gold, charge, lifesteal.

Formulas, per gem type present:
    damage gems:  count * BASE * (1 + stat * SCALING)
    other gems:   count * BASE
    then          * (1 + (depth - 1) * CASCADE_BONUS)     first step = no bonus
    then          * (1 + equipment bonus for that gem)

Nothing here mutates the hero or rolls dice, except apply_defense's variance.
"""

import math
import random

from engine.balance import DEFAULT_BALANCE, BalanceConfig, Formulas
from engine.game_state import EffectBundle, GemEffect, Hero


def round_half_up(value: float) -> int:
    """Round .5 away from zero on the positive side (not banker's rounding)."""
    return math.floor(value + 0.5)


def cascade_multiplier(cascade_depth: int, formulas: Formulas) -> float:
    return 1 + (max(1, cascade_depth) - 1) * formulas.CASCADE_BONUS


def resolve_matches(
    gem_counts: dict[int, int],
    cascade_depth: int,
    hero: Hero,
    balance: BalanceConfig = DEFAULT_BALANCE,
) -> EffectBundle:
    """
    Resolve one cascade step into an EffectBundle.

    Armor/heal/gold/charge are rounded per gem type. Damage stays fractional
    until every gem type has been added, then gets rounded once, so two
    half-points from different sources don't both get rounded away.
    """
    f = balance.formulas
    cascade = cascade_multiplier(cascade_depth, f)
    equip = hero.equipment

    physical = 0.0
    magic = 0.0
    effects = EffectBundle()

    for gem_id, count in gem_counts.items():
        if count <= 0:
            continue
        gem = balance.gem(gem_id)
        bonus = (1 + equip.get(gem.bonus_key, 0.0)) if gem.bonus_key else 1.0

        if gem.effect == GemEffect.PHYSICAL_DAMAGE:
            dmg = count * f.BASE_SWORD_DMG * (1 + hero.atk * f.ATK_SCALING) * cascade * bonus
            physical += dmg
            # Flame Sword: sword matches also burn for a share of fire damage
            hybrid = equip.get("fire_sword_hybrid", 0.0)
            if hybrid:
                magic += dmg * hybrid

        elif gem.effect == GemEffect.MAGIC_DAMAGE:
            magic += count * f.BASE_FIRE_DMG * (1 + hero.matk * f.MATK_SCALING) * cascade * bonus

        elif gem.effect == GemEffect.ARMOR:
            effects.armor += round_half_up(count * f.BASE_SHIELD * cascade * bonus)

        elif gem.effect == GemEffect.HEAL:
            effects.heal += round_half_up(count * f.BASE_HEAL * cascade * bonus)

        elif gem.effect == GemEffect.GOLD:
            effects.gold += round_half_up(count * f.BASE_GOLD * cascade * bonus)

        elif gem.effect == GemEffect.CHARGE:
            effects.charge += round_half_up(count * f.BASE_CHARGE * cascade * bonus)

    lifesteal = equip.get("lifesteal", 0.0)
    if lifesteal:
        effects.lifesteal_heal = round_half_up((physical + magic) * lifesteal)

    effects.physical_damage = round_half_up(physical)
    effects.magic_damage = round_half_up(magic)
    return effects


def roll_variance(rng: random.Random, formulas: Formulas) -> float:
    """Uniform in [1 - DAMAGE_VARIANCE, 1 + DAMAGE_VARIANCE]."""
    return 1 + (rng.random() * 2 - 1) * formulas.DAMAGE_VARIANCE


def apply_defense(
    damage: float,
    defense: float,
    rng: random.Random | None = None,
    formulas: Formulas = DEFAULT_BALANCE.formulas,
) -> int:
    """
    damage * (1 - def / (def + ARMOR_CONSTANT)) * variance, never below 1.

    Pass rng=None for the flat, variance-free number.
    """
    reduction = defense / (defense + formulas.ARMOR_CONSTANT) if defense > 0 else 0.0
    variance = roll_variance(rng, formulas) if rng is not None else 1.0
    return max(1, round_half_up(damage * (1 - reduction) * variance))
