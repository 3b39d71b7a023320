"""
Scoring Function: how the heuristic judges a swap before making it.

Each match the swap would create earns points:
  gems in the match * weight for that gem's effect
  +3 if the match is 4 or longer, +5 more if it's 5 or longer

Damage gems are worth the most. Hearts jump from "meh" to "best on the
board" once the hero is under half HP.

Only the matches the swap makes right away count. Cascades that might
follow are luck, so the score ignores them.
"""

from engine.balance import DEFAULT_BALANCE, BalanceConfig
from engine.game_state import GemEffect, Match


EFFECT_WEIGHTS: dict[GemEffect, float] = {
    GemEffect.PHYSICAL_DAMAGE: 3.0,
    GemEffect.MAGIC_DAMAGE: 3.0,
    GemEffect.ARMOR: 1.5,
    GemEffect.HEAL: 1.0,
    GemEffect.GOLD: 0.5,
    GemEffect.CHARGE: 1.0,
}

LOW_HP_RATIO = 0.5         # Under this, hearts get the emergency weight
LOW_HP_HEAL_WEIGHT = 4.0

LONG_MATCH_BONUS = 3.0     # length >= 4
HUGE_MATCH_BONUS = 5.0     # length >= 5, stacks with the one above


def effect_weight(effect: GemEffect, hp_ratio: float) -> float:
    if effect == GemEffect.HEAL and hp_ratio < LOW_HP_RATIO:
        return LOW_HP_HEAL_WEIGHT
    return EFFECT_WEIGHTS[effect]


def score_match(match: Match, hp_ratio: float, balance: BalanceConfig = DEFAULT_BALANCE) -> float:
    effect = balance.gem(match.gem_id).effect
    score = match.length * effect_weight(effect, hp_ratio)
    if match.length >= 4:
        score += LONG_MATCH_BONUS
    if match.length >= 5:
        score += HUGE_MATCH_BONUS
    return score


def score_matches(matches: list[Match], hp_ratio: float, balance: BalanceConfig = DEFAULT_BALANCE) -> float:
    """Total score for the matches one swap makes. No matches = 0."""
    return sum(score_match(m, hp_ratio, balance) for m in matches)
