"""
Explainer: turns the chosen swap into a hint a player can act on.

Every hint follows the same shape:
  DO THIS: swap row 3 col 2 with the gem to its right
  WHY:     what the swap matches and roughly what it does to the fight
  WATCH FOR: the thing about the enemy that should change your plan
"""

from engine.balance import DEFAULT_BALANCE, BalanceConfig
from engine.game_state import ColumnBlock, Enemy, Enrage, GemBurn, GemEffect, Hero, LifestealPoison
from engine.heuristic.scoring import LOW_HP_RATIO
from engine.heuristic.search import ScoredMove


_EFFECT_WORDS = {
    GemEffect.PHYSICAL_DAMAGE: "hits the enemy",
    GemEffect.MAGIC_DAMAGE: "burns the enemy",
    GemEffect.ARMOR: "adds armor",
    GemEffect.HEAL: "heals you",
    GemEffect.GOLD: "earns gold",
    GemEffect.CHARGE: "charges your skill",
}


def explain_move(
    move: ScoredMove | None,
    hero: Hero,
    enemy: Enemy,
    balance: BalanceConfig = DEFAULT_BALANCE,
) -> dict:
    """
    Returns:
        {
            "do_this": "Swap (3, 2) with the gem to its right",
            "why": "Matches 4 Sword (hits the enemy). Long match bonus.",
            "watch_for": "Ogre King enrages under 30% HP ...",
            "score": 15.0,
        }
    """
    if move is None:
        return {
            "do_this": "No swap makes a match. The board needs a reshuffle.",
            "why": "Every possible swap was tried and none lined up three gems.",
            "watch_for": _watch_for(hero, enemy),
            "score": 0.0,
        }

    return {
        "do_this": _describe_swap(move),
        "why": _explain_why(move, hero, balance),
        "watch_for": _watch_for(hero, enemy),
        "score": move.score,
    }


def _describe_swap(move: ScoredMove) -> str:
    (r1, c1), (r2, c2) = move.swap.a, move.swap.b
    direction = "to its right" if r1 == r2 else "below it"
    return f"Swap ({r1}, {c1}) with the gem {direction}"


def _explain_why(move: ScoredMove, hero: Hero, balance: BalanceConfig) -> str:
    parts = []
    longest = 0
    for match in move.matches:
        gem = balance.gem(match.gem_id)
        parts.append(f"{match.length} {gem.name} ({_EFFECT_WORDS[gem.effect]})")
        longest = max(longest, match.length)

    why = "Matches " + " and ".join(parts) + "."
    if longest >= 5:
        why += " Five in a row leaves a color bomb behind."
    elif longest == 4:
        why += " Four in a row leaves a line blast behind."
    if len(move.matches) > 1 and any(m.direction != move.matches[0].direction for m in move.matches):
        why += " The crossing cell becomes an area bomb."

    if hero.hp_ratio < LOW_HP_RATIO and any(
        balance.gem(m.gem_id).effect == GemEffect.HEAL for m in move.matches
    ):
        why += " You're under half HP, so hearts come first."
    return why


def _watch_for(hero: Hero, enemy: Enemy) -> str:
    mech = enemy.mechanic
    if isinstance(mech, Enrage):
        if mech.enraged:
            return f"{enemy.name} is enraged and hits for {enemy.atk}. Stack shields."
        return (
            f"{enemy.name} enrages under {int(mech.threshold * 100)}% HP. "
            f"Save damage to burst through the threshold."
        )
    if isinstance(mech, ColumnBlock):
        if mech.blocked_column is not None:
            return f"Column {mech.blocked_column} is blocked. Swaps touching it won't work."
        return f"{enemy.name} blocks a column every {mech.interval} turns."
    if isinstance(mech, LifestealPoison):
        return (
            f"{enemy.name} heals off every hit and poisons you for "
            f"{int(mech.poison_percent * 100)}% max HP a turn. Don't let the fight drag."
        )
    if isinstance(mech, GemBurn):
        return f"{enemy.name} burns {mech.burn_count} gems every turn."
    if hero.hp_ratio < LOW_HP_RATIO:
        return "You're low. Look for hearts and shields before the next hit."
    return f"{enemy.name} hits for about {enemy.atk} before your defense."
