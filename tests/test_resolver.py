"""
Match Resolver Tests

Effect formulas per gem, cascade bonus, equipment, rounding, and the
defense formula.
"""

import random

import pytest

from engine.resolver import (
    apply_defense, cascade_multiplier, resolve_matches, round_half_up,
)

SWORD, FIRE, SHIELD, HEART, COIN, STAR = range(6)


class TestRounding:

    def test_half_rounds_up(self):
        """Not banker's rounding: 2.5 -> 3, 3.5 -> 4."""
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2
        assert round_half_up(0) == 0


class TestBaseFormulas:

    def test_three_swords(self, warrior):
        # 3 * 8 * (1 + 12 * 0.08) = 47.04
        fx = resolve_matches({SWORD: 3}, 1, warrior)
        assert fx.physical_damage == 47
        assert fx.magic_damage == 0

    def test_three_fire(self, warrior):
        # 3 * 9 * (1 + 5 * 0.1) = 40.5
        assert resolve_matches({FIRE: 3}, 1, warrior).magic_damage == 41

    def test_flat_gems_ignore_stats(self, warrior, mage):
        for hero in (warrior, mage):
            fx = resolve_matches({SHIELD: 3, HEART: 3, COIN: 3, STAR: 3}, 1, hero)
            assert (fx.armor, fx.heal, fx.gold, fx.charge) == (15, 24, 6, 30)
            assert fx.total_damage == 0

    def test_zero_counts_are_skipped(self, warrior):
        assert resolve_matches({SWORD: 0}, 1, warrior).physical_damage == 0

    def test_inputs_are_not_mutated(self, warrior):
        counts = {SWORD: 3, HEART: 4}
        before_hero = warrior.clone()
        resolve_matches(counts, 2, warrior)
        assert counts == {SWORD: 3, HEART: 4}
        assert warrior == before_hero


class TestCascade:

    def test_multiplier(self, balance):
        f = balance.formulas
        assert cascade_multiplier(1, f) == 1.0
        assert cascade_multiplier(2, f) == 1.25
        assert cascade_multiplier(3, f) == 1.5
        assert cascade_multiplier(0, f) == 1.0

    def test_deeper_cascades_are_strictly_stronger(self, warrior):
        counts = {SWORD: 3, FIRE: 3, SHIELD: 3, HEART: 3, COIN: 3, STAR: 3}
        shallow = resolve_matches(counts, 1, warrior)
        deep = resolve_matches(counts, 3, warrior)
        for name in ("physical_damage", "magic_damage", "armor", "heal", "gold", "charge"):
            assert getattr(deep, name) > getattr(shallow, name), name

    def test_second_step_heal(self, warrior):
        # 3 * 8 * 1.25
        assert resolve_matches({HEART: 3}, 2, warrior).heal == 30


class TestAdditivity:

    @pytest.mark.parametrize("a,b", [(SWORD, FIRE), (SHIELD, HEART), (COIN, STAR), (SWORD, HEART)])
    def test_two_gems_equal_the_sum_of_each(self, warrior, a, b):
        together = resolve_matches({a: 3, b: 3}, 2, warrior)
        apart = resolve_matches({a: 3}, 2, warrior) + resolve_matches({b: 3}, 2, warrior)
        assert together == apart


class TestEquipment:

    def test_gem_bonus_multiplies(self, warrior):
        warrior.equipment["sword_bonus"] = 0.15
        # 47.04 * 1.15 = 54.096
        assert resolve_matches({SWORD: 3}, 1, warrior).physical_damage == 54

    def test_bonus_only_hits_its_gem(self, warrior):
        warrior.equipment["heal_bonus"] = 0.5
        fx = resolve_matches({SWORD: 3, HEART: 3}, 1, warrior)
        assert fx.physical_damage == 47
        assert fx.heal == 36

    def test_flame_sword_adds_magic(self, warrior):
        warrior.equipment["fire_sword_hybrid"] = 0.3
        fx = resolve_matches({SWORD: 3}, 1, warrior)
        assert fx.physical_damage == 47
        # 47.04 * 0.3 = 14.112
        assert fx.magic_damage == 14

    def test_lifesteal_uses_unrounded_total(self, warrior):
        warrior.equipment["lifesteal"] = 0.1
        fx = resolve_matches({SWORD: 3, FIRE: 3}, 1, warrior)
        # (47.04 + 40.5) * 0.1 = 8.754
        assert fx.lifesteal_heal == 9

    def test_no_lifesteal_without_equipment(self, warrior):
        assert resolve_matches({SWORD: 3}, 1, warrior).lifesteal_heal == 0


class TestDefense:

    def test_flat_reduction(self):
        # 100 * (1 - 50 / 100)
        assert apply_defense(100, 50) == 50
        assert apply_defense(100, 0) == 100

    @pytest.mark.parametrize("defense", [0, 10, 1_000, 10**9])
    def test_never_below_one(self, defense):
        assert apply_defense(1, defense) >= 1
        assert apply_defense(0, defense) == 1
        assert apply_defense(5, defense, random.Random(defense)) >= 1

    def test_variance_stays_in_band(self):
        rng = random.Random(9)
        rolls = {apply_defense(100, 0, rng) for _ in range(500)}
        assert min(rolls) >= 90
        assert max(rolls) <= 110
        assert len(rolls) > 5
