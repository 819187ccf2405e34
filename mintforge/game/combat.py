"""
Combat resolution math.

Hit chance and damage key off one attribute chosen by enemy type: dexterity
against agile enemies, intelligence against magical ones, strength otherwise.
"""

import math
import random

from ..models import AttributeSet, AttributeType, CombatRewards

BASE_HIT_CHANCE = 60
MIN_HIT_CHANCE = 20
MAX_HIT_CHANCE = 95
BASE_DAMAGE = 5

ENEMY_BASE_EXPERIENCE: dict[str, int] = {
    "weak": 50,
    "normal": 100,
    "elite": 200,
    "boss": 500,
}
DEFAULT_ENEMY_EXPERIENCE = 100
QUICK_VICTORY_ROUNDS = 3
QUICK_VICTORY_MULTIPLIER = 1.2

ITEM_DROP_CHANCE = 0.2
DROP_ITEM = "Health Potion"


def combat_attribute(enemy_type: str) -> AttributeType:
    if enemy_type == "agile":
        return AttributeType.DEX
    if enemy_type == "magical":
        return AttributeType.INT
    return AttributeType.STR


def calculate_hit_chance(attributes: AttributeSet, enemy_type: str) -> int:
    """Percent chance to hit, clamped to [20, 95]."""
    stat = attributes.get(combat_attribute(enemy_type))
    hit_chance = BASE_HIT_CHANCE + (stat - 10) * 2
    return min(max(hit_chance, MIN_HIT_CHANCE), MAX_HIT_CHANCE)


def calculate_damage(attributes: AttributeSet, enemy_type: str, rng: random.Random) -> int:
    stat = attributes.get(combat_attribute(enemy_type))
    return BASE_DAMAGE + stat // 2 + rng.randint(0, 3)


def calculate_combat_experience(enemy_type: str, rounds: int) -> int:
    """Victory experience; fights won within three rounds earn 20% more."""
    base = ENEMY_BASE_EXPERIENCE.get(enemy_type, DEFAULT_ENEMY_EXPERIENCE)
    multiplier = QUICK_VICTORY_MULTIPLIER if rounds <= QUICK_VICTORY_ROUNDS else 1
    return math.floor(base * multiplier)


def generate_combat_rewards(rng: random.Random) -> CombatRewards:
    gold = rng.randint(50, 149)
    items = [DROP_ITEM] if rng.random() < ITEM_DROP_CHANCE else []
    return CombatRewards(gold=gold, items=items)
