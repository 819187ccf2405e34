"""
Level and XP curve for MintForge.

Levels are linear in total experience: every XP_PER_LEVEL points is one
level, and a fresh character starts at level 1 with 0 XP.
"""

XP_PER_LEVEL = 1000


def level_from_total_xp(total_xp: int, xp_per_level: int = XP_PER_LEVEL) -> int:
    """
    Compute character level from total experience points.

    Args:
        total_xp: Total experience points (non-negative)
        xp_per_level: Experience per level

    Returns:
        floor(total_xp / xp_per_level) + 1

    Raises:
        ValueError: If total_xp < 0 or xp_per_level < 1
    """
    if total_xp < 0:
        raise ValueError("total_xp must be non-negative")
    if xp_per_level < 1:
        raise ValueError("xp_per_level must be >= 1")
    return total_xp // xp_per_level + 1


def total_xp_for_level(level: int, xp_per_level: int = XP_PER_LEVEL) -> int:
    """
    Total XP required to reach a given level (cumulative).

    Raises:
        ValueError: If level < 1
    """
    if level < 1:
        raise ValueError("level must be >= 1")
    return (level - 1) * xp_per_level


def xp_to_next_level(total_xp: int, xp_per_level: int = XP_PER_LEVEL) -> int:
    """Experience still needed to reach the next level."""
    next_level = level_from_total_xp(total_xp, xp_per_level) + 1
    return total_xp_for_level(next_level, xp_per_level) - total_xp
