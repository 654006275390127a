"""Level table and XP-to-level conversion."""

# XP required to reach each level. Level 1 = 0 XP, level 2 = 100 XP, ...
LEVEL_THRESHOLDS: tuple[int, ...] = (
    0, 100, 250, 450, 700, 1000, 1350, 1750, 2200, 2700,
    3300, 4000, 4800, 5700, 6700, 7800, 9000, 10300, 11700, 13200,
)

MAX_LEVEL = len(LEVEL_THRESHOLDS)


def get_level_from_xp(xp: int) -> int:
    """Largest level whose threshold ``xp`` has reached, clamped at MAX_LEVEL."""
    level = 1
    for i in range(1, MAX_LEVEL):
        if xp >= LEVEL_THRESHOLDS[i]:
            level = i + 1
        else:
            break
    return level


def get_xp_for_next_level(level: int) -> int:
    """Total XP needed to reach the level after ``level``.

    At max level this is the top threshold.
    """
    if level >= MAX_LEVEL:
        return LEVEL_THRESHOLDS[-1]
    return LEVEL_THRESHOLDS[max(level, 1)]


def get_level_progress(xp: int) -> float:
    """Fraction (0-1) of the way from the current level to the next."""
    level = get_level_from_xp(xp)
    if level >= MAX_LEVEL:
        return 1.0
    current_level_xp = LEVEL_THRESHOLDS[level - 1]
    next_level_xp = LEVEL_THRESHOLDS[level]
    return (xp - current_level_xp) / (next_level_xp - current_level_xp)
