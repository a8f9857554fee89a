"""Level computation.

Levels are flat 100-XP steps and must match the app's XP bar:
level = floor(total / 100) + 1, progress = (total mod 100) / 100.
"""

from __future__ import annotations

XP_PER_LEVEL = 100


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP."""
    total_xp = max(total_xp, 0)
    xp_into_level = total_xp % XP_PER_LEVEL
    return {
        "level": total_xp // XP_PER_LEVEL + 1,
        "level_progress": xp_into_level / XP_PER_LEVEL,
        "xp_into_level": xp_into_level,
        "xp_for_level": XP_PER_LEVEL,
        "xp_to_next_level": XP_PER_LEVEL - xp_into_level,
    }
