"""XP multiplier resolution: subscription tier and streak bonus.

Tier names are matched exactly (case-sensitive) against the billing plans.
Only an active subscription earns its tier multiplier.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

TIER_MULTIPLIERS: dict[str, Decimal] = {
    "Elite Legend Squad": Decimal("2.0"),
    "All Access Plan": Decimal("1.5"),
    "5 Tutor Plan": Decimal("1.25"),
    "Single Tutor Plan": Decimal("1.1"),
}

# (min streak days, bonus), highest threshold first
STREAK_BONUSES: list[tuple[int, Decimal]] = [
    (7, Decimal("2.0")),
    (5, Decimal("1.5")),
    (3, Decimal("1.25")),
]

POLICIES = ("multiply", "max", "sum")

_ONE = Decimal("1")


@dataclass(frozen=True)
class Multiplier:
    """Resolved multiplier for one XP grant."""

    tier: Decimal
    streak: Decimal
    combined: Decimal

    def apply(self, base_amount: int) -> int:
        """Scale a base XP amount, rounding half-up to whole XP."""
        scaled = Decimal(base_amount) * self.combined
        return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def tier_multiplier(tier_name: str | None, is_active: bool = True) -> Decimal:
    """Multiplier for a subscription tier. Unknown or inactive plans get 1.0."""
    if not is_active or tier_name is None:
        return _ONE
    return TIER_MULTIPLIERS.get(tier_name, _ONE)


def streak_bonus(streak: int) -> Decimal:
    """Bonus for consecutive active days. Clamped at the 7-day tier."""
    for threshold, bonus in STREAK_BONUSES:
        if streak >= threshold:
            return bonus
    return _ONE


def combine(tier: Decimal, streak: Decimal, policy: str = "multiply") -> Decimal:
    """Combine tier and streak multipliers under the configured policy.

    multiply: tier * streak
    max:      the larger of the two
    sum:      tier + streak - 1 (each contributes its bonus additively)
    """
    if policy == "multiply":
        return tier * streak
    if policy == "max":
        return max(tier, streak)
    if policy == "sum":
        return tier + streak - _ONE
    msg = f"Unknown multiplier policy: {policy!r} (expected one of {', '.join(POLICIES)})"
    raise ValueError(msg)


def resolve(
    tier_name: str | None,
    streak: int,
    *,
    is_active: bool = True,
    policy: str = "multiply",
) -> Multiplier:
    """Resolve the multiplier applied to an XP grant."""
    tier = tier_multiplier(tier_name, is_active)
    bonus = streak_bonus(streak)
    return Multiplier(tier=tier, streak=bonus, combined=combine(tier, bonus, policy))
