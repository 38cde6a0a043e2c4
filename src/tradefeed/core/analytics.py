"""
Derived analytics over a space's entries.

These are pure functions over already-loaded entries: the collective
"vibe" of a space, its win/P&L totals and the milestone ladder those
wins unlock.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from tradefeed.core.entries.models import Entry, MentalState

# Entries considered when computing the collective vibe
VIBE_WINDOW = 10
# Minimum entries with a mental state before a vibe is reported
VIBE_MIN_ENTRIES = 3
# Share of the window a single state needs to become the vibe
VIBE_THRESHOLD = 0.4


@dataclass(frozen=True)
class MilestoneLevel:
    """One rung of the milestone ladder."""

    level: int
    name: str
    required_wins: int
    badge: str


MILESTONE_LEVELS: tuple[MilestoneLevel, ...] = (
    MilestoneLevel(1, "Starter", 0, "🌱"),
    MilestoneLevel(2, "Rising", 10, "📈"),
    MilestoneLevel(3, "Consistent", 25, "💜"),
    MilestoneLevel(4, "Dedicated", 50, "💚"),
    MilestoneLevel(5, "Skilled", 75, "🔥"),
    MilestoneLevel(6, "Elite", 100, "🏆"),
    MilestoneLevel(7, "Master", 150, "💙"),
    MilestoneLevel(8, "Champion", 200, "⚡"),
    MilestoneLevel(9, "Diamond", 250, "💎"),
    MilestoneLevel(10, "Mythic", 350, "🌙"),
    MilestoneLevel(11, "Platinum", 400, "🪙"),
    MilestoneLevel(12, "Legendary", 500, "👑"),
)


@dataclass(frozen=True)
class SpaceStats:
    """Aggregate totals for a space."""

    total_wins: int
    total_entries: int
    total_pnl: float


def parse_profit_loss(raw: Any) -> float | None:
    """
    Parse a P&L value permissively.

    Accepts numbers and numeric strings, tolerating a leading currency
    sign, thousands separators and surrounding whitespace. Anything that
    cannot be parsed is treated as "no value" and returns None rather
    than raising.

    Example:
        >>> parse_profit_loss("$1,250.50")
        1250.5
        >>> parse_profit_loss("n/a") is None
        True
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip().replace(",", "").replace("$", "")
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def collective_vibe(entries: Sequence[Entry]) -> MentalState | None:
    """
    Return the dominant mental state of a space's most recent entries.

    Looks at the newest entries, keeps those with a mental state and
    reports a state once it reaches the threshold share. Returns None
    when too few entries carry a state or none dominates.
    """
    recent = [e.mental_state for e in entries[:VIBE_WINDOW] if e.mental_state]
    if len(recent) < VIBE_MIN_ENTRIES:
        return None

    threshold = len(recent) * VIBE_THRESHOLD
    for state in MentalState:
        if recent.count(state) >= threshold:
            return state
    return None


def space_stats(entries: Sequence[Entry]) -> SpaceStats:
    """Count winning entries and total the P&L of a space."""
    wins = sum(1 for e in entries if e.profit_loss is not None and e.profit_loss > 0)
    pnl = sum(e.profit_loss or 0.0 for e in entries)
    return SpaceStats(total_wins=wins, total_entries=len(entries), total_pnl=pnl)


def milestone_level(wins: int) -> MilestoneLevel:
    """Return the highest milestone reached with ``wins`` winning entries."""
    for level in reversed(MILESTONE_LEVELS):
        if wins >= level.required_wins:
            return level
    return MILESTONE_LEVELS[0]


def next_milestone(wins: int) -> MilestoneLevel | None:
    """Return the next milestone to unlock, or None at the top of the ladder."""
    current = milestone_level(wins)
    idx = MILESTONE_LEVELS.index(current) + 1
    return MILESTONE_LEVELS[idx] if idx < len(MILESTONE_LEVELS) else None


__all__ = [
    "MILESTONE_LEVELS",
    "MilestoneLevel",
    "SpaceStats",
    "collective_vibe",
    "milestone_level",
    "next_milestone",
    "parse_profit_loss",
    "space_stats",
]
