from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .records import PARITY, Record
from .rules import Rule, next_aligned_height


OUTCOMES = {
    "type": ("ODD", "EVEN"),
    "size_type": ("BIG", "SMALL"),
}


@dataclass
class Streak:
    value: Optional[str] = None
    count: int = 0


@dataclass
class StreakAlert:
    rule_id: str
    key: str
    value: str
    count: int
    threshold: int
    next_height: int


def tally(records: Sequence[Record], key: str = PARITY) -> Dict[str, int]:
    counts = Counter(getattr(r, key) for r in records)
    return {outcome: counts.get(outcome, 0) for outcome in OUTCOMES[key]}


def current_streak(records: Sequence[Record], key: str = PARITY) -> Streak:
    """Length of the run ending at the newest record.

    ``records`` must be newest first, as returned by ``Window.snapshot``.
    """
    if not records:
        return Streak()
    first = getattr(records[0], key)
    count = 0
    for r in records:
        if getattr(r, key) != first:
            break
        count += 1
    return Streak(value=first, count=count)


def streak_alert(records: Sequence[Record], rule: Rule, key: str = PARITY) -> Optional[StreakAlert]:
    streak = current_streak(records, key)
    threshold = rule.dragon_threshold or 3
    if streak.value is None or streak.count < threshold:
        return None
    return StreakAlert(
        rule_id=rule.id,
        key=key,
        value=streak.value,
        count=streak.count,
        threshold=threshold,
        next_height=next_aligned_height(records[0].height, rule),
    )
