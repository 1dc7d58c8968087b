from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


class Rule(BaseModel):
    """Sampling policy selecting which block heights are "aligned".

    A rule with ``step`` 20 and ``offset`` 0 keeps every 20th block
    (heights divisible by 20). A positive ``offset`` anchors the sequence at
    that height instead: only heights ``offset, offset + step, ...`` align.
    Out-of-range values are tolerated here and normalized at evaluation time.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    step: int = Field(1, description="Block interval; <= 1 keeps every block")
    offset: int = Field(0, description="Anchor height; 0 aligns to absolute height")
    trend_rows: int = 6
    bead_rows: Optional[int] = Field(None, description="Grid rows; None uses the configured grid")
    dragon_threshold: int = Field(3, description="Minimum streak worth reporting")


DEFAULT_RULES = (
    Rule(id="1", label="1 block", step=1),
    Rule(id="20", label="20 blocks", step=20),
    Rule(id="60", label="60 blocks", step=60),
    Rule(id="100", label="100 blocks", step=100),
)


def normalize_rule(rule: Rule) -> Rule:
    step = rule.step if rule.step > 0 else 1
    offset = rule.offset if rule.offset >= 0 else 0
    if step == rule.step and offset == rule.offset:
        return rule
    return rule.model_copy(update={"step": step, "offset": offset})


def is_aligned(height: int, rule: Rule) -> bool:
    step = rule.step if rule.step > 0 else 1
    offset = rule.offset if rule.offset >= 0 else 0
    if step <= 1:
        return True
    if offset > 0:
        return height >= offset and (height - offset) % step == 0
    return height % step == 0


def next_aligned_height(height: int, rule: Rule) -> int:
    """Smallest aligned height strictly greater than ``height``."""
    rule = normalize_rule(rule)
    if rule.step <= 1:
        return height + 1
    if rule.offset > 0 and height < rule.offset:
        return rule.offset
    base = rule.offset if rule.offset > 0 else 0
    return height + rule.step - (height - base) % rule.step


def find_rule(rules: Sequence[Rule], rule_id: Optional[str]) -> Rule:
    # Unknown ids fall back to the first rule
    for rule in rules:
        if rule.id == rule_id:
            return rule
    return rules[0]
