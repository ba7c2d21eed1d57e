"""
Option matching for configured scoring factors.

Each factor:
  1. Reads its answer from the normalised answer set (by field id)
  2. Finds the first option whose match rules accept the answer
  3. Returns a RiskFactorResult carrying that option's score

Summation, tiering and outcomes live in scoring.scorer, not here.

Matching priority within one option:
  option.answer (exact) → exact rules → any_of rules → prefix rules

A multiple answer matches on its first value only.
Convention: HIGHER score = HIGHER risk.
"""
from __future__ import annotations

from typing import Mapping, Optional

from amlrisk.schemas.assessment import Answer, RiskFactorResult
from amlrisk.schemas.rules import (
    AnyOfMatch,
    ExactMatch,
    PrefixMatch,
    ScoringFactor,
    ScoringOption,
    TriggerCondition,
)


def matches(answer: Answer, option: ScoringOption) -> bool:
    value = answer.primary

    if option.answer == value:
        return True

    for rule in option.match:
        if isinstance(rule, ExactMatch) and rule.value == value:
            return True
    for rule in option.match:
        if isinstance(rule, AnyOfMatch) and value in rule.values:
            return True
    for rule in option.match:
        if isinstance(rule, PrefixMatch) and value.startswith(rule.prefix):
            return True

    return False


def find_option(answer: Answer, options: list[ScoringOption]) -> Optional[ScoringOption]:
    """First matching option wins; declaration order is significant."""
    for option in options:
        if matches(answer, option):
            return option
    return None


def condition_holds(condition: TriggerCondition, answers: Mapping[str, Answer]) -> bool:
    answer = answers.get(condition.field_id)
    if answer is None:
        return False
    return find_option(answer, condition.options) is not None


def factor_rationale(factor: ScoringFactor, option: ScoringOption, score: int) -> str:
    if option.outcome:
        return f'{factor.label}: "{option.answer}" triggers {option.outcome}'
    if score > 0:
        return f'{factor.label}: "{option.answer}" adds +{score} to risk score'
    return f'{factor.label}: "{option.answer}" (no additional risk)'


# ═══════════════════════════════════════════════════════════════
# Factor scoring
#   Unscored factors, absent answers and unmatched answers → None
#   Outcome options record score 0
# ═══════════════════════════════════════════════════════════════
def score_factor(factor: ScoringFactor, answers: Mapping[str, Answer]) -> Optional[RiskFactorResult]:
    if not factor.scored:
        return None

    answer = answers.get(factor.field_id)
    if answer is None:
        return None

    option = find_option(answer, factor.options)
    if option is None:
        return None

    score = 0 if option.outcome else (option.score or 0)
    return RiskFactorResult(
        factor_id=factor.id,
        label=factor.label,
        field_id=factor.field_id,
        answer=answer.raw,
        score=score,
        rationale=factor_rationale(factor, option, score),
    )
