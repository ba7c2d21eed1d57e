"""
Configuration-driven scorer.

  1. Factor scores (first matching option per factor, declaration order)
  2. Additive total
  3. Tier from the configured thresholds
  4. Automatic outcome (first outcome option that matches)
  5. Tier override for the reserved EDD outcome

EDD triggers are evaluated separately by check_triggers() and never touch
the score or the tier.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

import structlog

from amlrisk.schemas.assessment import (
    Answer,
    AutomaticOutcomeResult,
    ClientCategory,
    EDDTriggerResult,
    RiskFactorResult,
    RiskTier,
)
from amlrisk.schemas.rules import RiskScoringConfig
from amlrisk.scoring.factors import condition_holds, find_option, matches, score_factor

logger = structlog.get_logger()

# Outcome id that forces the most severe tier regardless of score.
TIER_FORCING_OUTCOME = "HIGH_RISK_EDD_REQUIRED"


@dataclass(frozen=True)
class ScoreOutcome:
    score: int
    tier: RiskTier
    factors: list[RiskFactorResult] = field(default_factory=list)
    automatic_outcome: Optional[AutomaticOutcomeResult] = None


def score(
    category: ClientCategory,
    answers: Mapping[str, Answer],
    config: RiskScoringConfig,
) -> ScoreOutcome:
    factors: list[RiskFactorResult] = []
    total = 0

    for factor in config.factors_for(category):
        result = score_factor(factor, answers)
        if result is not None:
            factors.append(result)
            total += result.score

    tier = classify_tier(total, config)

    outcome = detect_automatic_outcome(category, answers, config)
    if outcome is not None and outcome.outcome_id == TIER_FORCING_OUTCOME:
        tier = config.highest_tier

    return ScoreOutcome(score=total, tier=tier, factors=factors, automatic_outcome=outcome)


# ═══════════════════════════════════════════════════════════════
# Tier thresholds
#   First tier in declared order whose [min, max] contains the score.
#   A miss means the thresholds do not partition the score range; the
#   most severe tier is used and the gap is logged.
# ═══════════════════════════════════════════════════════════════
def classify_tier(total: int, config: RiskScoringConfig) -> RiskTier:
    for tier in config.risk_levels:
        threshold = config.thresholds.get(tier)
        if threshold is not None and threshold.contains(total):
            return tier

    fallback = config.highest_tier
    logger.warning(
        "tier_threshold_miss",
        score=total,
        fallback_tier=fallback.value,
        scoring_version=config.meta.version,
    )
    return fallback


def detect_automatic_outcome(
    category: ClientCategory,
    answers: Mapping[str, Answer],
    config: RiskScoringConfig,
) -> Optional[AutomaticOutcomeResult]:
    for factor in config.factors_for(category):
        answer = answers.get(factor.field_id)
        if answer is None:
            continue
        for option in factor.options:
            if not option.outcome:
                continue
            if not matches(answer, option):
                continue
            outcome = config.automatic_outcomes.get(option.outcome)
            if outcome is None:
                # Outcome id not in the catalogue; keep scanning.
                continue
            return AutomaticOutcomeResult(
                outcome_id=option.outcome,
                description=outcome.description,
                triggered_by=f'{factor.label}: "{option.answer}"',
            )
    return None


def check_triggers(
    config: RiskScoringConfig,
    category: ClientCategory,
    answers: Mapping[str, Answer],
) -> list[EDDTriggerResult]:
    triggers: list[EDDTriggerResult] = []
    for trigger in config.triggers_for(category):
        answer = answers.get(trigger.field_id)
        if answer is None:
            continue
        option = find_option(answer, trigger.options)
        if option is None:
            continue
        if not all(condition_holds(c, answers) for c in trigger.requires):
            continue
        triggers.append(EDDTriggerResult(
            trigger_id=trigger.id,
            description=trigger.description,
            authority=trigger.authority,
            triggered_by=f'{trigger.label}: "{option.answer}"',
        ))
    return triggers


def build_rationale(
    total: int,
    tier: RiskTier,
    factors: list[RiskFactorResult],
    outcome: Optional[AutomaticOutcomeResult],
    config: RiskScoringConfig,
) -> list[str]:
    lines = [f"Risk assessment: {tier.value} (score: {total})"]

    threshold = config.thresholds.get(tier)
    if threshold is not None and threshold.contains(total):
        if threshold.max is None:
            lines.append(f"Score of {total} meets {tier.value} threshold ({threshold.label()})")
        else:
            lines.append(f"Score of {total} falls within {tier.value} range ({threshold.label()})")
    elif outcome is not None and outcome.outcome_id == TIER_FORCING_OUTCOME:
        lines.append(f"Score of {total} is outside the {tier.value} range; {tier.value} applied by automatic outcome")
    else:
        lines.append(f"Score of {total} matched no configured range; defaulted to {tier.value}")

    if outcome is not None:
        lines.append(f"AUTOMATIC OUTCOME: {outcome.description}")
        lines.append(f"Triggered by: {outcome.triggered_by}")

    contributing = [f for f in factors if f.score > 0]
    if contributing:
        lines.append("")
        lines.append("Contributing risk factors:")
        for f in contributing:
            lines.append(f"  - {f.rationale}")

    return lines
