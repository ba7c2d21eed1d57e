"""
Assessment orchestrator

Orchestrates:
  1. Answer normalisation
  2. Scorer (factor scores, total, tier, automatic outcome)
  3. EDD trigger scan
  4. Requirements resolver (actions + warnings)
  5. Rationale
  6. Snapshot assembly (timestamp + scoring model version)

The only impure step in the engine: it reads the clock. Everything else is a
function of (category, answers, rule configuration).
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

import structlog

from amlrisk.rules.store import RuleStore, get_rule_store
from amlrisk.schemas.assessment import (
    AssessmentRequest,
    AssessmentResult,
    ClientCategory,
    normalize_answers,
)
from amlrisk.scoring import requirements, scorer

logger = structlog.get_logger()


def run(
    category: Union[ClientCategory, str],
    answers: Optional[Mapping[str, Any]],
    store: Optional[RuleStore] = None,
) -> AssessmentResult:
    """
    Main assessment entry point.
    """
    t0 = time.perf_counter_ns()
    category = ClientCategory(category)
    store = store or get_rule_store()

    # ── Step 1: Configuration (loaded once per store) ──
    config = store.load()
    scoring_config = config.risk_scoring

    # ── Step 2: Normalise answers ──
    normalized = normalize_answers(answers)

    # ── Step 3: Score + tier + outcome ──
    outcome = scorer.score(category, normalized, scoring_config)

    # ── Step 4: EDD triggers (never change score or tier) ──
    triggers = scorer.check_triggers(scoring_config, category, normalized)

    # ── Step 5: Mandatory actions ──
    resolved = requirements.resolve(
        category,
        outcome.tier,
        config.cdd_ruleset,
        normalized,
        triggers,
    )

    # ── Step 6: Rationale ──
    rationale = scorer.build_rationale(
        outcome.score,
        outcome.tier,
        outcome.factors,
        outcome.automatic_outcome,
        scoring_config,
    )

    elapsed_ms = int((time.perf_counter_ns() - t0) / 1_000_000)

    logger.info(
        "risk_assessment_complete",
        category=category.value,
        score=outcome.score,
        tier=outcome.tier.value,
        automatic_outcome=outcome.automatic_outcome.outcome_id if outcome.automatic_outcome else None,
        triggers_count=len(triggers),
        actions_count=len(resolved.actions),
        warnings_count=len(resolved.warnings),
        model_version=scoring_config.meta.version,
        elapsed_ms=elapsed_ms,
    )

    return AssessmentResult(
        score=outcome.score,
        tier=outcome.tier,
        automatic_outcome=outcome.automatic_outcome,
        risk_factors=outcome.factors,
        rationale=rationale,
        actions=resolved.actions,
        triggers=triggers,
        warnings=resolved.warnings,
        timestamp=datetime.now(timezone.utc),
        category=category,
        model_version=scoring_config.meta.version,
    )


def run_request(request: AssessmentRequest, store: Optional[RuleStore] = None) -> AssessmentResult:
    return run(request.category, request.answers, store)


def assess_individual(answers: Mapping[str, Any], store: Optional[RuleStore] = None) -> AssessmentResult:
    return run(ClientCategory.INDIVIDUAL, answers, store)


def assess_corporate(answers: Mapping[str, Any], store: Optional[RuleStore] = None) -> AssessmentResult:
    return run(ClientCategory.CORPORATE, answers, store)
