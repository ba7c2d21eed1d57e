"""
Deterministic determination renderer.

Renders the formal determination document from a stored assessment snapshot.
  - Never recomputes score, tier or actions
  - Same snapshot + options → byte-identical text
  - Timestamps always rendered in UTC
  - No conditional wording in the output

Section order:
   1. HEADING
   2. ASSESSMENT DETAILS
   3. RISK DETERMINATION
   4. SCORING BREAKDOWN
   5. CDD REQUIREMENTS (numbered; EDD sub-list last)
   6. EDD TRIGGERS           (only if present)
   7. WARNINGS               (only if present)
   8. VERIFICATION EVIDENCE  (only if supplied)
   9. RISK FACTORS
  10. POLICY REFERENCES
  11. RISK APPETITE

Rule configuration is read for presentation only: threshold label, factor
list of the breakdown table, and scoring model name.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

import structlog

from amlrisk.determination.jurisdiction import jurisdiction_details
from amlrisk.determination.references import RISK_APPETITE, collect_references
from amlrisk.rules.store import RuleStore, get_rule_store
from amlrisk.schemas.assessment import (
    ActionCategory,
    ActionPriority,
    AssessmentResult,
    ClientCategory,
    MandatoryAction,
    RawAnswer,
)
from amlrisk.schemas.determination import (
    Determination,
    DeterminationSection,
    EvidenceRecord,
    RenderOptions,
)
from amlrisk.schemas.rules import RiskScoringConfig

logger = structlog.get_logger()

HEAVY_RULE = "═" * 70
LIGHT_RULE = "─" * 70

HEADING_TEXT = "CLIENT & MATTER LEVEL RISK ASSESSMENT DETERMINATION"

TIER_TEXT = {
    "LOW": "Low Risk",
    "MEDIUM": "Medium Risk",
    "HIGH": "High Risk",
}

CLIENT_TYPE_TEXT = {
    ClientCategory.INDIVIDUAL: "Individual",
    ClientCategory.CORPORATE: "Non-individual",
}

CATEGORY_LABELS = {
    ActionCategory.CDD: "Customer Due Diligence (CDD)",
    ActionCategory.SOW: "Source of Wealth (SoW)",
    ActionCategory.SOF: "Source of Funds (SoF)",
    ActionCategory.MONITORING: "Ongoing Monitoring",
    ActionCategory.ESCALATION: "Escalation",
}
CATEGORY_ORDER = [
    ActionCategory.CDD,
    ActionCategory.SOW,
    ActionCategory.SOF,
    ActionCategory.MONITORING,
    ActionCategory.ESCALATION,
]
EDD_LABEL = "[Enhanced Due Diligence (EDD)]"

# ── Scoring breakdown table ──
FACTOR_WIDTH = 40
ANSWER_WIDTH = 30
SCORE_WIDTH = 5
NOT_APPLICABLE = "Not applicable"


def render(
    snapshot: Union[AssessmentResult, Mapping[str, Any]],
    options: Optional[RenderOptions] = None,
    store: Optional[RuleStore] = None,
) -> Determination:
    """
    Render a determination from a stored snapshot (model or persisted dict).
    """
    result = snapshot if isinstance(snapshot, AssessmentResult) else AssessmentResult.from_snapshot(snapshot)
    options = options or RenderOptions()
    config = (store or get_rule_store()).risk_scoring()

    sections = [
        DeterminationSection(title="HEADING", body=HEADING_TEXT),
        _details(result, options),
        _risk_determination(result, config),
        _scoring_breakdown(result, config),
        _cdd_requirements(result),
    ]
    for optional in (
        _edd_triggers(result),
        _warnings(result),
        _verification_evidence(options.evidence),
    ):
        if optional is not None:
            sections.append(optional)
    sections += [
        _risk_factors(result),
        _policy_references(result, config),
        DeterminationSection(title="RISK APPETITE", body=RISK_APPETITE[result.tier]),
    ]

    parts: list[str] = []
    for section in sections:
        if section.title == "HEADING":
            parts += [HEAVY_RULE, section.body, HEAVY_RULE]
        else:
            parts += ["", LIGHT_RULE, section.title, LIGHT_RULE, section.body]

    logger.debug(
        "determination_rendered",
        tier=result.tier.value,
        sections=len(sections),
        matter_reference=options.matter_reference,
    )
    return Determination(text="\n".join(parts), sections=sections)


# ═══════════════════════════════════════════════════════════════
# Formatting helpers
# ═══════════════════════════════════════════════════════════════

def format_timestamp(value: datetime) -> str:
    """YYYY-MM-DD HH:MM UTC; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def format_answer(answer: RawAnswer) -> str:
    if isinstance(answer, list):
        return ", ".join(answer)
    return answer


def _cell(text: str, width: int) -> str:
    if len(text) > width:
        return text[: width - 1] + "…"
    return text.ljust(width)


def _row(factor: str, answer: str, score: str) -> str:
    return f"{_cell(factor, FACTOR_WIDTH)} {_cell(answer, ANSWER_WIDTH)} {score[:SCORE_WIDTH].rjust(SCORE_WIDTH)}"


def _score_text(score: int) -> str:
    return f"+{score}" if score > 0 else str(score)


def _model_name(result: AssessmentResult, config: RiskScoringConfig) -> str:
    version = result.model_version or config.meta.version
    return f"{config.meta.source} v{version}"


# ═══════════════════════════════════════════════════════════════
# Sections
# ═══════════════════════════════════════════════════════════════

def _details(result: AssessmentResult, options: RenderOptions) -> DeterminationSection:
    lines = [
        f"Matter Reference: {options.matter_reference or 'Not recorded'}",
        f"Assessment Date: {format_timestamp(result.timestamp)}",
    ]
    if options.finalised_at is not None:
        lines.append(f"Finalised Date: {format_timestamp(options.finalised_at)}")
        lines.append("Status: FINALISED")
    else:
        lines.append("Status: DRAFT")

    if result.category is not None:
        lines.append(f"Client Type: {CLIENT_TYPE_TEXT[result.category]}")

    if options.jurisdiction is not None:
        details = jurisdiction_details(options.jurisdiction)
        lines.append(f"Jurisdiction: {details.label}")
        lines.append(f"Regulator: {details.regulator}")

    return DeterminationSection(title="ASSESSMENT DETAILS", body="\n".join(lines))


def _risk_determination(result: AssessmentResult, config: RiskScoringConfig) -> DeterminationSection:
    threshold = config.thresholds.get(result.tier)
    lines = [
        f"Total Score: {result.score}",
        f"Risk Level: {TIER_TEXT.get(result.tier.value, result.tier.value)}",
        f"Threshold: {threshold.label() if threshold else ''}",
    ]

    outcome = result.automatic_outcome
    if outcome is not None:
        lines += [
            "",
            "AUTOMATIC OUTCOME APPLIED:",
            f"- {outcome.outcome_id}",
            f"- {outcome.description}",
            f"- Trigger: {outcome.triggered_by}",
        ]

    return DeterminationSection(title="RISK DETERMINATION", body="\n".join(lines))


def _scoring_breakdown(result: AssessmentResult, config: RiskScoringConfig) -> DeterminationSection:
    recorded = {f.factor_id: f for f in result.risk_factors}
    lines = [
        _row("Factor", "Answer", "Score"),
        " ".join(["-" * FACTOR_WIDTH, "-" * ANSWER_WIDTH, "-" * SCORE_WIDTH]),
    ]

    shown: set[str] = set()
    if result.category is not None:
        for factor in config.factors_for(result.category):
            if not factor.scored:
                continue
            shown.add(factor.id)
            match = recorded.get(factor.id)
            if match is None:
                lines.append(_row(factor.label, NOT_APPLICABLE, "-"))
            else:
                lines.append(_row(match.label, format_answer(match.answer), _score_text(match.score)))

    # Factors recorded under an older model version keep their snapshot row.
    for f in result.risk_factors:
        if f.factor_id not in shown:
            lines.append(_row(f.label, format_answer(f.answer), _score_text(f.score)))

    lines.append(" ".join(["-" * FACTOR_WIDTH, "-" * ANSWER_WIDTH, "-" * SCORE_WIDTH]))
    lines.append(_row("Total", "", str(result.score)))

    return DeterminationSection(
        title="SCORING BREAKDOWN",
        body="\n".join(line.rstrip() for line in lines),
    )


def _action_text(action: MandatoryAction) -> str:
    return action.display_text or action.description


def _cdd_requirements(result: AssessmentResult) -> DeterminationSection:
    standard = [a for a in result.actions if a.category != ActionCategory.EDD]
    edd = [a for a in result.actions if a.category == ActionCategory.EDD]

    if not standard and not edd:
        return DeterminationSection(title="CDD REQUIREMENTS", body="No CDD requirements.")

    grouped: dict[ActionCategory, list[MandatoryAction]] = {}
    for action in standard:
        grouped.setdefault(action.category, []).append(action)

    def category_rank(category: ActionCategory) -> tuple[int, str]:
        rank = CATEGORY_ORDER.index(category) if category in CATEGORY_ORDER else len(CATEGORY_ORDER)
        return rank, category.value

    lines: list[str] = []
    number = 0
    for category in sorted(grouped, key=category_rank):
        lines.append(f"[{CATEGORY_LABELS.get(category, category.value.upper())}]")
        for action in sorted(grouped[category], key=lambda a: a.action_id):
            number += 1
            suffix = " [Recommended]" if action.priority == ActionPriority.RECOMMENDED else ""
            lines.append(f"{number}. {_action_text(action)}{suffix}")
            if not action.display_text and action.evidence_types:
                lines.append("   Supporting evidence:")
                lines += [f"     - {e}" for e in action.evidence_types]
        lines.append("")

    if edd:
        lines.append(EDD_LABEL)
        for action in sorted(edd, key=lambda a: a.action_id):
            number += 1
            lines.append(f"{number}. {_action_text(action)}")
        lines.append("")

    if lines and lines[-1] == "":
        lines.pop()

    return DeterminationSection(title="CDD REQUIREMENTS", body="\n".join(lines))


def _edd_triggers(result: AssessmentResult) -> Optional[DeterminationSection]:
    if not result.triggers:
        return None

    lines = ["The following Enhanced Due Diligence triggers have been detected:", ""]
    for trigger in result.triggers:
        lines.append(f"- {trigger.description}")
        lines.append(f"  Authority: {trigger.authority}")
    lines.append("")
    lines.append("EDD triggers require Enhanced Due Diligence actions regardless of the calculated risk level.")

    return DeterminationSection(title="EDD TRIGGERS", body="\n".join(lines))


def _warnings(result: AssessmentResult) -> Optional[DeterminationSection]:
    if not result.warnings:
        return None

    blocks = [
        f"MLRO ESCALATION REQUIRED: {w.message}\nAuthority: {w.authority}"
        for w in result.warnings
    ]
    return DeterminationSection(title="WARNINGS", body="\n\n".join(blocks))


def _verification_evidence(evidence: list[EvidenceRecord]) -> Optional[DeterminationSection]:
    if not evidence:
        return None

    lines: list[str] = []
    for item in evidence:
        date = format_timestamp(item.created_at)
        if item.evidence_type == "companies_house":
            data = item.data or {}
            profile = data.get("profile") or {}
            name = profile.get("company_name") or "Unknown"
            status = profile.get("company_status") or "unknown"
            officers = len(data.get("officers") or [])
            lines.append(f"- Companies House Report: {name} ({status}), {officers} active officer(s)")
            lines.append(f"  Looked up: {date}")
        elif item.evidence_type == "file_upload":
            lines.append(f"- File: {item.label}")
            lines.append(f"  Uploaded: {date}")
        else:
            lines.append(f"- {item.label}")
            lines.append(f"  Recorded: {date}")

    return DeterminationSection(title="VERIFICATION EVIDENCE", body="\n".join(lines))


def _risk_factors(result: AssessmentResult) -> DeterminationSection:
    contributing = sorted(
        (f for f in result.risk_factors if f.score > 0),
        key=lambda f: (-f.score, f.factor_id),
    )
    if not contributing:
        return DeterminationSection(title="RISK FACTORS", body="No risk factors triggered.")

    lines: list[str] = []
    for f in contributing:
        lines.append(f"- {f.label} (+{f.score})")
        lines.append(f"  Answer: {format_answer(f.answer)}")

    return DeterminationSection(title="RISK FACTORS", body="\n".join(lines))


def _policy_references(result: AssessmentResult, config: RiskScoringConfig) -> DeterminationSection:
    references = collect_references(
        result.tier,
        categories={a.category.value for a in result.actions},
        outcome_id=result.automatic_outcome.outcome_id if result.automatic_outcome else None,
        trigger_ids=[t.trigger_id for t in result.triggers],
        threshold_authority=config.threshold_authority,
    )

    lines = [f"Scoring Model: {_model_name(result, config)}", "", "Applicable Policy Sections:"]
    lines += [f"  - {ref}" for ref in references]

    return DeterminationSection(title="POLICY REFERENCES", body="\n".join(lines))
