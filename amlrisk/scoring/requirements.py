"""
Requirements resolver: maps (category, tier, answers, triggers) to the
mandatory due-diligence actions in the CDD ruleset.

Resolution order:
  1. Exclusion check on the entity-type answer (warning)
  2. Client-type key (mapping default for excluded entity types)
  3. Tier bundle, then every lower tier's bundle (inheritance)
  4. New-client wealth declaration at the lowest tier
  5. EDD injection when triggers fire below the highest tier
  6. De-duplication by action id (first occurrence wins)
  7. Escalation action per exclusion warning

Tiers are ordered LOW → MEDIUM → HIGH regardless of key order in the
catalogue document.

Never raises. A missing catalogue or tier yields no actions plus a warning;
callers treat an empty action list as "escalate".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import structlog

from amlrisk.schemas.assessment import (
    ActionCategory,
    ActionPriority,
    Answer,
    AssessmentWarning,
    ClientCategory,
    EDDTriggerResult,
    MandatoryAction,
    RiskTier,
)
from amlrisk.schemas.rules import (
    ActionGroup,
    CDDAction,
    CDDRuleset,
    ClientTypeCatalogue,
    ExcludedEntityType,
    MonitoringRequirement,
    TierBundle,
)

logger = structlog.get_logger()

INHERITANCE_MARKER_PREFIX = "all_"
FORM_PLACEHOLDER = "complete_form"

# Form action emitted when a sow / sof / edd group is required.
GROUP_FORMS: dict[ActionCategory, CDDAction] = {
    ActionCategory.SOW: CDDAction(
        action="sow_form",
        name="Source of Wealth",
        description="Complete and retain Source of Wealth Form",
    ),
    ActionCategory.SOF: CDDAction(
        action="sof_form",
        name="Source of Funds",
        description="Complete and retain Source of Funds Form",
    ),
    ActionCategory.EDD: CDDAction(
        action="edd_required",
        name="Enhanced Due Diligence",
        description="Enhanced Due Diligence is required for this risk level",
    ),
}

DEFAULT_ESCALATION = CDDAction(
    action="mlro_referral",
    name="MLRO Referral",
    description="Refer the matter to the MLRO before proceeding",
)


@dataclass(frozen=True)
class Requirements:
    actions: list[MandatoryAction] = field(default_factory=list)
    warnings: list[AssessmentWarning] = field(default_factory=list)


def resolve(
    category: ClientCategory,
    tier: RiskTier,
    catalogue: CDDRuleset,
    answers: Mapping[str, Answer],
    triggers: Iterable[EDDTriggerResult] = (),
) -> Requirements:
    triggers = list(triggers)

    # ── Step 1: Exclusions ──
    excluded = find_exclusion(category, answers, catalogue)
    warnings: list[AssessmentWarning] = []
    if excluded is not None:
        warnings.append(_exclusion_warning(excluded, catalogue))
        logger.warning(
            "entity_type_excluded",
            category=category.value,
            excluded_type=excluded.id,
        )

    # ── Step 2: Client type ──
    if excluded is not None:
        mapping = catalogue.client_type_mapping.get(category)
        key = mapping.default if mapping is not None else None
    else:
        key = client_type_key(category, answers, catalogue)
    client = catalogue.client_types.get(key) if key else None
    if client is None or tier not in client.risk_levels:
        logger.warning(
            "cdd_catalogue_missing",
            category=category.value,
            client_type=key,
            tier=tier.value,
        )
        warnings.append(_catalogue_missing_warning(key, tier, catalogue))
        return Requirements(actions=[], warnings=warnings)

    # ── Step 3: Tier bundle, then each lower tier ──
    tiers = [t for t in RiskTier if t in client.risk_levels]
    position = tiers.index(tier)
    actions: list[MandatoryAction] = []
    for t in reversed(tiers[: position + 1]):
        actions.extend(extract_actions(client.risk_levels[t]))

    # ── Step 4: New client at the lowest tier ──
    if position == 0 and is_new_client(category, answers, catalogue):
        actions.extend(_new_client_actions(client))

    # ── Step 5: Triggers below the highest tier ──
    if triggers and position < len(tiers) - 1:
        highest = client.risk_levels[tiers[-1]]
        actions.extend(_trigger_edd_actions(highest, catalogue))
        logger.debug(
            "trigger_edd_injected",
            tier=tier.value,
            triggers=[t.trigger_id for t in triggers],
        )

    # ── Step 6: Dedupe ──
    actions = dedupe(actions)

    # ── Step 7: Escalation ──
    if excluded is not None:
        escalation = catalogue.exclusions.escalation_action or DEFAULT_ESCALATION
        actions.append(_to_action(escalation, ActionCategory.ESCALATION))

    return Requirements(actions=actions, warnings=warnings)


# ═══════════════════════════════════════════════════════════════
# Client type mapping
# ═══════════════════════════════════════════════════════════════

def _entity_type(category: ClientCategory, answers: Mapping[str, Answer], catalogue: CDDRuleset) -> Optional[str]:
    mapping = catalogue.client_type_mapping.get(category)
    if mapping is None or mapping.entity_type_field is None:
        return None
    answer = answers.get(mapping.entity_type_field)
    return answer.display if answer is not None else None


def find_exclusion(
    category: ClientCategory,
    answers: Mapping[str, Answer],
    catalogue: CDDRuleset,
) -> Optional[ExcludedEntityType]:
    entity_type = _entity_type(category, answers, catalogue)
    if not entity_type:
        return None
    lowered = entity_type.lower()
    for excluded in catalogue.exclusions.excluded_types:
        if any(p.lower() in lowered for p in excluded.patterns):
            return excluded
    return None


def client_type_key(
    category: ClientCategory,
    answers: Mapping[str, Answer],
    catalogue: CDDRuleset,
) -> Optional[str]:
    mapping = catalogue.client_type_mapping.get(category)
    if mapping is None:
        return None
    entity_type = _entity_type(category, answers, catalogue)
    if entity_type:
        for rule in mapping.rules:
            if any(s in entity_type for s in rule.contains):
                return rule.client_type
    return mapping.default


def is_new_client(category: ClientCategory, answers: Mapping[str, Answer], catalogue: CDDRuleset) -> bool:
    marker = catalogue.new_client_fields.get(category)
    if marker is None:
        return False
    answer = answers.get(marker.field_id)
    return answer is not None and answer.primary == marker.value


# ═══════════════════════════════════════════════════════════════
# Bundle extraction
# ═══════════════════════════════════════════════════════════════

def _display_name(action_id: str) -> str:
    return action_id.replace("_", " ").title()


def _to_action(
    action: CDDAction,
    category: ActionCategory,
    priority: Optional[ActionPriority] = None,
) -> MandatoryAction:
    return MandatoryAction(
        action_id=action.action,
        name=action.name or _display_name(action.action),
        description=action.description,
        display_text=action.display_text,
        category=category,
        priority=priority or action.priority,
        evidence_types=list(action.evidence_types) or None,
    )


def _monitoring_action(action_id: str, name: str, req: Optional[MonitoringRequirement]) -> list[MandatoryAction]:
    if req is None or not req.required:
        return []
    return [MandatoryAction(
        action_id=action_id,
        name=name,
        description=req.description,
        display_text=req.display_text,
        category=ActionCategory.MONITORING,
    )]


def _group_actions(group: Optional[ActionGroup], category: ActionCategory) -> list[MandatoryAction]:
    if group is None or not group.required:
        return []
    actions = [_to_action(GROUP_FORMS[category], category)]
    for a in group.actions:
        if a.action == FORM_PLACEHOLDER:
            continue
        actions.append(_to_action(a, category))
    return actions


def extract_actions(bundle: TierBundle) -> list[MandatoryAction]:
    actions: list[MandatoryAction] = []

    for group in (
        bundle.cdd_actions,
        bundle.entity_identification,
        bundle.directors,
        bundle.members_partners,
        bundle.beneficial_ownership,
        bundle.ownership_control,
    ):
        for a in group:
            if a.action.startswith(INHERITANCE_MARKER_PREFIX):
                continue
            actions.append(_to_action(a, ActionCategory.CDD))

    actions += _monitoring_action("ongoing_monitoring", "Ongoing Monitoring", bundle.ongoing_monitoring)
    actions += _monitoring_action("enhanced_monitoring", "Enhanced Ongoing Monitoring", bundle.enhanced_monitoring)
    actions += _group_actions(bundle.sow, ActionCategory.SOW)
    actions += _group_actions(bundle.sof, ActionCategory.SOF)
    actions += _group_actions(bundle.edd, ActionCategory.EDD)
    return actions


def _new_client_actions(client: ClientTypeCatalogue) -> list[MandatoryAction]:
    if client.new_client is None:
        return []
    wealth = client.new_client
    return [_to_action(wealth.form, ActionCategory.SOW)] + [
        _to_action(a, ActionCategory.SOW) for a in wealth.actions
    ]


def _trigger_edd_actions(highest: TierBundle, catalogue: CDDRuleset) -> list[MandatoryAction]:
    umbrella = catalogue.trigger_edd or GROUP_FORMS[ActionCategory.EDD]
    actions = [_to_action(umbrella, ActionCategory.EDD)]
    if highest.edd is not None:
        actions += [
            _to_action(a, ActionCategory.EDD)
            for a in highest.edd.actions
            if a.action != FORM_PLACEHOLDER
        ]
    actions += _monitoring_action("enhanced_monitoring", "Enhanced Ongoing Monitoring", highest.enhanced_monitoring)
    return actions


def dedupe(actions: Iterable[MandatoryAction]) -> list[MandatoryAction]:
    seen: set[str] = set()
    unique: list[MandatoryAction] = []
    for action in actions:
        if action.action_id in seen:
            continue
        seen.add(action.action_id)
        unique.append(action)
    return unique


# ═══════════════════════════════════════════════════════════════
# Warnings
# ═══════════════════════════════════════════════════════════════

def _exclusion_warning(excluded: ExcludedEntityType, catalogue: CDDRuleset) -> AssessmentWarning:
    exclusions = catalogue.exclusions
    return AssessmentWarning(
        warning_id=f"excluded_entity_type_{excluded.id}",
        message=exclusions.message.format(label=excluded.label),
        authority=exclusions.authority,
    )


def _catalogue_missing_warning(key: Optional[str], tier: RiskTier, catalogue: CDDRuleset) -> AssessmentWarning:
    client_type = key or "this client type"
    return AssessmentWarning(
        warning_id="cdd_catalogue_missing",
        message=(
            f"No CDD requirements are configured for {client_type} at {tier.value} risk. "
            "Refer to the MLRO to agree the CDD plan."
        ),
        authority=str(catalogue.meta.get("source", "CDD Ruleset")),
    )
