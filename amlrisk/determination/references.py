"""
Policy citations printed in the determination.

Maps tiers, action categories, automatic outcomes and EDD triggers to AML
policy section ids (PCP, PWRA, MLR 2017, LSAG 2025).
"""
from __future__ import annotations

from typing import Iterable, Optional

from amlrisk.schemas.assessment import ActionCategory, RiskTier

TIER_REFERENCES: dict[RiskTier, list[str]] = {
    RiskTier.LOW: ["PCP §4.6", "PCP §7", "MLR 2017 reg. 28"],
    RiskTier.MEDIUM: ["PCP §4.6", "PCP §8", "PCP §11", "MLR 2017 reg. 28"],
    RiskTier.HIGH: ["PCP §4.6", "PCP §15", "PCP §20", "MLR 2017 regs. 33, 35"],
}

CATEGORY_REFERENCES: dict[ActionCategory, list[str]] = {
    ActionCategory.CDD: ["PCP §7", "MLR 2017 reg. 28(2)"],
    ActionCategory.EDD: ["PCP §15", "PCP §20", "MLR 2017 reg. 33"],
    ActionCategory.SOW: ["PCP §8", "PCP §11.2", "LSAG 2025 §5.6"],
    ActionCategory.SOF: ["PCP §8", "PCP §11.3", "LSAG 2025 §5.6"],
    ActionCategory.MONITORING: ["PCP §17", "MLR 2017 reg. 28(11)"],
    ActionCategory.ESCALATION: ["PCP §5"],
}

OUTCOME_REFERENCES: dict[str, list[str]] = {
    "HIGH_RISK_EDD_REQUIRED": ["PCP §15", "MLR 2017 reg. 35"],
    "OUT_OF_APPETITE": ["PWRA §2.4.3", "PCP §3.2"],
}

TRIGGER_REFERENCES: dict[str, list[str]] = {
    "client_account": ["PCP §20", "PWRA §2.4"],
    "third_party_funder": ["PCP §20", "LSAG 2025 §5.6"],
    "cross_border_transaction": ["PCP §20", "MLR 2017 reg. 33(1)"],
    "tcsp_activity": ["PCP §20", "MLR 2017 reg. 33(1)(a)"],
}

# Appetite statement keyed by tier; the most severe tier is outside appetite.
RISK_APPETITE: dict[RiskTier, str] = {
    RiskTier.LOW: "Within risk appetite.",
    RiskTier.MEDIUM: "Within risk appetite.",
    RiskTier.HIGH: "Outside risk appetite unless approved in accordance with AML Policy.",
}


def collect_references(
    tier: RiskTier,
    categories: Iterable[str],
    outcome_id: Optional[str] = None,
    trigger_ids: Iterable[str] = (),
    threshold_authority: Optional[str] = None,
) -> list[str]:
    """Deduplicated and sorted, so the output never depends on input order."""
    refs: set[str] = set()

    if threshold_authority:
        refs.add(threshold_authority)
    refs.update(TIER_REFERENCES.get(tier, []))

    for category in categories:
        refs.update(CATEGORY_REFERENCES.get(category, []))

    if outcome_id:
        refs.update(OUTCOME_REFERENCES.get(outcome_id, []))
    for trigger_id in trigger_ids:
        refs.update(TRIGGER_REFERENCES.get(trigger_id, []))

    return sorted(refs)
