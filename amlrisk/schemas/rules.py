"""
Rule documents consumed by the engine.

  risk_scoring_*.json   → RiskScoringConfig   (tiers, thresholds, outcomes,
                                               scoring factors, EDD triggers)
  cdd_ruleset.json      → CDDRuleset          (per client type, per tier
                                               action bundles)
  sector_mapping.json   → SectorMapping
  cdd_staleness.json    → CddStalenessConfig

Documents are versioned outside the engine and only read here. Keys may be
camelCase or snake_case; both populate the same field.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from amlrisk.schemas.assessment import ActionPriority, ClientCategory, RiskTier


class _RuleModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# ═══════════════════════════════════════════════════════════════
# Option matching strategies
#   Tried in fixed priority order: exact → any_of → prefix
#   (after the option's own answer label, which is always exact).
# ═══════════════════════════════════════════════════════════════

class ExactMatch(_RuleModel):
    kind: Literal["exact"] = "exact"
    value: str


class AnyOfMatch(_RuleModel):
    kind: Literal["any_of"] = "any_of"
    values: list[str]


class PrefixMatch(_RuleModel):
    kind: Literal["prefix"] = "prefix"
    prefix: str


MatchRule = Annotated[
    Union[ExactMatch, AnyOfMatch, PrefixMatch],
    Field(discriminator="kind"),
]


# ═══════════════════════════════════════════════════════════════
# Scoring rules
# ═══════════════════════════════════════════════════════════════

class ScoringOption(_RuleModel):
    answer: str
    score: Optional[int] = Field(None, ge=0)
    outcome: Optional[str] = None
    match: list[MatchRule] = Field(default_factory=list)


class ScoringFactor(_RuleModel):
    id: str
    field_id: str
    label: str
    authority: Optional[str] = None
    scored: bool = True
    note: Optional[str] = None
    options: list[ScoringOption] = Field(default_factory=list)


class ScoringSection(_RuleModel):
    label: str
    note: Optional[str] = None
    factors: list[ScoringFactor] = Field(default_factory=list)


class Threshold(_RuleModel):
    min: int = Field(ge=0)
    max: Optional[int] = None  # None = unbounded

    def contains(self, score: int) -> bool:
        return score >= self.min and (self.max is None or score <= self.max)

    def label(self) -> str:
        if self.max is None:
            return f"{self.min}+"
        return f"{self.min}-{self.max}"


class AutomaticOutcome(_RuleModel):
    description: str
    authority: Optional[str] = None


class TriggerCondition(_RuleModel):
    field_id: str
    options: list[ScoringOption]


class TriggerDefinition(_RuleModel):
    """
    An EDD trigger "factor": matched like a scoring factor, but kept in its
    own list and never scored. Every `requires` condition must also hold.
    """
    id: str
    field_id: str
    label: str
    description: str
    authority: str
    options: list[ScoringOption]
    requires: list[TriggerCondition] = Field(default_factory=list)


class ScoringMeta(_RuleModel):
    source: str
    version: str
    version_date: Optional[str] = None
    version_note: Optional[str] = None
    authorities: list[str] = Field(default_factory=list)


class RiskScoringConfig(_RuleModel):
    meta: ScoringMeta
    risk_levels: list[RiskTier]
    thresholds: dict[RiskTier, Threshold]
    threshold_authority: str
    automatic_outcomes: dict[str, AutomaticOutcome] = Field(default_factory=dict)
    scoring_factors: dict[ClientCategory, dict[str, ScoringSection]]
    edd_triggers: dict[ClientCategory, list[TriggerDefinition]] = Field(default_factory=dict)

    @property
    def lowest_tier(self) -> RiskTier:
        return self.risk_levels[0]

    @property
    def highest_tier(self) -> RiskTier:
        return self.risk_levels[-1]

    def sections_for(self, category: ClientCategory) -> list[ScoringSection]:
        return list(self.scoring_factors.get(category, {}).values())

    def factors_for(self, category: ClientCategory) -> list[ScoringFactor]:
        return [f for section in self.sections_for(category) for f in section.factors]

    def triggers_for(self, category: ClientCategory) -> list[TriggerDefinition]:
        return list(self.edd_triggers.get(category, []))


# ═══════════════════════════════════════════════════════════════
# CDD ruleset (action catalogue)
# ═══════════════════════════════════════════════════════════════

class CDDAction(_RuleModel):
    action: str
    name: Optional[str] = None
    description: str = ""
    display_text: Optional[str] = None
    requirements: list[str] = Field(default_factory=list)
    evidence_types: list[str] = Field(default_factory=list)
    priority: ActionPriority = ActionPriority.REQUIRED


class MonitoringRequirement(_RuleModel):
    required: bool = False
    description: str = ""
    display_text: Optional[str] = None


class ActionGroup(_RuleModel):
    required: bool = False
    actions: list[CDDAction] = Field(default_factory=list)


class TierBundle(_RuleModel):
    cdd_actions: list[CDDAction] = Field(default_factory=list)
    entity_identification: list[CDDAction] = Field(default_factory=list)
    directors: list[CDDAction] = Field(default_factory=list)
    members_partners: list[CDDAction] = Field(default_factory=list)
    beneficial_ownership: list[CDDAction] = Field(default_factory=list)
    ownership_control: list[CDDAction] = Field(default_factory=list)
    ongoing_monitoring: Optional[MonitoringRequirement] = None
    enhanced_monitoring: Optional[MonitoringRequirement] = None
    sow: Optional[ActionGroup] = None
    sof: Optional[ActionGroup] = None
    edd: Optional[ActionGroup] = None
    authority: Optional[str] = None


class NewClientWealth(_RuleModel):
    """Source-of-wealth declaration for new clients at the lowest tier."""
    form: CDDAction
    actions: list[CDDAction] = Field(default_factory=list)


class ClientTypeCatalogue(_RuleModel):
    label: str
    risk_levels: dict[RiskTier, TierBundle]
    new_client: Optional[NewClientWealth] = None


class ClientTypeRule(_RuleModel):
    contains: list[str]
    client_type: str


class ClientTypeMapping(_RuleModel):
    default: str
    entity_type_field: Optional[str] = None
    rules: list[ClientTypeRule] = Field(default_factory=list)


class NewClientField(_RuleModel):
    field_id: str
    value: str


class ExcludedEntityType(_RuleModel):
    id: str
    label: str
    patterns: list[str]


class Exclusions(_RuleModel):
    description: str
    authority: str
    message: str  # formatted with {label}
    escalation_action: Optional[CDDAction] = None
    excluded_types: list[ExcludedEntityType] = Field(default_factory=list)


class CDDRuleset(_RuleModel):
    meta: dict[str, Any] = Field(default_factory=dict)
    general_rules: dict[str, Any] = Field(default_factory=dict)
    client_types: dict[str, ClientTypeCatalogue]
    client_type_mapping: dict[ClientCategory, ClientTypeMapping]
    new_client_fields: dict[ClientCategory, NewClientField] = Field(default_factory=dict)
    exclusions: Exclusions
    trigger_edd: Optional[CDDAction] = None  # umbrella action for trigger-injected EDD


# ═══════════════════════════════════════════════════════════════
# Sector mapping + CDD staleness
# ═══════════════════════════════════════════════════════════════

class SectorRisk(str, Enum):
    STANDARD = "Standard"
    HIGHER_RISK = "Higher-risk"
    PROHIBITED = "Prohibited"


class SectorMapping(_RuleModel):
    version: str
    answer_fields: dict[ClientCategory, str] = Field(default_factory=dict)
    categories: dict[SectorRisk, list[str]]


class StalenessThreshold(_RuleModel):
    months: int = Field(gt=0)
    label: str


class CddStalenessConfig(_RuleModel):
    authority: Optional[str] = None
    thresholds: dict[RiskTier, StalenessThreshold]
