"""
Assessment input and the persisted result snapshot.

The caller stores AssessmentResult.to_snapshot() verbatim; the determination
renderer later reads it back with AssessmentResult.from_snapshot() and never
recomputes anything. Keys are camelCase in the snapshot and the schema is
stable across rule-document versions.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ── Enums ──

class ClientCategory(str, Enum):
    INDIVIDUAL = "individual"
    CORPORATE = "corporate"


class RiskTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ActionCategory(str, Enum):
    CDD = "cdd"                  # identification / verification
    EDD = "edd"                  # enhanced due diligence
    SOW = "sow"                  # source of wealth
    SOF = "sof"                  # source of funds
    MONITORING = "monitoring"
    ESCALATION = "escalation"


class ActionPriority(str, Enum):
    REQUIRED = "required"
    RECOMMENDED = "recommended"


# ── Answers ──
# Form answers arrive as str | list[str]. They are normalised into an explicit
# variant before matching; a multiple answer matches on its first value.

RawAnswer = Union[str, list[str]]


@dataclass(frozen=True)
class SingleAnswer:
    value: str

    @property
    def primary(self) -> str:
        return self.value

    @property
    def display(self) -> str:
        return self.value

    @property
    def raw(self) -> RawAnswer:
        return self.value


@dataclass(frozen=True)
class MultipleAnswer:
    values: tuple[str, ...]

    @property
    def primary(self) -> str:
        return self.values[0]

    @property
    def display(self) -> str:
        return ", ".join(self.values)

    @property
    def raw(self) -> RawAnswer:
        return list(self.values)


Answer = Union[SingleAnswer, MultipleAnswer]


def to_answer(raw: Any) -> Optional[Answer]:
    """Blank strings and empty lists count as unanswered."""
    if isinstance(raw, (SingleAnswer, MultipleAnswer)):
        return raw
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        values = tuple(str(v) for v in raw)
        return MultipleAnswer(values) if values else None
    value = str(raw)
    return SingleAnswer(value) if value != "" else None


def normalize_answers(answers: Optional[Mapping[str, Any]]) -> dict[str, Answer]:
    normalized: dict[str, Answer] = {}
    for field_id, raw in (answers or {}).items():
        answer = to_answer(raw)
        if answer is not None:
            normalized[str(field_id)] = answer
    return normalized


# ── Snapshot models ──

class _SnapshotModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )


class RiskFactorResult(_SnapshotModel):
    """One matched scoring factor. Zero-score matches are kept for the breakdown."""
    factor_id: str
    label: str
    field_id: str
    answer: RawAnswer
    score: int
    rationale: str


class AutomaticOutcomeResult(_SnapshotModel):
    outcome_id: str = Field(alias="id")
    description: str
    triggered_by: str


class EDDTriggerResult(_SnapshotModel):
    """Condition that injects EDD actions without changing the tier."""
    trigger_id: str
    description: str
    authority: str
    triggered_by: str


class AssessmentWarning(_SnapshotModel):
    """Input condition that needs manual (MLRO) escalation. Never blocks scoring."""
    warning_id: str
    message: str
    authority: str


class MandatoryAction(_SnapshotModel):
    action_id: str
    name: str
    description: str
    display_text: Optional[str] = None
    category: ActionCategory
    priority: ActionPriority = ActionPriority.REQUIRED
    evidence_types: Optional[list[str]] = None


class AssessmentRequest(BaseModel):
    """Envelope for callers that receive assessments over the wire."""
    category: ClientCategory
    answers: dict[str, RawAnswer] = Field(default_factory=dict)


class AssessmentResult(_SnapshotModel):
    """
    The persisted assessment snapshot.

    Created once by scoring.engine.run() and stored verbatim thereafter.
    """
    score: int
    tier: RiskTier
    automatic_outcome: Optional[AutomaticOutcomeResult] = None
    risk_factors: list[RiskFactorResult] = Field(default_factory=list)
    rationale: list[str] = Field(default_factory=list)
    actions: list[MandatoryAction] = Field(default_factory=list)
    triggers: list[EDDTriggerResult] = Field(default_factory=list)
    warnings: list[AssessmentWarning] = Field(default_factory=list)
    timestamp: datetime

    # ── Metadata (absent from snapshots written before these were recorded) ──
    category: Optional[ClientCategory] = None
    model_version: Optional[str] = None

    def to_snapshot(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "AssessmentResult":
        return cls.model_validate(dict(data))
