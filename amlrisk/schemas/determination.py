"""
Determination renderer input options and output.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Jurisdiction(str, Enum):
    SCOTLAND = "scotland"
    ENGLAND_AND_WALES = "england_and_wales"


class EvidenceRecord(BaseModel):
    """Verification evidence attached to the matter (lookup result, upload, note)."""
    model_config = ConfigDict(frozen=True)

    evidence_type: str = Field(description="companies_house | file_upload | <other>")
    label: str
    source: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    created_at: datetime


class RenderOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    matter_reference: Optional[str] = None
    finalised_at: Optional[datetime] = None
    jurisdiction: Optional[Jurisdiction] = None
    evidence: list[EvidenceRecord] = Field(default_factory=list)


class DeterminationSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str


class Determination(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    sections: list[DeterminationSection]

    def section(self, title: str) -> Optional[DeterminationSection]:
        for s in self.sections:
            if s.title == title:
                return s
        return None

    @property
    def titles(self) -> list[str]:
        return [s.title for s in self.sections]
