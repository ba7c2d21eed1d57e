"""
Sector risk derivation.

The client's business sector is never answered directly on the form: it is
looked up in sector_mapping.json and the resulting category (Standard /
Higher-risk / Prohibited) is written into the sector-risk answer field
before the assessment runs. A Prohibited sector then fires OUT_OF_APPETITE.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog

from amlrisk.rules.store import RuleStore, get_rule_store
from amlrisk.schemas.assessment import ClientCategory
from amlrisk.schemas.rules import SectorMapping, SectorRisk

logger = structlog.get_logger()


class UnmappedSectorError(ValueError):
    """Client sector missing or absent from the mapping; client data must be fixed first."""

    def __init__(self, sector: Optional[str], version: str):
        self.sector = sector
        self.version = version
        if not sector:
            msg = "Client sector not set"
        else:
            msg = f'Client sector "{sector}" not mapped in sector mapping v{version}'
        super().__init__(msg)


def derive_sector_risk(sector: Optional[str], mapping: SectorMapping) -> SectorRisk:
    if sector:
        for risk, sectors in mapping.categories.items():
            if sector in sectors:
                return risk
    raise UnmappedSectorError(sector, mapping.version)


def enrich_answers(
    category: ClientCategory,
    answers: Mapping[str, Any],
    sector: Optional[str],
    mapping: Optional[SectorMapping] = None,
    store: Optional[RuleStore] = None,
) -> dict[str, Any]:
    """
    Copy of `answers` with the derived sector risk in the category's sector
    field. Categories without a sector field are returned unchanged.
    """
    mapping = mapping or (store or get_rule_store()).sector_mapping()
    enriched = dict(answers)

    field_id = mapping.answer_fields.get(ClientCategory(category))
    if field_id is None:
        return enriched

    risk = derive_sector_risk(sector, mapping)
    enriched[field_id] = risk.value
    logger.info("sector_risk_derived", sector=sector, sector_risk=risk.value, field_id=field_id)
    return enriched
