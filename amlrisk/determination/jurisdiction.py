"""
Regulator details per jurisdiction. MLR 2017 is UK-wide; the regulator and
the POCA part differ.
"""
from __future__ import annotations

from dataclasses import dataclass

from amlrisk.schemas.determination import Jurisdiction


@dataclass(frozen=True)
class JurisdictionDetails:
    label: str
    regulator: str
    poca_part: str


JURISDICTIONS: dict[Jurisdiction, JurisdictionDetails] = {
    Jurisdiction.SCOTLAND: JurisdictionDetails(
        label="Scotland",
        regulator="Law Society of Scotland",
        poca_part="Part 3",
    ),
    Jurisdiction.ENGLAND_AND_WALES: JurisdictionDetails(
        label="England & Wales",
        regulator="Solicitors Regulation Authority (SRA)",
        poca_part="Part 7",
    ),
}


def jurisdiction_details(jurisdiction: Jurisdiction) -> JurisdictionDetails:
    return JURISDICTIONS[Jurisdiction(jurisdiction)]
