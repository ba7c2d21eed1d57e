"""
CDD staleness review: is the client's last CDD verification older than the
review period for its risk tier?

Thresholds (cdd_staleness.json): LOW 3 years, MEDIUM 2 years, HIGH 1 year.
Months are whole calendar months between the two dates.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from amlrisk.rules.store import RuleStore, get_rule_store
from amlrisk.schemas.assessment import RiskTier
from amlrisk.schemas.rules import CddStalenessConfig


class CddStatus(str, Enum):
    NONE = "none"          # never verified
    STALE = "stale"        # review due
    CURRENT = "current"


@dataclass(frozen=True)
class CddReviewStatus:
    status: CddStatus
    months: Optional[int]
    threshold_label: Optional[str]
    message: str
    authority: Optional[str] = None


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def _format_date(d: date) -> str:
    return f"{d.day} {MONTH_NAMES[d.month - 1]} {d.year}"


def cdd_review_status(
    last_verified: Optional[date],
    tier: RiskTier,
    as_of: Optional[date] = None,
    config: Optional[CddStalenessConfig] = None,
    store: Optional[RuleStore] = None,
) -> CddReviewStatus:
    config = config or (store or get_rule_store()).cdd_staleness()
    threshold = config.thresholds.get(RiskTier(tier))

    if last_verified is None:
        return CddReviewStatus(
            status=CddStatus.NONE,
            months=None,
            threshold_label=threshold.label if threshold else None,
            message="No previous CDD verification recorded for this client.",
            authority=config.authority,
        )

    ref = as_of or date.today()
    months = months_between(last_verified, ref)
    verified = _format_date(last_verified)

    if threshold is not None and months >= threshold.months:
        return CddReviewStatus(
            status=CddStatus.STALE,
            months=months,
            threshold_label=threshold.label,
            message=(
                f"CDD Review Recommended: CDD was last verified on {verified} "
                f"({months} months ago). For {RiskTier(tier).value} risk, CDD is reviewed "
                f"after {threshold.label}."
            ),
            authority=config.authority,
        )

    return CddReviewStatus(
        status=CddStatus.CURRENT,
        months=months,
        threshold_label=threshold.label if threshold else None,
        message=f"CDD last verified on {verified} ({months} months ago).",
        authority=config.authority,
    )
