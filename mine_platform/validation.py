"""
mine_platform/validation.py
===========================
Cross-file consistency checks for one company / year / scenario:
  - month alignment: every month-bearing category reports the same months
  - Dore dependency: every Dore date has a same-date PBR record
  - year consistency: a submission does not straddle calendar years

Issues are returned as values. During report viewing they are advisory and
only logged; Dore import enforces the PBR dependency row by row (see parser).
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .types import CrossFileIssue, RecordBase, ScenarioRecords

logger = logging.getLogger(__name__)

ALIGNED_CATEGORIES = ("PBR", "Dore", "Financial", "OPEX", "CAPEX")


def _select(records: Iterable[RecordBase], company_id: int, data_type: str, version: int,
            year: Optional[int] = None) -> List[RecordBase]:
    return [
        r for r in records
        if r.company_id == company_id
        and r.data_type == data_type
        and r.version == version
        and not r.is_deleted
        and (year is None or r.date.year == year)
    ]


def _by_category(records: ScenarioRecords) -> Dict[str, Sequence[RecordBase]]:
    return {
        "PBR": records.pbr,
        "Dore": records.dore,
        "Financial": records.financial,
        "OPEX": records.opex,
        "CAPEX": records.capex,
    }


def validate_month_alignment(records: ScenarioRecords, company_id: int, year: int,
                             data_type: str, version: int = 1) -> List[CrossFileIssue]:
    months: Dict[str, Set[int]] = {
        name: {r.date.month for r in _select(recs, company_id, data_type, version, year)}
        for name, recs in _by_category(records).items()
    }
    union: Set[int] = set().union(*months.values())

    issues: List[CrossFileIssue] = []
    for name in ALIGNED_CATEGORIES:
        missing = sorted(union - months[name])
        if missing:
            issues.append(CrossFileIssue(
                type="month_alignment",
                message=f"Data files are not aligned: {name} is missing months {missing}",
                affected_files=[name],
                months=missing,
                year=year,
            ))
    return issues


def validate_dore_dependency(records: ScenarioRecords, company_id: int, year: int,
                             data_type: str, version: int = 1) -> List[CrossFileIssue]:
    pbr_dates = {r.date for r in _select(records.pbr, company_id, data_type, version, year)}
    dore_dates = {r.date for r in _select(records.dore, company_id, data_type, version, year)}
    missing = sorted(dore_dates - pbr_dates)
    if not missing:
        return []
    return [CrossFileIssue(
        type="missing_dependency",
        message=("Dore data requires PBR data for the same dates. Missing PBR for dates: "
                 + ", ".join(d.isoformat() for d in missing)),
        affected_files=["Dore", "PBR"],
        months=sorted({d.month for d in missing}),
        dates=missing,
        year=year,
    )]


def validate_year_consistency(records: ScenarioRecords, company_id: int,
                              data_type: str, version: int = 1) -> List[CrossFileIssue]:
    years: Set[int] = set()
    for recs in _by_category(records).values():
        years.update(r.date.year for r in _select(recs, company_id, data_type, version))
    if len(years) <= 1:
        return []
    found = sorted(years)
    return [CrossFileIssue(
        type="year_mismatch",
        message=f"Data files contain different years: found years {found}",
        affected_files=list(ALIGNED_CATEGORIES),
    )]


def validate_cross_file(scenarios: Dict[str, ScenarioRecords], company_id: int, year: int,
                        versions: Optional[Dict[str, int]] = None) -> List[CrossFileIssue]:
    """Advisory pre-check for report requests. Logs each issue, never raises."""
    issues: List[CrossFileIssue] = []
    for data_type, records in scenarios.items():
        version = (versions or {}).get(data_type, 1)
        found = (validate_month_alignment(records, company_id, year, data_type, version)
                 + validate_dore_dependency(records, company_id, year, data_type, version))
        for issue in found:
            logger.warning("cross-file check (%s, company=%s, year=%s): %s",
                           data_type, company_id, year, issue.message)
        issues.extend(found)
    return issues
