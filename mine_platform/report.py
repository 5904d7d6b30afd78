"""
mine_platform/report.py
=======================
Full-year summary assembly.

Records arrive pre-fetched per scenario. They are grouped by calendar month,
each (month, scenario) pair is turned into a DataSet independently, then the
YTD fold runs strictly January → December. Months with no data for a scenario
carry ``None`` rather than a zero-filled DataSet, and ``DataCoverage`` tells
the caller which months are real.
"""
from __future__ import annotations
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

import pandas as pd

from .accumulator import accumulate, identity
from .calculator import calculate_dataset, production_ounces
from .formatting import format_metric, format_percent, month_label
from .metric_fields import MetricField, value_of, variance_of
from .types import (
    CAPEXRecord,
    DataCoverage,
    DEFAULT_MINERAL_CODES,
    DataSet,
    DoreRecord,
    FinancialRecord,
    MetricsConfig,
    MonthlyData,
    OPEXRecord,
    PBRRecord,
    ProductionRecord,
    RecordBase,
    RevenueRecord,
    ScenarioRecords,
    SummaryReport,
    YTDData,
)
from .validation import validate_cross_file
from .variance import compare_datasets, diff

logger = logging.getLogger(__name__)

ALL_MONTHS = tuple(range(1, 13))


# ─── Month Handling ───────────────────────────────────────────────────────────

def parse_months_filter(text: Optional[str]) -> Optional[Set[int]]:
    """
    "1,2,3" → {1, 2, 3}. Entries that are not integers in 1–12 are dropped
    without error. Empty input means no filter (None).
    """
    if text is None or not str(text).strip():
        return None
    months: Set[int] = set()
    for part in str(text).split(","):
        try:
            month = int(part.strip())
        except ValueError:
            continue
        if 1 <= month <= 12:
            months.add(month)
    return months


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


@dataclass
class MonthBucket:
    pbr: Optional[PBRRecord] = None
    dore: Optional[DoreRecord] = None
    financial: Optional[FinancialRecord] = None
    opex: List[OPEXRecord] = field(default_factory=list)
    capex: List[CAPEXRecord] = field(default_factory=list)
    production: List[ProductionRecord] = field(default_factory=list)
    revenue: List[RevenueRecord] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return (self.pbr is not None or self.dore is not None or self.financial is not None
                or bool(self.opex) or bool(self.capex))


def _live(records: Iterable[RecordBase], company_id: int, year: int,
          data_type: str, version: int) -> List[RecordBase]:
    out = [
        r for r in records
        if r.company_id == company_id and r.date.year == year
        and r.data_type == data_type and r.version == version and not r.is_deleted
    ]
    out.sort(key=lambda r: r.date)
    return out


def group_by_month(records: ScenarioRecords, company_id: int, year: int,
                   data_type: str, version: int = 1) -> Dict[int, MonthBucket]:
    """Singleton categories keep the latest-dated record per month; line items are listed."""
    buckets: Dict[int, MonthBucket] = defaultdict(MonthBucket)
    for r in _live(records.pbr, company_id, year, data_type, version):
        buckets[r.date.month].pbr = r
    for r in _live(records.dore, company_id, year, data_type, version):
        buckets[r.date.month].dore = r
    for r in _live(records.financial, company_id, year, data_type, version):
        buckets[r.date.month].financial = r
    for r in _live(records.opex, company_id, year, data_type, version):
        buckets[r.date.month].opex.append(r)
    for r in _live(records.capex, company_id, year, data_type, version):
        buckets[r.date.month].capex.append(r)
    for r in _live(records.production, company_id, year, data_type, version):
        buckets[r.date.month].production.append(r)
    for r in _live(records.revenue, company_id, year, data_type, version):
        buckets[r.date.month].revenue.append(r)
    return dict(buckets)


def dataset_for_month(bucket: Optional[MonthBucket], config: Optional[MetricsConfig] = None) -> Optional[DataSet]:
    if bucket is None or not bucket.has_data:
        return None
    return calculate_dataset(
        pbr=bucket.pbr,
        dore=bucket.dore,
        financial=bucket.financial,
        opex=bucket.opex,
        capex=bucket.capex,
        config=config,
    )


def build_coverage(actual: Dict[int, MonthBucket], budget: Dict[int, MonthBucket]) -> DataCoverage:
    actual_months = sorted(m for m, b in actual.items() if b.has_data)
    budget_months = sorted(m for m, b in budget.items() if b.has_data)
    return DataCoverage(
        actual_months=actual_months,
        budget_months=budget_months,
        actual_last_month=actual_months[-1] if actual_months else 0,
        budget_last_month=budget_months[-1] if budget_months else 0,
        actual_is_partial=0 < len(actual_months) < 12,
        budget_is_partial=0 < len(budget_months) < 12,
        has_any_actual=bool(actual_months),
        has_any_budget=bool(budget_months),
        has_complete_actual=len(actual_months) == 12,
        has_complete_budget=len(budget_months) == 12,
    )


# ─── Summary ──────────────────────────────────────────────────────────────────

def build_summary(
    company_id: int,
    year: int,
    actual: ScenarioRecords,
    budget: ScenarioRecords,
    months: Optional[Set[int]] = None,
    config: Optional[MetricsConfig] = None,
    company_name: str = "",
    actual_version: int = 1,
    budget_version: int = 1,
) -> SummaryReport:
    """
    Monthly actual / budget DataSets with variance, plus running YTD.

    YTD advances only in months that have actual data, and the budget YTD
    only takes budget months paired with an actual month, so both sides
    always cover the same period. A month filter limits which months are
    returned; YTD still accumulates over every month up to each one.
    """
    cfg = config or MetricsConfig()
    issues = validate_cross_file(
        {"actual": actual, "budget": budget}, company_id, year,
        versions={"actual": actual_version, "budget": budget_version},
    )

    actual_by_month = group_by_month(actual, company_id, year, "actual", actual_version)
    budget_by_month = group_by_month(budget, company_id, year, "budget", budget_version)

    monthly_actual = {m: dataset_for_month(actual_by_month.get(m), cfg) for m in ALL_MONTHS}
    monthly_budget = {m: dataset_for_month(budget_by_month.get(m), cfg) for m in ALL_MONTHS}

    out: List[MonthlyData] = []
    ytd_actual: DataSet = identity()
    ytd_budget: DataSet = identity()
    budget_started = False

    for m in ALL_MONTHS:
        act = monthly_actual[m]
        bud = monthly_budget[m]

        ytd: Optional[YTDData] = None
        if act is not None:
            ytd_actual = accumulate(ytd_actual, act, cfg)
            if bud is not None:
                ytd_budget = accumulate(ytd_budget, bud, cfg)
                budget_started = True
            ytd_bud = ytd_budget if budget_started else None
            ytd = YTDData(
                actual=ytd_actual,
                budget=ytd_bud,
                variance=compare_datasets(ytd_actual, ytd_bud),
            )

        if months is not None and m not in months:
            continue
        out.append(MonthlyData(
            month=month_key(year, m),
            actual=act,
            budget=bud,
            variance=compare_datasets(act, bud),
            ytd=ytd,
        ))

    coverage = build_coverage(actual_by_month, budget_by_month)
    logger.info("summary built: company=%s year=%s months=%d actual_months=%s budget_months=%s issues=%d",
                company_id, year, len(out), coverage.actual_months, coverage.budget_months, len(issues))
    return SummaryReport(
        company_id=company_id,
        year=year,
        company_name=company_name,
        months=out,
        coverage=coverage,
        issues=issues,
    )


def summary_table(monthly: MonthlyData, formatted: bool = False) -> pd.DataFrame:
    """
    One row per metric field: monthly and YTD actual / budget / variance.

    With ``formatted=True`` every value is rendered for display (currency,
    ounces, tonnes, grades, signed variance %) and missing values show as "—".
    """
    ytd = monthly.ytd or YTDData()
    rows: List[Dict[str, Any]] = []
    for metric in MetricField:
        row: Dict[str, Any] = {
            "Group": metric.group,
            "Metric": metric.label,
            "Actual": value_of(monthly.actual, metric) if monthly.actual else None,
            "Budget": value_of(monthly.budget, metric) if monthly.budget else None,
            "Variance": None,
            "Variance %": None,
            "YTD Actual": value_of(ytd.actual, metric) if ytd.actual else None,
            "YTD Budget": value_of(ytd.budget, metric) if ytd.budget else None,
            "YTD Variance": None,
            "YTD Variance %": None,
        }
        if monthly.variance is not None:
            vm = variance_of(monthly.variance, metric)
            row["Variance"], row["Variance %"] = vm.variance, vm.variance_pct
        if ytd.variance is not None:
            vm = variance_of(ytd.variance, metric)
            row["YTD Variance"], row["YTD Variance %"] = vm.variance, vm.variance_pct
        if formatted:
            row = _format_row(row, metric.attr)
        rows.append(row)
    df = pd.DataFrame(rows)
    df.attrs["month"] = monthly.month
    df.attrs["label"] = month_label(monthly.month)
    return df


def _format_row(row: Dict[str, Any], attr: str) -> Dict[str, Any]:
    out = dict(row)
    for col in ("Actual", "Budget", "Variance", "YTD Actual", "YTD Budget", "YTD Variance"):
        out[col] = format_metric(row[col], attr)
    for col in ("Variance %", "YTD Variance %"):
        out[col] = format_percent(row[col])
    return out


# ─── Record-level Breakdowns ──────────────────────────────────────────────────

def opex_breakdown(opex: Iterable[OPEXRecord]) -> Dict[str, Any]:
    by_cost_center: Dict[str, float] = defaultdict(float)
    by_subcategory: Dict[str, float] = defaultdict(float)
    by_expense_type: Dict[str, float] = defaultdict(float)
    total = 0.0
    for line in opex:
        by_cost_center[line.cost_center] += line.amount
        by_subcategory[line.subcategory] += line.amount
        by_expense_type[line.expense_type] += line.amount
        total += line.amount
    return {
        "by_cost_center": dict(by_cost_center),
        "by_subcategory": dict(by_subcategory),
        "by_expense_type": dict(by_expense_type),
        "total": total,
    }


def project_key(car_number: str, project_name: str) -> str:
    """"CAR - Project"; bare CAR when the name is blank or repeats it; "" without a CAR."""
    if not car_number:
        return ""
    if not project_name or project_name == car_number:
        return car_number
    return f"{car_number} - {project_name}"


def capex_breakdown(capex: Iterable[CAPEXRecord], config: Optional[MetricsConfig] = None) -> Dict[str, Any]:
    cfg = config or MetricsConfig()
    by_type: Dict[str, float] = {"sustaining": 0.0, "project": 0.0, "leasing": 0.0, "accretion": 0.0}
    by_category: Dict[str, float] = {c: 0.0 for c in cfg.required_capex_categories}
    by_project: Dict[str, float] = {p: 0.0 for p in cfg.required_capex_projects}
    for line in capex:
        if line.type in ("sustaining", "project", "leasing"):
            by_type[line.type] += line.amount
        by_type["accretion"] += line.accretion_of_mine_closure_liability
        if line.category:
            by_category[line.category] = by_category.get(line.category, 0.0) + line.amount
        key = project_key(line.car_number, line.project_name)
        if key:
            by_project[key] = by_project.get(key, 0.0) + line.amount
    return {
        "by_type": by_type,
        "by_category": by_category,
        "by_project": by_project,
        "total": sum(by_type.values()),
    }


# ─── Production and Revenue Detail ────────────────────────────────────────────

UNKNOWN_MINERAL = "UNKNOWN"


def _codes_by_id(mineral_codes: Optional[Dict[str, int]]) -> Dict[int, str]:
    return {mid: code for code, mid in (mineral_codes or DEFAULT_MINERAL_CODES).items()}


def production_breakdown(
    pbr: Optional[PBRRecord],
    production: Iterable[ProductionRecord],
    mineral_codes: Optional[Dict[str, int]] = None,
    config: Optional[MetricsConfig] = None,
) -> Dict[str, Any]:
    """
    Monthly output by mineral code. Silver (AG) and gold (AU) ounces come from
    the PBR; every other mineral is the summed quantity of its production
    lines. Lines whose mineral id has no code are left out.
    """
    codes = _codes_by_id(mineral_codes)
    lines = list(production)
    by_mineral: Dict[str, float] = {}
    silver = gold = 0.0
    if pbr is not None:
        silver, gold = production_ounces(pbr, config)
        by_mineral["AG"] = silver
        by_mineral["AU"] = gold
    for line in lines:
        code = codes.get(line.mineral_id)
        if code is not None:
            by_mineral[code] = by_mineral.get(code, 0.0) + line.quantity
    return {
        "by_mineral": by_mineral,
        "total_production_silver_oz": silver,
        "total_production_gold_oz": gold,
        "has_data": pbr is not None or bool(lines),
    }


def revenue_breakdown(
    revenue: Iterable[RevenueRecord],
    mineral_codes: Optional[Dict[str, int]] = None,
) -> Optional[Dict[str, Any]]:
    """Revenue (quantity sold × unit price) by mineral code; None for a month without sales."""
    lines = list(revenue)
    if not lines:
        return None
    codes = _codes_by_id(mineral_codes)
    by_mineral: Dict[str, Dict[str, Any]] = {}
    total_revenue = total_quantity = 0.0
    for line in lines:
        code = codes.get(line.mineral_id, UNKNOWN_MINERAL)
        amount = line.quantity_sold * line.unit_price
        entry = by_mineral.setdefault(code, {
            "quantity_sold": 0.0,
            "unit_price": line.unit_price,
            "revenue": 0.0,
            "currency": line.currency,
        })
        entry["quantity_sold"] += line.quantity_sold
        entry["revenue"] += amount
        total_revenue += amount
        total_quantity += line.quantity_sold
    return {
        "by_mineral": by_mineral,
        "total_revenue": total_revenue,
        "total_quantity_sold": total_quantity,
        "average_unit_price": total_revenue / total_quantity if total_quantity > 0 else 0.0,
    }


def _revenue_variance(actual: Dict[str, Any], budget: Dict[str, Any]) -> Dict[str, Any]:
    return {key: diff(actual[key], budget[key])
            for key in ("total_revenue", "total_quantity_sold", "average_unit_price")}


def production_revenue_detail(
    company_id: int,
    year: int,
    actual: ScenarioRecords,
    budget: ScenarioRecords,
    months: Optional[Set[int]] = None,
    mineral_codes: Optional[Dict[str, int]] = None,
    config: Optional[MetricsConfig] = None,
    actual_version: int = 1,
    budget_version: int = 1,
) -> Dict[str, Any]:
    """
    Per-month production and revenue breakdowns for both scenarios, plus
    yearly revenue totals by mineral with their variance. Months outside the
    filter are skipped and add nothing to the totals.
    """
    actual_by_month = group_by_month(actual, company_id, year, "actual", actual_version)
    budget_by_month = group_by_month(budget, company_id, year, "budget", budget_version)

    out: List[Dict[str, Any]] = []
    mineral_totals: Dict[str, Dict[str, Any]] = {}
    for m in ALL_MONTHS:
        if months is not None and m not in months:
            continue
        act = actual_by_month.get(m) or MonthBucket()
        bud = budget_by_month.get(m) or MonthBucket()

        act_production = production_breakdown(act.pbr, act.production, mineral_codes, config)
        bud_production = production_breakdown(bud.pbr, bud.production, mineral_codes, config)
        production_variance = None
        if act_production["has_data"] and bud_production["has_data"]:
            production_variance = {
                key: diff(act_production[key], bud_production[key])
                for key in ("total_production_silver_oz", "total_production_gold_oz")
            }

        act_revenue = revenue_breakdown(act.revenue, mineral_codes)
        bud_revenue = revenue_breakdown(bud.revenue, mineral_codes)
        for side, detail in (("actual", act_revenue), ("budget", bud_revenue)):
            if detail is None:
                continue
            for code, entry in detail["by_mineral"].items():
                totals = mineral_totals.setdefault(
                    code, {"currency": entry["currency"], "actual": 0.0, "budget": 0.0})
                totals[side] += entry["revenue"]

        out.append({
            "month": month_key(year, m),
            "production": {"actual": act_production, "budget": bud_production,
                           "variance": production_variance},
            "revenue": {
                "actual": act_revenue,
                "budget": bud_revenue,
                "variance": (_revenue_variance(act_revenue, bud_revenue)
                             if act_revenue is not None and bud_revenue is not None else None),
            },
        })

    by_mineral = {
        code: {**totals, "variance": diff(totals["actual"], totals["budget"])}
        for code, totals in mineral_totals.items()
    }
    return {"months": out, "revenue_by_mineral": by_mineral}
