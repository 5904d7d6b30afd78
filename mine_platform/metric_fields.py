"""
mine_platform/metric_fields.py
==============================
Closed enumeration of every reportable metric field.

Each member knows its DataSet group, its attribute on that group and its
display label. Lookups by label or key fail loudly instead of silently
returning zero, so a typo in a reconciliation script cannot pass for a
real zero-valued metric.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional

from .types import DataSet, VarianceData, VarianceMetric


METRIC_GROUPS = ("mining", "processing", "production", "costs", "nsr", "capex", "cash_cost")

GROUP_LABELS: Dict[str, str] = {
    "mining": "Mining",
    "processing": "Processing",
    "production": "Production",
    "costs": "Production Based Costs",
    "nsr": "Net Smelter Return",
    "capex": "Capital Expenditure",
    "cash_cost": "Cash Cost & AISC",
}


class MetricField(Enum):
    # Mining
    OPEN_PIT_ORE_T = ("mining", "open_pit_ore_t", "Open Pit Ore (t)")
    UNDERGROUND_ORE_T = ("mining", "underground_ore_t", "Underground Ore (t)")
    ORE_MINED_T = ("mining", "ore_mined_t", "Ore Mined (t)")
    WASTE_MINED_T = ("mining", "waste_mined_t", "Waste Mined (t)")
    STRIPPING_RATIO = ("mining", "stripping_ratio", "Stripping Ratio")
    MINING_GRADE_SILVER_GPT = ("mining", "mining_grade_silver_gpt", "Mining Grade Silver (g/t)")
    MINING_GRADE_GOLD_GPT = ("mining", "mining_grade_gold_gpt", "Mining Grade Gold (g/t)")
    OPEN_PIT_GRADE_SILVER_GPT = ("mining", "open_pit_grade_silver_gpt", "Open Pit Grade Silver (g/t)")
    UNDERGROUND_GRADE_SILVER_GPT = ("mining", "underground_grade_silver_gpt", "Underground Grade Silver (g/t)")
    OPEN_PIT_GRADE_GOLD_GPT = ("mining", "open_pit_grade_gold_gpt", "Open Pit Grade Gold (g/t)")
    UNDERGROUND_GRADE_GOLD_GPT = ("mining", "underground_grade_gold_gpt", "Underground Grade Gold (g/t)")
    PRIMARY_DEVELOPMENT_M = ("mining", "primary_development_m", "Primary Development (m)")
    SECONDARY_DEVELOPMENT_OPEX_M = ("mining", "secondary_development_opex_m", "Secondary Development OPEX (m)")
    EXPANSIONARY_DEVELOPMENT_M = ("mining", "expansionary_development_m", "Expansionary Development (m)")
    DEVELOPMENTS_M = ("mining", "developments_m", "Developments (m)")
    FULL_TIME_EMPLOYEES = ("mining", "full_time_employees", "Full Time Employees")
    CONTRACTORS = ("mining", "contractors", "Contractors")
    TOTAL_HEADCOUNT = ("mining", "total_headcount", "Total Headcount")

    # Processing
    TOTAL_TONNES_PROCESSED = ("processing", "total_tonnes_processed", "Total Tonnes Processed")
    FEED_GRADE_SILVER_GPT = ("processing", "feed_grade_silver_gpt", "Feed Grade Silver (g/t)")
    FEED_GRADE_GOLD_GPT = ("processing", "feed_grade_gold_gpt", "Feed Grade Gold (g/t)")
    RECOVERY_RATE_SILVER_PCT = ("processing", "recovery_rate_silver_pct", "Recovery Rate Silver (%)")
    RECOVERY_RATE_GOLD_PCT = ("processing", "recovery_rate_gold_pct", "Recovery Rate Gold (%)")

    # Production
    TOTAL_PRODUCTION_SILVER_OZ = ("production", "total_production_silver_oz", "Total Production Silver (oz)")
    TOTAL_PRODUCTION_GOLD_OZ = ("production", "total_production_gold_oz", "Total Production Gold (oz)")
    PAYABLE_SILVER_OZ = ("production", "payable_silver_oz", "Payable Silver (oz)")
    PAYABLE_GOLD_OZ = ("production", "payable_gold_oz", "Payable Gold (oz)")
    DORE_PRODUCTION_OZ = ("production", "dore_production_oz", "Dore Production (oz)")

    # Costs
    MINE = ("costs", "mine", "Mine")
    PROCESSING = ("costs", "processing", "Processing")
    GA = ("costs", "ga", "G&A")
    TRANSPORT_SHIPPING = ("costs", "transport_shipping", "Transport & Shipping")
    INVENTORY_VARIATIONS = ("costs", "inventory_variations", "Inventory Variations")
    PRODUCTION_BASED_COSTS = ("costs", "production_based_costs", "Production Based Costs")
    PRODUCTION_BASED_MARGIN = ("costs", "production_based_margin", "Production Based Margin")

    # NSR
    NSR_DORE = ("nsr", "nsr_dore", "NSR Dore")
    STREAMING = ("nsr", "streaming", "Streaming")
    PBR_REVENUE = ("nsr", "pbr_revenue", "PBR Revenue")
    SHIPPING_SELLING = ("nsr", "shipping_selling", "Shipping & Selling")
    SALES_TAXES = ("nsr", "sales_taxes", "Sales Taxes")
    ROYALTIES = ("nsr", "royalties", "Royalties")
    SALES_TAXES_ROYALTIES = ("nsr", "sales_taxes_royalties", "Sales Taxes & Royalties")
    OTHER_SALES_DEDUCTIONS = ("nsr", "other_sales_deductions", "Other Sales Deductions")
    SMELTING_REFINING_CHARGES = ("nsr", "smelting_refining_charges", "Smelting & Refining Charges")
    NET_SMELTER_RETURN = ("nsr", "net_smelter_return", "Net Smelter Return")
    NSR_GOLD_CREDIT = ("nsr", "gold_credit", "Gold Credit (NSR)")
    SILVER_PRICE_PER_OZ = ("nsr", "silver_price_per_oz", "Silver Price ($/oz)")
    GOLD_PRICE_PER_OZ = ("nsr", "gold_price_per_oz", "Gold Price ($/oz)")
    NSR_PER_TONNE = ("nsr", "nsr_per_tonne", "NSR per Tonne")
    TOTAL_COST_PER_TONNE = ("nsr", "total_cost_per_tonne", "Total Cost per Tonne")
    MARGIN_PER_TONNE = ("nsr", "margin_per_tonne", "Margin per Tonne")

    # CAPEX
    SUSTAINING = ("capex", "sustaining", "Sustaining Capital")
    PROJECT = ("capex", "project", "Project Capital")
    LEASING = ("capex", "leasing", "Leasing")
    ACCRETION_OF_MINE_CLOSURE_LIABILITY = (
        "capex", "accretion_of_mine_closure_liability", "Accretion of Mine Closure Liability")
    CAPEX_TOTAL = ("capex", "total", "Total CAPEX")
    CAPEX_PRODUCTION_BASED_MARGIN = ("capex", "production_based_margin", "Production Based Margin (CAPEX)")
    PBR_NET_CASH_FLOW = ("capex", "pbr_net_cash_flow", "PBR Net Cash Flow")

    # Cash cost
    CASH_COST_PER_OZ_SILVER = ("cash_cost", "cash_cost_per_oz_silver", "Cash Cost per oz Silver")
    AISC_PER_OZ_SILVER = ("cash_cost", "aisc_per_oz_silver", "AISC per oz Silver")
    CASH_COSTS_SILVER = ("cash_cost", "cash_costs_silver", "Cash Costs Silver")
    AISC_SILVER = ("cash_cost", "aisc_silver", "AISC Silver")
    CASH_COST_GOLD_CREDIT = ("cash_cost", "gold_credit", "Gold Credit")
    SUSTAINING_CAPITAL_PER_OZ = ("cash_cost", "sustaining_capital_per_oz", "Sustaining Capital per oz")

    @property
    def group(self) -> str:
        return self.value[0]

    @property
    def attr(self) -> str:
        return self.value[1]

    @property
    def label(self) -> str:
        return self.value[2]

    @property
    def key(self) -> str:
        """Dotted key, e.g. "nsr.net_smelter_return"."""
        return f"{self.group}.{self.attr}"


_BY_LABEL: Dict[str, MetricField] = {f.label: f for f in MetricField}
_BY_KEY: Dict[str, MetricField] = {f.key: f for f in MetricField}


def field_by_label(label: str) -> MetricField:
    try:
        return _BY_LABEL[label]
    except KeyError:
        raise KeyError(f"unknown metric label: {label!r}") from None


def field_by_key(key: str) -> MetricField:
    try:
        return _BY_KEY[key]
    except KeyError:
        raise KeyError(f"unknown metric key: {key!r}") from None


def fields_in_group(group: str) -> List[MetricField]:
    if group not in METRIC_GROUPS:
        raise KeyError(f"unknown metric group: {group!r}")
    return [f for f in MetricField if f.group == group]


def value_of(dataset: Optional[DataSet], metric: MetricField) -> float:
    """Value of ``metric`` in ``dataset``; a missing DataSet reads as 0."""
    if dataset is None:
        return 0.0
    return float(getattr(getattr(dataset, metric.group), metric.attr))


def variance_of(variance: VarianceData, metric: MetricField) -> VarianceMetric:
    return variance.values[(metric.group, metric.attr)]
