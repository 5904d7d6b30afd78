"""
mine_platform/types.py
======================
Dataclasses for raw mining submissions (PBR, Dore, OPEX, CAPEX, Financial,
Production, Revenue), the derived metric groups computed from them, and the
report / import containers that carry results back to the caller.
"""
from __future__ import annotations
import datetime as dt
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Literal, Tuple, Any

# ─── Enumerations ─────────────────────────────────────────────────────────────

DataType = Literal["actual", "budget"]
DataCategory = Literal["production", "pbr", "dore", "opex", "capex", "revenue", "financial"]
CostCenter = Literal["Mine", "Processing", "G&A", "Transport & Shipping"]
ExpenseType = Literal["Labour", "Materials", "Third Party", "Other"]
CapexType = Literal["sustaining", "project", "leasing", "accretion"]
Currency = Literal["USD", "ARS"]
UnitOfMeasure = Literal["tonnes", "kilograms", "grams", "troy_ounces"]
CrossFileIssueType = Literal["month_alignment", "year_mismatch", "missing_dependency"]

DATA_TYPES: Tuple[str, ...] = ("actual", "budget")
DATA_CATEGORIES: Tuple[str, ...] = ("production", "pbr", "dore", "opex", "capex", "revenue", "financial")
COST_CENTERS: Tuple[str, ...] = ("Mine", "Processing", "G&A", "Transport & Shipping")
EXPENSE_TYPES: Tuple[str, ...] = ("Labour", "Materials", "Third Party", "Other")
CAPEX_TYPES: Tuple[str, ...] = ("sustaining", "project", "leasing", "accretion")
CURRENCIES: Tuple[str, ...] = ("USD", "ARS")
UNITS: Tuple[str, ...] = ("tonnes", "kilograms", "grams", "troy_ounces")

DEFAULT_MINERAL_CODES: Dict[str, int] = {
    "AU": 1, "AG": 2, "CU": 3, "ZN": 4, "PB": 5, "LI": 6, "FE": 7,
}

GRAMS_PER_TROY_OUNCE = 31.1035


class InvalidDataTypeError(ValueError):
    """Unknown data category or scenario passed by the caller."""


# ─── Configuration ────────────────────────────────────────────────────────────

@dataclass
class MetricsConfig:
    grams_per_troy_ounce: float = GRAMS_PER_TROY_OUNCE
    inventory_subcategories: Tuple[str, ...] = (
        "Inventory Variation",
        "Stockpile/WIP",
        "Inventory Variations",
    )
    required_capex_categories: Tuple[str, ...] = (
        "Pre-Stripping and Capital Developments",
        "Exploration/Mine Geology",
        "Mine Equipment",
        "Mine Infrastructure",
        "Tailings Dams and Leach Pads",
        "Plant Upgrades",
        "Site Infrastructure",
        "Administration Projects",
        "Community Projects",
        "Right-of-Use Asset (IFRS16)",
    )
    required_capex_projects: Tuple[str, ...] = ()


@dataclass
class ImportLookups:
    """Reference data a row mapper resolves against."""
    mineral_codes: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MINERAL_CODES))
    pbr_by_date: Dict[dt.date, "PBRRecord"] = field(default_factory=dict)


# ─── Raw Records ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RecordBase:
    company_id: int
    date: dt.date
    data_type: DataType = "actual"
    version: int = 1
    description: str = ""
    created_by: int = 0
    created_at: Optional[dt.datetime] = None
    deleted_at: Optional[dt.datetime] = None
    id: Optional[int] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class ProductionRecord(RecordBase):
    mineral_id: int = 0
    quantity: float = 0.0
    unit: UnitOfMeasure = "tonnes"


@dataclass(frozen=True)
class PBRRecord(RecordBase):
    open_pit_ore_t: float = 0.0
    underground_ore_t: float = 0.0
    ore_mined_t: float = 0.0
    waste_mined_t: float = 0.0
    stripping_ratio: float = 0.0
    mining_grade_silver_gpt: float = 0.0
    mining_grade_gold_gpt: float = 0.0
    open_pit_grade_silver_gpt: float = 0.0
    underground_grade_silver_gpt: float = 0.0
    open_pit_grade_gold_gpt: float = 0.0
    underground_grade_gold_gpt: float = 0.0
    primary_development_m: float = 0.0
    secondary_development_opex_m: float = 0.0
    expansionary_development_m: float = 0.0
    developments_m: float = 0.0
    total_tonnes_processed: float = 0.0
    feed_grade_silver_gpt: float = 0.0
    feed_grade_gold_gpt: float = 0.0
    recovery_rate_silver_pct: float = 0.0
    recovery_rate_gold_pct: float = 0.0
    full_time_employees: int = 0
    contractors: int = 0
    total_headcount: int = 0


@dataclass(frozen=True)
class DoreRecord(RecordBase):
    dore_produced_oz: float = 0.0
    silver_grade_pct: float = 0.0
    gold_grade_pct: float = 0.0
    pbr_price_silver: float = 0.0
    pbr_price_gold: float = 0.0
    realized_price_silver: float = 0.0
    realized_price_gold: float = 0.0
    silver_adjustment_oz: float = 0.0
    gold_adjustment_oz: float = 0.0
    ag_deductions_pct: float = 0.0
    au_deductions_pct: float = 0.0
    treatment_charge: float = 0.0
    refining_deductions_au: float = 0.0
    streaming: float = 0.0


@dataclass(frozen=True)
class OPEXRecord(RecordBase):
    cost_center: CostCenter = "Mine"
    subcategory: str = ""
    expense_type: ExpenseType = "Other"
    amount: float = 0.0
    currency: Currency = "USD"


@dataclass(frozen=True)
class CAPEXRecord(RecordBase):
    category: str = ""
    car_number: str = ""
    project_name: str = ""
    type: CapexType = "sustaining"
    amount: float = 0.0
    accretion_of_mine_closure_liability: float = 0.0
    currency: Currency = "USD"


@dataclass(frozen=True)
class RevenueRecord(RecordBase):
    mineral_id: int = 0
    quantity_sold: float = 0.0
    unit_price: float = 0.0
    currency: Currency = "USD"


@dataclass(frozen=True)
class FinancialRecord(RecordBase):
    shipping_selling: float = 0.0
    sales_taxes: float = 0.0
    royalties: float = 0.0
    other_sales_deductions: float = 0.0
    other_adjustments: float = 0.0
    currency: Currency = "USD"

    @property
    def sales_taxes_royalties(self) -> float:
        return self.sales_taxes + self.royalties


@dataclass
class ScenarioRecords:
    """Pre-fetched raw records for one (company, year, scenario)."""
    pbr: List[PBRRecord] = field(default_factory=list)
    dore: List[DoreRecord] = field(default_factory=list)
    financial: List[FinancialRecord] = field(default_factory=list)
    opex: List[OPEXRecord] = field(default_factory=list)
    capex: List[CAPEXRecord] = field(default_factory=list)
    production: List[ProductionRecord] = field(default_factory=list)
    revenue: List[RevenueRecord] = field(default_factory=list)


# ─── Derived Metric Groups ────────────────────────────────────────────────────

@dataclass
class MiningMetrics:
    open_pit_ore_t: float = 0.0
    underground_ore_t: float = 0.0
    ore_mined_t: float = 0.0
    waste_mined_t: float = 0.0
    stripping_ratio: float = 0.0
    mining_grade_silver_gpt: float = 0.0
    mining_grade_gold_gpt: float = 0.0
    open_pit_grade_silver_gpt: float = 0.0
    underground_grade_silver_gpt: float = 0.0
    open_pit_grade_gold_gpt: float = 0.0
    underground_grade_gold_gpt: float = 0.0
    primary_development_m: float = 0.0
    secondary_development_opex_m: float = 0.0
    expansionary_development_m: float = 0.0
    developments_m: float = 0.0
    full_time_employees: int = 0
    contractors: int = 0
    total_headcount: int = 0
    has_data: bool = False


@dataclass
class ProcessingMetrics:
    total_tonnes_processed: float = 0.0
    feed_grade_silver_gpt: float = 0.0
    feed_grade_gold_gpt: float = 0.0
    recovery_rate_silver_pct: float = 0.0
    recovery_rate_gold_pct: float = 0.0
    has_data: bool = False


@dataclass
class ProductionMetrics:
    total_production_silver_oz: float = 0.0
    total_production_gold_oz: float = 0.0
    payable_silver_oz: float = 0.0
    payable_gold_oz: float = 0.0
    dore_production_oz: float = 0.0
    has_data: bool = False


@dataclass
class CostMetrics:
    mine: float = 0.0
    processing: float = 0.0
    ga: float = 0.0
    transport_shipping: float = 0.0
    inventory_variations: float = 0.0
    production_based_costs: float = 0.0
    production_based_margin: float = 0.0
    has_data: bool = False


@dataclass
class NSRMetrics:
    nsr_dore: float = 0.0
    streaming: float = 0.0
    pbr_revenue: float = 0.0
    shipping_selling: float = 0.0
    sales_taxes: float = 0.0
    royalties: float = 0.0
    sales_taxes_royalties: float = 0.0
    other_sales_deductions: float = 0.0
    smelting_refining_charges: float = 0.0
    net_smelter_return: float = 0.0
    gold_credit: float = 0.0
    silver_price_per_oz: float = 0.0
    gold_price_per_oz: float = 0.0
    nsr_per_tonne: float = 0.0
    total_cost_per_tonne: float = 0.0
    margin_per_tonne: float = 0.0
    has_data: bool = False


@dataclass
class CAPEXMetrics:
    sustaining: float = 0.0
    project: float = 0.0
    leasing: float = 0.0
    accretion_of_mine_closure_liability: float = 0.0
    total: float = 0.0
    production_based_margin: float = 0.0
    pbr_net_cash_flow: float = 0.0
    has_data: bool = False


@dataclass
class CashCostMetrics:
    cash_cost_per_oz_silver: float = 0.0
    aisc_per_oz_silver: float = 0.0
    cash_costs_silver: float = 0.0
    aisc_silver: float = 0.0
    gold_credit: float = 0.0
    sustaining_capital_per_oz: float = 0.0
    has_data: bool = False


@dataclass
class DataSet:
    mining: MiningMetrics = field(default_factory=MiningMetrics)
    processing: ProcessingMetrics = field(default_factory=ProcessingMetrics)
    production: ProductionMetrics = field(default_factory=ProductionMetrics)
    costs: CostMetrics = field(default_factory=CostMetrics)
    nsr: NSRMetrics = field(default_factory=NSRMetrics)
    capex: CAPEXMetrics = field(default_factory=CAPEXMetrics)
    cash_cost: CashCostMetrics = field(default_factory=CashCostMetrics)

    @property
    def has_any_data(self) -> bool:
        return any(
            g.has_data for g in (
                self.mining, self.processing, self.production, self.costs,
                self.nsr, self.capex, self.cash_cost,
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ─── Variance / Report Containers ─────────────────────────────────────────────

@dataclass
class VarianceMetric:
    actual: float
    budget: float
    variance: float
    variance_pct: float


@dataclass
class VarianceData:
    """Per-field variance, keyed by ``(group, attr)``."""
    values: Dict[Tuple[str, str], VarianceMetric] = field(default_factory=dict)

    def group(self, name: str) -> Dict[str, VarianceMetric]:
        return {attr: vm for (grp, attr), vm in self.values.items() if grp == name}

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        out: Dict[str, Dict[str, Dict[str, float]]] = {}
        for (grp, attr), vm in self.values.items():
            out.setdefault(grp, {})[attr] = asdict(vm)
        return out


@dataclass
class YTDData:
    actual: Optional[DataSet] = None
    budget: Optional[DataSet] = None
    variance: Optional[VarianceData] = None


@dataclass
class MonthlyData:
    month: str
    actual: Optional[DataSet] = None
    budget: Optional[DataSet] = None
    variance: Optional[VarianceData] = None
    ytd: Optional[YTDData] = None


@dataclass
class DataCoverage:
    actual_months: List[int] = field(default_factory=list)
    budget_months: List[int] = field(default_factory=list)
    actual_last_month: int = 0
    budget_last_month: int = 0
    actual_is_partial: bool = False
    budget_is_partial: bool = False
    has_any_actual: bool = False
    has_any_budget: bool = False
    has_complete_actual: bool = False
    has_complete_budget: bool = False


@dataclass
class CrossFileIssue:
    type: CrossFileIssueType
    message: str
    affected_files: List[str] = field(default_factory=list)
    months: List[int] = field(default_factory=list)
    dates: List[dt.date] = field(default_factory=list)
    year: int = 0


@dataclass
class SummaryReport:
    company_id: int
    year: int
    company_name: str = ""
    months: List[MonthlyData] = field(default_factory=list)
    coverage: Optional[DataCoverage] = None
    issues: List[CrossFileIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        def _ds(d: Optional[DataSet]):
            return d.to_dict() if d is not None else None

        def _var(v: Optional[VarianceData]):
            return v.to_dict() if v is not None else None

        months = []
        for m in self.months:
            entry: Dict[str, Any] = {
                "month": m.month,
                "actual": _ds(m.actual),
                "budget": _ds(m.budget),
                "variance": _var(m.variance),
                "ytd": None,
            }
            if m.ytd is not None:
                entry["ytd"] = {
                    "actual": _ds(m.ytd.actual),
                    "budget": _ds(m.ytd.budget),
                    "variance": _var(m.ytd.variance),
                }
            months.append(entry)
        return {
            "company_id": self.company_id,
            "company_name": self.company_name,
            "year": self.year,
            "months": months,
            "coverage": asdict(self.coverage) if self.coverage else None,
        }


# ─── Parsing / Import Results ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ParseError:
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationError:
    row: int
    error: str
    column: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"row": self.row, "error": self.error}
        if self.column:
            d["column"] = self.column
        return d


@dataclass
class ImportResult:
    success: bool
    type: str
    rows_total: int = 0
    rows_inserted: int = 0
    rows_failed: int = 0
    errors: List[ValidationError] = field(default_factory=list)
    records: List[RecordBase] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "type": self.type,
            "rows_total": self.rows_total,
            "rows_inserted": self.rows_inserted,
            "rows_failed": self.rows_failed,
            "errors": [e.to_dict() for e in self.errors],
        }
