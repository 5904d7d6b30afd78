"""
mine_platform/calculator.py
===========================
Monthly metric derivation: one month's raw records for one scenario →
a DataSet (Mining, Processing, Production, Costs, NSR, CAPEX, Cash Cost).

Derivation order matters: Production (PBR) → Costs (OPEX) → NSR (Dore +
Financial, PBR tonnes for per-tonne figures) → margin back onto Costs →
CAPEX → Cash Cost. Every division is zero-guarded.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

from .types import (
    CAPEXMetrics,
    CAPEXRecord,
    CashCostMetrics,
    CostMetrics,
    DataSet,
    DoreRecord,
    FinancialRecord,
    MetricsConfig,
    MiningMetrics,
    NSRMetrics,
    OPEXRecord,
    PBRRecord,
    ProcessingMetrics,
    ProductionMetrics,
)


def _safe_div(a: float, b: float) -> float:
    return a / b if b else 0.0


# ─── Production ───────────────────────────────────────────────────────────────

def contained_ounces(grade_gpt: float, tonnes: float, config: Optional[MetricsConfig] = None) -> float:
    cfg = config or MetricsConfig()
    return grade_gpt * tonnes / cfg.grams_per_troy_ounce


def production_ounces(pbr: PBRRecord, config: Optional[MetricsConfig] = None) -> Tuple[float, float]:
    """Recovered (silver_oz, gold_oz) = feed grade × tonnes × recovery / g-per-oz."""
    tonnes = pbr.total_tonnes_processed
    silver = contained_ounces(pbr.feed_grade_silver_gpt, tonnes, config) * pbr.recovery_rate_silver_pct / 100
    gold = contained_ounces(pbr.feed_grade_gold_gpt, tonnes, config) * pbr.recovery_rate_gold_pct / 100
    return silver, gold


def calculate_mining(pbr: PBRRecord) -> MiningMetrics:
    return MiningMetrics(
        open_pit_ore_t=pbr.open_pit_ore_t,
        underground_ore_t=pbr.underground_ore_t,
        ore_mined_t=pbr.ore_mined_t,
        waste_mined_t=pbr.waste_mined_t,
        stripping_ratio=pbr.stripping_ratio,
        mining_grade_silver_gpt=pbr.mining_grade_silver_gpt,
        mining_grade_gold_gpt=pbr.mining_grade_gold_gpt,
        open_pit_grade_silver_gpt=pbr.open_pit_grade_silver_gpt,
        underground_grade_silver_gpt=pbr.underground_grade_silver_gpt,
        open_pit_grade_gold_gpt=pbr.open_pit_grade_gold_gpt,
        underground_grade_gold_gpt=pbr.underground_grade_gold_gpt,
        primary_development_m=pbr.primary_development_m,
        secondary_development_opex_m=pbr.secondary_development_opex_m,
        expansionary_development_m=pbr.expansionary_development_m,
        developments_m=pbr.developments_m,
        full_time_employees=pbr.full_time_employees,
        contractors=pbr.contractors,
        total_headcount=pbr.total_headcount,
        has_data=True,
    )


def calculate_processing(pbr: PBRRecord) -> ProcessingMetrics:
    return ProcessingMetrics(
        total_tonnes_processed=pbr.total_tonnes_processed,
        feed_grade_silver_gpt=pbr.feed_grade_silver_gpt,
        feed_grade_gold_gpt=pbr.feed_grade_gold_gpt,
        recovery_rate_silver_pct=pbr.recovery_rate_silver_pct,
        recovery_rate_gold_pct=pbr.recovery_rate_gold_pct,
        has_data=True,
    )


def calculate_production(pbr: PBRRecord, config: Optional[MetricsConfig] = None) -> ProductionMetrics:
    silver, gold = production_ounces(pbr, config)
    return ProductionMetrics(
        total_production_silver_oz=silver,
        total_production_gold_oz=gold,
        payable_silver_oz=silver,
        payable_gold_oz=gold,
        dore_production_oz=silver + gold,
        has_data=True,
    )


# ─── Costs ────────────────────────────────────────────────────────────────────

def calculate_costs(opex: Iterable[OPEXRecord], config: Optional[MetricsConfig] = None) -> CostMetrics:
    cfg = config or MetricsConfig()
    inventory_names = set(cfg.inventory_subcategories)
    costs = CostMetrics(has_data=True)
    for line in opex:
        if line.subcategory in inventory_names:
            costs.inventory_variations += line.amount
        elif line.cost_center == "Mine":
            costs.mine += line.amount
        elif line.cost_center == "Processing":
            costs.processing += line.amount
        elif line.cost_center == "G&A":
            costs.ga += line.amount
        elif line.cost_center == "Transport & Shipping":
            costs.transport_shipping += line.amount
    costs.production_based_costs = (
        costs.mine + costs.processing + costs.ga
        + costs.transport_shipping + costs.inventory_variations
    )
    return costs


# ─── NSR ──────────────────────────────────────────────────────────────────────

def dore_payable_ounces(dore: DoreRecord) -> Tuple[float, float]:
    """Payable (silver_oz, gold_oz) after assay adjustments and smelter deductions."""
    silver = dore.dore_produced_oz * dore.silver_grade_pct / 100 + dore.silver_adjustment_oz
    gold = dore.dore_produced_oz * dore.gold_grade_pct / 100 + dore.gold_adjustment_oz
    silver -= silver * dore.ag_deductions_pct / 100
    gold -= gold * dore.au_deductions_pct / 100
    return silver, gold


def calculate_nsr(
    dore: DoreRecord,
    financial: Optional[FinancialRecord],
    pbr: Optional[PBRRecord],
    costs: CostMetrics,
) -> NSRMetrics:
    payable_silver, payable_gold = dore_payable_ounces(dore)
    revenue = payable_silver * dore.realized_price_silver + payable_gold * dore.realized_price_gold
    charges = dore.treatment_charge + dore.refining_deductions_au
    nsr_dore = revenue - charges

    nsr = NSRMetrics(
        nsr_dore=nsr_dore,
        streaming=dore.streaming,
        pbr_revenue=nsr_dore + dore.streaming,
        smelting_refining_charges=charges,
        gold_credit=-(payable_gold * dore.realized_price_gold),
        silver_price_per_oz=dore.realized_price_silver,
        gold_price_per_oz=dore.realized_price_gold,
        has_data=True,
    )
    if financial is not None:
        nsr.shipping_selling = financial.shipping_selling
        nsr.sales_taxes = financial.sales_taxes
        nsr.royalties = financial.royalties
        nsr.sales_taxes_royalties = financial.sales_taxes_royalties
        nsr.other_sales_deductions = financial.other_sales_deductions

    nsr.net_smelter_return = nsr.nsr_dore + nsr.shipping_selling + nsr.sales_taxes_royalties

    if pbr is not None:
        set_per_tonne(nsr, costs, pbr.total_tonnes_processed)
    return nsr


def set_per_tonne(nsr: NSRMetrics, costs: CostMetrics, tonnes: float) -> None:
    if tonnes > 0:
        nsr.nsr_per_tonne = nsr.net_smelter_return / tonnes
        nsr.total_cost_per_tonne = costs.production_based_costs / tonnes
        nsr.margin_per_tonne = nsr.nsr_per_tonne - nsr.total_cost_per_tonne
    else:
        nsr.nsr_per_tonne = nsr.total_cost_per_tonne = nsr.margin_per_tonne = 0.0


# ─── CAPEX ────────────────────────────────────────────────────────────────────

def calculate_capex(capex: Iterable[CAPEXRecord], costs: CostMetrics) -> CAPEXMetrics:
    out = CAPEXMetrics(has_data=True)
    for line in capex:
        if line.type == "sustaining":
            out.sustaining += line.amount
        elif line.type == "project":
            out.project += line.amount
        elif line.type == "leasing":
            out.leasing += line.amount
        out.accretion_of_mine_closure_liability += line.accretion_of_mine_closure_liability
    out.total = out.sustaining + out.project + out.leasing + out.accretion_of_mine_closure_liability
    apply_cash_flow(out, costs)
    return out


def apply_cash_flow(capex: CAPEXMetrics, costs: CostMetrics) -> None:
    capex.production_based_margin = costs.production_based_margin
    capex.pbr_net_cash_flow = capex.production_based_margin - capex.sustaining


# ─── Cash Cost / AISC ─────────────────────────────────────────────────────────

def calculate_cash_cost(
    costs: CostMetrics,
    capex: CAPEXMetrics,
    production: ProductionMetrics,
    gold_credit: float,
) -> CashCostMetrics:
    """
    Silver is the primary metal: gold revenue is a by-product credit against
    production costs. AISC adds sustaining capital and closure accretion.
    """
    cash_costs = costs.production_based_costs - gold_credit
    aisc = cash_costs + capex.sustaining + capex.accretion_of_mine_closure_liability
    payable = production.payable_silver_oz
    return CashCostMetrics(
        cash_cost_per_oz_silver=_safe_div(cash_costs, payable),
        aisc_per_oz_silver=_safe_div(aisc, payable),
        cash_costs_silver=cash_costs,
        aisc_silver=aisc,
        gold_credit=gold_credit,
        sustaining_capital_per_oz=_safe_div(capex.sustaining, payable),
        has_data=True,
    )


def month_gold_credit(production: ProductionMetrics, nsr: NSRMetrics) -> float:
    """Payable gold × that month's realized gold price (0 without Dore)."""
    if not nsr.has_data or production.payable_gold_oz <= 0:
        return 0.0
    return production.payable_gold_oz * nsr.gold_price_per_oz


# ─── DataSet ──────────────────────────────────────────────────────────────────

def calculate_dataset(
    pbr: Optional[PBRRecord] = None,
    dore: Optional[DoreRecord] = None,
    financial: Optional[FinancialRecord] = None,
    opex: Optional[List[OPEXRecord]] = None,
    capex: Optional[List[CAPEXRecord]] = None,
    config: Optional[MetricsConfig] = None,
) -> DataSet:
    ds = DataSet()

    if pbr is not None:
        ds.mining = calculate_mining(pbr)
        ds.processing = calculate_processing(pbr)
        ds.production = calculate_production(pbr, config)

    if opex:
        ds.costs = calculate_costs(opex, config)

    if dore is not None:
        ds.nsr = calculate_nsr(dore, financial, pbr, ds.costs)

    ds.costs.production_based_margin = ds.nsr.net_smelter_return - ds.costs.production_based_costs

    if capex:
        ds.capex = calculate_capex(capex, ds.costs)

    if ds.production.has_data and ds.costs.has_data:
        ds.cash_cost = calculate_cash_cost(
            ds.costs, ds.capex, ds.production, month_gold_credit(ds.production, ds.nsr))

    return ds
