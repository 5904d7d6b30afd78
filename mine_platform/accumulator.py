"""
mine_platform/accumulator.py
============================
Year-to-date accumulation as a left fold over monthly DataSets.

    ytd = fold(accumulate, months, identity())

The identity is an empty DataSet, so January needs no special case.
Per-field semantics:
  - sum:               tonnes, metres, costs, revenue, CAPEX, ounces, gold credit
  - weighted average:  grades (by ore / processed tonnes), prices (by payable oz)
  - latest value:      headcount
  - recomputed:        stripping ratio, recovery %, per-tonne NSR, margin,
                       net cash flow, cash cost and AISC per ounce
"""
from __future__ import annotations
from functools import reduce
from typing import Iterable, List, Optional

from .calculator import (
    apply_cash_flow,
    calculate_cash_cost,
    contained_ounces,
    month_gold_credit,
    set_per_tonne,
)
from .types import (
    CAPEXMetrics,
    CashCostMetrics,
    CostMetrics,
    DataSet,
    MetricsConfig,
    MiningMetrics,
    NSRMetrics,
    ProcessingMetrics,
    ProductionMetrics,
)


def identity() -> DataSet:
    return DataSet()


def _weighted(prev_value: float, prev_weight: float, cur_value: float, cur_weight: float,
              cur_present: bool = True) -> float:
    total = prev_weight + cur_weight
    if total:
        return (prev_value * prev_weight + cur_value * cur_weight) / total
    # No mass on either side: the latest reported value stands
    return cur_value if cur_present else prev_value


def _ratio(numerator: float, denominator: float, prev_value: float, cur_value: float,
           cur_present: bool, scale: float = 1.0) -> float:
    """Recomputed ratio; falls back to the reported value while the denominator is still zero."""
    if denominator:
        return numerator / denominator * scale
    return cur_value if cur_present else prev_value


# ─── Group Accumulators ───────────────────────────────────────────────────────

def _mining(p: MiningMetrics, m: MiningMetrics) -> MiningMetrics:
    ore = p.ore_mined_t + m.ore_mined_t
    open_pit = p.open_pit_ore_t + m.open_pit_ore_t
    underground = p.underground_ore_t + m.underground_ore_t
    waste = p.waste_mined_t + m.waste_mined_t
    latest = m if m.has_data else p
    now = m.has_data
    return MiningMetrics(
        open_pit_ore_t=open_pit,
        underground_ore_t=underground,
        ore_mined_t=ore,
        waste_mined_t=waste,
        stripping_ratio=_ratio(waste, open_pit, p.stripping_ratio, m.stripping_ratio, now),
        mining_grade_silver_gpt=_weighted(p.mining_grade_silver_gpt, p.ore_mined_t,
                                          m.mining_grade_silver_gpt, m.ore_mined_t, now),
        mining_grade_gold_gpt=_weighted(p.mining_grade_gold_gpt, p.ore_mined_t,
                                        m.mining_grade_gold_gpt, m.ore_mined_t, now),
        open_pit_grade_silver_gpt=_weighted(p.open_pit_grade_silver_gpt, p.open_pit_ore_t,
                                            m.open_pit_grade_silver_gpt, m.open_pit_ore_t, now),
        underground_grade_silver_gpt=_weighted(p.underground_grade_silver_gpt, p.underground_ore_t,
                                               m.underground_grade_silver_gpt, m.underground_ore_t, now),
        open_pit_grade_gold_gpt=_weighted(p.open_pit_grade_gold_gpt, p.open_pit_ore_t,
                                          m.open_pit_grade_gold_gpt, m.open_pit_ore_t, now),
        underground_grade_gold_gpt=_weighted(p.underground_grade_gold_gpt, p.underground_ore_t,
                                             m.underground_grade_gold_gpt, m.underground_ore_t, now),
        primary_development_m=p.primary_development_m + m.primary_development_m,
        secondary_development_opex_m=p.secondary_development_opex_m + m.secondary_development_opex_m,
        expansionary_development_m=p.expansionary_development_m + m.expansionary_development_m,
        developments_m=p.developments_m + m.developments_m,
        full_time_employees=latest.full_time_employees,
        contractors=latest.contractors,
        total_headcount=latest.total_headcount,
        has_data=p.has_data or m.has_data,
    )


def _production(p: ProductionMetrics, m: ProductionMetrics) -> ProductionMetrics:
    return ProductionMetrics(
        total_production_silver_oz=p.total_production_silver_oz + m.total_production_silver_oz,
        total_production_gold_oz=p.total_production_gold_oz + m.total_production_gold_oz,
        payable_silver_oz=p.payable_silver_oz + m.payable_silver_oz,
        payable_gold_oz=p.payable_gold_oz + m.payable_gold_oz,
        dore_production_oz=p.dore_production_oz + m.dore_production_oz,
        has_data=p.has_data or m.has_data,
    )


def _processing(p: ProcessingMetrics, m: ProcessingMetrics, production: ProductionMetrics,
                config: MetricsConfig) -> ProcessingMetrics:
    tonnes = p.total_tonnes_processed + m.total_tonnes_processed
    silver_grade = _weighted(p.feed_grade_silver_gpt, p.total_tonnes_processed,
                             m.feed_grade_silver_gpt, m.total_tonnes_processed, m.has_data)
    gold_grade = _weighted(p.feed_grade_gold_gpt, p.total_tonnes_processed,
                           m.feed_grade_gold_gpt, m.total_tonnes_processed, m.has_data)
    # Recovered metal over contained metal, never an average of monthly %
    contained_silver = contained_ounces(silver_grade, tonnes, config)
    contained_gold = contained_ounces(gold_grade, tonnes, config)
    return ProcessingMetrics(
        total_tonnes_processed=tonnes,
        feed_grade_silver_gpt=silver_grade,
        feed_grade_gold_gpt=gold_grade,
        recovery_rate_silver_pct=_ratio(production.total_production_silver_oz, contained_silver,
                                        p.recovery_rate_silver_pct, m.recovery_rate_silver_pct,
                                        m.has_data, 100.0),
        recovery_rate_gold_pct=_ratio(production.total_production_gold_oz, contained_gold,
                                      p.recovery_rate_gold_pct, m.recovery_rate_gold_pct,
                                      m.has_data, 100.0),
        has_data=p.has_data or m.has_data,
    )


def _costs(p: CostMetrics, m: CostMetrics) -> CostMetrics:
    return CostMetrics(
        mine=p.mine + m.mine,
        processing=p.processing + m.processing,
        ga=p.ga + m.ga,
        transport_shipping=p.transport_shipping + m.transport_shipping,
        inventory_variations=p.inventory_variations + m.inventory_variations,
        production_based_costs=p.production_based_costs + m.production_based_costs,
        has_data=p.has_data or m.has_data,
    )


def _price(p_price: float, p_oz: float, p_priced: bool,
           m_price: float, m_oz: float, m_priced: bool) -> float:
    p_w = p_oz if p_priced else 0.0
    m_w = m_oz if m_priced else 0.0
    if p_w + m_w > 0:
        return _weighted(p_price, p_w, m_price, m_w)
    return m_price if m_priced else p_price


def _nsr(p: NSRMetrics, m: NSRMetrics, p_prod: ProductionMetrics, m_prod: ProductionMetrics) -> NSRMetrics:
    return NSRMetrics(
        nsr_dore=p.nsr_dore + m.nsr_dore,
        streaming=p.streaming + m.streaming,
        pbr_revenue=p.pbr_revenue + m.pbr_revenue,
        shipping_selling=p.shipping_selling + m.shipping_selling,
        sales_taxes=p.sales_taxes + m.sales_taxes,
        royalties=p.royalties + m.royalties,
        sales_taxes_royalties=p.sales_taxes_royalties + m.sales_taxes_royalties,
        other_sales_deductions=p.other_sales_deductions + m.other_sales_deductions,
        smelting_refining_charges=p.smelting_refining_charges + m.smelting_refining_charges,
        net_smelter_return=p.net_smelter_return + m.net_smelter_return,
        gold_credit=p.gold_credit + m.gold_credit,
        silver_price_per_oz=_price(p.silver_price_per_oz, p_prod.payable_silver_oz, p.has_data,
                                   m.silver_price_per_oz, m_prod.payable_silver_oz, m.has_data),
        gold_price_per_oz=_price(p.gold_price_per_oz, p_prod.payable_gold_oz, p.has_data,
                                 m.gold_price_per_oz, m_prod.payable_gold_oz, m.has_data),
        has_data=p.has_data or m.has_data,
    )


def _capex(p: CAPEXMetrics, m: CAPEXMetrics) -> CAPEXMetrics:
    return CAPEXMetrics(
        sustaining=p.sustaining + m.sustaining,
        project=p.project + m.project,
        leasing=p.leasing + m.leasing,
        accretion_of_mine_closure_liability=(p.accretion_of_mine_closure_liability
                                             + m.accretion_of_mine_closure_liability),
        total=p.total + m.total,
        has_data=p.has_data or m.has_data,
    )


# ─── Fold ─────────────────────────────────────────────────────────────────────

def accumulate(ytd: DataSet, month: DataSet, config: Optional[MetricsConfig] = None) -> DataSet:
    """Combine a running YTD DataSet with the next month → new YTD. Inputs are not modified."""
    cfg = config or MetricsConfig()
    out = DataSet()
    out.mining = _mining(ytd.mining, month.mining)
    out.production = _production(ytd.production, month.production)
    out.processing = _processing(ytd.processing, month.processing, out.production, cfg)
    out.costs = _costs(ytd.costs, month.costs)
    out.nsr = _nsr(ytd.nsr, month.nsr, ytd.production, month.production)

    out.costs.production_based_margin = out.nsr.net_smelter_return - out.costs.production_based_costs
    if out.nsr.has_data:
        set_per_tonne(out.nsr, out.costs, out.processing.total_tonnes_processed)

    out.capex = _capex(ytd.capex, month.capex)
    if out.capex.has_data:
        apply_cash_flow(out.capex, out.costs)

    # Each month's gold at that month's own price
    gold_credit = ytd.cash_cost.gold_credit + month_gold_credit(month.production, month.nsr)
    if out.production.has_data and out.costs.has_data:
        out.cash_cost = calculate_cash_cost(out.costs, out.capex, out.production, gold_credit)
    else:
        out.cash_cost = CashCostMetrics(gold_credit=gold_credit)
    return out


def fold_ytd(months: Iterable[DataSet], config: Optional[MetricsConfig] = None) -> List[DataSet]:
    """Running YTD after each month, in order."""
    running: List[DataSet] = []
    ytd = identity()
    for month in months:
        ytd = accumulate(ytd, month, config)
        running.append(ytd)
    return running


def ytd_total(months: Iterable[DataSet], config: Optional[MetricsConfig] = None) -> DataSet:
    return reduce(lambda acc, m: accumulate(acc, m, config), months, identity())
