"""
tests/conftest.py
=================
Shared pytest fixtures for the Mine Platform test suite.
"""
import sys
import os
import datetime as dt

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from mine_platform.types import (
    CAPEXRecord,
    DoreRecord,
    FinancialRecord,
    OPEXRecord,
    PBRRecord,
    ProductionRecord,
    RevenueRecord,
)

COMPANY_ID = 7

PBR_HEADER = ("date,ore_mined_t,waste_mined_t,developments_m,total_tonnes_processed,"
              "feed_grade_silver_gpt,feed_grade_gold_gpt,recovery_rate_silver_pct,recovery_rate_gold_pct")
PBR_ROW = "2025-01-15,24859,262591,598,35951,209.79,7.35,94.01,95.36"


def csv_bytes(*lines):
    """Join CSV lines into the bytes an upload would carry."""
    return ("\n".join(lines) + "\n").encode("utf-8")


def make_pbr(date=dt.date(2025, 1, 15), data_type="actual", **kw):
    fields = dict(
        ore_mined_t=24859.0,
        open_pit_ore_t=24859.0,
        waste_mined_t=262591.0,
        stripping_ratio=262591.0 / 24859.0,
        developments_m=598.0,
        total_tonnes_processed=35951.0,
        feed_grade_silver_gpt=209.79,
        feed_grade_gold_gpt=7.35,
        recovery_rate_silver_pct=94.01,
        recovery_rate_gold_pct=95.36,
    )
    fields.update(kw)
    return PBRRecord(company_id=COMPANY_ID, date=date, data_type=data_type, **fields)


def make_dore(date=dt.date(2025, 1, 15), data_type="actual", **kw):
    fields = dict(
        dore_produced_oz=1000.0,
        silver_grade_pct=90.0,
        gold_grade_pct=10.0,
        realized_price_silver=25.0,
        realized_price_gold=2000.0,
        silver_adjustment_oz=5.0,
        gold_adjustment_oz=1.0,
        ag_deductions_pct=2.0,
        au_deductions_pct=1.0,
        treatment_charge=1000.0,
        refining_deductions_au=500.0,
        streaming=-2000.0,
    )
    fields.update(kw)
    return DoreRecord(company_id=COMPANY_ID, date=date, data_type=data_type, **fields)


def make_financial(date=dt.date(2025, 1, 15), data_type="actual", **kw):
    fields = dict(shipping_selling=-3000.0, sales_taxes=-1000.0, royalties=-500.0,
                  other_sales_deductions=-250.0)
    fields.update(kw)
    return FinancialRecord(company_id=COMPANY_ID, date=date, data_type=data_type, **fields)


def make_opex(cost_center, amount, subcategory="General", date=dt.date(2025, 1, 15),
              data_type="actual", expense_type="Other"):
    return OPEXRecord(company_id=COMPANY_ID, date=date, data_type=data_type,
                      cost_center=cost_center, subcategory=subcategory,
                      expense_type=expense_type, amount=amount)


def make_capex(type_, amount, accretion=0.0, category="Mine Equipment", car_number="",
               project_name="", date=dt.date(2025, 1, 15), data_type="actual"):
    return CAPEXRecord(company_id=COMPANY_ID, date=date, data_type=data_type,
                       category=category, car_number=car_number,
                       project_name=project_name or category, type=type_, amount=amount,
                       accretion_of_mine_closure_liability=accretion)


def make_production(mineral_id, quantity, date=dt.date(2025, 1, 15), data_type="actual", unit="tonnes"):
    return ProductionRecord(company_id=COMPANY_ID, date=date, data_type=data_type,
                            mineral_id=mineral_id, quantity=quantity, unit=unit)


def make_revenue(mineral_id, quantity_sold, unit_price, date=dt.date(2025, 1, 15), data_type="actual",
                 currency="USD"):
    return RevenueRecord(company_id=COMPANY_ID, date=date, data_type=data_type, mineral_id=mineral_id,
                         quantity_sold=quantity_sold, unit_price=unit_price, currency=currency)


@pytest.fixture
def pbr():
    return make_pbr()


@pytest.fixture
def dore():
    return make_dore()


@pytest.fixture
def financial():
    return make_financial()


@pytest.fixture
def opex_lines():
    """Monthly OPEX ledger with one inventory-variation line."""
    return [
        make_opex("Mine", 8537997.0),
        make_opex("Processing", 3613678.0),
        make_opex("G&A", 5471220.0),
        make_opex("Transport & Shipping", 250000.0),
        make_opex("Processing", 1740162.0, subcategory="Inventory Variation"),
    ]


@pytest.fixture
def capex_lines():
    return [
        make_capex("sustaining", 1200000.0, accretion=15000.0),
        make_capex("project", 800000.0),
        make_capex("leasing", 50000.0),
    ]
