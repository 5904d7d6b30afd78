"""
tests/test_report.py
====================
Summary assembly: month grouping, YTD pairing, coverage, tables and breakdowns.
"""
import dataclasses
import datetime as dt
import logging

import pandas as pd
import pytest

from mine_platform.calculator import calculate_dataset, production_ounces
from mine_platform.importer import import_csv
from mine_platform.metric_fields import MetricField
from mine_platform.report import (
    build_summary,
    capex_breakdown,
    group_by_month,
    month_key,
    opex_breakdown,
    parse_months_filter,
    production_breakdown,
    production_revenue_detail,
    project_key,
    revenue_breakdown,
    summary_table,
)
from mine_platform.types import MetricsConfig, ScenarioRecords

from conftest import (
    COMPANY_ID,
    PBR_HEADER,
    PBR_ROW,
    csv_bytes,
    make_capex,
    make_pbr,
    make_production,
    make_revenue,
)


def d(month, day=15):
    return dt.date(2025, month, day)


def _pbr_months(months, data_type="actual", **kw):
    return ScenarioRecords(pbr=[make_pbr(date=d(m), data_type=data_type, **kw) for m in months])


class TestMonthsFilter:
    def test_parse(self):
        assert parse_months_filter("1, 2,13,x,0") == {1, 2}

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_means_no_filter(self, text):
        assert parse_months_filter(text) is None

    def test_month_key(self):
        assert month_key(2025, 3) == "2025-03"


class TestGrouping:
    def test_latest_record_wins_within_month(self):
        recs = ScenarioRecords(pbr=[make_pbr(date=d(1, 31), ore_mined_t=2.0),
                                    make_pbr(date=d(1, 10), ore_mined_t=1.0)])
        buckets = group_by_month(recs, COMPANY_ID, 2025, "actual")
        assert buckets[1].pbr.ore_mined_t == 2.0

    def test_line_items_collected(self, opex_lines):
        buckets = group_by_month(ScenarioRecords(opex=opex_lines), COMPANY_ID, 2025, "actual")
        assert len(buckets[1].opex) == 5

    def test_filters_scenario_version_and_deleted(self):
        recs = ScenarioRecords(pbr=[
            make_pbr(date=d(1), data_type="budget"),
            dataclasses.replace(make_pbr(date=d(2)), version=2),
            dataclasses.replace(make_pbr(date=d(3)), deleted_at=dt.datetime(2025, 4, 1)),
            make_pbr(date=dt.date(2024, 4, 15)),
        ])
        assert group_by_month(recs, COMPANY_ID, 2025, "actual") == {}
        assert list(group_by_month(recs, COMPANY_ID, 2025, "actual", version=2)) == [2]


class TestBuildSummary:
    def test_imported_pbr_end_to_end(self):
        result = import_csv("pbr", csv_bytes(PBR_HEADER, PBR_ROW), COMPANY_ID, 1, "actual")
        report = build_summary(COMPANY_ID, 2025, ScenarioRecords(pbr=result.records), ScenarioRecords(),
                               months={1})
        assert len(report.months) == 1
        jan = report.months[0]
        assert jan.month == "2025-01"
        assert jan.actual.production.has_data
        assert not jan.actual.nsr.has_data
        assert jan.actual.mining.ore_mined_t == 24859
        assert jan.budget is None
        assert jan.variance is None
        assert jan.ytd.actual.mining.ore_mined_t == 24859
        assert jan.ytd.budget is None
        assert jan.ytd.variance is None

    def test_full_month_matches_direct_calculation(self, pbr, dore, financial, opex_lines, capex_lines):
        actual = ScenarioRecords(pbr=[pbr], dore=[dore], financial=[financial],
                                 opex=opex_lines, capex=capex_lines)
        report = build_summary(COMPANY_ID, 2025, actual, ScenarioRecords())
        assert report.issues == []
        jan = report.months[0]
        assert jan.actual == calculate_dataset(pbr, dore, financial, opex_lines, capex_lines)
        assert jan.actual.cash_cost.has_data

    def test_returns_twelve_months_without_filter(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1, 2]), ScenarioRecords())
        assert [m.month for m in report.months] == [month_key(2025, m) for m in range(1, 13)]
        mar = report.months[2]
        assert mar.actual is None
        assert mar.ytd is None

    def test_filter_keeps_full_ytd(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1, 2, 3]), ScenarioRecords(), months={3})
        assert [m.month for m in report.months] == ["2025-03"]
        assert report.months[0].ytd.actual.processing.total_tonnes_processed == pytest.approx(3 * 35951)

    def test_budget_ytd_only_covers_actual_months(self):
        actual = _pbr_months([1, 2])
        budget = _pbr_months(range(1, 13), data_type="budget", total_tonnes_processed=30000.0)
        report = build_summary(COMPANY_ID, 2025, actual, budget)
        feb = report.months[1]
        assert feb.ytd.budget.processing.total_tonnes_processed == 60000
        assert feb.ytd.variance is not None
        tonnes = feb.ytd.variance.values[("processing", "total_tonnes_processed")]
        assert tonnes.variance == pytest.approx(2 * 35951 - 60000)
        dec = report.months[11]
        assert dec.actual is None
        assert dec.budget is not None
        assert dec.ytd is None

    def test_budget_ytd_absent_until_budget_month(self):
        actual = _pbr_months([1, 2, 3])
        budget = _pbr_months([2], data_type="budget")
        report = build_summary(COMPANY_ID, 2025, actual, budget)
        jan, feb = report.months[0], report.months[1]
        assert jan.ytd.budget is None
        assert jan.ytd.variance is None
        assert feb.ytd.budget.processing.total_tonnes_processed == pytest.approx(35951)
        assert feb.variance is not None

    def test_versions_selected(self):
        v2 = ScenarioRecords(pbr=[dataclasses.replace(make_pbr(date=d(1)), version=2, ore_mined_t=5.0)])
        report = build_summary(COMPANY_ID, 2025, v2, ScenarioRecords(), months={1}, actual_version=2)
        assert report.months[0].actual.mining.ore_mined_t == 5.0
        assert build_summary(COMPANY_ID, 2025, v2, ScenarioRecords(), months={1}).months[0].actual is None

    def test_cross_file_issues_are_advisory(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mine_platform.validation"):
            report = build_summary(COMPANY_ID, 2025, _pbr_months([1]), ScenarioRecords())
        assert {tuple(i.affected_files) for i in report.issues} == {
            ("Dore",), ("Financial",), ("OPEX",), ("CAPEX",)}
        assert report.months[0].actual is not None
        assert "OPEX is missing months [1]" in caplog.text

    def test_to_dict(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1]), ScenarioRecords(),
                               months={1}, company_name="Cerro Test")
        out = report.to_dict()
        assert out["company_name"] == "Cerro Test"
        assert out["coverage"]["actual_months"] == [1]
        month = out["months"][0]
        assert month["actual"]["mining"]["ore_mined_t"] == 24859
        assert month["ytd"]["budget"] is None


class TestCoverage:
    def test_partial_and_complete(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1, 2]),
                               _pbr_months(range(1, 13), data_type="budget"))
        cov = report.coverage
        assert cov.actual_months == [1, 2]
        assert cov.actual_last_month == 2
        assert cov.actual_is_partial
        assert not cov.has_complete_actual
        assert cov.has_complete_budget
        assert not cov.budget_is_partial
        assert cov.budget_last_month == 12

    def test_empty(self):
        cov = build_summary(COMPANY_ID, 2025, ScenarioRecords(), ScenarioRecords()).coverage
        assert not cov.has_any_actual
        assert not cov.actual_is_partial
        assert cov.actual_last_month == 0


class TestSummaryTable:
    def test_one_row_per_metric(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1]),
                               _pbr_months([1], data_type="budget", ore_mined_t=20000.0), months={1})
        df = summary_table(report.months[0])
        assert isinstance(df, pd.DataFrame)
        assert len(df) == len(MetricField)
        assert list(df.columns) == ["Group", "Metric", "Actual", "Budget", "Variance", "Variance %",
                                    "YTD Actual", "YTD Budget", "YTD Variance", "YTD Variance %"]
        assert df.attrs["month"] == "2025-01"
        ore = df[df["Metric"] == "Ore Mined (t)"].iloc[0]
        assert ore["Actual"] == 24859
        assert ore["Budget"] == 20000
        assert ore["Variance"] == 4859
        assert ore["YTD Variance %"] == pytest.approx(4859 / 20000 * 100)

    def test_missing_budget_left_blank(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1]), ScenarioRecords(), months={1})
        df = summary_table(report.months[0])
        assert df["Budget"].isna().all()
        assert df["Variance"].isna().all()

    def test_formatted_values(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1]),
                               _pbr_months([1], data_type="budget", ore_mined_t=20000.0), months={1})
        df = summary_table(report.months[0], formatted=True)
        assert df.attrs["label"] == "Jan 2025"
        rows = df.set_index("Metric")
        ore = rows.loc["Ore Mined (t)"]
        assert ore["Actual"] == "24,859 t"
        assert ore["Budget"] == "20,000 t"
        assert ore["Variance"] == "4,859 t"
        assert ore["Variance %"] == "+24.3%"
        assert rows.loc["Feed Grade Silver (g/t)", "Actual"] == "209.79"
        assert rows.loc["Recovery Rate Silver (%)", "Actual"] == "94.01%"
        assert rows.loc["Net Smelter Return", "Actual"] == "$ -"

    def test_formatted_missing_budget(self):
        report = build_summary(COMPANY_ID, 2025, _pbr_months([1]), ScenarioRecords(), months={1})
        df = summary_table(report.months[0], formatted=True)
        assert (df["Budget"] == "—").all()
        assert (df["YTD Variance %"] == "—").all()


class TestBreakdowns:
    def test_opex(self, opex_lines):
        out = opex_breakdown(opex_lines)
        assert out["by_cost_center"]["Processing"] == 3613678 + 1740162
        assert out["by_subcategory"]["Inventory Variation"] == 1740162
        assert out["by_expense_type"] == {"Other": pytest.approx(sum(r.amount for r in opex_lines))}
        assert out["total"] == pytest.approx(sum(r.amount for r in opex_lines))

    def test_capex_zero_fills_required_categories(self, capex_lines):
        out = capex_breakdown(capex_lines)
        cfg = MetricsConfig()
        assert set(cfg.required_capex_categories) <= set(out["by_category"])
        assert out["by_category"]["Mine Equipment"] == 2050000
        assert out["by_category"]["Plant Upgrades"] == 0.0
        assert out["by_type"] == {"sustaining": 1200000, "project": 800000, "leasing": 50000,
                                  "accretion": 15000}
        assert out["total"] == 2065000

    def test_capex_projects(self):
        lines = [make_capex("project", 100.0, car_number="CAR-1", project_name="Crusher"),
                 make_capex("project", 50.0, car_number="CAR-1", project_name="Crusher")]
        cfg = MetricsConfig(required_capex_projects=("CAR-9 - Tailings",))
        out = capex_breakdown(lines, cfg)
        assert out["by_project"] == {"CAR-9 - Tailings": 0.0, "CAR-1 - Crusher": 150.0}

    @pytest.mark.parametrize("car, name, expected", [
        ("CAR-1", "Crusher", "CAR-1 - Crusher"),
        ("CAR-1", "", "CAR-1"),
        ("CAR-1", "CAR-1", "CAR-1"),
        ("", "Crusher", ""),
    ])
    def test_project_key(self, car, name, expected):
        assert project_key(car, name) == expected


class TestProductionAndRevenueDetail:
    def test_production_by_mineral(self):
        pbr = make_pbr()
        lines = [make_production(3, 120.0), make_production(3, 30.0), make_production(99, 5.0)]
        out = production_breakdown(pbr, lines)
        silver, gold = production_ounces(pbr)
        assert out["by_mineral"] == {"AG": pytest.approx(silver), "AU": pytest.approx(gold), "CU": 150.0}
        assert out["total_production_silver_oz"] == pytest.approx(209.79 * 35951 * 0.9401 / 31.1035)
        assert out["has_data"]

    def test_production_without_pbr(self):
        out = production_breakdown(None, [make_production(4, 10.0)])
        assert out["by_mineral"] == {"ZN": 10.0}
        assert out["total_production_silver_oz"] == 0.0
        assert out["has_data"]
        assert not production_breakdown(None, [])["has_data"]

    def test_custom_mineral_codes(self):
        out = production_breakdown(None, [make_production(42, 1.5)], mineral_codes={"MO": 42})
        assert out["by_mineral"] == {"MO": 1.5}

    def test_revenue_by_mineral(self):
        lines = [make_revenue(2, 1000.0, 25.0), make_revenue(2, 500.0, 27.0),
                 make_revenue(1, 10.0, 2000.0), make_revenue(99, 1.0, 5.0)]
        out = revenue_breakdown(lines)
        silver = out["by_mineral"]["AG"]
        assert silver["revenue"] == pytest.approx(38500.0)
        assert silver["quantity_sold"] == 1500.0
        assert silver["unit_price"] == 25.0
        assert silver["currency"] == "USD"
        assert out["by_mineral"]["AU"]["revenue"] == pytest.approx(20000.0)
        assert out["by_mineral"]["UNKNOWN"]["revenue"] == pytest.approx(5.0)
        assert out["total_revenue"] == pytest.approx(58505.0)
        assert out["total_quantity_sold"] == pytest.approx(1511.0)
        assert out["average_unit_price"] == pytest.approx(58505.0 / 1511.0)

    def test_revenue_empty_month_is_none(self):
        assert revenue_breakdown([]) is None

    def _records(self):
        actual = ScenarioRecords(
            pbr=[make_pbr(date=d(1))],
            production=[make_production(3, 100.0, date=d(1))],
            revenue=[make_revenue(2, 1000.0, 25.0, date=d(1)), make_revenue(2, 1000.0, 25.0, date=d(2))],
        )
        budget = ScenarioRecords(revenue=[make_revenue(2, 1000.0, 20.0, date=d(1), data_type="budget")])
        return actual, budget

    def test_monthly_detail(self):
        actual, budget = self._records()
        detail = production_revenue_detail(COMPANY_ID, 2025, actual, budget, months={1, 2})
        jan, feb = detail["months"]
        assert jan["month"] == "2025-01"
        assert jan["production"]["actual"]["by_mineral"]["CU"] == 100.0
        assert not jan["production"]["budget"]["has_data"]
        assert jan["production"]["variance"] is None
        revenue_var = jan["revenue"]["variance"]["total_revenue"]
        assert revenue_var.variance == pytest.approx(5000.0)
        assert revenue_var.variance_pct == pytest.approx(25.0)
        assert feb["revenue"]["budget"] is None
        assert feb["revenue"]["variance"] is None
        silver = detail["revenue_by_mineral"]["AG"]
        assert silver["actual"] == pytest.approx(50000.0)
        assert silver["budget"] == pytest.approx(20000.0)
        assert silver["variance"].variance == pytest.approx(30000.0)

    def test_filter_limits_totals(self):
        actual, budget = self._records()
        detail = production_revenue_detail(COMPANY_ID, 2025, actual, budget, months={2})
        assert [m["month"] for m in detail["months"]] == ["2025-02"]
        silver = detail["revenue_by_mineral"]["AG"]
        assert silver["actual"] == pytest.approx(25000.0)
        assert silver["budget"] == 0.0

    def test_production_variance_when_both_sides_present(self):
        actual = ScenarioRecords(pbr=[make_pbr(date=d(1))])
        budget = ScenarioRecords(pbr=[make_pbr(date=d(1), data_type="budget", total_tonnes_processed=30000.0)])
        detail = production_revenue_detail(COMPANY_ID, 2025, actual, budget, months={1})
        var = detail["months"][0]["production"]["variance"]["total_production_silver_oz"]
        assert var.actual == pytest.approx(production_ounces(make_pbr())[0])
        assert var.variance > 0
