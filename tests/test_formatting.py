"""
tests/test_formatting.py
========================
"""
import pytest

from mine_platform.formatting import (
    format_currency,
    format_metric,
    format_number,
    format_ounces,
    format_percent,
    format_tonnes,
    month_label,
)


class TestFormatCurrency:
    @pytest.mark.parametrize("value, expected", [
        (-8537997, "$ (8,537,997)"),
        (8537997, "$ 8,537,997"),
        (0, "$ -"),
        (0.4, "$ -"),
        (None, "—"),
    ])
    def test_accounting_style(self, value, expected):
        assert format_currency(value) == expected

    def test_decimals(self):
        assert format_currency(-1234.5, decimals=2) == "$ (1,234.50)"


class TestOtherFormats:
    def test_number(self):
        assert format_number(1234.5) == "1,234.50"
        assert format_number(None) == "—"

    def test_units(self):
        assert format_ounces(227957.4) == "227,957 oz"
        assert format_tonnes(35951) == "35,951 t"

    def test_percent(self):
        assert format_percent(12.34) == "+12.3%"
        assert format_percent(-5.0) == "-5.0%"
        assert format_percent(None) == "—"
        assert format_percent(1234.5) == "+1,234.5%"
        assert format_percent(94.01, 2, signed=False) == "94.01%"

    @pytest.mark.parametrize("key, expected", [
        ("2025-01", "Jan 2025"),
        ("2025-12", "Dec 2025"),
        ("2025-13", "2025-13"),
        ("YTD", "YTD"),
    ])
    def test_month_label(self, key, expected):
        assert month_label(key) == expected


class TestFormatMetric:
    @pytest.mark.parametrize("value, attr, expected", [
        (8537997.0, "net_smelter_return", "$ 8,537,997"),
        (-30989.0, "mine", "$ (30,989)"),
        (24.5, "silver_price_per_oz", "$ 24.50"),
        (-1500.0, "nsr_per_tonne", "$ (1,500.00)"),
        (227957.4, "payable_silver_oz", "227,957 oz"),
        (35951.0, "total_tonnes_processed", "35,951 t"),
        (24859.0, "ore_mined_t", "24,859 t"),
        (598.0, "developments_m", "598 m"),
        (209.79, "feed_grade_silver_gpt", "209.79"),
        (10.5632, "stripping_ratio", "10.56"),
        (94.01, "recovery_rate_silver_pct", "94.01%"),
        (120.0, "total_headcount", "120"),
        (None, "mine", "—"),
    ])
    def test_unit_from_attribute(self, value, attr, expected):
        assert format_metric(value, attr) == expected
