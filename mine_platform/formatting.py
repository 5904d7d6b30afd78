"""
mine_platform/formatting.py
===========================
Display helpers for report values: accounting-style currency, ounces,
tonnes, percentages and month labels. ``format_metric`` picks the right one
from a metric's attribute name, which is how ``summary_table`` renders its
formatted view.
"""
from __future__ import annotations
import calendar
from typing import Optional

MISSING = "—"

_HEADCOUNT = ("full_time_employees", "contractors", "total_headcount")


def format_number(value: Optional[float], decimals: int = 2) -> str:
    return MISSING if value is None else f"{value:,.{decimals}f}"


def format_currency(value: Optional[float], decimals: int = 0) -> str:
    """
    Accounting style, negatives in parentheses.
    e.g. -8537997 → $ (8,537,997), 0 → $ -
    """
    if value is None:
        return MISSING
    if round(value, decimals) == 0:
        return "$ -"
    body = f"{abs(value):,.{decimals}f}"
    return f"$ ({body})" if value < 0 else f"$ {body}"


def format_ounces(value: Optional[float]) -> str:
    if value is None:
        return MISSING
    return f"{value:,.0f} oz"


def format_tonnes(value: Optional[float]) -> str:
    if value is None:
        return MISSING
    return f"{value:,.0f} t"


def format_percent(value: Optional[float], decimals: int = 1, signed: bool = True) -> str:
    """Variances carry an explicit sign; rates such as recovery do not."""
    if value is None:
        return MISSING
    spec = f"+,.{decimals}f" if signed else f",.{decimals}f"
    return f"{value:{spec}}%"


def format_metric(value: Optional[float], attr: str) -> str:
    """Render a metric value in the unit its attribute name carries."""
    if value is None:
        return MISSING
    if attr.endswith("_pct"):
        return format_percent(value, 2, signed=False)
    # $/oz and $/t to the cent
    if "per_oz" in attr or "per_tonne" in attr:
        return format_currency(value, 2)
    if attr.endswith("_oz"):
        return format_ounces(value)
    if attr.endswith("_t") or attr == "total_tonnes_processed":
        return format_tonnes(value)
    if attr.endswith("_m"):
        return f"{format_number(value, 0)} m"
    if attr.endswith("_gpt") or attr == "stripping_ratio":
        return format_number(value, 2)
    if attr in _HEADCOUNT:
        return format_number(value, 0)
    return format_currency(value)


def month_label(month_key: str) -> str:
    """
    "2025-01" → "Jan 2025". Anything else is returned unchanged.
    """
    parts = month_key.split("-")
    if len(parts) == 2 and all(p.isdigit() for p in parts):
        y, m = int(parts[0]), int(parts[1])
        if 1 <= m <= 12:
            return f"{calendar.month_abbr[m]} {y}"
    return month_key
