"""
mine_platform/variance.py
=========================
Actual-vs-budget variance, field by field across every metric group.
"""
from __future__ import annotations
import math
from typing import Optional

from .metric_fields import MetricField, value_of
from .types import DataSet, VarianceData, VarianceMetric


def variance_pct(actual: float, budget: float) -> float:
    """(actual - budget) / budget × 100; 0 when budget is 0."""
    if budget == 0:
        return 0.0
    pct = (actual - budget) / budget * 100
    return pct if math.isfinite(pct) else 0.0


def diff(actual: float, budget: float) -> VarianceMetric:
    return VarianceMetric(
        actual=actual,
        budget=budget,
        variance=actual - budget,
        variance_pct=variance_pct(actual, budget),
    )


def compare_datasets(actual: Optional[DataSet], budget: Optional[DataSet]) -> Optional[VarianceData]:
    if actual is None or budget is None:
        return None
    out = VarianceData()
    for metric in MetricField:
        out.values[(metric.group, metric.attr)] = diff(value_of(actual, metric), value_of(budget, metric))
    return out
