"""Mine Platform: monthly mining data ingestion and PBR metrics engine."""
from .types import *
from .formatting import *
from .parser import parse_number, parse_date, parse_rows
from .importer import import_csv, pbr_lookup
from .calculator import calculate_dataset
from .accumulator import accumulate, fold_ytd, ytd_total, identity
from .variance import diff, compare_datasets
from .metric_fields import MetricField, field_by_label, field_by_key, value_of, variance_of
from .validation import (
    validate_month_alignment,
    validate_dore_dependency,
    validate_year_consistency,
    validate_cross_file,
)
from .report import (
    build_summary,
    parse_months_filter,
    group_by_month,
    summary_table,
    opex_breakdown,
    capex_breakdown,
    production_breakdown,
    revenue_breakdown,
    production_revenue_detail,
)
