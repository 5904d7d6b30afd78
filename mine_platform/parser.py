"""
mine_platform/parser.py
=======================
CSV ingestion for monthly mining submissions. Handles:
  - Free-form numeric tokens ("$ (8,537,997)", "94.01%", "24,859", "$ -")
  - Strict ISO dates (YYYY-MM-DD)
  - Per-category header checks and row → record mapping for
    Production, PBR, Dore, OPEX, CAPEX, Revenue and Financial files

Validation never stops at the first problem: every bad cell in every row is
reported with its CSV line number (the header is line 1) and column name.
"""
from __future__ import annotations
import re
import io
import csv
import datetime as dt
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Any, Union

import pandas as pd

from .types import (
    CAPEX_TYPES,
    COST_CENTERS,
    CURRENCIES,
    DATA_CATEGORIES,
    EXPENSE_TYPES,
    UNITS,
    CAPEXRecord,
    DoreRecord,
    FinancialRecord,
    ImportLookups,
    InvalidDataTypeError,
    MetricsConfig,
    OPEXRecord,
    ParseError,
    PBRRecord,
    ProductionRecord,
    RecordBase,
    RevenueRecord,
    ValidationError,
)
from .calculator import production_ounces


# ─── Headers ──────────────────────────────────────────────────────────────────

PRODUCTION_HEADERS = ["date", "mineral_code", "quantity", "unit"]

PBR_HEADERS = [
    "date", "ore_mined_t", "waste_mined_t", "developments_m",
    "total_tonnes_processed", "feed_grade_silver_gpt", "feed_grade_gold_gpt",
    "recovery_rate_silver_pct", "recovery_rate_gold_pct",
]

PBR_EXTENDED_HEADERS = [
    "date", "open_pit_ore_t", "underground_ore_t", "waste_mined_t",
    "mining_grade_silver_gpt", "mining_grade_gold_gpt",
    "open_pit_grade_silver_gpt", "underground_grade_silver_gpt",
    "open_pit_grade_gold_gpt", "underground_grade_gold_gpt",
    "primary_development_m", "secondary_development_opex_m", "expansionary_development_m",
    "total_tonnes_processed", "feed_grade_silver_gpt", "feed_grade_gold_gpt",
    "recovery_rate_silver_pct", "recovery_rate_gold_pct",
    "full_time_employees", "contractors",
]

DORE_HEADERS = [
    "date", "pbr_price_silver", "pbr_price_gold", "realized_price_silver",
    "realized_price_gold", "silver_adjustment_oz", "gold_adjustment_oz",
    "ag_deductions_pct", "au_deductions_pct", "treatment_charge",
    "refining_deductions_au", "streaming",
]

OPEX_HEADERS = ["date", "cost_center", "subcategory", "expense_type", "amount", "currency"]

CAPEX_HEADERS = [
    "date", "category", "car_number", "project_name", "type", "amount",
    "accretion_of_mine_closure_liability", "currency",
]

REVENUE_HEADERS = ["date", "mineral_code", "quantity_sold", "unit_price", "currency"]

FINANCIAL_HEADERS = [
    "date", "shipping_selling", "sales_taxes", "royalties",
    "other_sales_deductions", "other_adjustments",
]

# Combined sales_taxes_royalties column from older templates
FINANCIAL_HEADERS_LEGACY = ["date", "shipping_selling", "sales_taxes_royalties", "other_adjustments"]


# ─── Numeric Normalizer ───────────────────────────────────────────────────────

_DECIMAL_RE = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')


def _strip_currency(s: str) -> str:
    s = s.strip()
    if s.startswith("$"):
        s = s[1:].strip()
    if s.upper().startswith("USD"):
        s = s[3:].strip()
    return s


def parse_number(token: Any, required: bool = True) -> Union[float, ParseError]:
    """
    Parse a spreadsheet-style numeric cell.

    "24,859" → 24859, "(30,989)" → -30989, "94.01%" → 94.01,
    "$ (8,537,997)" → -8537997. Empty cells and a lone "-" mean zero for
    optional columns and are an error for required ones.
    """
    raw = "" if token is None else str(token)
    s = _strip_currency(raw)
    if s.endswith("%"):
        s = s[:-1].strip()

    negative = False
    if s.startswith("(") and s.endswith(")"):
        inner = s[1:-1].strip()
        if inner:
            negative = True
            s = _strip_currency(inner)
            if s.endswith("%"):
                s = s[:-1].strip()
            # parentheses already carry the sign
            if len(s) > 1 and s[0] in "+-":
                return ParseError(f"invalid number: {raw.strip()}")

    s = s.replace(",", "")

    if s in ("", "-"):
        if required:
            return ParseError("required field cannot be empty or dash")
        return 0.0

    if not _DECIMAL_RE.match(s):
        return ParseError(f"invalid number: {raw.strip()}")

    value = float(s)
    return -value if negative else value


def parse_date(value: Any) -> Union[dt.date, ParseError]:
    s = "" if value is None else str(value).strip()
    if re.match(r'^\d{4}-\d{2}-\d{2}$', s):
        try:
            return dt.datetime.strptime(s, "%Y-%m-%d").date()
        except ValueError:
            pass
    return ParseError(f"invalid date format, expected YYYY-MM-DD: {s}")


# ─── CSV Reading ──────────────────────────────────────────────────────────────

class CSVFormatError(ValueError):
    """Structural problem that rejects the whole file."""


def _field_counts(text: str) -> List[int]:
    """Fields per record as written; pandas pads short rows to the widest one."""
    return [len(record) for record in csv.reader(io.StringIO(text))]


def read_csv_rows(content: bytes) -> Tuple[List[str], List[Tuple[int, List[str]]]]:
    """
    Read raw CSV bytes → (header, [(line_number, cells), ...]).

    Blank lines are dropped but still counted, so line numbers match what a
    user sees in a spreadsheet. Each row keeps only the cells actually present
    on its line, so a short row comes back short.
    """
    if not content or not content.strip():
        raise CSVFormatError("invalid CSV format")
    try:
        text = content.decode("utf-8-sig")
        widths = _field_counts(text)
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except pd.errors.EmptyDataError:
        raise CSVFormatError("invalid CSV format")
    except (pd.errors.ParserError, csv.Error, UnicodeDecodeError) as e:
        raise CSVFormatError(f"error reading CSV: {e}")

    lines: List[Tuple[int, List[str]]] = []
    for idx, (values, width) in enumerate(zip(df.itertuples(index=False, name=None), widths)):
        cells = ["" if pd.isna(v) else str(v) for v in values][:width]
        if all(c.strip() == "" for c in cells):
            continue
        lines.append((idx + 1, cells))

    if len(lines) < 2:
        raise CSVFormatError("invalid CSV format")

    _, header = lines[0]
    return header, lines[1:]


def check_header(header: Sequence[str], expected: Sequence[str]) -> Optional[str]:
    if len(header) != len(expected):
        return f"expected {len(expected)} columns, got {len(header)}"
    for i, name in enumerate(expected):
        if header[i].strip() != name:
            return f"header mismatch at column {i + 1}: expected '{name}', got '{header[i]}'"
    return None


# ─── Row Context ──────────────────────────────────────────────────────────────

class _Row:
    """One data line being mapped; accumulates a ValidationError per bad cell."""

    def __init__(self, line: int, headers: Sequence[str], cells: Sequence[str]):
        self.line = line
        self.errors: List[ValidationError] = []
        self._cells: Dict[str, str] = {}
        if len(cells) != len(headers):
            self.errors.append(ValidationError(
                row=line, error=f"expected {len(headers)} columns, got {len(cells)}"))
        else:
            self._cells = dict(zip(headers, cells))

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def shape_ok(self) -> bool:
        return bool(self._cells)

    def fail(self, column: str, message: str) -> None:
        self.errors.append(ValidationError(row=self.line, column=column, error=message))

    def text(self, column: str) -> str:
        return self._cells.get(column, "").strip()

    def date(self, column: str = "date") -> Optional[dt.date]:
        parsed = parse_date(self.text(column))
        if isinstance(parsed, ParseError):
            self.fail(column, parsed.message)
            return None
        return parsed

    def number(self, column: str, required: bool = True, minimum: Optional[str] = None) -> float:
        """minimum: None, "positive" (> 0) or "non_negative" (>= 0)."""
        parsed = parse_number(self._cells.get(column, ""), required=required)
        if isinstance(parsed, ParseError):
            self.fail(column, parsed.message)
            return 0.0
        if minimum == "positive" and parsed <= 0:
            self.fail(column, "must be greater than 0")
        elif minimum == "non_negative" and parsed < 0:
            self.fail(column, f"{column.split('_')[0]} cannot be negative")
        return parsed

    def whole(self, column: str, required: bool = False) -> int:
        value = self.number(column, required=required)
        if not float(value).is_integer():
            self.fail(column, "must be a whole number")
            return 0
        return int(value)

    def choice(self, column: str, allowed: Sequence[str], label: str) -> str:
        raw = self._cells.get(column, "")
        value = raw.strip()
        if value not in allowed:
            self.fail(column, f"invalid {label}: {raw}")
        return value


# ─── Category Mappers ─────────────────────────────────────────────────────────

RowMapper = Callable[[_Row], Dict[str, Any]]


def _map_rows(
    content: bytes,
    header_options: Sequence[Tuple[Sequence[str], RowMapper]],
    record_cls: type,
    meta: Dict[str, Any],
) -> Tuple[List[RecordBase], List[ValidationError]]:
    try:
        header, lines = read_csv_rows(content)
    except CSVFormatError as e:
        return [], [ValidationError(row=0, error=str(e))]

    chosen: Optional[Tuple[Sequence[str], RowMapper]] = None
    first_problem: Optional[str] = None
    for expected, mapper in header_options:
        problem = check_header(header, expected)
        if problem is None:
            chosen = (expected, mapper)
            break
        if first_problem is None:
            first_problem = problem
    if chosen is None:
        return [], [ValidationError(row=0, error=first_problem or "invalid CSV format")]

    expected, mapper = chosen
    records: List[RecordBase] = []
    errors: List[ValidationError] = []
    for line, cells in lines:
        row = _Row(line, expected, cells)
        fields: Dict[str, Any] = {}
        if row.shape_ok:
            fields = mapper(row)
        if row.ok:
            records.append(record_cls(**meta, **fields))
        else:
            errors.extend(row.errors)
    return records, errors


def _production_mapper(lookups: ImportLookups) -> RowMapper:
    def _map(row: _Row) -> Dict[str, Any]:
        date = row.date()
        code = row.text("mineral_code")
        mineral_id = lookups.mineral_codes.get(code)
        if mineral_id is None:
            row.fail("mineral_code", f"mineral not found: {code}")
        quantity = row.number("quantity", minimum="positive")
        unit = row.choice("unit", UNITS, "unit")
        return {"date": date, "mineral_id": mineral_id or 0, "quantity": quantity, "unit": unit}
    return _map


def _pbr_basic(row: _Row) -> Dict[str, Any]:
    return {
        "date": row.date(),
        "ore_mined_t": row.number("ore_mined_t"),
        "waste_mined_t": row.number("waste_mined_t"),
        "developments_m": row.number("developments_m"),
        "total_tonnes_processed": row.number("total_tonnes_processed"),
        "feed_grade_silver_gpt": row.number("feed_grade_silver_gpt"),
        "feed_grade_gold_gpt": row.number("feed_grade_gold_gpt"),
        "recovery_rate_silver_pct": row.number("recovery_rate_silver_pct"),
        "recovery_rate_gold_pct": row.number("recovery_rate_gold_pct"),
    }


def _pbr_extended(row: _Row) -> Dict[str, Any]:
    out: Dict[str, Any] = {"date": row.date()}
    for col in ("open_pit_ore_t", "underground_ore_t", "waste_mined_t",
                "total_tonnes_processed", "feed_grade_silver_gpt", "feed_grade_gold_gpt",
                "recovery_rate_silver_pct", "recovery_rate_gold_pct"):
        out[col] = row.number(col)
    for col in ("mining_grade_silver_gpt", "mining_grade_gold_gpt",
                "open_pit_grade_silver_gpt", "underground_grade_silver_gpt",
                "open_pit_grade_gold_gpt", "underground_grade_gold_gpt",
                "primary_development_m", "secondary_development_opex_m",
                "expansionary_development_m"):
        out[col] = row.number(col, required=False)
    out["full_time_employees"] = row.whole("full_time_employees")
    out["contractors"] = row.whole("contractors")

    out["ore_mined_t"] = out["open_pit_ore_t"] + out["underground_ore_t"]
    out["developments_m"] = (out["primary_development_m"]
                             + out["secondary_development_opex_m"]
                             + out["expansionary_development_m"])
    out["stripping_ratio"] = (out["waste_mined_t"] / out["open_pit_ore_t"]
                              if out["open_pit_ore_t"] > 0 else 0.0)
    out["total_headcount"] = out["full_time_employees"] + out["contractors"]
    return out


def _dore_mapper(lookups: ImportLookups, config: MetricsConfig) -> RowMapper:
    def _map(row: _Row) -> Dict[str, Any]:
        date = row.date()
        out: Dict[str, Any] = {"date": date}
        for col in DORE_HEADERS[1:]:
            out[col] = row.number(col, required=(col != "streaming"))

        if date is None:
            return out
        pbr = lookups.pbr_by_date.get(date)
        if pbr is None:
            row.fail("date", f"PBR data not found for date {date.isoformat()}. "
                             "Please import PBR data first.")
            return out

        silver_oz, gold_oz = production_ounces(pbr, config)
        dore_oz = silver_oz + gold_oz
        out["dore_produced_oz"] = dore_oz
        out["silver_grade_pct"] = silver_oz / dore_oz * 100 if dore_oz > 0 else 0.0
        out["gold_grade_pct"] = gold_oz / dore_oz * 100 if dore_oz > 0 else 0.0
        return out
    return _map


def _opex_row(row: _Row) -> Dict[str, Any]:
    date = row.date()
    cost_center = row.choice("cost_center", COST_CENTERS, "cost center")
    subcategory = row.text("subcategory")
    if not subcategory:
        row.fail("subcategory", "subcategory is required")
    expense_type = row.choice("expense_type", EXPENSE_TYPES, "expense type")
    amount = row.number("amount", minimum="non_negative")
    currency = row.choice("currency", CURRENCIES, "currency")
    return {
        "date": date, "cost_center": cost_center, "subcategory": subcategory,
        "expense_type": expense_type, "amount": amount, "currency": currency,
    }


def _capex_row(row: _Row) -> Dict[str, Any]:
    date = row.date()
    category = row.text("category")
    if not category:
        row.fail("category", "category is required")
    # Summary rows carry no project name; they roll up under their category
    project_name = row.text("project_name") or category
    capex_type = row.choice("type", CAPEX_TYPES, "type")
    amount = row.number("amount")
    accretion = row.number("accretion_of_mine_closure_liability", required=False,
                           minimum="non_negative")
    currency = row.choice("currency", CURRENCIES, "currency")
    return {
        "date": date, "category": category, "car_number": row.text("car_number"),
        "project_name": project_name, "type": capex_type, "amount": amount,
        "accretion_of_mine_closure_liability": accretion, "currency": currency,
    }


def _revenue_mapper(lookups: ImportLookups) -> RowMapper:
    def _map(row: _Row) -> Dict[str, Any]:
        date = row.date()
        code = row.text("mineral_code")
        mineral_id = lookups.mineral_codes.get(code)
        if mineral_id is None:
            row.fail("mineral_code", f"mineral not found: {code}")
        return {
            "date": date,
            "mineral_id": mineral_id or 0,
            "quantity_sold": row.number("quantity_sold", minimum="positive"),
            "unit_price": row.number("unit_price", minimum="positive"),
            "currency": row.choice("currency", CURRENCIES, "currency"),
        }
    return _map


def _financial_row(row: _Row) -> Dict[str, Any]:
    return {
        "date": row.date(),
        "shipping_selling": row.number("shipping_selling"),
        "sales_taxes": row.number("sales_taxes"),
        "royalties": row.number("royalties"),
        "other_sales_deductions": row.number("other_sales_deductions", required=False),
        "other_adjustments": row.number("other_adjustments", required=False),
    }


def _financial_legacy_row(row: _Row) -> Dict[str, Any]:
    return {
        "date": row.date(),
        "shipping_selling": row.number("shipping_selling"),
        "sales_taxes": row.number("sales_taxes_royalties"),
        "royalties": 0.0,
        "other_adjustments": row.number("other_adjustments", required=False),
    }


# ─── Public Entry Points ──────────────────────────────────────────────────────

def _meta(company_id: int, user_id: int, data_type: str, version: int, description: str) -> Dict[str, Any]:
    return {
        "company_id": company_id,
        "data_type": data_type,
        "version": version,
        "description": description,
        "created_by": user_id,
    }


def parse_production_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                         version: int = 1, description: str = "",
                         lookups: Optional[ImportLookups] = None):
    lk = lookups or ImportLookups()
    return _map_rows(content, [(PRODUCTION_HEADERS, _production_mapper(lk))], ProductionRecord,
                     _meta(company_id, user_id, data_type, version, description))


def parse_pbr_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                  version: int = 1, description: str = ""):
    return _map_rows(content, [(PBR_HEADERS, _pbr_basic), (PBR_EXTENDED_HEADERS, _pbr_extended)],
                     PBRRecord, _meta(company_id, user_id, data_type, version, description))


def parse_dore_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                   version: int = 1, description: str = "",
                   lookups: Optional[ImportLookups] = None,
                   config: Optional[MetricsConfig] = None):
    lk = lookups or ImportLookups()
    cfg = config or MetricsConfig()
    return _map_rows(content, [(DORE_HEADERS, _dore_mapper(lk, cfg))], DoreRecord,
                     _meta(company_id, user_id, data_type, version, description))


def parse_opex_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                   version: int = 1, description: str = ""):
    return _map_rows(content, [(OPEX_HEADERS, _opex_row)], OPEXRecord,
                     _meta(company_id, user_id, data_type, version, description))


def parse_capex_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                    version: int = 1, description: str = ""):
    return _map_rows(content, [(CAPEX_HEADERS, _capex_row)], CAPEXRecord,
                     _meta(company_id, user_id, data_type, version, description))


def parse_revenue_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                      version: int = 1, description: str = "",
                      lookups: Optional[ImportLookups] = None):
    lk = lookups or ImportLookups()
    return _map_rows(content, [(REVENUE_HEADERS, _revenue_mapper(lk))], RevenueRecord,
                     _meta(company_id, user_id, data_type, version, description))


def parse_financial_csv(content: bytes, company_id: int, user_id: int, data_type: str,
                        version: int = 1, description: str = ""):
    return _map_rows(content,
                     [(FINANCIAL_HEADERS, _financial_row),
                      (FINANCIAL_HEADERS_LEGACY, _financial_legacy_row)],
                     FinancialRecord, _meta(company_id, user_id, data_type, version, description))


def parse_rows(
    category: str,
    content: bytes,
    company_id: int,
    user_id: int,
    data_type: str,
    version: int = 1,
    description: str = "",
    lookups: Optional[ImportLookups] = None,
    config: Optional[MetricsConfig] = None,
) -> Tuple[List[RecordBase], List[ValidationError]]:
    """Dispatch to the category's mapper → (records, errors)."""
    if category not in DATA_CATEGORIES:
        raise InvalidDataTypeError(f"unknown data category: {category}")
    if category == "production":
        return parse_production_csv(content, company_id, user_id, data_type, version, description, lookups)
    if category == "pbr":
        return parse_pbr_csv(content, company_id, user_id, data_type, version, description)
    if category == "dore":
        return parse_dore_csv(content, company_id, user_id, data_type, version, description, lookups, config)
    if category == "opex":
        return parse_opex_csv(content, company_id, user_id, data_type, version, description)
    if category == "capex":
        return parse_capex_csv(content, company_id, user_id, data_type, version, description)
    if category == "revenue":
        return parse_revenue_csv(content, company_id, user_id, data_type, version, description, lookups)
    return parse_financial_csv(content, company_id, user_id, data_type, version, description)
