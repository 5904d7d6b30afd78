"""
mine_platform/importer.py
=========================
All-or-nothing CSV import.

A file is parsed and validated in full; only a file with zero errors is handed
to the persistence sink, in a single call. The sink stands in for whatever
transactional bulk insert the caller owns.
"""
from __future__ import annotations
import logging
from typing import Callable, List, Optional, Sequence

from .parser import parse_rows
from .types import (
    DATA_CATEGORIES,
    DATA_TYPES,
    ImportLookups,
    ImportResult,
    InvalidDataTypeError,
    MetricsConfig,
    RecordBase,
)

logger = logging.getLogger(__name__)

RecordSink = Callable[[Sequence[RecordBase]], None]


def import_csv(
    category: str,
    content: bytes,
    company_id: int,
    user_id: int,
    data_type: str,
    version: Optional[int] = 1,
    description: str = "",
    lookups: Optional[ImportLookups] = None,
    sink: Optional[RecordSink] = None,
    config: Optional[MetricsConfig] = None,
) -> ImportResult:
    if category not in DATA_CATEGORIES:
        raise InvalidDataTypeError(f"unknown data category: {category}")
    if data_type not in DATA_TYPES:
        raise InvalidDataTypeError(f"invalid data type: {data_type}")
    version = version or 1

    records, errors = parse_rows(
        category, content, company_id, user_id, data_type,
        version=version, description=description, lookups=lookups, config=config,
    )

    if errors:
        # row 0 marks a structural error; no data row was read
        rows_failed = len({e.row for e in errors if e.row})
        logger.info("import rejected: category=%s company=%s %s v%s rows_failed=%d errors=%d",
                    category, company_id, data_type, version, rows_failed, len(errors))
        return ImportResult(
            success=False,
            type=category,
            rows_total=len(records) + rows_failed,
            rows_inserted=0,
            rows_failed=rows_failed,
            errors=errors,
        )

    if sink is not None:
        sink(records)
    logger.info("import accepted: category=%s company=%s %s v%s rows=%d",
                category, company_id, data_type, version, len(records))
    return ImportResult(
        success=True,
        type=category,
        rows_total=len(records),
        rows_inserted=len(records),
        rows_failed=0,
        records=list(records),
    )


def pbr_lookup(records: Sequence[RecordBase], data_type: str, version: int = 1) -> ImportLookups:
    """Lookups keyed by date from already-stored PBR records, for Dore import."""
    pbr_by_date = {
        r.date: r for r in records
        if r.data_type == data_type and r.version == version and not r.is_deleted
    }
    return ImportLookups(pbr_by_date=pbr_by_date)
