from collections.abc import Sequence
import logging
from types import MappingProxyType

from casepulse.aggregate import aggregate_cases
from casepulse.classifier import resolve_case
from casepulse.dates import date_sort_key, is_ambiguous
from casepulse.fields import extract_fields
from casepulse.ranking import RECENT_CASES_LIMIT, TOP_VENDORS_LIMIT, recent_open_cases, top_vendors
from casepulse.schemas import (
    DEFAULT_MAPPING,
    MISSING_REASON,
    UNKNOWN_VENDOR,
    ClassifiedCase,
    DashboardSnapshot,
    DataQuality,
    DroppedRecord,
    FieldMapping,
    ParseFailure,
    RawRecord,
)


logger = logging.getLogger(__name__)

EMPTY_INPUT = "empty_input"
STRUCTURAL_ERROR = "structural_error"


def classify_records(
    raw_records: Sequence[RawRecord],
    mapping: FieldMapping = DEFAULT_MAPPING,
) -> tuple[list[ClassifiedCase], list[DroppedRecord], DataQuality]:
    cases: list[ClassifiedCase] = []
    dropped: list[DroppedRecord] = []
    date_anomalies = 0
    ambiguous_dates = 0
    fallbacks = 0

    for index, record in enumerate(raw_records):
        fields = extract_fields(record, mapping)
        missing = fields.missing_required()
        if missing:
            drop = DroppedRecord(index, dict(record), tuple(missing), fields.case_id)
            logger.debug("record dropped", extra={"record_index": index, "reason": drop.reason})
            dropped.append(drop)
            continue

        resolution = resolve_case(fields.state.lower(), (fields.ok_flag or "").lower())
        if resolution.is_fallback:
            fallbacks += 1
            logger.warning(
                "case classified NOK without ok/nok confirmation",
                extra={"case_id": fields.case_id, "state": fields.state, "ok_flag": fields.ok_flag},
            )

        communication_date, date_parsed = date_sort_key(fields.communication_date)
        if not date_parsed:
            date_anomalies += 1
        elif is_ambiguous(fields.communication_date):
            ambiguous_dates += 1
            logger.debug(
                "ambiguous day/month order, assumed day first",
                extra={"case_id": fields.case_id, "raw_date": fields.communication_date},
            )

        cases.append(
            ClassifiedCase(
                case_id=fields.case_id,
                communication_date=communication_date,
                raw_date=fields.communication_date,
                status=resolution.status,
                vendor=fields.vendor or UNKNOWN_VENDOR,
                reason=fields.reason or MISSING_REASON,
                date_parsed=date_parsed,
            )
        )

    quality = DataQuality(
        raw_records=len(raw_records),
        dropped_records=len(dropped),
        date_anomalies=date_anomalies,
        ambiguous_dates=ambiguous_dates,
        fallback_classifications=fallbacks,
    )
    if dropped:
        logger.info("incomplete records dropped", extra={"dropped": len(dropped), "raw_records": len(raw_records)})
    return cases, dropped, quality


def transform_with_drops(
    raw_records: Sequence[RawRecord],
    *,
    mapping: FieldMapping = DEFAULT_MAPPING,
    structural_errors: Sequence[str] = (),
    recent_limit: int = RECENT_CASES_LIMIT,
    top_vendor_limit: int = TOP_VENDORS_LIMIT,
) -> tuple[DashboardSnapshot | ParseFailure, list[DroppedRecord]]:
    if structural_errors:
        return ParseFailure(STRUCTURAL_ERROR, tuple(structural_errors)), []
    if not raw_records:
        return ParseFailure(EMPTY_INPUT, ("source returned no rows",)), []

    cases, dropped, quality = classify_records(raw_records, mapping)
    tally = aggregate_cases(cases)

    snapshot = DashboardSnapshot(
        total_cases=tally.total_cases,
        open_cases=tally.open_cases,
        resolved_ok=tally.resolved_ok,
        resolved_not_ok=tally.resolved_not_ok,
        vendor_counts=MappingProxyType(dict(tally.vendor_counts)),
        recent_open_cases=tuple(recent_open_cases(cases, recent_limit)),
        top_vendors=tuple(top_vendors(tally.vendor_counts, top_vendor_limit)),
        quality=quality,
    )
    return snapshot, dropped


def transform(
    raw_records: Sequence[RawRecord],
    *,
    mapping: FieldMapping = DEFAULT_MAPPING,
    structural_errors: Sequence[str] = (),
    recent_limit: int = RECENT_CASES_LIMIT,
    top_vendor_limit: int = TOP_VENDORS_LIMIT,
) -> DashboardSnapshot | ParseFailure:
    """Turn one fetch of raw sheet rows into a dashboard snapshot.

    Returns a ``ParseFailure`` instead of a snapshot when the provider reported
    structural errors or there are no rows; callers keep showing their last
    snapshot in that case.
    """
    result, _ = transform_with_drops(
        raw_records,
        mapping=mapping,
        structural_errors=structural_errors,
        recent_limit=recent_limit,
        top_vendor_limit=top_vendor_limit,
    )
    return result
