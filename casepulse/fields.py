from casepulse.schemas import DEFAULT_MAPPING, ExtractedFields, FieldMapping, RawRecord


def resolve_column(record: RawRecord, candidates: tuple[str, ...]) -> str | None:
    # Exact, case-sensitive header match; first non-blank candidate wins.
    for column in candidates:
        raw = record.get(column)
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            return value
    return None


def extract_fields(record: RawRecord, mapping: FieldMapping = DEFAULT_MAPPING) -> ExtractedFields:
    return ExtractedFields(
        case_id=resolve_column(record, mapping.case_id),
        communication_date=resolve_column(record, mapping.communication_date),
        state=resolve_column(record, mapping.state),
        ok_flag=resolve_column(record, mapping.ok_flag),
        vendor=resolve_column(record, mapping.vendor),
        reason=resolve_column(record, mapping.reason),
    )
