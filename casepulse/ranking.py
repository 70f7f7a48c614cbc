from collections.abc import Mapping, Sequence

from casepulse.schemas import CaseStatus, ClassifiedCase


RECENT_CASES_LIMIT = 10
TOP_VENDORS_LIMIT = 5


def recent_open_cases(cases: Sequence[ClassifiedCase], limit: int = RECENT_CASES_LIMIT) -> list[ClassifiedCase]:
    open_cases = [case for case in cases if case.status is CaseStatus.OPEN]
    # sorted() is stable, so equal dates keep input order.
    ranked = sorted(open_cases, key=lambda case: case.communication_date, reverse=True)
    return ranked[:limit]


def top_vendors(vendor_counts: Mapping[str, int], limit: int = TOP_VENDORS_LIMIT) -> list[tuple[str, int]]:
    ranked = sorted(vendor_counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]
