from collections.abc import Iterable
from dataclasses import dataclass, field

from casepulse.schemas import UNKNOWN_VENDOR, CaseStatus, ClassifiedCase


# Both placeholder spellings show up across sheet revisions.
VENDOR_SENTINELS = frozenset({UNKNOWN_VENDOR, "", "-"})


def is_countable_vendor(vendor: str | None) -> bool:
    return vendor is not None and vendor.strip() not in VENDOR_SENTINELS


@dataclass
class CaseTally:
    total_cases: int = 0
    open_cases: int = 0
    resolved_ok: int = 0
    resolved_not_ok: int = 0
    vendor_counts: dict[str, int] = field(default_factory=dict)

    def add(self, case: ClassifiedCase) -> None:
        if case.status is CaseStatus.OPEN:
            self.open_cases += 1
        elif case.status is CaseStatus.RESOLVED_OK:
            self.resolved_ok += 1
        elif case.status is CaseStatus.RESOLVED_NOT_OK:
            self.resolved_not_ok += 1
        else:
            raise ValueError(f"case {case.case_id} reached aggregation with status {case.status!r}")

        self.total_cases += 1
        if is_countable_vendor(case.vendor):
            self.vendor_counts[case.vendor] = self.vendor_counts.get(case.vendor, 0) + 1


def aggregate_cases(cases: Iterable[ClassifiedCase]) -> CaseTally:
    tally = CaseTally()
    for case in cases:
        tally.add(case)
    return tally
