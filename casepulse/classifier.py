from dataclasses import dataclass

from casepulse.schemas import CaseStatus


OPEN_STATE = "aberto"
OK_FLAG = "ok"
NOT_OK_FLAG = "nok"

RULE_OPEN = "open"
RULE_OK = "ok"
RULE_NOT_OK = "nok"
RULE_FALLBACK = "fallback"


@dataclass(frozen=True)
class Resolution:
    status: CaseStatus
    rule: str

    @property
    def is_fallback(self) -> bool:
        return self.rule == RULE_FALLBACK


def resolve_case(state: str, ok_flag: str) -> Resolution:
    """Classify a case from its lower-cased, trimmed state and ok/nok flag.

    A case that is not open and carries no explicit ok/nok confirmation is
    presumed not ok; the ``fallback`` rule marks those so callers can report
    the missing flag separately from a real ``nok``.
    """
    if state == OPEN_STATE:
        return Resolution(CaseStatus.OPEN, RULE_OPEN)
    if ok_flag == OK_FLAG:
        return Resolution(CaseStatus.RESOLVED_OK, RULE_OK)
    if ok_flag == NOT_OK_FLAG:
        return Resolution(CaseStatus.RESOLVED_NOT_OK, RULE_NOT_OK)
    return Resolution(CaseStatus.RESOLVED_NOT_OK, RULE_FALLBACK)


def classify_case(state: str, ok_flag: str) -> CaseStatus:
    return resolve_case(state, ok_flag).status
