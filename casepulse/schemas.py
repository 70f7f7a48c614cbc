from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType


RawRecord = Mapping[str, str | None]

UNKNOWN_VENDOR = "Unknown"
MISSING_REASON = "N/A"


class CaseStatus(str, Enum):
    OPEN = "Aberto"
    RESOLVED_OK = "OK"
    RESOLVED_NOT_OK = "NOK"
    # Never produced by the classifier.
    UNKNOWN = "Desconhecido"


@dataclass(frozen=True)
class FieldMapping:
    """Column names to try, in order, for each logical field."""

    case_id: tuple[str, ...] = ("Nº",)
    communication_date: tuple[str, ...] = ("Data comunicação",)
    state: tuple[str, ...] = ("Estado",)
    ok_flag: tuple[str, ...] = ("Ok/NO", "OK/NOK")
    vendor: tuple[str, ...] = ("Fornecedor",)
    reason: tuple[str, ...] = ("Motivo",)


DEFAULT_MAPPING = FieldMapping()


@dataclass(frozen=True)
class ExtractedFields:
    case_id: str | None
    communication_date: str | None
    state: str | None
    ok_flag: str | None
    vendor: str | None
    reason: str | None

    def missing_required(self) -> list[str]:
        return [name for name in ("case_id", "communication_date", "state") if getattr(self, name) is None]


@dataclass(frozen=True)
class ClassifiedCase:
    case_id: str
    communication_date: date
    raw_date: str
    status: CaseStatus
    vendor: str = UNKNOWN_VENDOR
    reason: str = MISSING_REASON
    date_parsed: bool = True


@dataclass(frozen=True)
class DataQuality:
    raw_records: int = 0
    dropped_records: int = 0
    date_anomalies: int = 0
    ambiguous_dates: int = 0
    fallback_classifications: int = 0


@dataclass(frozen=True)
class DashboardSnapshot:
    total_cases: int
    open_cases: int
    resolved_ok: int
    resolved_not_ok: int
    vendor_counts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    recent_open_cases: tuple[ClassifiedCase, ...] = ()
    top_vendors: tuple[tuple[str, int], ...] = ()
    quality: DataQuality = DataQuality()

    def count_for(self, status: CaseStatus) -> int:
        if status is CaseStatus.OPEN:
            return self.open_cases
        if status is CaseStatus.RESOLVED_OK:
            return self.resolved_ok
        if status is CaseStatus.RESOLVED_NOT_OK:
            return self.resolved_not_ok
        return 0


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    details: tuple[str, ...] = ()


@dataclass(frozen=True)
class DroppedRecord:
    record_index: int
    record: dict[str, str | None]
    missing_fields: tuple[str, ...]
    case_id: str | None = None

    @property
    def reason(self) -> str:
        return f"missing required field(s): {', '.join(self.missing_fields)}"


@dataclass(frozen=True)
class SourceTable:
    records: list[dict[str, str | None]]
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class PipelineResult:
    run_id: int
    run_key: str
    trigger_source: str
    status: str
    raw_records: int
    classified_cases: int
    dropped_records: int
    error: str | None
    reused_existing_run: bool
