from dataclasses import dataclass
import os

from dotenv import load_dotenv

from casepulse.schemas import DEFAULT_MAPPING, FieldMapping


load_dotenv()


def _columns(env_name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(env_name)
    if not raw:
        return default
    return tuple(name.strip() for name in raw.split("|") if name.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    source_url: str
    source_path: str
    source_delimiter: str
    source_header_row: int
    source_timeout_seconds: float
    output_dir: str
    refresh_interval_seconds: int
    scheduler_max_instances: int
    recent_cases_limit: int
    top_vendors_limit: int
    # One day of five-minute refreshes.
    ledger_retention_runs: int = 288
    column_case_id: tuple[str, ...] = DEFAULT_MAPPING.case_id
    column_date: tuple[str, ...] = DEFAULT_MAPPING.communication_date
    column_state: tuple[str, ...] = DEFAULT_MAPPING.state
    column_ok_flag: tuple[str, ...] = DEFAULT_MAPPING.ok_flag
    column_vendor: tuple[str, ...] = DEFAULT_MAPPING.vendor
    column_reason: tuple[str, ...] = DEFAULT_MAPPING.reason

    def field_mapping(self) -> FieldMapping:
        return FieldMapping(
            case_id=self.column_case_id,
            communication_date=self.column_date,
            state=self.column_state,
            ok_flag=self.column_ok_flag,
            vendor=self.column_vendor,
            reason=self.column_reason,
        )


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "casepulse"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./casepulse.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        source_url=os.getenv("SOURCE_URL", ""),
        source_path=os.getenv("SOURCE_PATH", ""),
        source_delimiter=os.getenv("SOURCE_DELIMITER", ";"),
        source_header_row=int(os.getenv("SOURCE_HEADER_ROW", "0")),
        source_timeout_seconds=float(os.getenv("SOURCE_TIMEOUT_SECONDS", "30")),
        output_dir=os.getenv("OUTPUT_DIR", "./outputs"),
        refresh_interval_seconds=int(os.getenv("REFRESH_INTERVAL_SECONDS", "300")),
        scheduler_max_instances=int(os.getenv("SCHEDULER_MAX_INSTANCES", "3")),
        recent_cases_limit=int(os.getenv("RECENT_CASES_LIMIT", "10")),
        top_vendors_limit=int(os.getenv("TOP_VENDORS_LIMIT", "5")),
        ledger_retention_runs=int(os.getenv("LEDGER_RETENTION_RUNS", "288")),
        column_case_id=_columns("COLUMN_CASE_ID", DEFAULT_MAPPING.case_id),
        column_date=_columns("COLUMN_DATE", DEFAULT_MAPPING.communication_date),
        column_state=_columns("COLUMN_STATE", DEFAULT_MAPPING.state),
        column_ok_flag=_columns("COLUMN_OK_FLAG", DEFAULT_MAPPING.ok_flag),
        column_vendor=_columns("COLUMN_VENDOR", DEFAULT_MAPPING.vendor),
        column_reason=_columns("COLUMN_REASON", DEFAULT_MAPPING.reason),
    )
