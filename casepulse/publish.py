from datetime import UTC, datetime
import json
import logging
import os
from pathlib import Path
import tempfile
import threading
from typing import Protocol

from casepulse.schemas import CaseStatus, ClassifiedCase, DashboardSnapshot


logger = logging.getLogger(__name__)

REASON_DISPLAY_LIMIT = 50


class SnapshotPresenter(Protocol):
    def apply_snapshot(self, snapshot: DashboardSnapshot, previous: DashboardSnapshot | None) -> None: ...


def _display_reason(reason: str) -> str:
    if len(reason) > REASON_DISPLAY_LIMIT:
        return reason[:REASON_DISPLAY_LIMIT] + "..."
    return reason


def _case_row(case: ClassifiedCase) -> dict[str, object]:
    return {
        "case_id": case.case_id,
        "communication_date": case.raw_date,
        "vendor": case.vendor,
        "reason": _display_reason(case.reason),
        "status": case.status.value,
    }


def snapshot_to_payload(snapshot: DashboardSnapshot) -> dict[str, object]:
    statuses = (CaseStatus.OPEN, CaseStatus.RESOLVED_OK, CaseStatus.RESOLVED_NOT_OK)
    return {
        "kpis": {
            "total_cases": snapshot.total_cases,
            "open_cases": snapshot.open_cases,
            "resolved_ok": snapshot.resolved_ok,
            "resolved_not_ok": snapshot.resolved_not_ok,
        },
        "status_breakdown": [
            {"status": status.value, "count": snapshot.count_for(status)} for status in statuses
        ],
        "top_vendors": [{"vendor": vendor, "count": count} for vendor, count in snapshot.top_vendors],
        "recent_open_cases": [_case_row(case) for case in snapshot.recent_open_cases],
        "data_quality": {
            "raw_records": snapshot.quality.raw_records,
            "dropped_records": snapshot.quality.dropped_records,
            "date_anomalies": snapshot.quality.date_anomalies,
            "ambiguous_dates": snapshot.quality.ambiguous_dates,
            "fallback_classifications": snapshot.quality.fallback_classifications,
        },
    }


def write_json_atomic(path: Path, payload: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as outfile:
            json.dump(payload, outfile, indent=2, sort_keys=True, ensure_ascii=False)
            outfile.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonDashboardWriter:
    """Writes the latest snapshot where the dashboard page polls for it."""

    def __init__(self, output_path: Path) -> None:
        self.output_path = output_path

    def apply_snapshot(self, snapshot: DashboardSnapshot, previous: DashboardSnapshot | None) -> None:
        payload = snapshot_to_payload(snapshot)
        payload["last_updated"] = datetime.now(UTC).isoformat()
        write_json_atomic(self.output_path, payload)


class SnapshotPublisher:
    def __init__(self, presenters: list[SnapshotPresenter] | None = None) -> None:
        self._lock = threading.Lock()
        self._presenters: list[SnapshotPresenter] = list(presenters or [])
        self.current: DashboardSnapshot | None = None
        self.previous: DashboardSnapshot | None = None

    def subscribe(self, presenter: SnapshotPresenter) -> None:
        with self._lock:
            self._presenters.append(presenter)

    def publish(self, snapshot: DashboardSnapshot) -> None:
        # Last completed run wins; presenters see whole snapshots one at a time.
        with self._lock:
            # A presenter failure leaves current/previous untouched.
            for presenter in self._presenters:
                presenter.apply_snapshot(snapshot, self.current)
            self.previous = self.current
            self.current = snapshot
        logger.info(
            "snapshot published",
            extra={"total_cases": snapshot.total_cases, "open_cases": snapshot.open_cases},
        )


def build_publisher(output_dir: str) -> SnapshotPublisher:
    return SnapshotPublisher([JsonDashboardWriter(Path(output_dir) / "dashboard.json")])
