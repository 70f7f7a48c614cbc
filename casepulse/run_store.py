import json

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from casepulse.db_models import DroppedRow, RefreshRun, RunStep, utc_now
from casepulse.schemas import DataQuality, DroppedRecord


FINISHED_STATUSES = ("succeeded", "no_update", "failed")


def open_run(db: Session, *, run_key: str, trigger_source: str, source: str) -> tuple[RefreshRun, bool]:
    """Insert a run for ``run_key``; an existing key returns its run instead."""
    run = RefreshRun(run_key=run_key, trigger_source=trigger_source, source=source, status="queued")
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = db.execute(select(RefreshRun).where(RefreshRun.run_key == run_key)).scalar_one_or_none()
        if existing is None:
            raise
        return existing, False

    db.refresh(run)
    return run, True


def restart_run(db: Session, run: RefreshRun) -> None:
    db.execute(delete(RunStep).where(RunStep.run_id == run.id))
    db.execute(delete(DroppedRow).where(DroppedRow.run_id == run.id))
    run.status = "running"
    run.started_at = utc_now()
    run.completed_at = None
    run.error = None
    db.commit()


def close_run(
    db: Session,
    run: RefreshRun,
    status: str,
    *,
    raw_records: int = 0,
    quality: DataQuality | None = None,
    classified_cases: int = 0,
    error: str | None = None,
) -> None:
    quality = quality or DataQuality()
    run.status = status
    run.raw_records = raw_records
    run.classified_cases = classified_cases
    run.dropped_records = quality.dropped_records
    run.date_anomalies = quality.date_anomalies
    run.fallback_classifications = quality.fallback_classifications
    run.error = error
    run.completed_at = utc_now()
    db.commit()


def start_step(db: Session, run: RefreshRun, step_name: str) -> RunStep:
    step = RunStep(run_id=run.id, step_name=step_name, started_at=utc_now())
    db.add(step)
    db.commit()
    return step


def end_step(db: Session, step: RunStep, error: str | None = None) -> None:
    step.status = "failed" if error else "succeeded"
    step.duration_ms = (utc_now() - step.started_at).total_seconds() * 1000
    step.error = error
    db.commit()


def record_dropped_rows(db: Session, run: RefreshRun, dropped: list[DroppedRecord]) -> None:
    db.add_all(
        DroppedRow(
            run_id=run.id,
            row_index=record.record_index,
            case_id=record.case_id,
            missing_fields=",".join(record.missing_fields),
            raw_row=json.dumps(record.record, ensure_ascii=False, sort_keys=True),
        )
        for record in dropped
    )
    db.commit()


def prune_runs(db: Session, *, keep: int) -> int:
    """Delete finished runs beyond the newest ``keep``; in-flight runs are never touched."""
    stale_ids = (
        db.execute(
            select(RefreshRun.id)
            .where(RefreshRun.status.in_(FINISHED_STATUSES))
            .order_by(RefreshRun.id.desc())
            .offset(max(keep, 1))
        )
        .scalars()
        .all()
    )
    if not stale_ids:
        return 0

    # Bulk deletes skip ORM cascades and sqlite does not enforce foreign keys by default.
    db.execute(delete(RunStep).where(RunStep.run_id.in_(stale_ids)))
    db.execute(delete(DroppedRow).where(DroppedRow.run_id.in_(stale_ids)))
    db.execute(delete(RefreshRun).where(RefreshRun.id.in_(stale_ids)))
    db.commit()
    return len(stale_ids)
