from collections.abc import Callable
import logging
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from casepulse.config import Settings
from casepulse.db_models import RefreshRun
from casepulse.publish import SnapshotPublisher
from casepulse.run_store import (
    close_run,
    end_step,
    open_run,
    prune_runs,
    record_dropped_rows,
    restart_run,
    start_step,
)
from casepulse.schemas import ParseFailure, PipelineResult, SourceTable
from casepulse.source import fetch_source_table
from casepulse.transform import transform_with_drops


logger = logging.getLogger(__name__)
T = TypeVar("T")


class PipelineRunner:
    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker[Session],
        publisher: SnapshotPublisher,
        fetcher: Callable[[Settings], SourceTable] = fetch_source_table,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.publisher = publisher
        self.fetcher = fetcher

    def run(self, *, run_key: str, trigger_source: str = "manual") -> PipelineResult:
        source = self.settings.source_path or self.settings.source_url
        with self.session_factory() as db:
            run, created = open_run(db, run_key=run_key, trigger_source=trigger_source, source=source)
            if not created and run.status not in ("failed", "no_update"):
                logger.info("idempotent run reused", extra={"run_key": run_key, "status": run.status})
                return self._result_from_run(run, reused_existing_run=True)
            if not created:
                logger.info("re-running previous refresh", extra={"run_key": run_key, "status": run.status})
            restart_run(db, run)

            self._refresh(db, run)
            result = self._result_from_run(run, reused_existing_run=False)
            self._prune(db)
            return result

    def _refresh(self, db: Session, run: RefreshRun) -> None:
        raw_records = 0
        try:
            table = self._run_step(db, run, "fetch", lambda: self.fetcher(self.settings))
            raw_records = len(table.records)

            result, dropped = self._run_step(
                db,
                run,
                "transform",
                lambda: transform_with_drops(
                    table.records,
                    mapping=self.settings.field_mapping(),
                    structural_errors=table.errors,
                    recent_limit=self.settings.recent_cases_limit,
                    top_vendor_limit=self.settings.top_vendors_limit,
                ),
            )

            if isinstance(result, ParseFailure):
                # Nothing to publish; the dashboard keeps its last snapshot.
                close_run(db, run, "no_update", raw_records=raw_records, error=self._describe_failure(result))
                logger.warning("no dashboard update", extra={"run_key": run.run_key, "reason": result.reason})
                return

            record_dropped_rows(db, run, dropped)
            self._run_step(db, run, "publish", lambda: self.publisher.publish(result))

            close_run(
                db,
                run,
                "succeeded",
                raw_records=raw_records,
                quality=result.quality,
                classified_cases=result.total_cases,
            )
        except Exception as exc:
            db.rollback()
            close_run(db, run, "failed", raw_records=raw_records, error=str(exc))
            logger.exception("refresh run failed", extra={"run_key": run.run_key})

    def _prune(self, db: Session) -> None:
        try:
            pruned = prune_runs(db, keep=self.settings.ledger_retention_runs)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("ledger pruning failed")
            return
        if pruned:
            logger.debug("pruned old refresh runs", extra={"pruned": pruned})

    def _run_step(self, db: Session, run: RefreshRun, step_name: str, fn: Callable[[], T]) -> T:
        step = start_step(db, run, step_name)
        try:
            result = fn()
        except Exception as exc:
            end_step(db, step, error=str(exc))
            raise
        end_step(db, step)
        return result

    def _describe_failure(self, failure: ParseFailure) -> str:
        if not failure.details:
            return failure.reason
        return f"{failure.reason}: {'; '.join(failure.details)}"

    def _result_from_run(self, run: RefreshRun, reused_existing_run: bool) -> PipelineResult:
        return PipelineResult(
            run_id=run.id,
            run_key=run.run_key,
            trigger_source=run.trigger_source,
            status=run.status,
            raw_records=run.raw_records,
            classified_cases=run.classified_cases,
            dropped_records=run.dropped_records,
            error=run.error,
            reused_existing_run=reused_existing_run,
        )
