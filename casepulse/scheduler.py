from datetime import UTC, datetime
import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from casepulse.pipeline import PipelineRunner


logger = logging.getLogger(__name__)


def scheduled_run_key(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"scheduled-{now.strftime('%Y%m%dT%H%M%S.%f')}"


def _run_refresh(runner: PipelineRunner) -> None:
    result = runner.run(run_key=scheduled_run_key(), trigger_source="scheduled")
    if result.status == "failed":
        logger.error(
            "scheduled refresh failed",
            extra={"run_key": result.run_key, "status": result.status, "error": result.error},
        )
        return
    logger.info(
        "scheduled refresh completed",
        extra={
            "run_key": result.run_key,
            "status": result.status,
            "classified_cases": result.classified_cases,
        },
    )


def build_scheduler(runner: PipelineRunner) -> BlockingScheduler:
    settings = runner.settings
    scheduler = BlockingScheduler(timezone="UTC")
    # Overlapping cycles are allowed; the publisher keeps the last completed snapshot.
    scheduler.add_job(
        _run_refresh,
        "interval",
        args=[runner],
        seconds=settings.refresh_interval_seconds,
        id="dashboard_refresh",
        max_instances=settings.scheduler_max_instances,
        coalesce=False,
        replace_existing=True,
    )
    return scheduler


def start_scheduler(runner: PipelineRunner, *, run_now: bool = False) -> None:
    scheduler = build_scheduler(runner)
    logger.info(
        "scheduler started",
        extra={"refresh_interval_seconds": runner.settings.refresh_interval_seconds},
    )

    if run_now:
        _run_refresh(runner)

    scheduler.start()
