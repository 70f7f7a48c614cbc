import argparse
from datetime import UTC, datetime
import logging

from casepulse.config import get_settings
from casepulse.database import build_session_factory
from casepulse.pipeline import PipelineRunner
from casepulse.publish import build_publisher
from casepulse.scheduler import start_scheduler


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh the complaint cases dashboard")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="fetch, classify and publish once")
    run_parser.add_argument("--run-key", required=False, help="Idempotency key for this run")
    run_parser.add_argument(
        "--trigger-source",
        default="manual",
        choices=["manual", "scheduled"],
        help="Metadata label for how this run was triggered",
    )

    schedule_parser = subparsers.add_parser("schedule", help="refresh periodically")
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url)
    runner = PipelineRunner(settings, session_factory, build_publisher(settings.output_dir))
    if args.command == "schedule":
        start_scheduler(runner, run_now=args.run_now)
        return

    run_key = args.run_key or f"manual-{datetime.now(UTC).strftime('%Y%m%dT%H%M%S.%f')}"
    result = runner.run(run_key=run_key, trigger_source=args.trigger_source)

    print(
        "run_id={run_id} run_key={run_key} trigger={trigger} status={status} raw={raw} classified={classified} dropped={dropped} reused={reused}".format(
            run_id=result.run_id,
            run_key=result.run_key,
            trigger=result.trigger_source,
            status=result.status,
            raw=result.raw_records,
            classified=result.classified_cases,
            dropped=result.dropped_records,
            reused=result.reused_existing_run,
        )
    )
    if result.status == "failed":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
