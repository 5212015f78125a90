import argparse
import logging
import time

from ..config import get_settings
from ..database import session_scope
from ..logging_config import configure_logging
from ..services.dispatcher import DispatchSummary, ReminderDispatcher
from ..services.reminder_generator import ReminderGenerator

logger = logging.getLogger(__name__)


def generate_reminders_job() -> int:
    logger.info("Starting reminder generation")
    with session_scope() as db:
        created = ReminderGenerator(db).generate_daily_reminders()
    logger.info("Created %s reminder(s)", len(created))
    return len(created)


def dispatch_reminders_job() -> DispatchSummary:
    logger.info("Starting reminder dispatch")
    with session_scope() as db:
        summary = ReminderDispatcher(db).process_pending_reminders()
    logger.info("Dispatched reminders: %s", summary.as_dict())
    return summary


def run_once() -> None:
    generate_reminders_job()
    dispatch_reminders_job()


def run_forever(interval_minutes: int | None = None, sleep=time.sleep) -> None:
    """Run generation then dispatch every interval until interrupted."""
    interval = interval_minutes or get_settings().REMINDER_INTERVAL_MINUTES
    logger.info("Reminder runner started; interval %s minute(s)", interval)
    while True:
        try:
            run_once()
        except Exception:
            logger.exception("Reminder run failed")
        sleep(interval * 60)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Generate and deliver patient reminders")
    parser.add_argument("--loop", action="store_true", help="keep running on the configured interval")
    parser.add_argument("--interval", type=int, default=None, help="minutes between runs")
    args = parser.parse_args(argv)

    configure_logging(get_settings())
    if args.loop:
        run_forever(args.interval)
    else:
        run_once()


if __name__ == "__main__":
    main()
