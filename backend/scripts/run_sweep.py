"""Run one analytics sweep outside the scheduler and print its report as JSON."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from adaptive_engine.analytics_processor import create_analytics_processor
from adaptive_engine.logging_config import configure_logging

LOGGER = logging.getLogger("adaptive_engine.run_sweep")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a single analytics sweep.")
    parser.add_argument(
        "--daily",
        action="store_true",
        help="Run the comprehensive daily sweep over all users instead of the active-user sweep.",
    )
    parser.add_argument("--log-level", default=None, help="Override ADAPTIVE_LOG_LEVEL for this run.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        processor = create_analytics_processor()
        report = processor.run_daily_processing() if args.daily else processor.process_active_users()
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Sweep run failed: %s", exc)
        return 1
    print(report.model_dump_json())
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
