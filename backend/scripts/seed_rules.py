"""Upsert the default adaptation rules by name."""

from __future__ import annotations

import logging
import sys

from adaptive_engine.db.session import session_scope
from adaptive_engine.logging_config import configure_logging
from adaptive_engine.repositories.adaptation_rules import adaptation_rules

LOGGER = logging.getLogger("adaptive_engine.seed_rules")


def main() -> int:
    configure_logging()
    try:
        with session_scope() as session:
            count = adaptation_rules.seed_defaults(session)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to seed adaptation rules: %s", exc)
        return 1
    LOGGER.info("Seeded %d default adaptation rule(s).", count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
