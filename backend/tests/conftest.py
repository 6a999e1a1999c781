from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional

import pytest
from sqlalchemy.engine import Engine

from adaptive_engine.config import get_settings
from adaptive_engine.db import models  # noqa: F401  populate metadata
from adaptive_engine.db.base import Base
from adaptive_engine.db.session import dispose_engine, get_engine


class FixedClock:
    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


@pytest.fixture
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Engine]:
    db_path = tmp_path / "adaptive.db"
    monkeypatch.setenv("ADAPTIVE_DATABASE_URL", f"sqlite:///{db_path}")
    get_settings.cache_clear()
    dispose_engine()
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture
def make_clock():
    def _make(current: Optional[datetime] = None) -> FixedClock:
        return FixedClock(current or datetime.fromisoformat("2026-10-20T15:00:00+00:00"))

    return _make
