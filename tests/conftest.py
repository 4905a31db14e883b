from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

_TEST_DB = Path(tempfile.mkdtemp(prefix="jobfunnel-tests-")) / "jobfunnel.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402

from jobfunnel.db import models  # noqa: E402,F401
from jobfunnel.db.base import Base  # noqa: E402
from jobfunnel.db.session import engine  # noqa: E402


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args: int) -> datetime:
        self.now = datetime(*args, tzinfo=UTC)
        return self.now


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 1, tzinfo=UTC))
