import os

os.environ.setdefault("FINTRACK_AUTH_SECRET", "test-secret-not-for-production")
os.environ.setdefault("FINTRACK_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FINTRACK_TIMEZONE", "UTC")

import pytest  # noqa: E402

from config import get_settings  # noqa: E402
from database import Database  # noqa: E402

get_settings.cache_clear()


@pytest.fixture
def db() -> Database:
    database = Database("sqlite:///:memory:")
    database.create_schema()
    yield database
    database.dispose()

