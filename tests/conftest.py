import os
import tempfile
from pathlib import Path

# Settings are read once and cached, so point them at a scratch area first
_SCRATCH = Path(tempfile.mkdtemp(prefix="archiver-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_SCRATCH / 'archive.db'}"
os.environ["VIDEO_STORAGE_PATH"] = str(_SCRATCH / "videos")
os.environ["CHANNEL_ID"] = "UC_test_channel"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DOWNLOAD_DELAY_SECONDS"] = "0"
os.environ["API_DELAY_SECONDS"] = "0"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from archiver.db import models  # noqa: F401
from archiver.db.database import Base


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
