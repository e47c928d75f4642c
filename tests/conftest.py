from __future__ import annotations

from pathlib import Path

import pytest
from provider_fakes import FakeProviderRouter

from video_discovery.app.repositories.database import Database


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return db


@pytest.fixture
def provider_router() -> FakeProviderRouter:
    return FakeProviderRouter()
