"""Shared fixtures for rankd tests."""

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Add src to path so tests run without an installed package
sys.path.insert(0, str(Path(__file__).parents[1] / "src"))

from rankd.features.ranking.service import RankingService  # noqa: E402
from rankd.infra.repository.duckdb import DuckDBRankingRepository  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep user config and data directories out of the tests."""
    for name in ("RANKD_LOG_LEVEL", "RANKD_PATHS__DB_PATH", "RANKD_LOGGING__LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def repo() -> Iterator[DuckDBRankingRepository]:
    """Provides an initialized in-memory repository."""
    repo = DuckDBRankingRepository.connect(None)
    yield repo
    repo.close()


@pytest.fixture
def service(repo) -> RankingService:
    return RankingService(repo)
