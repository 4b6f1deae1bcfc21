"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path (imports `chartcache...`, `scripts...` et
`tests...`) et fournit les fixtures communes: horloge contrôlée, stores, fournisseur factice
et client HTTP.
"""

import os
import sys

import pytest
import structlog

# Ensure project root is on sys.path so that
# imports like `from chartcache...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient  # noqa: E402

from chartcache.app.main import create_app  # noqa: E402
from chartcache.core.container import Container  # noqa: E402
from chartcache.core.settings import Settings  # noqa: E402
from chartcache.infra.astro.fake_deterministic import FakeDeterministicProvider  # noqa: E402
from chartcache.infra.repo.db import get_engine  # noqa: E402
from chartcache.infra.repo.sql_chart_store import SqlChartStore  # noqa: E402
from chartcache.infra.repositories import InMemoryChartStore  # noqa: E402
from tests.fakes import FakeClock  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Restaure la configuration structlog par défaut après chaque test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryChartStore:
    return InMemoryChartStore()


@pytest.fixture
def sql_store():
    engine = get_engine("sqlite+pysqlite:///:memory:")
    yield SqlChartStore(engine, create_schema=True)
    engine.dispose()


@pytest.fixture
def fake_provider() -> FakeDeterministicProvider:
    return FakeDeterministicProvider()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None, CHART_STORE="memory", ASTRO_PROVIDER="fake", LOG_LEVEL="WARNING"
    )


@pytest.fixture
def container(test_settings, memory_store, fake_provider) -> Container:
    return Container(settings=test_settings, store=memory_store, provider=fake_provider)


@pytest.fixture
def client(container) -> TestClient:
    return TestClient(create_app(container))
