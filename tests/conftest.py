"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure test environment (no .env, APP_ENV=test)
  - Provide in-memory repository, engines and facade wired like the container
  - Provide viewer fixtures and small tree builders

Collaborators:
  - pytest: Test framework
  - bi_workspace.infrastructure.repositories: InMemoryAssetRepository
  - bi_workspace.application: engines + facade

Notes:
  - Engines are built without retry by default; retry behaviour has its own tests
  - Use @pytest.fixture(scope="function") for per-test isolation
"""

import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from bi_workspace.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from bi_workspace.application import (  # noqa: E402
    HierarchyManager,
    ShareMergeEngine,
    WorkspaceFacade,
)
from bi_workspace.domain.entities import Page  # noqa: E402
from bi_workspace.domain.identity import Viewer  # noqa: E402
from bi_workspace.infrastructure.repositories import (  # noqa: E402
    InMemoryAssetRepository,
)

os.environ.setdefault("APP_ENV", "test")


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


# ============================================================================
# Viewers
# ============================================================================


@pytest.fixture
def owner() -> Viewer:
    """R: Creator of the assets built by the fixtures."""
    return Viewer(id="owner-1", email="owner@acme.io", group="bi-admins")


@pytest.fixture
def analyst() -> Viewer:
    """R: Plain viewer in the finance group."""
    return Viewer(id="analyst-7", email="Analyst@Acme.io", group="Finance")


@pytest.fixture
def outsider() -> Viewer:
    return Viewer(id="outsider-9", email="outsider@other.io", group="sales")


# ============================================================================
# Wiring
# ============================================================================


@pytest.fixture
def repository() -> InMemoryAssetRepository:
    return InMemoryAssetRepository()


@pytest.fixture
def hierarchy(repository) -> HierarchyManager:
    return HierarchyManager(repository, max_depth=64)


@pytest.fixture
def share_engine(repository) -> ShareMergeEngine:
    return ShareMergeEngine(repository)


@pytest.fixture
def facade(repository, hierarchy, share_engine) -> WorkspaceFacade:
    return WorkspaceFacade(repository, hierarchy, share_engine)


@pytest.fixture
def sample_pages() -> tuple[Page, ...]:
    return (Page("p1", "Overview"), Page("p2", "Revenue"), Page("p3", "Costs"))

