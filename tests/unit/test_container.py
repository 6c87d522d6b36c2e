"""
Name: Container Tests

Responsibilities:
  - Validate the composition root shares one repository across engines
  - Validate reset_container() drops the cached singletons
"""

import pytest

from bi_workspace import container
from bi_workspace.domain.identity import Viewer


@pytest.fixture(autouse=True)
def fresh_container():
    container.reset_container()
    yield
    container.reset_container()


@pytest.mark.unit
def test_facade_is_a_singleton_wired_to_one_repository():
    facade = container.get_workspace_facade()
    owner = Viewer(id="owner-1")

    created = facade.create_folder("Finance", actor=owner)

    assert container.get_workspace_facade() is facade
    assert container.get_asset_repository().get_folder(created.asset.id) is not None
    assert facade.resolve_permission(created.asset.id, "folder", owner).value == "admin"


@pytest.mark.unit
def test_reset_container_builds_fresh_state():
    first = container.get_asset_repository()
    first_folder = container.get_workspace_facade().create_folder("Tmp").asset

    container.reset_container()

    assert container.get_asset_repository() is not first
    assert container.get_asset_repository().get_folder(first_folder.id) is None
