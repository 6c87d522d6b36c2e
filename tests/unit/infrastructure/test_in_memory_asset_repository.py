"""
Name: In-Memory Asset Repository Tests

Responsibilities:
  - Validate add/get/list with defensive copies and deterministic ordering
  - Validate compare-and-swap commit (no partial writes on conflict)
  - Validate referential integrity checks (dangling parents, cycles)
  - Validate parent -> children listings stay in sync with commits
  - Exercise concurrent commits with threads
"""

from dataclasses import replace
from threading import Barrier, Thread

import pytest

from bi_workspace.crosscutting.exceptions import ConflictError, NotFoundError
from bi_workspace.domain.entities import (
    Dashboard,
    Folder,
    Permission,
    SharePermission,
    TargetType,
)
from bi_workspace.domain.repositories import AssetChangeSet
from bi_workspace.infrastructure.repositories import InMemoryAssetRepository

pytestmark = pytest.mark.unit


@pytest.fixture
def repo() -> InMemoryAssetRepository:
    repository = InMemoryAssetRepository()
    repository.add_folder(Folder(id="root", name="Root"))
    repository.add_folder(Folder(id="child", name="Child", parent_id="root"))
    repository.add_dashboard(Dashboard(id="d-1", title="Sales", folder_id="child"))
    return repository


def test_add_sets_version_and_timestamps(repo):
    folder = repo.get_folder("root")

    assert folder.version == 1
    assert folder.created_at is not None
    assert folder.updated_at == folder.created_at


def test_add_rejects_duplicates_and_missing_parents(repo):
    with pytest.raises(ConflictError):
        repo.add_folder(Folder(id="root", name="Again"))
    with pytest.raises(NotFoundError):
        repo.add_folder(Folder(id="x", name="X", parent_id="missing"))
    with pytest.raises(NotFoundError):
        repo.add_dashboard(Dashboard(id="d-x", title="X", folder_id="missing"))


def test_reads_return_copies(repo):
    folder = repo.get_folder("root")
    folder.name = "Mutated"

    assert repo.get_folder("root").name == "Root"


def test_listings_are_sorted_and_filtered(repo):
    repo.add_folder(Folder(id="a", name="alpha", parent_id="root"))
    repo.add_dashboard(Dashboard(id="d-0", title="Unfiled"))

    assert [f.id for f in repo.list_child_folders("root")] == ["a", "child"]
    assert [f.id for f in repo.list_child_folders(None)] == ["root"]
    assert [d.id for d in repo.list_dashboards_in_folder(None)] == ["d-0"]
    assert [d.id for d in repo.list_dashboards()] == ["d-1", "d-0"]


def test_commit_bumps_version(repo):
    dashboard = repo.get_dashboard("d-1")
    share = SharePermission(TargetType.USER, "u-1", Permission.VIEW)

    repo.commit(AssetChangeSet(dashboards=[replace(dashboard, shared_with=(share,))]))

    stored = repo.get_dashboard("d-1")
    assert stored.version == 2
    assert stored.shared_with == (share,)


def test_stale_write_raises_conflict_and_writes_nothing(repo):
    """R: one stale asset in the change set aborts the whole commit."""
    folder = repo.get_folder("child")
    dashboard = repo.get_dashboard("d-1")
    repo.commit(AssetChangeSet(dashboards=[replace(dashboard, title="Renamed")]))

    change = AssetChangeSet(
        folders=[replace(folder, name="Should not persist")],
        dashboards=[replace(dashboard, title="Stale")],
    )
    with pytest.raises(ConflictError):
        repo.commit(change)

    assert repo.get_folder("child").name == "Child"
    assert repo.get_dashboard("d-1").title == "Renamed"


def test_guard_detects_concurrent_change(repo):
    root = repo.get_folder("root")
    repo.commit(AssetChangeSet(folders=[replace(root, name="Root v2")]))

    change = AssetChangeSet(dashboards=[replace(repo.get_dashboard("d-1"), title="X")])
    change.guard(root)

    with pytest.raises(ConflictError):
        repo.commit(change)
    assert repo.get_dashboard("d-1").title == "Sales"


def test_delete_of_missing_asset_is_conflict(repo):
    with pytest.raises(ConflictError):
        repo.commit(AssetChangeSet(deleted_dashboard_ids=["nope"]))


def test_delete_leaving_dangling_children_is_rejected(repo):
    with pytest.raises(ConflictError):
        repo.commit(AssetChangeSet(deleted_folder_ids=["child"]))

    assert repo.get_folder("child") is not None
    assert repo.get_dashboard("d-1") is not None


def test_write_creating_cycle_is_rejected(repo):
    root = repo.get_folder("root")
    with pytest.raises(ConflictError):
        repo.commit(AssetChangeSet(folders=[replace(root, parent_id="child")]))

    assert repo.get_folder("root").parent_id is None


def test_delete_subtree_in_one_commit(repo):
    repo.commit(
        AssetChangeSet(
            deleted_folder_ids=["root", "child"],
            deleted_dashboard_ids=["d-1"],
        )
    )

    assert repo.list_folders() == []
    assert repo.list_dashboards() == []


def test_concurrent_commits_on_same_asset_one_wins(repo):
    """R: two writers reading the same version cannot both commit."""
    barrier = Barrier(2)
    snapshot = repo.get_dashboard("d-1")
    outcomes: list[str] = []

    def writer(title: str) -> None:
        barrier.wait()
        try:
            repo.commit(AssetChangeSet(dashboards=[replace(snapshot, title=title)]))
            outcomes.append("ok")
        except ConflictError:
            outcomes.append("conflict")

    threads = [Thread(target=writer, args=(t,)) for t in ("A", "B")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    assert repo.get_dashboard("d-1").version == 2


def test_delete_with_surviving_dashboard_is_rejected(repo):
    """R: removing the child folder alone is not enough; d-1 still points at it."""
    with pytest.raises(ConflictError):
        repo.commit(AssetChangeSet(deleted_folder_ids=["child"]))

    # moving the dashboard out in the same change set makes the delete valid
    dashboard = repo.get_dashboard("d-1")
    repo.commit(
        AssetChangeSet(
            dashboards=[replace(dashboard, folder_id="root")],
            deleted_folder_ids=["child"],
        )
    )

    assert repo.get_folder("child") is None
    assert repo.get_dashboard("d-1").folder_id == "root"


def test_written_dashboard_pointing_at_missing_folder_is_rejected(repo):
    dashboard = repo.get_dashboard("d-1")
    with pytest.raises(ConflictError):
        repo.commit(AssetChangeSet(dashboards=[replace(dashboard, folder_id="ghost")]))

    assert repo.get_dashboard("d-1").folder_id == "child"
    assert [d.id for d in repo.list_dashboards_in_folder("child")] == ["d-1"]


def test_write_into_folder_deleted_in_same_commit_is_rejected(repo):
    repo.add_folder(Folder(id="other", name="Other"))
    other = repo.get_folder("other")

    with pytest.raises(ConflictError):
        repo.commit(
            AssetChangeSet(
                folders=[replace(other, parent_id="child")],
                dashboards=[replace(repo.get_dashboard("d-1"), folder_id=None)],
                deleted_folder_ids=["child"],
            )
        )

    assert repo.get_folder("child") is not None
    assert repo.get_folder("other").parent_id is None


def test_child_listings_follow_moves_and_deletes(repo):
    repo.add_folder(Folder(id="other", name="Other"))
    child = repo.get_folder("child")
    dashboard = repo.get_dashboard("d-1")

    repo.commit(
        AssetChangeSet(
            folders=[replace(child, parent_id="other")],
            dashboards=[replace(dashboard, folder_id=None)],
        )
    )

    assert repo.list_child_folders("root") == []
    assert [f.id for f in repo.list_child_folders("other")] == ["child"]
    assert repo.list_dashboards_in_folder("child") == []
    assert [d.id for d in repo.list_dashboards_in_folder(None)] == ["d-1"]

    repo.commit(AssetChangeSet(deleted_folder_ids=["child"]))

    assert repo.list_child_folders("other") == []


def test_failed_commit_leaves_child_listings_untouched(repo):
    child = repo.get_folder("child")
    with pytest.raises(ConflictError):
        repo.commit(
            AssetChangeSet(
                folders=[replace(child, parent_id=None)],
                deleted_folder_ids=["root", "missing"],
            )
        )

    assert [f.id for f in repo.list_child_folders("root")] == ["child"]
    assert [f.id for f in repo.list_child_folders(None)] == ["root"]


def test_deep_chain_delete_in_one_commit():
    repository = InMemoryAssetRepository()
    parent = None
    ids = []
    for depth in range(200):
        folder_id = f"f-{depth}"
        repository.add_folder(Folder(id=folder_id, name=folder_id, parent_id=parent))
        repository.add_dashboard(Dashboard(id=f"d-{depth}", title="D", folder_id=folder_id))
        ids.append(folder_id)
        parent = folder_id

    repository.commit(
        AssetChangeSet(
            deleted_folder_ids=list(reversed(ids)),
            deleted_dashboard_ids=[f"d-{depth}" for depth in range(200)],
        )
    )

    assert repository.list_folders() == []
    assert repository.list_dashboards_in_folder("f-0") == []
