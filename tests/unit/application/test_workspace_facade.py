"""
Name: Workspace Facade Tests

Responsibilities:
  - Validate id-based queries (permission, pages, RLS row filtering)
  - Validate command results and error-code mapping
  - Validate actor authorization on move / delete / rename / create
  - Validate delete policy parsing
"""

import pytest

from bi_workspace.application import AssetErrorCode, DeletePolicy, OperationResult
from bi_workspace.crosscutting.exceptions import (
    ConfigError,
    CycleError,
    HierarchyError,
    NotFoundError,
)
from bi_workspace.domain.entities import AssetType, Folder, Permission, TargetType
from bi_workspace.domain.rls import RLSConfig, RLSRule, build_condition
from bi_workspace.domain.share_merge import ShareBatch, ShareTarget

pytestmark = pytest.mark.unit

ROWS = [
    {"id": 1, "region": "US", "amount": 120},
    {"id": 2, "region": "APAC", "amount": 80},
    {"id": 3, "region": "EU", "amount": None},
    {"id": 4, "amount": 10},
]


@pytest.fixture
def workspace(facade, owner, sample_pages):
    folder = facade.create_folder("Finance", actor=owner).asset
    child = facade.create_folder("Reports", folder.id, actor=owner).asset
    dashboard = facade.create_dashboard(
        "P&L", folder.id, pages=sample_pages, actor=owner
    ).asset
    return folder, child, dashboard


def _share(
    facade, folder, dashboards, role, target_id, *, target_type=TargetType.USER, rls=None
):
    result = facade.apply_share_batch(
        ShareBatch(
            target=ShareTarget(target_type, target_id),
            folder_id=folder.id if folder is not None else None,
            folder_role=role,
            dashboard_roles={d.id: role for d in dashboards},
            rls_by_dashboard=rls or {},
        )
    )
    assert result.ok, result.error
    return result


# =============================================================================
# Queries
# =============================================================================


def test_resolve_permission_by_id(facade, workspace, owner, analyst):
    folder, _, dashboard = workspace
    _share(facade, folder, [dashboard], Permission.VIEW, "analyst-7")

    assert facade.resolve_permission(folder.id, "folder", owner) is Permission.ADMIN
    assert facade.resolve_permission(dashboard.id, AssetType.DASHBOARD, analyst) is Permission.VIEW
    assert facade.can_view(dashboard.id, "dashboard", analyst)
    assert not facade.can_edit(dashboard.id, "dashboard", analyst)
    assert not facade.can_share(dashboard.id, "dashboard", analyst)
    assert facade.can_share(dashboard.id, "dashboard", owner)


def test_queries_raise_not_found_for_unknown_ids(facade, analyst):
    with pytest.raises(NotFoundError):
        facade.resolve_permission("missing", "folder", analyst)
    with pytest.raises(NotFoundError):
        facade.visible_pages("missing", analyst)
    with pytest.raises(NotFoundError):
        facade.filter_rows("missing", analyst, ROWS)


def test_unknown_asset_type_is_rejected(facade, workspace, analyst):
    folder, _, _ = workspace
    with pytest.raises(HierarchyError):
        facade.resolve_permission(folder.id, "report", analyst)


def test_denied_viewer_gets_none_not_error(facade, workspace, outsider):
    _, _, dashboard = workspace

    assert facade.resolve_permission(dashboard.id, "dashboard", outsider) is Permission.NONE
    assert facade.visible_pages(dashboard.id, outsider) == frozenset()
    assert facade.filter_rows(dashboard.id, outsider, ROWS) == []


def test_visible_pages_unrestricted_grant_wins(facade, workspace, analyst):
    """R: [p1] via the user share + unrestricted group share -> all pages."""
    _, _, dashboard = workspace
    _share(
        facade,
        None,
        [dashboard],
        Permission.VIEW,
        "analyst-7",
        rls={dashboard.id: RLSConfig(allowed_page_ids=("p1",))},
    )
    _share(facade, None, [dashboard], Permission.VIEW, "finance", target_type=TargetType.GROUP)

    assert facade.visible_pages(dashboard.id, analyst) == frozenset({"p1", "p2", "p3"})


def test_filter_rows_applies_effective_rls(facade, workspace, analyst, owner):
    _, _, dashboard = workspace
    us_eu = RLSRule(conditions=(build_condition("region", "in", values=["US", "EU"]),))
    _share(
        facade,
        None,
        [dashboard],
        Permission.VIEW,
        "analyst-7",
        rls={dashboard.id: RLSConfig(rules=(us_eu,))},
    )

    assert [r["id"] for r in facade.filter_rows(dashboard.id, analyst, ROWS)] == [1, 3]
    # ownership adds no implicit RLS
    assert [r["id"] for r in facade.filter_rows(dashboard.id, owner, ROWS)] == [1, 2, 3, 4]


def test_filter_rows_page_gate(facade, workspace, analyst):
    _, _, dashboard = workspace
    _share(
        facade,
        None,
        [dashboard],
        Permission.VIEW,
        "analyst-7",
        rls={dashboard.id: RLSConfig(allowed_page_ids=("p2",))},
    )

    assert facade.filter_rows(dashboard.id, analyst, ROWS, page_id="p1") == []
    assert len(facade.filter_rows(dashboard.id, analyst, ROWS, page_id="p2")) == 4


def test_filter_rows_propagates_config_error(facade, workspace, analyst):
    _, _, dashboard = workspace
    broken = RLSConfig(rules=(RLSRule(conditions=("region = 'US'",)),))
    _share(facade, None, [dashboard], Permission.VIEW, "analyst-7", rls={dashboard.id: broken})

    with pytest.raises(ConfigError):
        facade.filter_rows(dashboard.id, analyst, ROWS)


def test_list_accessible_assets(facade, workspace, analyst, owner):
    folder, child, dashboard = workspace
    _share(facade, None, [dashboard], Permission.VIEW, "analyst-7")

    mine = facade.list_accessible_assets(owner)
    theirs = facade.list_accessible_assets(analyst)

    assert {f.id for f in mine.folders} == {folder.id, child.id}
    assert [d.id for d in mine.dashboards] == [dashboard.id]
    assert theirs.folders == []
    assert [d.id for d in theirs.dashboards] == [dashboard.id]


# =============================================================================
# Commands
# =============================================================================


def test_create_sets_creator_from_actor(facade, owner):
    result = facade.create_folder(None, actor=owner)

    assert result.ok
    assert isinstance(result.asset, Folder)
    assert result.asset.name == "New Folder"
    assert result.asset.created_by == "owner-1"
    assert result.asset.shared_with == ()


def test_share_batch_result_lists_assets(facade, workspace):
    folder, _, dashboard = workspace
    result = _share(facade, folder, [dashboard], Permission.EDIT, "u-1")

    assert result.asset.id == folder.id
    assert [a.id for a in result.assets] == [folder.id, dashboard.id]


def test_share_batch_forbidden_for_non_admin_actor(facade, workspace, analyst):
    folder, _, dashboard = workspace
    _share(facade, folder, [dashboard], Permission.EDIT, "analyst-7")

    result = facade.apply_share_batch(
        ShareBatch(
            target=ShareTarget(TargetType.USER, "u-9"),
            dashboard_roles={dashboard.id: Permission.VIEW},
        ),
        actor=analyst,
    )

    assert not result.ok
    assert result.error.code is AssetErrorCode.FORBIDDEN
    assert result.error.error_id


def test_move_into_descendant_returns_cycle(facade, workspace, owner):
    folder, child, _ = workspace
    result = facade.move_asset(folder.id, "folder", child.id, actor=owner)

    assert result.error is not None
    assert result.error.code is AssetErrorCode.CYCLE
    assert facade.get_asset(folder.id, "folder").parent_id is None


def test_move_dashboard_requires_edit_on_asset_and_destination(facade, workspace, analyst):
    folder, child, dashboard = workspace
    _share(facade, None, [dashboard], Permission.EDIT, "analyst-7")

    denied = facade.move_asset(dashboard.id, "dashboard", child.id, actor=analyst)
    assert denied.error.code is AssetErrorCode.FORBIDDEN

    _share(facade, child, [], Permission.EDIT, "analyst-7")
    moved = facade.move_asset(dashboard.id, "dashboard", child.id, actor=analyst)
    assert moved.ok
    assert moved.asset.folder_id == child.id


def test_move_unknown_asset_returns_not_found(facade):
    result = facade.move_asset("missing", "dashboard", None)
    assert result.error.code is AssetErrorCode.NOT_FOUND


@pytest.mark.parametrize(
    "policy, folder_survives, dashboard_survives",
    [
        (DeletePolicy.CASCADE, False, False),
        ("cascade", False, False),
        (True, False, False),
        (DeletePolicy.REPARENT, True, True),
        ("Reparent", True, True),
        (None, True, True),
    ],
)
def test_delete_folder_policies(
    facade, workspace, repository, policy, folder_survives, dashboard_survives
):
    folder, child, dashboard = workspace

    result = facade.delete_asset(folder.id, "folder", policy)

    assert result.ok
    assert result.asset.id == folder.id
    assert (repository.get_folder(child.id) is not None) is folder_survives
    assert (repository.get_dashboard(dashboard.id) is not None) is dashboard_survives


def test_reparented_dashboard_remains_shareable(facade, workspace, repository, analyst):
    """R: after a reparent delete the dashboard keeps working as an independent asset."""
    folder, _, dashboard = workspace
    assert facade.delete_asset(folder.id, "folder", "reparent").ok
    assert repository.get_dashboard(dashboard.id).is_unfiled

    _share(facade, None, [dashboard], Permission.VIEW, "analyst-7")
    assert facade.resolve_permission(dashboard.id, "dashboard", analyst) is Permission.VIEW


def test_delete_with_unknown_policy_is_validation_error(facade, workspace):
    folder, _, _ = workspace
    result = facade.delete_asset(folder.id, "folder", "archive")

    assert result.error.code is AssetErrorCode.VALIDATION_ERROR


def test_delete_forbidden_for_viewer(facade, workspace, analyst, repository):
    _, _, dashboard = workspace
    _share(facade, None, [dashboard], Permission.VIEW, "analyst-7")

    result = facade.delete_asset(dashboard.id, "dashboard", actor=analyst)

    assert result.error.code is AssetErrorCode.FORBIDDEN
    assert repository.get_dashboard(dashboard.id) is not None


def test_rename_asset(facade, workspace, owner):
    folder, _, dashboard = workspace

    renamed = facade.rename_asset(folder.id, "folder", "Treasury", actor=owner)
    retitled = facade.rename_asset(dashboard.id, "dashboard", "Cash flow", actor=owner)
    blank = facade.rename_asset(dashboard.id, "dashboard", "  ", actor=owner)

    assert renamed.asset.name == "Treasury"
    assert retitled.asset.title == "Cash flow"
    assert blank.error.code is AssetErrorCode.VALIDATION_ERROR


def test_create_inside_folder_requires_edit(facade, workspace, analyst):
    folder, _, _ = workspace
    result = facade.create_dashboard("Mine", folder.id, actor=analyst)

    assert result.error.code is AssetErrorCode.FORBIDDEN


def test_operation_result_failure_maps_codes():
    result = OperationResult.failure(NotFoundError("folder", "f-1"))
    assert result.error.code is AssetErrorCode.NOT_FOUND
    assert not result.error.retryable
    assert result.error.message == "Folder not found: f-1"


def test_engine_error_response_payload():
    error = CycleError("Folder f-1 cannot be its own parent.", error_id="err-1")

    assert error.to_response().to_dict() == {
        "error_code": "CYCLE",
        "message": "Folder f-1 cannot be its own parent.",
        "error_id": "err-1",
    }
    assert OperationResult.failure(error).error.error_id == "err-1"
