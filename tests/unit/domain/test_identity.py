"""
Name: Identity Normalizer Tests

Responsibilities:
  - Validate trim/lowercase normalization and empty-identity handling
  - Validate viewer matching by id OR email, and by group
"""

import pytest

from bi_workspace.domain.identity import (
    Viewer,
    is_current_user,
    normalize,
    normalize_target_id,
    normalize_target_type,
    target_key,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  Ana@Acme.IO ", "ana@acme.io"),
        ("GROUP", "group"),
        ("", ""),
        ("   ", ""),
        (None, ""),
        (42, "42"),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


def test_is_current_user_matches_id_or_email():
    """R: Invite flows may only know the email; both identifiers match."""
    assert is_current_user("U-1", "u-1", "ana@acme.io")
    assert is_current_user(" ANA@acme.io ", "u-1", "ana@acme.io")
    assert not is_current_user("bob@acme.io", "u-1", "ana@acme.io")


def test_empty_candidate_never_matches():
    """R: Empty identity never matches, even a viewer with empty fields."""
    assert not is_current_user("", "", "")
    assert not is_current_user(None, None, None)
    assert not is_current_user("  ", "u-1", None)


def test_target_type_defaults_to_user():
    assert normalize_target_type("Group") == "group"
    assert normalize_target_type("team") == "user"
    assert normalize_target_type(None) == "user"


def test_target_id_is_trimmed_but_keeps_case():
    assert normalize_target_id("  Finance ") == "Finance"
    assert normalize_target_id(None) == ""


def test_target_key_is_case_insensitive():
    assert target_key("USER", " Ana@Acme.io") == target_key("user", "ana@acme.io")
    assert target_key("group", "finance") == "group:finance"


def test_viewer_group_matching():
    viewer = Viewer(id="u-1", group=" Finance ")
    assert viewer.matches_group("finance")
    assert not viewer.matches_group("sales")
    assert not Viewer(id="u-2").matches_group("")


def test_viewer_display_id_prefers_id():
    assert Viewer(id=" u-1 ", email="a@b.c").display_id == "u-1"
    assert Viewer(email="a@b.c").display_id == "a@b.c"
