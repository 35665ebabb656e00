"""Tests for the role-hierarchy access control checks."""
from types import SimpleNamespace

import pytest

from src.core.exceptions import PermissionDeniedException
from src.workflow.domain import AccessContext, AccessControl


def make_user(id, role="USER", access_level=1, username=None):
    return SimpleNamespace(id=id, role=role, access_level=access_level, username=username or f"user{id}")


class TestCheckEditPermission:
    def test_self_edit_allowed_regardless_of_role(self):
        user = make_user(1, role="USER", access_level=None)
        AccessControl.check_edit_permission(user, make_user(1, role="USER", access_level=None))

    def test_missing_current_or_target_denied(self):
        with pytest.raises(PermissionDeniedException):
            AccessControl.check_edit_permission(None, make_user(2))
        with pytest.raises(PermissionDeniedException):
            AccessControl.check_edit_permission(make_user(1, "ADMIN", 5), None)

    def test_non_admin_cannot_edit_others(self):
        with pytest.raises(PermissionDeniedException) as exc:
            AccessControl.check_edit_permission(make_user(1, "MANAGER", 4), make_user(2, "USER", 1, "bob"))
        assert "bob" in exc.value.message
        assert "2" in exc.value.message
        assert exc.value.error_code == "ERR_FORBIDDEN"

    def test_missing_role_denied(self):
        with pytest.raises(PermissionDeniedException):
            AccessControl.check_edit_permission(make_user(1, None, 5), make_user(2, "USER", 1))

    def test_role_compared_case_insensitively(self):
        AccessControl.check_edit_permission(make_user(1, "admin", 5), make_user(2, "USER", 1))

    def test_admin_without_level_denied(self):
        with pytest.raises(PermissionDeniedException) as exc:
            AccessControl.check_edit_permission(make_user(1, "ADMIN", None), make_user(2, "USER", 1))
        assert "not configured" in exc.value.message

    def test_target_without_level_denied(self):
        with pytest.raises(PermissionDeniedException) as exc:
            AccessControl.check_edit_permission(make_user(1, "ADMIN", 5), make_user(2, "USER", None))
        assert "Cannot determine" in exc.value.message

    @pytest.mark.parametrize("target_level", [5, 6])
    def test_admin_cannot_edit_equal_or_higher(self, target_level):
        with pytest.raises(PermissionDeniedException) as exc:
            AccessControl.check_edit_permission(
                make_user(1, "ADMIN", 5), make_user(2, "ADMIN", target_level)
            )
        assert str(target_level) in exc.value.message
        assert "5" in exc.value.message

    def test_admin_can_edit_lower(self):
        AccessControl.check_edit_permission(make_user(1, "ADMIN", 5), make_user(2, "MANAGER", 4))


class TestAccessContext:
    def test_require_user_without_user(self):
        with pytest.raises(PermissionDeniedException):
            AccessContext().require_user()

    def test_is_admin(self):
        assert AccessControl.is_admin(AccessContext(make_user(1, "Admin", 5)))
        assert not AccessControl.is_admin(AccessContext(make_user(1, "MANAGER", 4)))
        assert not AccessControl.is_admin(AccessContext())

    def test_is_admin_resolution_failure(self):
        assert not AccessControl.is_admin(AccessContext(object()))

    def test_has_higher_access_level(self):
        context = AccessContext(make_user(1, "ADMIN", 5))
        assert AccessControl.has_higher_access_level(context, make_user(2, access_level=4))
        assert not AccessControl.has_higher_access_level(context, make_user(2, access_level=5))
        assert not AccessControl.has_higher_access_level(context, make_user(2, access_level=None))
        assert not AccessControl.has_higher_access_level(AccessContext(), make_user(2, access_level=1))
        assert not AccessControl.has_higher_access_level(context, object())
