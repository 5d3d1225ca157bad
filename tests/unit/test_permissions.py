"""Unit tests for role-based permission derivation."""

from agent_portal.models.account import Role
from agent_portal.services.permissions import BASE_PERMISSIONS, get_permissions_by_role


class TestPermissionsByRole:
    def test_agent_gets_base_only(self):
        assert get_permissions_by_role(Role.AGENT) == BASE_PERMISSIONS

    def test_user_gets_base_only(self):
        assert get_permissions_by_role("user") == BASE_PERMISSIONS

    def test_unknown_role_falls_back_to_base(self):
        assert get_permissions_by_role("intern") == BASE_PERMISSIONS

    def test_super_agent_adds_read_all_export_analytics(self):
        perms = get_permissions_by_role(Role.SUPER_AGENT)

        for key in BASE_PERMISSIONS:
            assert perms[key] is True
        assert perms["view_all_leads"] is True
        assert perms["export_data"] is True
        assert perms["view_analytics"] is True
        assert "delete_leads" not in perms
        assert "system_settings" not in perms

    def test_admin_has_full_control(self):
        perms = get_permissions_by_role("admin")

        for key in (
            "edit_all_leads",
            "delete_leads",
            "edit_all_agents",
            "delete_agents",
            "manage_permissions",
            "system_settings",
        ):
            assert perms[key] is True

    def test_returns_independent_copies(self):
        perms = get_permissions_by_role(Role.AGENT)
        perms["delete_leads"] = True

        assert "delete_leads" not in get_permissions_by_role(Role.AGENT)
