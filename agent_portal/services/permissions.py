"""Role to permission mapping."""

from agent_portal.models.account import Role

BASE_PERMISSIONS = {
    "view_own_leads": True,
    "edit_own_leads": True,
    "view_own_profile": True,
    "edit_own_profile": True,
}

SUPER_AGENT_PERMISSIONS = {
    "view_all_leads": True,
    "view_all_agents": True,
    "view_agent_activity": True,
    "export_data": True,
    "view_analytics": True,
}

ADMIN_PERMISSIONS = {
    "view_all_leads": True,
    "edit_all_leads": True,
    "delete_leads": True,
    "view_all_agents": True,
    "edit_all_agents": True,
    "delete_agents": True,
    "view_agent_activity": True,
    "manage_permissions": True,
    "export_data": True,
    "view_analytics": True,
    "system_settings": True,
}


def get_permissions_by_role(role: Role | str) -> dict[str, bool]:
    """Return the permission set for a role.

    Agents, plain users and unrecognized roles get the base self-service
    permissions only.
    """
    try:
        role = Role(role)
    except ValueError:
        return dict(BASE_PERMISSIONS)

    if role is Role.ADMIN:
        return {**BASE_PERMISSIONS, **ADMIN_PERMISSIONS}
    if role is Role.SUPER_AGENT:
        return {**BASE_PERMISSIONS, **SUPER_AGENT_PERMISSIONS}
    return dict(BASE_PERMISSIONS)
