"""Granter rules and scope defaults for role assignment."""

from core.exceptions import ForbiddenError
from core.roles.models import PermissionContext, RoleType, ScopeType


def check_archetype(granter: PermissionContext, role_type: RoleType):
    """Reject grants of an archetype the granter is not entitled to hand out."""
    if granter.role_type == RoleType.MEMBER:
        raise ForbiddenError('member_cannot_assign', 'Members cannot assign roles')
    if granter.role_type == RoleType.LEAD and role_type != RoleType.MEMBER:
        raise ForbiddenError('lead_member_only', 'Team leads can only assign the member role')
    if granter.role_type == RoleType.MANAGER and role_type == RoleType.ADMIN:
        raise ForbiddenError('manager_cannot_assign_admin', 'Managers cannot assign the admin role')


def default_scope(granter: PermissionContext, role_type: RoleType,
                  scope_type: ScopeType | None, scope_id):
    """Fill in the scope a grant gets when the caller leaves it out.

    admin -> company; manager -> department (no id means company-wide
    department authority); lead/member -> the granter's own scope. A
    lead/member grant naming only the granter's own scope type still takes
    the granter's scope id.
    """
    if (role_type in (RoleType.LEAD, RoleType.MEMBER) and scope_id is None
            and scope_type in (None, granter.scope_type)):
        return granter.scope_type, granter.scope_id
    if scope_type is not None:
        return scope_type, scope_id
    if role_type == RoleType.ADMIN:
        return ScopeType.COMPANY, None
    if role_type == RoleType.MANAGER:
        return ScopeType.DEPARTMENT, scope_id
    return ScopeType.TEAM, scope_id


def check_scope(granter: PermissionContext, scope_type: ScopeType, scope_id):
    """Leads may only grant inside their own team."""
    if granter.role_type != RoleType.LEAD:
        return
    if not (scope_type == ScopeType.TEAM
            and granter.scope_type == ScopeType.TEAM
            and scope_id is not None
            and scope_id == granter.scope_id):
        raise ForbiddenError('lead_own_team_only',
                             'Team leads can only assign roles within their own team')


def check_scope_shape(role_type: RoleType, scope_type: ScopeType, scope_id):
    """Validate the (archetype, scope) combination itself."""
    if scope_type == ScopeType.COMPANY and scope_id is not None:
        raise ValueError('Company scope does not take a scope_id')
    if scope_type == ScopeType.TEAM and scope_id is None:
        raise ValueError('Team scope requires a scope_id')
    if scope_type == ScopeType.DEPARTMENT and scope_id is None and role_type != RoleType.MANAGER:
        raise ValueError('Department scope requires a scope_id')
    if role_type == RoleType.ADMIN and scope_type != ScopeType.COMPANY:
        raise ValueError('Admin roles are company-wide')
    if role_type == RoleType.LEAD and scope_type == ScopeType.COMPANY:
        raise ValueError('Team lead roles need a team or department scope')
