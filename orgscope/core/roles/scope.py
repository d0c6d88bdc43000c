"""Scope inclusion.

`scope_includes()` is the whole decision table, a pure function over the
context's (scope_type, scope_id) and the target's (target_type, target_id).
Relationship facts come from a lookup object with five methods:

    descendants_of(department_id)   -> set, including the department
    department_of_team(team_id)     -> department id or None
    departments_of_user(user_id)    -> departments linked to the user's teams
    teams_of_user(user_id)          -> set of team ids
    team_of_listing(listing_id)     -> team id or None

ScopeInclusionChecker provides that lookup from the repositories.
"""

from core.organization.repositories import HierarchyRepository, OrganizationRepository
from core.roles.models import PermissionContext, ScopeType, TargetType


def scope_includes(scope_type: ScopeType, scope_id, target_type: TargetType,
                   target_id, lookup) -> bool:
    """True if the target lies inside the scope."""
    # Department authority without a department is company-wide
    if scope_type == ScopeType.COMPANY or (scope_type == ScopeType.DEPARTMENT and scope_id is None):
        return True
    if scope_type.value == target_type.value and scope_id == target_id:
        return True

    if scope_type == ScopeType.DEPARTMENT:
        subtree = lookup.descendants_of(scope_id)
        if target_type == TargetType.DEPARTMENT:
            return target_id in subtree
        if target_type == TargetType.TEAM:
            return lookup.department_of_team(target_id) in subtree
        if target_type == TargetType.USER:
            return bool(lookup.departments_of_user(target_id) & subtree)
        if target_type == TargetType.LISTING:
            team_id = lookup.team_of_listing(target_id)
            return team_id is not None and lookup.department_of_team(team_id) in subtree
        return False

    if scope_type == ScopeType.TEAM:
        if target_type == TargetType.USER:
            return scope_id in lookup.teams_of_user(target_id)
        if target_type == TargetType.LISTING:
            return lookup.team_of_listing(target_id) == scope_id
        return False

    return False


class ScopeInclusionChecker:

    def __init__(self, hierarchy_repo: HierarchyRepository = None,
                 org_repo: OrganizationRepository = None):
        self._hierarchy_repo = hierarchy_repo or HierarchyRepository()
        self._org_repo = org_repo or OrganizationRepository()

    def includes(self, context: PermissionContext, target_type, target_id) -> bool:
        """Whether `target_id` of `target_type` falls inside the context's scope."""
        return scope_includes(context.scope_type, context.scope_id,
                              TargetType(target_type), target_id, self)

    # ============== Lookup ==============

    def descendants_of(self, department_id) -> set:
        return self._hierarchy_repo.descendants_of(department_id)

    def department_of_team(self, team_id):
        return self._org_repo.department_of_team(team_id)

    def departments_of_user(self, user_id) -> set:
        return self._org_repo.departments_of_user(user_id)

    def teams_of_user(self, user_id) -> set:
        return self._org_repo.teams_of_user(user_id)

    def team_of_listing(self, listing_id):
        return self._org_repo.team_of_listing(listing_id)
