"""AuthorizationService - the authorization engine's entry point.

Wires resolver, scope checker, authorizer, escalation search and role
assignment over shared repositories. Routes and other modules go through
this class instead of the components directly.
"""

import logging

from core.approvals.escalation import ApproverEscalationSearch
from core.organization.repositories import HierarchyRepository, OrganizationRepository
from core.roles.assignment import RoleAssignmentWorkflow
from core.roles.authorizer import ActionAuthorizer
from core.roles.models import PermissionContext, RoleAssignment, ScopeType
from core.roles.repositories import AssignmentRepository, RoleRepository
from core.roles.resolver import PermissionContextResolver
from core.roles.scope import ScopeInclusionChecker

logger = logging.getLogger('orgscope.core.roles.authorization_service')


class AuthorizationService:

    def __init__(self, hierarchy_repo: HierarchyRepository = None,
                 org_repo: OrganizationRepository = None,
                 role_repo: RoleRepository = None,
                 assignment_repo: AssignmentRepository = None):
        self._hierarchy_repo = hierarchy_repo or HierarchyRepository()
        self._org_repo = org_repo or OrganizationRepository()
        self._role_repo = role_repo or RoleRepository()
        self._assignment_repo = assignment_repo or AssignmentRepository()

        self.resolver = PermissionContextResolver(self._assignment_repo)
        self.scope_checker = ScopeInclusionChecker(self._hierarchy_repo, self._org_repo)
        self.authorizer = ActionAuthorizer(self.scope_checker)
        self.escalation = ApproverEscalationSearch(
            resolver=self.resolver, org_repo=self._org_repo,
            hierarchy_repo=self._hierarchy_repo, assignment_repo=self._assignment_repo,
        )
        self.assignments = RoleAssignmentWorkflow(
            self._role_repo, self._assignment_repo, self._org_repo)

    # ════════════════════════════════════════════
    # Decisions
    # ════════════════════════════════════════════

    def resolve_permission_context(self, user_id, company_id) -> PermissionContext:
        return self.resolver.resolve(user_id, company_id)

    def authorize(self, context: PermissionContext, action, target_type=None,
                  target_id=None, listing_amount=None) -> bool:
        allowed = self.authorizer.authorize(context, action, target_type, target_id, listing_amount)
        if not allowed:
            logger.debug(
                f'Denied {action} for user {context.user_id} '
                f'({context.role_type.value}) on {target_type}:{target_id}'
            )
        return allowed

    def is_in_scope(self, context: PermissionContext, target_type, target_id) -> bool:
        return self.scope_checker.includes(context, target_type, target_id)

    def find_approver(self, listing_id, amount=None):
        return self.escalation.find_approver(listing_id, amount)

    def submit_for_approval(self, listing_id) -> dict:
        return self.escalation.submit_for_approval(listing_id)

    def assign_role(self, granter: PermissionContext, target_user_id, role_type,
                    scope_type=None, scope_id=None,
                    max_approval_amount_override=None) -> RoleAssignment:
        return self.assignments.assign_role(
            granter, target_user_id, role_type, scope_type, scope_id,
            max_approval_amount_override,
        )

    # ════════════════════════════════════════════
    # Scope-filtered visibility
    # ════════════════════════════════════════════

    def visible_department_ids(self, context: PermissionContext) -> set | None:
        """Departments the context may see. None means every department."""
        if context.is_company_wide:
            return None
        if context.scope_type == ScopeType.DEPARTMENT:
            return self._hierarchy_repo.descendants_of(context.scope_id)
        return set()

    def visible_user_ids(self, context: PermissionContext) -> set | None:
        """Users the context may see. None means every company user."""
        if context.is_company_wide:
            return None
        if context.scope_type == ScopeType.DEPARTMENT:
            departments = self._hierarchy_repo.descendants_of(context.scope_id)
            return self._org_repo.users_in_departments(departments)
        return self._org_repo.team_member_ids(context.scope_id)

    def describe_scope(self, context: PermissionContext) -> dict:
        """Scope type, id and display name of the entity the scope covers."""
        name = None
        if context.is_company_wide:
            company = self._org_repo.get_company(context.company_id)
            name = company['name'] if company else None
        elif context.scope_type == ScopeType.DEPARTMENT:
            department = self._org_repo.get_department(context.scope_id, context.company_id)
            name = department['path'] if department else None
        elif context.scope_type == ScopeType.TEAM:
            team = self._org_repo.get_team(context.scope_id, context.company_id)
            name = team['name'] if team else None
        return {
            'scope_type': context.scope_type.value,
            'scope_id': context.scope_id,
            'scope_name': name,
            'company_wide': context.is_company_wide,
        }
