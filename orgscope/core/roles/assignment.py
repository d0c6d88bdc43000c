"""Role assignment workflow.

Decides who may grant which archetype at which scope, then swaps the
target user's single role assignment atomically.

Granter rules, first violation wins:
    member   may not assign roles at all
    lead     may assign only the member archetype
    manager  may not assign the admin archetype
    lead     may only grant team scope on the lead's own team
"""

import logging

from core.approvals import hooks
from core.exceptions import ForbiddenError, NotFoundError
from core.organization.repositories import OrganizationRepository
from core.roles.models import (
    PermissionContext, RoleAssignment, RoleType, ScopeType, parse_amount,
)
from core.roles.repositories import AssignmentRepository, RoleRepository
from core.utils.logging_config import log_with_context
from . import rules

logger = logging.getLogger('orgscope.core.roles.assignment')


class RoleAssignmentWorkflow:

    def __init__(self, role_repo: RoleRepository = None,
                 assignment_repo: AssignmentRepository = None,
                 org_repo: OrganizationRepository = None):
        self._role_repo = role_repo or RoleRepository()
        self._assignment_repo = assignment_repo or AssignmentRepository()
        self._org_repo = org_repo or OrganizationRepository()

    # ════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════

    def assign_role(self, granter: PermissionContext, target_user_id, role_type,
                    scope_type=None, scope_id=None,
                    max_approval_amount_override=None) -> RoleAssignment:
        """Replace `target_user_id`'s role with a system role of `role_type`.

        Raises:
            ForbiddenError: the granter may not make this grant (see module rules)
            NotFoundError: target user, scope entity or system role missing
            ValueError: malformed scope or override
        """
        role_type = RoleType(role_type)
        scope_type = ScopeType(scope_type) if scope_type is not None else None
        override = parse_amount(max_approval_amount_override)

        try:
            rules.check_archetype(granter, role_type)
            scope_type, scope_id = rules.default_scope(granter, role_type, scope_type, scope_id)
            rules.check_scope(granter, scope_type, scope_id)
        except ForbiddenError as e:
            log_with_context(
                logger, logging.WARNING, f'Role assignment refused: {e}',
                granter_id=granter.user_id, target_user_id=target_user_id,
                company_id=granter.company_id, role_type=role_type.value, rule=e.rule,
            )
            raise

        return self._grant(granter.company_id, target_user_id, role_type,
                           scope_type, scope_id, override, granted_by=granter.user_id)

    def grant_system_role(self, company_id, user_id, role_type, scope_type=None,
                          scope_id=None, max_approval_amount_override=None,
                          granted_by=None) -> RoleAssignment:
        """Grant without granter rules, for trusted callers.

        Used when a company is bootstrapped (first admin) and when an
        invitation is redeemed with the role it was issued for.
        """
        role_type = RoleType(role_type)
        if scope_type is None:
            scope_type = ScopeType.TEAM if scope_id is not None else ScopeType.COMPANY
        return self._grant(company_id, user_id, role_type, ScopeType(scope_type), scope_id,
                           parse_amount(max_approval_amount_override), granted_by=granted_by)

    # ════════════════════════════════════════════
    # Internals
    # ════════════════════════════════════════════

    def _grant(self, company_id, user_id, role_type: RoleType, scope_type: ScopeType,
               scope_id, override, granted_by=None) -> RoleAssignment:
        if not self._org_repo.get_company_user(user_id, company_id):
            raise NotFoundError('user', user_id)
        rules.check_scope_shape(role_type, scope_type, scope_id)
        self._check_scope_exists(company_id, scope_type, scope_id)

        role = self._role_repo.get_system_role(company_id, role_type)
        if not role:
            raise NotFoundError('role', role_type.value,
                                message=f"System role '{role_type.value}' is not provisioned")

        row = self._assignment_repo.replace(
            user_id, role['id'], scope_type.value, scope_id,
            max_approval_amount_override=override, granted_by=granted_by,
        )
        assignment = RoleAssignment.from_row(row)

        log_with_context(
            logger, logging.INFO, f"Assigned {role_type.value} role to user {user_id}",
            company_id=company_id, user_id=user_id, granted_by=granted_by,
            scope_type=scope_type.value, scope_id=scope_id,
        )
        hooks.fire('role.assigned', {
            'company_id': company_id,
            'user_id': user_id,
            'role_id': role['id'],
            'role_type': role_type.value,
            'scope_type': scope_type.value,
            'scope_id': scope_id,
            'granted_by': granted_by,
        })
        return assignment

    def _check_scope_exists(self, company_id, scope_type: ScopeType, scope_id):
        if scope_id is None:
            return
        if scope_type == ScopeType.DEPARTMENT:
            if not self._org_repo.get_department(scope_id, company_id):
                raise NotFoundError('department', scope_id)
        elif scope_type == ScopeType.TEAM:
            if not self._org_repo.get_team(scope_id, company_id):
                raise NotFoundError('team', scope_id)
